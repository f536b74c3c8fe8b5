"""Invoice image scanning through an OpenAI vision model."""

import json
import logging
from typing import Any, Optional

from openai import APIConnectionError, APIStatusError, OpenAI, RateLimitError

from .config import InvoTrackConfig
from .models import ScanResult, ScannedLineItem
from .pos.extractors import to_float, to_text, unit_price_from_total

logger = logging.getLogger(__name__)

SCAN_PROMPT = """Analyze the following image and extract information for ALL distinct products found.
Return a JSON object with a single key "products" whose value is an array of objects.
Each object represents a single product and contains the keys:
"product_name",
"catalog_number",
"quantity",
"total",
"description" (include this key only if a description is clearly present for that specific product).

For "quantity" and "total", extract ONLY the numerical value (integers or decimals).
DO NOT include currency symbols, thousands separators, or any other non-numeric text in these values.

If a specific piece of information (other than description) is not found, omit that key.
If no products are found, return {"products": []}.
"""


class ScanOutputError(ValueError):
    """Raised when the model response is not a usable JSON object."""


def process_scanned_rows(rows: Any) -> list[ScannedLineItem]:
    """Turn raw model rows into line items.

    Unit price is total / quantity rounded to 2 places (0 when quantity is 0).
    Rows with neither a catalog number nor any name are dropped.
    """
    if not isinstance(rows, list):
        return []

    items: list[ScannedLineItem] = []
    dropped = 0
    for row in rows:
        if not isinstance(row, dict):
            dropped += 1
            continue

        quantity = to_float(row.get("quantity")) or 0.0
        line_total = to_float(row.get("total")) or 0.0
        product_name = to_text(row.get("product_name"))
        catalog_number = to_text(row.get("catalog_number"))
        description = (
            product_name
            or to_text(row.get("description"))
            or catalog_number
            or "Unknown Product"
        )
        item = ScannedLineItem(
            catalog_number=catalog_number or "N/A",
            description=description,
            name=product_name,
            quantity=quantity,
            unit_price=unit_price_from_total(line_total, quantity),
            line_total=line_total,
        )
        if item.catalog_number == "N/A" and item.description == "Unknown Product":
            dropped += 1
            continue
        items.append(item)

    if dropped:
        logger.warning("Dropped %s empty product rows from scan output", dropped)
    return items


class InvoiceScanner:
    """Extract line items from an invoice image data URI."""

    def __init__(self, config: InvoTrackConfig) -> None:
        self.config = config
        self.mock = config.mock
        self.client: Optional[OpenAI] = None
        if not self.mock:
            if config.openai_api_key:
                self.client = OpenAI(
                    api_key=config.openai_api_key, timeout=config.openai_timeout_sec
                )

    def scan(self, invoice_data_uri: str) -> ScanResult:
        """
        Send the invoice image to the vision model and post-process its rows.

        Args:
            invoice_data_uri: Image as `data:<mime>;base64,<payload>`

        Returns:
            ScanResult with processed line items
        """
        if self.mock:
            logger.info("Using mock scan data (no API call)")
            return self._get_mock_data()

        if not self.client:
            raise ValueError("OpenAI client not initialized (missing API key)")

        try:
            completion = self.client.chat.completions.create(
                model=self.config.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": SCAN_PROMPT},
                            {"type": "image_url", "image_url": {"url": invoice_data_uri}},
                        ],
                    }
                ],
                response_format={"type": "json_object"},
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )

            content = completion.choices[0].message.content
            if content is None:
                raise ScanOutputError("API returned no content")
            payload = json.loads(content)

        except APIConnectionError as e:
            logger.error("Connection failed: %s", e.__cause__)
            raise
        except RateLimitError as e:
            logger.warning("Rate limited: %s", e)
            raise
        except APIStatusError as e:
            logger.error("API error %s: %s", e.status_code, e.response)
            raise
        except json.JSONDecodeError as e:
            raise ScanOutputError(f"Model returned invalid JSON: {e}") from e

        return ScanResult(products=process_scanned_rows(self._rows_from_payload(payload)))

    @staticmethod
    def _rows_from_payload(payload: Any) -> Any:
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict):
            return payload.get("products", [])
        raise ScanOutputError("Scan payload must be a JSON object")

    def _get_mock_data(self) -> ScanResult:
        """Generate mock scan output for testing without API."""
        return ScanResult(
            products=process_scanned_rows(
                [
                    {
                        "product_name": "Milk 3% 1L",
                        "catalog_number": "7290000042435",
                        "quantity": 12,
                        "total": 71.4,
                    },
                    {
                        "product_name": "Whole Wheat Bread",
                        "catalog_number": "7290011194246",
                        "quantity": 6,
                        "total": 53.7,
                    },
                ]
            )
        )
