"""Invoice finalization: persist products, push to the POS, record the invoice."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from invotrack.models import (
    DocumentLine,
    FinalizeInvoiceRequest,
    FinalizeInvoiceResponse,
    InvoiceHistoryItem,
    PosConnectionConfig,
    PosDocument,
    Product,
    ScannedLineItem,
    Supplier,
)
from invotrack.pos.manager import IntegrationManager
from invotrack.repositories.base import InvoTrackRepository
from invotrack.storage import BlobStorage, decode_data_uri

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
POS_DOCUMENT_TYPES = ("invoice", "deliveryNote")


def product_id_for(item: ScannedLineItem) -> Optional[str]:
    """Barcode when present, else `manual_<name>`; None for nameless rows."""
    name = item.display_name
    if not name:
        return None
    if item.barcode and item.barcode.strip():
        return item.barcode.strip()
    return f"manual_{_WHITESPACE.sub('_', name.strip().lower())}"


@dataclass
class _SavedLine:
    product: Product
    quantity: float
    unit_price: float


@dataclass
class _PosPushOutcome:
    purchase_doc_id: Optional[str] = None
    messages: list[str] = field(default_factory=list)


class InvoiceFinalizationService:
    """Coordinates the finalize write path.

    Product persistence and the invoice record are authoritative; every POS
    step is best effort and only reported through `pos_messages`.
    """

    def __init__(
        self,
        repository: InvoTrackRepository,
        manager: Optional[IntegrationManager] = None,
        storage: Optional[BlobStorage] = None,
    ) -> None:
        self.repository = repository
        self.manager = manager
        self.storage = storage

    async def finalize(
        self,
        user_id: str,
        request: FinalizeInvoiceRequest,
        pos_config: Optional[PosConnectionConfig] = None,
    ) -> FinalizeInvoiceResponse:
        saved_lines = self._persist_products(user_id, request)

        if pos_config is None:
            pos_config = self.repository.get_pos_settings(user_id)

        outcome = _PosPushOutcome()
        if pos_config and self.manager and request.document_type in POS_DOCUMENT_TYPES:
            outcome = await self._push_to_pos(
                self.manager, user_id, request, pos_config, saved_lines
            )

        has_supplier = bool(request.supplier_name and request.supplier_name.strip())
        invoice = self.repository.save_invoice(
            InvoiceHistoryItem(
                id=request.temp_invoice_id,
                user_id=user_id,
                original_file_name=request.original_file_name,
                document_type=request.document_type,
                status="pending"
                if has_supplier and request.document_type == "invoice"
                else "completed",
                supplier=request.supplier_name if has_supplier else "N/A",
                invoice_number=request.invoice_number,
                invoice_date=request.invoice_date,
                payment_due_date=request.payment_due_date,
                total_amount=request.total_amount or 0.0,
                item_count=len(request.products),
                products=[line.product.id for line in saved_lines if line.product.id],
                payment_method=request.payment_method,
                pos_purchase_doc_id=outcome.purchase_doc_id,
                raw_scan_result_json=request.raw_scan_result_json,
            )
        )

        if request.original_image_data_uri and request.compressed_image_data_uri:
            invoice = await self._upload_images(user_id, invoice, request)

        return FinalizeInvoiceResponse(
            invoice=invoice,
            products=[self.repository.get_product(user_id, line.product.id) or line.product
                      for line in saved_lines],
            pos_messages=outcome.messages,
        )

    def _persist_products(
        self, user_id: str, request: FinalizeInvoiceRequest
    ) -> list[_SavedLine]:
        saved: list[_SavedLine] = []
        for item in request.products:
            product_id = product_id_for(item)
            if product_id is None:
                logger.warning("Skipping scanned row without a name")
                continue

            product = self.repository.merge_product(
                user_id,
                Product(
                    id=product_id,
                    catalog_number=item.catalog_number,
                    description=item.description,
                    name=item.display_name,
                    barcode=item.barcode,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    sale_price=item.sale_price,
                ),
            )
            saved.append(
                _SavedLine(product=product, quantity=item.quantity, unit_price=item.unit_price)
            )
        logger.info("Persisted %s products for invoice %s", len(saved), request.original_file_name)
        return saved

    async def _push_to_pos(
        self,
        manager: IntegrationManager,
        user_id: str,
        request: FinalizeInvoiceRequest,
        config: PosConnectionConfig,
        saved_lines: list[_SavedLine],
    ) -> _PosPushOutcome:
        system_id = config.system_id
        outcome = _PosPushOutcome()
        if manager.get_adapter(system_id) is None:
            outcome.messages.append(f"Unknown POS system: {system_id}")
            return outcome

        supplier: Optional[Supplier] = None
        supplier_external_id: Optional[str] = None
        if request.supplier_name and request.supplier_name.strip():
            supplier = Supplier(
                name=request.supplier_name.strip(),
                tax_id=request.supplier_tax_id,
                payment_terms=request.payment_terms,
            )
            result = await manager.create_or_update_supplier(system_id, config, supplier)
            if result.success:
                supplier_external_id = result.external_id
            else:
                logger.warning("Supplier sync with %s failed: %s", system_id, result.message)
                outcome.messages.append(result.message)

        lines: list[DocumentLine] = []
        for line in saved_lines:
            product = line.product
            known_id = product.external_id_for(system_id)
            result = await manager.create_or_update_product(system_id, config, product)
            if not result.success or not result.external_id:
                logger.warning(
                    "Product %s sync with %s failed: %s", product.id, system_id, result.message
                )
                outcome.messages.append(result.message)
                continue
            if result.external_id != known_id:
                self.repository.save_product(user_id, product)
            lines.append(
                DocumentLine(
                    external_product_id=result.external_id,
                    catalog_number=product.catalog_number,
                    description=product.name or product.description,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
            )

        if not supplier_external_id or not lines:
            logger.info(
                "Skipping %s purchase document: supplier=%s lines=%s",
                system_id,
                bool(supplier_external_id),
                len(lines),
            )
            return outcome

        document = PosDocument(
            document_type=request.document_type,
            document_number=request.invoice_number,
            date=request.invoice_date or datetime.now(timezone.utc).isoformat(),
            due_date=request.payment_due_date,
            total_amount=request.total_amount,
            lines=lines,
        )
        result = await manager.create_document(system_id, config, document, supplier)
        if result.success:
            outcome.purchase_doc_id = result.external_id
        else:
            logger.warning("Purchase document in %s failed: %s", system_id, result.message)
            outcome.messages.append(result.message)
        return outcome

    async def _upload_images(
        self,
        user_id: str,
        invoice: InvoiceHistoryItem,
        request: FinalizeInvoiceRequest,
    ) -> InvoiceHistoryItem:
        if self.storage is None or not invoice.id:
            return invoice

        uris: dict[str, Optional[str]] = {}
        targets = {
            "original_image_uri": (request.original_image_data_uri, "original.jpg"),
            "compressed_image_uri": (request.compressed_image_data_uri, "compressed.jpg"),
        }
        for field_name, (data_uri, file_name) in targets.items():
            decoded = decode_data_uri(data_uri or "")
            if decoded is None:
                logger.warning("Skipping %s: not a base64 data URI", field_name)
                uris[field_name] = None
                continue
            path = f"users/{user_id}/documents/{invoice.id}/{file_name}"
            try:
                uris[field_name] = await run_in_threadpool(
                    self.storage.upload, path, decoded.data, decoded.content_type
                )
            except Exception:
                logger.exception("Image upload to %s failed", path)
                uris[field_name] = None

        return self.repository.update_invoice(user_id, invoice.id, uris)
