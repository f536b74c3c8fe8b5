"""Page-by-page accumulation over vendor list endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, Sequence, TypeVar

from invotrack.exceptions import MalformedResponseError, NetworkError
from invotrack.pos.extractors import (
    DEFAULT_RECORD_LOCATORS,
    RecordLocator,
    extract_records,
    first_present,
    to_float,
)
from invotrack.pos.http_client import VendorHttpClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TOTAL_PAGES_FIELDS = ("TotalPages", "totalPages")


@dataclass
class FetchResult(Generic[T]):
    """Mapped records from every fetched page."""

    records: list[T] = field(default_factory=list)
    dropped: int = 0
    pages_fetched: int = 0
    capped: bool = False


def _total_pages(body: Any) -> Optional[int]:
    if not isinstance(body, dict):
        return None
    value = to_float(first_present(body, _TOTAL_PAGES_FIELDS))
    return int(value) if value is not None else None


class PaginatedFetcher:
    """Fetches list pages until an empty page, the vendor's last page, or the cap.

    Without a `TotalPages` field in the body, a page shorter than `page_size`
    is taken as the last one.

    A non-2xx page fails the whole fetch; hitting the cap is logged and the
    records gathered so far are returned.
    """

    def __init__(
        self,
        http: VendorHttpClient,
        *,
        max_pages: int = 50,
        first_page: int = 1,
        page_param: str = "page",
        size_param: Optional[str] = "size",
        locators: Sequence[RecordLocator] = DEFAULT_RECORD_LOCATORS,
    ) -> None:
        if max_pages < 1:
            raise ValueError("max_pages must be at least 1")
        self.http = http
        self.max_pages = max_pages
        self.first_page = first_page
        self.page_param = page_param
        self.size_param = size_param
        self.locators = locators

    async def fetch_all(
        self,
        url: str,
        *,
        mapper: Callable[[dict[str, Any]], Optional[T]],
        page_size: int,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> FetchResult[T]:
        result: FetchResult[T] = FetchResult()
        page = self.first_page

        while True:
            query = dict(params or {})
            query[self.page_param] = page
            if self.size_param:
                query[self.size_param] = page_size

            response = await self.http.request("GET", url, params=query, headers=headers)
            if not response.ok:
                logger.error(
                    "List page %s failed: status=%s body=%s",
                    page,
                    response.status_code,
                    response.text,
                )
                raise NetworkError(
                    f"List request failed with status {response.status_code}",
                    status_code=response.status_code,
                    body=response.text,
                )

            body = response.json()
            raw_records = extract_records(body, self.locators)
            if raw_records is None:
                logger.error("Unrecognized list body on page %s: %s", page, response.text)
                raise MalformedResponseError(
                    "Vendor list response has no record array",
                    status_code=response.status_code,
                    body=response.text,
                )

            result.pages_fetched += 1
            for raw in raw_records:
                mapped = mapper(raw) if isinstance(raw, dict) else None
                if mapped is None:
                    result.dropped += 1
                    continue
                result.records.append(mapped)

            if not raw_records:
                break

            # The vendor's page count wins over the page-size heuristic.
            total_pages = _total_pages(body)
            if total_pages is not None:
                if result.pages_fetched >= total_pages:
                    break
            elif len(raw_records) < page_size:
                break

            if result.pages_fetched >= self.max_pages:
                logger.warning(
                    "Stopped pagination at the %s page cap for %s; results may be partial",
                    self.max_pages,
                    url,
                )
                result.capped = True
                break

            page += 1

        if result.dropped:
            logger.warning("Dropped %s unmappable records from %s", result.dropped, url)
        return result
