"""Thin async HTTP layer used by POS adapters."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from invotrack.exceptions import MalformedResponseError, NetworkError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VendorResponse:
    """Status and raw body of one vendor call."""

    status_code: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """Decode the body as JSON or raise MalformedResponseError."""
        try:
            return json.loads(self.text)
        except ValueError as exc:
            raise MalformedResponseError(
                "Vendor returned a non-JSON body",
                status_code=self.status_code,
                body=self.text,
            ) from exc


class VendorHttpClient(Protocol):
    """Minimal request interface adapters depend on."""

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Any = None,
    ) -> VendorResponse:
        ...


class HttpxVendorClient:
    """VendorHttpClient backed by a shared httpx.AsyncClient."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Any = None,
    ) -> VendorResponse:
        try:
            resp = await self._client.request(
                method, url, params=params, headers=headers, json=json_body
            )
        except httpx.HTTPError as exc:
            # The URL may carry credentials in its query string; log the type only.
            logger.error("Vendor request %s failed: %s", method, type(exc).__name__)
            raise NetworkError(
                f"Could not reach vendor ({type(exc).__name__})"
            ) from exc
        return VendorResponse(status_code=resp.status_code, text=resp.text)

    async def aclose(self) -> None:
        """Close the underlying client if this wrapper created it."""
        if self._owns_client:
            await self._client.aclose()
