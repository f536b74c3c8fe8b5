"""Hashavshevet REST API adapter."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from invotrack.config import InvoTrackConfig
from invotrack.exceptions import AuthError
from invotrack.models import PosConfigField, PosConnectionConfig, PosDocument, Product, Supplier
from invotrack.pos.base import PosAdapter
from invotrack.pos.http_client import VendorHttpClient, VendorResponse
from invotrack.pos.mapping import hashavshevet as mapping
from invotrack.pos.pagination import FetchResult, PaginatedFetcher
from invotrack.pos.token_cache import TokenCache

logger = logging.getLogger(__name__)


class HashavshevetAdapter(PosAdapter):
    """Bearer API key auth; there is no token endpoint to cache."""

    system_id = mapping.SYSTEM_ID
    system_name = "Hashavshevet (חשבשבת)"

    def __init__(
        self,
        http: VendorHttpClient,
        token_cache: TokenCache,
        settings: InvoTrackConfig,
    ) -> None:
        super().__init__(http, token_cache, settings)
        self.fetcher = PaginatedFetcher(
            http, max_pages=settings.max_pages, first_page=1, size_param="size"
        )

    def config_schema(self) -> list[PosConfigField]:
        return [
            PosConfigField(key="api_key", label="API Key", type="password"),
            PosConfigField(key="endpoint_url", label="API Endpoint URL", required=False),
        ]

    def _base_url(self, config: PosConnectionConfig) -> str:
        return (config.endpoint_url or self.settings.hashavshevet_base_url).rstrip("/")

    async def get_token(self, config: PosConnectionConfig) -> str:
        if not config.api_key:
            raise AuthError("Hashavshevet API key is required")
        return config.api_key

    async def _headers(self, config: PosConnectionConfig) -> dict[str, str]:
        token = await self.get_token(config)
        return {"Authorization": f"Bearer {token}"}

    async def _send(
        self,
        config: PosConnectionConfig,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> VendorResponse:
        return await self.http.request(
            method,
            f"{self._base_url(config)}/{path}",
            params=params,
            headers=await self._headers(config),
            json_body=json_body,
        )

    async def _check_connection(self, config: PosConnectionConfig) -> None:
        response = await self._send(config, "GET", "items", params={"page": 1, "size": 1})
        if response.status_code in (401, 403):
            raise AuthError(
                "Hashavshevet rejected the API key",
                status_code=response.status_code,
                body=response.text,
            )
        self._require_ok(response, "Connection test")

    async def _list(self, config: PosConnectionConfig, resource: str, mapper):
        return await self.fetcher.fetch_all(
            f"{self._base_url(config)}/{resource}",
            mapper=mapper,
            page_size=self.settings.hashavshevet_page_size,
            headers=await self._headers(config),
        )

    async def _fetch_products(self, config: PosConnectionConfig) -> FetchResult[Product]:
        return await self._list(config, "items", mapping.product_to_internal)

    async def _fetch_suppliers(self, config: PosConnectionConfig) -> FetchResult[Supplier]:
        return await self._list(config, "accounts", mapping.supplier_to_internal)

    async def _fetch_sales(self, config: PosConnectionConfig) -> FetchResult[PosDocument]:
        return await self._list(config, "sales", mapping.document_to_internal)

    async def _fetch_documents(
        self, config: PosConnectionConfig
    ) -> FetchResult[PosDocument]:
        return await self._list(config, "documents", mapping.document_to_internal)

    async def _push_product(
        self,
        config: PosConnectionConfig,
        product: Product,
        *,
        is_update: bool,
        active: Optional[bool] = None,
    ) -> str:
        payload = mapping.product_to_vendor(product, is_update, active=active)
        item_key = payload["ItemKey"]
        if is_update:
            response = await self._send(config, "PUT", f"items/{item_key}", json_body=payload)
        else:
            response = await self._send(config, "POST", "items", json_body=payload)
        self._require_ok(response, "Product save")
        return self._extract_id(response, ("ItemKey", "InternalID"), fallback=item_key)

    async def _push_supplier(self, config: PosConnectionConfig, supplier: Supplier) -> str:
        account_key = supplier.external_id_for(self.system_id)
        payload = mapping.supplier_to_vendor(supplier, is_update=bool(account_key))
        if account_key:
            response = await self._send(
                config, "PUT", f"accounts/{account_key}", json_body=payload
            )
        else:
            response = await self._send(config, "POST", "accounts", json_body=payload)
        self._require_ok(response, "Supplier save")
        return self._extract_id(
            response,
            ("AccountKey", "InternalID"),
            fallback=account_key or payload.get("AccountKey"),
        )

    async def _push_document(
        self,
        config: PosConnectionConfig,
        document: PosDocument,
        supplier: Optional[Supplier],
    ) -> str:
        document_id = document.id or uuid.uuid4().hex
        payload = mapping.document_to_vendor(document, supplier, document_id=document_id)
        response = await self._send(config, "POST", "documents", json_body=payload)
        self._require_ok(response, "Document creation")
        return self._extract_id(
            response, ("DocumentID", "DocumentId", "Id"), fallback=document_id
        )
