"""Caspit REST API adapter."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from invotrack.config import InvoTrackConfig
from invotrack.exceptions import AuthError, NetworkError
from invotrack.models import PosConfigField, PosConnectionConfig, PosDocument, Product, Supplier
from invotrack.pos.base import PosAdapter
from invotrack.pos.extractors import extract_records, first_present, to_text
from invotrack.pos.http_client import VendorHttpClient, VendorResponse
from invotrack.pos.mapping import caspit as mapping
from invotrack.pos.pagination import FetchResult, PaginatedFetcher
from invotrack.pos.token_cache import TokenCache

logger = logging.getLogger(__name__)

SALES_TRX_TYPE = 1


class CaspitAdapter(PosAdapter):
    """Token is fetched with user/pwd/osekMorshe and sent as query param and header."""

    system_id = mapping.SYSTEM_ID
    system_name = "Caspit (כספית)"

    def __init__(
        self,
        http: VendorHttpClient,
        token_cache: TokenCache,
        settings: InvoTrackConfig,
    ) -> None:
        super().__init__(http, token_cache, settings)
        self.base_url = settings.caspit_base_url
        # Caspit fixes the page size server-side; only `page` is sent.
        self.fetcher = PaginatedFetcher(
            http, max_pages=settings.max_pages, first_page=1, size_param=None
        )

    def config_schema(self) -> list[PosConfigField]:
        return [
            PosConfigField(key="user", label="Username"),
            PosConfigField(key="pwd", label="Password", type="password"),
            PosConfigField(key="tax_id", label="Business ID (Osek Morshe)"),
        ]

    def available_document_types(self) -> list[str]:
        return ["invoice", "deliveryNote", "order", "expense"]

    async def get_token(self, config: PosConnectionConfig) -> str:
        if not (config.user and config.pwd and config.tax_id):
            raise AuthError("Caspit credentials (user, pwd, osekMorshe) are required")

        params = {"user": config.user, "pwd": config.pwd, "osekMorshe": config.tax_id}

        async def fetch():
            return await self.http.request("GET", f"{self.base_url}/Token", params=params)

        return await self.token_cache.get_token(self._cache_key(config), fetch)

    @staticmethod
    def _cache_key(config: PosConnectionConfig) -> str:
        return config.tax_id or config.user or ""

    async def _auth(self, config: PosConnectionConfig) -> tuple[dict[str, Any], dict[str, str]]:
        token = await self.get_token(config)
        return {"token": token}, {"Caspit-Token": token}

    async def _list(self, config: PosConnectionConfig, resource: str, mapper, **extra):
        params, headers = await self._auth(config)
        params.update(extra)
        try:
            return await self.fetcher.fetch_all(
                f"{self.base_url}/{resource}",
                mapper=mapper,
                page_size=self.settings.caspit_page_size,
                params=params,
                headers=headers,
            )
        except NetworkError as exc:
            if exc.status_code == 401:
                self.token_cache.evict(self._cache_key(config))
            raise

    async def _fetch_products(self, config: PosConnectionConfig) -> FetchResult[Product]:
        return await self._list(config, "Products", mapping.product_to_internal)

    async def _fetch_suppliers(self, config: PosConnectionConfig) -> FetchResult[Supplier]:
        return await self._list(config, "Contacts", mapping.supplier_to_internal)

    async def _fetch_sales(self, config: PosConnectionConfig) -> FetchResult[PosDocument]:
        return await self._list(
            config, "Documents", mapping.document_to_internal, trxTypeId=SALES_TRX_TYPE
        )

    async def _fetch_documents(
        self, config: PosConnectionConfig
    ) -> FetchResult[PosDocument]:
        return await self._list(config, "Documents", mapping.document_to_internal)

    async def _send(
        self,
        config: PosConnectionConfig,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        **extra_params: Any,
    ) -> VendorResponse:
        params, headers = await self._auth(config)
        params.update(extra_params)
        response = await self.http.request(
            method,
            f"{self.base_url}/{path}",
            params=params,
            headers=headers,
            json_body=json_body,
        )
        if response.status_code == 401:
            self.token_cache.evict(self._cache_key(config))
        return response

    async def _push_product(
        self,
        config: PosConnectionConfig,
        product: Product,
        *,
        is_update: bool,
        active: Optional[bool] = None,
    ) -> str:
        payload = mapping.product_to_vendor(product, is_update, active=active)
        product_id = payload.get("ProductId")
        if is_update:
            response = await self._send(
                config, "PUT", f"Products/{product_id}", json_body=payload
            )
        else:
            response = await self._send(config, "POST", "Products", json_body=payload)
        self._require_ok(response, "Product save")
        return self._extract_id(
            response, ("ProductId", "ProductID", "Id"), fallback=product_id
        )

    async def find_contact_by_tax_id(
        self, config: PosConnectionConfig, tax_id: str
    ) -> Optional[str]:
        """Return the Caspit contact id for a tax id; 400/404 mean not found."""
        response = await self._send(config, "GET", "Contacts", osekMorshe=tax_id, d=1)
        if response.status_code in (400, 404):
            logger.info("No Caspit contact for the given tax id")
            return None
        self._require_ok(response, "Contact lookup")

        body = response.json()
        candidates = extract_records(body) or ([body] if isinstance(body, dict) else [])
        for record in candidates:
            if not isinstance(record, dict):
                continue
            record_tax_id = to_text(record.get("OsekMorshe"))
            if record_tax_id and record_tax_id != tax_id:
                continue
            contact_id = to_text(first_present(record, ("Id", "ContactId")))
            if contact_id:
                return contact_id
        return None

    async def _push_supplier(self, config: PosConnectionConfig, supplier: Supplier) -> str:
        if not supplier.external_id_for(self.system_id) and supplier.tax_id:
            existing_id = await self.find_contact_by_tax_id(config, supplier.tax_id)
            if existing_id:
                supplier = supplier.model_copy(
                    update={
                        "external_ids": {**supplier.external_ids, self.system_id: existing_id}
                    }
                )

        contact_id = supplier.external_id_for(self.system_id)
        payload = mapping.supplier_to_vendor(supplier, is_update=bool(contact_id))
        if contact_id:
            response = await self._send(
                config, "PUT", f"Contacts/{contact_id}", json_body=payload
            )
        else:
            response = await self._send(config, "POST", "Contacts", json_body=payload)
        self._require_ok(response, "Supplier save")
        return self._extract_id(response, ("Id", "ContactId"), fallback=contact_id)

    async def _push_document(
        self,
        config: PosConnectionConfig,
        document: PosDocument,
        supplier: Optional[Supplier],
    ) -> str:
        document_id = document.id or uuid.uuid4().hex
        payload = mapping.document_to_vendor(document, supplier, document_id=document_id)
        resource = "Expenses" if document.document_type == "expense" else "Documents"
        response = await self._send(config, "POST", resource, json_body=payload)
        self._require_ok(response, "Document creation")
        return self._extract_id(
            response, ("DocumentId", "Id", "Number"), fallback=document_id
        )
