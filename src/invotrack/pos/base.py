"""Common adapter contract and failure handling for POS back-ends."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, ClassVar, Optional, Sequence

import httpx
from pydantic import BaseModel

from invotrack.config import InvoTrackConfig
from invotrack.exceptions import MalformedResponseError, NetworkError, PosIntegrationError
from invotrack.models import (
    ConfigValidationError,
    ConfigValidationResult,
    OperationResult,
    PosConfigField,
    PosConnectionConfig,
    PosDocument,
    Product,
    Supplier,
    SyncResult,
)
from invotrack.pos.extractors import first_present, to_text
from invotrack.pos.http_client import VendorHttpClient, VendorResponse
from invotrack.pos.pagination import FetchResult
from invotrack.pos.token_cache import TokenCache, token_from_plain_text

logger = logging.getLogger(__name__)

AdapterFailure = (PosIntegrationError, httpx.HTTPError)


class PosAdapter(ABC):
    """Facade over one vendor API.

    Public methods never raise vendor or network errors: they return a
    SyncResult / OperationResult with success=False and a short message.
    Raw vendor status and body go to the log only.
    """

    system_id: ClassVar[str]
    system_name: ClassVar[str]

    def __init__(
        self,
        http: VendorHttpClient,
        token_cache: TokenCache,
        settings: InvoTrackConfig,
    ) -> None:
        self.http = http
        self.token_cache = token_cache
        self.settings = settings

    # -- metadata -------------------------------------------------------

    @abstractmethod
    def config_schema(self) -> list[PosConfigField]:
        """Connection fields this adapter needs."""

    def available_document_types(self) -> list[str]:
        return ["invoice", "deliveryNote", "order"]

    def validate_config(self, config: PosConnectionConfig) -> ConfigValidationResult:
        errors = []
        extra = config.model_extra or {}
        for schema_field in self.config_schema():
            if not schema_field.required:
                continue
            value = getattr(config, schema_field.key, None) or extra.get(schema_field.key)
            if not value:
                errors.append(
                    ConfigValidationError(
                        field=schema_field.key, message=f"{schema_field.label} is required"
                    )
                )
        return ConfigValidationResult(valid=not errors, errors=errors or None)

    # -- vendor specifics -----------------------------------------------

    @abstractmethod
    async def get_token(self, config: PosConnectionConfig) -> str:
        """Return a usable credential, raising AuthError when none can be had."""

    async def _check_connection(self, config: PosConnectionConfig) -> None:
        await self.get_token(config)

    @abstractmethod
    async def _fetch_products(self, config: PosConnectionConfig) -> FetchResult[Product]:
        ...

    @abstractmethod
    async def _fetch_suppliers(self, config: PosConnectionConfig) -> FetchResult[Supplier]:
        ...

    @abstractmethod
    async def _fetch_sales(self, config: PosConnectionConfig) -> FetchResult[PosDocument]:
        ...

    @abstractmethod
    async def _fetch_documents(
        self, config: PosConnectionConfig
    ) -> FetchResult[PosDocument]:
        ...

    @abstractmethod
    async def _push_product(
        self,
        config: PosConnectionConfig,
        product: Product,
        *,
        is_update: bool,
        active: Optional[bool] = None,
    ) -> str:
        """Create or update the product and return its vendor id."""

    @abstractmethod
    async def _push_supplier(self, config: PosConnectionConfig, supplier: Supplier) -> str:
        ...

    @abstractmethod
    async def _push_document(
        self,
        config: PosConnectionConfig,
        document: PosDocument,
        supplier: Optional[Supplier],
    ) -> str:
        ...

    # -- public capability set ------------------------------------------

    async def test_connection(self, config: PosConnectionConfig) -> OperationResult:
        try:
            await self._check_connection(config)
        except AdapterFailure as exc:
            return self._operation_failure("Connection test", exc)
        return OperationResult(
            success=True, message=f"Connected to {self.system_name} successfully"
        )

    async def sync_products(self, config: PosConnectionConfig) -> SyncResult:
        return await self._run_sync("products", config, self._fetch_products)

    async def sync_suppliers(self, config: PosConnectionConfig) -> SyncResult:
        return await self._run_sync("suppliers", config, self._fetch_suppliers)

    async def sync_sales(self, config: PosConnectionConfig) -> SyncResult:
        return await self._run_sync("sales", config, self._fetch_sales)

    async def sync_documents(self, config: PosConnectionConfig) -> SyncResult:
        return await self._run_sync("documents", config, self._fetch_documents)

    async def create_or_update_product(
        self, config: PosConnectionConfig, product: Product
    ) -> OperationResult:
        is_update = bool(product.external_id_for(self.system_id))
        try:
            external_id = await self._push_product(config, product, is_update=is_update)
        except AdapterFailure as exc:
            return self._operation_failure("Product save", exc)
        verb = "Updated" if is_update else "Created"
        return OperationResult(
            success=True,
            message=f"{verb} product in {self.system_name}",
            data={"external_id": external_id},
        )

    async def update_product(
        self, config: PosConnectionConfig, product: Product
    ) -> OperationResult:
        try:
            external_id = await self._push_product(config, product, is_update=True)
        except AdapterFailure as exc:
            return self._operation_failure("Product update", exc)
        return OperationResult(
            success=True,
            message=f"Updated product in {self.system_name}",
            data={"external_id": external_id},
        )

    async def deactivate_product(
        self, config: PosConnectionConfig, product: Product
    ) -> OperationResult:
        try:
            external_id = await self._push_product(
                config, product, is_update=True, active=False
            )
        except AdapterFailure as exc:
            return self._operation_failure("Product deactivation", exc)
        return OperationResult(
            success=True,
            message=f"Deactivated product in {self.system_name}",
            data={"external_id": external_id},
        )

    async def create_or_update_supplier(
        self, config: PosConnectionConfig, supplier: Supplier
    ) -> OperationResult:
        try:
            external_id = await self._push_supplier(config, supplier)
        except AdapterFailure as exc:
            return self._operation_failure("Supplier save", exc)
        return OperationResult(
            success=True,
            message=f"Saved supplier in {self.system_name}",
            data={"external_id": external_id},
        )

    async def create_document(
        self,
        config: PosConnectionConfig,
        document: PosDocument,
        supplier: Optional[Supplier] = None,
    ) -> OperationResult:
        if document.document_type not in self.available_document_types():
            return OperationResult(
                success=False,
                message=(
                    f"{self.system_name} does not support "
                    f"'{document.document_type}' documents"
                ),
            )
        try:
            external_id = await self._push_document(config, document, supplier)
        except AdapterFailure as exc:
            return self._operation_failure("Document creation", exc)
        return OperationResult(
            success=True,
            message=f"Created {document.document_type} in {self.system_name}",
            data={"external_id": external_id},
        )

    # -- helpers --------------------------------------------------------

    async def _run_sync(
        self,
        kind: str,
        config: PosConnectionConfig,
        fetch: Callable[[PosConnectionConfig], Awaitable[FetchResult[Any]]],
    ) -> SyncResult:
        try:
            result = await fetch(config)
        except AdapterFailure as exc:
            message = self._failure_message(f"{kind.capitalize()} sync", exc)
            return SyncResult(success=False, message=message, errors=[message])

        message = f"Fetched {len(result.records)} {kind} from {self.system_name}"
        if result.capped:
            message += f" (stopped at {result.pages_fetched} pages, results may be partial)"
        records: Sequence[BaseModel] = result.records
        return SyncResult(
            success=True,
            message=message,
            items_synced=len(records),
            dropped=result.dropped,
            products=list(records) if kind == "products" else None,
            data=None
            if kind == "products"
            else [record.model_dump(mode="json") for record in records],
        )

    def _failure_message(self, action: str, exc: BaseException) -> str:
        if isinstance(exc, PosIntegrationError):
            logger.error(
                "%s %s failed: %s (status=%s body=%s)",
                self.system_id,
                action,
                exc.message,
                exc.status_code,
                exc.body,
            )
            return f"{action} failed: {exc.message}"
        logger.error("%s %s failed: %s", self.system_id, action, type(exc).__name__)
        return f"{action} failed: network error"

    def _operation_failure(self, action: str, exc: BaseException) -> OperationResult:
        message = self._failure_message(action, exc)
        return OperationResult(success=False, message=message, errors=[message])

    @staticmethod
    def _require_ok(response: VendorResponse, action: str) -> None:
        if not response.ok:
            raise NetworkError(
                f"{action} rejected with status {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

    @staticmethod
    def _extract_id(
        response: VendorResponse,
        fields: Sequence[str],
        *,
        fallback: Optional[str] = None,
    ) -> str:
        """Vendor id from a JSON object, a bare quoted id, or the id that was sent."""
        external_id: Optional[str] = None
        try:
            body = response.json() if response.text.strip() else None
        except MalformedResponseError:
            body = None
            external_id = token_from_plain_text(response.text)

        if isinstance(body, dict):
            external_id = to_text(first_present(body, fields))
        elif isinstance(body, (str, int)) and not isinstance(body, bool):
            external_id = to_text(body)

        external_id = external_id or fallback
        if not external_id:
            raise MalformedResponseError(
                "Vendor response did not include an id",
                status_code=response.status_code,
                body=response.text,
            )
        return external_id
