"""Registry of POS adapters and the dispatch surface used by the rest of the app."""

from __future__ import annotations

import logging
from typing import Awaitable, Literal, Optional, get_args

from invotrack.config import InvoTrackConfig
from invotrack.models import (
    ConfigValidationError,
    ConfigValidationResult,
    OperationResult,
    PosConfigField,
    PosConnectionConfig,
    PosDocument,
    PosSystemInfo,
    Product,
    Supplier,
    SyncResult,
)
from invotrack.pos.base import PosAdapter
from invotrack.pos.caspit import CaspitAdapter
from invotrack.pos.hashavshevet import HashavshevetAdapter
from invotrack.pos.http_client import VendorHttpClient
from invotrack.pos.token_cache import TokenCache

logger = logging.getLogger(__name__)

SyncType = Literal["products", "suppliers", "sales", "documents", "all"]
SYNC_TYPES: tuple[str, ...] = tuple(t for t in get_args(SyncType) if t != "all")

ADAPTER_CLASSES: tuple[type[PosAdapter], ...] = (CaspitAdapter, HashavshevetAdapter)


def _unknown_system(system_id: str) -> str:
    return f"Unknown POS system: {system_id}"


class IntegrationManager:
    """Dispatches by system id; never lets an adapter exception escape."""

    def __init__(
        self,
        http: VendorHttpClient,
        token_cache: TokenCache,
        settings: InvoTrackConfig,
        adapter_classes: tuple[type[PosAdapter], ...] = ADAPTER_CLASSES,
    ) -> None:
        self._adapters: dict[str, PosAdapter] = {
            cls.system_id: cls(http, token_cache, settings) for cls in adapter_classes
        }

    def get_adapter(self, system_id: str) -> Optional[PosAdapter]:
        return self._adapters.get(system_id)

    def available_systems(self) -> list[PosSystemInfo]:
        return [
            PosSystemInfo(system_id=adapter.system_id, system_name=adapter.system_name)
            for adapter in self._adapters.values()
        ]

    def config_schema(self, system_id: str) -> Optional[list[PosConfigField]]:
        adapter = self.get_adapter(system_id)
        return adapter.config_schema() if adapter else None

    def available_document_types(self, system_id: str) -> list[str]:
        adapter = self.get_adapter(system_id)
        return adapter.available_document_types() if adapter else []

    def validate_config(self, config: PosConnectionConfig) -> ConfigValidationResult:
        adapter = self.get_adapter(config.system_id)
        if adapter is None:
            return ConfigValidationResult(
                valid=False,
                errors=[
                    ConfigValidationError(
                        field="system_id", message=_unknown_system(config.system_id)
                    )
                ],
            )
        return adapter.validate_config(config)

    async def _guarded_operation(
        self, action: str, system_id: str, call: Awaitable[OperationResult]
    ) -> OperationResult:
        try:
            return await call
        except Exception:
            logger.exception("Unexpected error during %s on %s", action, system_id)
            return OperationResult(
                success=False,
                message=f"{action} failed unexpectedly",
                errors=[f"{action} failed unexpectedly"],
            )

    async def _guarded_sync(
        self, kind: str, system_id: str, call: Awaitable[SyncResult]
    ) -> SyncResult:
        try:
            return await call
        except Exception:
            logger.exception("Unexpected error during %s sync on %s", kind, system_id)
            message = f"{kind.capitalize()} sync failed unexpectedly"
            return SyncResult(success=False, message=message, errors=[message])

    async def test_connection(
        self, system_id: str, config: PosConnectionConfig
    ) -> OperationResult:
        adapter = self.get_adapter(system_id)
        if adapter is None:
            return OperationResult(success=False, message=_unknown_system(system_id))
        logger.info("Testing connection to %s", system_id)
        return await self._guarded_operation(
            "Connection test", system_id, adapter.test_connection(config)
        )

    async def sync(
        self, system_id: str, config: PosConnectionConfig, kind: str
    ) -> SyncResult:
        """Run one sync kind (products, suppliers, sales or documents)."""
        if kind not in SYNC_TYPES:
            return SyncResult(success=False, message=f"Unknown sync type: {kind}")
        adapter = self.get_adapter(system_id)
        if adapter is None:
            return SyncResult(success=False, message=_unknown_system(system_id))

        logger.info("Syncing %s from %s", kind, system_id)
        result = await self._guarded_sync(
            kind, system_id, getattr(adapter, f"sync_{kind}")(config)
        )
        if result.success and result.products:
            for product in result.products:
                vendor_id = product.external_product_id or product.id
                if vendor_id:
                    product.external_ids = {**product.external_ids, system_id: vendor_id}
        return result

    async def sync_products(self, system_id: str, config: PosConnectionConfig) -> SyncResult:
        return await self.sync(system_id, config, "products")

    async def sync_suppliers(self, system_id: str, config: PosConnectionConfig) -> SyncResult:
        return await self.sync(system_id, config, "suppliers")

    async def sync_sales(self, system_id: str, config: PosConnectionConfig) -> SyncResult:
        return await self.sync(system_id, config, "sales")

    async def sync_documents(self, system_id: str, config: PosConnectionConfig) -> SyncResult:
        return await self.sync(system_id, config, "documents")

    async def sync_with_system(
        self, system_id: str, config: PosConnectionConfig, sync_type: str = "all"
    ) -> list[SyncResult]:
        """Run the requested sync kinds in order; one failing kind does not stop the rest."""
        kinds = SYNC_TYPES if sync_type == "all" else (sync_type,)
        return [await self.sync(system_id, config, kind) for kind in kinds]

    async def create_or_update_product(
        self, system_id: str, config: PosConnectionConfig, product: Product
    ) -> OperationResult:
        adapter = self.get_adapter(system_id)
        if adapter is None:
            return OperationResult(success=False, message=_unknown_system(system_id))
        result = await self._guarded_operation(
            "Product save", system_id, adapter.create_or_update_product(config, product)
        )
        if result.success and result.external_id:
            product.external_ids = {**product.external_ids, system_id: result.external_id}
        return result

    async def update_product(
        self, system_id: str, config: PosConnectionConfig, product: Product
    ) -> OperationResult:
        adapter = self.get_adapter(system_id)
        if adapter is None:
            return OperationResult(success=False, message=_unknown_system(system_id))
        if not product.external_id_for(system_id):
            return OperationResult(
                success=False,
                message=f"Product does not have an external ID for {system_id}",
            )
        return await self._guarded_operation(
            "Product update", system_id, adapter.update_product(config, product)
        )

    async def deactivate_product(
        self, system_id: str, config: PosConnectionConfig, product: Product
    ) -> OperationResult:
        adapter = self.get_adapter(system_id)
        if adapter is None:
            return OperationResult(success=False, message=_unknown_system(system_id))
        if not product.external_id_for(system_id):
            return OperationResult(
                success=False,
                message=f"Product does not have an external ID for {system_id}",
            )
        return await self._guarded_operation(
            "Product deactivation", system_id, adapter.deactivate_product(config, product)
        )

    async def create_or_update_supplier(
        self, system_id: str, config: PosConnectionConfig, supplier: Supplier
    ) -> OperationResult:
        adapter = self.get_adapter(system_id)
        if adapter is None:
            return OperationResult(success=False, message=_unknown_system(system_id))
        result = await self._guarded_operation(
            "Supplier save", system_id, adapter.create_or_update_supplier(config, supplier)
        )
        if result.success and result.external_id:
            supplier.external_ids = {**supplier.external_ids, system_id: result.external_id}
        return result

    async def create_document(
        self,
        system_id: str,
        config: PosConnectionConfig,
        document: PosDocument,
        supplier: Optional[Supplier] = None,
    ) -> OperationResult:
        adapter = self.get_adapter(system_id)
        if adapter is None:
            return OperationResult(success=False, message=_unknown_system(system_id))
        result = await self._guarded_operation(
            "Document creation",
            system_id,
            adapter.create_document(config, document, supplier),
        )
        if result.success and result.external_id:
            document.external_ids = {**document.external_ids, system_id: result.external_id}
        return result
