"""Inventory operations that touch both local storage and the connected POS."""

import logging
from typing import Optional

from invotrack.exceptions import ContractError
from invotrack.models import OperationResult, Product
from invotrack.pos.manager import IntegrationManager
from invotrack.repositories.base import InvoTrackRepository

logger = logging.getLogger(__name__)


class InventoryService:
    """Delete and sync-import products for one user."""

    def __init__(
        self,
        repository: InvoTrackRepository,
        manager: Optional[IntegrationManager] = None,
    ) -> None:
        self.repository = repository
        self.manager = manager

    async def delete_product(self, user_id: str, product_id: str) -> OperationResult:
        """Delete locally, deactivating in the POS first when the user asked for it.

        POS failure is reported in the result but never blocks the local delete.
        """
        product = self.repository.get_product(user_id, product_id)
        if product is None:
            raise ContractError(
                "PRODUCT_NOT_FOUND",
                "Product not found",
                status_code=404,
                details={"product_id": product_id},
            )

        errors: list[str] = []
        config = self.repository.get_pos_settings(user_id)
        if (
            config is not None
            and config.auto_deactivate_products
            and self.manager is not None
            and product.external_id_for(config.system_id)
        ):
            result = await self.manager.deactivate_product(config.system_id, config, product)
            if not result.success:
                logger.warning(
                    "Deactivating %s in %s failed: %s",
                    product_id,
                    config.system_id,
                    result.message,
                )
                errors.append(result.message)

        self.repository.delete_product(user_id, product_id)
        return OperationResult(
            success=True,
            message="Product deleted",
            data={"product_id": product_id},
            errors=errors or None,
        )

    async def import_from_pos(self, user_id: str) -> list[Product]:
        """Pull the catalog from the user's POS and store it, replacing stock levels."""
        config = self.repository.get_pos_settings(user_id)
        if config is None or self.manager is None:
            raise ContractError(
                "POS_NOT_CONFIGURED",
                "No POS connection is configured for this user",
                status_code=409,
            )

        result = await self.manager.sync_products(config.system_id, config)
        if not result.success:
            raise ContractError(
                "POS_SYNC_FAILED",
                result.message,
                status_code=502,
                details={"system_id": config.system_id},
            )

        saved: list[Product] = []
        for product in result.products or []:
            if not product.id:
                product.id = product.external_id_for(config.system_id)
            if product.id:
                saved.append(self.repository.save_product(user_id, product))
        logger.info("Imported %s products from %s", len(saved), config.system_id)
        return saved
