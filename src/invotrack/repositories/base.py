"""Repository interfaces for InvoTrack persistence."""

from typing import Any, Optional, Protocol

from invotrack.models import InvoiceHistoryItem, PosConnectionConfig, Product


class InvoTrackRepository(Protocol):
    """Persistence operations required by finalization and inventory flows.

    All records are scoped by user id.
    """

    def get_product(self, user_id: str, product_id: str) -> Optional[Product]:
        ...

    def list_products(self, user_id: str) -> list[Product]:
        ...

    def merge_product(self, user_id: str, product: Product) -> Product:
        """Upsert by product id, adding the incoming quantity to stored stock."""
        ...

    def save_product(self, user_id: str, product: Product) -> Product:
        ...

    def delete_product(self, user_id: str, product_id: str) -> Optional[Product]:
        ...

    def save_invoice(self, invoice: InvoiceHistoryItem) -> InvoiceHistoryItem:
        ...

    def get_invoice(self, user_id: str, invoice_id: str) -> Optional[InvoiceHistoryItem]:
        ...

    def update_invoice(
        self, user_id: str, invoice_id: str, changes: dict[str, Any]
    ) -> InvoiceHistoryItem:
        ...

    def get_pos_settings(self, user_id: str) -> Optional[PosConnectionConfig]:
        ...

    def save_pos_settings(self, user_id: str, config: PosConnectionConfig) -> None:
        ...
