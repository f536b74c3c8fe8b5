"""In-memory repository for local runs and tests."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Optional

from invotrack.models import InvoiceHistoryItem, PosConnectionConfig, Product
from invotrack.repositories.base import InvoTrackRepository


class InMemoryInvoTrackRepository(InvoTrackRepository):
    """Thread-safe in-memory storage."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        """Reset all in-memory state (used by tests)."""
        with self._lock:
            self._products: dict[tuple[str, str], Product] = {}
            self._invoices: dict[tuple[str, str], InvoiceHistoryItem] = {}
            self._pos_settings: dict[str, PosConnectionConfig] = {}
            self._invoice_seq = 1

    def get_product(self, user_id: str, product_id: str) -> Optional[Product]:
        with self._lock:
            product = self._products.get((user_id, product_id))
            return product.model_copy(deep=True) if product else None

    def list_products(self, user_id: str) -> list[Product]:
        with self._lock:
            return [
                p.model_copy(deep=True)
                for (owner, _), p in self._products.items()
                if owner == user_id
            ]

    def merge_product(self, user_id: str, product: Product) -> Product:
        if not product.id:
            raise ValueError("Product id is required for merge")

        with self._lock:
            existing = self._products.get((user_id, product.id))
            if existing is None:
                merged = product.model_copy(deep=True)
            else:
                merged = existing.model_copy(
                    update={
                        "catalog_number": product.catalog_number,
                        "description": product.description,
                        "name": product.name or existing.name,
                        "barcode": product.barcode or existing.barcode,
                        "unit_price": product.unit_price,
                        "sale_price": product.sale_price
                        if product.sale_price is not None
                        else existing.sale_price,
                        "external_ids": {**existing.external_ids, **product.external_ids},
                        "is_active": True,
                    },
                    deep=True,
                )
                # model_copy skips validators; assignment recomputes line_total.
                merged.quantity = existing.quantity + product.quantity
            self._products[(user_id, product.id)] = merged
            return merged.model_copy(deep=True)

    def save_product(self, user_id: str, product: Product) -> Product:
        if not product.id:
            raise ValueError("Product id is required")
        with self._lock:
            stored = Product.model_validate(product.model_dump())
            self._products[(user_id, product.id)] = stored
            return stored.model_copy(deep=True)

    def delete_product(self, user_id: str, product_id: str) -> Optional[Product]:
        with self._lock:
            return self._products.pop((user_id, product_id), None)

    def save_invoice(self, invoice: InvoiceHistoryItem) -> InvoiceHistoryItem:
        with self._lock:
            invoice_id = invoice.id
            if not invoice_id:
                invoice_id = f"doc_{self._invoice_seq}"
                self._invoice_seq += 1
            stored = invoice.model_copy(
                update={
                    "id": invoice_id,
                    "uploaded_at": invoice.uploaded_at
                    or datetime.now(timezone.utc).isoformat(),
                },
                deep=True,
            )
            self._invoices[(invoice.user_id, invoice_id)] = stored
            return stored.model_copy(deep=True)

    def get_invoice(self, user_id: str, invoice_id: str) -> Optional[InvoiceHistoryItem]:
        with self._lock:
            invoice = self._invoices.get((user_id, invoice_id))
            return invoice.model_copy(deep=True) if invoice else None

    def update_invoice(
        self, user_id: str, invoice_id: str, changes: dict[str, Any]
    ) -> InvoiceHistoryItem:
        with self._lock:
            key = (user_id, invoice_id)
            if key not in self._invoices:
                raise KeyError(f"Unknown invoice_id: {invoice_id}")
            updated = self._invoices[key].model_copy(update=changes, deep=True)
            self._invoices[key] = updated
            return updated.model_copy(deep=True)

    def get_pos_settings(self, user_id: str) -> Optional[PosConnectionConfig]:
        with self._lock:
            config = self._pos_settings.get(user_id)
            return config.model_copy(deep=True) if config else None

    def save_pos_settings(self, user_id: str, config: PosConnectionConfig) -> None:
        with self._lock:
            self._pos_settings[user_id] = config.model_copy(deep=True)
