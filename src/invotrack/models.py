"""Pydantic data models for products, suppliers, documents and sync results."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


DocumentType = Literal["deliveryNote", "invoice", "paymentReceipt"]
PosDocumentType = Literal["invoice", "deliveryNote", "order", "expense"]
PaymentStatus = Literal["unpaid", "pending_payment", "paid"]

_PAYMENT_TRANSITIONS: Dict[str, set[str]] = {
    "unpaid": {"pending_payment", "paid"},
    "pending_payment": {"paid"},
    "paid": set(),
}


def _line_total(quantity: float, unit_price: float) -> float:
    return round(quantity * unit_price, 2)


class Product(BaseModel):
    """Inventory product, either internal or mapped from a POS."""

    model_config = ConfigDict(validate_assignment=True)

    id: Optional[str] = Field(None, description="Internal product id")
    external_product_id: Optional[str] = Field(
        None, description="Vendor id, present once synced"
    )
    external_ids: Dict[str, str] = Field(
        default_factory=dict, description="Vendor ids keyed by POS system id"
    )
    catalog_number: str = Field("N/A", description="Catalog number / SKU")
    description: str = Field("No Description", description="Product description")
    name: Optional[str] = Field(None, description="Short display name")
    barcode: Optional[str] = None
    quantity: float = Field(0.0, description="On-hand units")
    unit_price: float = Field(0.0, description="Cost per unit")
    sale_price: Optional[float] = None
    line_total: float = Field(0.0, description="quantity x unit_price, recomputed")
    min_stock_level: Optional[float] = None
    max_stock_level: Optional[float] = None
    is_active: bool = True

    @model_validator(mode="after")
    def recompute_line_total(self) -> "Product":
        """Never trust an upstream line total."""
        expected = _line_total(self.quantity, self.unit_price)
        if self.line_total != expected:
            self.__dict__["line_total"] = expected
        return self

    def external_id_for(self, system_id: str) -> Optional[str]:
        """Return the vendor id for a POS system, if known."""
        return self.external_ids.get(system_id)


class SupplierAddress(BaseModel):
    """Postal address of a supplier."""

    street: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class Supplier(BaseModel):
    """Supplier (vendor contact) record."""

    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    external_account_id: Optional[str] = None
    external_ids: Dict[str, str] = Field(default_factory=dict)
    tax_id: Optional[str] = Field(None, description="Osek Morshe / company tax id")
    contact_person_name: Optional[str] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None
    address: Optional[SupplierAddress] = None
    payment_terms: Optional[str] = Field(
        None, description="Free text, mapped to a vendor code at sync time"
    )

    def external_id_for(self, system_id: str) -> Optional[str]:
        """Return the vendor account id for a POS system, if known."""
        return self.external_ids.get(system_id)


class DocumentLine(BaseModel):
    """Single line of a purchase document pushed to a POS."""

    model_config = ConfigDict(validate_assignment=True)

    external_product_id: Optional[str] = None
    catalog_number: Optional[str] = None
    description: str
    quantity: float = 0.0
    unit_price: float = 0.0
    line_total: float = 0.0

    @model_validator(mode="after")
    def recompute_line_total(self) -> "DocumentLine":
        expected = _line_total(self.quantity, self.unit_price)
        if self.line_total != expected:
            self.__dict__["line_total"] = expected
        return self


class PosDocument(BaseModel):
    """Purchase document (invoice, delivery note, expense) for a POS."""

    id: Optional[str] = None
    document_type: PosDocumentType = "invoice"
    document_number: Optional[str] = None
    date: Optional[str] = Field(None, description="ISO 8601 document date")
    due_date: Optional[str] = None
    total_amount: Optional[float] = None
    comments: Optional[str] = None
    lines: List[DocumentLine] = Field(default_factory=list)
    external_ids: Dict[str, str] = Field(default_factory=dict)


class SyncResult(BaseModel):
    """Uniform outcome of a bulk fetch from a POS."""

    success: bool
    message: str
    items_synced: Optional[int] = None
    dropped: Optional[int] = None
    products: Optional[List[Product]] = None
    data: Optional[List[Dict[str, Any]]] = None
    errors: Optional[List[str]] = None


class OperationResult(BaseModel):
    """Uniform outcome of a single create/update/delete call."""

    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    errors: Optional[List[str]] = None

    @property
    def external_id(self) -> Optional[str]:
        if not self.data:
            return None
        value = self.data.get("external_id")
        return str(value) if value is not None else None


class PosConnectionConfig(BaseModel):
    """Per-call POS connection settings supplied by the caller."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    system_id: str = Field(..., alias="systemId")
    user: Optional[str] = None
    pwd: Optional[str] = None
    tax_id: Optional[str] = Field(None, alias="osekMorshe")
    api_key: Optional[str] = Field(None, alias="apiKey")
    endpoint_url: Optional[str] = Field(None, alias="endpointUrl")
    auto_deactivate_products: bool = Field(False, alias="autoDeactivateProducts")


class PosConfigField(BaseModel):
    """Describes one connection field an adapter needs."""

    key: str
    label: str
    type: Literal["text", "password"] = "text"
    required: bool = True


class ConfigValidationError(BaseModel):
    field: str
    message: str


class ConfigValidationResult(BaseModel):
    valid: bool
    errors: Optional[List[ConfigValidationError]] = None


class PosSystemInfo(BaseModel):
    system_id: str
    system_name: str


class ScannedLineItem(BaseModel):
    """Line item as produced by the invoice scanner or edited by the user."""

    model_config = ConfigDict(validate_assignment=True)

    catalog_number: str = "N/A"
    description: str = "Unknown Product"
    name: Optional[str] = None
    barcode: Optional[str] = None
    quantity: float = 0.0
    unit_price: float = 0.0
    line_total: float = 0.0
    sale_price: Optional[float] = None

    @property
    def display_name(self) -> Optional[str]:
        name = (self.name or "").strip()
        if name:
            return name
        if self.description and self.description != "Unknown Product":
            return self.description
        return None


class ScanResult(BaseModel):
    """Scanner output: processed line items."""

    products: List[ScannedLineItem] = Field(default_factory=list)


class InvoiceHistoryItem(BaseModel):
    """Persisted record of a scanned and finalized document."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    user_id: str
    original_file_name: str
    document_type: DocumentType
    status: Literal["pending", "completed"] = "completed"
    supplier: str = "N/A"
    invoice_number: Optional[str] = None
    invoice_date: Optional[str] = None
    payment_due_date: Optional[str] = None
    total_amount: float = 0.0
    item_count: int = 0
    products: List[str] = Field(default_factory=list)
    payment_method: Optional[str] = None
    payment_status: PaymentStatus = "unpaid"
    payment_date: Optional[str] = None
    is_archived: bool = False
    pos_purchase_doc_id: Optional[str] = Field(None, alias="caspitPurchaseDocId")
    original_image_uri: Optional[str] = None
    compressed_image_uri: Optional[str] = None
    raw_scan_result_json: Optional[str] = None
    uploaded_at: Optional[str] = None

    def advance_payment_status(
        self, new_status: PaymentStatus, *, payment_date: Optional[str] = None
    ) -> None:
        """Move along unpaid -> pending_payment -> paid."""
        if new_status == self.payment_status:
            return
        if new_status not in _PAYMENT_TRANSITIONS[self.payment_status]:
            raise ValueError(
                f"Illegal payment status transition: "
                f"{self.payment_status} -> {new_status}"
            )
        self.payment_status = new_status
        if new_status == "paid":
            self.payment_date = payment_date


class FinalizeInvoiceRequest(BaseModel):
    """Request payload for the finalization workflow."""

    products: List[ScannedLineItem] = Field(default_factory=list)
    original_file_name: str
    document_type: DocumentType
    temp_invoice_id: Optional[str] = None
    invoice_number: Optional[str] = None
    supplier_name: Optional[str] = None
    supplier_tax_id: Optional[str] = None
    total_amount: Optional[float] = None
    payment_due_date: Optional[str] = None
    invoice_date: Optional[str] = None
    payment_method: Optional[str] = None
    payment_terms: Optional[str] = None
    original_image_data_uri: Optional[str] = None
    compressed_image_data_uri: Optional[str] = None
    raw_scan_result_json: Optional[str] = None


class FinalizeInvoiceResponse(BaseModel):
    """Result of the finalization workflow."""

    invoice: InvoiceHistoryItem
    products: List[Product]
    pos_messages: List[str] = Field(default_factory=list)


class ScanInvoiceRequest(BaseModel):
    """Request payload for the scan endpoint."""

    invoice_data_uri: str = Field(..., min_length=1)


class ProductPushRequest(BaseModel):
    """Request payload for pushing a single product to a POS."""

    config: PosConnectionConfig
    product: Product


class SyncRequest(BaseModel):
    config: PosConnectionConfig
