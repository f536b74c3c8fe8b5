"""Caspit <-> internal record mapping."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from invotrack.exceptions import ValidationError
from invotrack.models import DocumentLine, PosDocument, Product, Supplier, SupplierAddress
from invotrack.pos.extractors import (
    compact,
    first_present,
    round_money,
    to_float,
    to_text,
    unit_price_from_total,
)
from invotrack.pos.payment_terms import CASPIT_TERM_CODES, parse_payment_terms

logger = logging.getLogger(__name__)

SYSTEM_ID = "caspit"

CONTACT_TYPE_SUPPLIER = 2
DOCUMENT_SOURCE_API = 3
PURCHASES_TRX_CODE = 1

# TrxTypeId per document type: purchase invoice vs goods-received voucher.
TRX_TYPE_BY_DOCUMENT: dict[str, int] = {
    "invoice": 300,
    "deliveryNote": 305,
    "order": 500,
    "expense": 35,
}
_DOCUMENT_BY_TRX_TYPE = {code: name for name, code in TRX_TYPE_BY_DOCUMENT.items()}


def product_to_internal(record: Mapping[str, Any]) -> Optional[Product]:
    """Map a Caspit product; None when catalog number and name are both missing."""
    catalog_number = to_text(first_present(record, ("CatalogNumber", "catalogNumber")))
    description = to_text(
        first_present(record, ("Name", "Description", "ProductName", "name"))
    )
    if not catalog_number and not description:
        logger.warning("Skipping Caspit product without catalog number or name")
        return None

    external_id = to_text(first_present(record, ("ProductId", "ProductID", "Id")))
    quantity = to_float(first_present(record, ("QtyInStock", "Quantity"))) or 0.0
    unit_price = to_float(first_present(record, ("PurchasePrice", "CostPrice"))) or 0.0
    status = record.get("Status")

    return Product(
        id=external_id,
        external_product_id=external_id,
        external_ids={SYSTEM_ID: external_id} if external_id else {},
        catalog_number=catalog_number or "N/A",
        description=description or f"Item {catalog_number}",
        name=to_text(record.get("Name")),
        barcode=to_text(record.get("Barcode")),
        quantity=quantity,
        unit_price=unit_price,
        sale_price=to_float(first_present(record, ("SalePrice1", "SalePrice"))),
        is_active=bool(status) if status is not None else True,
    )


def product_to_vendor(
    product: Product, is_update: bool, *, active: Optional[bool] = None
) -> dict[str, Any]:
    """Caspit assigns product ids; ProductId is only sent on update."""
    product_id = None
    if is_update:
        product_id = product.external_id_for(SYSTEM_ID)
        if not product_id:
            raise ValidationError("Product has no Caspit id to update")

    catalog_number = product.catalog_number if product.catalog_number != "N/A" else None
    return compact(
        {
            "ProductId": product_id,
            "Name": product.name or product.description,
            "Description": product.description,
            "CatalogNumber": catalog_number,
            "Barcode": product.barcode,
            "PurchasePrice": round_money(product.unit_price),
            "SalePrice1": product.sale_price,
            "QtyInStock": product.quantity,
            "Status": product.is_active if active is None else active,
        }
    )


def supplier_to_internal(record: Mapping[str, Any]) -> Optional[Supplier]:
    """Map a Caspit contact; customers and nameless contacts are skipped."""
    contact_type = record.get("ContactType")
    if contact_type is not None and to_float(contact_type) != CONTACT_TYPE_SUPPLIER:
        return None
    name = to_text(first_present(record, ("Name", "BusinessName")))
    if not name:
        return None

    external_id = to_text(first_present(record, ("Id", "ContactId")))
    return Supplier(
        id=external_id,
        name=name,
        external_account_id=external_id,
        external_ids={SYSTEM_ID: external_id} if external_id else {},
        tax_id=to_text(record.get("OsekMorshe")),
        contact_person_name=to_text(record.get("ContactName")),
        phone=to_text(record.get("Phone")),
        mobile=to_text(record.get("MobilePhone")),
        email=to_text(record.get("Email")),
        address=SupplierAddress(
            street=to_text(record.get("Address1")),
            city=to_text(record.get("City")),
            postal_code=to_text(record.get("PostalCode")),
            country=to_text(record.get("Country")),
        ),
    )


def supplier_to_vendor(supplier: Supplier, is_update: bool) -> dict[str, Any]:
    contact_id = None
    if is_update:
        contact_id = supplier.external_id_for(SYSTEM_ID)
        if not contact_id:
            raise ValidationError("Supplier has no Caspit id to update")

    address = supplier.address or SupplierAddress()
    term = parse_payment_terms(supplier.payment_terms)
    return compact(
        {
            "Id": contact_id,
            "Name": supplier.name,
            "OsekMorshe": supplier.tax_id,
            "ContactType": CONTACT_TYPE_SUPPLIER,
            "ContactName": supplier.contact_person_name,
            "Email": supplier.email,
            "MobilePhone": supplier.mobile or supplier.phone,
            "Phone": supplier.phone,
            "Address1": address.street,
            "City": address.city,
            "PostalCode": address.postal_code,
            "Country": address.country,
            "PaymentTerms": CASPIT_TERM_CODES[term.kind] if term else None,
            "PaymentTermsDays": term.days if term and term.days else None,
        }
    )


def _line_to_internal(record: Mapping[str, Any]) -> DocumentLine:
    quantity = to_float(first_present(record, ("Qty", "Quantity"))) or 0.0
    unit_price = to_float(record.get("UnitPrice"))
    if unit_price is None:
        unit_price = unit_price_from_total(record.get("ExtendedPrice"), quantity)
    return DocumentLine(
        external_product_id=to_text(record.get("ProductId")),
        catalog_number=to_text(record.get("ProductCatalogNumber")),
        description=to_text(first_present(record, ("ProductName", "Details")))
        or "No Description",
        quantity=quantity,
        unit_price=unit_price,
    )


def document_to_internal(record: Mapping[str, Any]) -> Optional[PosDocument]:
    document_id = to_text(first_present(record, ("DocumentId", "Id")))
    number = to_text(record.get("Number"))
    if not document_id and not number:
        return None

    trx_type = to_float(record.get("TrxTypeId"))
    document_type = _DOCUMENT_BY_TRX_TYPE.get(int(trx_type)) if trx_type else None
    lines = record.get("DocumentLines") or []
    return PosDocument(
        id=document_id,
        document_type=document_type or "invoice",
        document_number=number,
        date=to_text(record.get("Date")),
        due_date=to_text(record.get("DueDate")),
        total_amount=to_float(record.get("Total")),
        comments=to_text(record.get("Comments")),
        lines=[_line_to_internal(line) for line in lines if isinstance(line, dict)],
        external_ids={SYSTEM_ID: document_id} if document_id else {},
    )


def document_to_vendor(
    document: PosDocument, supplier: Optional[Supplier], *, document_id: str
) -> dict[str, Any]:
    """Build a Caspit document; the classification follows the document type."""
    lines = [
        compact(
            {
                "ProductId": line.external_product_id,
                "ProductCatalogNumber": line.catalog_number,
                "ProductName": line.description,
                "UnitPrice": round_money(line.unit_price),
                "Qty": line.quantity,
                "ExtendedPrice": line.line_total,
                "ChargeVAT": True,
            }
        )
        for line in document.lines
    ]
    total = document.total_amount
    if total is None:
        total = round_money(sum(line.line_total for line in document.lines))

    return compact(
        {
            "DocumentId": document_id,
            "TrxTypeId": TRX_TYPE_BY_DOCUMENT[document.document_type],
            "TrxCodeNumber": PURCHASES_TRX_CODE,
            "DocumentSource": DOCUMENT_SOURCE_API,
            "Number": document.document_number,
            "Date": document.date,
            "DueDate": document.due_date,
            "Comments": document.comments,
            "CustomerId": supplier.external_id_for(SYSTEM_ID) if supplier else None,
            "CustomerBusinessName": supplier.name if supplier else None,
            "CustomerOsekMorshe": supplier.tax_id if supplier else None,
            "Total": total,
            "DocumentLines": lines,
        }
    )
