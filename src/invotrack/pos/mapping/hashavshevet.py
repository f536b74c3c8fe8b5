"""Hashavshevet <-> internal record mapping."""

from __future__ import annotations

import logging
import re
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
from invotrack.pos.payment_terms import HASHAVSHEVET_TERM_CODES, parse_payment_terms

logger = logging.getLogger(__name__)

SYSTEM_ID = "hashavshevet"

DOC_TYPE_BY_DOCUMENT: dict[str, str] = {
    "invoice": "PI",
    "deliveryNote": "GRN",
    "order": "PO",
    "expense": "EXP",
}
_DOCUMENT_BY_DOC_TYPE = {code: name for name, code in DOC_TYPE_BY_DOCUMENT.items()}


def product_to_internal(record: Mapping[str, Any]) -> Optional[Product]:
    """Map an item; None when both item code and name are missing."""
    catalog_number = to_text(first_present(record, ("ItemCode", "CatalogNum", "itemCode")))
    description = to_text(
        first_present(record, ("ItemName", "Description", "itemName", "description"))
    )
    if not catalog_number and not description:
        logger.warning("Skipping Hashavshevet item without code or name")
        return None

    item_key = to_text(first_present(record, ("InternalID", "ItemKey", "itemKey")))
    quantity = to_float(first_present(record, ("StockQuantity", "QuantityOnHand"))) or 0.0
    unit_price = to_float(first_present(record, ("PurchasePrice", "CostPrice"))) or 0.0
    active = record.get("IsActive")

    return Product(
        id=item_key,
        external_product_id=item_key,
        external_ids={SYSTEM_ID: item_key} if item_key else {},
        catalog_number=catalog_number or "N/A",
        description=description or f"Item {catalog_number}",
        barcode=to_text(record.get("Barcode")),
        quantity=quantity,
        unit_price=unit_price,
        sale_price=to_float(first_present(record, ("SalePrice", "ListPrice"))),
        is_active=bool(active) if active is not None else True,
    )


def product_to_vendor(
    product: Product, is_update: bool, *, active: Optional[bool] = None
) -> dict[str, Any]:
    """Item keys are client-assigned: the internal id on create, the stored key on update."""
    if is_update:
        item_key = product.external_id_for(SYSTEM_ID)
        if not item_key:
            raise ValidationError("Product has no Hashavshevet item key to update")
    else:
        item_key = product.id
        if not item_key:
            raise ValidationError("Product needs an internal id to be created")

    catalog_number = product.catalog_number if product.catalog_number != "N/A" else None
    return compact(
        {
            "ItemKey": item_key,
            "ItemCode": catalog_number,
            "ItemName": product.name or product.description,
            "Description": product.description,
            "Barcode": product.barcode,
            "PurchasePrice": round_money(product.unit_price),
            "SalePrice": product.sale_price,
            "StockQuantity": product.quantity,
            "IsActive": product.is_active if active is None else active,
        }
    )


def supplier_to_internal(record: Mapping[str, Any]) -> Optional[Supplier]:
    name = to_text(first_present(record, ("AccountName", "Name", "name")))
    if not name:
        return None
    account_key = to_text(first_present(record, ("AccountKey", "InternalID", "accountKey")))
    return Supplier(
        id=account_key,
        name=name,
        external_account_id=account_key,
        external_ids={SYSTEM_ID: account_key} if account_key else {},
        tax_id=to_text(first_present(record, ("TaxId", "VatNumber"))),
        contact_person_name=to_text(record.get("ContactName")),
        phone=to_text(record.get("Phone")),
        mobile=to_text(record.get("Mobile")),
        email=to_text(record.get("Email")),
        address=SupplierAddress(
            street=to_text(record.get("Address")),
            city=to_text(record.get("City")),
            postal_code=to_text(record.get("Zip")),
            country=to_text(record.get("Country")),
        ),
    )


def new_account_key(supplier: Supplier) -> str:
    """Client-assigned key for a new account: internal id, then tax id, then name slug."""
    if supplier.id:
        return supplier.id
    if supplier.tax_id:
        return f"sup_{supplier.tax_id.strip()}"
    slug = re.sub(r"\W+", "_", supplier.name.strip().lower()).strip("_")
    return f"sup_{slug}"


def supplier_to_vendor(supplier: Supplier, is_update: bool) -> dict[str, Any]:
    """Account keys are client-assigned like item keys."""
    if is_update:
        account_key = supplier.external_id_for(SYSTEM_ID)
    else:
        account_key = new_account_key(supplier)
    if is_update and not account_key:
        raise ValidationError("Supplier has no Hashavshevet account key to update")

    address = supplier.address or SupplierAddress()
    term = parse_payment_terms(supplier.payment_terms)
    return compact(
        {
            "AccountKey": account_key,
            "AccountName": supplier.name,
            "TaxId": supplier.tax_id,
            "ContactName": supplier.contact_person_name,
            "Phone": supplier.phone,
            "Mobile": supplier.mobile,
            "Email": supplier.email,
            "Address": address.street,
            "City": address.city,
            "Zip": address.postal_code,
            "Country": address.country,
            "PaymentTermsCode": HASHAVSHEVET_TERM_CODES[term.kind] if term else None,
            "PaymentDays": term.days if term and term.days else None,
        }
    )


def _line_to_internal(record: Mapping[str, Any]) -> DocumentLine:
    quantity = to_float(first_present(record, ("Quantity", "Qty"))) or 0.0
    unit_price = to_float(first_present(record, ("Price", "UnitPrice")))
    if unit_price is None:
        unit_price = unit_price_from_total(record.get("Total"), quantity)
    return DocumentLine(
        external_product_id=to_text(record.get("ItemKey")),
        catalog_number=to_text(record.get("ItemCode")),
        description=to_text(first_present(record, ("ItemName", "Description")))
        or "No Description",
        quantity=quantity,
        unit_price=unit_price,
    )


def document_to_internal(record: Mapping[str, Any]) -> Optional[PosDocument]:
    document_id = to_text(first_present(record, ("DocumentID", "DocumentId", "Id")))
    number = to_text(first_present(record, ("DocNumber", "Reference")))
    if not document_id and not number:
        return None

    doc_type = to_text(first_present(record, ("DocumentType", "DocType")))
    lines = first_present(record, ("Lines", "Items")) or []
    return PosDocument(
        id=document_id,
        document_type=_DOCUMENT_BY_DOC_TYPE.get(doc_type or "", "invoice"),
        document_number=number,
        date=to_text(first_present(record, ("DocDate", "Date"))),
        due_date=to_text(record.get("DueDate")),
        total_amount=to_float(first_present(record, ("TotalAmount", "Total"))),
        comments=to_text(record.get("Remarks")),
        lines=[_line_to_internal(line) for line in lines if isinstance(line, dict)],
        external_ids={SYSTEM_ID: document_id} if document_id else {},
    )


def document_to_vendor(
    document: PosDocument, supplier: Optional[Supplier], *, document_id: str
) -> dict[str, Any]:
    lines = [
        compact(
            {
                "ItemKey": line.external_product_id,
                "ItemCode": line.catalog_number,
                "ItemName": line.description,
                "Quantity": line.quantity,
                "Price": round_money(line.unit_price),
                "Total": line.line_total,
            }
        )
        for line in document.lines
    ]
    total = document.total_amount
    if total is None:
        total = round_money(sum(line.line_total for line in document.lines))

    return compact(
        {
            "DocumentID": document_id,
            "DocType": DOC_TYPE_BY_DOCUMENT[document.document_type],
            "AccountKey": supplier.external_id_for(SYSTEM_ID) if supplier else None,
            "Reference": document.document_number,
            "DocDate": document.date,
            "DueDate": document.due_date,
            "Remarks": document.comments,
            "TotalAmount": total,
            "Lines": lines,
        }
    )
