"""Tests for Caspit and Hashavshevet record mapping."""

import pytest

from invotrack.exceptions import ValidationError
from invotrack.models import DocumentLine, PosDocument, Product, Supplier
from invotrack.pos.mapping import caspit, hashavshevet


def test_caspit_product_to_internal_maps_fields_and_recomputes_total():
    product = caspit.product_to_internal(
        {
            "ProductId": 17,
            "Name": "Milk 3%",
            "CatalogNumber": "7290000042435",
            "QtyInStock": "12",
            "PurchasePrice": "5.95",
            "SalePrice1": 8.9,
            "Status": True,
        }
    )

    assert product is not None
    assert product.external_id_for("caspit") == "17"
    assert product.catalog_number == "7290000042435"
    assert product.quantity == 12.0
    assert product.line_total == 71.4
    assert product.sale_price == 8.9


def test_caspit_product_without_catalog_number_or_name_is_dropped():
    assert caspit.product_to_internal({"ProductId": 5, "QtyInStock": 3}) is None


def test_caspit_product_without_name_gets_item_description():
    product = caspit.product_to_internal({"CatalogNumber": "A-1"})
    assert product is not None
    assert product.description == "Item A-1"


def test_caspit_product_to_vendor_omits_id_on_create_and_requires_it_on_update():
    product = Product(id="manual_milk", description="Milk", quantity=2, unit_price=3.333)

    payload = caspit.product_to_vendor(product, is_update=False)
    assert "ProductId" not in payload
    assert "CatalogNumber" not in payload
    assert payload["PurchasePrice"] == 3.33

    with pytest.raises(ValidationError):
        caspit.product_to_vendor(product, is_update=True)

    product.external_ids = {"caspit": "99"}
    payload = caspit.product_to_vendor(product, is_update=True, active=False)
    assert payload["ProductId"] == "99"
    assert payload["Status"] is False


def test_caspit_contacts_that_are_not_suppliers_are_skipped():
    assert caspit.supplier_to_internal({"Id": "1", "Name": "Shop", "ContactType": 1}) is None
    supplier = caspit.supplier_to_internal(
        {"Id": "2", "Name": "Tnuva", "ContactType": 2, "OsekMorshe": "512345678"}
    )
    assert supplier is not None
    assert supplier.tax_id == "512345678"
    assert supplier.external_id_for("caspit") == "2"


def test_caspit_supplier_payment_terms_are_coded_or_omitted():
    coded = caspit.supplier_to_vendor(
        Supplier(name="Tnuva", payment_terms="שוטף+30"), is_update=False
    )
    assert coded["PaymentTerms"] == caspit.CASPIT_TERM_CODES["end_of_month_plus"]
    assert coded["PaymentTermsDays"] == 30
    assert coded["ContactType"] == caspit.CONTACT_TYPE_SUPPLIER

    uncoded = caspit.supplier_to_vendor(
        Supplier(name="Tnuva", payment_terms="whenever"), is_update=False
    )
    assert "PaymentTerms" not in uncoded
    assert "PaymentTermsDays" not in uncoded


def test_caspit_document_to_vendor_uses_document_type_code():
    supplier = Supplier(name="Tnuva", external_ids={"caspit": "C-1"}, tax_id="512345678")
    document = PosDocument(
        document_type="deliveryNote",
        document_number="INV-7",
        lines=[
            DocumentLine(external_product_id="17", description="Milk", quantity=2, unit_price=5.5)
        ],
    )

    payload = caspit.document_to_vendor(document, supplier, document_id="doc-1")

    assert payload["TrxTypeId"] == caspit.TRX_TYPE_BY_DOCUMENT["deliveryNote"]
    assert payload["CustomerId"] == "C-1"
    assert payload["Total"] == 11.0
    assert payload["DocumentLines"][0]["ExtendedPrice"] == 11.0


def test_caspit_document_lines_derive_unit_price_from_total():
    document = caspit.document_to_internal(
        {
            "DocumentId": "D1",
            "TrxTypeId": 300,
            "DocumentLines": [{"ProductName": "Bread", "Qty": 3, "ExtendedPrice": 10}],
        }
    )
    assert document is not None
    assert document.document_type == "invoice"
    assert document.lines[0].unit_price == 3.33
    assert document.lines[0].line_total == 9.99


def test_hashavshevet_item_key_is_internal_id_on_create():
    product = Product(id="7290011194246", description="Bread", quantity=6, unit_price=8.95)

    assert hashavshevet.product_to_vendor(product, is_update=False)["ItemKey"] == "7290011194246"
    with pytest.raises(ValidationError):
        hashavshevet.product_to_vendor(Product(description="x"), is_update=False)


def test_hashavshevet_product_to_internal_and_null_drop():
    assert hashavshevet.product_to_internal({"InternalID": "9"}) is None
    product = hashavshevet.product_to_internal(
        {"InternalID": "9", "ItemCode": "B-1", "ItemName": "Bread", "IsActive": False}
    )
    assert product is not None
    assert product.is_active is False
    assert product.external_id_for("hashavshevet") == "9"


def test_hashavshevet_document_round_trips_doc_type():
    payload = hashavshevet.document_to_vendor(
        PosDocument(document_type="order", lines=[]), None, document_id="X"
    )
    assert payload["DocType"] == "PO"
    assert "AccountKey" not in payload
    assert payload["TotalAmount"] == 0.0

    document = hashavshevet.document_to_internal({"DocumentID": "X", "DocType": "GRN"})
    assert document is not None
    assert document.document_type == "deliveryNote"


def test_external_id_lookup_is_scoped_to_the_system():
    product = Product(description="Milk", external_product_id="C-77", external_ids={"caspit": "C-77"})
    supplier = Supplier(name="Tnuva", external_account_id="C-2", external_ids={"caspit": "C-2"})

    assert product.external_id_for("caspit") == "C-77"
    assert product.external_id_for("hashavshevet") is None
    assert supplier.external_id_for("hashavshevet") is None


def test_hashavshevet_account_key_falls_back_to_name_slug():
    payload = hashavshevet.supplier_to_vendor(Supplier(name=" Tnuva  Dairy "), is_update=False)

    assert payload["AccountKey"] == "sup_tnuva_dairy"
