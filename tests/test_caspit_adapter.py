"""Caspit adapter tests against a scripted vendor."""

import asyncio

import pytest

from invotrack.models import DocumentLine, PosConnectionConfig, PosDocument, Product, Supplier
from invotrack.pos.caspit import CaspitAdapter
from vendor_fakes import json_response, text_response


@pytest.fixture
def config() -> PosConnectionConfig:
    return PosConnectionConfig(systemId="caspit", user="u", pwd="p", osekMorshe="512345678")


@pytest.fixture
def adapter(vendor_http, token_cache, settings) -> CaspitAdapter:
    vendor_http.add("GET", "/Token", json_response({"AccessToken": "tok-1"}))
    return CaspitAdapter(vendor_http, token_cache, settings)


def test_connection_succeeds_with_valid_token(adapter, config, vendor_http):
    result = asyncio.run(adapter.test_connection(config))

    assert result.success is True
    token_call = vendor_http.calls_to("GET", "/Token")[0]
    assert token_call.params == {"user": "u", "pwd": "p", "osekMorshe": "512345678"}


def test_connection_without_credentials_fails_without_calling_vendor(
    vendor_http, token_cache, settings
):
    adapter = CaspitAdapter(vendor_http, token_cache, settings)

    result = asyncio.run(
        adapter.test_connection(PosConnectionConfig(systemId="caspit", user="u"))
    )

    assert result.success is False
    assert "required" in result.message
    assert vendor_http.calls == []


def test_rejected_token_keeps_vendor_body_out_of_message(
    vendor_http, token_cache, settings, config
):
    vendor_http.add("GET", "/Token", text_response("internal-detail", status_code=401))
    adapter = CaspitAdapter(vendor_http, token_cache, settings)

    result = asyncio.run(adapter.test_connection(config))

    assert result.success is False
    assert "401" in result.message
    assert "internal-detail" not in result.message


def test_product_sync_reuses_cached_token_and_sends_no_page_size(adapter, config, vendor_http):
    vendor_http.add(
        "GET",
        "/Products",
        json_response(
            {
                "TotalPages": 1,
                "Results": [
                    {"ProductId": 1, "Name": "Milk", "CatalogNumber": "M1", "QtyInStock": 2},
                    {"ProductId": 2, "QtyInStock": 9},
                ],
            }
        ),
    )

    first = asyncio.run(adapter.sync_products(config))
    second = asyncio.run(adapter.sync_products(config))

    assert first.success and second.success
    assert first.items_synced == 1
    assert first.dropped == 1
    assert first.products[0].external_id_for("caspit") == "1"
    assert len(vendor_http.calls_to("GET", "/Token")) == 1

    list_call = vendor_http.calls_to("GET", "/Products")[0]
    assert list_call.params == {"token": "tok-1", "page": 1}
    assert list_call.headers == {"Caspit-Token": "tok-1"}


def test_sales_sync_filters_by_sales_transaction_type(adapter, config, vendor_http):
    vendor_http.add("GET", "/Documents", json_response([]))

    result = asyncio.run(adapter.sync_sales(config))

    assert result.success is True
    assert result.data == []
    assert vendor_http.calls_to("GET", "/Documents")[0].params["trxTypeId"] == 1


def test_malformed_list_response_becomes_failed_sync(adapter, config, vendor_http):
    vendor_http.add("GET", "/Contacts", json_response({"Message": "maintenance"}))

    result = asyncio.run(adapter.sync_suppliers(config))

    assert result.success is False
    assert result.message.startswith("Suppliers sync failed")
    assert "maintenance" not in result.message


def test_create_product_posts_without_id_and_reads_quoted_id(adapter, config, vendor_http):
    vendor_http.add("POST", "/Products", text_response('"123"'))

    result = asyncio.run(
        adapter.create_or_update_product(config, Product(id="manual_milk", description="Milk"))
    )

    assert result.success is True
    assert result.external_id == "123"
    assert "ProductId" not in vendor_http.calls_to("POST", "/Products")[0].json_body


def test_update_product_falls_back_to_sent_id_on_empty_body(adapter, config, vendor_http):
    vendor_http.add("PUT", "/Products/55", text_response(""))
    product = Product(id="p", description="Milk", external_ids={"caspit": "55"})

    result = asyncio.run(adapter.update_product(config, product))

    assert result.success is True
    assert result.external_id == "55"


def test_unauthorized_write_evicts_cached_token(adapter, config, vendor_http, token_cache):
    vendor_http.add("PUT", "/Products/55", text_response("expired", status_code=401))
    product = Product(id="p", description="Milk", external_ids={"caspit": "55"})

    result = asyncio.run(adapter.deactivate_product(config, product))

    assert result.success is False
    assert token_cache.get("512345678") is None
    assert vendor_http.calls_to("PUT", "/Products/55")[0].json_body["Status"] is False


def test_supplier_upsert_updates_contact_found_by_tax_id(adapter, config, vendor_http):
    vendor_http.add("GET", "/Contacts", json_response([{"Id": "C9", "OsekMorshe": "5111"}]))
    vendor_http.add("PUT", "/Contacts/C9", json_response({"Id": "C9"}))

    result = asyncio.run(
        adapter.create_or_update_supplier(config, Supplier(name="Tnuva", tax_id="5111"))
    )

    assert result.success is True
    assert result.external_id == "C9"
    lookup = vendor_http.calls_to("GET", "/Contacts")[0]
    assert lookup.params["osekMorshe"] == "5111"


def test_supplier_upsert_creates_contact_when_lookup_misses(adapter, config, vendor_http):
    vendor_http.add("GET", "/Contacts", text_response("not found", status_code=404))
    vendor_http.add("POST", "/Contacts", json_response({"Id": "C10"}))

    result = asyncio.run(
        adapter.create_or_update_supplier(
            config, Supplier(name="Tnuva", tax_id="5111", payment_terms="net 30")
        )
    )

    assert result.success is True
    assert result.external_id == "C10"
    body = vendor_http.calls_to("POST", "/Contacts")[0].json_body
    assert body["PaymentTermsDays"] == 30


def test_expense_documents_go_to_expenses_resource(adapter, config, vendor_http):
    vendor_http.add("POST", "/Expenses", json_response({"DocumentId": "E1"}))
    document = PosDocument(
        document_type="expense",
        lines=[DocumentLine(description="Fuel", quantity=1, unit_price=100)],
    )

    result = asyncio.run(adapter.create_document(config, document))

    assert result.success is True
    assert result.external_id == "E1"
    assert vendor_http.calls_to("POST", "/Expenses")[0].json_body["TrxTypeId"] == 35


def test_purchase_invoice_carries_supplier_reference(adapter, config, vendor_http):
    vendor_http.add("POST", "/Documents", json_response({"DocumentId": "D1"}))
    supplier = Supplier(name="Tnuva", external_ids={"caspit": "C9"})
    document = PosDocument(
        document_type="invoice",
        document_number="INV-1",
        lines=[DocumentLine(external_product_id="1", description="Milk", quantity=2, unit_price=3)],
    )

    result = asyncio.run(adapter.create_document(config, document, supplier))

    assert result.success is True
    body = vendor_http.calls_to("POST", "/Documents")[0].json_body
    assert body["CustomerId"] == "C9"
    assert body["TrxTypeId"] == 300
    assert body["Total"] == 6.0


def test_product_sync_follows_total_pages_when_pages_are_smaller_than_page_size(
    adapter, config, vendor_http
):
    def page(call):
        number = call.params["page"]
        return json_response(
            {"TotalPages": 3, "Results": [{"ProductId": number, "Name": f"Item {number}"}]}
        )

    vendor_http.add("GET", "/Products", page)

    result = asyncio.run(adapter.sync_products(config))

    assert result.success is True
    assert result.items_synced == 3
    assert [c.params["page"] for c in vendor_http.calls_to("GET", "/Products")] == [1, 2, 3]


def test_unauthorized_list_evicts_token_so_next_sync_reauthenticates(
    adapter, config, vendor_http, token_cache
):
    vendor_http.add(
        "GET",
        "/Products",
        text_response("expired", status_code=401),
        json_response({"TotalPages": 1, "Results": [{"ProductId": 1, "Name": "Milk"}]}),
    )

    failed = asyncio.run(adapter.sync_products(config))
    assert failed.success is False
    assert token_cache.get("512345678") is None

    retried = asyncio.run(adapter.sync_products(config))
    assert retried.success is True
    assert len(vendor_http.calls_to("GET", "/Token")) == 2
