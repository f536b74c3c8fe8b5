"""Tests for in-memory persistence, data URIs and blob storage."""

import base64
from types import SimpleNamespace

import pytest

from invotrack.models import InvoiceHistoryItem, PosConnectionConfig, Product
from invotrack.storage import SupabaseBlobStorage, decode_data_uri


def test_merge_product_adds_quantity_and_keeps_external_ids(repository):
    repository.merge_product(
        "u", Product(id="p1", description="Milk", quantity=2, unit_price=5, external_ids={"caspit": "9"})
    )
    merged = repository.merge_product(
        "u", Product(id="p1", description="Milk 1L", quantity=3, unit_price=6)
    )

    assert merged.quantity == 5
    assert merged.unit_price == 6
    assert merged.line_total == 30
    assert merged.description == "Milk 1L"
    assert merged.external_ids == {"caspit": "9"}


def test_merge_requires_an_id(repository):
    with pytest.raises(ValueError):
        repository.merge_product("u", Product(description="Milk"))


def test_products_are_scoped_by_user(repository):
    repository.save_product("a", Product(id="p", description="Milk"))

    assert repository.get_product("b", "p") is None
    assert [p.id for p in repository.list_products("a")] == ["p"]


def test_returned_products_are_copies(repository):
    repository.save_product("u", Product(id="p", description="Milk", quantity=1))
    copy = repository.get_product("u", "p")
    copy.quantity = 100

    assert repository.get_product("u", "p").quantity == 1


def test_save_invoice_assigns_id_and_timestamp(repository):
    saved = repository.save_invoice(
        InvoiceHistoryItem(user_id="u", original_file_name="a.jpg", document_type="invoice")
    )

    assert saved.id == "doc_1"
    assert saved.uploaded_at is not None
    updated = repository.update_invoice("u", "doc_1", {"original_image_uri": "x"})
    assert updated.original_image_uri == "x"
    with pytest.raises(KeyError):
        repository.update_invoice("u", "missing", {})


def test_pos_settings_round_trip(repository):
    repository.save_pos_settings("u", PosConnectionConfig(systemId="hashavshevet", apiKey="k"))

    assert repository.get_pos_settings("u").api_key == "k"
    assert repository.get_pos_settings("other") is None


def test_payment_status_only_moves_forward():
    invoice = InvoiceHistoryItem(user_id="u", original_file_name="a", document_type="invoice")

    invoice.advance_payment_status("pending_payment")
    invoice.advance_payment_status("paid", payment_date="2026-01-01")
    assert invoice.payment_date == "2026-01-01"

    with pytest.raises(ValueError):
        invoice.advance_payment_status("unpaid")


def test_decode_data_uri():
    encoded = base64.b64encode(b"png-bytes").decode()

    decoded = decode_data_uri(f"data:image/png;base64,{encoded}")

    assert decoded.content_type == "image/png"
    assert decoded.data == b"png-bytes"
    assert decode_data_uri("https://example.com/a.png") is None
    assert decode_data_uri("data:image/png;base64,***") is None


def test_supabase_storage_uploads_and_returns_public_url():
    uploads = []

    class _Bucket:
        def upload(self, path, file, file_options):
            uploads.append((path, file, file_options))

        def get_public_url(self, path):
            return f"https://cdn.test/{path}"

    class _Storage:
        def from_(self, bucket):
            assert bucket == "invoice-images"
            return _Bucket()

    client = SimpleNamespace(storage=_Storage())
    storage = SupabaseBlobStorage(lambda: client, "invoice-images")

    url = storage.upload("users/u/documents/d/original.jpg", b"img", "image/jpeg")

    assert url == "https://cdn.test/users/u/documents/d/original.jpg"
    assert uploads[0][2]["content-type"] == "image/jpeg"
