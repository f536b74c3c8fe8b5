"""Tests for tolerant field extraction and payment-term parsing."""

import pytest

from invotrack.pos.extractors import (
    compact,
    extract_records,
    first_present,
    to_float,
    unit_price_from_total,
)
from invotrack.pos.payment_terms import PaymentTerm, parse_payment_terms


def test_first_present_skips_null_and_blank():
    record = {"Name": "  ", "Description": None, "ProductName": "Milk"}
    assert first_present(record, ("Name", "Description", "ProductName")) == "Milk"
    assert first_present(record, ("Missing",)) is None


@pytest.mark.parametrize(
    "value,expected",
    [
        (5, 5.0),
        ("1,234.50", 1234.5),
        (" 7 ", 7.0),
        ("abc", None),
        ("", None),
        (None, None),
        (True, None),
    ],
)
def test_to_float(value, expected):
    assert to_float(value) == expected


def test_unit_price_from_total_rounds_and_handles_zero_quantity():
    assert unit_price_from_total(10, 3) == 3.33
    assert unit_price_from_total("71.4", "12") == 5.95
    assert unit_price_from_total(50, 0) == 0.0


def test_extract_records_tries_locators_in_order():
    assert extract_records([{"a": 1}]) == [{"a": 1}]
    assert extract_records({"Results": [1, 2]}) == [1, 2]
    assert extract_records({"data": []}) == []
    assert extract_records({"Message": "error"}) is None
    assert extract_records("not json") is None


def test_compact_drops_none_but_keeps_falsy_values():
    assert compact({"a": None, "b": 0, "c": False, "d": ""}) == {"b": 0, "c": False, "d": ""}


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Cash", PaymentTerm(kind="cash")),
        ("מיידי", PaymentTerm(kind="cash")),
        ("EOM", PaymentTerm(kind="end_of_month")),
        ("שוטף", PaymentTerm(kind="end_of_month")),
        ("Net 30", PaymentTerm(kind="net_days", days=30)),
        ("net 45 days", PaymentTerm(kind="net_days", days=45)),
        ("שוטף+60", PaymentTerm(kind="end_of_month_plus", days=60)),
        ("EOM + 30", PaymentTerm(kind="end_of_month_plus", days=30)),
    ],
)
def test_parse_payment_terms_recognized(text, expected):
    assert parse_payment_terms(text) == expected


@pytest.mark.parametrize("text", [None, "", "   ", "pay whenever", "net thirty"])
def test_parse_payment_terms_unrecognized_is_none(text):
    assert parse_payment_terms(text) is None
