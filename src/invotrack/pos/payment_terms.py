"""Free-text payment terms to vendor payment-term codes."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Optional

TermKind = Literal["cash", "end_of_month", "net_days", "end_of_month_plus"]

_CASH_PHRASES = {"immediate", "cash", "מיידי", "מזומן"}
_EOM_PHRASES = {"eom", "end of month", "שוטף"}
_NET_PATTERN = re.compile(r"^net\s*\+?\s*(\d{1,3})(?:\s*days?)?$")
_EOM_PLUS_PATTERN = re.compile(r"^(?:שוטף|eom)\s*\+\s*(\d{1,3})$")


@dataclass(frozen=True)
class PaymentTerm:
    """Parsed payment term: kind plus day count where relevant."""

    kind: TermKind
    days: int = 0


def parse_payment_terms(text: Optional[str]) -> Optional[PaymentTerm]:
    """Match known phrases case-insensitively; None for anything unrecognized."""
    if not text:
        return None
    normalized = " ".join(text.strip().lower().split())
    if not normalized:
        return None

    if normalized in _CASH_PHRASES:
        return PaymentTerm(kind="cash")
    if normalized in _EOM_PHRASES:
        return PaymentTerm(kind="end_of_month")

    match = _EOM_PLUS_PATTERN.match(normalized)
    if match:
        return PaymentTerm(kind="end_of_month_plus", days=int(match.group(1)))

    match = _NET_PATTERN.match(normalized)
    if match:
        return PaymentTerm(kind="net_days", days=int(match.group(1)))
    return None


# Caspit contact payment-term codes.
CASPIT_TERM_CODES: dict[TermKind, int] = {
    "cash": 1,
    "net_days": 2,
    "end_of_month": 3,
    "end_of_month_plus": 4,
}

# Hashavshevet account payment-term codes.
HASHAVSHEVET_TERM_CODES: dict[TermKind, str] = {
    "cash": "CASH",
    "net_days": "NET",
    "end_of_month": "EOM",
    "end_of_month_plus": "EOM_PLUS",
}
