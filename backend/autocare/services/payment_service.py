# Overview: Payment allocation rules for invoices (cash / online / split) and pending balances.

"""
Invoice Payment Reconciliation

WHY: An invoice records how its grand total was settled. The allocation must
always add up to the grand total, whatever the client sent.

RULES:
- cash:   cash = grand total, online = 0
- online: cash = 0, online = grand total
- both:   0 < cash < grand total, online > 0,
          |cash + online - grand total| <= 1 paisa

reconcile_payment() is pure: identical inputs give identical output. Callers
re-run it whenever the grand total or the payment fields change.

PENDING BALANCE:
Independent of the method, an invoice can still be owed money. This is a
tagged state (PAID / PARTIALLY_PAID / UNPAID) rather than a loose
boolean + amount pair.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from ..models.invoices import (
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_UNPAID,
)
from ..validation import ValidationError, PAYMENT_METHODS
from .totals_service import amounts_match


class InvalidPaymentError(ValidationError):
    """Payment allocation does not settle the grand total."""


METHOD_CASH = "cash"
METHOD_ONLINE = "online"
METHOD_BOTH = "both"


@dataclass(frozen=True)
class PaymentDetails:
    cash_amount_paise: int
    online_amount_paise: int
    online_reference: str | None = None

    def as_columns(self) -> dict:
        return {
            "cash_amount_paise": self.cash_amount_paise,
            "online_amount_paise": self.online_amount_paise,
            "online_reference": self.online_reference,
        }


def _amount(details: Mapping, key: str) -> int:
    raw = details.get(key)
    if raw is None:
        return 0
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise InvalidPaymentError(f"{key} must be an integer number of paise")
    return raw


def _reference(details: Mapping) -> str | None:
    ref = details.get("online_reference")
    if ref is None:
        return None
    ref = str(ref).strip()
    return ref or None


def reconcile_payment(method: str, grand_total_paise: int, details: Mapping | None) -> PaymentDetails:
    """
    Normalize a payment allocation against grand_total_paise.

    Raises InvalidPaymentError when the method is unknown or a split
    payment does not add up.
    """
    details = details or {}
    if not isinstance(details, Mapping):
        raise InvalidPaymentError("payment_details must be an object")

    if method == METHOD_CASH:
        return PaymentDetails(grand_total_paise, 0, _reference(details))

    if method == METHOD_ONLINE:
        return PaymentDetails(0, grand_total_paise, _reference(details))

    if method == METHOD_BOTH:
        cash = _amount(details, "cash_amount_paise")
        online = _amount(details, "online_amount_paise")

        if cash <= 0 or cash >= grand_total_paise:
            raise InvalidPaymentError(
                "cash_amount_paise must be greater than 0 and less than the grand total for split payments"
            )
        if online <= 0:
            raise InvalidPaymentError("online_amount_paise must be greater than 0 for split payments")
        if not amounts_match(cash + online, grand_total_paise):
            raise InvalidPaymentError(
                f"Payment amounts (cash: {cash}, online: {online}) must equal grand total: {grand_total_paise}"
            )
        return PaymentDetails(cash, online, _reference(details))

    raise InvalidPaymentError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")


def payment_status_for(pending_amount_paise: int, grand_total_paise: int) -> str:
    """Map an owed amount to the tagged payment state."""
    if pending_amount_paise < 0:
        raise ValidationError("pending_amount_paise must be >= 0")
    if pending_amount_paise > grand_total_paise:
        raise ValidationError("pending_amount_paise cannot exceed the grand total")
    if pending_amount_paise == 0:
        return PAYMENT_STATUS_PAID
    if pending_amount_paise == grand_total_paise:
        return PAYMENT_STATUS_UNPAID
    return PAYMENT_STATUS_PARTIAL


def resolve_pending(is_pending: bool, pending_amount_paise: int | None, grand_total_paise: int) -> tuple[str, int]:
    """
    Translate the (is_pending, amount) pair clients send into (status, amount).

    - not pending -> PAID, 0 owed
    - pending without an amount -> the whole grand total is owed
    """
    if not is_pending:
        return PAYMENT_STATUS_PAID, 0

    owed = grand_total_paise if pending_amount_paise is None else pending_amount_paise
    if owed <= 0:
        raise ValidationError("pending invoices must have pending_amount_paise > 0")
    return payment_status_for(owed, grand_total_paise), owed
