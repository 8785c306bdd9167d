"""
Payment reconciliation and the tagged pending state.
"""

import pytest

from autocare.models.invoices import (
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_UNPAID,
)
from autocare.services.payment_service import (
    InvalidPaymentError,
    PaymentDetails,
    payment_status_for,
    reconcile_payment,
    resolve_pending,
)
from autocare.validation import ValidationError


class TestReconcilePayment:

    @pytest.mark.parametrize("grand_total", [1, 1000, 1330000])
    def test_cash_takes_whole_total(self, grand_total):
        result = reconcile_payment("cash", grand_total, {"cash_amount_paise": 5, "online_amount_paise": 7})
        assert result == PaymentDetails(grand_total, 0, None)

    @pytest.mark.parametrize("grand_total", [1, 1000, 1330000])
    def test_online_takes_whole_total(self, grand_total):
        result = reconcile_payment("online", grand_total, {"online_reference": " UPI-77 "})
        assert result == PaymentDetails(0, grand_total, "UPI-77")

    def test_split_exact(self):
        result = reconcile_payment("both", 1000, {"cash_amount_paise": 400, "online_amount_paise": 600})
        assert result == PaymentDetails(400, 600, None)

    def test_split_within_tolerance(self):
        result = reconcile_payment("both", 1000, {"cash_amount_paise": 400, "online_amount_paise": 599})
        assert result.cash_amount_paise + result.online_amount_paise == 999

    def test_split_mismatch_rejected(self):
        with pytest.raises(InvalidPaymentError):
            reconcile_payment("both", 1000, {"cash_amount_paise": 400, "online_amount_paise": 500})

    @pytest.mark.parametrize(
        "details",
        [
            {"cash_amount_paise": 0, "online_amount_paise": 1000},
            {"cash_amount_paise": 1000, "online_amount_paise": 0},
            {"cash_amount_paise": 600, "online_amount_paise": 0},
            {"cash_amount_paise": "400", "online_amount_paise": 600},
            {"cash_amount_paise": 400.0, "online_amount_paise": 600},
        ],
    )
    def test_split_rejects_degenerate_allocations(self, details):
        with pytest.raises(InvalidPaymentError):
            reconcile_payment("both", 1000, details)

    def test_unknown_method(self):
        with pytest.raises(InvalidPaymentError):
            reconcile_payment("cheque", 1000, {})

    def test_invalid_payment_is_a_validation_error(self):
        assert issubclass(InvalidPaymentError, ValidationError)

    def test_idempotent(self):
        details = {"cash_amount_paise": 250, "online_amount_paise": 750, "online_reference": "TXN1"}
        assert reconcile_payment("both", 1000, details) == reconcile_payment("both", 1000, details)


class TestPendingState:

    def test_not_pending_is_paid(self):
        assert resolve_pending(False, 500, 1000) == (PAYMENT_STATUS_PAID, 0)

    def test_pending_without_amount_owes_everything(self):
        assert resolve_pending(True, None, 1000) == (PAYMENT_STATUS_UNPAID, 1000)

    def test_partial(self):
        assert resolve_pending(True, 300, 1000) == (PAYMENT_STATUS_PARTIAL, 300)

    def test_pending_must_be_positive(self):
        with pytest.raises(ValidationError):
            resolve_pending(True, 0, 1000)

    def test_cannot_exceed_total(self):
        with pytest.raises(ValidationError):
            payment_status_for(1001, 1000)
