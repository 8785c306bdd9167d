"""
Invoice money arithmetic: line totals, CGST/SGST, grand total identities.
"""

import pytest

from autocare.services.totals_service import (
    TaxRate,
    TaxRateTable,
    amounts_match,
    apply_rate,
    compute_totals,
    line_total,
)
from autocare.validation import ValidationError


DEFAULT_RATES = TaxRateTable.from_config({
    "item": {"cgst": 1400, "sgst": 1400},
    "service": {"cgst": 0, "sgst": 0},
})


class TestApplyRate:

    def test_fourteen_percent(self):
        assert apply_rate(100000, 1400) == 14000

    def test_rounds_half_up(self):
        # 5 * 10% = 0.5 paise -> 1
        assert apply_rate(5, 1000) == 1
        # 4 * 10% = 0.4 paise -> 0
        assert apply_rate(4, 1000) == 0

    def test_zero_rate_or_amount(self):
        assert apply_rate(0, 1400) == 0
        assert apply_rate(12345, 0) == 0


class TestLineTotal:

    def test_multiplies(self):
        assert line_total(250000, 4) == 1000000

    def test_rejects_zero_quantity(self):
        with pytest.raises(ValidationError):
            line_total(100, 0)

    def test_rejects_negative_price(self):
        with pytest.raises(ValidationError):
            line_total(-1, 1)


class TestComputeTotals:

    def test_items_taxed_services_exempt(self):
        totals = compute_totals([1000000], [50000], DEFAULT_RATES)

        assert totals.items_subtotal_paise == 1000000
        assert totals.services_subtotal_paise == 50000
        assert totals.total_amount_paise == 1050000
        assert totals.cgst_paise == 140000
        assert totals.sgst_paise == 140000
        assert totals.grand_total_paise == 1330000

    @pytest.mark.parametrize(
        "items,services",
        [
            ([], [100]),
            ([333], []),
            ([1, 2, 3], [7, 11]),
            ([999999, 123457], [45001]),
        ],
    )
    def test_identities_hold(self, items, services):
        totals = compute_totals(items, services, DEFAULT_RATES)
        assert totals.total_amount_paise == totals.items_subtotal_paise + totals.services_subtotal_paise
        assert totals.grand_total_paise == totals.total_amount_paise + totals.cgst_paise + totals.sgst_paise

    def test_taxed_services_when_configured(self):
        rates = TaxRateTable(rates={"item": TaxRate(900, 900), "service": TaxRate(900, 900)})
        totals = compute_totals([10000], [10000], rates)
        assert totals.cgst_paise == 1800
        assert totals.sgst_paise == 1800
        assert totals.grand_total_paise == 23600

    def test_unknown_class_is_exempt(self):
        rates = TaxRateTable(rates={})
        totals = compute_totals([10000], [], rates)
        assert totals.grand_total_paise == 10000

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError):
            TaxRateTable.from_config({"item": {"cgst": -1, "sgst": 0}})


def test_amounts_match_within_one_paisa():
    assert amounts_match(1000, 1001)
    assert amounts_match(1000, 999)
    assert not amounts_match(1000, 1002)
