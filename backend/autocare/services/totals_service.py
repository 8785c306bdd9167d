# Overview: Pure money/tax arithmetic for invoices. No database access.

"""
Invoice Totals

All amounts are integer paise. Rates are basis points (1400 = 14%).

IDENTITIES (always hold for computed totals):
- total_amount = items_subtotal + services_subtotal
- grand_total  = total_amount + cgst + sgst

TAX POLICY:
Which line classes are taxed, and at what rate, is configuration
(Config.TAX_RATES_BPS), not code. Each class ("item", "service") has its own
CGST and SGST rate; tax is rounded half-up to the nearest paisa per class.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping

from ..validation import ValidationError


ITEM_CLASS = "item"
SERVICE_CLASS = "service"

# 0.01 rupee
MONEY_TOLERANCE_PAISE = 1

BPS_DENOMINATOR = Decimal(10_000)


@dataclass(frozen=True)
class TaxRate:
    cgst_bps: int = 0
    sgst_bps: int = 0


@dataclass(frozen=True)
class TaxRateTable:
    """Rates keyed by line class. Unknown classes are tax-exempt."""
    rates: Mapping[str, TaxRate]

    def rate_for(self, line_class: str) -> TaxRate:
        return self.rates.get(line_class, TaxRate())

    @classmethod
    def from_config(cls, raw: Mapping[str, Mapping[str, int]]) -> "TaxRateTable":
        rates = {}
        for line_class, entry in raw.items():
            cgst = int(entry.get("cgst", 0))
            sgst = int(entry.get("sgst", 0))
            if cgst < 0 or sgst < 0:
                raise ValueError(f"tax rates for {line_class!r} must be >= 0")
            rates[line_class] = TaxRate(cgst_bps=cgst, sgst_bps=sgst)
        return cls(rates=rates)


@dataclass(frozen=True)
class InvoiceTotals:
    items_subtotal_paise: int
    services_subtotal_paise: int
    total_amount_paise: int
    cgst_paise: int
    sgst_paise: int
    grand_total_paise: int

    def as_columns(self) -> dict:
        return {
            "items_subtotal_paise": self.items_subtotal_paise,
            "services_subtotal_paise": self.services_subtotal_paise,
            "total_amount_paise": self.total_amount_paise,
            "cgst_paise": self.cgst_paise,
            "sgst_paise": self.sgst_paise,
            "grand_total_paise": self.grand_total_paise,
        }


def apply_rate(amount_paise: int, rate_bps: int) -> int:
    """amount * rate, rounded half-up to whole paise."""
    if not rate_bps or not amount_paise:
        return 0
    value = Decimal(amount_paise) * Decimal(rate_bps) / BPS_DENOMINATOR
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def line_total(unit_paise: int, quantity: int) -> int:
    if quantity < 1:
        raise ValidationError("quantity must be >= 1")
    if unit_paise < 0:
        raise ValidationError("unit price must be >= 0")
    return unit_paise * quantity


def compute_totals(
    item_totals: Iterable[int],
    service_totals: Iterable[int],
    tax_rates: TaxRateTable,
) -> InvoiceTotals:
    """
    Compute subtotals, CGST/SGST and grand total from line totals.
    """
    items_subtotal = sum(item_totals)
    services_subtotal = sum(service_totals)

    item_rate = tax_rates.rate_for(ITEM_CLASS)
    service_rate = tax_rates.rate_for(SERVICE_CLASS)

    cgst = apply_rate(items_subtotal, item_rate.cgst_bps) + apply_rate(services_subtotal, service_rate.cgst_bps)
    sgst = apply_rate(items_subtotal, item_rate.sgst_bps) + apply_rate(services_subtotal, service_rate.sgst_bps)

    total_amount = items_subtotal + services_subtotal
    return InvoiceTotals(
        items_subtotal_paise=items_subtotal,
        services_subtotal_paise=services_subtotal,
        total_amount_paise=total_amount,
        cgst_paise=cgst,
        sgst_paise=sgst,
        grand_total_paise=total_amount + cgst + sgst,
    )


def amounts_match(a_paise: int, b_paise: int) -> bool:
    return abs(a_paise - b_paise) <= MONEY_TOLERANCE_PAISE


def breakdown(invoice, tax_rates: TaxRateTable) -> dict:
    """
    Per-class tax breakdown of a stored invoice.

    Class-level tax is recomputed from the stored subtotals with the current
    rate table; "overall" always reports the stored figures.
    """
    item_rate = tax_rates.rate_for(ITEM_CLASS)
    service_rate = tax_rates.rate_for(SERVICE_CLASS)

    items_cgst = apply_rate(invoice.items_subtotal_paise, item_rate.cgst_bps)
    items_sgst = apply_rate(invoice.items_subtotal_paise, item_rate.sgst_bps)
    services_cgst = apply_rate(invoice.services_subtotal_paise, service_rate.cgst_bps)
    services_sgst = apply_rate(invoice.services_subtotal_paise, service_rate.sgst_bps)

    return {
        "items": {
            "subtotal_paise": invoice.items_subtotal_paise,
            "cgst_paise": items_cgst,
            "sgst_paise": items_sgst,
            "total_paise": invoice.items_subtotal_paise + items_cgst + items_sgst,
        },
        "services": {
            "subtotal_paise": invoice.services_subtotal_paise,
            "cgst_paise": services_cgst,
            "sgst_paise": services_sgst,
            "total_paise": invoice.services_subtotal_paise + services_cgst + services_sgst,
        },
        "overall": {
            "subtotal_paise": invoice.total_amount_paise,
            "cgst_paise": invoice.cgst_paise,
            "sgst_paise": invoice.sgst_paise,
            "grand_total_paise": invoice.grand_total_paise,
        },
    }
