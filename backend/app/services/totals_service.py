# Overview: Pure totals/tax computation for financial documents (no database access).

"""
Document totals (authoritative)

All amounts are integer cents; tax rates are basis points (1500 = 15%).

Per line, with amount = quantity * unit_price_cents:
- VAT disabled or rate <= 0:  net = amount, tax = 0, total = amount
- tax-exclusive price:        net = amount, tax = amount * rate, total = amount + tax
- tax-inclusive price:        net = amount / (1 + rate), tax = amount - net, total = amount

Document:
- subtotal = sum(line net), tax = sum(line tax)
- net = subtotal + tax - discount   (discount applied once, never per line)

Rounding is half-up to the cent and happens once per line. Tax on an
inclusive line is the remainder (amount - net), so net + tax always equals
the amount the customer sees. Integer arithmetic makes the result exact and
repeatable: the same input always yields the same DocumentTotals.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .errors import ValidationFailed

BPS_DENOMINATOR = 10_000


@dataclass(frozen=True)
class LineInput:
    item_id: int
    quantity: int
    unit_price_cents: int
    tax_inclusive: bool = False


@dataclass(frozen=True)
class LineTotals:
    item_id: int
    quantity: int
    unit_price_cents: int
    tax_inclusive: bool
    net_cents: int
    tax_cents: int
    line_total_cents: int


@dataclass(frozen=True)
class DocumentTotals:
    lines: tuple[LineTotals, ...]
    subtotal_cents: int
    tax_cents: int
    discount_cents: int
    net_cents: int


def _div_half_up(numerator: int, denominator: int) -> int:
    # nearest-cent rounding (half-up), non-negative operands
    return (numerator + (denominator // 2)) // denominator


def compute_line(line: LineInput, *, vat_enabled: bool, tax_rate_bps: int) -> LineTotals:
    if line.quantity < 0:
        raise ValidationFailed("Line quantity cannot be negative", details={"item_id": line.item_id})
    if line.unit_price_cents < 0:
        raise ValidationFailed("Line price cannot be negative", details={"item_id": line.item_id})

    amount = line.quantity * line.unit_price_cents

    if not vat_enabled or tax_rate_bps <= 0:
        net, tax, total = amount, 0, amount
    elif line.tax_inclusive:
        net = _div_half_up(amount * BPS_DENOMINATOR, BPS_DENOMINATOR + tax_rate_bps)
        tax = amount - net
        total = amount
    else:
        net = amount
        tax = _div_half_up(amount * tax_rate_bps, BPS_DENOMINATOR)
        total = amount + tax

    return LineTotals(
        item_id=line.item_id,
        quantity=line.quantity,
        unit_price_cents=line.unit_price_cents,
        tax_inclusive=line.tax_inclusive,
        net_cents=net,
        tax_cents=tax,
        line_total_cents=total,
    )


def compute_totals(
    lines: Iterable[LineInput],
    *,
    vat_enabled: bool,
    tax_rate_bps: int,
    discount_cents: int = 0,
) -> DocumentTotals:
    """
    Compute line and document totals.

    Sales documents read the result as subtotal + tax - discount and
    purchase documents as subtotal - discount + tax; in integer cents both
    orders give the same net.

    Raises:
        ValidationFailed: negative quantity, price or discount, or a
            discount larger than subtotal + tax
    """
    discount_cents = discount_cents or 0
    if discount_cents < 0:
        raise ValidationFailed("Discount cannot be negative")

    computed = tuple(
        compute_line(line, vat_enabled=vat_enabled, tax_rate_bps=tax_rate_bps)
        for line in lines
    )

    subtotal = sum(line.net_cents for line in computed)
    tax = sum(line.tax_cents for line in computed)
    net = subtotal + tax - discount_cents

    if net < 0:
        raise ValidationFailed(
            "Discount exceeds document total",
            details={"subtotal_cents": subtotal, "tax_cents": tax, "discount_cents": discount_cents},
        )

    return DocumentTotals(
        lines=computed,
        subtotal_cents=subtotal,
        tax_cents=tax,
        discount_cents=discount_cents,
        net_cents=net,
    )
