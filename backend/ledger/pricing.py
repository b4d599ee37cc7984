"""Order pricing: subtotal, tax, discounts, total and points earned.

Everything here is a pure function over ``Decimal`` amounts. Callers are
responsible for checking the points balance before asking for a discount.
"""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal

from .exceptions import InvalidInput
from .models import VoucherType

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineInput:
    unit_price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    tax_amount: Decimal
    points_discount: Decimal
    voucher_discount: Decimal
    total: Decimal
    points_earned: int

    @property
    def discount_amount(self) -> Decimal:
        return self.points_discount + self.voucher_discount


def validate_lines(lines) -> list[LineInput]:
    checked = []
    for index, line in enumerate(lines):
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity < 1:
            raise InvalidInput("Quantity must be a positive whole number", field=f"items.{index}.quantity")
        if line.unit_price is None or Decimal(line.unit_price) < 0:
            raise InvalidInput("Unit price cannot be negative", field=f"items.{index}.unit_price")
        checked.append(LineInput(unit_price=Decimal(line.unit_price), quantity=line.quantity))
    return checked


def subtotal_of(lines) -> Decimal:
    return to_money(sum((line.line_total for line in lines), ZERO))


def points_to_money(points: int, points_per_redemption: int) -> Decimal:
    if points_per_redemption < 1:
        raise InvalidInput("Points per redemption must be at least 1", field="points_per_redemption")
    return to_money(Decimal(points) / Decimal(points_per_redemption))


def voucher_discount(voucher_type: str, value: Decimal, subtotal: Decimal, lines) -> Decimal:
    value = Decimal(value)
    if voucher_type == VoucherType.FIXED_AMOUNT:
        return to_money(value)
    if voucher_type == VoucherType.PERCENTAGE_OFF:
        return to_money(subtotal * value / Decimal("100"))
    if voucher_type == VoucherType.FREE_DRINK:
        highest = max((line.unit_price for line in lines), default=ZERO)
        return to_money(min(value, highest))
    if voucher_type == VoucherType.FREE_UPGRADE:
        return to_money(value)
    raise InvalidInput(f"Unknown voucher type {voucher_type}", field="voucher_code")


def points_earned_for(total: Decimal, points_per_dollar: int) -> int:
    # truncate so a customer is never over-credited
    return int((total * points_per_dollar).to_integral_value(rounding=ROUND_FLOOR))


def price_order(
    lines,
    tax_rate,
    points_per_dollar: int,
    points_per_redemption: int,
    points_to_redeem: int = 0,
    voucher=None,
) -> PriceBreakdown:
    """Price a cart.

    ``voucher`` is an optional ``(type, value)`` pair for a voucher applied at
    checkout. The total never goes below zero, and points are earned on the
    post-discount total.
    """
    if isinstance(points_to_redeem, bool) or not isinstance(points_to_redeem, int) or points_to_redeem < 0:
        raise InvalidInput("Points to redeem must be a non-negative whole number", field="points_to_redeem")
    tax_rate = Decimal(str(tax_rate))
    if not ZERO <= tax_rate <= 1:
        raise InvalidInput("Tax rate must be between 0 and 1", field="tax_rate")

    checked = validate_lines(lines)
    subtotal = subtotal_of(checked)
    tax_amount = to_money(subtotal * tax_rate)
    points_discount = points_to_money(points_to_redeem, points_per_redemption)
    from_voucher = ZERO
    if voucher is not None:
        voucher_type, value = voucher
        from_voucher = voucher_discount(voucher_type, value, subtotal, checked)

    total = max(ZERO, subtotal + tax_amount - points_discount - from_voucher)
    total = to_money(total)
    return PriceBreakdown(
        subtotal=subtotal,
        tax_amount=tax_amount,
        points_discount=points_discount,
        voucher_discount=from_voucher,
        total=total,
        points_earned=points_earned_for(total, points_per_dollar),
    )
