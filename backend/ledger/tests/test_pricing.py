from decimal import Decimal

from django.test import SimpleTestCase

from ..exceptions import InvalidInput
from ..models import VoucherType
from ..pricing import LineInput, points_earned_for, price_order, voucher_discount


def lines(*pairs):
    return [LineInput(unit_price=Decimal(price), quantity=qty) for price, qty in pairs]


class PriceOrderTests(SimpleTestCase):
    def price(self, items, **kwargs):
        options = {
            "tax_rate": Decimal("0.10"),
            "points_per_dollar": 1,
            "points_per_redemption": 100,
        }
        options.update(kwargs)
        return price_order(items, **options)

    def test_two_items_with_tax(self):
        breakdown = self.price(lines(("5.00", 1), ("3.00", 1)))
        self.assertEqual(breakdown.subtotal, Decimal("8.00"))
        self.assertEqual(breakdown.tax_amount, Decimal("0.80"))
        self.assertEqual(breakdown.discount_amount, Decimal("0.00"))
        self.assertEqual(breakdown.total, Decimal("8.80"))
        self.assertEqual(breakdown.points_earned, 8)

    def test_points_discount_applies_before_earning(self):
        breakdown = self.price(lines(("5.00", 1), ("3.00", 1)), points_to_redeem=400)
        self.assertEqual(breakdown.points_discount, Decimal("4.00"))
        self.assertEqual(breakdown.total, Decimal("4.80"))
        self.assertEqual(breakdown.points_earned, 4)

    def test_quantity_multiplies_line(self):
        breakdown = self.price(lines(("2.50", 3)), tax_rate=Decimal("0"))
        self.assertEqual(breakdown.subtotal, Decimal("7.50"))
        self.assertEqual(breakdown.total, Decimal("7.50"))

    def test_total_clamps_at_zero(self):
        breakdown = self.price(lines(("5.00", 1)), points_to_redeem=5000)
        self.assertEqual(breakdown.points_discount, Decimal("50.00"))
        self.assertEqual(breakdown.total, Decimal("0.00"))
        self.assertEqual(breakdown.points_earned, 0)

    def test_total_matches_formula_across_inputs(self):
        carts = [
            lines(("4.20", 2)),
            lines(("12.00", 1), ("0.99", 5)),
            lines(("0.00", 1)),
            lines(("7.35", 3), ("1.10", 1)),
        ]
        for cart in carts:
            for redeem in (0, 1, 99, 250, 1000, 100000):
                with self.subTest(cart=cart, redeem=redeem):
                    b = self.price(cart, tax_rate=Decimal("0.06"), points_to_redeem=redeem)
                    expected = max(Decimal("0"), b.subtotal + b.tax_amount - b.discount_amount)
                    self.assertEqual(b.total, expected.quantize(Decimal("0.01")))
                    self.assertGreaterEqual(b.total, 0)
                    self.assertIsInstance(b.points_earned, int)

    def test_points_earned_truncates(self):
        self.assertEqual(points_earned_for(Decimal("8.99"), 1), 8)
        self.assertEqual(points_earned_for(Decimal("8.99"), 2), 17)
        self.assertEqual(points_earned_for(Decimal("0.99"), 1), 0)

    def test_rejects_zero_quantity(self):
        with self.assertRaises(InvalidInput) as ctx:
            self.price(lines(("5.00", 0)))
        self.assertEqual(ctx.exception.field, "items.0.quantity")

    def test_rejects_negative_price(self):
        with self.assertRaises(InvalidInput) as ctx:
            self.price(lines(("5.00", 1), ("-1.00", 1)))
        self.assertEqual(ctx.exception.field, "items.1.unit_price")

    def test_rejects_negative_points(self):
        with self.assertRaises(InvalidInput):
            self.price(lines(("5.00", 1)), points_to_redeem=-1)

    def test_rejects_tax_rate_outside_fraction(self):
        with self.assertRaises(InvalidInput):
            self.price(lines(("5.00", 1)), tax_rate=Decimal("1.5"))

    def test_voucher_discount_is_added(self):
        breakdown = self.price(
            lines(("5.00", 1), ("3.00", 1)),
            voucher=(VoucherType.FIXED_AMOUNT, Decimal("5")),
        )
        self.assertEqual(breakdown.voucher_discount, Decimal("5.00"))
        self.assertEqual(breakdown.total, Decimal("3.80"))
        self.assertEqual(breakdown.points_earned, 3)


class VoucherDiscountTests(SimpleTestCase):
    def test_percentage_off_uses_subtotal(self):
        amount = voucher_discount(VoucherType.PERCENTAGE_OFF, Decimal("15"), Decimal("20.00"), [])
        self.assertEqual(amount, Decimal("3.00"))

    def test_free_drink_capped_by_highest_price(self):
        cart = lines(("4.00", 1), ("2.00", 2))
        amount = voucher_discount(VoucherType.FREE_DRINK, Decimal("5.50"), Decimal("8.00"), cart)
        self.assertEqual(amount, Decimal("4.00"))

    def test_free_drink_capped_by_value(self):
        cart = lines(("7.00", 1))
        amount = voucher_discount(VoucherType.FREE_DRINK, Decimal("5.50"), Decimal("7.00"), cart)
        self.assertEqual(amount, Decimal("5.50"))

    def test_free_upgrade_is_its_value(self):
        amount = voucher_discount(VoucherType.FREE_UPGRADE, Decimal("1"), Decimal("7.00"), [])
        self.assertEqual(amount, Decimal("1.00"))
