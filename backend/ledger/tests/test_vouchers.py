from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone

from .. import points, vouchers
from ..catalog import DEFAULTS, build_catalog, get_catalog
from ..exceptions import AlreadyUsed, Expired, InsufficientPoints, Internal, NotFound
from ..models import PointTransaction, PointTransactionType, Voucher, VoucherStatus, VoucherType
from .helpers import make_cafe, make_customer


class CatalogTests(SimpleTestCase):
    def test_default_catalog_loaded(self):
        catalog = get_catalog()
        self.assertEqual(len(catalog), len(DEFAULTS["VOUCHER_CATALOG"]))
        entry = catalog.get("five-off")
        self.assertEqual(entry.type, VoucherType.FIXED_AMOUNT)
        self.assertEqual(entry.value, Decimal("5"))
        self.assertEqual(entry.points_cost, 400)

    def test_entries_are_immutable(self):
        entry = get_catalog().get("free-coffee")
        with self.assertRaises(AttributeError):
            entry.points_cost = 1

    def test_unknown_type_rejected(self):
        with self.assertRaises(ImproperlyConfigured):
            build_catalog([{"id": "x", "type": "CASHBACK", "value": "1", "points_cost": 10}])

    def test_duplicate_ids_rejected(self):
        raw = {"id": "x", "type": "FREE_UPGRADE", "value": "1", "points_cost": 10}
        with self.assertRaises(ImproperlyConfigured):
            build_catalog([raw, dict(raw)])

    def test_missing_cost_rejected(self):
        with self.assertRaises(ImproperlyConfigured):
            build_catalog([{"id": "x", "type": "FREE_UPGRADE", "value": "1"}])

    @override_settings(
        SIPPY={"VOUCHER_CATALOG": [{"id": "pastry", "type": "FIXED_AMOUNT", "value": "3", "points_cost": 150}]}
    )
    def test_catalog_follows_settings(self):
        catalog = get_catalog()
        self.assertEqual([entry.id for entry in catalog], ["pastry"])


class ClaimTests(TestCase):
    def setUp(self):
        self.cafe = make_cafe()
        self.customer = make_customer()
        points.earn(self.customer.pk, self.cafe.pk, 1000)

    def test_claim_spends_points_and_issues_voucher(self):
        now = timezone.now()
        result = vouchers.claim(self.customer.pk, "five-off", now=now)

        self.assertEqual(result.new_balance, 600)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.points_balance, 600)

        voucher = result.voucher
        self.assertEqual(voucher.status, VoucherStatus.ACTIVE)
        self.assertEqual(voucher.type, VoucherType.FIXED_AMOUNT)
        self.assertEqual(voucher.points_cost, 400)
        self.assertEqual(voucher.expires_at, now + timedelta(days=90))
        self.assertEqual(len(voucher.code), 8)
        self.assertTrue(set(voucher.code) <= set(DEFAULTS["VOUCHER_CODE_ALPHABET"]))

        spent = PointTransaction.objects.filter(customer=self.customer).order_by("-id").first()
        self.assertEqual(spent.type, PointTransactionType.REDEEM)
        self.assertEqual(spent.points, -400)
        self.assertEqual(spent.balance_after, 600)

    def test_claim_with_insufficient_points(self):
        vouchers.claim(self.customer.pk, "ten-off")
        with self.assertRaises(InsufficientPoints):
            vouchers.claim(self.customer.pk, "ten-off")

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.points_balance, 250)
        self.assertEqual(Voucher.objects.count(), 1)

    def test_claim_unknown_entry(self):
        with self.assertRaises(NotFound):
            vouchers.claim(self.customer.pk, "free-car")
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.points_balance, 1000)

    def test_code_collision_is_retried(self):
        Voucher.objects.create(
            customer=self.customer,
            code="AAAAAAAA",
            type=VoucherType.FREE_UPGRADE,
            value=Decimal("1"),
            points_cost=200,
            expires_at=timezone.now() + timedelta(days=1),
        )
        with mock.patch.object(vouchers, "generate_voucher_code", side_effect=["AAAAAAAA", "BBBBBBBB"]):
            result = vouchers.claim(self.customer.pk, "free-upgrade")

        self.assertEqual(result.voucher.code, "BBBBBBBB")
        self.assertEqual(Voucher.objects.filter(code="AAAAAAAA").count(), 1)

    def test_exhausted_code_attempts_roll_back(self):
        Voucher.objects.create(
            customer=self.customer,
            code="AAAAAAAA",
            type=VoucherType.FREE_UPGRADE,
            value=Decimal("1"),
            points_cost=200,
            expires_at=timezone.now() + timedelta(days=1),
        )
        with mock.patch.object(vouchers, "generate_voucher_code", return_value="AAAAAAAA"):
            with self.assertRaises(Internal):
                vouchers.claim(self.customer.pk, "free-upgrade")

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.points_balance, 1000)
        self.assertEqual(Voucher.objects.count(), 1)

    def test_codes_are_unique(self):
        codes = {vouchers.claim(self.customer.pk, "free-upgrade").voucher.code for _ in range(5)}
        self.assertEqual(len(codes), 5)


class RedeemVoucherTests(TestCase):
    def setUp(self):
        self.cafe = make_cafe()
        self.customer = make_customer()
        points.earn(self.customer.pk, self.cafe.pk, 500)
        self.voucher = vouchers.claim(self.customer.pk, "free-coffee").voucher

    def test_second_redeem_fails(self):
        used = vouchers.redeem(self.voucher.code)
        self.assertEqual(used.status, VoucherStatus.USED)
        self.assertIsNotNone(used.used_at)

        with self.assertRaises(AlreadyUsed):
            vouchers.redeem(self.voucher.code)

    def test_code_lookup_ignores_case_and_spaces(self):
        used = vouchers.redeem(f"  {self.voucher.code.lower()} ")
        self.assertEqual(used.pk, self.voucher.pk)

    def test_expired_voucher_is_not_mutated(self):
        Voucher.objects.filter(pk=self.voucher.pk).update(expires_at=timezone.now() - timedelta(minutes=1))

        with self.assertRaises(Expired):
            vouchers.redeem(self.voucher.code)

        self.voucher.refresh_from_db()
        self.assertEqual(self.voucher.status, VoucherStatus.ACTIVE)
        self.assertIsNone(self.voucher.used_at)
        self.assertEqual(self.voucher.effective_status, VoucherStatus.EXPIRED)

    def test_unknown_code(self):
        with self.assertRaises(NotFound):
            vouchers.redeem("NOPE2345")

    def test_other_customers_voucher_is_hidden(self):
        stranger = make_customer("stranger")
        with self.assertRaises(NotFound):
            vouchers.redeem(self.voucher.code, customer_id=stranger.pk)

    def test_active_vouchers_filters_dead_ones(self):
        points.earn(self.customer.pk, self.cafe.pk, 1000)
        expired = vouchers.claim(self.customer.pk, "free-upgrade").voucher
        Voucher.objects.filter(pk=expired.pk).update(expires_at=timezone.now() - timedelta(days=1))
        used = vouchers.claim(self.customer.pk, "five-off").voucher
        vouchers.redeem(used.code)

        active = list(vouchers.active_vouchers(self.customer.pk))
        self.assertEqual(active, [self.voucher])
