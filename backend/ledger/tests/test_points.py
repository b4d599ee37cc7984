from unittest import mock

from django.test import TestCase

from .. import points
from ..exceptions import InsufficientPoints, InvalidInput, NotFound
from ..models import Customer, LoyaltyTier, PointTransaction, PointTransactionType
from .helpers import make_cafe, make_customer


class EarnTests(TestCase):
    def setUp(self):
        self.cafe = make_cafe()
        self.customer = make_customer()

    def test_earn_increments_balance_and_lifetime(self):
        entry = points.earn(self.customer.pk, self.cafe.pk, 120, description="Welcome bonus")

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.points_balance, 120)
        self.assertEqual(self.customer.lifetime_points, 120)
        self.assertEqual(entry.type, PointTransactionType.EARN)
        self.assertEqual(entry.points, 120)
        self.assertEqual(entry.balance_after, 120)
        self.assertEqual(entry.cafe_id, self.cafe.pk)
        self.assertEqual(entry.description, "Welcome bonus")

    def test_earn_requires_positive_points(self):
        for bad in (0, -5, 1.5, True):
            with self.subTest(points=bad):
                with self.assertRaises(InvalidInput):
                    points.earn(self.customer.pk, self.cafe.pk, bad)
        self.assertFalse(PointTransaction.objects.exists())

    def test_earn_unknown_customer(self):
        with self.assertRaises(NotFound):
            points.earn(999999, self.cafe.pk, 10)

    def test_crossing_threshold_upgrades_tier(self):
        customer = make_customer("nearly-silver", lifetime_points=999)
        points.earn(customer.pk, self.cafe.pk, 1)

        customer.refresh_from_db()
        self.assertEqual(customer.lifetime_points, 1000)
        self.assertEqual(customer.tier, LoyaltyTier.SILVER)

    def test_failed_append_rolls_back_balance(self):
        with mock.patch.object(PointTransaction.objects, "create", side_effect=RuntimeError("disk full")):
            with self.assertRaises(RuntimeError):
                points.earn(self.customer.pk, self.cafe.pk, 50)

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.points_balance, 0)
        self.assertEqual(self.customer.lifetime_points, 0)


class RedeemTests(TestCase):
    def setUp(self):
        self.cafe = make_cafe()
        self.customer = make_customer()
        points.earn(self.customer.pk, self.cafe.pk, 50)

    def test_redeem_more_than_balance_fails_without_writes(self):
        with self.assertRaises(InsufficientPoints):
            points.redeem(self.customer.pk, self.cafe.pk, 100)

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.points_balance, 50)
        self.assertEqual(PointTransaction.objects.filter(customer=self.customer).count(), 1)

    def test_redeem_appends_negative_entry(self):
        entry = points.redeem(self.customer.pk, self.cafe.pk, 30, description="Discount")

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.points_balance, 20)
        self.assertEqual(entry.type, PointTransactionType.REDEEM)
        self.assertEqual(entry.points, -30)
        self.assertEqual(entry.balance_after, 20)

    def test_redeem_whole_balance(self):
        entry = points.redeem(self.customer.pk, self.cafe.pk, 50)
        self.assertEqual(entry.balance_after, 0)

    def test_redeem_keeps_lifetime_and_tier(self):
        points.redeem(self.customer.pk, self.cafe.pk, 40)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.lifetime_points, 50)
        self.assertEqual(self.customer.tier, LoyaltyTier.BRONZE)

    def test_redeem_unknown_customer(self):
        with self.assertRaises(NotFound):
            points.redeem(999999, self.cafe.pk, 1)

    def test_stale_balance_cannot_overdraw(self):
        stale = Customer.objects.get(pk=self.customer.pk)
        points.redeem(self.customer.pk, self.cafe.pk, 40)

        # the stale copy still says 50, the guarded update does not care
        self.assertEqual(stale.points_balance, 50)
        with self.assertRaises(InsufficientPoints):
            points.redeem(stale.pk, self.cafe.pk, 40)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.points_balance, 10)


class LedgerReplayTests(TestCase):
    def setUp(self):
        self.cafe = make_cafe()
        self.customer = make_customer()

    def test_replay_reconstructs_balance(self):
        operations = [("earn", 100), ("redeem", 30), ("earn", 5), ("redeem", 75), ("redeem", 10), ("earn", 400)]
        for op, amount in operations:
            try:
                getattr(points, op)(self.customer.pk, self.cafe.pk, amount)
            except InsufficientPoints:
                pass

        self.customer.refresh_from_db()
        self.assertEqual(points.replay_balance(self.customer.pk), self.customer.points_balance)

        running = 0
        for entry in PointTransaction.objects.filter(customer=self.customer).order_by("created_at", "id"):
            running += entry.points
            self.assertEqual(entry.balance_after, running)
            self.assertGreaterEqual(entry.balance_after, 0)

        audit = points.verify_ledger(self.customer.pk)
        self.assertTrue(audit.is_consistent)
        self.assertEqual(audit.replayed_balance, self.customer.points_balance)

    def test_audit_flags_balance_changed_outside_ledger(self):
        points.earn(self.customer.pk, self.cafe.pk, 10)
        Customer.objects.filter(pk=self.customer.pk).update(points_balance=999)

        audit = points.verify_ledger(self.customer.pk)
        self.assertFalse(audit.is_consistent)
        self.assertEqual(audit.stored_balance, 999)
        self.assertEqual(audit.replayed_balance, 10)

    def test_history_is_newest_first(self):
        points.earn(self.customer.pk, self.cafe.pk, 10, description="first")
        points.earn(self.customer.pk, self.cafe.pk, 20, description="second")
        descriptions = [entry.description for entry in points.history(self.customer.pk)]
        self.assertEqual(descriptions, ["second", "first"])


class AppendOnlyTests(TestCase):
    def setUp(self):
        cafe = make_cafe()
        customer = make_customer()
        self.entry = points.earn(customer.pk, cafe.pk, 10)

    def test_entries_cannot_be_edited(self):
        self.entry.description = "changed"
        with self.assertRaises(TypeError):
            self.entry.save()

    def test_entries_cannot_be_deleted(self):
        with self.assertRaises(TypeError):
            self.entry.delete()
        with self.assertRaises(TypeError):
            PointTransaction.objects.all().delete()
        with self.assertRaises(TypeError):
            PointTransaction.objects.filter(pk=self.entry.pk).update(points=1)
