from django.test import SimpleTestCase, TestCase

from ..models import LoyaltyTier
from ..tiers import classify_tier, refresh_tier, tier_rank
from .helpers import make_customer


class ClassifyTierTests(SimpleTestCase):
    def test_thresholds(self):
        cases = [
            (0, LoyaltyTier.BRONZE),
            (999, LoyaltyTier.BRONZE),
            (1000, LoyaltyTier.SILVER),
            (4999, LoyaltyTier.SILVER),
            (5000, LoyaltyTier.GOLD),
            (14999, LoyaltyTier.GOLD),
            (15000, LoyaltyTier.PLATINUM),
            (250000, LoyaltyTier.PLATINUM),
        ]
        for points, tier in cases:
            with self.subTest(points=points):
                self.assertEqual(classify_tier(points), tier)

    def test_classification_is_monotonic(self):
        previous = tier_rank(classify_tier(0))
        for points in range(0, 20001, 50):
            rank = tier_rank(classify_tier(points))
            self.assertGreaterEqual(rank, previous, points)
            previous = rank

    def test_rank_order(self):
        ranks = [tier_rank(t) for t in (LoyaltyTier.BRONZE, LoyaltyTier.SILVER, LoyaltyTier.GOLD, LoyaltyTier.PLATINUM)]
        self.assertEqual(ranks, sorted(ranks))
        self.assertEqual(len(set(ranks)), 4)


class RefreshTierTests(TestCase):
    def test_persists_changed_tier(self):
        customer = make_customer(lifetime_points=5200)
        self.assertTrue(refresh_tier(customer))
        customer.refresh_from_db()
        self.assertEqual(customer.tier, LoyaltyTier.GOLD)

    def test_unchanged_tier_is_not_saved(self):
        customer = make_customer(lifetime_points=10)
        self.assertFalse(refresh_tier(customer))
        self.assertEqual(customer.tier, LoyaltyTier.BRONZE)
