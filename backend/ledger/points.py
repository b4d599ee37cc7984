"""Points ledger.

Every balance change is a conditional ``UPDATE`` on the customer row followed
by an appended ``PointTransaction`` carrying the post-change balance, both in
one transaction. The redeem path never reads the balance before writing it:
the ``points_balance >= n`` guard in the ``UPDATE`` is the check.
"""

import logging
from dataclasses import dataclass

from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone

from .exceptions import InsufficientPoints, InvalidInput, NotFound
from .models import Customer, PointTransaction, PointTransactionType
from .tiers import refresh_tier

logger = logging.getLogger("sippy.points")

HISTORY_LIMIT = 50


def _require_positive_points(points) -> None:
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise InvalidInput("Points must be a positive whole number", field="points")


def _reload(customer_id) -> Customer:
    return Customer.objects.select_for_update().get(pk=customer_id)


@transaction.atomic
def earn(customer_id, cafe_id, points: int, order_id=None, description: str = "") -> PointTransaction:
    _require_positive_points(points)
    updated = Customer.objects.filter(pk=customer_id).update(
        points_balance=F("points_balance") + points,
        lifetime_points=F("lifetime_points") + points,
        updated_at=timezone.now(),
    )
    if not updated:
        raise NotFound("Customer not found", field="customer_id")

    customer = _reload(customer_id)
    entry = PointTransaction.objects.create(
        customer=customer,
        cafe_id=cafe_id,
        order_id=order_id,
        type=PointTransactionType.EARN,
        points=points,
        balance_after=customer.points_balance,
        description=description,
    )
    old_tier = customer.tier
    if refresh_tier(customer):
        logger.info("Customer %s moved from %s to %s", customer.pk, old_tier, customer.tier)
    logger.info("Customer %s earned %s points, balance %s", customer.pk, points, entry.balance_after)
    return entry


@transaction.atomic
def redeem(customer_id, cafe_id, points: int, description: str = "", order_id=None) -> PointTransaction:
    _require_positive_points(points)
    updated = Customer.objects.filter(pk=customer_id, points_balance__gte=points).update(
        points_balance=F("points_balance") - points,
        updated_at=timezone.now(),
    )
    if not updated:
        if not Customer.objects.filter(pk=customer_id).exists():
            raise NotFound("Customer not found", field="customer_id")
        logger.info("Customer %s cannot redeem %s points", customer_id, points)
        raise InsufficientPoints(f"Not enough points to redeem {points}", field="points")

    customer = _reload(customer_id)
    entry = PointTransaction.objects.create(
        customer=customer,
        cafe_id=cafe_id,
        order_id=order_id,
        type=PointTransactionType.REDEEM,
        points=-points,
        balance_after=customer.points_balance,
        description=description,
    )
    logger.info("Customer %s redeemed %s points, balance %s", customer.pk, points, entry.balance_after)
    return entry


def history(customer_id, limit: int = HISTORY_LIMIT):
    return (
        PointTransaction.objects.filter(customer_id=customer_id)
        .select_related("cafe")
        .order_by("-created_at", "-id")[:limit]
    )


def replay_balance(customer_id) -> int:
    total = PointTransaction.objects.filter(customer_id=customer_id).aggregate(total=Sum("points"))["total"]
    return total or 0


@dataclass(frozen=True)
class LedgerAudit:
    customer_id: int
    stored_balance: int
    replayed_balance: int
    broken_transaction_id: int | None = None

    @property
    def is_consistent(self) -> bool:
        return self.broken_transaction_id is None and self.stored_balance == self.replayed_balance


def verify_ledger(customer_id) -> LedgerAudit:
    """Walk the log in creation order, checking each snapshot against the running sum."""
    try:
        stored = Customer.objects.values_list("points_balance", flat=True).get(pk=customer_id)
    except Customer.DoesNotExist:
        raise NotFound("Customer not found", field="customer_id") from None

    running = 0
    broken = None
    rows = PointTransaction.objects.filter(customer_id=customer_id).order_by("created_at", "id")
    for entry_id, points, balance_after in rows.values_list("id", "points", "balance_after"):
        running += points
        if running < 0 or running != balance_after:
            broken = entry_id
            break
    if broken is not None:
        logger.warning("Ledger for customer %s breaks at transaction %s", customer_id, broken)
    return LedgerAudit(
        customer_id=customer_id,
        stored_balance=stored,
        replayed_balance=running,
        broken_transaction_id=broken,
    )
