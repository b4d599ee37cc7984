import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta

from django.db import IntegrityError, transaction
from django.utils import timezone

from . import points
from .catalog import get_catalog, sippy_setting
from .exceptions import AlreadyUsed, Expired, Internal, NotFound
from .models import Voucher, VoucherStatus

logger = logging.getLogger("sippy.vouchers")


def generate_voucher_code() -> str:
    alphabet = sippy_setting("VOUCHER_CODE_ALPHABET")
    length = sippy_setting("VOUCHER_CODE_LENGTH")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


@dataclass(frozen=True)
class ClaimResult:
    voucher: Voucher
    new_balance: int


def _create_with_unique_code(**fields) -> Voucher:
    max_attempts = sippy_setting("VOUCHER_CODE_MAX_ATTEMPTS")
    for attempt in range(1, max_attempts + 1):
        code = generate_voucher_code()
        try:
            with transaction.atomic():
                return Voucher.objects.create(code=code, **fields)
        except IntegrityError:
            logger.warning("Voucher code collision on attempt %s/%s", attempt, max_attempts)
    raise Internal("Could not generate a unique voucher code")


@transaction.atomic
def claim(customer_id, catalog_entry_id: str, now=None) -> ClaimResult:
    """Spend points on a catalog reward and issue the voucher for it."""
    entry = get_catalog().get(catalog_entry_id)
    if entry is None:
        raise NotFound("Unknown reward", field="catalog_entry_id")

    now = now or timezone.now()
    spent = points.redeem(
        customer_id,
        None,
        entry.points_cost,
        description=f"Claimed voucher: {entry.name}",
    )
    voucher = _create_with_unique_code(
        customer_id=customer_id,
        catalog_entry_id=entry.id,
        name=entry.name,
        type=entry.type,
        value=entry.value,
        points_cost=entry.points_cost,
        status=VoucherStatus.ACTIVE,
        expires_at=now + timedelta(days=sippy_setting("VOUCHER_EXPIRY_DAYS")),
    )
    logger.info("Customer %s claimed voucher %s (%s)", customer_id, voucher.code, entry.id)
    return ClaimResult(voucher=voucher, new_balance=spent.balance_after)


def get_voucher(code: str, customer_id=None) -> Voucher:
    voucher = Voucher.objects.filter(code=normalize_code(code)).first()
    if voucher is None or (customer_id is not None and voucher.customer_id != customer_id):
        raise NotFound("Voucher not found", field="code")
    return voucher


def check_usable(voucher: Voucher, now=None) -> None:
    if voucher.status == VoucherStatus.USED:
        raise AlreadyUsed(field="code")
    if voucher.status == VoucherStatus.EXPIRED or voucher.is_expired(now):
        raise Expired(field="code")


@transaction.atomic
def redeem(code: str, customer_id=None, now=None) -> Voucher:
    """Mark a voucher USED. Dead vouchers fail without any write."""
    now = now or timezone.now()
    voucher = get_voucher(code, customer_id=customer_id)
    check_usable(voucher, now)

    updated = Voucher.objects.filter(pk=voucher.pk, status=VoucherStatus.ACTIVE).update(
        status=VoucherStatus.USED,
        used_at=now,
        updated_at=now,
    )
    if not updated:
        raise AlreadyUsed(field="code")
    voucher.refresh_from_db()
    logger.info("Voucher %s redeemed", voucher.code)
    return voucher


def active_vouchers(customer_id, now=None):
    return Voucher.objects.usable(now).filter(customer_id=customer_id).order_by("expires_at", "id")
