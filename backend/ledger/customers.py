import re
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from .exceptions import NotFound
from .models import Customer

_PHONE_NOISE = re.compile(r"[\s\-()]")


def normalize_phone(phone: str) -> str:
    return _PHONE_NOISE.sub("", phone or "")


def get_or_create_customer(user) -> Customer:
    """Return the user's loyalty profile, creating it on first access."""
    customer = Customer.objects.filter(user=user).first()
    if customer is not None:
        return customer
    try:
        with transaction.atomic():
            return Customer.objects.create(user=user, phone=normalize_phone(getattr(user, "phone", "")))
    except IntegrityError:
        # created by a concurrent request
        return Customer.objects.get(user=user)


def get_customer(customer_id) -> Customer:
    try:
        return Customer.objects.select_related("user").get(pk=customer_id)
    except (Customer.DoesNotExist, ValueError, TypeError):
        raise NotFound("Customer not found", field="customer_id") from None


def lookup_by_phone(phone: str) -> Customer | None:
    normalized = normalize_phone(phone)
    if not normalized:
        return None
    return (
        Customer.objects.select_related("user")
        .filter(Q(phone__contains=normalized) | Q(user__phone__contains=normalized))
        .order_by("id")
        .first()
    )


def record_order_totals(customer_id, total: Decimal) -> None:
    Customer.objects.filter(pk=customer_id).update(
        lifetime_spend=F("lifetime_spend") + total,
        total_orders=F("total_orders") + 1,
        updated_at=timezone.now(),
    )
