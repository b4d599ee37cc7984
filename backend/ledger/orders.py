"""Order placement and the order status state machine.

``place_order`` validates everything up front, then writes the order, its
items, the voucher and points side effects and the customer counters inside a
single transaction. Any failure rolls the whole order back.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from . import points, pricing, vouchers
from .customers import get_customer, record_order_totals
from .exceptions import InsufficientPoints, InvalidInput, InvalidTransition, NotFound
from .models import Cafe, ModifierOption, Order, OrderItem, OrderStatus, OrderType, Product

logger = logging.getLogger("sippy.orders")

TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

# list filters accepted alongside the raw statuses
STATUS_GROUPS = {
    "active": (OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY),
    "completed": (OrderStatus.COMPLETED, OrderStatus.CANCELLED),
}


@dataclass(frozen=True)
class ItemRequest:
    quantity: int
    product_id: int | None = None
    name: str = ""
    unit_price: Decimal | None = None
    modifier_option_ids: tuple[int, ...] = ()
    notes: str = ""


@dataclass(frozen=True)
class OrderRequest:
    cafe_id: int
    items: tuple[ItemRequest, ...]
    customer_id: int | None = None
    points_to_redeem: int = 0
    voucher_code: str = ""
    order_type: str = OrderType.TAKEAWAY
    notes: str = ""
    placed_by: object = field(default=None, compare=False)


@dataclass(frozen=True)
class _ResolvedLine:
    product: Product | None
    name: str
    unit_price: Decimal
    quantity: int
    modifiers: list
    notes: str


def _get_cafe(cafe_id) -> Cafe:
    try:
        cafe = Cafe.objects.get(pk=cafe_id)
    except (Cafe.DoesNotExist, ValueError, TypeError):
        raise NotFound("Cafe not found", field="cafe_id") from None
    if not cafe.is_active:
        raise InvalidInput("Cafe is not accepting orders", field="cafe_id")
    return cafe


def _resolve_lines(cafe: Cafe, items, allow_free_form: bool = False) -> list[_ResolvedLine]:
    """Price lines from the menu. Free-form lines are a till feature and need cafe staff."""
    product_ids = {item.product_id for item in items if item.product_id is not None}
    products = {p.pk: p for p in Product.objects.filter(cafe=cafe, pk__in=product_ids)}
    option_ids = {oid for item in items for oid in item.modifier_option_ids}
    options = {
        o.pk: o
        for o in ModifierOption.objects.select_related("modifier").filter(pk__in=option_ids)
    }

    lines = []
    for index, item in enumerate(items):
        prefix = f"items.{index}"
        if item.product_id is None:
            if not allow_free_form:
                raise InvalidInput("Items must reference a menu product", field=f"{prefix}.product_id")
            if not item.name or item.unit_price is None:
                raise InvalidInput("Items without a product need a name and unit price", field=prefix)
            if item.modifier_option_ids:
                raise InvalidInput("Modifiers need a product", field=f"{prefix}.modifiers")
            lines.append(
                _ResolvedLine(None, item.name, Decimal(item.unit_price), item.quantity, [], item.notes)
            )
            continue

        product = products.get(item.product_id)
        if product is None:
            raise NotFound("Product not found", field=f"{prefix}.product_id")
        if not product.is_available:
            raise InvalidInput(f"{product.name} is not available", field=f"{prefix}.product_id")

        unit_price = product.price
        chosen = []
        for option_id in item.modifier_option_ids:
            option = options.get(option_id)
            if option is None or option.modifier.product_id != product.pk:
                raise InvalidInput("Unknown modifier option", field=f"{prefix}.modifiers")
            unit_price += option.price
            chosen.append({"modifier": option.modifier.name, "option": option.name, "price": str(option.price)})
        lines.append(_ResolvedLine(product, product.name, unit_price, item.quantity, chosen, item.notes))
    return lines


def next_order_number(cafe: Cafe) -> str:
    """Cafe initial plus the cafe's next sequence number, e.g. ``D-0042``."""
    Cafe.objects.filter(pk=cafe.pk).update(order_sequence=F("order_sequence") + 1)
    sequence = Cafe.objects.values_list("order_sequence", flat=True).get(pk=cafe.pk)
    initial = next((ch for ch in cafe.name.upper() if ch.isalnum()), "A")
    return f"{initial}-{sequence:04d}"


@transaction.atomic
def place_order(request: OrderRequest) -> Order:
    cafe = _get_cafe(request.cafe_id)
    if not request.items:
        raise InvalidInput("An order needs at least one item", field="items")
    if request.order_type not in OrderType.values:
        raise InvalidInput("Unknown order type", field="order_type")

    staff_order = bool(getattr(request.placed_by, "is_cafe_staff", False))
    lines = _resolve_lines(cafe, request.items, allow_free_form=staff_order)

    customer = get_customer(request.customer_id) if request.customer_id is not None else None
    if customer is None and request.points_to_redeem:
        raise InvalidInput("Guest orders cannot redeem points", field="points_to_redeem")
    if customer is None and request.voucher_code:
        raise InvalidInput("Guest orders cannot use vouchers", field="voucher_code")

    voucher = None
    if request.voucher_code:
        voucher = vouchers.get_voucher(request.voucher_code, customer_id=customer.pk)
        vouchers.check_usable(voucher)

    breakdown = pricing.price_order(
        [pricing.LineInput(unit_price=line.unit_price, quantity=line.quantity) for line in lines],
        tax_rate=cafe.tax_rate,
        points_per_dollar=cafe.points_per_dollar,
        points_per_redemption=cafe.points_per_redemption,
        points_to_redeem=request.points_to_redeem,
        voucher=(voucher.type, voucher.value) if voucher else None,
    )
    if request.points_to_redeem and request.points_to_redeem > customer.points_balance:
        raise InsufficientPoints(f"Not enough points to redeem {request.points_to_redeem}", field="points_to_redeem")

    if voucher is not None:
        voucher = vouchers.redeem(voucher.code, customer_id=customer.pk)

    order = Order.objects.create(
        cafe=cafe,
        customer=customer,
        placed_by=request.placed_by,
        voucher=voucher,
        order_number=next_order_number(cafe),
        order_type=request.order_type,
        status=OrderStatus.PENDING,
        subtotal=breakdown.subtotal,
        tax_amount=breakdown.tax_amount,
        discount_amount=breakdown.discount_amount,
        total=breakdown.total,
        points_earned=breakdown.points_earned if customer else 0,
        points_redeemed=request.points_to_redeem,
        notes=request.notes,
    )
    OrderItem.objects.bulk_create(
        [
            OrderItem(
                order=order,
                product=line.product,
                name=line.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total=pricing.to_money(line.unit_price * line.quantity),
                modifiers=line.modifiers,
                notes=line.notes,
            )
            for line in lines
        ]
    )

    if customer is not None:
        # the conditional decrement in points.redeem is the authoritative balance check
        if request.points_to_redeem:
            points.redeem(
                customer.pk,
                cafe.pk,
                request.points_to_redeem,
                description=f"Redeemed on order #{order.order_number}",
                order_id=order.pk,
            )
        if order.points_earned:
            points.earn(
                customer.pk,
                cafe.pk,
                order.points_earned,
                order_id=order.pk,
                description=f"Earned from order #{order.order_number}",
            )
        record_order_totals(customer.pk, order.total)

    logger.info(
        "Order %s placed at cafe %s: total %s, earned %s, redeemed %s",
        order.order_number,
        cafe.pk,
        order.total,
        order.points_earned,
        order.points_redeemed,
    )
    return order


def get_order(order_id) -> Order:
    try:
        return Order.objects.select_related("cafe", "customer").prefetch_related("items").get(pk=order_id)
    except (Order.DoesNotExist, ValueError, TypeError):
        raise NotFound("Order not found", field="order_id") from None


@transaction.atomic
def transition(order: Order, new_status: str, now=None) -> Order:
    if new_status not in OrderStatus.values:
        raise InvalidInput("Unknown order status", field="status")

    locked = Order.objects.select_for_update().get(pk=order.pk)
    current = OrderStatus(locked.status)
    if new_status not in TRANSITIONS[current]:
        raise InvalidTransition(f"Cannot move order from {current.value} to {new_status}", field="status")

    locked.status = new_status
    update_fields = ["status", "updated_at"]
    if new_status == OrderStatus.COMPLETED:
        locked.completed_at = now or timezone.now()
        update_fields.append("completed_at")
    locked.save(update_fields=update_fields)
    logger.info("Order %s moved from %s to %s", locked.order_number, current.value, new_status)
    return locked
