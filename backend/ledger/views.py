import io

from django.db.models import Count, Q
from django.http import HttpResponse
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

import qrcode

from users.permissions import IsOwnerRoleOrReadOnly, IsStaffRole, IsStaffRoleOrReadOnly

from . import menu, orders, points, vouchers
from .catalog import get_catalog
from .customers import get_customer, get_or_create_customer, lookup_by_phone
from .exceptions import NotFound
from .models import Cafe, Category, Order, Product, ProductModifier
from .serializers import (
    CafeSerializer,
    CategorySerializer,
    CustomerSerializer,
    ModifierWriteSerializer,
    OrderSerializer,
    OrderStatusSerializer,
    PlaceOrderSerializer,
    PointsChangeSerializer,
    PointTransactionSerializer,
    ProductModifierSerializer,
    ProductSerializer,
    VoucherClaimSerializer,
    VoucherRedeemSerializer,
    VoucherSerializer,
)
from .throttles import LookupRateThrottle, QrRateThrottle, VoucherClaimRateThrottle

MAX_ORDER_LIST_LIMIT = 200


def _parse_int(value, field):
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError({field: "Must be an integer"}) from None


def _get_cafe_or_404(cafe_id) -> Cafe:
    cafe = Cafe.objects.filter(pk=cafe_id).first()
    if cafe is None:
        raise NotFound("Cafe not found", field="cafe_id")
    return cafe


def _require_cafe_staff(request, cafe: Cafe) -> None:
    if not cafe.has_staff_access(request.user):
        raise PermissionDenied("You do not work at this cafe")


def _resolve_customer_id(request, requested_id):
    """Customers act on their own profile; staff may act on anyone's."""
    user = request.user
    if user.is_cafe_staff:
        if requested_id is None:
            raise ValidationError({"customer_id": "This field is required."})
        return get_customer(requested_id).pk
    own = get_or_create_customer(user)
    if requested_id is not None and requested_id != own.pk:
        raise PermissionDenied("You can only access your own loyalty account")
    return own.pk


class CafeViewSet(
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.ReadOnlyModelViewSet,
):
    serializer_class = CafeSerializer
    permission_classes = [IsOwnerRoleOrReadOnly]
    lookup_field = "slug"

    def get_queryset(self):
        qs = Cafe.objects.all().order_by("name")
        if self.action == "list":
            qs = qs.filter(is_active=True)
        return qs

    def perform_create(self, serializer):
        serializer.save(owner=self.request.user)

    def perform_update(self, serializer):
        cafe = serializer.instance
        user = self.request.user
        if not (user.is_platform_admin or cafe.owner_id == user.pk):
            raise PermissionDenied("Only the cafe owner can change its configuration")
        serializer.save()


class CategoryViewSet(viewsets.ModelViewSet):
    serializer_class = CategorySerializer
    permission_classes = [IsStaffRoleOrReadOnly]

    def get_queryset(self):
        qs = Category.objects.select_related("cafe").annotate(product_count=Count("products"))
        cafe_id = _parse_int(self.request.query_params.get("cafe"), "cafe")
        if cafe_id is not None:
            qs = qs.filter(cafe_id=cafe_id)
        return qs.order_by("cafe_id", "sort_order", "name")

    def perform_create(self, serializer):
        _require_cafe_staff(self.request, serializer.validated_data["cafe"])
        serializer.save()

    def perform_update(self, serializer):
        _require_cafe_staff(self.request, serializer.instance.cafe)
        new_cafe = serializer.validated_data.get("cafe")
        if new_cafe is not None and new_cafe.pk != serializer.instance.cafe_id:
            raise ValidationError({"cafe": "Categories cannot move between cafes"})
        serializer.save()

    def perform_destroy(self, instance):
        # products keep existing, uncategorised
        _require_cafe_staff(self.request, instance.cafe)
        instance.delete()


class ProductViewSet(viewsets.ModelViewSet):
    serializer_class = ProductSerializer
    permission_classes = [IsStaffRoleOrReadOnly]

    def get_queryset(self):
        qs = Product.objects.select_related("cafe", "category").prefetch_related("modifiers__options")
        cafe_id = _parse_int(self.request.query_params.get("cafe"), "cafe")
        if cafe_id is not None:
            qs = qs.filter(cafe_id=cafe_id)
        return qs.order_by("name", "id")

    def perform_create(self, serializer):
        _require_cafe_staff(self.request, serializer.validated_data["cafe"])
        serializer.save()

    def perform_update(self, serializer):
        _require_cafe_staff(self.request, serializer.instance.cafe)
        new_cafe = serializer.validated_data.get("cafe")
        if new_cafe is not None and new_cafe.pk != serializer.instance.cafe_id:
            raise ValidationError({"cafe": "Products cannot move between cafes"})
        serializer.save()

    def perform_destroy(self, instance):
        _require_cafe_staff(self.request, instance.cafe)
        instance.delete()

    def _modifier_data(self, modifier_id):
        modifier = ProductModifier.objects.prefetch_related("options").get(pk=modifier_id)
        return ProductModifierSerializer(modifier).data

    @action(detail=True, methods=["get", "post"], url_path="modifiers")
    def modifiers(self, request, pk=None):
        product = self.get_object()
        if request.method == "GET":
            return Response(ProductModifierSerializer(product.modifiers.all(), many=True).data)

        _require_cafe_staff(request, product.cafe)
        serializer = ModifierWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        modifier = menu.create_modifier(product, data.pop("options"), **data)
        return Response(self._modifier_data(modifier.pk), status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["patch", "delete"], url_path=r"modifiers/(?P<modifier_id>\d+)")
    def modifier_detail(self, request, pk=None, modifier_id=None):
        product = self.get_object()
        _require_cafe_staff(request, product.cafe)
        modifier = ProductModifier.objects.filter(pk=modifier_id, product=product).first()
        if modifier is None:
            raise NotFound("Modifier not found", field="modifier_id")

        if request.method == "DELETE":
            modifier.delete()
            return Response(status=status.HTTP_204_NO_CONTENT)

        serializer = ModifierWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        menu.update_modifier(modifier, options=data.pop("options", None), **data)
        return Response(self._modifier_data(modifier.pk))


class OrderViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = OrderSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        qs = Order.objects.select_related("cafe", "customer", "voucher").prefetch_related("items")
        if user.is_platform_admin:
            pass
        elif user.is_cafe_staff:
            qs = qs.filter(Q(cafe__owner=user) | Q(cafe__staff=user)).distinct()
        else:
            qs = qs.filter(customer__user=user)

        params = self.request.query_params
        cafe_id = _parse_int(params.get("cafe"), "cafe")
        if cafe_id is not None:
            qs = qs.filter(cafe_id=cafe_id)
        status_filter = params.get("status")
        if status_filter in orders.STATUS_GROUPS:
            qs = qs.filter(status__in=orders.STATUS_GROUPS[status_filter])
        elif status_filter:
            qs = qs.filter(status=status_filter)
        return qs.order_by("-created_at", "-id")

    def list(self, request, *args, **kwargs):
        limit = _parse_int(request.query_params.get("limit"), "limit") or 50
        limit = max(1, min(limit, MAX_ORDER_LIST_LIMIT))
        serializer = self.get_serializer(self.get_queryset()[:limit], many=True)
        return Response(serializer.data)

    def create(self, request, *args, **kwargs):
        serializer = PlaceOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        requested_customer = serializer.validated_data.get("customer_id")

        if request.user.is_cafe_staff:
            cafe = _get_cafe_or_404(serializer.validated_data["cafe_id"])
            _require_cafe_staff(request, cafe)
            customer_id = requested_customer
        else:
            customer_id = _resolve_customer_id(request, requested_customer)

        order = orders.place_order(
            serializer.to_order_request(customer_id=customer_id, placed_by=request.user)
        )
        order = orders.get_order(order.pk)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="status", permission_classes=[IsStaffRole])
    def set_status(self, request, pk=None):
        order = self.get_object()
        _require_cafe_staff(request, order.cafe)
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        orders.transition(order, serializer.validated_data["status"])
        return Response(OrderSerializer(orders.get_order(order.pk)).data)


class CustomerViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]

    @action(detail=False, methods=["get"], url_path="me")
    def me(self, request):
        customer = get_or_create_customer(request.user)
        data = CustomerSerializer(customer).data
        data["vouchers"] = VoucherSerializer(vouchers.active_vouchers(customer.pk), many=True).data
        return Response(data)

    @action(
        detail=False,
        methods=["get"],
        url_path="lookup",
        permission_classes=[IsStaffRole],
        throttle_classes=[LookupRateThrottle],
    )
    def lookup(self, request):
        phone = request.query_params.get("phone")
        if not phone:
            raise ValidationError({"phone": "Phone number is required"})
        customer = lookup_by_phone(phone)
        if customer is None:
            return Response({"found": False})
        return Response({"found": True, "customer": CustomerSerializer(customer).data})


class PointsViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]

    def list(self, request):
        customer_id = _resolve_customer_id(
            request, _parse_int(request.query_params.get("customer_id"), "customer_id")
        )
        customer = get_customer(customer_id)
        return Response(
            {
                "balance": customer.points_balance,
                "lifetime_points": customer.lifetime_points,
                "tier": customer.tier,
                "transactions": PointTransactionSerializer(points.history(customer.pk), many=True).data,
            }
        )

    def _change(self, request, operation):
        serializer = PointsChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        cafe = _get_cafe_or_404(data["cafe_id"])
        _require_cafe_staff(request, cafe)
        if operation == "earn":
            entry = points.earn(
                data["customer_id"],
                cafe.pk,
                data["points"],
                order_id=data.get("order_id"),
                description=data["description"],
            )
        else:
            entry = points.redeem(
                data["customer_id"],
                cafe.pk,
                data["points"],
                description=data["description"],
                order_id=data.get("order_id"),
            )
        return Response({"new_balance": entry.balance_after, "transaction_id": entry.pk})

    @action(detail=False, methods=["post"], url_path="earn", permission_classes=[IsStaffRole])
    def earn(self, request):
        return self._change(request, "earn")

    @action(detail=False, methods=["post"], url_path="redeem", permission_classes=[IsStaffRole])
    def redeem(self, request):
        return self._change(request, "redeem")

    @action(detail=False, methods=["get"], url_path="audit", permission_classes=[IsStaffRole])
    def audit(self, request):
        customer_id = _parse_int(request.query_params.get("customer_id"), "customer_id")
        if customer_id is None:
            raise ValidationError({"customer_id": "This field is required."})
        result = points.verify_ledger(customer_id)
        return Response(
            {
                "customer_id": result.customer_id,
                "stored_balance": result.stored_balance,
                "replayed_balance": result.replayed_balance,
                "consistent": result.is_consistent,
                "broken_transaction_id": result.broken_transaction_id,
            }
        )


class VoucherViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]

    def list(self, request):
        customer_id = _resolve_customer_id(
            request, _parse_int(request.query_params.get("customer_id"), "customer_id")
        )
        return Response(VoucherSerializer(vouchers.active_vouchers(customer_id), many=True).data)

    @action(detail=False, methods=["get"], url_path="catalog")
    def catalog(self, request):
        return Response([entry.as_dict() for entry in get_catalog()])

    @action(detail=False, methods=["post"], url_path="claim", throttle_classes=[VoucherClaimRateThrottle])
    def claim(self, request):
        serializer = VoucherClaimSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        customer_id = _resolve_customer_id(request, serializer.validated_data.get("customer_id"))
        result = vouchers.claim(customer_id, serializer.validated_data["catalog_entry_id"])
        return Response(
            {
                "voucher_code": result.voucher.code,
                "expires_at": result.voucher.expires_at,
                "new_balance": result.new_balance,
                "voucher": VoucherSerializer(result.voucher).data,
            },
            status=status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=["post"], url_path="redeem", permission_classes=[IsStaffRole])
    def redeem(self, request):
        serializer = VoucherRedeemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        voucher = vouchers.redeem(serializer.validated_data["code"])
        return Response({"applied": True, "type": voucher.type, "value": voucher.value})

    @action(detail=False, methods=["get"], url_path="qr", throttle_classes=[QrRateThrottle])
    def qr(self, request):
        code = request.query_params.get("code")
        if not code:
            raise ValidationError({"code": "code is required"})
        owner_id = None if request.user.is_cafe_staff else get_or_create_customer(request.user).pk
        voucher = vouchers.get_voucher(code, customer_id=owner_id)

        img = qrcode.make(voucher.code)
        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        return HttpResponse(buffer.getvalue(), content_type="image/png")
