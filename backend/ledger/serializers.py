from decimal import Decimal

from rest_framework import serializers

from .models import (
    Cafe,
    Category,
    Customer,
    ModifierOption,
    Order,
    OrderItem,
    OrderType,
    PointTransaction,
    Product,
    ProductModifier,
    Voucher,
)
from .orders import ItemRequest, OrderRequest


class CafeSerializer(serializers.ModelSerializer):
    class Meta:
        model = Cafe
        fields = [
            "id",
            "name",
            "slug",
            "currency",
            "tax_rate",
            "points_per_dollar",
            "points_per_redemption",
            "is_active",
        ]
        read_only_fields = ["id"]


class ModifierOptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = ModifierOption
        fields = ["id", "name", "price", "is_default"]


class ProductModifierSerializer(serializers.ModelSerializer):
    options = ModifierOptionSerializer(many=True, read_only=True)

    class Meta:
        model = ProductModifier
        fields = ["id", "name", "required", "max_select", "options"]


class ModifierOptionInputSerializer(serializers.Serializer):
    id = serializers.IntegerField(required=False)
    name = serializers.CharField(max_length=120)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"), default=Decimal("0"))
    is_default = serializers.BooleanField(default=False)


class ModifierWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=120)
    required = serializers.BooleanField(default=False)
    max_select = serializers.IntegerField(min_value=1, default=1)
    options = ModifierOptionInputSerializer(many=True, allow_empty=False)


class CategorySerializer(serializers.ModelSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ["id", "cafe", "name", "sort_order", "product_count"]

    def get_product_count(self, obj):
        annotated = getattr(obj, "product_count", None)
        return annotated if annotated is not None else obj.products.count()


class ProductSerializer(serializers.ModelSerializer):
    modifiers = ProductModifierSerializer(many=True, read_only=True)

    class Meta:
        model = Product
        fields = ["id", "cafe", "category", "name", "description", "price", "is_available", "modifiers"]

    def validate(self, attrs):
        cafe = attrs.get("cafe") or getattr(self.instance, "cafe", None)
        category = attrs.get("category")
        if category is not None and cafe is not None and category.cafe_id != cafe.pk:
            raise serializers.ValidationError({"category": "Category belongs to another cafe"})
        return attrs


class CustomerSerializer(serializers.ModelSerializer):
    name = serializers.SerializerMethodField()
    email = serializers.EmailField(source="user.email", read_only=True)

    class Meta:
        model = Customer
        fields = [
            "id",
            "name",
            "email",
            "phone",
            "tier",
            "points_balance",
            "lifetime_points",
            "lifetime_spend",
            "total_orders",
            "created_at",
        ]
        read_only_fields = fields

    def get_name(self, obj):
        return obj.user.get_full_name() or obj.user.get_username()


class PointTransactionSerializer(serializers.ModelSerializer):
    cafe_name = serializers.CharField(source="cafe.name", read_only=True, default=None)

    class Meta:
        model = PointTransaction
        fields = ["id", "type", "points", "balance_after", "description", "cafe", "cafe_name", "order", "created_at"]
        read_only_fields = fields


class VoucherSerializer(serializers.ModelSerializer):
    status = serializers.CharField(source="effective_status", read_only=True)

    class Meta:
        model = Voucher
        fields = [
            "id",
            "code",
            "catalog_entry_id",
            "name",
            "type",
            "value",
            "points_cost",
            "status",
            "expires_at",
            "used_at",
        ]
        read_only_fields = fields


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ["id", "product", "name", "quantity", "unit_price", "total", "modifiers", "notes"]


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    voucher_code = serializers.CharField(source="voucher.code", read_only=True, default=None)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "cafe",
            "customer",
            "order_type",
            "status",
            "subtotal",
            "tax_amount",
            "discount_amount",
            "total",
            "points_earned",
            "points_redeemed",
            "voucher_code",
            "notes",
            "items",
            "created_at",
            "completed_at",
        ]
        read_only_fields = fields


class OrderItemInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(required=False, allow_null=True)
    name = serializers.CharField(required=False, allow_blank=True, default="")
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal("0"),
        required=False,
        allow_null=True,
    )
    modifiers = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def to_item_request(self, data) -> ItemRequest:
        return ItemRequest(
            quantity=data["quantity"],
            product_id=data.get("product_id"),
            name=data.get("name", ""),
            unit_price=data.get("unit_price"),
            modifier_option_ids=tuple(data.get("modifiers", [])),
            notes=data.get("notes", ""),
        )


class PlaceOrderSerializer(serializers.Serializer):
    cafe_id = serializers.IntegerField()
    customer_id = serializers.IntegerField(required=False, allow_null=True)
    items = OrderItemInputSerializer(many=True, allow_empty=False)
    points_to_redeem = serializers.IntegerField(min_value=0, required=False, default=0)
    voucher_code = serializers.CharField(required=False, allow_blank=True, default="")
    order_type = serializers.ChoiceField(choices=OrderType.choices, required=False, default=OrderType.TAKEAWAY)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def to_order_request(self, customer_id=None, placed_by=None) -> OrderRequest:
        data = self.validated_data
        item_serializer = OrderItemInputSerializer()
        return OrderRequest(
            cafe_id=data["cafe_id"],
            items=tuple(item_serializer.to_item_request(item) for item in data["items"]),
            customer_id=customer_id,
            points_to_redeem=data.get("points_to_redeem", 0),
            voucher_code=data.get("voucher_code", ""),
            order_type=data.get("order_type", OrderType.TAKEAWAY),
            notes=data.get("notes", ""),
            placed_by=placed_by,
        )


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.CharField()


class PointsChangeSerializer(serializers.Serializer):
    customer_id = serializers.IntegerField()
    cafe_id = serializers.IntegerField()
    points = serializers.IntegerField(min_value=1)
    description = serializers.CharField(max_length=255)
    order_id = serializers.IntegerField(required=False, allow_null=True)


class VoucherClaimSerializer(serializers.Serializer):
    customer_id = serializers.IntegerField(required=False, allow_null=True)
    catalog_entry_id = serializers.CharField()


class VoucherRedeemSerializer(serializers.Serializer):
    code = serializers.CharField()
