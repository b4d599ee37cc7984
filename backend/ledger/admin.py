from django.contrib import admin

from .models import (
    Cafe,
    Category,
    Customer,
    ModifierOption,
    Order,
    OrderItem,
    PointTransaction,
    Product,
    ProductModifier,
    Voucher,
)


@admin.register(Cafe)
class CafeAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "owner", "currency", "tax_rate", "is_active")
    search_fields = ("name", "slug", "owner__username")
    list_filter = ("is_active", "currency")
    prepopulated_fields = {"slug": ("name",)}
    filter_horizontal = ("staff",)


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "cafe", "sort_order")
    list_filter = ("cafe",)


class ModifierOptionInline(admin.TabularInline):
    model = ModifierOption
    extra = 0


@admin.register(ProductModifier)
class ProductModifierAdmin(admin.ModelAdmin):
    list_display = ("name", "product", "required", "max_select")
    inlines = [ModifierOptionInline]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "cafe", "category", "price", "is_available")
    search_fields = ("name",)
    list_filter = ("cafe", "is_available")


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("user", "phone", "tier", "points_balance", "lifetime_points", "total_orders")
    search_fields = ("user__username", "user__email", "phone")
    list_filter = ("tier",)
    readonly_fields = ("tier", "points_balance", "lifetime_points", "lifetime_spend", "total_orders")


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    readonly_fields = ("product", "name", "quantity", "unit_price", "total", "modifiers", "notes")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "cafe", "customer", "status", "total", "points_earned", "created_at")
    search_fields = ("order_number", "customer__user__username")
    list_filter = ("status", "order_type", "cafe")
    inlines = [OrderItemInline]
    readonly_fields = (
        "order_number",
        "subtotal",
        "tax_amount",
        "discount_amount",
        "total",
        "points_earned",
        "points_redeemed",
        "voucher",
        "completed_at",
    )


@admin.register(PointTransaction)
class PointTransactionAdmin(admin.ModelAdmin):
    list_display = ("customer", "type", "points", "balance_after", "cafe", "order", "created_at")
    list_filter = ("type", "created_at")
    search_fields = ("customer__user__username", "description")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def has_add_permission(self, request):
        return False


@admin.register(Voucher)
class VoucherAdmin(admin.ModelAdmin):
    list_display = ("code", "customer", "type", "value", "status", "expires_at", "used_at")
    list_filter = ("type", "status")
    search_fields = ("code", "customer__user__username")
    readonly_fields = ("code", "points_cost", "used_at")
