from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models, transaction
from django.db.models import Q
from django.utils import timezone


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Cafe(TimeStampedModel):
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=120, unique=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="owned_cafes",
        null=True,
        blank=True,
    )
    staff = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="staffed_cafes",
        blank=True,
    )
    currency = models.CharField(max_length=3, default="MYR")
    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("1"))],
    )
    points_per_dollar = models.PositiveIntegerField(default=1)
    points_per_redemption = models.PositiveIntegerField(
        default=100,
        validators=[MinValueValidator(1)],
    )
    is_active = models.BooleanField(default=True)
    order_sequence = models.PositiveIntegerField(default=0, editable=False)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(tax_rate__gte=0) & Q(tax_rate__lte=1),
                name="cafe_tax_rate_fraction",
            ),
            models.CheckConstraint(
                condition=Q(points_per_redemption__gte=1),
                name="cafe_points_per_redemption_positive",
            ),
        ]

    def __str__(self) -> str:
        return self.name

    def has_staff_access(self, user) -> bool:
        if not (user and user.is_authenticated):
            return False
        if getattr(user, "is_platform_admin", False) or user.is_superuser:
            return True
        if self.owner_id == user.pk:
            return True
        return self.staff.filter(pk=user.pk).exists()


class Category(TimeStampedModel):
    cafe = models.ForeignKey(Cafe, on_delete=models.CASCADE, related_name="categories")
    name = models.CharField(max_length=120)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "name"]
        verbose_name_plural = "categories"

    def __str__(self) -> str:
        return f"{self.name} ({self.cafe.name})"


class Product(TimeStampedModel):
    cafe = models.ForeignKey(Cafe, on_delete=models.CASCADE, related_name="products")
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        related_name="products",
        null=True,
        blank=True,
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    is_available = models.BooleanField(default=True)

    def __str__(self) -> str:
        return f"{self.name} - {self.price}"

    def delete(self, *args, **kwargs):
        # modifiers and options are PROTECTed, remove them explicitly first
        with transaction.atomic():
            for modifier in self.modifiers.all():
                modifier.delete()
            return super().delete(*args, **kwargs)


class ProductModifier(TimeStampedModel):
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="modifiers")
    name = models.CharField(max_length=120)
    required = models.BooleanField(default=False)
    max_select = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.product.name}: {self.name}"

    def delete(self, *args, **kwargs):
        with transaction.atomic():
            self.options.all().delete()
            return super().delete(*args, **kwargs)


class ModifierOption(TimeStampedModel):
    modifier = models.ForeignKey(ProductModifier, on_delete=models.PROTECT, related_name="options")
    name = models.CharField(max_length=120)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0"))
    is_default = models.BooleanField(default=False)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return self.name


class LoyaltyTier(models.TextChoices):
    BRONZE = "BRONZE", "Bronze"
    SILVER = "SILVER", "Silver"
    GOLD = "GOLD", "Gold"
    PLATINUM = "PLATINUM", "Platinum"


class Customer(TimeStampedModel):
    """Loyalty subject. Balance fields change only through ``ledger.points``."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="customer",
    )
    phone = models.CharField(max_length=30, blank=True, default="")
    tier = models.CharField(
        max_length=20,
        choices=LoyaltyTier.choices,
        default=LoyaltyTier.BRONZE,
    )
    points_balance = models.PositiveIntegerField(default=0)
    lifetime_points = models.PositiveIntegerField(default=0)
    lifetime_spend = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    total_orders = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(points_balance__gte=0),
                name="customer_points_balance_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user.get_username()} ({self.tier}, {self.points_balance} pts)"


class OrderType(models.TextChoices):
    DINE_IN = "DINE_IN", "Dine in"
    TAKEAWAY = "TAKEAWAY", "Takeaway"
    PICKUP = "PICKUP", "Pickup"
    DELIVERY = "DELIVERY", "Delivery"


class OrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PREPARING = "PREPARING", "Preparing"
    READY = "READY", "Ready"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


class Order(TimeStampedModel):
    cafe = models.ForeignKey(Cafe, on_delete=models.PROTECT, related_name="orders")
    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name="orders",
        null=True,
        blank=True,
    )
    placed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="placed_orders",
        null=True,
        blank=True,
    )
    voucher = models.OneToOneField(
        "Voucher",
        on_delete=models.PROTECT,
        related_name="order",
        null=True,
        blank=True,
    )
    order_number = models.CharField(max_length=20, editable=False)
    order_type = models.CharField(max_length=20, choices=OrderType.choices, default=OrderType.TAKEAWAY)
    status = models.CharField(max_length=20, choices=OrderStatus.choices, default=OrderStatus.PENDING)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    total = models.DecimalField(max_digits=12, decimal_places=2)
    points_earned = models.PositiveIntegerField(default=0)
    points_redeemed = models.PositiveIntegerField(default=0)

    notes = models.TextField(blank=True, default="")
    completed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(fields=["cafe", "order_number"], name="unique_order_number_per_cafe"),
            models.CheckConstraint(condition=Q(total__gte=0), name="order_total_non_negative"),
        ]

    def __str__(self) -> str:
        return f"#{self.order_number} ({self.cafe.name}, {self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name="items")
    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        related_name="order_items",
        null=True,
        blank=True,
    )
    name = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    total = models.DecimalField(max_digits=12, decimal_places=2)
    modifiers = models.JSONField(default=list, blank=True)
    notes = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.quantity} x {self.name}"


class PointTransactionType(models.TextChoices):
    EARN = "EARN", "Earn"
    REDEEM = "REDEEM", "Redeem"


class PointTransactionQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise TypeError("Point transactions are append-only")

    def delete(self):
        raise TypeError("Point transactions are append-only")


class PointTransaction(models.Model):
    """Append-only ledger row. ``balance_after`` is the balance once ``points`` applied."""

    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name="point_transactions")
    cafe = models.ForeignKey(
        Cafe,
        on_delete=models.PROTECT,
        related_name="point_transactions",
        null=True,
        blank=True,
    )
    order = models.ForeignKey(
        Order,
        on_delete=models.PROTECT,
        related_name="point_transactions",
        null=True,
        blank=True,
    )
    type = models.CharField(max_length=10, choices=PointTransactionType.choices)
    points = models.IntegerField()
    balance_after = models.PositiveIntegerField()
    description = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    objects = PointTransactionQuerySet.as_manager()

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(
                condition=(Q(type="EARN") & Q(points__gt=0)) | (Q(type="REDEEM") & Q(points__lt=0)),
                name="point_transaction_sign_matches_type",
            ),
        ]

    def __str__(self) -> str:
        sign = "+" if self.points > 0 else ""
        return f"{sign}{self.points} pts -> {self.balance_after}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise TypeError("Point transactions are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise TypeError("Point transactions are append-only")


class VoucherType(models.TextChoices):
    FREE_DRINK = "FREE_DRINK", "Free drink"
    PERCENTAGE_OFF = "PERCENTAGE_OFF", "Percentage off"
    FIXED_AMOUNT = "FIXED_AMOUNT", "Fixed amount"
    FREE_UPGRADE = "FREE_UPGRADE", "Free upgrade"


class VoucherStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    USED = "USED", "Used"
    EXPIRED = "EXPIRED", "Expired"


class VoucherQuerySet(models.QuerySet):
    def usable(self, now=None):
        now = now or timezone.now()
        return self.filter(status=VoucherStatus.ACTIVE, expires_at__gt=now)


class Voucher(TimeStampedModel):
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name="vouchers")
    code = models.CharField(max_length=32, unique=True)
    catalog_entry_id = models.CharField(max_length=64, blank=True, default="")
    name = models.CharField(max_length=120, blank=True, default="")
    type = models.CharField(max_length=20, choices=VoucherType.choices)
    value = models.DecimalField(max_digits=10, decimal_places=2)
    points_cost = models.PositiveIntegerField()
    status = models.CharField(max_length=10, choices=VoucherStatus.choices, default=VoucherStatus.ACTIVE)
    expires_at = models.DateTimeField()
    used_at = models.DateTimeField(blank=True, null=True)

    objects = VoucherQuerySet.as_manager()

    class Meta:
        ordering = ["expires_at", "id"]

    def __str__(self) -> str:
        return f"{self.code} ({self.type}, {self.effective_status})"

    def is_expired(self, now=None) -> bool:
        return (now or timezone.now()) >= self.expires_at

    @property
    def effective_status(self) -> str:
        if self.status == VoucherStatus.ACTIVE and self.is_expired():
            return VoucherStatus.EXPIRED
        return self.status
