from decimal import Decimal

from django.contrib.auth import get_user_model

from users.models import UserRole

from ..models import Cafe, Customer, ModifierOption, Product, ProductModifier


def make_user(username, role=UserRole.CUSTOMER, **extra):
    return get_user_model().objects.create_user(
        username=username,
        password="pass1234",
        role=role,
        **extra,
    )


def make_cafe(name="Daily Grind", slug=None, **overrides):
    fields = {
        "name": name,
        "slug": slug or name.lower().replace(" ", "-"),
        "tax_rate": Decimal("0.10"),
        "points_per_dollar": 1,
        "points_per_redemption": 100,
    }
    fields.update(overrides)
    return Cafe.objects.create(**fields)


def make_customer(username="alex", **fields):
    return Customer.objects.create(user=make_user(username), **fields)


def make_product(cafe, name="Latte", price="5.00", **fields):
    return Product.objects.create(cafe=cafe, name=name, price=Decimal(price), **fields)


def make_modifier(product, name="Milk", options=(("Oat", "0.80"), ("Soy", "0.50"))):
    modifier = ProductModifier.objects.create(product=product, name=name)
    for option_name, price in options:
        ModifierOption.objects.create(modifier=modifier, name=option_name, price=Decimal(price))
    return modifier
