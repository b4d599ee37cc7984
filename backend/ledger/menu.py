"""Menu writes that touch more than one row: modifiers and their options."""

import logging

from django.db import transaction

from .exceptions import InvalidInput
from .models import ModifierOption, Product, ProductModifier

logger = logging.getLogger("sippy.menu")

MODIFIER_FIELDS = ("name", "required", "max_select")


@transaction.atomic
def create_modifier(product: Product, options, **fields) -> ProductModifier:
    if not options:
        raise InvalidInput("A modifier needs at least one option", field="options")
    modifier = ProductModifier.objects.create(product=product, **fields)
    ModifierOption.objects.bulk_create(
        [ModifierOption(modifier=modifier, **_option_fields(option)) for option in options]
    )
    logger.info("Modifier %s added to product %s", modifier.pk, product.pk)
    return modifier


@transaction.atomic
def update_modifier(modifier: ProductModifier, options=None, **fields) -> ProductModifier:
    """Update a modifier. When ``options`` is given the option set is replaced by it:
    entries with an ``id`` are updated, entries without one are created and
    options left out are deleted.
    """
    modifier = ProductModifier.objects.select_for_update().get(pk=modifier.pk)
    changed = [name for name in MODIFIER_FIELDS if name in fields]
    for name in changed:
        setattr(modifier, name, fields[name])
    if changed:
        modifier.save(update_fields=[*changed, "updated_at"])

    if options is not None:
        if not options:
            raise InvalidInput("A modifier needs at least one option", field="options")
        existing = {option.pk: option for option in modifier.options.all()}
        keep = set()
        for index, data in enumerate(options):
            option_id = data.get("id")
            if option_id is None:
                if not data.get("name"):
                    raise InvalidInput("New options need a name", field=f"options.{index}.name")
                ModifierOption.objects.create(modifier=modifier, **_option_fields(data))
                continue
            option = existing.get(option_id)
            if option is None:
                raise InvalidInput("Option does not belong to this modifier", field=f"options.{index}.id")
            for name, value in _option_fields(data).items():
                setattr(option, name, value)
            option.save()
            keep.add(option_id)
        stale = [pk for pk in existing if pk not in keep]
        if stale:
            ModifierOption.objects.filter(pk__in=stale).delete()

    logger.info("Modifier %s on product %s updated", modifier.pk, modifier.product_id)
    return modifier


def _option_fields(data) -> dict:
    return {name: data[name] for name in ("name", "price", "is_default") if name in data}
