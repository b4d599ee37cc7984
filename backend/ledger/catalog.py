"""Loyalty configuration read from ``settings.SIPPY``.

The voucher catalog is parsed once into immutable objects when the app is
ready and rebuilt only when the ``SIPPY`` setting changes.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .models import VoucherType

DEFAULTS = {
    "VOUCHER_EXPIRY_DAYS": 90,
    "VOUCHER_CODE_LENGTH": 8,
    "VOUCHER_CODE_ALPHABET": "ABCDEFGHJKLMNPQRSTUVWXYZ23456789",
    "VOUCHER_CODE_MAX_ATTEMPTS": 5,
    "VOUCHER_CATALOG": [
        {
            "id": "free-coffee",
            "type": "FREE_DRINK",
            "name": "Free Coffee",
            "value": "5.50",
            "points_cost": 500,
            "description": "Any coffee up to 5.50",
        },
        {
            "id": "five-off",
            "type": "FIXED_AMOUNT",
            "name": "5 Off",
            "value": "5",
            "points_cost": 400,
            "description": "5 off any order",
        },
        {
            "id": "ten-off",
            "type": "FIXED_AMOUNT",
            "name": "10 Off",
            "value": "10",
            "points_cost": 750,
            "description": "10 off any order",
        },
        {
            "id": "fifteen-percent-off",
            "type": "PERCENTAGE_OFF",
            "name": "15% Off",
            "value": "15",
            "points_cost": 600,
            "description": "15% off entire order",
        },
        {
            "id": "free-upgrade",
            "type": "FREE_UPGRADE",
            "name": "Free Size Upgrade",
            "value": "1",
            "points_cost": 200,
            "description": "Free upgrade to large",
        },
    ],
}


def sippy_setting(name: str):
    overrides = getattr(settings, "SIPPY", {}) or {}
    return overrides.get(name, DEFAULTS[name])


@dataclass(frozen=True)
class CatalogEntry:
    id: str
    type: str
    name: str
    value: Decimal
    points_cost: int
    description: str = ""

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "value": str(self.value),
            "points_cost": self.points_cost,
            "description": self.description,
        }


@dataclass(frozen=True)
class VoucherCatalog:
    entries: tuple[CatalogEntry, ...]

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, entry_id: str) -> CatalogEntry | None:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None


def _parse_entry(raw: dict) -> CatalogEntry:
    try:
        entry = CatalogEntry(
            id=str(raw["id"]),
            type=str(raw["type"]),
            name=str(raw.get("name", raw["id"])),
            value=Decimal(str(raw["value"])),
            points_cost=int(raw["points_cost"]),
            description=str(raw.get("description", "")),
        )
    except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
        raise ImproperlyConfigured(f"Invalid voucher catalog entry {raw!r}: {exc}") from exc

    if entry.type not in VoucherType.values:
        raise ImproperlyConfigured(f"Unknown voucher type {entry.type!r} in catalog entry {entry.id!r}")
    if entry.points_cost <= 0:
        raise ImproperlyConfigured(f"Catalog entry {entry.id!r} must cost at least one point")
    if entry.value < 0:
        raise ImproperlyConfigured(f"Catalog entry {entry.id!r} has a negative value")
    return entry


def build_catalog(raw_entries) -> VoucherCatalog:
    entries = tuple(_parse_entry(raw) for raw in raw_entries)
    ids = [entry.id for entry in entries]
    if len(ids) != len(set(ids)):
        raise ImproperlyConfigured("Voucher catalog entry ids must be unique")
    return VoucherCatalog(entries=entries)


_catalog: VoucherCatalog | None = None


def load_catalog() -> VoucherCatalog:
    global _catalog
    _catalog = build_catalog(sippy_setting("VOUCHER_CATALOG"))
    return _catalog


def get_catalog() -> VoucherCatalog:
    return _catalog if _catalog is not None else load_catalog()


def reload_on_setting_change(*, setting, **kwargs):
    if setting == "SIPPY":
        load_catalog()
