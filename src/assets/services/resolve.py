"""Reference resolution from various input types.

Services accept either model instances, primary keys, or (for assets)
the business tag. Resolution failures raise ``NotFound`` so callers see
the entity kind and the identity they asked for.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.contrib.auth import get_user_model

from ..exceptions import NotFound, ValidationFailed
from ..models import Asset, AssetModel, MaintenanceRecord

User = get_user_model()

CENT = Decimal("0.01")


def _truncate(value, max_len=100):
    s = str(value)
    return s if len(s) <= max_len else s[:max_len] + "..."


def _lookup(queryset, entity, ref, natural_key=None):
    """Fetch one row by instance or pk, or by ``natural_key`` for strings.

    When ``natural_key`` is given, a ``str`` ref is only ever matched
    against that field, so an all-digit key never hits a primary key.
    """
    if isinstance(ref, queryset.model):
        ref = ref.pk
    if ref is None or ref == "":
        raise NotFound(entity, ref)
    if natural_key and isinstance(ref, str):
        lookup = {natural_key: ref}
    else:
        lookup = {"pk": ref}
    try:
        return queryset.get(**lookup)
    except (queryset.model.DoesNotExist, ValueError, TypeError):
        raise NotFound(entity, _truncate(ref))


def asset_lookup(ref) -> dict:
    """Return the filter kwargs that identify one asset.

    An ``Asset`` instance or an ``int`` is a primary key; a ``str`` is
    always the asset tag, even when it is all digits.
    """
    if isinstance(ref, Asset):
        return {"pk": ref.pk}
    if isinstance(ref, int) and not isinstance(ref, bool):
        return {"pk": ref}
    if isinstance(ref, str) and ref:
        return {"asset_tag": ref}
    raise NotFound("Asset", _truncate(ref))


def resolve_asset(ref, lock: bool = False) -> Asset:
    """Resolve an Asset from an instance, integer PK, or asset tag.

    With ``lock=True`` the row is fetched with ``select_for_update`` and
    must be called inside ``transaction.atomic()``. A passed-in instance
    is always re-read so the caller works with committed state.
    """
    qs = Asset.objects.all()
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(**asset_lookup(ref))
    except Asset.DoesNotExist:
        raise NotFound("Asset", _truncate(ref))


def resolve_user(ref, entity: str = "User"):
    """Resolve a user from an instance, integer PK, or username."""
    return _lookup(User.objects.all(), entity, ref, natural_key="username")


def resolve_asset_model(ref) -> AssetModel:
    return _lookup(AssetModel.objects.all(), "AssetModel", ref)


def resolve_maintenance_record(ref) -> MaintenanceRecord:
    return _lookup(
        MaintenanceRecord.objects.select_related("asset"),
        "MaintenanceRecord",
        ref,
    )


def to_money(value, field: str = "cost") -> Decimal | None:
    """Convert a currency amount to a 2-place Decimal.

    Floats go through ``str()`` so 25.5 becomes Decimal("25.50") rather
    than its binary expansion.
    """
    if value is None:
        return None
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationFailed(f"{field} must be a decimal amount.")
    if not amount.is_finite():
        raise ValidationFailed(f"{field} must be a finite amount.")
    if amount < 0:
        raise ValidationFailed(f"{field} cannot be negative.")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_choice(choices, value, field: str) -> str:
    """Map a stored value or its display label onto the stored value.

    Labels match case-insensitively, so "Laptops" and "laptops" both
    resolve to the ``laptops`` category.
    """
    for stored, label in choices:
        if value == stored:
            return stored
    if isinstance(value, str):
        wanted = value.strip().lower()
        for stored, label in choices:
            if wanted in (stored, label.lower()):
                return stored
    raise ValidationFailed(f"'{value}' is not a valid {field}.")
