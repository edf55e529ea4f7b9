"""Asset search filter helpers."""

from django.db.models import Q

from ..models import Asset, AssetModel
from .resolve import resolve_user, to_choice

SEARCH_FILTERS = (
    "category",
    "status",
    "manufacturer",
    "model_number",
    "assigned_to",
    "search",
)


def build_asset_filter_query(
    category=None,
    status=None,
    manufacturer=None,
    model_number=None,
    assigned_to=None,
    search=None,
):
    """Build a Q object combining every supplied filter with AND.

    ``manufacturer``, ``model_number`` and ``search`` are
    case-insensitive substring matches; ``search`` looks at the asset
    tag only. ``assigned_to`` is an exact user match (instance, integer pk
    or username); an unknown user raises NotFound.
    ``category`` and ``status`` accept the stored value or the display
    label. Filters left as None (or blank strings) are ignored.
    """
    combined = Q()
    if category:
        category = to_choice(AssetModel.CATEGORY_CHOICES, category, "category")
        combined &= Q(model__category=category)
    if status:
        status = to_choice(Asset.STATUS_CHOICES, status, "status")
        combined &= Q(status=status)
    if manufacturer:
        combined &= Q(model__manufacturer__icontains=manufacturer)
    if model_number:
        combined &= Q(model__model_number__icontains=model_number)
    if assigned_to is not None and assigned_to != "":
        combined &= Q(assigned_to=resolve_user(assigned_to))
    if search:
        combined &= Q(asset_tag__icontains=search.strip())
    return combined
