"""Asset model catalog service."""

from django.db import transaction as db_transaction

from ..models import ActivityLogEntry, AssetModel
from .activity import record_activity
from .resolve import resolve_user, to_choice


def create_asset_model(
    manufacturer: str,
    model_number: str,
    category: str,
    acting_user,
    specs: str | None = None,
) -> AssetModel:
    """Create a catalog entry and record it in the activity log."""
    category = to_choice(AssetModel.CATEGORY_CHOICES, category, "category")
    with db_transaction.atomic():
        actor = resolve_user(acting_user)
        asset_model = AssetModel.objects.create(
            manufacturer=manufacturer,
            model_number=model_number,
            category=category,
            specs=specs,
        )
        record_activity(
            ActivityLogEntry.ASSET_CREATED,
            "AssetModel",
            asset_model.pk,
            actor,
            f"Asset model created: {manufacturer} {model_number}",
            metadata={
                "manufacturer": manufacturer,
                "model_number": model_number,
                "category": category,
            },
        )
    return asset_model


def list_asset_models() -> list[AssetModel]:
    return list(
        AssetModel.objects.order_by("manufacturer", "model_number", "pk")
    )
