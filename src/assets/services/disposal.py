"""Disposal register: the single terminal disposal record per asset."""

from django.db import IntegrityError
from django.db import transaction as db_transaction

from ..exceptions import Conflict
from ..models import Asset, AssetDisposal
from .resolve import resolve_asset, to_money


def get_disposal(asset) -> AssetDisposal | None:
    asset_pk = asset.pk if isinstance(asset, Asset) else asset
    return (
        AssetDisposal.objects.select_related("disposed_by")
        .filter(asset_id=asset_pk)
        .first()
    )


def get_by_asset(asset_ref) -> AssetDisposal | None:
    """Return the disposal record for an asset, or None."""
    return get_disposal(resolve_asset(asset_ref))


def create_disposal(
    asset: Asset,
    disposal_date,
    disposal_method: str,
    disposed_by,
    cost=None,
    notes: str | None = None,
) -> AssetDisposal:
    """Insert the disposal row. Raises Conflict if one already exists."""
    if get_disposal(asset) is not None:
        raise Conflict("Asset", asset.asset_tag, "has already been disposed.")
    try:
        with db_transaction.atomic():
            return AssetDisposal.objects.create(
                asset=asset,
                disposal_date=disposal_date,
                disposal_method=disposal_method,
                cost=to_money(cost),
                disposed_by=disposed_by,
                notes=notes,
            )
    except IntegrityError:
        raise Conflict(
            "Asset",
            asset.asset_tag,
            "a disposal record was created concurrently.",
        )
