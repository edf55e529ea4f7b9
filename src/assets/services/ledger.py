"""Assignment ledger: the history of user <-> asset assignment periods.

A period with ``unassigned_at`` unset is open. The ledger guarantees at
most one open period per asset. The check runs against a locked asset
row and is backed by the ``unique_open_assignment_per_asset`` partial
unique constraint, so two racing writers cannot both commit.
"""

import logging

from django.db import IntegrityError
from django.db import transaction as db_transaction
from django.utils import timezone

from ..exceptions import Conflict, IntegrityFault, NotFound
from ..models import Asset, AssetAssignment
from .resolve import resolve_asset, resolve_user

logger = logging.getLogger(__name__)


def _require_atomic():
    # Ledger writes share a unit of work with the asset row update.
    if not db_transaction.get_connection().in_atomic_block:
        raise RuntimeError(
            "Ledger writes must run inside transaction.atomic()."
        )


def get_open_assignment(asset) -> AssetAssignment | None:
    """Return the open period for an asset, or None.

    Raises IntegrityFault if more than one open period exists.
    """
    asset_pk = asset.pk if isinstance(asset, Asset) else asset
    periods = list(
        AssetAssignment.objects.filter(
            asset_id=asset_pk, unassigned_at__isnull=True
        ).select_related("user", "assigned_by")[:2]
    )
    if len(periods) > 1:
        raise IntegrityFault(
            "Asset",
            asset_pk,
            "more than one open assignment period exists.",
        )
    return periods[0] if periods else None


def open_assignment(
    asset: Asset,
    user,
    assigned_by,
    notes: str | None = None,
) -> AssetAssignment:
    """Open a new assignment period for ``asset``.

    Must be called inside ``transaction.atomic()`` with the asset row
    already locked by the caller. Raises Conflict if a period is
    already open.
    """
    _require_atomic()
    existing = get_open_assignment(asset)
    if existing is not None:
        raise Conflict(
            "Asset",
            asset.asset_tag,
            f"already has an open assignment to {existing.user}.",
        )
    try:
        # Savepoint; a constraint violation must not break the outer block.
        with db_transaction.atomic():
            period = AssetAssignment.objects.create(
                asset=asset,
                user=user,
                assigned_by=assigned_by,
                notes=notes,
            )
    except IntegrityError:
        logger.warning(
            "Open assignment race detected on asset %s", asset.asset_tag
        )
        raise Conflict(
            "Asset",
            asset.asset_tag,
            "an open assignment was created concurrently.",
        )
    return period


def close_assignment(
    asset: Asset,
    notes: str | None = None,
    closed_at=None,
) -> AssetAssignment:
    """Close the open period for ``asset`` and return it.

    Supplied notes replace the period's notes; otherwise the existing
    notes are kept. Raises NotFound if no period is open.
    """
    _require_atomic()
    period = get_open_assignment(asset)
    if period is None:
        raise NotFound(
            "AssetAssignment",
            asset.asset_tag,
            "no open assignment period for this asset.",
        )
    closed_at = closed_at or timezone.now()
    new_notes = notes if notes else period.notes
    updated = AssetAssignment.objects.filter(
        pk=period.pk, unassigned_at__isnull=True
    ).update(unassigned_at=closed_at, notes=new_notes)
    if updated != 1:
        raise Conflict(
            "AssetAssignment",
            period.pk,
            "period was closed concurrently.",
        )
    period.unassigned_at = closed_at
    period.notes = new_notes
    return period


def get_asset_history(asset_ref) -> list[AssetAssignment]:
    """Return every assignment period for one asset, oldest first."""
    asset = resolve_asset(asset_ref)
    return list(
        AssetAssignment.objects.filter(asset=asset)
        .select_related("user", "assigned_by")
        .order_by("assigned_at", "pk")
    )


def get_user_history(user_ref):
    """Return ``(open_periods, closed_periods)`` for one user."""
    user = resolve_user(user_ref)
    periods = list(
        AssetAssignment.objects.filter(user=user)
        .select_related("asset", "assigned_by")
        .order_by("assigned_at", "pk")
    )
    open_periods = [p for p in periods if p.is_open]
    closed_periods = [p for p in periods if not p.is_open]
    return open_periods, closed_periods
