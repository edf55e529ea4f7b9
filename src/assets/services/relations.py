"""Relational views: assets hydrated with their related records.

Reads bypass the lifecycle orchestrator. Related rows are loaded in
bulk and joined in memory. A view is never built from structurally
inconsistent data: a dangling model reference, or an assignment status
that disagrees with the ledger, raises ``IntegrityFault``.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.utils import timezone

from ..exceptions import IntegrityFault, NotFound, ValidationFailed
from ..models import (
    Asset,
    AssetAssignment,
    AssetDisposal,
    AssetModel,
    MaintenanceRecord,
)
from . import maintenance as maintenance_register
from .resolve import asset_lookup, resolve_user
from .search import SEARCH_FILTERS, build_asset_filter_query

logger = logging.getLogger(__name__)

User = get_user_model()


@dataclass
class AssetView:
    """Read-only composite of an asset and its related records."""

    asset: Asset
    model: AssetModel
    assigned_user: User | None = None
    current_assignment: AssetAssignment | None = None
    maintenance_records: list[MaintenanceRecord] = field(default_factory=list)
    disposal: AssetDisposal | None = None

    @property
    def pk(self):
        return self.asset.pk

    @property
    def asset_tag(self):
        return self.asset.asset_tag

    @property
    def status(self):
        return self.asset.status


@dataclass
class PastAssignment:
    assignment: AssetAssignment
    asset: AssetView


@dataclass
class UserAssets:
    user: User
    current_assets: list[AssetView]
    past_assignments: list[PastAssignment]


def _fault(asset, message):
    logger.error("Integrity fault on asset %s: %s", asset.asset_tag, message)
    return IntegrityFault("Asset", asset.asset_tag, message)


def _disposal_of(asset):
    try:
        return asset.disposal
    except ObjectDoesNotExist:
        return None


def _open_period_of(asset):
    """Return the open period, checking it agrees with the status."""
    periods = asset.open_assignments
    if len(periods) > 1:
        raise _fault(asset, "more than one open assignment period exists.")
    period = periods[0] if periods else None
    if asset.status == Asset.STATUS_ASSIGNED:
        if not asset.assigned_to_id:
            raise _fault(asset, "status is Assigned but no assignee is set.")
        if period is None:
            raise _fault(asset, "status is Assigned but no period is open.")
        if period.user_id != asset.assigned_to_id:
            raise _fault(
                asset, "open assignment period belongs to another user."
            )
    else:
        if asset.assigned_to_id:
            raise _fault(
                asset,
                f"status is '{asset.get_status_display()}' but an "
                f"assignee is set.",
            )
        if period is not None:
            raise _fault(
                asset,
                f"status is '{asset.get_status_display()}' but an "
                f"assignment period is open.",
            )
    return period


def _hydrate(assets, include_current_assignment=True) -> list[AssetView]:
    """Build views for assets loaded through ``Asset.objects.with_related``."""
    model_ids = {a.model_id for a in assets}
    asset_models = AssetModel.objects.in_bulk(model_ids)
    views = []
    for asset in assets:
        asset_model = asset_models.get(asset.model_id)
        if asset_model is None:
            raise _fault(
                asset, f"asset model {asset.model_id} does not exist."
            )
        asset.model = asset_model
        period = _open_period_of(asset)
        views.append(
            AssetView(
                asset=asset,
                model=asset_model,
                assigned_user=asset.assigned_to,
                current_assignment=(
                    period if include_current_assignment else None
                ),
                maintenance_records=list(asset.maintenance_records.all()),
                disposal=_disposal_of(asset),
            )
        )
    return views


def get_asset_with_relations(asset_ref) -> AssetView | None:
    """Return the hydrated view of one asset, or None if it doesn't exist."""
    try:
        lookup = asset_lookup(asset_ref)
    except NotFound:
        return None
    asset = Asset.objects.with_related().filter(**lookup).first()
    if asset is None:
        return None
    return _hydrate([asset])[0]


def list_assets() -> list[AssetView]:
    """Return views of every asset, ordered by tag."""
    return _hydrate(list(Asset.objects.with_related().order_by("asset_tag", "pk")))


def search_assets(filters: dict | None = None, limit=None, offset: int = 0):
    """Return ``(views, total)`` for assets matching all ``filters``.

    ``total`` counts every match before the ``offset``/``limit`` window
    is applied. Results are ordered by asset tag, then primary key.
    """
    filters = dict(filters or {})
    unknown = set(filters) - set(SEARCH_FILTERS)
    if unknown:
        raise ValidationFailed(
            f"Unknown search filter(s): {', '.join(sorted(unknown))}."
        )
    if limit is None:
        limit = settings.ASSET_SEARCH_DEFAULT_LIMIT
    if limit < 1:
        raise ValidationFailed("limit must be a positive integer.")
    if offset < 0:
        raise ValidationFailed("offset must not be negative.")
    limit = min(limit, settings.ASSET_SEARCH_MAX_LIMIT)

    qs = Asset.objects.filter(build_asset_filter_query(**filters))
    total = qs.count()
    page = list(
        Asset.objects.with_related()
        .filter(pk__in=qs.values("pk"))
        .order_by("asset_tag", "pk")[offset : offset + limit]
    )
    return _hydrate(page), total


def get_user_assets(user_ref) -> UserAssets:
    """Return a user's current assets and closed assignment periods."""
    user = resolve_user(user_ref)
    current = _hydrate(
        list(
            Asset.objects.with_related()
            .filter(assigned_to=user)
            .order_by("asset_tag", "pk")
        )
    )

    closed = list(
        AssetAssignment.objects.filter(user=user, unassigned_at__isnull=False)
        .select_related("assigned_by")
        .order_by("assigned_at", "pk")
    )
    past_asset_ids = {p.asset_id for p in closed}
    past_views = {
        view.pk: view
        for view in _hydrate(
            list(Asset.objects.with_related().filter(pk__in=past_asset_ids)),
            include_current_assignment=False,
        )
    }
    past = [
        PastAssignment(assignment=p, asset=past_views[p.asset_id])
        for p in closed
    ]
    return UserAssets(user=user, current_assets=current, past_assignments=past)


def get_expiring_warranties(days: int | None = None, now=None) -> list[AssetView]:
    """Assets whose warranty ends within ``days`` (or already ended).

    Disposed assets are excluded. Ordered by warranty expiry, soonest
    first.
    """
    if days is None:
        days = settings.ASSET_WARRANTY_ALERT_DAYS
    if days < 0:
        raise ValidationFailed("days must not be negative.")
    now = now or timezone.now()
    assets = list(
        Asset.objects.with_related()
        .filter(
            warranty_expiry__isnull=False,
            warranty_expiry__lte=now + timedelta(days=days),
            disposal__isnull=True,
        )
        .order_by("warranty_expiry", "pk")
    )
    return _hydrate(assets)


def get_upcoming_maintenance(days: int | None = None, now=None):
    """Scheduled maintenance due within ``days``, soonest first."""
    if days is None:
        days = settings.ASSET_MAINTENANCE_ALERT_DAYS
    return maintenance_register.get_upcoming(days=days, now=now)

