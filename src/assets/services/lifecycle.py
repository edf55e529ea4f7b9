"""Asset lifecycle orchestration.

Every operation here is one atomic unit of work: the asset row, the
assignment ledger, the maintenance and disposal registers, and the
activity log are written together or not at all. Status changes lock
the asset row with ``select_for_update`` and are applied with a
conditional UPDATE on the expected status, so a writer that lost a
race sees ``InvalidState`` instead of overwriting the winner.
"""

import functools
import logging

from django.db import IntegrityError
from django.db import transaction as db_transaction
from django.utils import timezone

from ..exceptions import Conflict, InvalidState, ValidationFailed
from ..models import ActivityLogEntry, Asset, AssetModel
from . import disposal as disposal_register
from . import ledger
from . import maintenance as maintenance_register
from .activity import record_activity
from .resolve import (
    resolve_asset,
    resolve_asset_model,
    resolve_maintenance_record,
    resolve_user,
    to_choice,
)
from .state import validate_manual_transition, validate_transition

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "asset_tag",
    "model",
    "status",
    "purchase_date",
    "warranty_expiry",
    "location",
    "notes",
)
REQUIRED_FIELDS = ("asset_tag", "model", "status")


def _lifecycle_operation(func):
    """Log rejected transitions before they propagate to the caller."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (InvalidState, Conflict) as exc:
            logger.warning("%s rejected: %s", func.__name__, exc)
            raise

    return wrapper


def _compare_and_set_status(asset: Asset, expected: str, **changes) -> None:
    """Write status changes only if the row still has ``expected`` status."""
    changes.setdefault("updated_at", timezone.now())
    updated = Asset.objects.filter(pk=asset.pk, status=expected).update(
        **changes
    )
    if updated != 1:
        raise InvalidState(
            "Asset",
            asset.asset_tag,
            "status changed concurrently; re-read and retry.",
        )
    for field, value in changes.items():
        setattr(asset, field, value)


def _close_open_period(asset: Asset, closed_at):
    """Close the open period if there is one. Returns it or None."""
    if ledger.get_open_assignment(asset) is None:
        return None
    return ledger.close_assignment(asset, closed_at=closed_at)


@_lifecycle_operation
def create_asset(
    asset_tag: str,
    model,
    acting_user,
    purchase_date=None,
    warranty_expiry=None,
    location: str | None = None,
    notes: str | None = None,
) -> Asset:
    """Create an asset in the In Stock state."""
    with db_transaction.atomic():
        asset_model = resolve_asset_model(model)
        actor = resolve_user(acting_user)
        if Asset.objects.filter(asset_tag=asset_tag).exists():
            raise Conflict("Asset", asset_tag, "asset tag is already in use.")
        try:
            with db_transaction.atomic():
                asset = Asset.objects.create(
                    asset_tag=asset_tag,
                    model=asset_model,
                    status=Asset.STATUS_IN_STOCK,
                    assigned_to=None,
                    purchase_date=purchase_date,
                    warranty_expiry=warranty_expiry,
                    location=location,
                    notes=notes,
                )
        except IntegrityError:
            raise Conflict("Asset", asset_tag, "asset tag is already in use.")
        record_activity(
            ActivityLogEntry.ASSET_CREATED,
            "Asset",
            asset.pk,
            actor,
            f"Asset {asset_tag} created",
        )
    logger.info("Asset %s created by %s", asset_tag, actor)
    return asset


@_lifecycle_operation
def assign_asset(asset_ref, user_ref, acting_admin, notes: str | None = None):
    """Assign an In Stock asset to a user. Returns the open period."""
    with db_transaction.atomic():
        asset = resolve_asset(asset_ref, lock=True)
        user = resolve_user(user_ref)
        admin = resolve_user(acting_admin)

        if asset.status != Asset.STATUS_IN_STOCK:
            raise InvalidState(
                "Asset",
                asset.asset_tag,
                f"is '{asset.get_status_display()}'; only In Stock assets "
                f"can be assigned.",
            )
        validate_transition(asset, Asset.STATUS_ASSIGNED)

        period = ledger.open_assignment(asset, user, admin, notes=notes)
        _compare_and_set_status(
            asset,
            Asset.STATUS_IN_STOCK,
            status=Asset.STATUS_ASSIGNED,
            assigned_to=user,
        )
        record_activity(
            ActivityLogEntry.ASSET_ASSIGNED,
            "Asset",
            asset.pk,
            admin,
            f"Asset {asset.asset_tag} assigned to {user}",
            metadata={
                "assignment_id": period.pk,
                "user_id": user.pk,
                "notes": notes,
            },
        )
    logger.info(
        "Asset %s assigned to %s by %s", asset.asset_tag, user, admin
    )
    return period


@_lifecycle_operation
def unassign_asset(asset_ref, acting_admin, notes: str | None = None) -> None:
    """Return an assigned asset to stock and close its open period."""
    with db_transaction.atomic():
        asset = resolve_asset(asset_ref, lock=True)
        admin = resolve_user(acting_admin)

        if asset.status != Asset.STATUS_ASSIGNED or not asset.assigned_to_id:
            raise InvalidState(
                "Asset", asset.asset_tag, "is not currently assigned."
            )
        previous_user_id = asset.assigned_to_id
        previous_user = asset.assigned_to

        period = ledger.close_assignment(asset, notes=notes)
        _compare_and_set_status(
            asset,
            Asset.STATUS_ASSIGNED,
            status=Asset.STATUS_IN_STOCK,
            assigned_to=None,
        )
        record_activity(
            ActivityLogEntry.ASSET_UNASSIGNED,
            "Asset",
            asset.pk,
            admin,
            f"Asset {asset.asset_tag} unassigned from {previous_user}",
            metadata={
                "assignment_id": period.pk,
                "previous_user_id": previous_user_id,
            },
        )
    logger.info("Asset %s unassigned by %s", asset.asset_tag, admin)


@_lifecycle_operation
def retire_asset(asset_ref, acting_user) -> None:
    """Retire a non-retired asset, closing any open assignment period."""
    with db_transaction.atomic():
        asset = resolve_asset(asset_ref, lock=True)
        actor = resolve_user(acting_user)

        if asset.is_retired:
            raise InvalidState(
                "Asset", asset.asset_tag, "is already retired."
            )
        validate_transition(asset, Asset.STATUS_RETIRED)
        previous_status = asset.status
        previous_assigned_to = asset.assigned_to_id

        now = timezone.now()
        closed = _close_open_period(asset, now)
        _compare_and_set_status(
            asset,
            previous_status,
            status=Asset.STATUS_RETIRED,
            assigned_to=None,
            updated_at=now,
        )
        record_activity(
            ActivityLogEntry.ASSET_RETIRED,
            "Asset",
            asset.pk,
            actor,
            f"Asset {asset.asset_tag} has been retired",
            metadata={
                "previous_status": previous_status,
                "previous_assigned_to": previous_assigned_to,
                "closed_assignment_id": closed.pk if closed else None,
            },
        )
    logger.info("Asset %s retired by %s", asset.asset_tag, actor)


@_lifecycle_operation
def dispose_asset(
    asset_ref,
    disposal_date,
    disposal_method: str,
    acting_user,
    cost=None,
    notes: str | None = None,
):
    """Permanently retire an asset and record how it was disposed of.

    An already retired asset may still be disposed of once. A second
    disposal raises Conflict.
    """
    with db_transaction.atomic():
        asset = resolve_asset(asset_ref, lock=True)
        actor = resolve_user(acting_user)
        previous_status = asset.status

        record = disposal_register.create_disposal(
            asset,
            disposal_date=disposal_date,
            disposal_method=disposal_method,
            disposed_by=actor,
            cost=cost,
            notes=notes,
        )
        now = timezone.now()
        closed = _close_open_period(asset, now)
        _compare_and_set_status(
            asset,
            previous_status,
            status=Asset.STATUS_RETIRED,
            assigned_to=None,
            updated_at=now,
        )
        record_activity(
            ActivityLogEntry.ASSET_DISPOSED,
            "Asset",
            asset.pk,
            actor,
            f"Asset {asset.asset_tag} disposed via {disposal_method}",
            metadata={
                "disposal_id": record.pk,
                "disposal_method": disposal_method,
                "cost": record.cost,
                "previous_status": previous_status,
                "closed_assignment_id": closed.pk if closed else None,
            },
        )
    logger.info(
        "Asset %s disposed via %s by %s",
        asset.asset_tag,
        disposal_method,
        actor,
    )
    return record


@_lifecycle_operation
def schedule_maintenance(
    asset_ref,
    scheduled_date,
    description: str,
    acting_user,
    notes: str | None = None,
):
    """Schedule maintenance work. Does not change the asset's status."""
    with db_transaction.atomic():
        asset = resolve_asset(asset_ref)
        actor = resolve_user(acting_user)
        record = maintenance_register.create_record(
            asset, scheduled_date, description, notes=notes
        )
        record_activity(
            ActivityLogEntry.MAINTENANCE_SCHEDULED,
            "MaintenanceRecord",
            record.pk,
            actor,
            f"Maintenance scheduled for asset {asset.asset_tag}: "
            f"{description}",
            metadata={
                "asset_id": asset.pk,
                "scheduled_date": scheduled_date,
                "maintenance_record_id": record.pk,
            },
        )
    return record


@_lifecycle_operation
def complete_maintenance(
    record_ref,
    status: str,
    acting_user,
    completed_date=None,
    performed_by=None,
    cost=None,
    notes: str | None = None,
):
    """Update a maintenance record with its outcome.

    Any status may be set, including moving backwards. The activity is
    always recorded as Maintenance Completed.
    """
    with db_transaction.atomic():
        record = resolve_maintenance_record(record_ref)
        actor = resolve_user(acting_user)
        performer = (
            resolve_user(performed_by) if performed_by is not None else None
        )
        record = maintenance_register.update_record(
            record,
            status=status,
            completed_date=completed_date,
            performed_by=performer,
            cost=cost,
            notes=notes,
        )
        record_activity(
            ActivityLogEntry.MAINTENANCE_COMPLETED,
            "MaintenanceRecord",
            record.pk,
            actor,
            f"Maintenance record updated for asset {record.asset.asset_tag}",
            metadata={
                "status": record.status,
                "cost": record.cost,
                "performed_by": performer.pk if performer else None,
            },
        )
    return record


@_lifecycle_operation
def update_asset(asset_ref, acting_user, **fields) -> Asset:
    """Apply a partial update to an asset's descriptive fields.

    Only the keyword arguments passed are written; passing ``None``
    clears an optional field. ``status`` is accepted only for the manual
    In Stock <-> Under Maintenance toggle. ``updated_at`` is always
    stamped and one activity entry is always recorded.
    """
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationFailed(
            f"Cannot update field(s): {', '.join(sorted(unknown))}."
        )
    for name in REQUIRED_FIELDS:
        if name in fields and fields[name] is None:
            raise ValidationFailed(f"{name} cannot be cleared.")

    with db_transaction.atomic():
        asset = resolve_asset(asset_ref, lock=True)
        actor = resolve_user(acting_user)
        changes = {}

        if "model" in fields:
            changes["model"] = resolve_asset_model(fields["model"])

        if "asset_tag" in fields:
            new_tag = fields["asset_tag"]
            if (
                new_tag != asset.asset_tag
                and Asset.objects.filter(asset_tag=new_tag)
                .exclude(pk=asset.pk)
                .exists()
            ):
                raise Conflict(
                    "Asset", new_tag, "asset tag is already in use."
                )
            changes["asset_tag"] = new_tag

        if "status" in fields:
            new_status = to_choice(
                Asset.STATUS_CHOICES, fields["status"], "status"
            )
            validate_manual_transition(asset, new_status)
            _compare_and_set_status(asset, asset.status, status=new_status)
            changes["status"] = new_status

        for name in ("purchase_date", "warranty_expiry", "location", "notes"):
            if name in fields:
                changes[name] = fields[name]

        # status is written only through the compare-and-set above
        saved_fields = [name for name in changes if name != "status"]
        for name in saved_fields:
            setattr(asset, name, changes[name])
        try:
            with db_transaction.atomic():
                asset.save(update_fields=[*saved_fields, "updated_at"])
        except IntegrityError:
            raise Conflict(
                "Asset", asset.asset_tag, "asset tag is already in use."
            )

        metadata = {
            name: (value.pk if isinstance(value, AssetModel) else value)
            for name, value in changes.items()
        }
        record_activity(
            ActivityLogEntry.ASSET_UPDATED,
            "Asset",
            asset.pk,
            actor,
            f"Asset {asset.asset_tag} was updated",
            metadata=metadata,
        )
    logger.info("Asset %s updated by %s", asset.asset_tag, actor)
    return asset
