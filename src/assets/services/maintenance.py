"""Maintenance register: scheduled and performed work per asset.

Maintenance records never change the asset's status. The update path
is a single free-form write; callers may set any status directly.
"""

from datetime import timedelta

from django.utils import timezone

from ..exceptions import ValidationFailed
from ..models import Asset, MaintenanceRecord
from .resolve import resolve_asset, to_choice, to_money


def create_record(
    asset: Asset,
    scheduled_date,
    description: str,
    notes: str | None = None,
) -> MaintenanceRecord:
    """Create a record in the Scheduled state."""
    return MaintenanceRecord.objects.create(
        asset=asset,
        scheduled_date=scheduled_date,
        description=description,
        notes=notes,
        status=MaintenanceRecord.STATUS_SCHEDULED,
    )


def update_record(
    record: MaintenanceRecord,
    status: str,
    completed_date=None,
    performed_by=None,
    cost=None,
    notes: str | None = None,
) -> MaintenanceRecord:
    """Overwrite the mutable fields of a record and save it."""
    status = to_choice(MaintenanceRecord.STATUS_CHOICES, status, "status")
    record.status = status
    record.completed_date = completed_date
    record.performed_by = performed_by
    record.cost = to_money(cost)
    record.notes = notes
    record.save(
        update_fields=[
            "status",
            "completed_date",
            "performed_by",
            "cost",
            "notes",
            "updated_at",
        ]
    )
    return record


def list_records(asset_ref=None) -> list[MaintenanceRecord]:
    """Return all records, optionally for a single asset."""
    qs = MaintenanceRecord.objects.select_related("asset", "performed_by")
    if asset_ref is not None:
        qs = qs.filter(asset=resolve_asset(asset_ref))
    return list(qs.order_by("scheduled_date", "pk"))


def get_upcoming(days: int = 30, now=None) -> list[MaintenanceRecord]:
    """Scheduled records due within ``[now, now + days]``, soonest first."""
    if days < 0:
        raise ValidationFailed("days must not be negative.")
    now = now or timezone.now()
    return list(
        MaintenanceRecord.objects.select_related("asset", "performed_by")
        .filter(
            status=MaintenanceRecord.STATUS_SCHEDULED,
            scheduled_date__gte=now,
            scheduled_date__lte=now + timedelta(days=days),
        )
        .order_by("scheduled_date", "pk")
    )
