"""Activity recorder: append-only audit entries for every mutation."""

from ..exceptions import ValidationFailed
from ..models import ActivityLogEntry


def record_activity(
    activity_type: str,
    entity_type: str,
    entity_id,
    user,
    description: str,
    metadata: dict | None = None,
) -> ActivityLogEntry:
    """Append one activity entry. Returns the saved entry.

    Runs inside the caller's atomic block, so the entry is rolled back
    together with the mutation it describes.
    """
    if activity_type not in dict(ActivityLogEntry.ACTIVITY_CHOICES):
        raise ValidationFailed(f"'{activity_type}' is not a valid activity.")
    return ActivityLogEntry.objects.create(
        activity_type=activity_type,
        entity_type=entity_type,
        entity_id=str(entity_id),
        user=user,
        description=description,
        metadata=metadata,
    )


def get_activity_log(limit: int = 50, offset: int = 0):
    """Return ``(entries, total)``, newest first."""
    if limit < 1:
        raise ValidationFailed("limit must be a positive integer.")
    if offset < 0:
        raise ValidationFailed("offset must not be negative.")
    qs = ActivityLogEntry.objects.select_related("user").order_by(
        "-created_at", "-pk"
    )
    total = qs.count()
    return list(qs[offset : offset + limit]), total


def get_entity_activity(entity_type: str, entity_id):
    """Return every entry recorded against one entity, oldest first."""
    return list(
        ActivityLogEntry.objects.filter(
            entity_type=entity_type, entity_id=str(entity_id)
        ).order_by("created_at", "pk")
    )
