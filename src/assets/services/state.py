"""Asset state machine and transition validation."""

from ..exceptions import InvalidState, ValidationFailed
from ..models import Asset

# Transitions a caller may request directly through update_asset.
# Everything else goes through the dedicated lifecycle operation that
# keeps the ledger and disposal register consistent with the status.
MANUAL_TRANSITIONS = {
    (Asset.STATUS_IN_STOCK, Asset.STATUS_UNDER_MAINTENANCE),
    (Asset.STATUS_UNDER_MAINTENANCE, Asset.STATUS_IN_STOCK),
}


def validate_transition(asset: Asset, new_status: str) -> None:
    """Validate and raise if the status transition is not allowed.

    Raises InvalidState if the transition is invalid.
    """
    if new_status not in dict(Asset.STATUS_CHOICES):
        raise ValidationFailed(f"'{new_status}' is not a valid status.")

    if asset.is_retired:
        raise InvalidState(
            "Asset",
            asset.asset_tag,
            "asset is retired; no further transitions are possible.",
        )

    if not asset.can_transition_to(new_status):
        allowed = Asset.VALID_TRANSITIONS.get(asset.status, [])
        raise InvalidState(
            "Asset",
            asset.asset_tag,
            f"cannot transition from '{asset.get_status_display()}' to "
            f"'{new_status}'. Allowed transitions: "
            f"{', '.join(allowed) or 'none'}.",
        )


def validate_manual_transition(asset: Asset, new_status: str) -> None:
    """Validate a status change requested through a plain field update."""
    if new_status == asset.status:
        return  # No-op transition is always fine

    validate_transition(asset, new_status)

    if (asset.status, new_status) not in MANUAL_TRANSITIONS:
        raise InvalidState(
            "Asset",
            asset.asset_tag,
            f"status '{new_status}' can only be reached through its "
            f"lifecycle operation (assign, unassign, retire or dispose).",
        )
