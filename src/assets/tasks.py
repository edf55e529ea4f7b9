"""Celery tasks for the assets app."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def scan_asset_alerts(warranty_days=None, maintenance_days=None):
    """Periodic task: collect expiring warranties and due maintenance.

    Nothing is delivered; the summary is logged and returned.
    """
    from assets.services.relations import (
        get_expiring_warranties,
        get_upcoming_maintenance,
    )

    expiring = get_expiring_warranties(days=warranty_days)
    upcoming = get_upcoming_maintenance(days=maintenance_days)

    if expiring or upcoming:
        logger.info(
            "Asset alert scan: %d expiring warranties, "
            "%d upcoming maintenance records",
            len(expiring),
            len(upcoming),
        )
    return {
        "expiring_warranties": [view.asset_tag for view in expiring],
        "upcoming_maintenance": [record.pk for record in upcoming],
    }
