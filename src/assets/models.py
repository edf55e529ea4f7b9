"""Models for IT asset lifecycle tracking."""

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class AssetModel(models.Model):
    """Catalog entry shared by many physical assets."""

    CATEGORY_LAPTOPS = "laptops"
    CATEGORY_MONITORS = "monitors"
    CATEGORY_KEYBOARDS = "keyboards"
    CATEGORY_ACCESSORIES = "accessories"

    CATEGORY_CHOICES = [
        (CATEGORY_LAPTOPS, "Laptops"),
        (CATEGORY_MONITORS, "Monitors"),
        (CATEGORY_KEYBOARDS, "Keyboards"),
        (CATEGORY_ACCESSORIES, "Accessories"),
    ]

    manufacturer = models.CharField(max_length=255)
    model_number = models.CharField(max_length=255)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    specs = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["manufacturer", "model_number", "pk"]
        indexes = [
            models.Index(fields=["category"], name="idx_assetmodel_category"),
        ]

    def __str__(self):
        return f"{self.manufacturer} {self.model_number}"


class AssetManager(models.Manager):
    """Custom manager with shared queryset builder for Asset."""

    def with_related(self):
        """Apply the select_related and prefetch_related calls used by
        the relational views.

        The catalog model is not joined; the relational views load it
        separately and report a dangling reference as IntegrityFault.

        The open assignment period is prefetched into ``open_assignments``
        so views can detect a missing or duplicated open period without
        per-row queries.
        """
        return self.select_related(
            "assigned_to",
            "disposal",
        ).prefetch_related(
            models.Prefetch(
                "maintenance_records",
                queryset=MaintenanceRecord.objects.order_by(
                    "scheduled_date", "pk"
                ),
            ),
            models.Prefetch(
                "assignments",
                queryset=AssetAssignment.objects.filter(
                    unassigned_at__isnull=True
                ).order_by("assigned_at", "pk"),
                to_attr="open_assignments",
            ),
        )


class Asset(models.Model):
    """Individual trackable IT asset. Aggregate root for status."""

    STATUS_IN_STOCK = "in_stock"
    STATUS_ASSIGNED = "assigned"
    STATUS_UNDER_MAINTENANCE = "under_maintenance"
    STATUS_RETIRED = "retired"

    STATUS_CHOICES = [
        (STATUS_IN_STOCK, "In Stock"),
        (STATUS_ASSIGNED, "Assigned"),
        (STATUS_UNDER_MAINTENANCE, "Under Maintenance"),
        (STATUS_RETIRED, "Retired"),
    ]

    # Valid state transitions: from_status -> [to_statuses]
    VALID_TRANSITIONS = {
        STATUS_IN_STOCK: [
            STATUS_ASSIGNED,
            STATUS_UNDER_MAINTENANCE,
            STATUS_RETIRED,
        ],
        STATUS_ASSIGNED: [STATUS_IN_STOCK, STATUS_RETIRED],
        STATUS_UNDER_MAINTENANCE: [STATUS_IN_STOCK, STATUS_RETIRED],
        STATUS_RETIRED: [],
    }

    asset_tag = models.CharField(
        max_length=255,
        unique=True,
        help_text="Business identifier such as LAPTOP-001",
    )
    model = models.ForeignKey(
        AssetModel,
        on_delete=models.PROTECT,
        related_name="assets",
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_IN_STOCK
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="assigned_assets",
    )
    purchase_date = models.DateTimeField(null=True, blank=True)
    warranty_expiry = models.DateTimeField(null=True, blank=True)
    location = models.CharField(max_length=255, null=True, blank=True)
    notes = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AssetManager()

    class Meta:
        ordering = ["asset_tag", "pk"]
        indexes = [
            models.Index(fields=["status"], name="idx_asset_status"),
            models.Index(
                fields=["warranty_expiry"], name="idx_asset_warranty_expiry"
            ),
        ]

    def __str__(self):
        return self.asset_tag

    def clean(self):
        super().clean()
        if self.status == self.STATUS_ASSIGNED and not self.assigned_to_id:
            raise ValidationError(
                {"assigned_to": "Assigned assets must have an assignee."}
            )
        if self.status != self.STATUS_ASSIGNED and self.assigned_to_id:
            raise ValidationError(
                {
                    "assigned_to": "Only assets with status 'Assigned' "
                    "may have an assignee."
                }
            )

    def can_transition_to(self, new_status):
        """Check if the status transition is valid."""
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])

    @property
    def is_retired(self):
        return self.status == self.STATUS_RETIRED


class AssetAssignment(models.Model):
    """One assignment period of an asset to a user.

    A period with no ``unassigned_at`` is open. At most one open period
    may exist per asset; periods are closed once and never reopened.
    """

    asset = models.ForeignKey(
        Asset, on_delete=models.PROTECT, related_name="assignments"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="asset_assignments",
        help_text="The person the asset is assigned to",
    )
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="assignments_made",
        help_text="The admin who performed the assignment",
    )
    assigned_at = models.DateTimeField(default=timezone.now)
    unassigned_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(null=True, blank=True)

    class Meta:
        ordering = ["assigned_at", "pk"]
        constraints = [
            models.UniqueConstraint(
                fields=["asset"],
                condition=models.Q(unassigned_at__isnull=True),
                name="unique_open_assignment_per_asset",
            ),
        ]
        indexes = [
            models.Index(
                fields=["user", "unassigned_at"],
                name="idx_assignment_user_open",
            ),
        ]

    def __str__(self):
        return f"{self.asset} -> {self.user}"

    @property
    def is_open(self):
        return self.unassigned_at is None

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "Assignment history is append-only and cannot be deleted."
        )


class MaintenanceRecord(models.Model):
    """Scheduled or performed maintenance work on an asset."""

    STATUS_SCHEDULED = "scheduled"
    STATUS_IN_PROGRESS = "in_progress"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_SCHEDULED, "Scheduled"),
        (STATUS_IN_PROGRESS, "In Progress"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    asset = models.ForeignKey(
        Asset, on_delete=models.PROTECT, related_name="maintenance_records"
    )
    scheduled_date = models.DateTimeField()
    completed_date = models.DateTimeField(null=True, blank=True)
    description = models.TextField()
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="maintenance_performed",
    )
    cost = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_SCHEDULED
    )
    notes = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["scheduled_date", "pk"]
        indexes = [
            models.Index(
                fields=["status", "scheduled_date"],
                name="idx_maintenance_due",
            ),
        ]

    def __str__(self):
        return f"{self.asset} - {self.description}"


class AssetDisposal(models.Model):
    """Terminal disposal record. At most one per asset."""

    asset = models.OneToOneField(
        Asset, on_delete=models.PROTECT, related_name="disposal"
    )
    disposal_date = models.DateTimeField()
    disposal_method = models.CharField(max_length=255)
    cost = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    disposed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="disposals",
    )
    notes = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-disposal_date", "pk"]

    def __str__(self):
        return f"{self.asset} disposed via {self.disposal_method}"


class ActivityLogEntry(models.Model):
    """Immutable audit log of every state-changing operation."""

    ASSET_CREATED = "asset_created"
    ASSET_UPDATED = "asset_updated"
    ASSET_ASSIGNED = "asset_assigned"
    ASSET_UNASSIGNED = "asset_unassigned"
    ASSET_RETIRED = "asset_retired"
    MAINTENANCE_SCHEDULED = "maintenance_scheduled"
    MAINTENANCE_COMPLETED = "maintenance_completed"
    ASSET_DISPOSED = "asset_disposed"

    ACTIVITY_CHOICES = [
        (ASSET_CREATED, "Asset Created"),
        (ASSET_UPDATED, "Asset Updated"),
        (ASSET_ASSIGNED, "Asset Assigned"),
        (ASSET_UNASSIGNED, "Asset Unassigned"),
        (ASSET_RETIRED, "Asset Retired"),
        (MAINTENANCE_SCHEDULED, "Maintenance Scheduled"),
        (MAINTENANCE_COMPLETED, "Maintenance Completed"),
        (ASSET_DISPOSED, "Asset Disposed"),
    ]

    activity_type = models.CharField(max_length=30, choices=ACTIVITY_CHOICES)
    entity_type = models.CharField(max_length=100)
    entity_id = models.CharField(max_length=255)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="activity_entries",
        help_text="The user who performed the action",
    )
    description = models.TextField()
    metadata = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name_plural = "activity log entries"
        ordering = ["-created_at", "-pk"]
        indexes = [
            models.Index(
                fields=["created_at"], name="idx_activity_created_at"
            ),
            models.Index(
                fields=["entity_type", "entity_id"],
                name="idx_activity_entity",
            ),
        ]

    def __str__(self):
        return f"{self.get_activity_type_display()}: {self.description}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError(
                "Activity log entries are immutable and cannot be modified."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "Activity log entries are immutable and cannot be deleted."
        )
