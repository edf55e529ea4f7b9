"""Factory Boy factories for asset lifecycle test data."""

from datetime import timedelta
from decimal import Decimal

import factory
from factory.django import DjangoModelFactory

from django.utils import timezone


class UserFactory(DjangoModelFactory):
    """Factory for CustomUser model."""

    class Meta:
        model = "accounts.CustomUser"
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    display_name = factory.Faker("name")
    role = "user"
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        pwd = extracted or "testpass123!"
        self.set_password(pwd)
        if create:
            self.save(update_fields=["password"])


class AdminUserFactory(UserFactory):
    username = factory.Sequence(lambda n: f"admin{n}")
    role = "admin"


class AssetModelFactory(DjangoModelFactory):
    """Factory for AssetModel catalog entries."""

    class Meta:
        model = "assets.AssetModel"

    manufacturer = "Dell"
    model_number = factory.Sequence(lambda n: f"Latitude {5400 + n}")
    category = "laptops"
    specs = "16GB RAM, 512GB SSD"


class AssetFactory(DjangoModelFactory):
    """Factory for Asset model.

    Builds an In Stock asset with no assignee. Use the lifecycle
    services (or ``AssetAssignmentFactory`` plus a matching status)
    for anything else.
    """

    class Meta:
        model = "assets.Asset"

    asset_tag = factory.Sequence(lambda n: f"LAPTOP-{n:03d}")
    model = factory.SubFactory(AssetModelFactory)
    status = "in_stock"
    assigned_to = None
    purchase_date = factory.LazyFunction(
        lambda: timezone.now() - timedelta(days=365)
    )
    warranty_expiry = factory.LazyFunction(
        lambda: timezone.now() + timedelta(days=365)
    )
    location = "Head Office"


class AssetAssignmentFactory(DjangoModelFactory):
    """Factory for AssetAssignment model. Opens a period by default."""

    class Meta:
        model = "assets.AssetAssignment"

    asset = factory.SubFactory(AssetFactory)
    user = factory.SubFactory(UserFactory)
    assigned_by = factory.SubFactory(AdminUserFactory)
    assigned_at = factory.LazyFunction(timezone.now)
    unassigned_at = None


class MaintenanceRecordFactory(DjangoModelFactory):
    """Factory for MaintenanceRecord model."""

    class Meta:
        model = "assets.MaintenanceRecord"

    asset = factory.SubFactory(AssetFactory)
    scheduled_date = factory.LazyFunction(
        lambda: timezone.now() + timedelta(days=7)
    )
    description = factory.Faker("sentence")
    status = "scheduled"


class AssetDisposalFactory(DjangoModelFactory):
    """Factory for AssetDisposal model."""

    class Meta:
        model = "assets.AssetDisposal"

    asset = factory.SubFactory(AssetFactory, status="retired")
    disposal_date = factory.LazyFunction(timezone.now)
    disposal_method = "Recycling"
    cost = Decimal("25.50")
    disposed_by = factory.SubFactory(AdminUserFactory)


class ActivityLogEntryFactory(DjangoModelFactory):
    """Factory for ActivityLogEntry model."""

    class Meta:
        model = "assets.ActivityLogEntry"

    activity_type = "asset_created"
    entity_type = "Asset"
    entity_id = factory.Sequence(lambda n: str(n))
    user = factory.SubFactory(UserFactory)
    description = factory.Faker("sentence")
