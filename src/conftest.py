"""Shared pytest fixtures for asset lifecycle tests."""

import pytest

from django.conf import settings

# Run Celery tasks synchronously in tests
settings.CELERY_TASK_ALWAYS_EAGER = True
settings.CELERY_TASK_EAGER_PROPAGATES = True

from assets.factories import (  # noqa: E402
    AdminUserFactory,
    AssetFactory,
    AssetModelFactory,
    UserFactory,
)

# --- User fixtures ---


@pytest.fixture
def password():
    return "testpass123!"


@pytest.fixture
def admin_user(db, password):
    return AdminUserFactory(
        username="admin",
        email="admin@example.com",
        password=password,
        display_name="Admin Person",
    )


@pytest.fixture
def user(db, password):
    return UserFactory(
        username="testuser",
        email="test@example.com",
        password=password,
        display_name="Test User",
    )


@pytest.fixture
def second_user(db, password):
    return UserFactory(
        username="seconduser",
        email="second@example.com",
        password=password,
        display_name="Second User",
    )


# --- Core model fixtures ---


@pytest.fixture
def asset_model(db):
    return AssetModelFactory(
        manufacturer="Dell",
        model_number="Latitude 5440",
        category="laptops",
    )


@pytest.fixture
def monitor_model(db):
    return AssetModelFactory(
        manufacturer="LG",
        model_number="27UK850",
        category="monitors",
    )


@pytest.fixture
def asset(asset_model):
    return AssetFactory(
        asset_tag="LAPTOP-001",
        model=asset_model,
        location="Head Office",
        notes="Standard issue",
    )


@pytest.fixture
def assigned_asset(asset, user, admin_user):
    from assets.services.lifecycle import assign_asset

    assign_asset(asset, user, admin_user)
    asset.refresh_from_db()
    return asset
