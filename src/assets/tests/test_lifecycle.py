"""Tests for the asset lifecycle operations and their invariants."""

import inspect
import threading
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest

from django.db import connection
from django.utils import timezone

from assets.exceptions import Conflict, InvalidState, NotFound, ValidationFailed
from assets.factories import AssetFactory, AssetModelFactory, UserFactory
from assets.models import (
    ActivityLogEntry,
    Asset,
    AssetAssignment,
    AssetDisposal,
    MaintenanceRecord,
)
from assets.services import lifecycle
from assets.services.relations import (
    get_asset_with_relations,
    get_expiring_warranties,
    get_upcoming_maintenance,
)


def _assert_assignment_invariants(asset):
    asset.refresh_from_db()
    open_count = AssetAssignment.objects.filter(
        asset=asset, unassigned_at__isnull=True
    ).count()
    assert open_count <= 1
    assert (asset.assigned_to_id is not None) == (
        asset.status == Asset.STATUS_ASSIGNED
    )
    assert (open_count == 1) == (asset.status == Asset.STATUS_ASSIGNED)


@pytest.mark.django_db
class TestCreateAsset:
    def test_create_asset(self, asset_model, admin_user):
        purchased = timezone.now() - timedelta(days=10)
        expiry = timezone.now() + timedelta(days=700)
        asset = lifecycle.create_asset(
            "LAPTOP-100",
            asset_model,
            admin_user,
            purchase_date=purchased,
            warranty_expiry=expiry,
            location="Desk 7",
            notes="Spare",
        )
        assert asset.status == Asset.STATUS_IN_STOCK
        assert asset.assigned_to is None
        entry = ActivityLogEntry.objects.get(activity_type="asset_created")
        assert entry.entity_type == "Asset"
        assert entry.entity_id == str(asset.pk)
        assert entry.description == "Asset LAPTOP-100 created"
        assert entry.user == admin_user

    def test_round_trip_through_relational_view(self, asset_model, admin_user):
        expiry = timezone.now() + timedelta(days=365)
        created = lifecycle.create_asset(
            "MON-001",
            asset_model.pk,
            admin_user,
            warranty_expiry=expiry,
            location="Desk 1",
        )
        view = get_asset_with_relations(created.pk)
        assert view.asset.asset_tag == "MON-001"
        assert view.asset.warranty_expiry == expiry
        assert view.asset.location == "Desk 1"
        assert view.asset.status == Asset.STATUS_IN_STOCK
        assert view.model == asset_model
        assert view.assigned_user is None
        assert view.current_assignment is None
        assert view.disposal is None
        assert view.maintenance_records == []

    def test_duplicate_tag_conflicts(self, asset, admin_user):
        with pytest.raises(Conflict, match="already in use"):
            lifecycle.create_asset("LAPTOP-001", asset.model, admin_user)
        assert Asset.objects.count() == 1

    def test_unknown_model(self, admin_user):
        with pytest.raises(NotFound, match="AssetModel"):
            lifecycle.create_asset("LAPTOP-200", 99999, admin_user)
        assert not Asset.objects.exists()
        assert not ActivityLogEntry.objects.exists()

    def test_unknown_actor(self, asset_model):
        with pytest.raises(NotFound, match="User"):
            lifecycle.create_asset("LAPTOP-200", asset_model, 99999)
        assert not Asset.objects.exists()


@pytest.mark.django_db
class TestScenarioAssignAndUnassign:
    def test_assign_asset(self, asset, user, admin_user):
        period = lifecycle.assign_asset(
            asset, user, admin_user, notes="Onboarding"
        )
        assert period.unassigned_at is None
        assert period.user == user
        assert period.assigned_by == admin_user
        asset.refresh_from_db()
        assert asset.status == Asset.STATUS_ASSIGNED
        assert asset.assigned_to == user
        entry = ActivityLogEntry.objects.get(activity_type="asset_assigned")
        assert entry.metadata == {
            "assignment_id": period.pk,
            "user_id": user.pk,
            "notes": "Onboarding",
        }
        _assert_assignment_invariants(asset)

    def test_second_assign_rejected(
        self, assigned_asset, second_user, admin_user
    ):
        with pytest.raises((Conflict, InvalidState)):
            lifecycle.assign_asset(assigned_asset, second_user, admin_user)
        assigned_asset.refresh_from_db()
        assert assigned_asset.assigned_to.username == "testuser"
        assert AssetAssignment.objects.filter(asset=assigned_asset).count() == 1

    def test_unassign_then_reassign(
        self, assigned_asset, user, second_user, admin_user
    ):
        lifecycle.unassign_asset(assigned_asset, admin_user, notes="Leaver")
        assigned_asset.refresh_from_db()
        assert assigned_asset.status == Asset.STATUS_IN_STOCK
        assert assigned_asset.assigned_to is None
        first = AssetAssignment.objects.get(asset=assigned_asset, user=user)
        assert first.unassigned_at is not None
        assert first.notes == "Leaver"

        period = lifecycle.assign_asset(
            assigned_asset, second_user, admin_user
        )
        assert period.user == second_user
        _assert_assignment_invariants(assigned_asset)

    def test_unassign_records_activity(self, assigned_asset, user, admin_user):
        period = AssetAssignment.objects.get(asset=assigned_asset)
        lifecycle.unassign_asset(assigned_asset, admin_user)
        entry = ActivityLogEntry.objects.get(activity_type="asset_unassigned")
        assert entry.description == (
            "Asset LAPTOP-001 unassigned from Test User"
        )
        assert entry.metadata == {
            "assignment_id": period.pk,
            "previous_user_id": user.pk,
        }

    def test_unassign_in_stock_rejected(self, asset, admin_user):
        with pytest.raises(InvalidState, match="not currently assigned"):
            lifecycle.unassign_asset(asset, admin_user)
        assert not ActivityLogEntry.objects.exists()

    def test_assign_under_maintenance_rejected(self, asset, user, admin_user):
        lifecycle.update_asset(asset, admin_user, status="under_maintenance")
        with pytest.raises(InvalidState, match="only In Stock"):
            lifecycle.assign_asset(asset, user, admin_user)

    def test_assign_to_admin_allowed(self, asset, admin_user):
        lifecycle.assign_asset(asset, admin_user, admin_user)
        asset.refresh_from_db()
        assert asset.assigned_to == admin_user

    def test_assign_unknown_user(self, asset, admin_user):
        with pytest.raises(NotFound):
            lifecycle.assign_asset(asset, "ghost", admin_user)
        asset.refresh_from_db()
        assert asset.status == Asset.STATUS_IN_STOCK
        assert not AssetAssignment.objects.exists()

    def test_assign_by_tag_and_username(self, asset, user, admin_user):
        lifecycle.assign_asset("LAPTOP-001", "testuser", "admin")
        asset.refresh_from_db()
        assert asset.assigned_to == user

    def test_assign_rolls_back_when_activity_fails(
        self, asset, user, admin_user
    ):
        with patch.object(
            lifecycle, "record_activity", side_effect=RuntimeError("db down")
        ):
            with pytest.raises(RuntimeError):
                lifecycle.assign_asset(asset, user, admin_user)
        asset.refresh_from_db()
        assert asset.status == Asset.STATUS_IN_STOCK
        assert asset.assigned_to is None
        assert not AssetAssignment.objects.exists()

    def test_rejection_is_logged(self, assigned_asset, second_user, admin_user):
        with patch.object(lifecycle, "logger") as mock_logger:
            with pytest.raises(InvalidState):
                lifecycle.assign_asset(
                    assigned_asset, second_user, admin_user
                )
        mock_logger.warning.assert_called_once()


@pytest.mark.django_db
class TestConcurrencyGuards:
    def test_status_changes_lock_the_asset_row(self):
        for func in (
            lifecycle.assign_asset,
            lifecycle.unassign_asset,
            lifecycle.retire_asset,
            lifecycle.dispose_asset,
            lifecycle.update_asset,
        ):
            source = inspect.getsource(func)
            assert "lock=True" in source, (
                f"{func.__name__} must lock the asset row"
            )

    def test_resolve_asset_lock_uses_select_for_update(self):
        from assets.services.resolve import resolve_asset

        assert "select_for_update" in inspect.getsource(resolve_asset)

    def test_stale_status_is_rejected(self, asset, user):
        """A writer that read an old status cannot overwrite the winner."""
        Asset.objects.filter(pk=asset.pk).update(
            status=Asset.STATUS_UNDER_MAINTENANCE
        )
        with pytest.raises(InvalidState, match="concurrently"):
            lifecycle._compare_and_set_status(
                asset,
                Asset.STATUS_IN_STOCK,
                status=Asset.STATUS_ASSIGNED,
                assigned_to=user,
            )
        asset.refresh_from_db()
        assert asset.status == Asset.STATUS_UNDER_MAINTENANCE
        assert asset.assigned_to is None

    def test_lost_assignment_race_rolls_back(
        self, asset, user, second_user, admin_user
    ):
        """The loser of an assignment race commits nothing."""
        from assets.factories import AssetAssignmentFactory
        from assets.services import ledger

        winner = AssetAssignmentFactory(asset=asset, user=second_user)
        Asset.objects.filter(pk=asset.pk).update(
            status=Asset.STATUS_ASSIGNED, assigned_to=second_user
        )
        real_resolve = lifecycle.resolve_asset

        def stale_resolve(ref, lock=False):
            stale = real_resolve(ref, lock=lock)
            stale.status = Asset.STATUS_IN_STOCK
            stale.assigned_to = None
            return stale

        with patch.object(lifecycle, "resolve_asset", stale_resolve):
            with patch.object(
                ledger, "get_open_assignment", return_value=None
            ):
                with pytest.raises(Conflict):
                    lifecycle.assign_asset(asset, user, admin_user)

        assert list(AssetAssignment.objects.filter(asset=asset)) == [winner]
        assert not ActivityLogEntry.objects.filter(
            activity_type="asset_assigned"
        ).exists()
        asset.refresh_from_db()
        assert asset.assigned_to == second_user


@pytest.mark.django_db(transaction=True)
@pytest.mark.skipif(
    not connection.features.has_select_for_update,
    reason="database backend has no row locks",
)
class TestConcurrentAssignment:
    def test_two_threads_one_winner(self, asset, user, second_user, admin_user):
        barrier = threading.Barrier(2)
        results = []

        def contend(assignee):
            try:
                barrier.wait(timeout=10)
                lifecycle.assign_asset(asset.pk, assignee.pk, admin_user.pk)
                results.append(("assigned", assignee.pk))
            except (InvalidState, Conflict) as exc:
                results.append(("rejected", exc))
            finally:
                connection.close()

        threads = [
            threading.Thread(target=contend, args=(assignee,))
            for assignee in (user, second_user)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        outcomes = sorted(kind for kind, _ in results)
        assert outcomes == ["assigned", "rejected"]
        winner = next(pk for kind, pk in results if kind == "assigned")
        period = AssetAssignment.objects.get(
            asset=asset, unassigned_at__isnull=True
        )
        assert period.user_id == winner
        assert ActivityLogEntry.objects.filter(
            activity_type="asset_assigned"
        ).count() == 1
        _assert_assignment_invariants(asset)
        assert asset.assigned_to_id == winner


@pytest.mark.django_db
class TestRetireAsset:
    def test_retire_in_stock(self, asset, admin_user):
        lifecycle.retire_asset(asset, admin_user)
        asset.refresh_from_db()
        assert asset.status == Asset.STATUS_RETIRED
        assert asset.assigned_to is None
        entry = ActivityLogEntry.objects.get(activity_type="asset_retired")
        assert entry.description == "Asset LAPTOP-001 has been retired"
        assert entry.metadata["previous_status"] == "in_stock"
        assert entry.metadata["closed_assignment_id"] is None

    def test_retire_assigned_closes_period(self, assigned_asset, admin_user):
        period = AssetAssignment.objects.get(asset=assigned_asset)
        lifecycle.retire_asset(assigned_asset, admin_user)
        period.refresh_from_db()
        assert period.unassigned_at is not None
        _assert_assignment_invariants(assigned_asset)
        entry = ActivityLogEntry.objects.get(activity_type="asset_retired")
        assert entry.metadata["closed_assignment_id"] == period.pk
        assert entry.metadata["previous_status"] == "assigned"

    def test_retire_by_tag_equal_to_other_pk(self, asset, admin_user):
        tagged = AssetFactory(asset_tag=str(asset.pk), model=asset.model)
        lifecycle.retire_asset(str(asset.pk), admin_user)
        tagged.refresh_from_db()
        asset.refresh_from_db()
        assert tagged.status == Asset.STATUS_RETIRED
        assert asset.status == Asset.STATUS_IN_STOCK

    def test_retire_all_digit_tag(self, asset_model, admin_user):
        lifecycle.create_asset("2024", asset_model, admin_user)
        lifecycle.retire_asset("2024", admin_user)
        assert Asset.objects.get(asset_tag="2024").status == (
            Asset.STATUS_RETIRED
        )

    def test_retire_under_maintenance(self, asset, admin_user):
        lifecycle.update_asset(asset, admin_user, status="under_maintenance")
        lifecycle.retire_asset(asset, admin_user)
        asset.refresh_from_db()
        assert asset.status == Asset.STATUS_RETIRED

    def test_retired_is_terminal(self, asset, user, admin_user):
        lifecycle.retire_asset(asset, admin_user)
        with pytest.raises(InvalidState, match="already retired"):
            lifecycle.retire_asset(asset, admin_user)
        with pytest.raises(InvalidState):
            lifecycle.assign_asset(asset, user, admin_user)
        asset.refresh_from_db()
        assert asset.assigned_to is None
        assert ActivityLogEntry.objects.filter(
            activity_type="asset_retired"
        ).count() == 1


@pytest.mark.django_db
class TestDisposeAsset:
    def test_scenario_dispose(self, asset, admin_user):
        asset.warranty_expiry = timezone.now() + timedelta(days=5)
        asset.save()
        record = lifecycle.dispose_asset(
            asset, timezone.now(), "Recycling", admin_user, cost=25.50
        )
        asset.refresh_from_db()
        assert asset.status == Asset.STATUS_RETIRED
        assert asset.assigned_to is None
        assert AssetDisposal.objects.filter(asset=asset).count() == 1
        record.refresh_from_db()
        assert record.cost == Decimal("25.50")
        assert record.disposed_by == admin_user
        assert asset not in [v.asset for v in get_expiring_warranties(30)]

    def test_dispose_assigned_closes_period(self, assigned_asset, admin_user):
        lifecycle.dispose_asset(
            assigned_asset, timezone.now(), "Resale", admin_user
        )
        _assert_assignment_invariants(assigned_asset)
        entry = ActivityLogEntry.objects.get(activity_type="asset_disposed")
        assert entry.description == "Asset LAPTOP-001 disposed via Resale"
        assert entry.metadata["previous_status"] == "assigned"
        assert entry.metadata["closed_assignment_id"] is not None

    def test_dispose_retired_asset_once(self, asset, admin_user):
        lifecycle.retire_asset(asset, admin_user)
        lifecycle.dispose_asset(asset, timezone.now(), "Landfill", admin_user)
        asset.refresh_from_db()
        assert asset.status == Asset.STATUS_RETIRED
        assert asset.disposal.disposal_method == "Landfill"

    def test_second_dispose_conflicts(self, asset, admin_user):
        lifecycle.dispose_asset(asset, timezone.now(), "Recycling", admin_user)
        with pytest.raises(Conflict, match="already been disposed"):
            lifecycle.dispose_asset(
                asset, timezone.now(), "Recycling", admin_user
            )
        assert AssetDisposal.objects.filter(asset=asset).count() == 1
        assert ActivityLogEntry.objects.filter(
            activity_type="asset_disposed"
        ).count() == 1

    def test_negative_cost_rejected(self, asset, admin_user):
        with pytest.raises(ValidationFailed):
            lifecycle.dispose_asset(
                asset, timezone.now(), "Recycling", admin_user, cost="-5"
            )
        asset.refresh_from_db()
        assert asset.status == Asset.STATUS_IN_STOCK


@pytest.mark.django_db
class TestMaintenanceOperations:
    def test_scenario_upcoming_window(self, asset, admin_user):
        now = timezone.now()
        soon = lifecycle.schedule_maintenance(
            asset, now + timedelta(days=10), "check", admin_user
        )
        later = lifecycle.schedule_maintenance(
            asset, now + timedelta(days=45), "check", admin_user
        )
        assert get_upcoming_maintenance(30) == [soon]
        assert get_upcoming_maintenance() == [soon]
        assert get_upcoming_maintenance(60) == [soon, later]

    def test_schedule_records_activity(self, asset, admin_user):
        when = timezone.now() + timedelta(days=2)
        record = lifecycle.schedule_maintenance(
            asset, when, "Fan replacement", admin_user, notes="Noisy"
        )
        assert record.status == MaintenanceRecord.STATUS_SCHEDULED
        entry = ActivityLogEntry.objects.get(
            activity_type="maintenance_scheduled"
        )
        assert entry.entity_type == "MaintenanceRecord"
        assert entry.entity_id == str(record.pk)
        assert entry.description == (
            "Maintenance scheduled for asset LAPTOP-001: Fan replacement"
        )
        assert entry.metadata["asset_id"] == asset.pk

    def test_schedule_does_not_change_status(self, assigned_asset, admin_user):
        lifecycle.schedule_maintenance(
            assigned_asset, timezone.now(), "check", admin_user
        )
        assigned_asset.refresh_from_db()
        assert assigned_asset.status == Asset.STATUS_ASSIGNED

    def test_schedule_unknown_asset(self, admin_user):
        with pytest.raises(NotFound):
            lifecycle.schedule_maintenance(
                "MISSING-1", timezone.now(), "check", admin_user
            )

    def test_complete_maintenance(self, asset, user, admin_user):
        record = lifecycle.schedule_maintenance(
            asset, timezone.now(), "check", admin_user
        )
        done = timezone.now()
        lifecycle.complete_maintenance(
            record.pk,
            "completed",
            admin_user,
            completed_date=done,
            performed_by=user,
            cost="80",
        )
        record.refresh_from_db()
        assert record.status == MaintenanceRecord.STATUS_COMPLETED
        assert record.completed_date == done
        assert record.performed_by == user
        assert record.cost == Decimal("80.00")
        asset.refresh_from_db()
        assert asset.status == Asset.STATUS_IN_STOCK
        entry = ActivityLogEntry.objects.get(
            activity_type="maintenance_completed"
        )
        assert entry.metadata == {
            "status": "completed",
            "cost": "80.00",
            "performed_by": user.pk,
        }

    def test_any_status_tagged_completed(self, asset, admin_user):
        record = lifecycle.schedule_maintenance(
            asset, timezone.now(), "check", admin_user
        )
        lifecycle.complete_maintenance(record, "cancelled", admin_user)
        assert ActivityLogEntry.objects.filter(
            activity_type="maintenance_completed"
        ).count() == 1

    def test_complete_unknown_record(self, admin_user):
        with pytest.raises(NotFound, match="MaintenanceRecord"):
            lifecycle.complete_maintenance(99999, "completed", admin_user)


@pytest.mark.django_db
class TestUpdateAsset:
    def test_no_fields_only_touches_updated_at(self, asset, admin_user):
        stamp = timezone.now() - timedelta(days=1)
        Asset.objects.filter(pk=asset.pk).update(updated_at=stamp)
        asset.refresh_from_db()
        before = {
            f.attname: getattr(asset, f.attname)
            for f in Asset._meta.concrete_fields
        }

        lifecycle.update_asset(asset.pk, admin_user)

        asset.refresh_from_db()
        after = {
            f.attname: getattr(asset, f.attname)
            for f in Asset._meta.concrete_fields
        }
        assert after.pop("updated_at") > before.pop("updated_at")
        assert after == before
        assert ActivityLogEntry.objects.filter(
            activity_type="asset_updated"
        ).count() == 1

    def test_partial_update(self, asset, admin_user):
        lifecycle.update_asset(asset, admin_user, location="Desk 9")
        asset.refresh_from_db()
        assert asset.location == "Desk 9"
        assert asset.notes == "Standard issue"
        entry = ActivityLogEntry.objects.get(activity_type="asset_updated")
        assert entry.metadata == {"location": "Desk 9"}

    def test_explicit_none_clears_optional_field(self, asset, admin_user):
        lifecycle.update_asset(asset, admin_user, notes=None)
        asset.refresh_from_db()
        assert asset.notes is None

    def test_required_field_cannot_be_cleared(self, asset, admin_user):
        with pytest.raises(ValidationFailed, match="cannot be cleared"):
            lifecycle.update_asset(asset, admin_user, model=None)

    def test_unknown_field_rejected(self, asset, admin_user):
        with pytest.raises(ValidationFailed, match="assigned_to"):
            lifecycle.update_asset(asset, admin_user, assigned_to=None)

    def test_change_model(self, asset, admin_user, monitor_model):
        lifecycle.update_asset(asset, admin_user, model=monitor_model.pk)
        asset.refresh_from_db()
        assert asset.model == monitor_model
        entry = ActivityLogEntry.objects.get(activity_type="asset_updated")
        assert entry.metadata == {"model": monitor_model.pk}

    def test_change_model_unknown(self, asset, admin_user):
        with pytest.raises(NotFound, match="AssetModel"):
            lifecycle.update_asset(asset, admin_user, model=99999)

    def test_rename_to_taken_tag_conflicts(self, asset, admin_user):
        AssetFactory(asset_tag="LAPTOP-002", model=asset.model)
        with pytest.raises(Conflict, match="already in use"):
            lifecycle.update_asset(asset, admin_user, asset_tag="LAPTOP-002")
        asset.refresh_from_db()
        assert asset.asset_tag == "LAPTOP-001"

    def test_self_rename_allowed(self, asset, admin_user):
        lifecycle.update_asset(asset, admin_user, asset_tag="LAPTOP-001")
        asset.refresh_from_db()
        assert asset.asset_tag == "LAPTOP-001"

    def test_rename(self, asset, admin_user):
        lifecycle.update_asset(asset, admin_user, asset_tag="LAPTOP-900")
        asset.refresh_from_db()
        assert asset.asset_tag == "LAPTOP-900"

    def test_maintenance_toggle(self, asset, admin_user):
        lifecycle.update_asset(asset, admin_user, status="Under Maintenance")
        asset.refresh_from_db()
        assert asset.status == Asset.STATUS_UNDER_MAINTENANCE
        lifecycle.update_asset(asset, admin_user, status="in_stock")
        asset.refresh_from_db()
        assert asset.status == Asset.STATUS_IN_STOCK

    @pytest.mark.parametrize("target", ["assigned", "retired"])
    def test_lifecycle_status_targets_rejected(self, asset, admin_user, target):
        with pytest.raises(InvalidState):
            lifecycle.update_asset(asset, admin_user, status=target)
        asset.refresh_from_db()
        assert asset.status == Asset.STATUS_IN_STOCK
        assert not ActivityLogEntry.objects.exists()

    def test_assigned_asset_cannot_leave_via_update(
        self, assigned_asset, admin_user
    ):
        with pytest.raises(InvalidState):
            lifecycle.update_asset(
                assigned_asset, admin_user, status="in_stock"
            )
        _assert_assignment_invariants(assigned_asset)

    def test_status_toggle_uses_compare_and_set(self):
        source = inspect.getsource(lifecycle.update_asset)
        assert "_compare_and_set_status" in source

    def test_stale_status_toggle_rejected(self, asset, user, admin_user):
        """A toggle computed from a stale read must not overwrite Assigned."""
        Asset.objects.filter(pk=asset.pk).update(
            status=Asset.STATUS_ASSIGNED, assigned_to=user
        )
        real_resolve = lifecycle.resolve_asset

        def stale_resolve(ref, lock=False):
            stale = real_resolve(ref, lock=lock)
            stale.status = Asset.STATUS_IN_STOCK
            stale.assigned_to = None
            return stale

        with patch.object(lifecycle, "resolve_asset", stale_resolve):
            with pytest.raises(InvalidState, match="concurrently"):
                lifecycle.update_asset(
                    asset, admin_user, status="under_maintenance"
                )

        asset.refresh_from_db()
        assert asset.status == Asset.STATUS_ASSIGNED
        assert asset.assigned_to == user
        assert not ActivityLogEntry.objects.exists()


@pytest.mark.django_db
class TestInvariantsAcrossSequences:
    def test_random_walk_keeps_invariants(self, asset_model, admin_user):
        users = [UserFactory() for _ in range(3)]
        assets = [
            AssetFactory(model=asset_model, asset_tag=f"SEQ-{i}")
            for i in range(3)
        ]
        steps = [
            ("assign", 0, 0),
            ("assign", 1, 0),
            ("assign", 0, 1),
            ("unassign", 0, None),
            ("assign", 0, 2),
            ("retire", 1, None),
            ("assign", 1, 1),
            ("unassign", 2, None),
            ("assign", 2, 1),
            ("dispose", 0, None),
            ("assign", 0, 0),
        ]
        for op, asset_idx, user_idx in steps:
            target = assets[asset_idx]
            try:
                if op == "assign":
                    lifecycle.assign_asset(target, users[user_idx], admin_user)
                elif op == "unassign":
                    lifecycle.unassign_asset(target, admin_user)
                elif op == "retire":
                    lifecycle.retire_asset(target, admin_user)
                else:
                    lifecycle.dispose_asset(
                        target, timezone.now(), "Recycling", admin_user
                    )
            except (InvalidState, Conflict):
                pass
            for a in assets:
                _assert_assignment_invariants(a)

        assets[0].refresh_from_db()
        assert assets[0].status == Asset.STATUS_RETIRED
        assets[2].refresh_from_db()
        assert assets[2].assigned_to == users[1]

    def test_new_asset_model_category_is_searchable(self, admin_user):
        from assets.services.relations import search_assets

        model = AssetModelFactory(category="accessories")
        lifecycle.create_asset("DOCK-1", model, admin_user)
        views, total = search_assets({"category": "Accessories"})
        assert total == 1
        assert views[0].asset_tag == "DOCK-1"
