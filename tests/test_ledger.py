"""
Tests for the occupancy ledger.

Outcomes are checked at the ledger level (typed statuses) and the database
backstop is checked directly: the partial unique indexes must reject a second
active occupancy even when the application checks are bypassed.
"""

import uuid
from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from unit_bridge.ledger import OccupancyLedger
from unit_bridge.models import OccupancyBridge, UnitBridge
from unit_bridge.pagination import Page
from unit_bridge.registry import UnitRegistry
from unit_bridge.schemas import UnitBridgeStatus

JAN = datetime(2025, 1, 1)
FEB = datetime(2025, 2, 1)
MAR = datetime(2025, 3, 1)


@pytest.fixture
def ledger(db):
    return OccupancyLedger(db)


@pytest.fixture
def units(db, unit_request):
    registry = UnitRegistry(db)
    first = registry.create_unit(unit_request(unit_number="12A"))
    second = registry.create_unit(unit_request(unit_number="12B"))
    return first.id, second.id


def _status(db, unit_id):
    return db.get(UnitBridge, unit_id).status


class TestAssign:

    def test_assign_available_unit(self, db, ledger, units):
        unit_id, _ = units
        outcome = ledger.assign(unit_id, 9001, JAN)

        assert outcome.status == "ok"
        assert outcome.occupancy.legacy_tenant_id == 9001
        assert outcome.occupancy.end_date is None
        assert outcome.occupancy.unit.unit_number_norm == "12a"
        assert _status(db, unit_id) == UnitBridgeStatus.OCCUPIED

    def test_missing_unit(self, ledger, units):
        assert ledger.assign(uuid.uuid4(), 9001, JAN).status == "missing-unit"

    def test_occupied_unit_refuses_other_tenant(self, ledger, units):
        unit_id, _ = units
        ledger.assign(unit_id, 9001, JAN)
        outcome = ledger.assign(unit_id, 9002, JAN)
        assert outcome.status == "unit-occupied"
        assert outcome.occupancy is None

    def test_tenant_cannot_hold_two_units(self, db, ledger, units):
        first, second = units
        ledger.assign(first, 9001, JAN)
        assert ledger.assign(second, 9001, JAN).status == "tenant-occupied"
        assert _status(db, second) == UnitBridgeStatus.AVAILABLE

    def test_unit_occupied_wins_over_tenant_occupied(self, ledger, units):
        first, second = units
        ledger.assign(first, 9001, JAN)
        ledger.assign(second, 9002, JAN)
        # both conditions hold; the unit check comes first
        assert ledger.assign(second, 9001, JAN).status == "unit-occupied"

    def test_active_occupancy_blocks_even_if_status_says_available(self, db, ledger, units):
        unit_id, _ = units
        ledger.assign(unit_id, 9001, JAN)
        db.get(UnitBridge, unit_id).status = UnitBridgeStatus.AVAILABLE
        db.commit()

        assert ledger.assign(unit_id, 9002, JAN).status == "unit-occupied"

    def test_index_rejection_is_reported_as_tenant_occupied(self, ledger, units, monkeypatch):
        first, second = units
        ledger.assign(first, 9001, JAN)

        # Simulate a concurrent writer that slipped past the tenant check
        real_check = ledger.active_occupancy_for_tenant
        calls = {"n": 0}

        def stale_check(legacy_tenant_id):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return real_check(legacy_tenant_id)

        monkeypatch.setattr(ledger, "active_occupancy_for_tenant", stale_check)
        assert ledger.assign(second, 9001, JAN).status == "tenant-occupied"


class TestUnassign:

    def test_unassign_releases_unit(self, db, ledger, units):
        unit_id, _ = units
        ledger.assign(unit_id, 9001, JAN)

        outcome = ledger.unassign(9001, FEB)
        assert outcome.status == "ok"
        assert outcome.occupancy.end_date == FEB
        assert _status(db, unit_id) == UnitBridgeStatus.AVAILABLE

    def test_second_unassign_not_found(self, ledger, units):
        unit_id, _ = units
        ledger.assign(unit_id, 9001, JAN)
        ledger.unassign(9001, FEB)
        assert ledger.unassign(9001, MAR).status == "not-found"

    def test_unassign_unknown_tenant(self, ledger, units):
        assert ledger.unassign(12345, FEB).status == "not-found"

    def test_stale_read_retries_current_occupancy(self, db, ledger, units, monkeypatch):
        first, second = units
        ledger.assign(first, 9001, JAN)
        ledger.unassign(9001, FEB)
        ledger.assign(second, 9001, MAR)
        ended = db.query(OccupancyBridge).filter(OccupancyBridge.end_date.isnot(None)).one()

        # First lookup returns the row a concurrent unassign already ended
        real_check = ledger.active_occupancy_for_tenant
        calls = {"n": 0}

        def stale_check(legacy_tenant_id):
            calls["n"] += 1
            if calls["n"] == 1:
                return ended
            return real_check(legacy_tenant_id)

        monkeypatch.setattr(ledger, "active_occupancy_for_tenant", stale_check)
        outcome = ledger.unassign(9001, datetime(2025, 4, 1))

        assert outcome.status == "ok"
        assert outcome.occupancy.unit_id == second
        assert _status(db, second) == UnitBridgeStatus.AVAILABLE
        assert calls["n"] == 2

    def test_released_unit_and_tenant_can_be_reassigned(self, db, ledger, units):
        first, second = units
        ledger.assign(first, 9001, JAN)
        ledger.unassign(9001, FEB)

        assert ledger.assign(first, 9002, FEB).status == "ok"
        assert ledger.assign(second, 9001, MAR).status == "ok"
        assert db.query(OccupancyBridge).count() == 3


class TestListByTenant:

    def test_history_most_recent_first(self, ledger, units):
        first, second = units
        ledger.assign(first, 9001, JAN)
        ledger.unassign(9001, FEB)
        ledger.assign(second, 9001, MAR)

        records = ledger.list_by_tenant(9001, Page(take=10, skip=0))
        assert [r.start_date for r in records] == [MAR, JAN]
        assert records[0].end_date is None
        assert records[1].end_date == FEB
        assert records[1].unit.unit_number_raw == "12A"

    def test_pagination(self, ledger, units):
        first, _ = units
        for month in (1, 2, 3):
            ledger.assign(first, 9001, datetime(2025, month, 1))
            ledger.unassign(9001, datetime(2025, month, 20))

        records = ledger.list_by_tenant(9001, Page(take=1, skip=1))
        assert [r.start_date for r in records] == [datetime(2025, 2, 1)]


class TestActiveOccupancyIndexes:
    """The database itself refuses a second active row per unit and per tenant."""

    def test_two_active_rows_for_one_unit(self, db, units):
        unit_id, _ = units
        db.add(OccupancyBridge(legacy_tenant_id=1, unit_id=unit_id, start_date=JAN))
        db.commit()
        db.add(OccupancyBridge(legacy_tenant_id=2, unit_id=unit_id, start_date=JAN))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_two_active_rows_for_one_tenant(self, db, units):
        first, second = units
        db.add(OccupancyBridge(legacy_tenant_id=1, unit_id=first, start_date=JAN))
        db.commit()
        db.add(OccupancyBridge(legacy_tenant_id=1, unit_id=second, start_date=JAN))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_ended_rows_do_not_count(self, db, units):
        unit_id, _ = units
        db.add(OccupancyBridge(legacy_tenant_id=1, unit_id=unit_id, start_date=JAN, end_date=FEB))
        db.add(OccupancyBridge(legacy_tenant_id=2, unit_id=unit_id, start_date=FEB, end_date=MAR))
        db.add(OccupancyBridge(legacy_tenant_id=3, unit_id=unit_id, start_date=MAR))
        db.commit()
        assert db.query(OccupancyBridge).count() == 3
