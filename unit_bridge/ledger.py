"""Occupancy ledger: the only writer of occupancy rows and of unit status.

Both exclusivity rules (one active occupancy per unit, one per tenant) are
re-checked inside the transaction that performs the write. The unit row is
locked first so concurrent assigns for the same unit serialize on it, and the
partial unique indexes on occupancy_bridges catch anything the checks miss.
Expected business conditions come back as a LedgerOutcome, never as an
exception.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from .database import transaction
from .models import OccupancyBridge, UnitBridge
from .pagination import Page
from .schemas import UnitBridgeStatus

logger = logging.getLogger(__name__)

OutcomeStatus = Literal["ok", "missing-unit", "unit-occupied", "tenant-occupied", "not-found"]


@dataclass
class LedgerOutcome:
    """Result of an assign/unassign. occupancy is set only when status is "ok"."""

    status: OutcomeStatus
    occupancy: OccupancyBridge | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class OccupancyLedger:
    """Transactional assign/unassign of tenants to units, bound to one session."""

    def __init__(self, db: Session):
        self.db = db

    def _lock_unit(self, unit_id: uuid.UUID) -> UnitBridge | None:
        # populate_existing: a unit already in the identity map must be
        # overwritten with the row as of the lock, not served from memory
        return self.db.scalars(
            select(UnitBridge)
            .where(UnitBridge.id == unit_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()

    def active_occupancy_for_unit(self, unit_id: uuid.UUID) -> OccupancyBridge | None:
        return self.db.scalars(
            select(OccupancyBridge).where(
                OccupancyBridge.unit_id == unit_id,
                OccupancyBridge.end_date.is_(None),
            )
        ).first()

    def active_occupancy_for_tenant(self, legacy_tenant_id: int) -> OccupancyBridge | None:
        return self.db.scalars(
            select(OccupancyBridge).where(
                OccupancyBridge.legacy_tenant_id == legacy_tenant_id,
                OccupancyBridge.end_date.is_(None),
            )
        ).first()

    def assign(
        self, unit_id: uuid.UUID, legacy_tenant_id: int, start_date: datetime
    ) -> LedgerOutcome:
        """Open an occupancy for the tenant in the unit and mark the unit OCCUPIED.

        Check order fixes error precedence:
        missing-unit > unit-occupied > tenant-occupied > ok.
        """
        try:
            with transaction(self.db):
                outcome = self._assign(unit_id, legacy_tenant_id, start_date)
        except IntegrityError:
            # A concurrent writer got past the checks first; the partial
            # unique index rejected this insert. Report it like the checks would.
            outcome = self._classify_lost_race(unit_id, legacy_tenant_id)
            if outcome is None:
                raise
            logger.warning(
                f"Assign of tenant {legacy_tenant_id} to unit {unit_id} lost a race: {outcome.status}"
            )
            return outcome

        if outcome.ok:
            logger.info(f"Assigned tenant {legacy_tenant_id} to unit {unit_id}")
        else:
            logger.info(
                f"Assign of tenant {legacy_tenant_id} to unit {unit_id} refused: {outcome.status}"
            )
        return outcome

    def _assign(
        self, unit_id: uuid.UUID, legacy_tenant_id: int, start_date: datetime
    ) -> LedgerOutcome:
        unit = self._lock_unit(unit_id)
        if unit is None:
            return LedgerOutcome("missing-unit")
        if unit.status != UnitBridgeStatus.AVAILABLE:
            return LedgerOutcome("unit-occupied")

        # status and the active-occupancy set are redundant; check both
        if self.active_occupancy_for_unit(unit_id) is not None:
            return LedgerOutcome("unit-occupied")
        if self.active_occupancy_for_tenant(legacy_tenant_id) is not None:
            return LedgerOutcome("tenant-occupied")

        occupancy = OccupancyBridge(
            legacy_tenant_id=legacy_tenant_id,
            unit=unit,
            start_date=start_date,
        )
        self.db.add(occupancy)
        unit.status = UnitBridgeStatus.OCCUPIED
        self.db.flush()
        return LedgerOutcome("ok", occupancy)

    def _classify_lost_race(
        self, unit_id: uuid.UUID, legacy_tenant_id: int
    ) -> LedgerOutcome | None:
        with transaction(self.db):
            if self.active_occupancy_for_unit(unit_id) is not None:
                return LedgerOutcome("unit-occupied")
            if self.active_occupancy_for_tenant(legacy_tenant_id) is not None:
                return LedgerOutcome("tenant-occupied")
        return None

    def unassign(self, legacy_tenant_id: int, end_date: datetime) -> LedgerOutcome:
        """End the tenant's active occupancy and return its unit to AVAILABLE.

        A second call for the same tenant reports "not-found".
        """
        with transaction(self.db):
            # A row read before the locks may have been ended (and the tenant
            # reassigned) by the time it is locked; look again once.
            for _ in range(2):
                active = self.active_occupancy_for_tenant(legacy_tenant_id)
                if active is None:
                    return LedgerOutcome("not-found")

                # Lock order matches assign: unit row first
                unit_id = active.unit_id
                unit = self._lock_unit(unit_id)
                self.db.refresh(active, with_for_update=True)
                if active.end_date is None:
                    break
            else:
                return LedgerOutcome("not-found")

            active.end_date = end_date
            unit.status = UnitBridgeStatus.AVAILABLE
            self.db.flush()

        logger.info(f"Released tenant {legacy_tenant_id} from unit {unit_id}")
        return LedgerOutcome("ok", active)

    def list_by_tenant(self, legacy_tenant_id: int, page: Page) -> list[OccupancyBridge]:
        """Active and historical occupancies, most recent start first."""
        return list(
            self.db.scalars(
                select(OccupancyBridge)
                .options(joinedload(OccupancyBridge.unit))
                .where(OccupancyBridge.legacy_tenant_id == legacy_tenant_id)
                .order_by(OccupancyBridge.start_date.desc(), OccupancyBridge.created_at.desc())
                .limit(page.take)
                .offset(page.skip)
            )
        )
