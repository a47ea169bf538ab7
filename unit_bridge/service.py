"""Bridge service facade.

Wires the registry and the ledger to one request's session, turns ledger
outcomes into domain errors and shapes responses. Holds no locks of its own;
every serialization point is in the database.
"""

import logging
import uuid

from sqlalchemy.orm import Session

from .errors import ConflictError, NotFoundError
from .ledger import LedgerOutcome, OccupancyLedger
from .models import utcnow
from .normalization import normalize_unit_number
from .pagination import resolve_pagination
from .registry import UnitRegistry
from .schemas import (
    AssignOccupancyRequest,
    CreateUnitRequest,
    OccupancyResponse,
    UnassignOccupancyRequest,
    UnitResponse,
    UpdateUnitRequest,
)

logger = logging.getLogger(__name__)

# Ledger outcome -> (error class, message)
_OUTCOME_ERRORS = {
    "missing-unit": (NotFoundError, "Unit not found"),
    "unit-occupied": (ConflictError, "Unit is already occupied"),
    "tenant-occupied": (ConflictError, "Tenant already occupies another unit"),
    "not-found": (NotFoundError, "Active occupancy not found"),
}


def _raise_for_outcome(outcome: LedgerOutcome) -> None:
    if outcome.ok:
        return
    error_cls, message = _OUTCOME_ERRORS[outcome.status]
    raise error_cls(message)


class BridgeService:
    """Entry point for every bridge operation."""

    def __init__(self, db: Session):
        self.db = db
        self.registry = UnitRegistry(db)
        self.ledger = OccupancyLedger(db)

    # -------------------------------------------------------------------------
    # Units
    # -------------------------------------------------------------------------

    def create_unit(self, request: CreateUnitRequest) -> UnitResponse:
        unit = self.registry.create_unit(request)
        return UnitResponse.from_unit(unit)

    def update_unit(self, unit_id: uuid.UUID, request: UpdateUnitRequest) -> UnitResponse:
        unit = self.registry.update_unit(unit_id, request.changes())
        return UnitResponse.from_unit(unit)

    def list_units_by_admin(
        self, legacy_admin_id: int, limit: int | None = None, offset: int | None = None
    ) -> list[UnitResponse]:
        units = self.registry.list_units_by_admin(legacy_admin_id, resolve_pagination(limit, offset))
        return [UnitResponse.from_unit(unit) for unit in units]

    def list_units_by_building(
        self, legacy_building_id: int, limit: int | None = None, offset: int | None = None
    ) -> list[UnitResponse]:
        units = self.registry.list_units_by_building(
            legacy_building_id, resolve_pagination(limit, offset)
        )
        return [UnitResponse.from_unit(unit) for unit in units]

    # -------------------------------------------------------------------------
    # Occupancy
    # -------------------------------------------------------------------------

    def assign(self, request: AssignOccupancyRequest) -> OccupancyResponse:
        """Assign a tenant to a unit identified by building id + unit number."""
        unit = self.registry.find_unit_by_number(
            request.legacy_building_id, normalize_unit_number(request.unit_number)
        )
        if unit is None:
            self.db.rollback()
            raise NotFoundError("Unit not found")

        outcome = self.ledger.assign(
            unit.id, request.legacy_tenant_id, request.start_date or utcnow()
        )
        _raise_for_outcome(outcome)
        return OccupancyResponse.from_occupancy(outcome.occupancy)

    def unassign(self, request: UnassignOccupancyRequest) -> OccupancyResponse:
        outcome = self.ledger.unassign(request.legacy_tenant_id, request.end_date or utcnow())
        _raise_for_outcome(outcome)
        return OccupancyResponse.from_occupancy(outcome.occupancy)

    def list_by_tenant(
        self, legacy_tenant_id: int, limit: int | None = None, offset: int | None = None
    ) -> list[OccupancyResponse]:
        records = self.ledger.list_by_tenant(legacy_tenant_id, resolve_pagination(limit, offset))
        return [OccupancyResponse.from_occupancy(record) for record in records]
