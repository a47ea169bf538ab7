"""Building and unit registry.

Owns every write to building_bridges and every unit write except status.
Uniqueness is decided by the database constraints; the lookups made before
an insert only exist to produce a clearer error message.
"""

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, contains_eager, joinedload

from .database import transaction
from .errors import BadRequestError, ConflictError, NotFoundError
from .models import BuildingBridge, UnitBridge
from .normalization import normalize_unit_number
from .pagination import Page
from .schemas import OWNER_FIELDS, CreateUnitRequest, OwnershipType, UnitBridgeStatus

logger = logging.getLogger(__name__)

# Keys of UpdateUnitRequest.changes() that need more than a plain setattr
_SPECIAL_UPDATE_FIELDS = {"unit_number", "ownership_type", "currency", *OWNER_FIELDS}


class UnitRegistry:
    """Registry of bridged buildings and units, bound to one session."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Buildings
    # -------------------------------------------------------------------------

    def find_building(self, legacy_building_id: int) -> BuildingBridge | None:
        return self.db.scalars(
            select(BuildingBridge).where(BuildingBridge.legacy_building_id == legacy_building_id)
        ).first()

    def create_building(
        self, legacy_building_id: int, legacy_admin_id: int, building_name: str
    ) -> BuildingBridge:
        """Insert a building; ConflictError if the legacy id is taken."""
        with transaction(self.db):
            building = self._add_building(legacy_building_id, legacy_admin_id, building_name)
        return building

    def _add_building(
        self, legacy_building_id: int, legacy_admin_id: int, building_name: str
    ) -> BuildingBridge:
        building = BuildingBridge(
            legacy_building_id=legacy_building_id,
            legacy_admin_id=legacy_admin_id,
            building_name=building_name,
        )
        self.db.add(building)
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Building {legacy_building_id} already exists") from exc
        logger.info(f"Created building bridge {legacy_building_id} for admin {legacy_admin_id}")
        return building

    # -------------------------------------------------------------------------
    # Units
    # -------------------------------------------------------------------------

    def find_unit_by_id(self, unit_id: uuid.UUID) -> UnitBridge | None:
        return self.db.scalars(
            select(UnitBridge)
            .options(joinedload(UnitBridge.building))
            .where(UnitBridge.id == unit_id)
        ).first()

    def find_unit_by_number(self, legacy_building_id: int, unit_number_norm: str) -> UnitBridge | None:
        return self.db.scalars(
            select(UnitBridge)
            .options(joinedload(UnitBridge.building))
            .where(
                UnitBridge.legacy_building_id == legacy_building_id,
                UnitBridge.unit_number_norm == unit_number_norm,
            )
        ).first()

    def create_unit(self, request: CreateUnitRequest) -> UnitBridge:
        """Create a unit, creating its building first if the legacy id is new.

        Raises:
            BadRequestError: new building without a building name
            ConflictError: building owned by another admin, or duplicate unit number
        """
        unit_number_norm = normalize_unit_number(request.unit_number)

        with transaction(self.db):
            building = self.find_building(request.legacy_building_id)
            if building is None:
                name = (request.building_name or "").strip()
                if not name:
                    raise BadRequestError("buildingName is required for new buildings")
                building = self._add_building(
                    request.legacy_building_id, request.legacy_admin_id, name
                )
            elif building.legacy_admin_id != request.legacy_admin_id:
                # Cross-tenant guard: admins may only add units to their own buildings
                raise ConflictError("Building belongs to a different legacy admin")

            if self.find_unit_by_number(request.legacy_building_id, unit_number_norm):
                raise ConflictError("Unit already exists for this building")

            attributes = request.model_dump(
                exclude={
                    "legacy_admin_id",
                    "legacy_building_id",
                    "building_name",
                    "unit_number",
                    "currency",
                    *OWNER_FIELDS,
                }
            )
            if request.ownership_type != OwnershipType.BUILDING:
                attributes.update({name: getattr(request, name) for name in OWNER_FIELDS})

            unit = UnitBridge(
                building=building,
                unit_number_raw=request.unit_number,
                unit_number_norm=unit_number_norm,
                status=UnitBridgeStatus.AVAILABLE,
                **attributes,
            )
            if request.currency is not None:
                unit.currency = request.currency
            self.db.add(unit)
            try:
                self.db.flush()
            except IntegrityError as exc:
                raise ConflictError("Unit already exists for this building") from exc

        logger.info(
            f"Created unit {request.unit_number!r} in building {request.legacy_building_id}"
        )
        return unit

    def update_unit(self, unit_id: uuid.UUID, changes: dict[str, Any]) -> UnitBridge:
        """Apply a partial update.

        ``changes`` holds only the fields the caller sent; an explicit None
        clears a column, a missing key leaves it alone. Owner fields are
        re-gated on the effective ownership type on every update.
        """
        with transaction(self.db):
            unit = self.find_unit_by_id(unit_id)
            if unit is None:
                raise NotFoundError("Unit not found")

            if "unit_number" in changes:
                unit_number_norm = normalize_unit_number(changes["unit_number"])
                duplicate = self.find_unit_by_number(unit.legacy_building_id, unit_number_norm)
                if duplicate is not None and duplicate.id != unit.id:
                    raise ConflictError("Unit already exists for this building")
                unit.unit_number_raw = changes["unit_number"]
                unit.unit_number_norm = unit_number_norm

            for name, value in changes.items():
                if name not in _SPECIAL_UPDATE_FIELDS:
                    setattr(unit, name, value)

            effective_ownership = changes.get("ownership_type") or unit.ownership_type
            unit.ownership_type = effective_ownership
            if effective_ownership == OwnershipType.BUILDING:
                for name in OWNER_FIELDS:
                    setattr(unit, name, None)
            else:
                for name in OWNER_FIELDS:
                    if name in changes:
                        setattr(unit, name, changes[name])

            # currency is never nulled
            if changes.get("currency") is not None:
                unit.currency = changes["currency"]

            try:
                self.db.flush()
            except IntegrityError as exc:
                raise ConflictError("Unit already exists for this building") from exc

        logger.info(f"Updated unit {unit_id}: {sorted(changes)}")
        return unit

    def list_units_by_admin(self, legacy_admin_id: int, page: Page) -> list[UnitBridge]:
        return list(
            self.db.scalars(
                select(UnitBridge)
                .join(UnitBridge.building)
                .options(contains_eager(UnitBridge.building))
                .where(BuildingBridge.legacy_admin_id == legacy_admin_id)
                .order_by(UnitBridge.unit_number_norm.asc(), UnitBridge.legacy_building_id.asc())
                .limit(page.take)
                .offset(page.skip)
            )
        )

    def list_units_by_building(self, legacy_building_id: int, page: Page) -> list[UnitBridge]:
        return list(
            self.db.scalars(
                select(UnitBridge)
                .options(joinedload(UnitBridge.building))
                .where(UnitBridge.legacy_building_id == legacy_building_id)
                .order_by(UnitBridge.unit_number_norm.asc())
                .limit(page.take)
                .offset(page.skip)
            )
        )
