"""SQLAlchemy models for the legacy unit bridge.

Data Architecture Overview:
- BuildingBridge is the root: one row per legacy building id, owned by a
  legacy admin id.
- UnitBridge belongs to a building (by legacy building id). Its raw unit
  number is kept for display; the normalized form is the uniqueness key.
- OccupancyBridge links a legacy tenant id to a unit for a date range.
  Rows are never deleted; releasing a unit sets end_date.

Exclusivity (backed by partial unique indexes, not only by application checks):
- at most one active (end_date IS NULL) occupancy per unit
- at most one active occupancy per legacy tenant id
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base
from .schemas import (
    AreaUnit,
    OwnershipType,
    ParkingType,
    UnitBridgeStatus,
    UnitType,
    WaterConnectionType,
)


def utcnow() -> datetime:
    """Current time as naive UTC, the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BuildingBridge(Base):
    """A legacy building, keyed by its externally assigned id."""

    __tablename__ = "building_bridges"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    legacy_building_id: Mapped[int] = mapped_column(
        Integer, unique=True, nullable=False, index=True
    )
    legacy_admin_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    building_name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    units: Mapped[list["UnitBridge"]] = relationship("UnitBridge", back_populates="building")

    def __repr__(self) -> str:
        return f"<BuildingBridge {self.legacy_building_id}: {self.building_name}>"


class UnitBridge(Base):
    """A unit inside a legacy building.

    status mirrors whether an active occupancy exists; only the occupancy
    ledger changes it.
    """

    __tablename__ = "unit_bridges"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    legacy_building_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("building_bridges.legacy_building_id"), nullable=False
    )
    unit_number_raw: Mapped[str] = mapped_column(Text, nullable=False)
    unit_number_norm: Mapped[str] = mapped_column(Text, nullable=False)
    unit_type: Mapped[UnitType] = mapped_column(SQLEnum(UnitType), nullable=False)
    floor_number: Mapped[str] = mapped_column(Text, nullable=False)
    ownership_type: Mapped[OwnershipType] = mapped_column(
        SQLEnum(OwnershipType), nullable=False
    )

    # Physical
    furnished: Mapped[bool | None] = mapped_column(Boolean)
    area_size: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    area_unit: Mapped[AreaUnit | None] = mapped_column(SQLEnum(AreaUnit))
    number_of_rooms: Mapped[int | None] = mapped_column(Integer)
    number_of_bedrooms: Mapped[int | None] = mapped_column(Integer)
    number_of_bathrooms: Mapped[int | None] = mapped_column(Integer)
    kitchen: Mapped[bool | None] = mapped_column(Boolean)
    balcony: Mapped[bool | None] = mapped_column(Boolean)

    # Ownership (null when ownership_type is BUILDING)
    owner_name: Mapped[str | None] = mapped_column(Text)
    owner_cnic_or_id: Mapped[str | None] = mapped_column(Text)
    owner_contact_number: Mapped[str | None] = mapped_column(String(20))

    # Utilities
    electricity_meter_number: Mapped[str | None] = mapped_column(Text)
    gas_meter_number: Mapped[str | None] = mapped_column(Text)
    water_connection_type: Mapped[WaterConnectionType | None] = mapped_column(
        SQLEnum(WaterConnectionType)
    )

    # Financial
    monthly_rent: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    maintenance_charges: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    security_deposit: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(Text, nullable=False, default="PKR")

    # Parking
    parking_slot_number: Mapped[str | None] = mapped_column(Text)
    parking_type: Mapped[ParkingType | None] = mapped_column(SQLEnum(ParkingType))

    status: Mapped[UnitBridgeStatus] = mapped_column(
        SQLEnum(UnitBridgeStatus), nullable=False, default=UnitBridgeStatus.AVAILABLE
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    building: Mapped["BuildingBridge"] = relationship("BuildingBridge", back_populates="units")
    occupancies: Mapped[list["OccupancyBridge"]] = relationship(
        "OccupancyBridge", back_populates="unit"
    )

    __table_args__ = (
        UniqueConstraint(
            "legacy_building_id", "unit_number_norm", name="uq_unit_bridge_building_number"
        ),
        Index("ix_unit_bridges_building_norm", "legacy_building_id", "unit_number_norm"),
    )

    def __repr__(self) -> str:
        return f"<UnitBridge {self.legacy_building_id}/{self.unit_number_raw} {self.status}>"


class OccupancyBridge(Base):
    """A tenant's stay in a unit. end_date IS NULL means the stay is active."""

    __tablename__ = "occupancy_bridges"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    legacy_tenant_id: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("unit_bridges.id"), nullable=False
    )
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    unit: Mapped["UnitBridge"] = relationship("UnitBridge", back_populates="occupancies")

    __table_args__ = (
        Index(
            "uq_occupancy_active_unit",
            "unit_id",
            unique=True,
            postgresql_where=text("end_date IS NULL"),
            sqlite_where=text("end_date IS NULL"),
        ),
        Index(
            "uq_occupancy_active_tenant",
            "legacy_tenant_id",
            unique=True,
            postgresql_where=text("end_date IS NULL"),
            sqlite_where=text("end_date IS NULL"),
        ),
        Index("ix_occupancy_tenant_start", "legacy_tenant_id", "start_date"),
    )

    def __repr__(self) -> str:
        return f"<OccupancyBridge tenant={self.legacy_tenant_id} unit={self.unit_id}>"
