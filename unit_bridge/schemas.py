"""Pydantic request/response schemas for the legacy unit bridge.

Schema conventions:
- JSON bodies use camelCase keys (legacyAdminId, unitNumberRaw, ...); Python
  attributes stay snake_case. Either spelling is accepted on input.
- Request models are the validation boundary: anything that reaches the
  registry or the ledger has already passed through one of these.
- Partial updates are three-state. A field that is absent from the body is
  left alone, an explicit null clears it, a value overwrites it. The set of
  fields actually sent is recovered from pydantic's ``model_fields_set``.
- Timestamps are stored as naive UTC and leave through the response models
  with an explicit UTC offset.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS: Canonical value sets
# =============================================================================


class UnitType(str, Enum):
    """What kind of space the unit is."""

    APARTMENT = "apartment"
    STUDIO = "studio"
    PENTHOUSE = "penthouse"
    DUPLEX = "duplex"
    SHOP = "shop"
    OFFICE = "office"
    OTHER = "other"


class OwnershipType(str, Enum):
    """Who holds title to the unit."""

    INDIVIDUAL = "individual"
    """Privately owned; owner name/CNIC/contact are meaningful."""

    BUILDING = "building"
    """Owned by the building itself; owner fields are always null."""


class AreaUnit(str, Enum):
    """Unit of measure for area_size."""

    SQFT = "sqft"
    SQM = "sqm"
    MARLA = "marla"
    KANAL = "kanal"


class WaterConnectionType(str, Enum):
    MUNICIPAL = "municipal"
    BORING = "boring"
    TANKER = "tanker"
    OTHER = "other"


class ParkingType(str, Enum):
    COVERED = "covered"
    OPEN = "open"
    BASEMENT = "basement"
    NONE = "none"


class UnitBridgeStatus(str, Enum):
    """Occupancy state of a bridged unit. Only the occupancy ledger moves it."""

    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"


# Owner columns that must be null whenever ownership_type is BUILDING
OWNER_FIELDS = ("owner_name", "owner_cnic_or_id", "owner_contact_number")

LegacyId = Annotated[int, Field(ge=1)]
Money = Annotated[float, Field(ge=0)]
ContactNumber = Annotated[
    str, Field(min_length=7, max_length=20, pattern=r"^[0-9+\-\s]+$")
]


def _to_naive_utc(value: datetime | None) -> datetime | None:
    """Store every timestamp as naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _as_utc(value: datetime | None) -> datetime | None:
    """Mark a stored naive-UTC timestamp as UTC for serialization."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _require_label(value: str | None) -> str | None:
    if value is not None and not value.strip():
        raise ValueError("must not be blank")
    return value


class BridgeModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# UNITS
# =============================================================================


class UnitAttributes(BridgeModel):
    """Optional physical, ownership, utility and financial attributes."""

    furnished: bool | None = None
    area_size: float | None = Field(default=None, gt=0)
    area_unit: AreaUnit | None = None
    number_of_rooms: int | None = Field(default=None, ge=0)
    number_of_bedrooms: int | None = Field(default=None, ge=0)
    number_of_bathrooms: int | None = Field(default=None, ge=0)
    kitchen: bool | None = None
    balcony: bool | None = None

    owner_name: str | None = None
    owner_cnic_or_id: str | None = None
    owner_contact_number: ContactNumber | None = None

    electricity_meter_number: str | None = None
    gas_meter_number: str | None = None
    water_connection_type: WaterConnectionType | None = None

    monthly_rent: Money | None = None
    maintenance_charges: Money | None = None
    security_deposit: Money | None = None
    currency: str | None = Field(default=None, description="ISO currency code; defaults to PKR")

    parking_slot_number: str | None = None
    parking_type: ParkingType | None = None


class CreateUnitRequest(UnitAttributes):
    """Body for POST /units.

    building_name is only consulted when legacy_building_id has never been
    seen; the building is then created on the fly, owned by legacy_admin_id.
    """

    legacy_admin_id: LegacyId
    legacy_building_id: LegacyId
    building_name: str | None = None
    unit_type: UnitType
    unit_number: str = Field(min_length=1, examples=["12A"])
    floor_number: str = Field(min_length=1, examples=["B1"])
    ownership_type: OwnershipType

    check_labels = field_validator("unit_number", "floor_number")(_require_label)


class UpdateUnitRequest(UnitAttributes):
    """Body for PATCH /units/{unit_id}. Every field is optional."""

    unit_type: UnitType | None = None
    unit_number: str | None = Field(default=None, min_length=1)
    floor_number: str | None = Field(default=None, min_length=1)
    ownership_type: OwnershipType | None = None

    check_labels = field_validator("unit_number", "floor_number")(_require_label)

    @model_validator(mode="after")
    def reject_null_required_columns(self) -> "UpdateUnitRequest":
        for name in ("unit_type", "unit_number", "floor_number", "ownership_type"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} may be omitted but not null")
        return self

    def changes(self) -> dict[str, Any]:
        """Fields explicitly present in the request, explicit nulls included."""
        return self.model_dump(exclude_unset=True)


class UnitResponse(BridgeModel):
    """A bridged unit joined with its building's admin id and name."""

    id: UUID
    legacy_building_id: int
    legacy_admin_id: int
    building_name: str
    unit_number_raw: str
    unit_number_norm: str
    unit_type: UnitType
    floor_number: str
    ownership_type: OwnershipType

    furnished: bool | None = None
    area_size: float | None = None
    area_unit: AreaUnit | None = None
    number_of_rooms: int | None = None
    number_of_bedrooms: int | None = None
    number_of_bathrooms: int | None = None
    kitchen: bool | None = None
    balcony: bool | None = None
    owner_name: str | None = None
    owner_cnic_or_id: str | None = None
    owner_contact_number: str | None = None
    electricity_meter_number: str | None = None
    gas_meter_number: str | None = None
    water_connection_type: WaterConnectionType | None = None
    monthly_rent: float | None = None
    maintenance_charges: float | None = None
    security_deposit: float | None = None
    currency: str
    parking_slot_number: str | None = None
    parking_type: ParkingType | None = None

    status: UnitBridgeStatus
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_unit(cls, unit) -> "UnitResponse":
        """Build from a UnitBridge row with its building loaded."""
        return cls(
            id=unit.id,
            legacy_building_id=unit.legacy_building_id,
            legacy_admin_id=unit.building.legacy_admin_id,
            building_name=unit.building.building_name,
            unit_number_raw=unit.unit_number_raw,
            unit_number_norm=unit.unit_number_norm,
            unit_type=unit.unit_type,
            floor_number=unit.floor_number,
            ownership_type=unit.ownership_type,
            furnished=unit.furnished,
            area_size=float(unit.area_size) if unit.area_size is not None else None,
            area_unit=unit.area_unit,
            number_of_rooms=unit.number_of_rooms,
            number_of_bedrooms=unit.number_of_bedrooms,
            number_of_bathrooms=unit.number_of_bathrooms,
            kitchen=unit.kitchen,
            balcony=unit.balcony,
            owner_name=unit.owner_name,
            owner_cnic_or_id=unit.owner_cnic_or_id,
            owner_contact_number=unit.owner_contact_number,
            electricity_meter_number=unit.electricity_meter_number,
            gas_meter_number=unit.gas_meter_number,
            water_connection_type=unit.water_connection_type,
            monthly_rent=float(unit.monthly_rent) if unit.monthly_rent is not None else None,
            maintenance_charges=(
                float(unit.maintenance_charges) if unit.maintenance_charges is not None else None
            ),
            security_deposit=(
                float(unit.security_deposit) if unit.security_deposit is not None else None
            ),
            currency=unit.currency,
            parking_slot_number=unit.parking_slot_number,
            parking_type=unit.parking_type,
            status=unit.status,
            created_at=_as_utc(unit.created_at),
            updated_at=_as_utc(unit.updated_at),
        )


# =============================================================================
# OCCUPANCY
# =============================================================================


class AssignOccupancyRequest(BridgeModel):
    """Body for POST /occupancy/assign. start_date defaults to now."""

    legacy_tenant_id: LegacyId
    legacy_building_id: LegacyId
    unit_number: str = Field(min_length=1, examples=["12A"])
    start_date: datetime | None = None

    check_label = field_validator("unit_number")(_require_label)
    normalize_timestamp = field_validator("start_date")(_to_naive_utc)


class UnassignOccupancyRequest(BridgeModel):
    """Body for POST /occupancy/unassign. end_date defaults to now."""

    legacy_tenant_id: LegacyId
    end_date: datetime | None = None

    normalize_timestamp = field_validator("end_date")(_to_naive_utc)


class OccupancyResponse(BridgeModel):
    """An occupancy record joined with its unit's display fields."""

    id: UUID
    legacy_tenant_id: int
    unit_id: UUID
    legacy_building_id: int
    unit_number_raw: str
    unit_number_norm: str
    start_date: datetime
    end_date: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_occupancy(cls, occupancy) -> "OccupancyResponse":
        """Build from an OccupancyBridge row with its unit loaded."""
        return cls(
            id=occupancy.id,
            legacy_tenant_id=occupancy.legacy_tenant_id,
            unit_id=occupancy.unit_id,
            legacy_building_id=occupancy.unit.legacy_building_id,
            unit_number_raw=occupancy.unit.unit_number_raw,
            unit_number_norm=occupancy.unit.unit_number_norm,
            start_date=_as_utc(occupancy.start_date),
            end_date=_as_utc(occupancy.end_date),
            created_at=_as_utc(occupancy.created_at),
            updated_at=_as_utc(occupancy.updated_at),
        )


# =============================================================================
# ERRORS
# =============================================================================


class ErrorBody(BaseModel):
    code: str
    message: str
    details: list[Any] | None = None


class ErrorResponse(BridgeModel):
    """Envelope returned for every non-2xx response."""

    success: bool = False
    error: ErrorBody
    request_id: str | None = None
