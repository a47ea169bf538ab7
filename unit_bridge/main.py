"""FastAPI application for the legacy unit bridge."""

import logging
import os
import time
import uuid
from contextlib import asynccontextmanager

import logfire
from fastapi import Depends, FastAPI, Query
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.requests import Request

from . import config
from .database import engine, get_db, init_db
from .errors import BridgeError
from .schemas import (
    AssignOccupancyRequest,
    CreateUnitRequest,
    ErrorBody,
    ErrorResponse,
    OccupancyResponse,
    UnassignOccupancyRequest,
    UnitResponse,
    UpdateUnitRequest,
)
from .service import BridgeService

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/legacy-bridge"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield


app = FastAPI(
    title="Unit Bridge API",
    description="Legacy building/unit/tenant bridge with exclusive occupancy assignment",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure Logfire for observability (after app creation)
if os.getenv("LOGFIRE_TOKEN"):
    logfire.configure()
    logfire.instrument_fastapi(app)
    logfire.instrument_sqlalchemy(engine=engine)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Request logging and error envelope
# =============================================================================


@app.middleware("http")
async def request_logging(request: Request, call_next):
    """Tag each request with an id and log its outcome."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.perf_counter()

    response = await call_next(request)

    duration_ms = round((time.perf_counter() - start) * 1000, 1)
    response.headers["x-request-id"] = request_id
    logger.info(
        f"request completed {request.method} {request.url.path} "
        f"status={response.status_code} duration_ms={duration_ms} request_id={request_id}"
    )
    return response


def _error_response(
    request: Request, status_code: int, code: str, message: str, details: list | None = None
) -> JSONResponse:
    body = ErrorResponse(
        error=ErrorBody(code=code, message=message, details=details),
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


@app.exception_handler(BridgeError)
async def bridge_error_handler(request: Request, exc: BridgeError):
    return _error_response(request, exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]
    return _error_response(request, 400, "VALIDATION_ERROR", "Validation failed", details)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return _error_response(request, 500, "INTERNAL_SERVER_ERROR", "Internal server error")


def get_service(db: Session = Depends(get_db)) -> BridgeService:
    return BridgeService(db)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Unit Bridge API"}


# =============================================================================
# Units
# =============================================================================


@app.post(f"{API_PREFIX}/units", response_model=UnitResponse, status_code=201)
def create_unit(request: CreateUnitRequest, service: BridgeService = Depends(get_service)):
    """Create a unit; the building is created too if its legacy id is new."""
    return service.create_unit(request)


@app.patch(f"{API_PREFIX}/units/{{unit_id}}", response_model=UnitResponse)
def update_unit(
    unit_id: uuid.UUID,
    request: UpdateUnitRequest,
    service: BridgeService = Depends(get_service),
):
    """Partially update a unit. Omitted fields are left untouched."""
    return service.update_unit(unit_id, request)


@app.get(f"{API_PREFIX}/units/by-admin/{{legacy_admin_id}}", response_model=list[UnitResponse])
def list_units_by_admin(
    legacy_admin_id: int,
    limit: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
    service: BridgeService = Depends(get_service),
):
    return service.list_units_by_admin(legacy_admin_id, limit, offset)


@app.get(
    f"{API_PREFIX}/units/by-building/{{legacy_building_id}}", response_model=list[UnitResponse]
)
def list_units_by_building(
    legacy_building_id: int,
    limit: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
    service: BridgeService = Depends(get_service),
):
    return service.list_units_by_building(legacy_building_id, limit, offset)


# =============================================================================
# Occupancy
# =============================================================================


@app.post(f"{API_PREFIX}/occupancy/assign", response_model=OccupancyResponse)
def assign_occupancy(
    request: AssignOccupancyRequest, service: BridgeService = Depends(get_service)
):
    """Assign a tenant to an available unit.

    409 when the unit is occupied or the tenant already occupies another unit;
    404 when the unit does not exist.
    """
    return service.assign(request)


@app.post(f"{API_PREFIX}/occupancy/unassign", response_model=OccupancyResponse)
def unassign_occupancy(
    request: UnassignOccupancyRequest, service: BridgeService = Depends(get_service)
):
    """End the tenant's active occupancy and free the unit."""
    return service.unassign(request)


@app.get(
    f"{API_PREFIX}/occupancy/by-tenant/{{legacy_tenant_id}}",
    response_model=list[OccupancyResponse],
)
def list_occupancy_by_tenant(
    legacy_tenant_id: int,
    limit: int | None = Query(default=None, ge=1),
    offset: int | None = Query(default=None, ge=0),
    service: BridgeService = Depends(get_service),
):
    """Occupancy history for a tenant, most recent first."""
    return service.list_by_tenant(legacy_tenant_id, limit, offset)
