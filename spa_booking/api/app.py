"""FastAPI facade for the booking form and the staff block calendar.

Thin layer over ``booking_service``: request parsing, requester identity from
the auth service's JWT, and translation of booking errors into response codes.
"""

from __future__ import annotations

import logging
import os
from datetime import date as date_cls, datetime, time as time_cls
from functools import wraps
from typing import Optional

import jwt
from fastapi import Depends, FastAPI, Header, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from spa_booking.app.domain.entities import LaneInfo, Requester, ServiceSelection
from spa_booking.app.domain.errors import BookingError, InvalidBlockError, NotFoundError
from spa_booking.app.domain.models import BookingChannel
from spa_booking.app.services import booking_service
from spa_booking.app.services.repositories import BookingStore, SqlAlchemyStore
from spa_booking.config import get_local_tz, get_setting

logger = logging.getLogger(__name__)

STAFF_ROLES = frozenset({"staff", "admin"})

_raw_origins = [os.getenv("API_ORIGIN")]
ALLOW_ALL_ORIGINS = os.getenv("API_ALLOW_ALL_ORIGINS", "false").lower() in {"1", "true", "yes"}
ALLOWED_ORIGINS = [o for o in _raw_origins if o]


class Principal(BaseModel):
    user_id: str
    role: str = "client"
    name: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


class SlotOut(BaseModel):
    time: str
    disabled: bool
    reason: Optional[str] = None


class AvailabilityResponse(BaseModel):
    date: str
    timezone: str
    slots: list[SlotOut]


class BookingRequest(BaseModel):
    center_id: str
    date: date_cls
    time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    service_id: Optional[str] = None
    lane_id: Optional[str] = None
    employee_id: Optional[str] = None
    channel: BookingChannel = BookingChannel.WEB
    notes: Optional[str] = Field(default=None, max_length=2000)


class BookingResponse(BaseModel):
    ok: bool
    booking_id: Optional[str] = None
    lane_id: Optional[str] = None
    employee_id: Optional[str] = None
    status: Optional[str] = None
    payment_status: Optional[str] = None
    starts_at: Optional[str] = None
    duration_minutes: Optional[int] = None
    total_price_cents: Optional[int] = None
    error: Optional[str] = None


class LaneBlockRequest(BaseModel):
    lane_id: str
    start: datetime
    end: datetime
    reason: Optional[str] = None


class LaneBlockOut(BaseModel):
    id: str
    lane_id: str
    center_id: str
    start: str
    end: str
    reason: Optional[str] = None


class BlockedUntilRequest(BaseModel):
    blocked_until: Optional[datetime] = None


class LaneActiveRequest(BaseModel):
    active: bool


class LaneOut(BaseModel):
    id: str
    center_id: str
    name: str
    capacity: int
    active: bool
    blocked_until: Optional[str] = None


# ---------------------------------------------------------------------------
# Error handling helpers
# ---------------------------------------------------------------------------

def _normalize_error_code(val: str | Exception | None, default: str) -> str:
    """Return a safe error code for the frontend without leaking exception text."""
    if val is None:
        return default
    code = str(getattr(val, "code", None) or val).strip().lower()
    if not code or not all(ch.isalnum() or ch in {"_", "-"} for ch in code):
        return default
    return code[:64]


def booking_error_handler(default_error: str):
    """Decorator to de-duplicate try/except in booking endpoints.

    - Passes through FastAPI `HTTPException` untouched.
    - Converts `BookingError` to a BookingResponse carrying its code.
    - Logs unexpected exceptions and returns a unified error code.
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                raise
            except BookingError as exc:
                return BookingResponse(ok=False, error=_normalize_error_code(exc, default_error))
            except Exception as exc:  # noqa: BLE001 - API boundary
                logger.exception("%s failed: %s", func.__name__, exc)
                return BookingResponse(ok=False, error=default_error)

        return wrapper

    return decorator


def admin_error_handler(func):
    """Map store errors of admin mutations to HTTP status codes."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except NotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except InvalidBlockError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return wrapper


# ---------------------------------------------------------------------------
# Identity and dependencies
# ---------------------------------------------------------------------------

def _decode_token(token: str) -> Principal:
    secret = str(get_setting("jwt_secret") or "")
    algorithm = str(get_setting("jwt_algorithm") or "HS256")
    if not secret:
        logger.error("AUTH_JWT_SECRET is not configured; rejecting bearer token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="auth_not_configured")
    try:
        data = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="token_expired") from exc
    except jwt.InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token") from exc

    sub = data.get("sub")
    if not sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing_subject")
    return Principal(user_id=str(sub), role=str(data.get("role") or "client"), name=data.get("name"))


async def get_optional_principal(authorization: str | None = Header(default=None)) -> Principal | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_authorization_header")
    return _decode_token(token)


async def get_current_principal(principal: Principal | None = Depends(get_optional_principal)) -> Principal:
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing_authorization")
    return principal


async def require_staff(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_staff:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="staff_only")
    return principal


def get_store() -> BookingStore:
    return SqlAlchemyStore()


def _parse_hhmm(value: str) -> time_cls:
    try:
        return datetime.strptime(value, "%H:%M").time()
    except ValueError as exc:
        raise HTTPException(status_code=422, detail="invalid_time") from exc


def _localize(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=get_local_tz())


def _lane_out(lane: LaneInfo) -> LaneOut:
    return LaneOut(
        id=lane.id,
        center_id=lane.center_id,
        name=lane.name,
        capacity=lane.capacity,
        active=lane.active,
        blocked_until=lane.blocked_until.isoformat() if lane.blocked_until else None,
    )


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(title="Spa Booking API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if ALLOW_ALL_ORIGINS else ALLOWED_ORIGINS,
    allow_credentials=not ALLOW_ALL_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/centers/{center_id}/availability", response_model=AvailabilityResponse)
async def get_availability(
    center_id: str,
    date: date_cls,
    service_id: Optional[str] = None,
    window: str = Query("client", pattern="^(client|staff)$"),
    principal: Principal | None = Depends(get_optional_principal),
    store: BookingStore = Depends(get_store),
) -> AvailabilityResponse:
    if window == "staff" and (principal is None or not principal.is_staff):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="staff_only")
    try:
        slots = await booking_service.compute_availability(
            store, center_id, date, ServiceSelection(service_id=service_id), window=window,
        )
    except Exception as exc:
        logger.exception("Failed to compute availability for center %s on %s: %s", center_id, date, exc)
        raise HTTPException(status_code=500, detail="availability_failed") from exc
    return AvailabilityResponse(
        date=date.isoformat(),
        timezone=str(get_local_tz()),
        slots=[SlotOut(time=s.time, disabled=s.disabled, reason=s.reason) for s in slots],
    )


@app.post("/api/bookings", response_model=BookingResponse)
@booking_error_handler("booking_failed")
async def create_booking(
    payload: BookingRequest,
    principal: Principal = Depends(get_current_principal),
    store: BookingStore = Depends(get_store),
) -> BookingResponse:
    if (payload.lane_id or payload.employee_id) and not principal.is_staff:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="staff_only")
    slot_time = _parse_hhmm(payload.time)
    selection = ServiceSelection(
        service_id=payload.service_id,
        lane_id=payload.lane_id,
        employee_id=payload.employee_id,
    )
    requester = Requester(
        client_id=None if principal.is_staff else principal.user_id,
        channel=payload.channel,
        notes=payload.notes,
    )
    created = await booking_service.assign_and_create_booking(
        store, payload.center_id, payload.date, slot_time, selection, requester,
    )
    return BookingResponse(
        ok=True,
        booking_id=created.id,
        lane_id=created.lane_id,
        employee_id=created.employee_id,
        status=created.status.value,
        payment_status=created.payment_status.value,
        starts_at=created.start.isoformat(),
        duration_minutes=created.duration_minutes,
        total_price_cents=created.total_price_cents,
    )


@app.post("/api/centers/{center_id}/lane-blocks", response_model=LaneBlockOut)
@admin_error_handler
async def create_lane_block(
    center_id: str,
    payload: LaneBlockRequest,
    principal: Principal = Depends(require_staff),
    store: BookingStore = Depends(get_store),
) -> LaneBlockOut:
    block = await booking_service.create_lane_block(
        store, center_id, payload.lane_id, payload.start, payload.end,
        reason=payload.reason, created_by=principal.user_id,
    )
    return LaneBlockOut(
        id=block.id,
        lane_id=block.lane_id,
        center_id=block.center_id,
        start=block.start.isoformat(),
        end=block.end.isoformat(),
        reason=block.reason,
    )


@app.delete("/api/lane-blocks/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
@admin_error_handler
async def delete_lane_block(
    block_id: str,
    principal: Principal = Depends(require_staff),
    store: BookingStore = Depends(get_store),
) -> None:
    await store.delete_lane_block(block_id)


@app.put("/api/lanes/{lane_id}/blocked-until", response_model=LaneOut)
@admin_error_handler
async def set_lane_blocked_until(
    lane_id: str,
    payload: BlockedUntilRequest,
    principal: Principal = Depends(require_staff),
    store: BookingStore = Depends(get_store),
) -> LaneOut:
    lane = await store.set_lane_blocked_until(lane_id, _localize(payload.blocked_until))
    return _lane_out(lane)


@app.put("/api/lanes/{lane_id}/active", response_model=LaneOut)
@admin_error_handler
async def set_lane_active(
    lane_id: str,
    payload: LaneActiveRequest,
    principal: Principal = Depends(require_staff),
    store: BookingStore = Depends(get_store),
) -> LaneOut:
    lane = await store.set_lane_active(lane_id, payload.active)
    return _lane_out(lane)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


def get_app() -> FastAPI:
    """Exported factory for uvicorn or tests."""
    return app
