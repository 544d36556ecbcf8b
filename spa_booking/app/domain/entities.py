"""Immutable catalog snapshots consumed by the availability and assignment engines.

The engines never touch ORM rows or sessions: the store adapter converts rows
into these value objects so slot computation stays a pure function of its inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from .models import OCCUPYING_STATUSES, BookingChannel, BookingStatus, PaymentStatus, normalize_booking_status


def _id_tuple(values: Any) -> tuple[str, ...]:
    if not values:
        return ()
    return tuple(str(v) for v in values if v)


@dataclass(frozen=True, slots=True)
class LaneInfo:
    id: str
    center_id: str
    name: str = ""
    capacity: int = 1
    active: bool = True
    blocked_until: datetime | None = None
    allowed_group_ids: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_model(cls, row: Any) -> LaneInfo:
        return cls(
            id=str(row.id),
            center_id=str(row.center_id),
            name=str(row.name or ""),
            capacity=max(1, int(row.capacity or 1)),
            active=bool(row.active),
            blocked_until=row.blocked_until,
            allowed_group_ids=frozenset(_id_tuple(row.allowed_group_ids)),
        )

    def sort_key(self) -> tuple[str, str]:
        return (self.name.lower(), self.id)


@dataclass(frozen=True, slots=True)
class LaneBlockInfo:
    id: str
    lane_id: str
    center_id: str
    start: datetime
    end: datetime
    reason: str | None = None

    @classmethod
    def from_model(cls, row: Any) -> LaneBlockInfo:
        return cls(
            id=str(row.id),
            lane_id=str(row.lane_id),
            center_id=str(row.center_id),
            start=row.start_datetime,
            end=row.end_datetime,
            reason=row.reason,
        )

    def overlaps(self, range_start: datetime, range_end: datetime) -> bool:
        return self.start < range_end and self.end > range_start


@dataclass(frozen=True, slots=True)
class BookingInfo:
    id: str
    center_id: str
    lane_id: str | None
    start: datetime
    duration_minutes: int
    status: BookingStatus = BookingStatus.PENDING
    employee_id: str | None = None
    service_id: str | None = None

    @classmethod
    def from_model(cls, row: Any) -> BookingInfo:
        return cls(
            id=str(row.id),
            center_id=str(row.center_id),
            lane_id=str(row.lane_id) if row.lane_id else None,
            start=row.booking_datetime,
            duration_minutes=int(row.duration_minutes),
            status=normalize_booking_status(row.status) or BookingStatus.PENDING,
            employee_id=str(row.employee_id) if row.employee_id else None,
            service_id=str(row.service_id) if row.service_id else None,
        )

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    @property
    def occupies_lane(self) -> bool:
        return self.status in OCCUPYING_STATUSES


@dataclass(frozen=True, slots=True)
class TreatmentGroupInfo:
    id: str
    name: str = ""
    lane_ids: tuple[str, ...] = ()
    lane_id: str | None = None

    @classmethod
    def from_model(cls, row: Any) -> TreatmentGroupInfo:
        return cls(
            id=str(row.id),
            name=str(row.name or ""),
            lane_ids=_id_tuple(row.lane_ids),
            lane_id=str(row.lane_id) if row.lane_id else None,
        )


@dataclass(frozen=True, slots=True)
class ServiceInfo:
    id: str
    duration_minutes: int
    price_cents: int = 0
    center_id: str | None = None
    name: str = ""
    group_id: str | None = None
    lane_ids: tuple[str, ...] = ()

    @classmethod
    def from_model(cls, row: Any) -> ServiceInfo:
        return cls(
            id=str(row.id),
            duration_minutes=int(row.duration_minutes),
            price_cents=int(row.price_cents or 0),
            center_id=str(row.center_id) if row.center_id else None,
            name=str(row.name or ""),
            group_id=str(row.group_id) if row.group_id else None,
            lane_ids=_id_tuple(row.lane_ids),
        )


@dataclass(frozen=True, slots=True)
class EmployeeInfo:
    id: str
    center_id: str
    active: bool = True

    @classmethod
    def from_model(cls, row: Any) -> EmployeeInfo:
        return cls(id=str(row.id), center_id=str(row.center_id), active=bool(row.active))


@dataclass(frozen=True, slots=True)
class TimeSlotOption:
    time: str  # "HH:MM"
    disabled: bool
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class ServiceSelection:
    """What the requester picked: a service and, for staff, an optional room/employee."""

    service_id: str | None = None
    lane_id: str | None = None
    employee_id: str | None = None


@dataclass(frozen=True, slots=True)
class Requester:
    client_id: str | None = None
    channel: BookingChannel = BookingChannel.WEB
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class BookingDraft:
    center_id: str
    lane_id: str
    start: datetime
    duration_minutes: int
    employee_id: str | None = None
    service_id: str | None = None
    client_id: str | None = None
    total_price_cents: int = 0
    channel: BookingChannel = BookingChannel.WEB
    notes: str | None = None
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)


@dataclass(frozen=True, slots=True)
class CreatedBooking:
    id: str
    center_id: str
    lane_id: str
    employee_id: str | None
    service_id: str | None
    start: datetime
    duration_minutes: int
    total_price_cents: int
    status: BookingStatus
    payment_status: PaymentStatus

    @classmethod
    def from_model(cls, row: Any) -> CreatedBooking:
        return cls(
            id=str(row.id),
            center_id=str(row.center_id),
            lane_id=str(row.lane_id),
            employee_id=str(row.employee_id) if row.employee_id else None,
            service_id=str(row.service_id) if row.service_id else None,
            start=row.booking_datetime,
            duration_minutes=int(row.duration_minutes),
            total_price_cents=int(row.total_price_cents or 0),
            status=normalize_booking_status(row.status) or BookingStatus.PENDING,
            payment_status=PaymentStatus(getattr(row.payment_status, "value", row.payment_status)),
        )


__all__ = [
    "LaneInfo",
    "LaneBlockInfo",
    "BookingInfo",
    "TreatmentGroupInfo",
    "ServiceInfo",
    "EmployeeInfo",
    "TimeSlotOption",
    "ServiceSelection",
    "Requester",
    "BookingDraft",
    "CreatedBooking",
]
