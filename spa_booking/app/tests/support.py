"""In-memory BookingStore double and snapshot factories for tests."""

from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import date, datetime, time
from typing import Callable
from zoneinfo import ZoneInfo

from spa_booking.app.domain.entities import (
    BookingDraft,
    BookingInfo,
    CreatedBooking,
    EmployeeInfo,
    LaneBlockInfo,
    LaneInfo,
    ServiceInfo,
    TreatmentGroupInfo,
)
from spa_booking.app.domain.errors import ConflictAtInsertError, NotFoundError
from spa_booking.app.domain.models import BookingStatus
from spa_booking.app.services.availability import LaneLedger

TZ = ZoneInfo("Europe/Madrid")
DAY = date(2030, 1, 15)
# The evening before DAY, so nothing on DAY is in the past
NOW = datetime(2030, 1, 14, 18, 0, tzinfo=TZ)
CENTER = "c1"


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=TZ)


def make_lane(lane_id: str, *, center_id: str = CENTER, name: str | None = None, capacity: int = 1,
              active: bool = True, blocked_until: datetime | None = None,
              allowed_group_ids: tuple[str, ...] = ()) -> LaneInfo:
    return LaneInfo(
        id=lane_id,
        center_id=center_id,
        name=name or lane_id,
        capacity=capacity,
        active=active,
        blocked_until=blocked_until,
        allowed_group_ids=frozenset(allowed_group_ids),
    )


def make_service(service_id: str, duration: int = 60, *, price_cents: int = 5000, center_id: str | None = CENTER,
                 group_id: str | None = None, lane_ids: tuple[str, ...] = ()) -> ServiceInfo:
    return ServiceInfo(
        id=service_id,
        duration_minutes=duration,
        price_cents=price_cents,
        center_id=center_id,
        name=service_id,
        group_id=group_id,
        lane_ids=lane_ids,
    )


def make_group(group_id: str, name: str = "", *, lane_ids: tuple[str, ...] = (),
               lane_id: str | None = None) -> TreatmentGroupInfo:
    return TreatmentGroupInfo(id=group_id, name=name or group_id, lane_ids=lane_ids, lane_id=lane_id)


_booking_seq = itertools.count(1)


def make_booking(lane_id: str, start: datetime, duration: int = 60, *, center_id: str = CENTER,
                 status: BookingStatus = BookingStatus.CONFIRMED) -> BookingInfo:
    return BookingInfo(
        id=f"b{next(_booking_seq)}",
        center_id=center_id,
        lane_id=lane_id,
        start=start,
        duration_minutes=duration,
        status=status,
    )


def make_block(lane_id: str, start: datetime, end: datetime, *, center_id: str = CENTER,
               block_id: str | None = None, reason: str | None = "maintenance") -> LaneBlockInfo:
    return LaneBlockInfo(
        id=block_id or f"blk-{lane_id}-{start:%H%M}",
        lane_id=lane_id,
        center_id=center_id,
        start=start,
        end=end,
        reason=reason,
    )


class InMemoryStore:
    """BookingStore backed by plain lists.

    ``insert_booking`` re-checks the lane with the same rule as the SQL store.
    ``before_insert`` runs right before that re-check and lets a test slip in a
    competing writer.
    """

    def __init__(self, *, lanes=(), services=(), groups=(), employees=(), bookings=(), blocks=()) -> None:
        self.lanes: list[LaneInfo] = list(lanes)
        self.services: list[ServiceInfo] = list(services)
        self.groups: list[TreatmentGroupInfo] = list(groups)
        self.employees: list[EmployeeInfo] = list(employees)
        self.bookings: list[BookingInfo] = list(bookings)
        self.blocks: list[LaneBlockInfo] = list(blocks)
        self.before_insert: Callable[[BookingDraft], None] | None = None
        self.inserted: list[CreatedBooking] = []
        self.calls: list[str] = []
        self._ids = itertools.count(1)

    async def list_lanes(self, center_id: str) -> list[LaneInfo]:
        self.calls.append("list_lanes")
        return [lane for lane in self.lanes if lane.center_id == center_id]

    async def list_lane_blocks(self, center_id, start=None, end=None) -> list[LaneBlockInfo]:
        self.calls.append("list_lane_blocks")
        return [
            b for b in self.blocks
            if b.center_id == center_id
            and (start is None or b.end > start)
            and (end is None or b.start < end)
        ]

    async def list_bookings(self, center_id, start, end) -> list[BookingInfo]:
        self.calls.append("list_bookings")
        return [
            b for b in self.bookings
            if b.center_id == center_id and b.status is not BookingStatus.CANCELLED
            and b.start < end and b.end > start
        ]

    async def list_services(self, center_id=None) -> list[ServiceInfo]:
        self.calls.append("list_services")
        return [s for s in self.services if center_id is None or s.center_id in (None, center_id)]

    async def list_treatment_groups(self) -> list[TreatmentGroupInfo]:
        self.calls.append("list_treatment_groups")
        return list(self.groups)

    async def list_employees(self, center_id) -> list[EmployeeInfo]:
        self.calls.append("list_employees")
        return [e for e in self.employees if e.center_id == center_id]

    async def insert_booking(self, draft: BookingDraft, prep_buffer_minutes: int) -> CreatedBooking:
        self.calls.append("insert_booking")
        if self.before_insert is not None:
            self.before_insert(draft)
        lane = next((lane for lane in self.lanes if lane.id == draft.lane_id), None)
        if lane is None or not lane.active or lane.center_id != draft.center_id:
            raise ConflictAtInsertError("lane_unavailable")
        ledger = LaneLedger(self.bookings, self.blocks, prep_buffer_minutes)
        if not ledger.is_available(lane, draft.start, draft.duration_minutes):
            raise ConflictAtInsertError("lane_capacity_reached")
        created = CreatedBooking(
            id=f"new-{next(self._ids)}",
            center_id=draft.center_id,
            lane_id=draft.lane_id,
            employee_id=draft.employee_id,
            service_id=draft.service_id,
            start=draft.start,
            duration_minutes=draft.duration_minutes,
            total_price_cents=draft.total_price_cents,
            status=draft.status,
            payment_status=draft.payment_status,
        )
        self.bookings.append(BookingInfo(
            id=created.id,
            center_id=created.center_id,
            lane_id=created.lane_id,
            start=created.start,
            duration_minutes=created.duration_minutes,
            status=created.status,
            employee_id=created.employee_id,
            service_id=created.service_id,
        ))
        self.inserted.append(created)
        return created

    async def create_lane_block(self, center_id, lane_id, start, end, reason=None, created_by=None) -> LaneBlockInfo:
        if not any(lane.id == lane_id and lane.center_id == center_id for lane in self.lanes):
            raise NotFoundError("lane_not_found")
        block = LaneBlockInfo(
            id=f"blk-{next(self._ids)}", lane_id=lane_id, center_id=center_id, start=start, end=end, reason=reason,
        )
        self.blocks.append(block)
        return block

    async def delete_lane_block(self, block_id) -> None:
        before = len(self.blocks)
        self.blocks = [b for b in self.blocks if b.id != block_id]
        if len(self.blocks) == before:
            raise NotFoundError("lane_block_not_found")

    def _replace_lane(self, lane_id: str, **changes) -> LaneInfo:
        for idx, lane in enumerate(self.lanes):
            if lane.id == lane_id:
                self.lanes[idx] = replace(lane, **changes)
                return self.lanes[idx]
        raise NotFoundError("lane_not_found")

    async def set_lane_blocked_until(self, lane_id, until) -> LaneInfo:
        return self._replace_lane(lane_id, blocked_until=until)

    async def set_lane_active(self, lane_id, active) -> LaneInfo:
        return self._replace_lane(lane_id, active=bool(active))
