"""Lane and employee assignment for a confirmed slot, followed by the atomic insert.

Specific resolutions (service or group configuration) assign the first free
lane in declared order and fail closed when none is free. Non-specific
resolutions (whole center, heuristic) pick uniformly at random among the free
lanes of the candidate set so load spreads across rooms.
"""

from __future__ import annotations

import logging
import random
from datetime import UTC, date, datetime, time, timedelta
from typing import Sequence

from spa_booking.app.domain.entities import (
    BookingDraft,
    CreatedBooking,
    LaneInfo,
    Requester,
    ServiceSelection,
)
from spa_booking.app.domain.errors import ConflictAtInsertError, NoAvailabilityError, NotFoundError, PastTimeError
from spa_booking.app.services.availability import LaneLedger
from spa_booking.app.services.lane_resolver import ResolvedLanes, center_lanes, resolve_lanes
from spa_booking.app.services.repositories import BookingStore
from spa_booking.config import (
    get_local_tz,
    get_prep_buffer_minutes,
    is_lane_heuristic_enabled,
)

logger = logging.getLogger(__name__)

__all__ = ["assign_and_create_booking", "choose_lane", "choose_employee"]


def choose_lane(
    resolved: ResolvedLanes,
    ledger: LaneLedger,
    start: datetime,
    rng: random.Random,
    *,
    explicit_lane_id: str | None = None,
    active_lanes: Sequence[LaneInfo] = (),
) -> LaneInfo:
    """Pick the lane for a booking at ``start`` or raise ``NoAvailabilityError``."""
    duration = resolved.duration_minutes
    if explicit_lane_id:
        lane = next((lane for lane in active_lanes if lane.id == explicit_lane_id), None)
        if lane is None:
            raise NoAvailabilityError("lane_not_in_center")
        if not ledger.is_available(lane, start, duration):
            raise NoAvailabilityError()
        return lane

    if resolved.specific:
        lane = ledger.first_available(resolved.lanes, start, duration)
        if lane is None:
            raise NoAvailabilityError()
        return lane

    free = ledger.available(resolved.lanes, start, duration)
    if not free:
        raise NoAvailabilityError()
    return rng.choice(free)


async def choose_employee(
    store: BookingStore,
    center_id: str,
    rng: random.Random,
    explicit_employee_id: str | None = None,
) -> str | None:
    employees = [e for e in await store.list_employees(center_id) if e.active and e.center_id == center_id]
    if explicit_employee_id:
        if not any(e.id == explicit_employee_id for e in employees):
            raise NotFoundError("employee_not_in_center")
        return explicit_employee_id
    if not employees:
        return None
    return rng.choice(employees).id


async def assign_and_create_booking(
    store: BookingStore,
    center_id: str,
    day: date,
    slot_time: time,
    selection: ServiceSelection,
    requester: Requester | None = None,
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
    prep_buffer_minutes: int | None = None,
    heuristic_enabled: bool | None = None,
) -> CreatedBooking:
    """Assign a lane (and employee) for the chosen slot and persist the booking.

    Args:
        store: Catalog/booking store.
        center_id: Center the booking belongs to.
        day: Local calendar day of the slot.
        slot_time: Local start time picked from the slot grid.
        selection: Requested service plus optional staff lane/employee override.
        requester: Identity and channel of whoever is booking.
        now: Current instant, defaults to ``datetime.now(UTC)``.
        rng: Random source for non-specific lane and employee choice.
        prep_buffer_minutes: Override for the configured turnaround buffer.
        heuristic_enabled: Override for the positional lane fallback switch.

    Returns:
        The persisted booking.

    Raises:
        PastTimeError: the slot already started.
        NoAvailabilityError: no candidate lane can take the booking, including
            a lost race at insert time (``ConflictAtInsertError``).
        NotFoundError: an explicit employee does not work at the center.
    """
    tz = get_local_tz()
    now = now or datetime.now(UTC)
    rng = rng or random.Random()
    requester = requester or Requester()
    buffer_minutes = get_prep_buffer_minutes() if prep_buffer_minutes is None else max(0, int(prep_buffer_minutes))
    heuristic = is_lane_heuristic_enabled() if heuristic_enabled is None else bool(heuristic_enabled)

    start = datetime.combine(day, slot_time, tzinfo=tz)
    if start < now:
        raise PastTimeError()

    lanes = await store.list_lanes(center_id)
    services = await store.list_services(center_id)
    groups = await store.list_treatment_groups()
    resolved = resolve_lanes(
        selection.service_id, center_id, lanes, services, groups, heuristic_enabled=heuristic,
    )
    duration = resolved.duration_minutes
    buffer = timedelta(minutes=buffer_minutes)
    end = start + timedelta(minutes=duration)

    bookings = await store.list_bookings(center_id, start - buffer, end + buffer)
    blocks = await store.list_lane_blocks(center_id, start, end)
    ledger = LaneLedger(bookings, blocks, buffer_minutes)

    lane = choose_lane(
        resolved, ledger, start, rng,
        explicit_lane_id=selection.lane_id,
        active_lanes=center_lanes(lanes, center_id),
    )
    employee_id = await choose_employee(store, center_id, rng, selection.employee_id)

    draft = BookingDraft(
        center_id=center_id,
        lane_id=lane.id,
        start=start,
        duration_minutes=duration,
        employee_id=employee_id,
        service_id=resolved.service.id if resolved.service else None,
        client_id=requester.client_id,
        total_price_cents=resolved.price_cents,
        channel=requester.channel,
        notes=requester.notes,
    )
    try:
        created = await store.insert_booking(draft, buffer_minutes)
    except ConflictAtInsertError as exc:
        logger.info("Lost slot %s on lane %s at insert (%s)", start.isoformat(), lane.id, exc)
        raise
    logger.info(
        "Booking %s created: center=%s lane=%s employee=%s start=%s mode=%s",
        created.id, center_id, lane.id, employee_id, start.isoformat(), resolved.mode.value,
    )
    return created
