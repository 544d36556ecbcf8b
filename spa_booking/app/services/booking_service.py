"""Facade used by the API: availability for a day and booking creation."""

from __future__ import annotations

import hashlib
import itertools
import logging
import random
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, Awaitable, Callable, Generic, Iterable, TypeVar

from spa_booking.app.domain.entities import (
    CreatedBooking,
    LaneBlockInfo,
    Requester,
    ServiceSelection,
    TimeSlotOption,
)
from spa_booking.app.domain.errors import InvalidBlockError
from spa_booking.app.services import assignment
from spa_booking.app.services.availability import compute_time_slots
from spa_booking.app.services.lane_resolver import resolve_lanes
from spa_booking.app.services.repositories import BookingStore
from spa_booking.config import (
    get_local_tz,
    get_prep_buffer_minutes,
    get_slot_tick_minutes,
    get_window,
    is_lane_heuristic_enabled,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

__all__ = [
    "compute_availability",
    "assign_and_create_booking",
    "availability_fingerprint",
    "LatestResultGate",
    "GateTicket",
    "compute_availability_latest",
    "create_lane_block",
]


async def compute_availability(
    store: BookingStore,
    center_id: str,
    day: date,
    selection: ServiceSelection,
    *,
    now: datetime | None = None,
    window: str = "client",
) -> list[TimeSlotOption]:
    """Slot grid for ``day`` at ``center_id`` for the selected service."""
    tz = get_local_tz()
    now = now or datetime.now(UTC)
    buffer_minutes = get_prep_buffer_minutes()

    lanes = await store.list_lanes(center_id)
    services = await store.list_services(center_id)
    groups = await store.list_treatment_groups()
    resolved = resolve_lanes(
        selection.service_id, center_id, lanes, services, groups,
        heuristic_enabled=is_lane_heuristic_enabled(),
    )

    day_start = datetime.combine(day, time.min, tzinfo=tz)
    day_end = day_start + timedelta(days=1)
    pad = timedelta(minutes=buffer_minutes + resolved.duration_minutes)
    bookings = await store.list_bookings(center_id, day_start - pad, day_end + pad)
    blocks = await store.list_lane_blocks(center_id, day_start - pad, day_end + pad)

    slots = compute_time_slots(
        day,
        resolved.lanes,
        resolved.duration_minutes,
        bookings,
        blocks,
        now,
        window=get_window(window),
        tz=tz,
        tick_minutes=get_slot_tick_minutes(),
        prep_buffer_minutes=buffer_minutes,
    )
    logger.debug(
        "Availability center=%s day=%s service=%s mode=%s lanes=%s enabled=%d/%d",
        center_id, day, selection.service_id, resolved.mode.value, list(resolved.lane_ids),
        sum(1 for s in slots if not s.disabled), len(slots),
    )
    return slots


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
) -> CreatedBooking:
    return await assignment.assign_and_create_booking(
        store, center_id, day, slot_time, selection, requester, now=now, rng=rng,
    )


def availability_fingerprint(
    center_id: str,
    day: date,
    selection: ServiceSelection,
    window: str = "client",
    *catalogs: Iterable[Any],
) -> str:
    """Stable digest of every input a slot grid depends on.

    ``catalogs`` are snapshot collections (lanes, bookings, blocks...). Order
    inside a collection does not matter.
    """
    parts = [center_id, day.isoformat(), repr(selection), window]
    for catalog in catalogs:
        parts.append("|".join(sorted(repr(item) for item in catalog)))
    return hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class GateTicket:
    key: str
    seq: int
    fingerprint: str


class LatestResultGate(Generic[T]):
    """Last-write-wins holder for derived results, one slot per key.

    ``begin`` issues a ticket; ``complete`` accepts a result only if its ticket
    is still the newest one issued for that key, so out-of-order completions
    of stale computations are dropped.

    At most ``max_keys`` keys are tracked; beginning a new key past that limit
    forgets the least recently begun one.
    """

    def __init__(self, max_keys: int = 1024) -> None:
        self.max_keys = max(1, int(max_keys))
        self._seq = itertools.count(1)
        self._latest: dict[str, int] = {}
        self._results: dict[str, tuple[str, T]] = {}

    def begin(self, key: str, fingerprint: str) -> GateTicket:
        ticket = GateTicket(key, next(self._seq), fingerprint)
        # Re-insert so dict order tracks recency
        self._latest.pop(key, None)
        self._latest[key] = ticket.seq
        while len(self._latest) > self.max_keys:
            self.forget(next(iter(self._latest)))
        return ticket

    def forget(self, key: str) -> None:
        """Drop the key; tickets still in flight for it will be discarded."""
        self._latest.pop(key, None)
        self._results.pop(key, None)

    def __len__(self) -> int:
        return len(self._latest)

    def is_current(self, ticket: GateTicket) -> bool:
        return self._latest.get(ticket.key) == ticket.seq

    def complete(self, ticket: GateTicket, result: T) -> bool:
        if not self.is_current(ticket):
            logger.debug("Discarding stale result for %s (ticket %d)", ticket.key, ticket.seq)
            return False
        self._results[ticket.key] = (ticket.fingerprint, result)
        return True

    def result(self, key: str) -> T | None:
        entry = self._results.get(key)
        return entry[1] if entry else None

    def fingerprint(self, key: str) -> str | None:
        entry = self._results.get(key)
        return entry[0] if entry else None


async def compute_availability_latest(
    gate: LatestResultGate[list[TimeSlotOption]],
    key: str,
    fingerprint: str,
    compute: Callable[[], Awaitable[list[TimeSlotOption]]],
) -> list[TimeSlotOption] | None:
    """Run ``compute`` under ``gate``; None when a newer request superseded it."""
    ticket = gate.begin(key, fingerprint)
    slots = await compute()
    if gate.complete(ticket, slots):
        return slots
    return None


async def create_lane_block(
    store: BookingStore,
    center_id: str,
    lane_id: str,
    start: datetime,
    end: datetime,
    reason: str | None = None,
    created_by: str | None = None,
) -> LaneBlockInfo:
    """Validate and persist a maintenance block; naive datetimes are local time."""
    tz = get_local_tz()
    if start.tzinfo is None:
        start = start.replace(tzinfo=tz)
    if end.tzinfo is None:
        end = end.replace(tzinfo=tz)
    if end <= start:
        raise InvalidBlockError("block_end_before_start")
    return await store.create_lane_block(center_id, lane_id, start, end, reason, created_by)
