"""Slot availability over already-fetched catalog snapshots.

Everything here is synchronous and side-effect free: the same inputs always
produce the same ``TimeSlotOption`` list, so callers may recompute on every
selection change.

Buffer rule: a probe slot ``t`` for ``duration`` minutes occupies
``[t - buffer, t + duration + buffer)`` and conflicts with any booking whose
occupied interval ``[start, start + booking_duration)`` intersects it. Two
bookings on one lane are therefore always at least ``buffer`` minutes apart.
Lane blocks are tested against the unbuffered ``[t, t + duration)``.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable, Iterator, Sequence

from spa_booking.app.domain.entities import BookingInfo, LaneBlockInfo, LaneInfo, TimeSlotOption

__all__ = [
    "REASON_PAST",
    "REASON_NO_AVAILABILITY",
    "LaneLedger",
    "iter_ticks",
    "compute_time_slots",
    "find_active_block",
    "blocks_for_lane_and_date",
]

REASON_PAST = "past"
REASON_NO_AVAILABILITY = "no_availability"


class LaneLedger:
    """Bookings and blocks grouped per lane for repeated probing."""

    def __init__(self, bookings: Iterable[BookingInfo], blocks: Iterable[LaneBlockInfo], prep_buffer_minutes: int) -> None:
        self.buffer = timedelta(minutes=max(0, int(prep_buffer_minutes)))
        self._bookings: dict[str, list[BookingInfo]] = defaultdict(list)
        self._blocks: dict[str, list[LaneBlockInfo]] = defaultdict(list)
        for booking in bookings:
            if booking.lane_id and booking.occupies_lane:
                self._bookings[booking.lane_id].append(booking)
        for block in blocks:
            self._blocks[block.lane_id].append(block)

    def is_blocked(self, lane: LaneInfo, start: datetime, end: datetime) -> bool:
        if lane.blocked_until is not None and start < lane.blocked_until:
            return True
        return any(block.overlaps(start, end) for block in self._blocks.get(lane.id, ()))

    def overlapping_count(self, lane: LaneInfo, start: datetime, end: datetime) -> int:
        buffered_start = start - self.buffer
        buffered_end = end + self.buffer
        return sum(
            1 for booking in self._bookings.get(lane.id, ())
            if booking.start < buffered_end and booking.end > buffered_start
        )

    def is_available(self, lane: LaneInfo, start: datetime, duration_minutes: int) -> bool:
        end = start + timedelta(minutes=duration_minutes)
        if self.is_blocked(lane, start, end):
            return False
        return self.overlapping_count(lane, start, end) < lane.capacity

    def first_available(self, lanes: Sequence[LaneInfo], start: datetime, duration_minutes: int) -> LaneInfo | None:
        for lane in lanes:
            if self.is_available(lane, start, duration_minutes):
                return lane
        return None

    def available(self, lanes: Sequence[LaneInfo], start: datetime, duration_minutes: int) -> list[LaneInfo]:
        return [lane for lane in lanes if self.is_available(lane, start, duration_minutes)]


def iter_ticks(day: date, window: tuple[time, time], tick_minutes: int, tz: tzinfo) -> Iterator[datetime]:
    """Local slot starts from the window's first to last tick, inclusive."""
    step = timedelta(minutes=max(1, int(tick_minutes)))
    current = datetime.combine(day, window[0], tzinfo=tz)
    last = datetime.combine(day, window[1], tzinfo=tz)
    while current <= last:
        yield current
        current += step


def compute_time_slots(
    day: date,
    lanes: Sequence[LaneInfo],
    duration_minutes: int,
    bookings: Iterable[BookingInfo],
    blocks: Iterable[LaneBlockInfo],
    now: datetime,
    *,
    window: tuple[time, time],
    tz: tzinfo,
    tick_minutes: int = 5,
    prep_buffer_minutes: int = 15,
) -> list[TimeSlotOption]:
    """One option per tick: enabled iff some candidate lane can take the booking.

    Args:
        day: Calendar day in the center's local timezone.
        lanes: Ordered candidate lanes (first fit).
        duration_minutes: Duration of the requested service.
        bookings: Non-cancelled bookings of the center around ``day``.
        blocks: Lane blocks of the center.
        now: Current instant (timezone-aware).
        window: First and last tick of the service-offering window.
        tz: Local timezone of the center.
        tick_minutes: Grid step.
        prep_buffer_minutes: Turnaround kept free around every booking.
    """
    ledger = LaneLedger(bookings, blocks, prep_buffer_minutes)
    is_today = now.astimezone(tz).date() == day
    options: list[TimeSlotOption] = []
    for tick in iter_ticks(day, window, tick_minutes, tz):
        label = tick.strftime("%H:%M")
        if is_today and tick < now:
            options.append(TimeSlotOption(label, True, REASON_PAST))
            continue
        if ledger.first_available(lanes, tick, duration_minutes) is None:
            options.append(TimeSlotOption(label, True, REASON_NO_AVAILABILITY))
        else:
            options.append(TimeSlotOption(label, False, None))
    return options


def find_active_block(blocks: Iterable[LaneBlockInfo], lane_id: str, at: datetime) -> LaneBlockInfo | None:
    """Block of ``lane_id`` in force at instant ``at`` (``start <= at < end``)."""
    return next(
        (b for b in blocks if b.lane_id == lane_id and b.start <= at < b.end),
        None,
    )


def blocks_for_lane_and_date(blocks: Iterable[LaneBlockInfo], lane_id: str, day: date, tz: tzinfo) -> list[LaneBlockInfo]:
    """Blocks of ``lane_id`` touching the local calendar ``day``."""
    day_start = datetime.combine(day, time.min, tzinfo=tz)
    day_end = day_start + timedelta(days=1)
    return sorted(
        (b for b in blocks if b.lane_id == lane_id and b.start < day_end and b.end >= day_start),
        key=lambda b: b.start,
    )
