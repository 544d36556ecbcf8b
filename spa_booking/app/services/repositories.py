from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Protocol

from sqlalchemy import delete, or_, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from spa_booking.app.core.constants import REQUIRE_ADVISORY_LOCK
from spa_booking.app.core.db import get_session
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
from spa_booking.app.domain.models import (
    Booking,
    BookingStatus,
    Employee,
    Lane,
    LaneBlock,
    MAX_BOOKING_MINUTES,
    Service,
    TreatmentGroup,
)

logger = logging.getLogger(__name__)

__all__ = ["BookingStore", "SqlAlchemyStore", "LOOKBACK_WINDOW"]

# Bookings that started this long before a range may still overlap it. Longer
# bookings cannot exist: durations are capped by a check constraint.
LOOKBACK_WINDOW = timedelta(minutes=MAX_BOOKING_MINUTES)


class BookingStore(Protocol):
    """Read queries and mutations the availability/assignment core relies on."""

    async def list_lanes(self, center_id: str) -> list[LaneInfo]: ...

    async def list_lane_blocks(
        self, center_id: str, start: datetime | None = None, end: datetime | None = None
    ) -> list[LaneBlockInfo]: ...

    async def list_bookings(self, center_id: str, start: datetime, end: datetime) -> list[BookingInfo]: ...

    async def list_services(self, center_id: str | None = None) -> list[ServiceInfo]: ...

    async def list_treatment_groups(self) -> list[TreatmentGroupInfo]: ...

    async def list_employees(self, center_id: str) -> list[EmployeeInfo]: ...

    async def insert_booking(self, draft: BookingDraft, prep_buffer_minutes: int) -> CreatedBooking: ...

    async def create_lane_block(
        self,
        center_id: str,
        lane_id: str,
        start: datetime,
        end: datetime,
        reason: str | None = None,
        created_by: str | None = None,
    ) -> LaneBlockInfo: ...

    async def delete_lane_block(self, block_id: str) -> None: ...

    async def set_lane_blocked_until(self, lane_id: str, until: datetime | None) -> LaneInfo: ...

    async def set_lane_active(self, lane_id: str, active: bool) -> LaneInfo: ...


class SqlAlchemyStore:
    """BookingStore over the async SQLAlchemy session factory.

    Every method opens its own short-lived session; ``insert_booking`` is the
    only multi-statement transaction.
    """

    async def list_lanes(self, center_id: str) -> list[LaneInfo]:
        async with get_session() as session:
            result = await session.execute(
                select(Lane).where(Lane.center_id == center_id).order_by(Lane.name, Lane.id)
            )
            return [LaneInfo.from_model(row) for row in result.scalars().all()]

    async def list_lane_blocks(
        self, center_id: str, start: datetime | None = None, end: datetime | None = None
    ) -> list[LaneBlockInfo]:
        stmt = select(LaneBlock).where(LaneBlock.center_id == center_id)
        if start is not None:
            stmt = stmt.where(LaneBlock.end_datetime > start)
        if end is not None:
            stmt = stmt.where(LaneBlock.start_datetime < end)
        async with get_session() as session:
            result = await session.execute(stmt.order_by(LaneBlock.start_datetime))
            return [LaneBlockInfo.from_model(row) for row in result.scalars().all()]

    async def list_bookings(self, center_id: str, start: datetime, end: datetime) -> list[BookingInfo]:
        async with get_session() as session:
            result = await session.execute(
                select(Booking).where(
                    Booking.center_id == center_id,
                    Booking.status != BookingStatus.CANCELLED,
                    Booking.booking_datetime < end,
                    Booking.booking_datetime >= start - LOOKBACK_WINDOW,
                ).order_by(Booking.booking_datetime)
            )
            rows = [BookingInfo.from_model(row) for row in result.scalars().all()]
        return [b for b in rows if b.end > start]

    async def list_services(self, center_id: str | None = None) -> list[ServiceInfo]:
        stmt = select(Service).where(Service.active.is_(True))
        if center_id is not None:
            stmt = stmt.where(or_(Service.center_id == center_id, Service.center_id.is_(None)))
        async with get_session() as session:
            result = await session.execute(stmt.order_by(Service.name))
            return [ServiceInfo.from_model(row) for row in result.scalars().all()]

    async def list_treatment_groups(self) -> list[TreatmentGroupInfo]:
        async with get_session() as session:
            result = await session.execute(select(TreatmentGroup).order_by(TreatmentGroup.name))
            return [TreatmentGroupInfo.from_model(row) for row in result.scalars().all()]

    async def list_employees(self, center_id: str) -> list[EmployeeInfo]:
        async with get_session() as session:
            result = await session.execute(
                select(Employee).where(Employee.center_id == center_id).order_by(Employee.id)
            )
            return [EmployeeInfo.from_model(row) for row in result.scalars().all()]

    # ------------------------------------------------------------------
    # Atomic reservation
    # ------------------------------------------------------------------
    @staticmethod
    async def _lock_lane(session: AsyncSession, lane_id: str, prep_buffer_minutes: int) -> None:
        """Serialize writers of one lane for the rest of the transaction.

        Also publishes the buffer to the capacity trigger as a transaction-local setting.
        """
        dialect = session.get_bind().dialect.name
        if dialect != "postgresql":
            if REQUIRE_ADVISORY_LOCK:
                raise RuntimeError(f"advisory locks unavailable on dialect {dialect!r}")
            logger.debug("Skipping advisory lock on dialect %s", dialect)
            return
        await session.execute(
            text("SELECT set_config('spa.prep_buffer_minutes', :minutes, true)"),
            {"minutes": str(prep_buffer_minutes)},
        )
        await session.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": f"lane:{lane_id}"})

    @staticmethod
    async def _count_overlapping(
        session: AsyncSession, lane_id: str, start: datetime, end: datetime, buffer: timedelta
    ) -> int:
        buffered_start = start - buffer
        buffered_end = end + buffer
        rows = await session.execute(
            select(Booking.booking_datetime, Booking.duration_minutes).where(
                Booking.lane_id == lane_id,
                Booking.status != BookingStatus.CANCELLED,
                Booking.booking_datetime < buffered_end,
                Booking.booking_datetime >= buffered_start - LOOKBACK_WINDOW,
            )
        )
        return sum(
            1 for b_start, b_minutes in rows.all()
            if b_start + timedelta(minutes=int(b_minutes)) > buffered_start
        )

    async def insert_booking(self, draft: BookingDraft, prep_buffer_minutes: int) -> CreatedBooking:
        """Insert ``draft`` only if its lane still has room, all in one transaction.

        Raises:
            ConflictAtInsertError: the lane is gone, blocked or full, or the
                database capacity trigger rejected the row.
        """
        buffer_minutes = max(0, int(prep_buffer_minutes))
        buffer = timedelta(minutes=buffer_minutes)
        async with get_session() as session:
            try:
                async with session.begin():
                    await self._lock_lane(session, draft.lane_id, buffer_minutes)
                    lane = await session.scalar(
                        select(Lane).where(Lane.id == draft.lane_id).with_for_update()
                    )
                    if lane is None or not lane.active or lane.center_id != draft.center_id:
                        raise ConflictAtInsertError("lane_unavailable")
                    if lane.blocked_until is not None and draft.start < lane.blocked_until:
                        raise ConflictAtInsertError("lane_blocked")
                    block_id = await session.scalar(
                        select(LaneBlock.id).where(
                            LaneBlock.lane_id == draft.lane_id,
                            LaneBlock.start_datetime < draft.end,
                            LaneBlock.end_datetime > draft.start,
                        ).limit(1)
                    )
                    if block_id is not None:
                        raise ConflictAtInsertError("lane_blocked")
                    taken = await self._count_overlapping(session, draft.lane_id, draft.start, draft.end, buffer)
                    if taken >= int(lane.capacity):
                        raise ConflictAtInsertError("lane_capacity_reached")

                    booking = Booking(
                        center_id=draft.center_id,
                        lane_id=draft.lane_id,
                        employee_id=draft.employee_id,
                        service_id=draft.service_id,
                        client_id=draft.client_id,
                        booking_datetime=draft.start,
                        duration_minutes=draft.duration_minutes,
                        status=draft.status,
                        payment_status=draft.payment_status,
                        channel=draft.channel,
                        total_price_cents=draft.total_price_cents,
                        notes=draft.notes,
                    )
                    session.add(booking)
                    await session.flush()
                    created = CreatedBooking.from_model(booking)
            except IntegrityError as ie:
                # Capacity trigger fired: a concurrent writer won the slot
                logger.info("IntegrityError while inserting booking on lane %s: %s", draft.lane_id, ie)
                raise ConflictAtInsertError("lane_capacity_reached") from ie
        return created

    # ------------------------------------------------------------------
    # Administrative mutations
    # ------------------------------------------------------------------
    async def create_lane_block(
        self,
        center_id: str,
        lane_id: str,
        start: datetime,
        end: datetime,
        reason: str | None = None,
        created_by: str | None = None,
    ) -> LaneBlockInfo:
        async with get_session() as session:
            lane = await session.get(Lane, lane_id)
            if lane is None or lane.center_id != center_id:
                raise NotFoundError("lane_not_found")
            block = LaneBlock(
                center_id=center_id,
                lane_id=lane_id,
                start_datetime=start,
                end_datetime=end,
                reason=reason,
                created_by=created_by,
            )
            session.add(block)
            await session.commit()
            await session.refresh(block)
            logger.info("Lane %s blocked from %s to %s (%s)", lane_id, start, end, reason)
            return LaneBlockInfo.from_model(block)

    async def delete_lane_block(self, block_id: str) -> None:
        async with get_session() as session:
            result = await session.execute(delete(LaneBlock).where(LaneBlock.id == block_id))
            if result.rowcount != 1:
                await session.rollback()
                raise NotFoundError("lane_block_not_found")
            await session.commit()
        logger.info("Lane block %s deleted", block_id)

    async def _update_lane(self, lane_id: str, **values: object) -> LaneInfo:
        async with get_session() as session:
            lane = await session.get(Lane, lane_id)
            if lane is None:
                raise NotFoundError("lane_not_found")
            for key, value in values.items():
                setattr(lane, key, value)
            await session.commit()
            await session.refresh(lane)
            return LaneInfo.from_model(lane)

    async def set_lane_blocked_until(self, lane_id: str, until: datetime | None) -> LaneInfo:
        lane = await self._update_lane(lane_id, blocked_until=until)
        logger.info("Lane %s blocked_until set to %s", lane_id, until)
        return lane

    async def set_lane_active(self, lane_id: str, active: bool) -> LaneInfo:
        lane = await self._update_lane(lane_id, active=bool(active))
        logger.info("Lane %s active=%s", lane_id, active)
        return lane

