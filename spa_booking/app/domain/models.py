import uuid
from datetime import UTC, datetime
from enum import Enum as _Enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class (explicit for mypy)."""

    pass


def _new_id() -> str:
    return str(uuid.uuid4())


class BookingStatus(_Enum):  # Values match DB labels (Postgres enum)
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    REQUESTED = "requested"
    NEW = "new"
    ONLINE = "online"


class PaymentStatus(_Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIAL_REFUND = "partial_refund"


class BookingChannel(_Enum):
    WEB = "web"
    WHATSAPP = "whatsapp"
    EMAIL = "email"
    PHONE = "phone"


def normalize_booking_status(value: str | BookingStatus | None) -> BookingStatus | None:
    """Return a BookingStatus enum when possible (accepts strings/enum values)."""
    if isinstance(value, BookingStatus):
        return value
    if isinstance(value, str):
        cleaned = value.strip().lower().replace("-", "_")
        try:
            return BookingStatus(cleaned)
        except ValueError:
            return None
    return None


# Every status except cancelled occupies its lane.
OCCUPYING_STATUSES = frozenset(s for s in BookingStatus if s is not BookingStatus.CANCELLED)

# Upper bound on a single appointment; range queries look back this far
MAX_BOOKING_MINUTES = 720


def _enum_column(enum_cls: type[_Enum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda e: [m.value for m in e],  # persist lowercase labels
        native_enum=True,
    )


class Center(Base):
    __tablename__ = "centers"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200))
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Lane(Base):
    __tablename__ = "lanes"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    center_id: Mapped[str] = mapped_column(ForeignKey("centers.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    capacity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Permanent block: the lane accepts nothing before this instant
    blocked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Treatment groups this lane may serve; empty list means unrestricted
    allowed_group_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    __table_args__ = (CheckConstraint("capacity >= 1", name="lane_capacity_positive"),)


class LaneBlock(Base):
    __tablename__ = "lane_blocks"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    lane_id: Mapped[str] = mapped_column(ForeignKey("lanes.id", ondelete="CASCADE"))
    center_id: Mapped[str] = mapped_column(ForeignKey("centers.id", ondelete="CASCADE"), index=True)
    start_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    reason: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    __table_args__ = (CheckConstraint("end_datetime > start_datetime", name="lane_block_range_valid"),)


class TreatmentGroup(Base):
    __tablename__ = "treatment_groups"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200))
    # Legacy single-lane affinity, used only when lane_ids is empty
    lane_id: Mapped[str | None] = mapped_column(ForeignKey("lanes.id", ondelete="SET NULL"), nullable=True)
    lane_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)


class Service(Base):
    __tablename__ = "services"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    # NULL center_id means the service is offered by every center
    center_id: Mapped[str | None] = mapped_column(ForeignKey("centers.id", ondelete="CASCADE"), nullable=True)
    name: Mapped[str] = mapped_column(String(200))
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    group_id: Mapped[str | None] = mapped_column(
        ForeignKey("treatment_groups.id", ondelete="SET NULL"), nullable=True
    )
    lane_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="service_duration_positive"),
        CheckConstraint(f"duration_minutes <= {MAX_BOOKING_MINUTES}", name="service_duration_bounded"),
        CheckConstraint("price_cents >= 0", name="service_price_non_negative"),
    )


class Employee(Base):
    __tablename__ = "employees"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    center_id: Mapped[str] = mapped_column(ForeignKey("centers.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(200))
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Booking(Base):
    __tablename__ = "bookings"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    center_id: Mapped[str] = mapped_column(ForeignKey("centers.id"))
    lane_id: Mapped[str] = mapped_column(ForeignKey("lanes.id"))
    employee_id: Mapped[str | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    service_id: Mapped[str | None] = mapped_column(
        ForeignKey("services.id", ondelete="SET NULL"), nullable=True
    )
    # Requester profile, owned by the external auth/CRM service
    client_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    booking_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        _enum_column(BookingStatus, "booking_status"), default=BookingStatus.PENDING
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        _enum_column(PaymentStatus, "payment_status"), default=PaymentStatus.PENDING
    )
    channel: Mapped[BookingChannel] = mapped_column(
        _enum_column(BookingChannel, "booking_channel"), default=BookingChannel.WEB
    )
    total_price_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="booking_duration_positive"),
        CheckConstraint(f"duration_minutes <= {MAX_BOOKING_MINUTES}", name="booking_duration_bounded"),
        Index("ix_bookings_lane_datetime", "lane_id", "booking_datetime"),
        Index("ix_bookings_center_datetime", "center_id", "booking_datetime"),
    )


__all__ = [
    "Base",
    "Center",
    "Lane",
    "LaneBlock",
    "TreatmentGroup",
    "Service",
    "Employee",
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "BookingChannel",
    "normalize_booking_status",
    "OCCUPYING_STATUSES",
    "MAX_BOOKING_MINUTES",
]
