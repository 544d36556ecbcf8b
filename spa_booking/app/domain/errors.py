"""Booking error taxonomy.

Each error carries a short machine ``code`` that the API returns verbatim.
``ConflictAtInsertError`` shares the ``no_availability`` code so a lost race at
commit time looks exactly like an ordinary unavailable slot to the user.
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "BookingError",
    "PastTimeError",
    "NoAvailabilityError",
    "ConflictAtInsertError",
    "NotFoundError",
    "InvalidBlockError",
    "ResolverMisconfiguration",
]


class BookingError(ValueError):
    code = "booking_failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)


class PastTimeError(BookingError):
    code = "slot_in_past"


class NoAvailabilityError(BookingError):
    code = "no_availability"


class ConflictAtInsertError(NoAvailabilityError):
    code = "no_availability"


class NotFoundError(BookingError):
    code = "not_found"


class InvalidBlockError(BookingError):
    code = "invalid_block"


@dataclass(frozen=True)
class ResolverMisconfiguration:
    """Diagnostic record: a service or group points at lanes outside the center.

    Never raised. The resolver drops the foreign lanes and logs this record.
    """

    source: str
    source_id: str
    center_id: str
    foreign_lane_ids: tuple[str, ...]

    def __str__(self) -> str:
        return (
            f"{self.source} {self.source_id} references lanes outside center "
            f"{self.center_id}: {', '.join(self.foreign_lane_ids)}"
        )
