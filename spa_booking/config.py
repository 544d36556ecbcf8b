from __future__ import annotations

import logging
import os
from datetime import time
from typing import Any, Dict
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from spa_booking.app.core import constants

logger = logging.getLogger(__name__)

# Load environment variables from .env
load_dotenv()

LOCAL_TZ = ZoneInfo(constants.DEFAULT_LOCAL_TIMEZONE)

# Runtime settings (ENV backed, adjustable by admin tooling at runtime)
SETTINGS: Dict[str, Any] = {
    # Secret shared with the external auth service that issues requester tokens
    "jwt_secret": os.getenv("AUTH_JWT_SECRET", ""),
    "jwt_algorithm": os.getenv("AUTH_JWT_ALGORITHM", "HS256"),
    # IANA timezone name for local business time (e.g., Europe/Madrid)
    "timezone": constants.DEFAULT_LOCAL_TIMEZONE,
    "prep_buffer_minutes": constants.PREP_BUFFER_MINUTES,
    "slot_tick_minutes": constants.SLOT_TICK_MINUTES,
    "lane_heuristic_fallback": constants.LANE_HEURISTIC_FALLBACK_ENABLED,
}

WINDOWS: Dict[str, tuple[time, time]] = {
    "client": (constants.CLIENT_WINDOW_START, constants.CLIENT_WINDOW_END),
    "staff": (constants.STAFF_WINDOW_START, constants.STAFF_WINDOW_END),
}


def refresh_local_tz() -> None:
    """Refresh module-level LOCAL_TZ from SETTINGS['timezone'] with safe fallback."""
    global LOCAL_TZ
    tz_name = str(SETTINGS.get("timezone") or constants.DEFAULT_LOCAL_TIMEZONE)
    try:
        LOCAL_TZ = ZoneInfo(tz_name)
    except Exception:
        logger.warning("Unknown timezone %r, keeping %s", tz_name, LOCAL_TZ)


# Initialize LOCAL_TZ from current SETTINGS/env
refresh_local_tz()


def get_local_tz() -> ZoneInfo:
    return LOCAL_TZ


def get_setting(key: str, default: Any = None) -> Any:
    """Return a runtime setting by key.

    Args:
        key: Setting key.
        default: Value returned when the key is missing.

    Returns:
        The setting value or ``default``.
    """
    value = SETTINGS.get(key, default)
    logger.debug("Setting read: key=%s, value=%s", key, value)
    return value


def get_prep_buffer_minutes() -> int:
    """Turnaround minutes kept free around every appointment."""
    try:
        return max(0, int(SETTINGS.get("prep_buffer_minutes", 15)))
    except Exception:
        return 15


def get_slot_tick_minutes() -> int:
    """Granularity of the time-slot grid in minutes."""
    try:
        return max(1, int(SETTINGS.get("slot_tick_minutes", 5)))
    except Exception:
        return 5


def is_lane_heuristic_enabled() -> bool:
    return bool(SETTINGS.get("lane_heuristic_fallback", True))


def get_window(kind: str = "client") -> tuple[time, time]:
    """Service-offering window (first tick, last tick) for ``client`` or ``staff`` callers."""
    return WINDOWS.get(kind, WINDOWS["client"])


__all__ = [
    "SETTINGS",
    "WINDOWS",
    "LOCAL_TZ",
    "refresh_local_tz",
    "get_local_tz",
    "get_setting",
    "get_prep_buffer_minutes",
    "get_slot_tick_minutes",
    "is_lane_heuristic_enabled",
    "get_window",
]
