from __future__ import annotations

import os
from datetime import time


def _env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_hhmm(name: str, default: str) -> time:
    """Parse an ``HH:MM`` env value, falling back to ``default`` when malformed."""
    raw = (os.getenv(name) or "").strip() or default
    try:
        hours, minutes = raw.split(":", 1)
        return time(hour=int(hours), minute=int(minutes))
    except Exception:
        hours, minutes = default.split(":", 1)
        return time(hour=int(hours), minute=int(minutes))


# Slot grid
PREP_BUFFER_MINUTES: int = _env_int("PREP_BUFFER_MINUTES", 15)
SLOT_TICK_MINUTES: int = _env_int("SLOT_TICK_MINUTES", 5)

# Service-offering windows. The client booking page offers a shorter day than
# the staff agenda.
CLIENT_WINDOW_START: time = _env_hhmm("CLIENT_WINDOW_START", "10:00")
CLIENT_WINDOW_END: time = _env_hhmm("CLIENT_WINDOW_END", "20:35")
STAFF_WINDOW_START: time = _env_hhmm("STAFF_WINDOW_START", "10:00")
STAFF_WINDOW_END: time = _env_hhmm("STAFF_WINDOW_END", "22:00")

# Service duration fallback (minutes)
DEFAULT_SERVICE_FALLBACK_DURATION: int = _env_int("SERVICE_FALLBACK_DURATION_MIN", 60)

# Timezone defaults
DEFAULT_LOCAL_TIMEZONE: str = os.getenv("LOCAL_TIMEZONE", "Europe/Madrid")

# Feature flags / logging
LOG_LEVEL_NAME: str = os.getenv("LOG_LEVEL", "INFO").strip().upper()
LANE_HEURISTIC_FALLBACK_ENABLED: bool = _env_bool("LANE_HEURISTIC_FALLBACK", True)
REQUIRE_ADVISORY_LOCK: bool = _env_bool("REQUIRE_ADVISORY_LOCK", False)

__all__ = [
    "PREP_BUFFER_MINUTES",
    "SLOT_TICK_MINUTES",
    "CLIENT_WINDOW_START",
    "CLIENT_WINDOW_END",
    "STAFF_WINDOW_START",
    "STAFF_WINDOW_END",
    "DEFAULT_SERVICE_FALLBACK_DURATION",
    "DEFAULT_LOCAL_TIMEZONE",
    "LOG_LEVEL_NAME",
    "LANE_HEURISTIC_FALLBACK_ENABLED",
    "REQUIRE_ADVISORY_LOCK",
]
