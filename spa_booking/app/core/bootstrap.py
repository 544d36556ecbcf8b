"""Runtime bootstrap helpers.

Seeds a demo center (lanes, treatment groups, services, employees) so a fresh
development database can serve the booking form. Guarded by ``RUN_BOOTSTRAP``.
"""

import logging
import os
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from spa_booking.app.domain import models

logger = logging.getLogger(__name__)

__all__ = ["seed_demo_center", "DEMO_CENTER_ID"]

DEMO_CENTER_ID = "demo-center"

# (id, name, capacity)
DEFAULT_LANES: tuple[tuple[str, str, int], ...] = (
    ("demo-lane-1", "Sala 1", 1),
    ("demo-lane-2", "Sala 2", 1),
    ("demo-lane-3", "Sala 3", 1),
    ("demo-lane-4", "Sala 4", 1),
)

# (id, name); no lane configuration so the positional fallback applies
DEFAULT_GROUPS: tuple[tuple[str, str], ...] = (
    ("demo-group-treatments", "Tratamientos"),
    ("demo-group-rituals", "Rituales"),
    ("demo-group-four-hands", "Cuatro manos"),
)

# (id, name, duration_minutes, price_cents, group_id)
DEFAULT_SERVICES: tuple[tuple[str, str, int, int, str], ...] = (
    ("demo-svc-facial", "Tratamiento facial", 50, 6500, "demo-group-treatments"),
    ("demo-svc-ritual", "Ritual de aromas", 90, 11000, "demo-group-rituals"),
    ("demo-svc-four-hands", "Masaje a cuatro manos", 60, 12000, "demo-group-four-hands"),
)

DEFAULT_EMPLOYEES: tuple[tuple[str, str], ...] = (
    ("demo-emp-1", "Lucía"),
    ("demo-emp-2", "Marta"),
)


def _bootstrap_enabled() -> bool:
    return os.getenv("RUN_BOOTSTRAP", "0").lower() in {"1", "true", "yes"}


async def _add_missing(session: AsyncSession, model: type, rows: Iterable[models.Base]) -> int:
    result = await session.execute(select(model.id))
    existing = {row[0] for row in result.all()}
    added = 0
    for row in rows:
        if row.id in existing:
            continue
        session.add(row)
        added += 1
    return added


async def seed_demo_center(force: bool = False) -> bool:
    """Insert the demo catalog if missing (idempotent). Returns True when it ran."""
    from spa_booking.app.core.db import get_session  # lazy import for tests

    if not force and not _bootstrap_enabled():
        return False

    async with get_session() as session:
        await _add_missing(session, models.Center, [models.Center(id=DEMO_CENTER_ID, name="Centro Demo")])
        await session.flush()
        await _add_missing(session, models.Lane, [
            models.Lane(id=lid, center_id=DEMO_CENTER_ID, name=name, capacity=cap)
            for lid, name, cap in DEFAULT_LANES
        ])
        await _add_missing(session, models.TreatmentGroup, [
            models.TreatmentGroup(id=gid, name=name) for gid, name in DEFAULT_GROUPS
        ])
        await session.flush()
        await _add_missing(session, models.Service, [
            models.Service(
                id=sid, center_id=DEMO_CENTER_ID, name=name,
                duration_minutes=minutes, price_cents=price, group_id=group_id,
            )
            for sid, name, minutes, price, group_id in DEFAULT_SERVICES
        ])
        await _add_missing(session, models.Employee, [
            models.Employee(id=eid, center_id=DEMO_CENTER_ID, name=name) for eid, name in DEFAULT_EMPLOYEES
        ])
        await session.commit()
    logger.info("[bootstrap] Demo center %s ready", DEMO_CENTER_ID)
    return True
