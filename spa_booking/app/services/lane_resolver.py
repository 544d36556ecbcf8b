"""Service/group lane resolution.

Maps a requested service to its authoritative duration and to the ordered set of
lanes allowed to host it. Resolution order, the first level naming a lane of
the center wins even if those lanes are currently deactivated:

1. the service's own ``lane_ids`` (restricted to the center),
2. the treatment group's ``lane_ids``, then the group's legacy ``lane_id``,
3. every active lane of the center, narrowed by lane allow-lists,
4. a positional heuristic on the group name when nothing is configured at all.

Pure function of catalog state; misconfiguration is logged and corrected,
never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

from spa_booking.app.core.constants import DEFAULT_SERVICE_FALLBACK_DURATION
from spa_booking.app.domain.entities import LaneInfo, ServiceInfo, TreatmentGroupInfo
from spa_booking.app.domain.errors import ResolverMisconfiguration

logger = logging.getLogger(__name__)

__all__ = [
    "ResolutionMode",
    "ResolvedLanes",
    "HEURISTIC_RULES",
    "center_lanes",
    "find_service",
    "resolve_lanes",
]


class ResolutionMode(str, Enum):
    SERVICE = "service"
    GROUP = "group"
    GROUP_LEGACY = "group_legacy"
    CENTER = "center"
    HEURISTIC = "heuristic"


SPECIFIC_MODES = frozenset({ResolutionMode.SERVICE, ResolutionMode.GROUP, ResolutionMode.GROUP_LEGACY})

# Historical fixed room layout: (group name substring, positions in the name-ordered lane list)
HEURISTIC_RULES: tuple[tuple[str, slice], ...] = (
    ("tratamiento", slice(0, 2)),
    ("ritual", slice(2, 3)),
    ("cuatro manos", slice(3, 4)),
)


@dataclass(frozen=True)
class ResolvedLanes:
    lanes: tuple[LaneInfo, ...]
    duration_minutes: int
    mode: ResolutionMode
    service: ServiceInfo | None = None

    @property
    def specific(self) -> bool:
        """True when lanes come from explicit service/group configuration."""
        return self.mode in SPECIFIC_MODES

    @property
    def lane_ids(self) -> tuple[str, ...]:
        return tuple(lane.id for lane in self.lanes)

    @property
    def price_cents(self) -> int:
        return self.service.price_cents if self.service else 0


def center_lanes(lanes: Iterable[LaneInfo], center_id: str) -> list[LaneInfo]:
    """Active lanes of ``center_id`` ordered by name, then id."""
    return sorted(
        (lane for lane in lanes if lane.center_id == center_id and lane.active),
        key=LaneInfo.sort_key,
    )


def find_service(services: Iterable[ServiceInfo], service_id: str | None, center_id: str) -> ServiceInfo | None:
    if not service_id:
        return None
    for svc in services:
        if svc.id == service_id and svc.center_id in (None, center_id):
            return svc
    return None


def _pick(
    wanted: Sequence[str],
    active: Sequence[LaneInfo],
    center_lane_ids: set[str],
    *,
    source: str,
    source_id: str,
    center_id: str,
) -> list[LaneInfo] | None:
    """Active lanes from ``wanted``, in declared order.

    Returns None when no configured lane belongs to the center, so resolution
    moves on. A configuration whose center lanes are all deactivated returns an
    empty list: the affinity still holds and nothing is bookable.
    """
    by_id = {lane.id: lane for lane in active}
    foreign = tuple(lid for lid in wanted if lid not in center_lane_ids)
    if foreign:
        logger.warning("%s", ResolverMisconfiguration(source, source_id, center_id, foreign))
    if len(foreign) == len(wanted):
        return None
    picked = [by_id[lid] for lid in dict.fromkeys(wanted) if lid in by_id]
    if not picked:
        logger.warning("All lanes configured for %s %s in center %s are inactive", source, source_id, center_id)
    return picked


def _heuristic(group: TreatmentGroupInfo | None, active: Sequence[LaneInfo]) -> list[LaneInfo]:
    if group is None:
        return []
    name = group.name.lower()
    for needle, positions in HEURISTIC_RULES:
        if needle in name:
            return list(active[positions])
    return []


def resolve_lanes(
    service_id: str | None,
    center_id: str,
    lanes: Iterable[LaneInfo],
    services: Iterable[ServiceInfo],
    groups: Iterable[TreatmentGroupInfo],
    *,
    heuristic_enabled: bool = True,
    fallback_duration: int = DEFAULT_SERVICE_FALLBACK_DURATION,
) -> ResolvedLanes:
    """Resolve the candidate lane set and duration for ``service_id`` in ``center_id``."""
    lanes = list(lanes)
    center_lane_ids = {lane.id for lane in lanes if lane.center_id == center_id}
    active = center_lanes(lanes, center_id)

    service = find_service(services, service_id, center_id)
    if service is None:
        if service_id:
            logger.info("Service %s not found for center %s; using %s min and all lanes",
                        service_id, center_id, fallback_duration)
        return ResolvedLanes(tuple(active), fallback_duration, ResolutionMode.CENTER)

    duration = service.duration_minutes if service.duration_minutes > 0 else fallback_duration

    if service.lane_ids:
        picked = _pick(service.lane_ids, active, center_lane_ids,
                       source="service", source_id=service.id, center_id=center_id)
        if picked is not None:
            return ResolvedLanes(tuple(picked), duration, ResolutionMode.SERVICE, service)

    group = next((g for g in groups if g.id == service.group_id), None) if service.group_id else None
    if group is not None:
        if group.lane_ids:
            picked = _pick(group.lane_ids, active, center_lane_ids,
                           source="group", source_id=group.id, center_id=center_id)
            if picked is not None:
                return ResolvedLanes(tuple(picked), duration, ResolutionMode.GROUP, service)
        elif group.lane_id:
            picked = _pick([group.lane_id], active, center_lane_ids,
                           source="group", source_id=group.id, center_id=center_id)
            if picked is not None:
                return ResolvedLanes(tuple(picked), duration, ResolutionMode.GROUP_LEGACY, service)

    eligible = [
        lane for lane in active
        if not lane.allowed_group_ids or service.group_id in lane.allowed_group_ids
    ]
    if not eligible:
        eligible = list(active)

    if heuristic_enabled and len(eligible) == len(active):
        guessed = _heuristic(group, active)
        if guessed:
            logger.warning(
                "Lane fallback mode: service %s (group %r) has no lane configuration in center %s; "
                "positional heuristic chose %s. Configure lane_ids to retire this fallback.",
                service.id, group.name if group else None, center_id, [lane.id for lane in guessed],
            )
            return ResolvedLanes(tuple(guessed), duration, ResolutionMode.HEURISTIC, service)

    return ResolvedLanes(tuple(eligible), duration, ResolutionMode.CENTER, service)
