import logging

from spa_booking.app.services.lane_resolver import (
    ResolutionMode,
    center_lanes,
    find_service,
    resolve_lanes,
)
from spa_booking.app.tests.support import CENTER, make_group, make_lane, make_service


def _lanes():
    # Deliberately unsorted; resolution must order by name
    return [
        make_lane("l3", name="Sala 3"),
        make_lane("l1", name="Sala 1"),
        make_lane("l4", name="Sala 4"),
        make_lane("l2", name="Sala 2"),
    ]


def test_center_lanes_filters_inactive_and_foreign_and_sorts():
    lanes = _lanes() + [
        make_lane("x1", center_id="c2", name="Sala 0"),
        make_lane("l0", name="sala 0", active=False),
    ]
    assert [lane.id for lane in center_lanes(lanes, CENTER)] == ["l1", "l2", "l3", "l4"]


def test_find_service_accepts_global_services():
    services = [make_service("s-global", center_id=None), make_service("s-other", center_id="c2")]
    assert find_service(services, "s-global", CENTER).id == "s-global"
    assert find_service(services, "s-other", CENTER) is None
    assert find_service(services, None, CENTER) is None


def test_unknown_service_uses_fallback_duration_and_all_lanes(caplog):
    with caplog.at_level(logging.INFO):
        resolved = resolve_lanes("missing", CENTER, _lanes(), [], [], fallback_duration=60)
    assert resolved.mode is ResolutionMode.CENTER
    assert resolved.duration_minutes == 60
    assert resolved.lane_ids == ("l1", "l2", "l3", "l4")
    assert resolved.service is None
    assert resolved.price_cents == 0
    assert not resolved.specific


def test_service_lanes_win_in_declared_order():
    service = make_service("s1", 50, lane_ids=("l3", "l1"))
    resolved = resolve_lanes("s1", CENTER, _lanes(), [service], [])
    assert resolved.mode is ResolutionMode.SERVICE
    assert resolved.lane_ids == ("l3", "l1")
    assert resolved.duration_minutes == 50
    assert resolved.specific


def test_service_lanes_outside_center_are_dropped_and_logged(caplog):
    lanes = _lanes() + [make_lane("x1", center_id="c2")]
    service = make_service("s1", lane_ids=("x1", "l2"))
    with caplog.at_level(logging.WARNING):
        resolved = resolve_lanes("s1", CENTER, lanes, [service], [])
    assert resolved.lane_ids == ("l2",)
    assert "x1" in caplog.text
    assert "outside center" in caplog.text


def test_service_lanes_all_foreign_fall_through_to_group():
    lanes = _lanes() + [make_lane("x1", center_id="c2")]
    group = make_group("g1", lane_ids=("l4",))
    service = make_service("s1", group_id="g1", lane_ids=("x1",))
    resolved = resolve_lanes("s1", CENTER, lanes, [service], [group])
    assert resolved.mode is ResolutionMode.GROUP
    assert resolved.lane_ids == ("l4",)


def test_group_lane_ids_then_legacy_lane_id():
    service = make_service("s1", group_id="g1")
    with_list = make_group("g1", lane_ids=("l2", "l3"), lane_id="l1")
    resolved = resolve_lanes("s1", CENTER, _lanes(), [service], [with_list])
    assert resolved.mode is ResolutionMode.GROUP
    assert resolved.lane_ids == ("l2", "l3")

    legacy = make_group("g1", lane_id="l1")
    resolved = resolve_lanes("s1", CENTER, _lanes(), [service], [legacy])
    assert resolved.mode is ResolutionMode.GROUP_LEGACY
    assert resolved.lane_ids == ("l1",)


def test_inactive_configured_lane_keeps_affinity():
    lanes = _lanes() + [make_lane("l5", name="Sala 5", active=False)]
    service = make_service("s1", lane_ids=("l5",))
    resolved = resolve_lanes("s1", CENTER, lanes, [service], [], heuristic_enabled=False)
    assert resolved.mode is ResolutionMode.SERVICE
    assert resolved.lane_ids == ()
    assert resolved.specific


def test_inactive_group_lanes_do_not_fall_back_to_center():
    lanes = _lanes() + [make_lane("l5", name="Sala 5", active=False)]
    service = make_service("s1", group_id="g1")
    resolved = resolve_lanes("s1", CENTER, lanes, [service], [make_group("g1", lane_ids=("l5",))])
    assert resolved.mode is ResolutionMode.GROUP
    assert resolved.lane_ids == ()

    legacy = resolve_lanes("s1", CENTER, lanes, [service], [make_group("g1", lane_id="l5")])
    assert legacy.mode is ResolutionMode.GROUP_LEGACY
    assert legacy.lane_ids == ()


def test_partially_inactive_configuration_keeps_active_lanes():
    lanes = _lanes() + [make_lane("l5", name="Sala 5", active=False)]
    service = make_service("s1", lane_ids=("l5", "l2"))
    resolved = resolve_lanes("s1", CENTER, lanes, [service], [])
    assert resolved.mode is ResolutionMode.SERVICE
    assert resolved.lane_ids == ("l2",)


def test_allow_lists_narrow_center_fallback():
    lanes = [
        make_lane("l1", name="Sala 1", allowed_group_ids=("g-other",)),
        make_lane("l2", name="Sala 2", allowed_group_ids=("g1",)),
        make_lane("l3", name="Sala 3"),
    ]
    service = make_service("s1", group_id="g1")
    resolved = resolve_lanes("s1", CENTER, lanes, [service], [make_group("g1", "Tratamientos")])
    assert resolved.mode is ResolutionMode.CENTER
    assert resolved.lane_ids == ("l2", "l3")


def test_allow_lists_that_exclude_everything_are_ignored():
    lanes = [make_lane("l1", allowed_group_ids=("g-other",)), make_lane("l2", allowed_group_ids=("g-other",))]
    service = make_service("s1", group_id="g1")
    resolved = resolve_lanes("s1", CENTER, lanes, [service], [], heuristic_enabled=False)
    assert resolved.lane_ids == ("l1", "l2")


def test_heuristic_by_group_name(caplog):
    groups = [
        make_group("g-t", "Tratamientos faciales"),
        make_group("g-r", "Rituales"),
        make_group("g-4", "Masaje a Cuatro Manos"),
        make_group("g-x", "Otros"),
    ]
    services = [
        make_service("s-t", group_id="g-t"),
        make_service("s-r", group_id="g-r"),
        make_service("s-4", group_id="g-4"),
        make_service("s-x", group_id="g-x"),
    ]
    with caplog.at_level(logging.WARNING):
        treatment = resolve_lanes("s-t", CENTER, _lanes(), services, groups)
    assert treatment.mode is ResolutionMode.HEURISTIC
    assert treatment.lane_ids == ("l1", "l2")
    assert not treatment.specific
    assert "s-t" in caplog.text

    assert resolve_lanes("s-r", CENTER, _lanes(), services, groups).lane_ids == ("l3",)
    assert resolve_lanes("s-4", CENTER, _lanes(), services, groups).lane_ids == ("l4",)

    other = resolve_lanes("s-x", CENTER, _lanes(), services, groups)
    assert other.mode is ResolutionMode.CENTER
    assert other.lane_ids == ("l1", "l2", "l3", "l4")


def test_heuristic_can_be_disabled():
    groups = [make_group("g-r", "Rituales")]
    services = [make_service("s-r", group_id="g-r")]
    resolved = resolve_lanes("s-r", CENTER, _lanes(), services, groups, heuristic_enabled=False)
    assert resolved.mode is ResolutionMode.CENTER
    assert resolved.lane_ids == ("l1", "l2", "l3", "l4")


def test_heuristic_on_short_center_returns_what_exists():
    lanes = [make_lane("l1", name="Sala 1"), make_lane("l2", name="Sala 2")]
    groups = [make_group("g-r", "Rituales")]
    services = [make_service("s-r", group_id="g-r")]
    # Position 3 does not exist: fall back to the whole center
    resolved = resolve_lanes("s-r", CENTER, lanes, services, groups)
    assert resolved.mode is ResolutionMode.CENTER
    assert resolved.lane_ids == ("l1", "l2")


def test_heuristic_not_applied_when_allow_lists_narrowed():
    lanes = [
        make_lane("l1", name="Sala 1", allowed_group_ids=("g-x",)),
        make_lane("l2", name="Sala 2"),
        make_lane("l3", name="Sala 3"),
    ]
    groups = [make_group("g-t", "Tratamientos")]
    services = [make_service("s-t", group_id="g-t")]
    resolved = resolve_lanes("s-t", CENTER, lanes, services, groups)
    assert resolved.mode is ResolutionMode.CENTER
    assert resolved.lane_ids == ("l2", "l3")


def test_price_and_service_carried():
    service = make_service("s1", 75, price_cents=9900, lane_ids=("l1",))
    resolved = resolve_lanes("s1", CENTER, _lanes(), [service], [])
    assert resolved.price_cents == 9900
    assert resolved.service is service
