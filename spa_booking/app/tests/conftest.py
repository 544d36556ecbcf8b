"""Test configuration to ensure project package import resolution.

Adds the repository root to sys.path so `import spa_booking` works in CI where
the checkout directory may not be on PYTHONPATH by default.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[3]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from spa_booking import config  # noqa: E402
from spa_booking.app.domain.entities import EmployeeInfo  # noqa: E402
from spa_booking.app.tests.support import CENTER, TZ, InMemoryStore, make_lane  # noqa: E402

JWT_SECRET = "test-secret"


@pytest.fixture(autouse=True)
def pinned_settings(monkeypatch):
    """Run every test with the documented defaults regardless of the host env."""
    monkeypatch.setitem(config.SETTINGS, "prep_buffer_minutes", 15)
    monkeypatch.setitem(config.SETTINGS, "slot_tick_minutes", 5)
    monkeypatch.setitem(config.SETTINGS, "lane_heuristic_fallback", True)
    monkeypatch.setitem(config.SETTINGS, "timezone", "Europe/Madrid")
    monkeypatch.setitem(config.SETTINGS, "jwt_secret", JWT_SECRET)
    monkeypatch.setitem(config.SETTINGS, "jwt_algorithm", "HS256")
    monkeypatch.setattr(config, "LOCAL_TZ", TZ)


@pytest.fixture
def four_lanes():
    return [
        make_lane("l1", name="Sala 1"),
        make_lane("l2", name="Sala 2"),
        make_lane("l3", name="Sala 3"),
        make_lane("l4", name="Sala 4"),
    ]


@pytest.fixture
def store(four_lanes):
    return InMemoryStore(
        lanes=four_lanes,
        employees=[EmployeeInfo("e1", CENTER), EmployeeInfo("e2", CENTER), EmployeeInfo("e-off", CENTER, active=False)],
    )


@pytest.fixture
def client(store):
    from fastapi.testclient import TestClient

    from spa_booking.api.app import app, get_store

    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_token():
    import jwt

    def _make_token(sub: str = "client-1", role: str = "client", secret: str = JWT_SECRET) -> str:
        return jwt.encode({"sub": sub, "role": role}, secret, algorithm="HS256")

    return _make_token
