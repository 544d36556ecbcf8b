import asyncio
from types import SimpleNamespace

from spa_booking.app.core import db


def test_get_engine_uses_env_and_sets_factory(monkeypatch):
    db._reset_engine_for_tests()

    stub_engine = SimpleNamespace(sync_engine="sync")

    def fake_make_engine(url: str):
        assert url == "fake-url"
        return stub_engine

    def fake_async_sessionmaker(engine, expire_on_commit=False):
        assert engine is stub_engine
        assert expire_on_commit is False
        return "factory"

    monkeypatch.setenv("DATABASE_URL", "fake-url")
    monkeypatch.setattr(db, "_make_engine", fake_make_engine)
    monkeypatch.setattr(db, "async_sessionmaker", fake_async_sessionmaker)

    engine = db.get_engine()
    assert engine is stub_engine
    assert db.get_engine() is engine
    assert db.get_session_factory() == "factory"

    db._reset_engine_for_tests()


def test_reset_engine_clears_state():
    db._engine = "e"
    db._session_factory = "sf"

    db._reset_engine_for_tests()

    assert db._engine is None
    assert db._session_factory is None


def test_get_session_closes_session(monkeypatch):
    closed = []

    class StubSession:
        async def close(self):
            closed.append(True)

    monkeypatch.setattr(db, "get_session_factory", lambda: StubSession)

    async def use():
        async with db.get_session() as session:
            assert isinstance(session, StubSession)

    asyncio.run(use())
    assert closed == [True]


def test_database_url_falls_back_to_default(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    assert db.database_url() == db.DEFAULT_URL
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://u:p@host/spa")
    assert db.database_url() == "postgresql+asyncpg://u:p@host/spa"


def test_make_engine_pins_utc_for_asyncpg(monkeypatch):
    captured = {}

    def fake_create_async_engine(url, **kwargs):
        captured["url"] = url
        captured.update(kwargs)
        return "engine"

    monkeypatch.setattr(db, "create_async_engine", fake_create_async_engine)

    assert db._make_engine("postgresql+asyncpg://u:p@host/spa") == "engine"
    assert captured["connect_args"] == {"server_settings": {"timezone": "UTC"}}
    assert captured["pool_pre_ping"] is True

    captured.clear()
    db._make_engine("sqlite+aiosqlite:///:memory:")
    assert "connect_args" not in captured


def test_dispose_engine_closes_pool_and_forgets_engine():
    disposed = []

    class StubEngine:
        async def dispose(self):
            disposed.append(True)

    db._engine = StubEngine()
    db._session_factory = "sf"

    asyncio.run(db.dispose_engine())
    assert disposed == [True]
    assert db._engine is None
    assert db._session_factory is None

    asyncio.run(db.dispose_engine())
    assert disposed == [True]
