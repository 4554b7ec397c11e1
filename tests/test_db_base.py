from __future__ import annotations

import threading

from sqlalchemy import text
from sqlalchemy.pool import NullPool, StaticPool

from app.db import base


def test_build_engine_uses_static_pool_for_sqlite_memory():
    engine = base._build_engine("sqlite+pysqlite:///:memory:", pool_mode="queue")
    try:
        assert isinstance(engine.pool, StaticPool)
    finally:
        engine.dispose()


def test_build_engine_uses_default_pool_for_sqlite_file(tmp_path):
    engine = base._build_engine(f"sqlite+pysqlite:///{tmp_path / 'pool.db'}", pool_mode="queue")
    try:
        assert not isinstance(engine.pool, StaticPool)
    finally:
        engine.dispose()


def test_build_engine_uses_null_pool_when_requested():
    engine = base._build_engine("postgresql+psycopg://u:p@localhost/test", pool_mode="null")
    try:
        assert isinstance(engine.pool, NullPool)
    finally:
        engine.dispose()


def test_build_engine_uses_queue_pool_with_configured_sizes():
    engine = base._build_engine(
        "postgresql+psycopg://u:p@localhost/test", pool_mode="queue", pool_size=4, max_overflow=9
    )
    try:
        assert engine.pool.size() == 4
        assert engine.pool._max_overflow == 9
    finally:
        engine.dispose()


def test_database_is_not_connected_until_first_use(monkeypatch):
    def _unexpected(*_args, **_kwargs):
        raise AssertionError("engine built eagerly")

    monkeypatch.setattr(base, "_build_engine", _unexpected)

    db = base.Database("sqlite+pysqlite:///:memory:")

    assert db.initialized is False


def test_concurrent_first_use_builds_one_engine(monkeypatch):
    real_build = base._build_engine
    built = []
    gate = threading.Barrier(8)

    def _counting_build(*args, **kwargs):
        built.append(args)
        return real_build(*args, **kwargs)

    monkeypatch.setattr(base, "_build_engine", _counting_build)
    db = base.Database("sqlite+pysqlite:///:memory:")
    engines = []

    def _first_use():
        gate.wait()
        engines.append(db.engine)

    threads = [threading.Thread(target=_first_use) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    try:
        assert len(built) == 1
        assert len({id(e) for e in engines}) == 1
        with db.session() as session:
            assert session.execute(text("SELECT 1")).scalar_one() == 1
    finally:
        db.dispose()

    assert db.initialized is False
