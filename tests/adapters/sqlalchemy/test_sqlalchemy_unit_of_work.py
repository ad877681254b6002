from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, inspect

from scdsync.adapters.sqlalchemy import unit_of_work
from scdsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    engine_options,
    shutdown,
    startup,
)
from scdsync.config import ConfigurationError, DatabaseConfig
from scdsync.domain.errors import StoreConnectionError
from scdsync.domain.model import VersionedRecord
from scdsync.domain.scope import ScopeFilter

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def _record(record_hash: str) -> VersionedRecord:
    return VersionedRecord(
        collection="products",
        hash=record_hash,
        key="default",
        payload={"hash": record_hash},
        start_timestamp=datetime(2025, 1, 1, tzinfo=UTC),
    )


def test_sqlalchemy_unit_of_work_requires_startup() -> None:
    with pytest.raises(StartupError):
        SqlAlchemyUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b


def test_startup_provisions_schema_and_indexes(tmp_path: Path) -> None:
    startup(database=DatabaseConfig(uri=f"sqlite+pysqlite:///{tmp_path / 'store.db'}"))

    engine = configured_engine()
    assert engine is not None
    inspector = inspect(engine)
    assert "versioned_record" in inspector.get_table_names()
    index_names = {index["name"] for index in inspector.get_indexes("versioned_record")}
    assert {
        "ix_versioned_record_validity",
        "ix_versioned_record_validity_key",
        "ix_versioned_record_active_hash",
    } <= index_names


def test_startup_wraps_unreachable_store(tmp_path: Path) -> None:
    missing_dir = tmp_path / "missing" / "store.db"

    with pytest.raises(StoreConnectionError):
        startup(database=DatabaseConfig(uri=f"sqlite+pysqlite:///{missing_dir}"))


def test_unit_of_work_commits(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemyUnitOfWork() as uow:
        uow.repositories.versioned_records.insert(_record("kept"))
        uow.commit()

    with SqlAlchemyUnitOfWork() as uow:
        refs = uow.repositories.versioned_records.active_records(ScopeFilter("products"))
    assert [ref.hash for ref in refs] == ["kept"]


def test_unit_of_work_rolls_back_on_error(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(RuntimeError, match="boom"), SqlAlchemyUnitOfWork() as uow:
        uow.repositories.versioned_records.insert(_record("lost"))
        raise RuntimeError("boom")

    with SqlAlchemyUnitOfWork() as uow:
        refs = uow.repositories.versioned_records.active_records(ScopeFilter("products"))
    assert refs == []


def test_uncommitted_unit_of_work_persists_nothing(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemyUnitOfWork() as uow:
        uow.repositories.versioned_records.insert(_record("draft"))

    with SqlAlchemyUnitOfWork() as uow:
        assert uow.repositories.versioned_records.active_records(ScopeFilter("products")) == []


@pytest.mark.parametrize(
    ("uri", "expected"),
    [
        ("sqlite+pysqlite:///:memory:", {"connect_args": {"timeout": 12.5}}),
        (
            "postgresql+psycopg://u@h/db",
            {
                "connect_args": {
                    "connect_timeout": 12,
                    "options": "-c statement_timeout=12500 -c lock_timeout=12500",
                }
            },
        ),
        ("postgresql+pg8000://u@h/db", {"connect_args": {"timeout": 12.5}}),
        (
            "mysql+pymysql://u@h/db",
            {"connect_args": {"connect_timeout": 12, "read_timeout": 12, "write_timeout": 12}},
        ),
        ("oracle+oracledb://u@h/db", {}),
    ],
)
def test_engine_options_bound_store_calls(uri: str, expected: dict[str, object]) -> None:
    assert engine_options(DatabaseConfig(uri=uri, timeout_seconds=12.5)) == expected


def test_engine_options_reject_invalid_uri() -> None:
    with pytest.raises(ConfigurationError):
        engine_options(DatabaseConfig(uri="not a uri"))


def test_failed_migration_disposes_created_engine(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    created: list[Engine] = []
    disposed: list[Engine] = []

    def tracking_create_engine(*args: object, **kwargs: object) -> Engine:
        engine = create_engine(*args, **kwargs)  # pyright: ignore[reportArgumentType]
        created.append(engine)
        monkeypatch.setattr(engine, "dispose", lambda *_, **__: disposed.append(engine))
        return engine

    def broken_upgrade(**_: object) -> None:
        raise RuntimeError("migration failed")

    monkeypatch.setattr(unit_of_work, "create_engine", tracking_create_engine)
    monkeypatch.setattr(unit_of_work, "upgrade_head", broken_upgrade)

    with pytest.raises(RuntimeError, match="migration failed"):
        startup(database=DatabaseConfig(uri=f"sqlite+pysqlite:///{tmp_path / 'store.db'}"))

    assert disposed == created
    assert len(created) == 1
    assert configured_engine() is None


def test_failed_migration_keeps_caller_engine(
    sqlite_engine: Engine, monkeypatch: pytest.MonkeyPatch
) -> None:
    disposed: list[Engine] = []
    monkeypatch.setattr(sqlite_engine, "dispose", lambda *_, **__: disposed.append(sqlite_engine))

    def broken_upgrade(**_: object) -> None:
        raise RuntimeError("migration failed")

    monkeypatch.setattr(unit_of_work, "upgrade_head", broken_upgrade)

    with pytest.raises(RuntimeError, match="migration failed"):
        startup(engine=sqlite_engine, force=True)

    assert disposed == []
