"""SQLAlchemy-backed unit of work and engine lifecycle for the versioned store."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import Session, sessionmaker

from scdsync.adapters.sqlalchemy.errors import translate_errors
from scdsync.adapters.sqlalchemy.mappings import start_mappers
from scdsync.adapters.sqlalchemy.migrations import upgrade_head
from scdsync.adapters.sqlalchemy.repositories import SqlAlchemyVersionedRecordRepository
from scdsync.config import ConfigurationError, DatabaseConfig, get_database_config
from scdsync.domain.errors import StoreConnectionError, StoreTransactionError
from scdsync.domain.ports.unit_of_work import RepositoryCollection, VersionedRecordRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine


log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call scdsync.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


def engine_options(config: DatabaseConfig) -> dict[str, Any]:
    """Driver options bounding how long connecting, a query or a write may block."""

    try:
        url = make_url(config.uri)
    except ArgumentError as exc:
        raise ConfigurationError(f"Invalid database URI: {config.uri!r}") from exc
    backend, driver = url.get_backend_name(), url.get_driver_name()
    seconds = max(1, round(config.timeout_seconds))
    if backend == "sqlite":
        return {"connect_args": {"timeout": config.timeout_seconds}}
    if backend == "postgresql" and driver in {"psycopg", "psycopg2"}:
        millis = round(config.timeout_seconds * 1000)
        return {
            "connect_args": {
                "connect_timeout": seconds,
                "options": f"-c statement_timeout={millis} -c lock_timeout={millis}",
            }
        }
    if backend == "postgresql" and driver == "pg8000":
        return {"connect_args": {"timeout": config.timeout_seconds}}
    if backend in {"mysql", "mariadb"} and driver in {"mysqldb", "pymysql"}:
        return {
            "connect_args": {
                "connect_timeout": seconds,
                "read_timeout": seconds,
                "write_timeout": seconds,
            }
        }
    log.warning("No timeout options known for %s+%s; store calls are unbounded", backend, driver)
    return {}


def startup(
    *,
    engine: Engine | None = None,
    database: DatabaseConfig | None = None,
    force: bool = False,
) -> None:
    """Initialise the SQLAlchemy engine, schema, and session factory."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    owns_engine = engine is None
    if engine is None:
        config = database or get_database_config()
        with translate_errors(StoreConnectionError, "create database engine"):
            engine = create_engine(config.uri, future=True, **engine_options(config))
    start_mappers()
    try:
        with translate_errors(StoreConnectionError, "provision database schema"):
            upgrade_head(engine=engine)
    except BaseException:
        if owns_engine:
            engine.dispose()
        raise

    _STATE.engine = engine


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic SQLAlchemy unit of work with pluggable repository collections."""

    def __init__(self) -> None:
        self.session_factory: sessionmaker[Session] = _STATE.session_factory
        self._session: Session | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        self._repositories = self._build_repositories(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self.session = None
        return False

    def commit(self) -> None:
        with translate_errors(StoreTransactionError, "commit transaction"):
            self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def repositories(self) -> TRepositories:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


class SqlAlchemyUnitOfWork(BaseSqlAlchemyUnitOfWork[VersionedRecordRepositories]):
    """Unit of work managing SQLAlchemy sessions for versioned records."""

    def _build_repositories(self, session: Session) -> VersionedRecordRepositories:
        return VersionedRecordRepositories(
            versioned_records=SqlAlchemyVersionedRecordRepository(session),
        )


if TYPE_CHECKING:
    from scdsync.domain.ports import VersionedRecordUnitOfWork

    _uow_check: VersionedRecordUnitOfWork = SqlAlchemyUnitOfWork()
