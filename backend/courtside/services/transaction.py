"""
Two-phase transactions over SQLModel sessions.

Every engine operation runs as ``operation(reads)``:

    def op(reads: ReadPhase):
        match = reads.get(Match, match_id)        # read everything first
        ...compute in memory...
        writes = reads.close()                    # no reads after this point
        writes.update(match, status=...)          # compare-and-set on version
        return result

Read snapshots are detached from the session, so nothing is written
implicitly. Updates are issued as ``UPDATE ... WHERE id = :id AND version =
:read_version`` and bump the version; zero matched rows means another writer
got there first, the session is rolled back and the whole operation re-runs
(bounded by ``transaction_max_attempts``). Because nothing is visible until
commit, re-running is always safe.
"""
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import Session, SQLModel

from courtside.errors import CompetitionError, ConcurrentModificationError, Internal

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=SQLModel)
T = TypeVar("T")


class PhaseClosedError(RuntimeError):
    """Programming error: a read after close(), or a write before it."""


def _column_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class ReadPhase:
    def __init__(self, session: Session):
        self._session = session
        self._closed = False
        self._snapshots: Dict[Tuple[type, Any], SQLModel] = {}

    def _check_open(self) -> None:
        if self._closed:
            raise PhaseClosedError("Reads are closed for this transaction")

    def _snapshot(self, obj: Any) -> Any:
        if not isinstance(obj, SQLModel) or getattr(obj, "id", None) is None:
            return obj
        key = (type(obj), obj.id)
        cached = self._snapshots.get(key)
        if cached is not None:
            return cached
        if obj in self._session:
            self._session.expunge(obj)
        self._snapshots[key] = obj
        return obj

    def get(self, model: Type[M], ident: Any) -> Optional[M]:
        self._check_open()
        cached = self._snapshots.get((model, ident))
        if cached is not None:
            return cached  # type: ignore[return-value]
        obj = self._session.get(model, ident)
        return self._snapshot(obj) if obj is not None else None

    def exec(self, statement: Any) -> List[Any]:
        self._check_open()
        return [self._snapshot(row) for row in self._session.exec(statement).all()]

    def first(self, statement: Any) -> Optional[Any]:
        rows = self.exec(statement)
        return rows[0] if rows else None

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> "WritePhase":
        self._check_open()
        self._closed = True
        return WritePhase(self._session)


class WritePhase:
    def __init__(self, session: Session):
        self._session = session
        self.writes = 0

    def insert(self, obj: M) -> M:
        """Insert and flush so the row gets its id; the object comes back detached."""
        self._session.add(obj)
        self._session.flush()
        self._session.expunge(obj)
        self.writes += 1
        return obj

    def _cas(self, obj: SQLModel, values: Dict[str, Any]) -> None:
        model = type(obj)
        read_version = obj.version  # type: ignore[attr-defined]
        stmt = (
            update(model)
            .where(model.id == obj.id, model.version == read_version)  # type: ignore[attr-defined]
            .values(**{k: _column_value(v) for k, v in values.items()}, version=read_version + 1)
        )
        result = self._session.execute(stmt)
        if result.rowcount != 1:
            raise ConcurrentModificationError(
                f"{model.__name__} {obj.id} changed since it was read (version {read_version})"  # type: ignore[attr-defined]
            )
        self.writes += 1
        obj.version = read_version + 1  # type: ignore[attr-defined]

    def update(self, obj: M, **changes: Any) -> M:
        """Compare-and-set on the version read; the snapshot is kept in sync."""
        self._cas(obj, changes)
        for key, value in changes.items():
            setattr(obj, key, value)
        return obj

    def increment(self, obj: M, field_name: str, delta: int = 1) -> M:
        column = getattr(type(obj), field_name)
        self._cas(obj, {field_name: column + delta})
        setattr(obj, field_name, getattr(obj, field_name) + delta)
        return obj

    def append_unique(self, obj: M, field_name: str, item: Any) -> bool:
        """Append to a JSON array unless already present. Returns False on no-op."""
        current = list(getattr(obj, field_name) or [])
        if item in current:
            return False
        current.append(item)
        self._cas(obj, {field_name: current})
        setattr(obj, field_name, current)
        return True


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, (ConcurrentModificationError, IntegrityError)):
        return True
    # SQLite reports writer contention as "database is locked"
    return isinstance(exc, OperationalError) and "locked" in str(exc).lower()


class TransactionCoordinator:
    def __init__(self, session_factory: Callable[[], Session], max_attempts: int = 5):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._session_factory = session_factory
        self.max_attempts = max_attempts

    @classmethod
    def for_engine(cls, engine: Engine, max_attempts: int = 5) -> "TransactionCoordinator":
        return cls(lambda: Session(engine), max_attempts=max_attempts)

    def run(self, operation: Callable[[ReadPhase], T], name: str = "operation") -> T:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            with self._session_factory() as session:
                reads = ReadPhase(session)
                try:
                    result = operation(reads)
                    session.commit()
                    return result
                except CompetitionError as exc:
                    session.rollback()
                    if not _is_retryable(exc):
                        raise
                    last_error = exc
                except (IntegrityError, OperationalError) as exc:
                    session.rollback()
                    if not _is_retryable(exc):
                        logger.exception("%s failed with a database error", name)
                        raise Internal(f"{name} failed: {exc}") from exc
                    last_error = exc
                except Exception as exc:
                    session.rollback()
                    logger.exception("%s aborted by an unexpected error", name)
                    raise Internal(f"{name} failed: {exc}") from exc

            logger.warning(
                "%s hit a concurrent write (attempt %d/%d): %s", name, attempt, self.max_attempts, last_error
            )

        raise Internal(f"{name} did not commit after {self.max_attempts} attempts: {last_error}")
