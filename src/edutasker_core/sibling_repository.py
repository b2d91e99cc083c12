"""SQL-backed sibling repositories for the ordering engine.

One adapter class per entity kind binds the generic order-column operations
to a model, its parent model and the foreign key naming the scope. Adapters
are bound to a caller-owned session; ``with_resolved_transaction`` resolves
and locks the scope, runs one engine operation and commits, retrying from
scratch when the database reports a serialization failure or is busy.
"""
import hashlib
import logging
import time
from typing import Callable, Hashable, Iterable, Optional, Sequence, TypeVar
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from . import models
from .config import get_settings
from .errors import ConflictError, InvalidArgumentError, NotFoundError
from .scope import EntityKind, Scope

logger = logging.getLogger("edutasker-core.sibling_repository")

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "55P03"})


def is_retryable(exc: DBAPIError) -> bool:
    """
    Check whether a database error means "lost a race, try again".

    Args:
        exc: Error raised by SQLAlchemy

    Returns:
        True for PostgreSQL serialization failures, deadlocks and lock
        timeouts, and for SQLite busy errors
    """
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in RETRYABLE_SQLSTATES:
        return True
    return "database is locked" in str(orig).lower()


def scope_lock_key(scope: Scope) -> int:
    """Signed 64-bit advisory lock key for a scope."""
    digest = hashlib.blake2b(f"{scope.kind.value}:{scope.parent_id}".encode(), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


class SqlSiblingRepository:
    """Order-column access for one entity kind over a SQLAlchemy session."""

    kind: EntityKind
    model: type
    parent_model: type
    parent_key: str

    def __init__(
        self,
        db: Session,
        max_attempts: Optional[int] = None,
        retry_backoff: Optional[float] = None,
    ):
        settings = get_settings()
        self.db = db
        self.max_attempts = max_attempts or settings.reorder_max_attempts
        self.retry_backoff = (
            settings.reorder_retry_backoff_seconds if retry_backoff is None else retry_backoff
        )

    @property
    def parent_column(self):
        return getattr(self.model, self.parent_key)

    def _check_scope(self, scope: Scope) -> None:
        if scope.kind != self.kind:
            raise InvalidArgumentError(f"{type(self).__name__} cannot serve {scope}")

    def _siblings(self, scope: Scope):
        self._check_scope(scope)
        return self.db.query(self.model).filter(self.parent_column == scope.parent_id)

    # Sibling access

    def count_siblings(self, scope: Scope) -> int:
        return self._siblings(scope).count()

    def list_orders(self, scope: Scope) -> list[tuple[UUID, int]]:
        self._check_scope(scope)
        rows = (
            self.db.query(self.model.id, self.model.order)
            .filter(self.parent_column == scope.parent_id)
            .order_by(self.model.order, self.model.id)
            .all()
        )
        return [(row.id, row.order) for row in rows]

    def shift_orders(
        self,
        scope: Scope,
        lower: int,
        upper: Optional[int],
        delta: int,
        exclude_id: Optional[Hashable] = None,
    ) -> int:
        query = self._siblings(scope).filter(self.model.order >= lower)
        if upper is not None:
            query = query.filter(self.model.order <= upper)
        if exclude_id is not None:
            query = query.filter(self.model.id != exclude_id)
        return query.update(
            {self.model.order: self.model.order + delta},
            synchronize_session="fetch",
        )

    def set_order(self, entity_id: Hashable, order: int) -> None:
        updated = (
            self.db.query(self.model)
            .filter(self.model.id == entity_id)
            .update({self.model.order: order}, synchronize_session="fetch")
        )
        if not updated:
            raise NotFoundError(f"{self.kind.value.capitalize()} not found: {entity_id}")

    def parent_of(self, entity_id: Hashable) -> Optional[UUID]:
        row = self.db.query(self.parent_column).filter(self.model.id == entity_id).first()
        return row[0] if row else None

    def reparent(self, entity_id: Hashable, scope: Scope, order: int) -> None:
        self._check_scope(scope)
        updated = (
            self.db.query(self.model)
            .filter(self.model.id == entity_id)
            .update(
                {self.parent_column: scope.parent_id, self.model.order: order},
                synchronize_session="fetch",
            )
        )
        if not updated:
            raise NotFoundError(f"{self.kind.value.capitalize()} not found: {entity_id}")

    # Transactions

    def lock_scope(self, scope: Scope) -> None:
        """
        Take the scope's write lock for the rest of the transaction.

        PostgreSQL uses a transaction-level advisory lock keyed by the scope,
        so sibling sets never block each other; other databases lock the
        parent row. SQLite connections already hold the database write lock
        (BEGIN IMMEDIATE, see database.py).

        Raises:
            NotFoundError: If the scope's parent does not exist
        """
        self._check_scope(scope)
        query = self.db.query(self.parent_model.id).filter(self.parent_model.id == scope.parent_id)

        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            self.db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": scope_lock_key(scope)})
        elif dialect != "sqlite":
            query = query.with_for_update()

        if query.first() is None:
            raise NotFoundError(f"{self.parent_model.__name__} not found: {scope.parent_id}")

    def with_transaction(
        self,
        scope: Scope,
        fn: Callable[["SqlSiblingRepository"], T],
        also_lock: Iterable[Scope] = (),
    ) -> T:
        """
        Run ``fn`` atomically against the locked scope(s) and commit.

        Args:
            scope: Scope the operation works on
            fn: Engine operation; receives this repository
            also_lock: Further scopes of the same kind the operation touches

        Returns:
            Whatever ``fn`` returns

        Raises:
            ConflictError: If every attempt lost to concurrent writers
        """
        scopes = (scope, *also_lock)
        return self.with_resolved_transaction(lambda: scopes, lambda repo, *_: fn(repo))

    def with_resolved_transaction(
        self,
        resolve: Callable[[], Sequence[Scope]],
        fn: Callable[..., T],
    ) -> T:
        """
        Resolve the scopes, lock them, run ``fn`` and commit, as one attempt.

        ``resolve`` runs first in every attempt, so its existence and access
        checks share the transaction of the write. On SQLite that first
        statement is what waits for the database write lock, so a busy
        database is retried like any other lost race.

        Locks are taken in a fixed order so two transfers between the same
        scopes cannot deadlock. On a retryable database error the whole
        transaction is rolled back and the attempt starts again from
        ``resolve``; any other error rolls back and propagates.

        Args:
            resolve: Returns the scopes to lock; the first one names the
                operation in log messages
            fn: Engine operation; receives this repository and the resolved
                scopes

        Returns:
            Whatever ``fn`` returns

        Raises:
            ConflictError: If every attempt lost to concurrent writers
        """
        for attempt in range(1, self.max_attempts + 1):
            scopes: tuple[Scope, ...] = ()
            try:
                scopes = tuple(resolve())
                for locked in sorted(set(scopes), key=lambda s: (s.kind.value, str(s.parent_id))):
                    self.lock_scope(locked)
                result = fn(self, *scopes)
                self.db.commit()
                return result
            except DBAPIError as e:
                self.db.rollback()
                if not is_retryable(e):
                    raise
                target = scopes[0] if scopes else f"{self.kind.value} scope"
                if attempt >= self.max_attempts:
                    logger.error(f"Giving up on {target} after {attempt} attempts: {e.orig}")
                    raise ConflictError(
                        f"Concurrent update on {target}; retry the request"
                    ) from e
                logger.warning(f"Retrying {target} (attempt {attempt} of {self.max_attempts}): {e.orig}")
                time.sleep(self.retry_backoff * attempt)
            except Exception:
                self.db.rollback()
                raise

        # max_attempts < 1
        raise ConflictError(f"No attempt made on {self.kind.value} scope")


class BoardSiblingRepository(SqlSiblingRepository):
    """Boards, scoped by project."""

    kind = EntityKind.BOARD
    model = models.Board
    parent_model = models.Project
    parent_key = "project_id"


class TaskSiblingRepository(SqlSiblingRepository):
    """Tasks, scoped by board."""

    kind = EntityKind.TASK
    model = models.Task
    parent_model = models.Board
    parent_key = "board_id"


REPOSITORIES: dict[EntityKind, type[SqlSiblingRepository]] = {
    EntityKind.BOARD: BoardSiblingRepository,
    EntityKind.TASK: TaskSiblingRepository,
}


def repository_for(db: Session, scope: Scope, **kwargs) -> SqlSiblingRepository:
    """Return the repository adapter serving a scope's entity kind."""
    return REPOSITORIES[scope.kind](db, **kwargs)
