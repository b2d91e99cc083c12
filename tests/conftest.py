"""Shared fixtures: an in-memory sibling repository and SQLite-backed sessions."""
from typing import Hashable, Optional
from uuid import uuid4

import pytest
from sqlalchemy.orm import sessionmaker

from edutasker_core import crud, models
from edutasker_core.database import make_engine
from edutasker_core.errors import NotFoundError
from edutasker_core.scope import Scope


class InMemorySiblingRepository:
    """Sibling repository double keeping (parent, order) per entity in a dict."""

    def __init__(self):
        self.rows: dict[Hashable, list] = {}

    def add(self, scope: Scope, entity_id: Hashable, order: int) -> None:
        self.rows[entity_id] = [scope.parent_id, order]

    def delete(self, entity_id: Hashable) -> None:
        del self.rows[entity_id]

    def sequence(self, scope: Scope) -> list[Hashable]:
        """Entity ids of a scope in position order."""
        return [entity_id for entity_id, _ in self.list_orders(scope)]

    def orders(self, scope: Scope) -> list[int]:
        return [order for _, order in self.list_orders(scope)]

    def count_siblings(self, scope: Scope) -> int:
        return sum(1 for parent, _ in self.rows.values() if parent == scope.parent_id)

    def list_orders(self, scope: Scope) -> list[tuple[Hashable, int]]:
        rows = [
            (entity_id, order)
            for entity_id, (parent, order) in self.rows.items()
            if parent == scope.parent_id
        ]
        return sorted(rows, key=lambda row: (row[1], str(row[0])))

    def shift_orders(
        self,
        scope: Scope,
        lower: int,
        upper: Optional[int],
        delta: int,
        exclude_id: Optional[Hashable] = None,
    ) -> int:
        shifted = 0
        for entity_id, row in self.rows.items():
            parent, order = row
            if parent != scope.parent_id or entity_id == exclude_id:
                continue
            if order >= lower and (upper is None or order <= upper):
                row[1] = order + delta
                shifted += 1
        return shifted

    def set_order(self, entity_id: Hashable, order: int) -> None:
        if entity_id not in self.rows:
            raise NotFoundError(f"not found: {entity_id}")
        self.rows[entity_id][1] = order

    def parent_of(self, entity_id: Hashable):
        row = self.rows.get(entity_id)
        return row[0] if row else None

    def reparent(self, entity_id: Hashable, scope: Scope, order: int) -> None:
        self.rows[entity_id] = [scope.parent_id, order]


@pytest.fixture
def repo():
    return InMemorySiblingRepository()


@pytest.fixture
def seeded(repo):
    """Factory filling a scope with entities at orders 0..N-1."""

    def _seed(scope: Scope, *entity_ids: Hashable) -> InMemorySiblingRepository:
        for order, entity_id in enumerate(entity_ids):
            repo.add(scope, entity_id, order)
        return repo

    return _seed


# ============================================================================
# SQLite-backed fixtures
# ============================================================================

@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite engine so separate sessions get separate connections."""
    engine = make_engine(f"sqlite:///{tmp_path / 'edutasker-test.db'}")
    models.Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def owner(db):
    return crud.create_user(db, email=f"owner-{uuid4().hex[:8]}@example.com", full_name="Owner")


@pytest.fixture
def project(db, owner):
    return crud.create_project(db, name="Capstone", user_id=owner.id)


@pytest.fixture
def make_member(db, project):
    """Factory adding a new user to the project with a role."""

    def _make(role: models.ProjectRole) -> models.User:
        user = crud.create_user(db, email=f"{role.value}-{uuid4().hex[:8]}@example.com")
        crud.add_project_member(
            db,
            project_id=project.id,
            user_id=user.id,
            role=role,
            acting_user_id=project.created_by_user_id,
        )
        return user

    return _make


@pytest.fixture
def outsider(db):
    return crud.create_user(db, email=f"outsider-{uuid4().hex[:8]}@example.com")
