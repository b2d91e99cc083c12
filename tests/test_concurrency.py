"""Concurrent writers on one scope must leave it dense."""
import threading

import pytest

from edutasker_core import crud, models, schemas
from edutasker_core.ordering import is_dense


def run_concurrently(workers):
    """Start all workers at once and collect any exception they raise."""
    barrier = threading.Barrier(len(workers))
    errors = []

    def wrap(fn):
        def _run():
            barrier.wait()
            try:
                fn()
            except Exception as e:  # surfaced to the test below
                errors.append(e)
        return _run

    threads = [threading.Thread(target=wrap(fn)) for fn in workers]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return errors


class TestConcurrentInserts:
    """Test concurrent insert_at and move_to on one scope."""

    def test_concurrent_board_inserts_at_front(self, db, session_factory, project, owner):
        project_id, owner_id = project.id, owner.id
        crud.create_board(db, project_id, "seed", user_id=owner_id)
        db.close()

        def writer(prefix):
            def _write():
                session = session_factory()
                try:
                    for i in range(5):
                        crud.create_board(session, project_id, f"{prefix}-{i}", order=0, user_id=owner_id)
                finally:
                    session.close()
            return _write

        errors = run_concurrently([writer("left"), writer("right")])

        assert errors == []
        orders = [order for (order,) in db.query(models.Board.order).filter(models.Board.project_id == project_id)]
        assert len(orders) == 11
        assert is_dense(orders)
        db.close()

    def test_concurrent_task_moves_and_inserts(self, db, session_factory, project, owner):
        project_id, owner_id = project.id, owner.id
        board = crud.create_board(db, project_id, "A", user_id=owner_id)
        board_id = board.id
        task_ids = [
            crud.create_task(db, project_id, schemas.TaskCreate(board_id=board_id, title=f"t{i}"), owner_id).id
            for i in range(6)
        ]
        db.close()

        def mover():
            session = session_factory()
            try:
                for i in range(6):
                    crud.move_task(session, project_id, task_ids[i], board_id, 5 - i, owner_id)
            finally:
                session.close()

        def inserter():
            session = session_factory()
            try:
                for i in range(4):
                    data = schemas.TaskCreate(board_id=board_id, title=f"new{i}", order=i * 2)
                    crud.create_task(session, project_id, data, owner_id)
            finally:
                session.close()

        errors = run_concurrently([mover, inserter])

        assert errors == []
        orders = [order for (order,) in db.query(models.Task.order).filter(models.Task.board_id == board_id)]
        assert len(orders) == 10
        assert is_dense(orders)
        db.close()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
