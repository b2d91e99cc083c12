"""Ordering engine for sibling positions.

Keeps the ``order`` column of one scope (the boards of a project, the tasks of
a board) dense: with N siblings the orders are exactly 0..N-1, no gaps and no
duplicates, before and after every operation.

Every operation is a single transition over one scope and must run inside the
repository's transaction (see ``SqlSiblingRepository.with_transaction``), which
locks the scope before the snapshot read. The engine itself never commits.

Operations:
- append: next free position (count of siblings)
- insert_at: open a slot, shifting later siblings right
- remove_at: close the slot of a deleted entity, shifting later siblings left
- move_to: move within the scope, shifting only the siblings in between
- batch_reorder: apply several moves in ascending target order
- transfer: move an entity into another scope of the same kind
- compact: renumber a scope that lost density before this engine managed it
"""
import logging
from dataclasses import dataclass
from typing import Hashable, Iterable, Optional, Protocol, Sequence

from .errors import ConflictError, InvalidArgumentError, NotFoundError
from .reorder_validation import Assignment, validate_batch_request, validate_position
from .scope import Scope

logger = logging.getLogger("edutasker-core.ordering")


class SiblingRepository(Protocol):
    """Transaction-bound access to one entity kind's order column."""

    def count_siblings(self, scope: Scope) -> int:
        ...

    def list_orders(self, scope: Scope) -> list[tuple[Hashable, int]]:
        """(entity id, order) pairs of the scope, ascending by order."""
        ...

    def shift_orders(
        self,
        scope: Scope,
        lower: int,
        upper: Optional[int],
        delta: int,
        exclude_id: Optional[Hashable] = None,
    ) -> int:
        """Add ``delta`` to every order in [lower, upper] (upper None = no bound)."""
        ...

    def set_order(self, entity_id: Hashable, order: int) -> None:
        ...

    def parent_of(self, entity_id: Hashable) -> Optional[Hashable]:
        """Persisted parent of an entity, or None if it does not exist."""
        ...

    def reparent(self, entity_id: Hashable, scope: Scope, order: int) -> None:
        ...


@dataclass(frozen=True)
class Shift:
    """Bulk adjustment of the orders in [lower, upper] by ``delta``."""

    lower: int
    upper: Optional[int]
    delta: int


def clamp(position: int, upper: int) -> int:
    """Clamp a position into [0, upper]."""
    return max(0, min(position, upper))


def is_dense(orders: Iterable[int]) -> bool:
    """True if the orders are exactly 0..N-1."""
    ordered = sorted(orders)
    return ordered == list(range(len(ordered)))


def plan_move(current: int, target: int) -> Optional[Shift]:
    """
    Compute the shift of the siblings between two positions.

    Moving down (target < current) pushes [target, current-1] right; moving up
    (target > current) pulls [current+1, target] left. The moved entity itself
    is excluded from the shift and then written at ``target``.

    Args:
        current: Entity's current order
        target: Already clamped target order

    Returns:
        Shift to apply, or None for a no-op move
    """
    if target == current:
        return None
    if target < current:
        return Shift(lower=target, upper=current - 1, delta=1)
    return Shift(lower=current + 1, upper=target, delta=-1)


def _locate(
    repo: SiblingRepository,
    scope: Scope,
    entity_id: Hashable,
    snapshot: dict[Hashable, int],
) -> int:
    """Return the entity's current order, or explain why it is not in scope."""
    if entity_id in snapshot:
        return snapshot[entity_id]

    parent_id = repo.parent_of(entity_id)
    if parent_id is None:
        raise NotFoundError(f"{scope.kind.value.capitalize()} not found: {entity_id}")
    logger.warning(f"{scope.kind.value} {entity_id} claimed in {scope} belongs to {parent_id}")
    raise ConflictError(
        f"{scope.kind.value.capitalize()} {entity_id} does not belong to {scope.parent_id}"
    )


def append(repo: SiblingRepository, scope: Scope) -> int:
    """
    Position for a new entity at the end of the scope.

    Uses the sibling count, which equals "last order + 1" only while the scope
    is dense and stays correct when it is not.

    Returns:
        Order to persist on the new entity
    """
    order = repo.count_siblings(scope)
    logger.debug(f"Append in {scope}: order {order}")
    return order


def insert_at(repo: SiblingRepository, scope: Scope, position: int) -> int:
    """
    Open a slot for a new entity at ``position``.

    The position is clamped to [0, N]. Every sibling at or after it moves one
    to the right; inserting at N shifts nothing.

    Returns:
        Order to persist on the new entity
    """
    validate_position(position)
    count = repo.count_siblings(scope)
    order = clamp(position, count)
    if order < count:
        shifted = repo.shift_orders(scope, lower=order, upper=None, delta=1)
        logger.debug(f"Insert in {scope} at {order}: shifted {shifted} right")
    return order


def remove_at(repo: SiblingRepository, scope: Scope, entity_id: Hashable) -> int:
    """
    Close the slot of an entity that is being deleted.

    Must run before the caller deletes the row, in the same transaction.

    Returns:
        The order the entity held
    """
    snapshot = dict(repo.list_orders(scope))
    order = _locate(repo, scope, entity_id, snapshot)
    shifted = repo.shift_orders(scope, lower=order + 1, upper=None, delta=-1, exclude_id=entity_id)
    logger.debug(f"Remove {entity_id} from {scope} at {order}: shifted {shifted} left")
    return order


def move_to(repo: SiblingRepository, scope: Scope, entity_id: Hashable, position: int) -> int:
    """
    Move an entity to ``position`` within its scope.

    Equivalent to removing it and re-inserting it at the clamped position,
    done as one combined shift so no two siblings ever share an order.

    Returns:
        The entity's new order
    """
    validate_position(position)
    snapshot = dict(repo.list_orders(scope))
    current = _locate(repo, scope, entity_id, snapshot)
    target = clamp(position, len(snapshot) - 1)

    shift = plan_move(current, target)
    if shift is None:
        return current

    repo.shift_orders(scope, shift.lower, shift.upper, shift.delta, exclude_id=entity_id)
    repo.set_order(entity_id, target)
    logger.debug(f"Moved {entity_id} in {scope}: {current} -> {target}")
    return target


def batch_reorder(
    repo: SiblingRepository,
    scope: Scope,
    assignments: Sequence[Assignment],
) -> list[tuple[Hashable, int]]:
    """
    Apply several target positions in one scope.

    Assignments are applied as moves in ascending target order, each against
    the state the previous move left behind. A batch covering every sibling
    places each one exactly on its target; for a partial batch the unnamed
    siblings keep their relative order and absorb the shifts.

    Every named entity is checked before the first write.

    Returns:
        The scope's (entity id, order) pairs after the batch
    """
    validate_batch_request(assignments)

    snapshot = dict(repo.list_orders(scope))
    for entity_id, _ in assignments:
        _locate(repo, scope, entity_id, snapshot)

    for entity_id, position in sorted(assignments, key=lambda a: a[1]):
        move_to(repo, scope, entity_id, position)

    logger.debug(f"Batch reorder in {scope}: {len(assignments)} assignments applied")
    return repo.list_orders(scope)


def transfer(
    repo: SiblingRepository,
    source: Scope,
    target: Scope,
    entity_id: Hashable,
    position: int,
) -> int:
    """
    Move an entity into another scope of the same kind.

    Closes its slot in ``source`` and opens one at the clamped position in
    [0, N_target] of ``target``. The caller's transaction must hold both scope
    locks.

    Returns:
        The entity's order in the target scope
    """
    if source.kind != target.kind:
        raise InvalidArgumentError(f"Cannot move a {source.kind.value} into {target}")
    if source == target:
        return move_to(repo, source, entity_id, position)

    validate_position(position)
    snapshot = dict(repo.list_orders(source))
    current = _locate(repo, source, entity_id, snapshot)

    repo.shift_orders(source, lower=current + 1, upper=None, delta=-1, exclude_id=entity_id)
    order = insert_at(repo, target, position)
    repo.reparent(entity_id, target, order)
    logger.debug(f"Transferred {entity_id}: {source}#{current} -> {target}#{order}")
    return order


def compact(repo: SiblingRepository, scope: Scope) -> int:
    """
    Renumber a scope to 0..N-1, keeping its current (order, id) sequence.

    Returns:
        Number of entities whose order changed
    """
    rows = sorted(repo.list_orders(scope), key=lambda row: (row[1], str(row[0])))
    if is_dense(order for _, order in rows):
        return 0

    changed = 0
    for index, (entity_id, order) in enumerate(rows):
        if order != index:
            repo.set_order(entity_id, index)
            changed += 1
    if changed:
        logger.info(f"Compacted {scope}: {changed} of {len(rows)} renumbered")
    return changed
