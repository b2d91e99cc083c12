"""Validation of reorder requests before they reach the ordering engine.

Targets beyond the end of a scope are not rejected here: the engine clamps
them, so "move past the end" means "move to the last position".
"""
import logging
from collections import Counter
from typing import Hashable, Sequence

from .errors import InvalidArgumentError

logger = logging.getLogger("edutasker-core.reorder_validation")

# (entity id, target position)
Assignment = tuple[Hashable, int]


def validate_position(position: int) -> None:
    """
    Validate a single target position.

    Raises:
        InvalidArgumentError: If the position is not a non-negative integer
    """
    if isinstance(position, bool) or not isinstance(position, int):
        raise InvalidArgumentError(f"Order must be an integer, got {position!r}")
    if position < 0:
        raise InvalidArgumentError(f"Order must be a non-negative integer, got {position}")


def validate_move_request(entity_id: Hashable, position: int) -> None:
    """
    Validate a single-move request.

    Args:
        entity_id: Entity being moved
        position: Requested position

    Raises:
        InvalidArgumentError: If the position is negative
    """
    if entity_id is None:
        raise InvalidArgumentError("Entity ID is required")
    validate_position(position)


def validate_batch_request(assignments: Sequence[Assignment]) -> None:
    """
    Validate a batch reorder request.

    A batch is rejected when it is empty, when any target is negative, when
    two entries share a target (ambiguous slot), or when one entity is named
    twice.

    Args:
        assignments: (entity id, target position) pairs

    Raises:
        InvalidArgumentError: On the first problem found
    """
    if not assignments:
        raise InvalidArgumentError("At least one item must be provided for reordering")

    for entity_id, position in assignments:
        validate_move_request(entity_id, position)

    target_counts = Counter(position for _, position in assignments)
    duplicated_targets = sorted(p for p, n in target_counts.items() if n > 1)
    if duplicated_targets:
        logger.warning(f"Rejected batch with duplicate targets {duplicated_targets}")
        raise InvalidArgumentError(
            f"All orders must be unique; duplicated: {', '.join(map(str, duplicated_targets))}"
        )

    entity_counts = Counter(entity_id for entity_id, _ in assignments)
    duplicated_entities = [str(e) for e, n in entity_counts.items() if n > 1]
    if duplicated_entities:
        logger.warning(f"Rejected batch naming entities twice: {duplicated_entities}")
        raise InvalidArgumentError(
            f"Each item may appear only once; repeated: {', '.join(duplicated_entities)}"
        )
