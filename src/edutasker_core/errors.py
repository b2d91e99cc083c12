"""Typed failures raised by the ordering subsystem and its helpers.

Every failure carries a machine-readable ``code`` so the HTTP layer can map it
to a 4xx response without inspecting messages:

- ``not_found``: entity or scope does not exist
- ``invalid_argument``: malformed position or batch
- ``forbidden``: acting user may not touch the scope
- ``conflict``: scope mismatch, or the transaction kept losing to
  concurrent writers
"""


class OrderingError(Exception):
    """Base class for ordering failures."""

    code = "ordering_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(OrderingError):
    """Raised when an entity or its scope does not exist."""

    code = "not_found"
    status_code = 404


class InvalidArgumentError(OrderingError):
    """Raised for negative, duplicate or otherwise malformed positions."""

    code = "invalid_argument"
    status_code = 400


class ForbiddenError(OrderingError):
    """Raised when the acting user lacks access to the scope."""

    code = "forbidden"
    status_code = 403


class ConflictError(OrderingError):
    """Raised when an entity's persisted parent differs from the claimed scope,
    or when serialization retries are exhausted."""

    code = "conflict"
    status_code = 409
