"""Exception hierarchy for the fee core.

Most failures in the core are absorbed locally: a stale id is a no-op, a
failed reference fetch degrades to an empty table. The exceptions below are
reserved for programmer errors (bad direction tokens, malformed snapshots,
strict lookups) and for the reference client's internal error channel.

All exceptions inherit from ``FeeCoreError`` so boundary code can use a
single ``except FeeCoreError``.
"""

from __future__ import annotations

from typing import Any


class FeeCoreError(Exception):
    """Base exception for all fee-core failures."""

    __slots__ = ()


class StructureNotFoundError(FeeCoreError):
    """Raised by strict lookups when a structure id is not in the proposal."""

    __slots__ = ("structure_id",)

    def __init__(self, structure_id: str) -> None:
        super().__init__(f"Structure {structure_id!r} not found in proposal")
        self.structure_id = structure_id


class InvalidDirectionError(FeeCoreError):
    """Raised when a level direction token is not recognised.

    Attributes
    ----------
    direction : str
        The token that was supplied.
    allowed : tuple[str, ...]
        The tokens accepted by the operation.
    """

    __slots__ = ("allowed", "direction")

    def __init__(self, direction: Any, allowed: tuple[str, ...]) -> None:
        super().__init__(
            f"Invalid direction {direction!r}; expected one of {', '.join(allowed)}"
        )
        self.direction = direction
        self.allowed = allowed


class SnapshotError(FeeCoreError):
    """Raised when a serialized proposal tree cannot be restored."""

    __slots__ = ("detail",)

    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid proposal snapshot: {detail}")
        self.detail = detail


class ReferenceDataError(FeeCoreError):
    """Raised inside the reference client when an endpoint cannot be read.

    Public fetch methods catch this and fall back to an empty result, so
    callers only see it when they go through ``ReferenceClient.request``.

    Attributes
    ----------
    endpoint : str
        Path of the collaborator endpoint (e.g. ``"design-fee-scale"``).
    detail : str
        Human-readable failure reason.
    """

    __slots__ = ("detail", "endpoint")

    def __init__(self, endpoint: str, detail: str) -> None:
        super().__init__(f"Reference endpoint {endpoint!r} unavailable: {detail}")
        self.endpoint = endpoint
        self.detail = detail
