"""Custom exception types for the tissue mesh engine."""

from __future__ import annotations

from typing import Any


class MeshEngineError(Exception):
    """Base class for domain-specific errors."""

    def __init__(
        self,
        message: str,
        *,
        obj: Any | None = None,
        mesh: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.obj = obj
        self.mesh = mesh


class MeshStructureError(MeshEngineError):
    """Raised on identifier, inventory or ownership violations.

    Examples are re-adding a stored object, removing an object owned by a
    different mesh or an identifier outside the inventory bounds.
    """


class MeshAdjacencyError(MeshEngineError):
    """Raised when an edit requires an adjacency the mesh does not have."""


class MeshArityError(MeshEngineError):
    """Raised when coefficient lists do not match the connectivity or range."""


class MeshDegeneracyError(MeshEngineError):
    """Raised when an edit would produce or relies on degenerate geometry."""


__all__ = [
    "MeshEngineError",
    "MeshStructureError",
    "MeshAdjacencyError",
    "MeshArityError",
    "MeshDegeneracyError",
]
