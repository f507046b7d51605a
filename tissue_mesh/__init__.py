"""Package utilities for tissue-mesh.

The engine lives in top-level packages like `geometry/`, `modules/`, and
`runtime/`. This package re-exports the public entry points so callers can
write ``from tissue_mesh import Mesh``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from core.exceptions import (
    MeshAdjacencyError,
    MeshArityError,
    MeshDegeneracyError,
    MeshEngineError,
    MeshStructureError,
)
from core.parameters.global_parameters import GlobalParameters
from geometry.entities import (
    Body,
    BodyType,
    MeshObjType,
    Structure,
    Surface,
    SurfaceType,
    Vertex,
)
from geometry.geom_io import load_data, parse_mesh, save_mesh
from geometry.mesh import Mesh
from geometry.particles import Particle, ParticleType
from modules.actors.convex_polygon import ConvexPolygonConstraint
from modules.actors.surface_area import SurfaceAreaConstraint
from runtime.logging_config import setup_logging
from runtime.solver import MeshLogEvent, MeshLogEventType, MeshSolver

try:
    __version__ = version("tissue-mesh")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

__all__ = [
    "Body",
    "BodyType",
    "ConvexPolygonConstraint",
    "GlobalParameters",
    "Mesh",
    "MeshAdjacencyError",
    "MeshArityError",
    "MeshDegeneracyError",
    "MeshEngineError",
    "MeshLogEvent",
    "MeshLogEventType",
    "MeshObjType",
    "MeshSolver",
    "MeshStructureError",
    "Particle",
    "ParticleType",
    "Structure",
    "Surface",
    "SurfaceAreaConstraint",
    "SurfaceType",
    "Vertex",
    "load_data",
    "parse_mesh",
    "save_mesh",
    "setup_logging",
]
