# runtime/solver.py

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

logger = logging.getLogger("tissue_mesh")


class MeshLogEventType(Enum):
    CREATE = "create"
    DESTROY = "destroy"


@dataclass
class MeshLogEvent:
    kind: MeshLogEventType
    object_ids: List[int]
    object_types: list
    name: Optional[str] = None


@dataclass
class MeshSolver:
    """Observer of a mesh that also evaluates its actors.

    The mesh reports every stored or destroyed object and every completed
    edit through :meth:`log`, and marks itself through :meth:`set_dirty` and
    :meth:`position_changed`. :meth:`total_energy` and :meth:`compute_forces`
    run the per-step pass over all surface and body actors.
    """

    events: List[MeshLogEvent] = field(default_factory=list)
    is_dirty: bool = False
    position_changes: int = 0

    def log(self, mesh, kind, object_ids, object_types, name=None) -> None:
        event = MeshLogEvent(kind, list(object_ids), list(object_types), name)
        self.events.append(event)
        logger.debug(
            "Mesh event %s%s: ids=%s",
            kind.value,
            f" ({name})" if name else "",
            event.object_ids,
        )

    def set_dirty(self, is_dirty: bool = True) -> None:
        self.is_dirty = bool(is_dirty)

    def position_changed(self) -> None:
        self.position_changes += 1
        self.is_dirty = True

    def clear_log(self) -> None:
        self.events.clear()

    @staticmethod
    def actor_pairs(mesh) -> Iterator[Tuple[object, object, object]]:
        """Yield ``(actor, owner, vertex)`` for every actor evaluation."""
        for surface in mesh.surfaces:
            actors = surface.all_actors()
            if not actors:
                continue
            for vertex in surface.vertices:
                for actor in actors:
                    yield actor, surface, vertex
        for body in mesh.bodies:
            actors = body.all_actors()
            if not actors:
                continue
            for vertex in body.vertices():
                for actor in actors:
                    yield actor, body, vertex

    def total_energy(self, mesh) -> float:
        total = 0.0
        for actor, owner, vertex in self.actor_pairs(mesh):
            total += float(actor.energy(owner, vertex))
        return total

    def compute_forces(self, mesh) -> Dict[int, np.ndarray]:
        """Accumulate actor forces per vertex id."""
        forces: Dict[int, np.ndarray] = {
            v.object_id: np.zeros(3) for v in mesh.vertices
        }
        for actor, owner, vertex in self.actor_pairs(mesh):
            forces[vertex.object_id] += actor.force(owner, vertex)
        self.is_dirty = False
        return forces
