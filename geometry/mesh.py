# geometry/mesh.py

import functools
import logging
from typing import Dict, Iterator, List, Optional, Sequence

import numpy as np

from core.exceptions import MeshEngineError, MeshStructureError
from core.parameters.global_parameters import GlobalParameters
from geometry.entities import (
    Body,
    BodyType,
    MeshObject,
    MeshObjType,
    Structure,
    Surface,
    SurfaceType,
    Vertex,
)
from geometry.particles import ParticleType
from runtime import topology
from runtime.solver import MeshLogEventType

logger = logging.getLogger("tissue_mesh")


class Inventory:
    """Slot storage for one object variant.

    Ids are slot indices. Released ids are reused smallest first and the
    slot array grows by ``increment`` when no id is free.
    """

    def __init__(self, obj_type: MeshObjType, increment: int = 100):
        if increment < 1:
            raise ValueError("Inventory increment must be positive.")
        self.obj_type = obj_type
        self.increment = int(increment)
        self.slots: List[Optional[MeshObject]] = []
        self.available: set = set()

    def __len__(self) -> int:
        return len(self.slots) - len(self.available)

    def __iter__(self) -> Iterator[MeshObject]:
        return (obj for obj in self.slots if obj is not None)

    @property
    def size(self) -> int:
        return len(self.slots)

    def allocate(self, obj: MeshObject) -> int:
        if not self.available:
            start = len(self.slots)
            self.slots.extend([None] * self.increment)
            self.available.update(range(start, start + self.increment))
        obj_id = min(self.available)
        self.available.discard(obj_id)
        self.slots[obj_id] = obj
        return obj_id

    def release(self, obj_id: int) -> None:
        self.slots[obj_id] = None
        self.available.add(obj_id)

    def get(self, obj_id: int) -> Optional[MeshObject]:
        if obj_id < 0 or obj_id >= len(self.slots):
            return None
        return self.slots[obj_id]


def reports_failure(failure=False):
    """Turn :class:`MeshEngineError` raised by an edit into ``failure``.

    The error is logged and the caller receives the uniform failure value.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except MeshEngineError as exc:
                logger.error("Mesh.%s failed: %s", func.__name__, exc)
                return failure

        return wrapper

    return decorator


class Mesh:
    def __init__(self, solver=None, particle_type=None, global_parameters=None):
        self.global_parameters = global_parameters or GlobalParameters()
        increment = int(self.global_parameters.get("inventory_increment", 100))
        self._inventories: Dict[MeshObjType, Inventory] = {
            obj_type: Inventory(obj_type, increment) for obj_type in MeshObjType
        }
        self.solver = solver
        self.particle_type = particle_type or ParticleType(
            self.global_parameters.get("vertex_mass", 1.0)
        )
        self.is_dirty = False

    # Inventory views

    @property
    def vertices(self) -> List[Vertex]:
        return list(self._inventories[MeshObjType.VERTEX])

    @property
    def surfaces(self) -> List[Surface]:
        return list(self._inventories[MeshObjType.SURFACE])

    @property
    def bodies(self) -> List[Body]:
        return list(self._inventories[MeshObjType.BODY])

    @property
    def structures(self) -> List[Structure]:
        return list(self._inventories[MeshObjType.STRUCTURE])

    @property
    def num_vertices(self) -> int:
        return len(self._inventories[MeshObjType.VERTEX])

    @property
    def num_surfaces(self) -> int:
        return len(self._inventories[MeshObjType.SURFACE])

    @property
    def num_bodies(self) -> int:
        return len(self._inventories[MeshObjType.BODY])

    @property
    def num_structures(self) -> int:
        return len(self._inventories[MeshObjType.STRUCTURE])

    @property
    def size_vertices(self) -> int:
        return self._inventories[MeshObjType.VERTEX].size

    @property
    def size_surfaces(self) -> int:
        return self._inventories[MeshObjType.SURFACE].size

    @property
    def size_bodies(self) -> int:
        return self._inventories[MeshObjType.BODY].size

    @property
    def size_structures(self) -> int:
        return self._inventories[MeshObjType.STRUCTURE].size

    def get_vertex(self, idx: int) -> Optional[Vertex]:
        return self._inventories[MeshObjType.VERTEX].get(idx)

    def get_surface(self, idx: int) -> Optional[Surface]:
        return self._inventories[MeshObjType.SURFACE].get(idx)

    def get_body(self, idx: int) -> Optional[Body]:
        return self._inventories[MeshObjType.BODY].get(idx)

    def get_structure(self, idx: int) -> Optional[Structure]:
        return self._inventories[MeshObjType.STRUCTURE].get(idx)

    def get_vertex_by_particle(self, particle) -> Optional[Vertex]:
        for v in self._inventories[MeshObjType.VERTEX]:
            if v.particle is particle:
                return v
        return None

    def find_vertex(self, pos, tol: Optional[float] = None) -> Optional[Vertex]:
        """Return the first stored vertex within ``tol`` of ``pos``."""
        if tol is None:
            tol = float(self.global_parameters.get("find_vertex_tolerance", 1e-4))
        for v in self._inventories[MeshObjType.VERTEX]:
            if np.linalg.norm(v.particle.relative_position(pos)) <= tol:
                return v
        return None

    def new_vertex(self, position) -> Vertex:
        """Create an unstored vertex backed by a new particle."""
        return Vertex(particle=self.particle_type(position))

    # Storage

    def make_dirty(self) -> None:
        self.is_dirty = True
        if self.solver is not None:
            self.solver.set_dirty(True)

    def _add(self, obj: MeshObject) -> None:
        if obj is None:
            raise MeshStructureError("Cannot add a null mesh object", mesh=self)
        self.make_dirty()
        if obj.object_id >= 0 or obj.mesh is not None:
            raise MeshStructureError(f"{obj!r} is already stored", obj=obj, mesh=self)
        if not obj.validate():
            raise MeshStructureError(f"{obj!r} failed validation", obj=obj, mesh=self)

        for parent in obj.parents():
            if parent.mesh is None:
                self._add(parent)
            elif parent.mesh is not self:
                raise MeshStructureError(
                    f"{parent!r} belongs to a different mesh", obj=parent, mesh=self
                )

        inventory = self._inventories[obj.obj_type]
        obj.object_id = inventory.allocate(obj)
        obj.mesh = self

        if self.solver is not None:
            parents = obj.parents()
            self.solver.log(
                self,
                MeshLogEventType.CREATE,
                [obj.object_id] + [p.object_id for p in parents],
                [obj.obj_type] + [p.obj_type for p in parents],
            )

    def _remove(self, obj: MeshObject) -> None:
        self.make_dirty()
        if obj is None or obj.object_id < 0 or obj.mesh is not self:
            raise MeshStructureError("Invalid mesh object passed for remove", obj=obj, mesh=self)
        inventory = self._inventories.get(obj.obj_type)
        if inventory is None:
            raise MeshStructureError("Could not determine mesh object type", obj=obj, mesh=self)
        if obj.object_id >= inventory.size:
            raise MeshStructureError(
                f"Object with id {obj.object_id} exceeds inventory ({inventory.size})",
                obj=obj,
                mesh=self,
            )
        if inventory.get(obj.object_id) is not obj:
            raise MeshStructureError(
                f"Inventory slot {obj.object_id} does not hold {obj!r}", obj=obj, mesh=self
            )

        obj_id = obj.object_id
        inventory.release(obj_id)
        if self.solver is not None:
            self.solver.log(self, MeshLogEventType.DESTROY, [obj_id], [obj.obj_type])
        obj.object_id = -1
        obj.mesh = None

        for child in obj.children():
            if child.mesh is self and child.object_id >= 0:
                self._remove(child)

    @reports_failure(False)
    def add(self, obj: MeshObject) -> bool:
        """Store ``obj`` and any unstored constituents."""
        self._add(obj)
        return True

    @reports_failure(False)
    def remove(self, obj: MeshObject) -> bool:
        """Release ``obj`` and every still-stored aggregate built on it."""
        self._remove(obj)
        return True

    def validate(self) -> bool:
        for obj_type, inventory in self._inventories.items():
            for idx, obj in enumerate(inventory.slots):
                if obj is None:
                    continue
                if obj.object_id != idx or obj.mesh is not self:
                    logger.error("%r is registered inconsistently in slot %d", obj, idx)
                    return False
                if not obj.validate():
                    logger.error("%r failed validation", obj)
                    return False
        return True

    def connected(self, a: MeshObject, b: MeshObject) -> bool:
        """Whether two objects of the same variant touch."""
        if isinstance(a, Vertex) and isinstance(b, Vertex):
            for s in a.surfaces:
                if not b.is_in(s):
                    continue
                prev_v, next_v = s.neighbor_vertices(a)
                if prev_v is b or next_v is b:
                    return True
            return False
        if isinstance(a, Surface) and isinstance(b, Surface):
            return any(v.is_in(b) for v in a.vertices)
        if isinstance(a, Body) and isinstance(b, Body):
            return any(s.is_in(b) for s in a.surfaces)
        raise TypeError(
            f"Cannot test connectivity of {type(a).__name__} and {type(b).__name__}"
        )

    # Editing

    @reports_failure(False)
    def insert(self, to_insert: Vertex, v1: Vertex, v2: Vertex) -> bool:
        topology.insert_vertex(self, to_insert, v1, v2)
        return True

    @reports_failure(False)
    def replace_surface(self, to_insert: Vertex, to_replace: Surface) -> bool:
        topology.replace_surface_with_vertex(self, to_insert, to_replace)
        return True

    @reports_failure(None)
    def replace_vertex(
        self, surface_type: SurfaceType, to_replace: Vertex, length_cfs: Sequence[float]
    ) -> Optional[Surface]:
        return topology.replace_vertex_with_surface(self, surface_type, to_replace, length_cfs)

    def replace(self, first, second, length_cfs=None):
        """Collapse a surface into a vertex, or expand a vertex into a surface.

        ``replace(vertex, surface)`` returns a bool,
        ``replace(surface_type, vertex, length_cfs)`` the new surface or None.
        """
        if isinstance(first, Vertex) and isinstance(second, Surface):
            return self.replace_surface(first, second)
        if isinstance(first, SurfaceType) and isinstance(second, Vertex):
            return self.replace_vertex(first, second, [] if length_cfs is None else length_cfs)
        raise TypeError(
            f"Cannot replace with {type(first).__name__} and {type(second).__name__}"
        )

    @reports_failure(False)
    def merge_vertices(self, keep: Vertex, remove: Vertex, length_cf: float = 0.5) -> bool:
        topology.merge_vertices(self, keep, remove, length_cf)
        return True

    @reports_failure(False)
    def merge_surfaces(
        self, keep: Surface, remove: Surface, length_cfs: Sequence[float] = ()
    ) -> bool:
        topology.merge_surfaces(self, keep, remove, length_cfs)
        return True

    def merge(self, keep, remove, length_cf=None):
        if isinstance(keep, Vertex) and isinstance(remove, Vertex):
            return self.merge_vertices(keep, remove, 0.5 if length_cf is None else length_cf)
        if isinstance(keep, Surface) and isinstance(remove, Surface):
            return self.merge_surfaces(keep, remove, () if length_cf is None else length_cf)
        raise TypeError(
            f"Cannot merge {type(keep).__name__} and {type(remove).__name__}"
        )

    @reports_failure(None)
    def extend_surface(self, base: Surface, vertex_idx_start: int, pos) -> Optional[Surface]:
        return topology.extend_surface(self, base, vertex_idx_start, pos)

    @reports_failure(None)
    def extrude_surface(
        self, base: Surface, vertex_idx_start: int, normal_len: float
    ) -> Optional[Surface]:
        return topology.extrude_surface(self, base, vertex_idx_start, normal_len)

    @reports_failure(None)
    def extend_body(self, base: Surface, body_type: BodyType, pos) -> Optional[Body]:
        return topology.extend_body(self, base, body_type, pos)

    @reports_failure(None)
    def extrude_body(self, base: Surface, body_type: BodyType, normal_len: float) -> Optional[Body]:
        return topology.extrude_body(self, base, body_type, normal_len)

    def extend(self, base: Surface, target, pos):
        """Extend ``base`` by an edge (int index) or into a body (BodyType)."""
        if isinstance(target, BodyType):
            return self.extend_body(base, target, pos)
        return self.extend_surface(base, int(target), pos)

    def extrude(self, base: Surface, target, normal_len: float):
        """Extrude ``base`` from an edge (int index) or into a body (BodyType)."""
        if isinstance(target, BodyType):
            return self.extrude_body(base, target, normal_len)
        return self.extrude_surface(base, int(target), normal_len)

    @reports_failure(False)
    def sew_all(self, surfaces: Sequence[Surface], distance_cf: float) -> bool:
        topology.sew_all(self, surfaces, distance_cf)
        return True

    @reports_failure(False)
    def sew_surfaces(self, s1: Surface, s2: Surface, distance_cf: float) -> bool:
        topology.sew_surfaces(self, s1, s2, distance_cf)
        return True

    def sew(self, first, second=None, distance_cf=None) -> bool:
        """``sew(s1, s2, distance_cf)`` or ``sew([s1, s2, ...], distance_cf)``."""
        if isinstance(first, Surface):
            return self.sew_surfaces(first, second, distance_cf)
        return self.sew_all(list(first), second)

    def __repr__(self) -> str:
        return (
            f"Mesh(vertices={self.num_vertices}, surfaces={self.num_surfaces}, "
            f"bodies={self.num_bodies}, structures={self.num_structures})"
        )
