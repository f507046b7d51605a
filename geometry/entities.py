# entities.py

import logging
import math
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np

from core.exceptions import MeshAdjacencyError, MeshStructureError
from core.ordered_unique_list import OrderedUniqueList
from geometry.particles import Particle

logger = logging.getLogger("tissue_mesh")

#: Fewest boundary vertices a surface may have.
SURFACE_MIN_VERTICES = 3
#: Fewest surfaces that can enclose a volume.
BODY_MIN_SURFACES = 4


def _fast_cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Compute cross product of two arrays of 3D vectors along the last axis.
    Optimized to avoid np.cross overhead for small arrays or simple cases.
    Inputs must be shape (..., 3) or (3,).
    """
    x = a[..., 1] * b[..., 2] - a[..., 2] * b[..., 1]
    y = a[..., 2] * b[..., 0] - a[..., 0] * b[..., 2]
    z = a[..., 0] * b[..., 1] - a[..., 1] * b[..., 0]

    out = np.empty(x.shape + (3,), dtype=x.dtype)
    out[..., 0] = x
    out[..., 1] = y
    out[..., 2] = z
    return out


def _unit_rows(vectors: np.ndarray, tol: float = 1e-12) -> np.ndarray:
    """Normalize each row; degenerate rows stay zero."""
    norms = np.linalg.norm(vectors, axis=-1)
    out = np.zeros_like(vectors)
    mask = norms > tol
    out[mask] = vectors[mask] / norms[mask][..., None]
    return out


class MeshObjType(Enum):
    VERTEX = "vertex"
    SURFACE = "surface"
    BODY = "body"
    STRUCTURE = "structure"


def _require_type(obj, obj_type: MeshObjType, role: str) -> None:
    if getattr(obj, "obj_type", None) is not obj_type:
        raise MeshStructureError(
            f"{role} must be a {obj_type.value}, got {type(obj).__name__}", obj=obj
        )


class MeshObject:
    """Common record of every mesh object variant.

    ``object_id`` is -1 and ``mesh`` is None until a :class:`Mesh` stores the
    object. Parents are constituents (a surface's vertices), children are
    aggregates (a surface's bodies).
    """

    obj_type: Optional[MeshObjType] = None

    def __init__(self):
        self.object_id: int = -1
        self.mesh = None
        self.actors: List[Any] = []
        self.options: Dict[str, Any] = {}

    @property
    def is_stored(self) -> bool:
        return self.object_id >= 0 and self.mesh is not None

    def parents(self) -> List["MeshObject"]:
        return []

    def children(self) -> List["MeshObject"]:
        return []

    def add_parent(self, obj: "MeshObject") -> None:
        raise MeshStructureError(
            f"{type(self).__name__} does not accept parents", obj=self
        )

    def add_child(self, obj: "MeshObject") -> None:
        raise MeshStructureError(
            f"{type(self).__name__} does not accept children", obj=self
        )

    def remove_parent(self, obj: "MeshObject") -> bool:
        return False

    def remove_child(self, obj: "MeshObject") -> bool:
        return False

    def is_in(self, obj: "MeshObject") -> bool:
        """Whether this object is a parent (constituent) of ``obj``."""
        if obj is None:
            return False
        return any(p is self for p in obj.parents())

    def all_actors(self) -> List[Any]:
        """Actors of this object's type followed by its own actors."""
        obj_type = getattr(self, "type", None)
        type_actors = list(obj_type.actors) if obj_type is not None else []
        return type_actors + list(self.actors)

    def validate(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.object_id}
        if self.actors:
            data["actors"] = [actor.to_dict() for actor in self.actors]
        if self.options:
            data["options"] = dict(self.options)
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.object_id})"


class Vertex(MeshObject):
    obj_type = MeshObjType.VERTEX

    def __init__(self, position=None, particle: Optional[Particle] = None, mass: float = 1.0):
        super().__init__()
        if particle is None:
            if position is None:
                raise ValueError("Vertex requires a position or a particle.")
            particle = Particle(position=position, mass=mass)
        self.particle = particle
        self.surfaces: OrderedUniqueList["Surface"] = OrderedUniqueList()

    @property
    def position(self) -> np.ndarray:
        return self.particle.position

    @position.setter
    def position(self, pos) -> None:
        self.set_position(pos)

    def set_position(self, pos) -> None:
        self.particle.position = np.array(pos, dtype=float)

    @property
    def mass(self) -> float:
        return self.particle.mass

    def children(self) -> List["Surface"]:
        return list(self.surfaces)

    def add_child(self, obj: "Surface") -> None:
        _require_type(obj, MeshObjType.SURFACE, "Vertex child")
        self.surfaces.add(obj)

    def remove_child(self, obj: "Surface") -> bool:
        return self.surfaces.discard(obj)

    def bodies(self) -> List["Body"]:
        result: OrderedUniqueList["Body"] = OrderedUniqueList()
        for s in self.surfaces:
            result.update(s.bodies())
        return list(result)

    def shared_surfaces(self, other: "Vertex") -> List["Surface"]:
        """Surfaces bounded by both this vertex and ``other``."""
        return [s for s in self.surfaces if other.is_in(s)]

    def neighbor_vertices(self) -> List["Vertex"]:
        """Vertices cyclically adjacent to this one on any of its surfaces."""
        result: OrderedUniqueList["Vertex"] = OrderedUniqueList()
        for s in self.surfaces:
            prev_v, next_v = s.neighbor_vertices(self)
            result.add(prev_v)
            result.add(next_v)
        return list(result)

    def compute_distance(self, other: "Vertex") -> float:
        return self.particle.distance(other.particle)

    def validate(self) -> bool:
        if self.particle is None:
            return False
        return all(self.is_in(s) for s in self.surfaces)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["position"] = [float(x) for x in self.position]
        data["mass"] = float(self.mass)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Vertex":
        vertex = cls(position=data["position"], mass=float(data.get("mass", 1.0)))
        vertex.options.update(data.get("options", {}))
        return vertex


class Surface(MeshObject):
    """Polygon bounded by a cyclically ordered list of vertices.

    ``b1`` is the body the surface normal points away from and ``b2`` the body
    on the normal side; either may be None.
    """

    obj_type = MeshObjType.SURFACE

    def __init__(self, vertices: Optional[Iterable[Vertex]] = None, surface_type=None):
        super().__init__()
        self.vertices: List[Vertex] = []
        self.b1: Optional["Body"] = None
        self.b2: Optional["Body"] = None
        self.type = surface_type
        for v in vertices or []:
            self.add_parent(v)
            v.add_child(self)

    def __len__(self) -> int:
        return len(self.vertices)

    def __getitem__(self, idx: int) -> Vertex:
        return self.vertices[idx % len(self.vertices)]

    def __iter__(self):
        return iter(self.vertices)

    # Relations

    def parents(self) -> List[Vertex]:
        return list(self.vertices)

    def children(self) -> List["Body"]:
        return self.bodies()

    def bodies(self) -> List["Body"]:
        return [b for b in (self.b1, self.b2) if b is not None]

    def add_parent(self, obj: Vertex) -> None:
        _require_type(obj, MeshObjType.VERTEX, "Surface parent")
        if not obj.is_in(self):
            self.vertices.append(obj)

    def remove_parent(self, obj: Vertex) -> bool:
        for idx, v in enumerate(self.vertices):
            if v is obj:
                del self.vertices[idx]
                return True
        return False

    def add_child(self, obj: "Body") -> None:
        _require_type(obj, MeshObjType.BODY, "Surface child")
        if obj is self.b1 or obj is self.b2:
            return
        if self.b1 is not None and self.b2 is not None:
            raise MeshStructureError(
                "Surface already bounds two bodies", obj=self, mesh=self.mesh
            )
        if self._body_side(obj) == 1:
            if self.b1 is None:
                self.b1 = obj
            else:
                self.b2 = obj
        elif self.b2 is None:
            self.b2 = obj
        else:
            self.b1 = obj

    def remove_child(self, obj: "Body") -> bool:
        if obj is self.b1:
            self.b1 = None
            return True
        if obj is self.b2:
            self.b2 = None
            return True
        return False

    def swap_vertex(self, old: Vertex, new: Vertex) -> None:
        """Put ``new`` in the boundary slot held by ``old``."""
        self.vertices[self.index_of(old)] = new

    def index_of(self, vertex: Vertex) -> int:
        for idx, v in enumerate(self.vertices):
            if v is vertex:
                return idx
        raise MeshAdjacencyError(f"{vertex!r} does not bound {self!r}", obj=self)

    def neighbor_vertices(self, vertex: Vertex) -> Tuple[Vertex, Vertex]:
        """Return the (previous, next) boundary neighbours of ``vertex``."""
        idx = self.index_of(vertex)
        n = len(self.vertices)
        return self.vertices[idx - 1], self.vertices[(idx + 1) % n]

    def contiguous_edge_labels(self, other: "Surface") -> List[int]:
        """Label runs of boundary vertices shared with ``other``.

        Unshared vertices get 0; each contiguous run of shared vertices gets
        its own label starting from 1. A run that wraps past the end of the
        boundary keeps the label of the run at the start.
        """
        shared = [v.is_in(other) for v in self.vertices]
        labels = [0] * len(shared)
        label = 0
        for i, is_shared in enumerate(shared):
            if not is_shared:
                continue
            if i == 0 or not shared[i - 1]:
                label += 1
            labels[i] = label
        if label > 1 and shared[0] and shared[-1]:
            last = labels[-1]
            labels = [1 if lab == last else lab for lab in labels]
        return labels

    def shared_run(self, other: "Surface") -> List[Vertex]:
        """Vertices shared with ``other``, in boundary order from the run start."""
        n = len(self.vertices)
        shared = [v.is_in(other) for v in self.vertices]
        if not any(shared):
            return []
        start = 0
        if not all(shared):
            start = next(i for i in range(n) if shared[i] and not shared[i - 1])
        order = [(start + k) % n for k in range(n)]
        return [self.vertices[i] for i in order if shared[i]]

    # Geometry

    def positions(self) -> np.ndarray:
        if not self.vertices:
            return np.zeros((0, 3))
        return np.array([v.position for v in self.vertices], dtype=float)

    @property
    def centroid(self) -> np.ndarray:
        pos = self.positions()
        if len(pos) == 0:
            return np.zeros(3)
        return pos.mean(axis=0)

    def triangle_normals(self) -> np.ndarray:
        """Unnormalized normals of the fan of triangles about the centroid.

        Row ``i`` is ``(v_i - c) x (v_{i+1} - c)``.
        """
        pos = self.positions()
        rel = pos - self.centroid
        return _fast_cross(rel, np.roll(rel, -1, axis=0))

    def unit_triangle_normals(self) -> np.ndarray:
        return _unit_rows(self.triangle_normals())

    def triangle_normal(self, idx: int) -> np.ndarray:
        return self.triangle_normals()[idx % len(self.vertices)]

    @property
    def normal(self) -> np.ndarray:
        total = self.triangle_normals().sum(axis=0)
        norm = np.linalg.norm(total)
        if norm < 1e-12:
            return np.zeros(3)
        return total / norm

    @property
    def area(self) -> float:
        return 0.5 * float(np.linalg.norm(self.triangle_normals(), axis=1).sum())

    @property
    def perimeter(self) -> float:
        pos = self.positions()
        return float(np.linalg.norm(np.roll(pos, -1, axis=0) - pos, axis=1).sum())

    def volume_contribution(self) -> float:
        """Signed volume of the cone from the origin over this surface."""
        pos = self.positions()
        c = self.centroid
        tri_centroids = (pos + np.roll(pos, -1, axis=0) + c) / 3.0
        return float(np.einsum("ij,ij->i", tri_centroids, self.triangle_normals()).sum() / 6.0)

    def volume_sense(self, body: "Body") -> float:
        if body is self.b1:
            return 1.0
        if body is self.b2:
            return -1.0
        return 0.0

    def _body_side(self, body: "Body") -> int:
        offset = np.dot(body.centroid - self.centroid, self.normal)
        return 1 if offset <= 0.0 else 2

    def refresh_bodies(self) -> None:
        """Reassign ``b1``/``b2`` from the current geometry."""
        bodies = self.bodies()
        self.b1 = self.b2 = None
        if len(bodies) == 1:
            if self._body_side(bodies[0]) == 1:
                self.b1 = bodies[0]
            else:
                self.b2 = bodies[0]
        elif len(bodies) == 2:
            first, second = bodies
            if self._body_side(first) == 1:
                self.b1, self.b2 = first, second
            else:
                self.b1, self.b2 = second, first

    def validate(self) -> bool:
        n = len(self.vertices)
        if n < SURFACE_MIN_VERTICES:
            return False
        if len({id(v) for v in self.vertices}) != n:
            return False
        if self.b1 is not None and self.b1 is self.b2:
            return False
        return all(any(s is self for s in v.surfaces) for v in self.vertices)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["vertices"] = [v.object_id for v in self.vertices]
        data["type"] = self.type.name if self.type is not None else None
        return data

    @classmethod
    def from_dict(cls, data, vertices_by_id, surface_types=None) -> "Surface":
        surface_types = surface_types or {}
        surface = cls(
            [vertices_by_id[i] for i in data["vertices"]],
            surface_type=surface_types.get(data.get("type")),
        )
        surface.options.update(data.get("options", {}))
        return surface


class SurfaceType:
    """Constructor of surfaces sharing a set of actors."""

    def __init__(self, name: str = "Surface", actors: Optional[Iterable[Any]] = None):
        self.name = name
        self.actors: List[Any] = list(actors or [])

    def __call__(self, vertices: Iterable[Vertex]) -> Surface:
        return Surface(vertices, surface_type=self)

    def to_dict(self) -> Dict[str, Any]:
        return {"actors": [actor.to_dict() for actor in self.actors]}

    def __repr__(self) -> str:
        return f"SurfaceType(name={self.name!r})"


class Body(MeshObject):
    obj_type = MeshObjType.BODY

    def __init__(self, surfaces: Optional[Iterable[Surface]] = None, body_type=None):
        super().__init__()
        self.surfaces: OrderedUniqueList[Surface] = OrderedUniqueList(surfaces or [])
        self.structures: OrderedUniqueList["Structure"] = OrderedUniqueList()
        self.type = body_type
        # Sides are assigned against the centroid of the complete body.
        for s in self.surfaces:
            s.add_child(self)

    def parents(self) -> List[Surface]:
        return list(self.surfaces)

    def children(self) -> List["Structure"]:
        return list(self.structures)

    def add_parent(self, obj: Surface) -> None:
        _require_type(obj, MeshObjType.SURFACE, "Body parent")
        self.surfaces.add(obj)

    def remove_parent(self, obj: Surface) -> bool:
        return self.surfaces.discard(obj)

    def add_child(self, obj: "Structure") -> None:
        _require_type(obj, MeshObjType.STRUCTURE, "Body child")
        self.structures.add(obj)

    def remove_child(self, obj: "Structure") -> bool:
        return self.structures.discard(obj)

    def vertices(self) -> List[Vertex]:
        result: OrderedUniqueList[Vertex] = OrderedUniqueList()
        for s in self.surfaces:
            result.update(s.vertices)
        return list(result)

    @property
    def centroid(self) -> np.ndarray:
        verts = self.vertices()
        if not verts:
            return np.zeros(3)
        return np.mean([v.position for v in verts], axis=0)

    @property
    def area(self) -> float:
        return float(sum(s.area for s in self.surfaces))

    @property
    def volume(self) -> float:
        return float(
            sum(s.volume_sense(self) * s.volume_contribution() for s in self.surfaces)
        )

    def validate(self) -> bool:
        if len(self.surfaces) < BODY_MIN_SURFACES:
            return False
        return all(any(b is self for b in s.bodies()) for s in self.surfaces)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["surfaces"] = [s.object_id for s in self.surfaces]
        data["type"] = self.type.name if self.type is not None else None
        return data

    @classmethod
    def from_dict(cls, data, surfaces_by_id, body_types=None) -> "Body":
        body_types = body_types or {}
        body = cls(
            [surfaces_by_id[i] for i in data["surfaces"]],
            body_type=body_types.get(data.get("type")),
        )
        body.options.update(data.get("options", {}))
        return body


class BodyType:
    """Constructor of bodies sharing a set of actors."""

    def __init__(self, name: str = "Body", actors: Optional[Iterable[Any]] = None):
        self.name = name
        self.actors: List[Any] = list(actors or [])

    def __call__(self, surfaces: Iterable[Surface]) -> Body:
        return Body(surfaces, body_type=self)

    def to_dict(self) -> Dict[str, Any]:
        return {"actors": [actor.to_dict() for actor in self.actors]}

    def __repr__(self) -> str:
        return f"BodyType(name={self.name!r})"


class Structure(MeshObject):
    """Recursive grouping of bodies and other structures."""

    obj_type = MeshObjType.STRUCTURE

    def __init__(
        self,
        bodies: Optional[Iterable[Body]] = None,
        structures: Optional[Iterable["Structure"]] = None,
    ):
        super().__init__()
        self.bodies: OrderedUniqueList[Body] = OrderedUniqueList()
        self.parent_structures: OrderedUniqueList["Structure"] = OrderedUniqueList()
        self.child_structures: OrderedUniqueList["Structure"] = OrderedUniqueList()
        for obj in list(structures or []) + list(bodies or []):
            self.add_parent(obj)
            obj.add_child(self)

    def parents(self) -> List[MeshObject]:
        return list(self.parent_structures) + list(self.bodies)

    def children(self) -> List["Structure"]:
        return list(self.child_structures)

    def add_parent(self, obj: MeshObject) -> None:
        if obj is self:
            raise MeshStructureError("Structure cannot contain itself", obj=self)
        if getattr(obj, "obj_type", None) is MeshObjType.BODY:
            self.bodies.add(obj)
        elif getattr(obj, "obj_type", None) is MeshObjType.STRUCTURE:
            self.parent_structures.add(obj)
        else:
            raise MeshStructureError(
                f"Structure parent must be a body or structure, got {type(obj).__name__}",
                obj=obj,
            )

    def remove_parent(self, obj: MeshObject) -> bool:
        return self.bodies.discard(obj) or self.parent_structures.discard(obj)

    def add_child(self, obj: "Structure") -> None:
        _require_type(obj, MeshObjType.STRUCTURE, "Structure child")
        if obj is self:
            raise MeshStructureError("Structure cannot contain itself", obj=self)
        self.child_structures.add(obj)

    def remove_child(self, obj: "Structure") -> bool:
        return self.child_structures.discard(obj)

    def all_bodies(self) -> List[Body]:
        """Bodies of this structure and of every structure it contains."""
        result: OrderedUniqueList[Body] = OrderedUniqueList(self.bodies)
        seen = {id(self)}
        pending = list(self.parent_structures)
        while pending:
            st = pending.pop()
            if id(st) in seen:
                continue
            seen.add(id(st))
            result.update(st.bodies)
            pending.extend(st.parent_structures)
        return list(result)

    def vertices(self) -> List[Vertex]:
        result: OrderedUniqueList[Vertex] = OrderedUniqueList()
        for b in self.all_bodies():
            result.update(b.vertices())
        return list(result)

    def validate(self) -> bool:
        return all(p is not self for p in self.parents())

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["bodies"] = [b.object_id for b in self.bodies]
        data["structures"] = [s.object_id for s in self.parent_structures]
        return data


def order_around_axis(
    vertices: List[Vertex], center: np.ndarray, axis: np.ndarray
) -> List[Vertex]:
    """Sort ``vertices`` counterclockwise about ``axis`` through ``center``.

    Returns the input order when the axis or the reference direction is
    degenerate.
    """
    norm = np.linalg.norm(axis)
    if norm < 1e-12 or len(vertices) < 3:
        return list(vertices)
    axis = axis / norm
    ref = vertices[0].position - center
    ref = ref - np.dot(ref, axis) * axis
    ref_norm = np.linalg.norm(ref)
    if ref_norm < 1e-12:
        return list(vertices)
    ref = ref / ref_norm
    other = np.cross(axis, ref)
    angles = []
    for v in vertices:
        d = v.position - center
        angles.append(math.atan2(float(np.dot(d, other)), float(np.dot(d, ref))))
    order = sorted(range(len(vertices)), key=lambda i: angles[i])
    return [vertices[i] for i in order]
