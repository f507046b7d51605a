"""Topological editing of tissue meshes.

Every function validates its preconditions before touching the mesh, so a
raised :class:`~core.exceptions.MeshEngineError` leaves the mesh unchanged.
The :class:`~geometry.mesh.Mesh` methods wrap these and turn failures into
their uniform return values.
"""

import itertools
import logging
from typing import TYPE_CHECKING, List, Sequence, Tuple

import numpy as np

from core.exceptions import (
    MeshAdjacencyError,
    MeshArityError,
    MeshDegeneracyError,
    MeshStructureError,
)
from core.ordered_unique_list import OrderedUniqueList
from geometry.entities import (
    SURFACE_MIN_VERTICES,
    Body,
    BodyType,
    Surface,
    SurfaceType,
    Vertex,
    order_around_axis,
)
from runtime.solver import MeshLogEventType

if TYPE_CHECKING:
    from geometry.mesh import Mesh

logger = logging.getLogger("tissue_mesh")


def _describe(*objs) -> Tuple[List[int], list]:
    return [o.object_id for o in objs], [o.obj_type for o in objs]


def _notify(mesh: "Mesh", name: str, described: Tuple[List[int], list]) -> None:
    ids, types = described
    logger.debug("%s: ids=%s", name, ids)
    if mesh.solver is None:
        return
    mesh.solver.position_changed()
    mesh.solver.log(mesh, MeshLogEventType.CREATE, ids, types, name)


def _require_stored(mesh: "Mesh", *objs) -> None:
    for obj in objs:
        if obj is None or obj.mesh is not mesh or obj.object_id < 0:
            raise MeshStructureError(f"{obj!r} is not stored in this mesh", obj=obj, mesh=mesh)


def _require_unstored(mesh: "Mesh", obj) -> None:
    if obj.mesh is not None or obj.object_id >= 0:
        raise MeshStructureError(f"{obj!r} is already stored", obj=obj, mesh=mesh)


def _redirect_vertex(old: Vertex, new: Vertex) -> List[Surface]:
    """Move every surface of ``old`` onto ``new``.

    Surfaces already bounded by ``new`` simply drop ``old``.
    """
    touched = list(old.surfaces)
    for s in touched:
        old.remove_child(s)
        if new.is_in(s):
            s.remove_parent(old)
        else:
            s.swap_vertex(old, new)
            new.add_child(s)
    return touched


def _check_redirect(old: Vertex, new: Vertex, mesh: "Mesh") -> None:
    for s in old.surfaces:
        if new.is_in(s) and len(s.vertices) - 1 < SURFACE_MIN_VERTICES:
            raise MeshDegeneracyError(
                f"Merging would leave {s!r} with fewer than {SURFACE_MIN_VERTICES} vertices",
                obj=s,
                mesh=mesh,
            )


def _discard_surface(mesh: "Mesh", s: Surface) -> None:
    """Remove a collapsed surface without cascading into its vertices or bodies."""
    for v in s.vertices:
        v.remove_child(s)
    for b in s.bodies():
        b.remove_parent(s)
        s.remove_child(b)
    mesh._remove(s)


def _distance_cf(mesh: "Mesh", distance_cf) -> float:
    if distance_cf is None:
        raise MeshArityError("Sewing requires a distance coefficient", mesh=mesh)
    return float(distance_cf)


def _edge(base: Surface, vertex_idx_start: int) -> Tuple[Vertex, Vertex]:
    n = len(base.vertices)
    if vertex_idx_start < 0 or vertex_idx_start >= n:
        raise MeshArityError(
            f"Edge index {vertex_idx_start} is out of range for {n} vertices", obj=base
        )
    return base.vertices[vertex_idx_start], base.vertices[(vertex_idx_start + 1) % n]


def _surface_type(base: Surface) -> SurfaceType:
    return base.type if base.type is not None else SurfaceType()


def outward_normal(surface: Surface, body=None) -> np.ndarray:
    """Unit normal pointing away from the body bounded by ``surface``.

    With ``body`` given, the normal pointing out of that body. Otherwise the
    surface must bound at most one body.
    """
    if body is not None:
        return surface.normal * surface.volume_sense(body)
    if surface.b1 is not None and surface.b2 is not None:
        raise MeshAdjacencyError("Surface is twice-connected", obj=surface, mesh=surface.mesh)
    if surface.b2 is not None:
        return -surface.normal
    return surface.normal


def insert_vertex(mesh: "Mesh", to_insert: Vertex, v1: Vertex, v2: Vertex) -> None:
    """Insert ``to_insert`` between ``v1`` and ``v2`` on every surface sharing that edge."""
    _require_unstored(mesh, to_insert)
    _require_stored(mesh, v1, v2)

    for s in list(v1.surfaces):
        n = len(s.vertices)
        for i, v in enumerate(s.vertices):
            v_next = s.vertices[(i + 1) % n]
            if (v is v1 and v_next is v2) or (v is v2 and v_next is v1):
                s.vertices.insert(i + 1, to_insert)
                to_insert.add_child(s)
                break

    if not to_insert.surfaces:
        logger.debug("No surface has an edge between %r and %r", v1, v2)

    mesh._add(to_insert)
    _notify(mesh, "insert", _describe(to_insert, v1, v2))


def replace_surface_with_vertex(mesh: "Mesh", to_insert: Vertex, to_replace: Surface) -> None:
    """Collapse ``to_replace`` into the single vertex ``to_insert``."""
    _require_unstored(mesh, to_insert)
    _require_stored(mesh, to_replace)

    connected: OrderedUniqueList[Surface] = OrderedUniqueList()
    for v in to_replace.vertices:
        for s in v.surfaces:
            if s is not to_replace:
                connected.add(s)

    plans = []
    for s in connected:
        labels = s.contiguous_edge_labels(to_replace)
        if max(labels) > 1:
            raise MeshAdjacencyError(
                "Replacement cannot occur over non-contiguous contacts", obj=s, mesh=mesh
            )
        run = s.shared_run(to_replace)
        if len(s.vertices) - len(run) + 1 < SURFACE_MIN_VERTICES:
            raise MeshDegeneracyError(
                f"Replacement would leave {s!r} with fewer than {SURFACE_MIN_VERTICES} vertices",
                obj=s,
                mesh=mesh,
            )
        plans.append((s, run))

    described = _describe(to_replace)

    for s, run in plans:
        s.vertices.insert(s.index_of(run[0]), to_insert)
        to_insert.add_child(s)
        for v in run:
            s.remove_parent(v)
            v.remove_child(s)

    for b in to_replace.bodies():
        b.remove_parent(to_replace)
        to_replace.remove_child(b)

    orphaned = []
    for v in to_replace.vertices:
        v.remove_child(to_replace)
        if not v.surfaces:
            orphaned.append(v)

    mesh._remove(to_replace)
    for v in orphaned:
        mesh._remove(v)
    mesh._add(to_insert)

    ids, types = described
    ins_ids, ins_types = _describe(to_insert)
    _notify(mesh, "replace", (ins_ids + ids, ins_types + types))


def replace_vertex_with_surface(
    mesh: "Mesh",
    surface_type: SurfaceType,
    to_replace: Vertex,
    length_cfs: Sequence[float],
) -> Surface:
    """Expand ``to_replace`` into a new surface.

    One new vertex is placed on each edge leaving ``to_replace``, at the
    fraction of the edge length given by the matching coefficient.
    """
    _require_stored(mesh, to_replace)
    neighbors = to_replace.neighbor_vertices()
    cfs = [float(cf) for cf in length_cfs]
    if len(cfs) != len(neighbors):
        raise MeshArityError(
            f"Length coefficients are inconsistent with connectivity "
            f"({len(cfs)} given, {len(neighbors)} neighbors)",
            obj=to_replace,
            mesh=mesh,
        )
    for cf in cfs:
        if cf <= 0.0 or cf >= 1.0:
            raise MeshArityError(
                f"Length coefficients must be in (0, 1), got {cf}", obj=to_replace, mesh=mesh
            )
    if len(neighbors) < SURFACE_MIN_VERTICES:
        raise MeshDegeneracyError(
            f"{to_replace!r} has too few neighbors to form a surface", obj=to_replace, mesh=mesh
        )

    pos0 = to_replace.position.copy()
    axis = np.sum([s.normal for s in to_replace.surfaces], axis=0)
    described = _describe(to_replace)

    inserted = []
    for v, cf in zip(neighbors, cfs):
        new_vertex = mesh.new_vertex(pos0 + (v.position - pos0) * cf)
        insert_vertex(mesh, new_vertex, to_replace, v)
        inserted.append(new_vertex)

    for s in list(to_replace.surfaces):
        s.remove_parent(to_replace)
        to_replace.remove_child(s)

    center = np.mean([v.position for v in inserted], axis=0)
    if np.linalg.norm(axis) < 1e-12:
        axis = pos0 - center
    new_surface = surface_type(order_around_axis(inserted, center, axis))

    mesh._remove(to_replace)
    mesh._add(new_surface)

    ids, types = described
    new_ids, new_types = _describe(new_surface)
    _notify(mesh, "replace", (new_ids + ids, new_types + types))
    return new_surface


def merge_vertices(mesh: "Mesh", keep: Vertex, remove: Vertex, length_cf: float = 0.5) -> None:
    """Collapse the edge between ``keep`` and ``remove``.

    ``keep`` survives at ``keep + (remove - keep) * length_cf``.
    """
    _require_stored(mesh, keep, remove)
    if keep is remove:
        raise MeshAdjacencyError("Cannot merge a vertex with itself", obj=keep, mesh=mesh)
    shared = keep.shared_surfaces(remove)
    if not shared:
        raise MeshAdjacencyError("Vertices must be adjacent on shared surfaces", obj=keep, mesh=mesh)
    for s in shared:
        prev_v, next_v = s.neighbor_vertices(keep)
        if remove is not prev_v and remove is not next_v:
            raise MeshAdjacencyError(
                "Vertices with shared surfaces must be adjacent", obj=s, mesh=mesh
            )
    _check_redirect(remove, keep, mesh)

    new_pos = keep.position + (remove.position - keep.position) * float(length_cf)
    described = _describe(keep, remove)

    _redirect_vertex(remove, keep)
    mesh._remove(remove)
    keep.set_position(new_pos)
    _notify(mesh, "merge", described)


def merge_surfaces(
    mesh: "Mesh", keep: Surface, remove: Surface, length_cfs: Sequence[float] = ()
) -> None:
    """Fold ``remove`` onto ``keep``.

    Each vertex of ``keep`` not on ``remove`` is paired with its nearest
    unpaired vertex of ``remove`` not on ``keep``; the pair collapses onto the
    kept vertex, which moves by its length coefficient toward its partner.
    """
    _require_stored(mesh, keep, remove)
    if keep is remove:
        raise MeshAdjacencyError("Cannot merge a surface with itself", obj=keep, mesh=mesh)
    if len(keep.vertices) != len(remove.vertices):
        raise MeshArityError(
            "Surfaces must have the same number of vertices to merge", obj=keep, mesh=mesh
        )

    keep_exclusive = [v for v in keep.vertices if not v.is_in(remove)]
    candidates = [v for v in remove.vertices if not v.is_in(keep)]
    if len(keep_exclusive) != len(candidates):
        raise MeshAdjacencyError("Could not pair surface vertices", obj=keep, mesh=mesh)

    cfs = [float(cf) for cf in length_cfs]
    if len(cfs) < len(keep_exclusive):
        default_cf = float(mesh.global_parameters.get("default_length_cf", 0.5))
        logger.debug(
            "Insufficient length coefficients for surface merge; assuming %s", default_cf
        )
        cfs.extend([default_cf] * (len(keep_exclusive) - len(cfs)))

    matched: List[Vertex] = []
    for kv in keep_exclusive:
        best = None
        best_dist = np.inf
        for rv in candidates:
            if any(rv is m for m in matched):
                continue
            dist = kv.compute_distance(rv)
            if dist < best_dist:
                best, best_dist = rv, dist
        matched.append(best)

    bodies: OrderedUniqueList[Body] = OrderedUniqueList(keep.bodies())
    bodies.update(remove.bodies())
    if len(bodies) > 2:
        raise MeshStructureError(
            "Merged surface would bound more than two bodies", obj=keep, mesh=mesh
        )

    new_positions = [
        kv.position + (rv.position - kv.position) * cf
        for kv, rv, cf in zip(keep_exclusive, matched, cfs)
    ]
    described = _describe(keep, remove)

    # Detach the removed surface before redirecting so it is not rewritten.
    for v in remove.vertices:
        v.remove_child(remove)
    moved_bodies = remove.bodies()
    for b in moved_bodies:
        b.remove_parent(remove)
        remove.remove_child(b)

    collapsed: OrderedUniqueList[Surface] = OrderedUniqueList()
    for kv, rv in zip(keep_exclusive, matched):
        for s in _redirect_vertex(rv, kv):
            if len(s.vertices) < SURFACE_MIN_VERTICES:
                collapsed.add(s)

    for kv, pos in zip(keep_exclusive, new_positions):
        kv.set_position(pos)

    for b in moved_bodies:
        if not keep.is_in(b):
            b.add_parent(keep)
            keep.add_child(b)

    for s in collapsed:
        _discard_surface(mesh, s)

    mesh._remove(remove)
    for rv in matched:
        mesh._remove(rv)
    _notify(mesh, "merge", described)


def extend_surface(mesh: "Mesh", base: Surface, vertex_idx_start: int, pos) -> Surface:
    """Create a triangle on an edge of ``base`` with a new vertex at ``pos``."""
    _require_stored(mesh, base)
    v0, v1 = _edge(base, vertex_idx_start)
    apex = mesh.new_vertex(pos)
    new_surface = _surface_type(base)([v0, v1, apex])
    mesh._add(new_surface)
    ids, types = _describe(new_surface, base)
    _notify(mesh, "extend", (ids, types))
    return new_surface


def extrude_surface(mesh: "Mesh", base: Surface, vertex_idx_start: int, normal_len: float) -> Surface:
    """Create a quadrilateral by sweeping an edge of ``base`` along its normal."""
    _require_stored(mesh, base)
    v0, v1 = _edge(base, vertex_idx_start)
    normal = base.normal
    if not normal.any():
        raise MeshDegeneracyError(f"{base!r} has no defined normal", obj=base, mesh=mesh)
    disp = normal * float(normal_len)
    v2 = mesh.new_vertex(v1.position + disp)
    v3 = mesh.new_vertex(v0.position + disp)
    new_surface = _surface_type(base)([v0, v1, v2, v3])
    mesh._add(new_surface)
    _notify(mesh, "extrude", _describe(new_surface, base))
    return new_surface


def extend_body(mesh: "Mesh", base: Surface, body_type: BodyType, pos) -> Body:
    """Create a pyramid body over ``base`` with its apex at ``pos``."""
    _require_stored(mesh, base)
    if len(base.bodies()) >= 2:
        raise MeshAdjacencyError("Surface is twice-connected", obj=base, mesh=mesh)
    apex = mesh.new_vertex(pos)
    stype = _surface_type(base)
    n = len(base.vertices)
    laterals = [
        stype([base.vertices[i], base.vertices[(i + 1) % n], apex]) for i in range(n)
    ]
    body = body_type([base] + laterals)
    mesh._add(body)
    _notify(mesh, "extend", _describe(body, base))
    return body


def extrude_body(mesh: "Mesh", base: Surface, body_type: BodyType, normal_len: float) -> Body:
    """Create a prism body by sweeping ``base`` along its outward normal."""
    _require_stored(mesh, base)
    normal = outward_normal(base)
    if not normal.any():
        raise MeshDegeneracyError(f"{base!r} has no defined normal", obj=base, mesh=mesh)
    disp = normal * float(normal_len)
    stype = _surface_type(base)
    n = len(base.vertices)
    swept = [mesh.new_vertex(v.position + disp) for v in base.vertices]
    laterals = []
    for i in range(n):
        j = (i + 1) % n
        laterals.append(stype([base.vertices[i], base.vertices[j], swept[j], swept[i]]))
    cap = stype(swept)
    body = body_type([base] + laterals + [cap])
    mesh._add(body)
    _notify(mesh, "extrude", _describe(body, base))
    return body


def sew_surfaces(mesh: "Mesh", s1: Surface, s2: Surface, distance_cf: float) -> None:
    """Fuse near-coincident vertices of ``s2`` onto ``s1``.

    A vertex of ``s2`` is fused onto a vertex of ``s1`` when it is the
    nearest candidate and closer than ``distance_cf`` times that vertex's
    distance from the centroid of ``s1``.
    Surfaces left with fewer than three vertices are removed.
    """
    _require_stored(mesh, s1, s2)
    distance_cf = _distance_cf(mesh, distance_cf)
    if s1 is s2:
        return

    centroid = s1.centroid
    matches: List[Tuple[Vertex, Vertex]] = []
    used: List[Vertex] = []
    for vi in s1.vertices:
        if vi.is_in(s2):
            continue
        best = None
        best_dist = float(distance_cf) * float(np.linalg.norm(vi.position - centroid))
        for vj in s2.vertices:
            if vj.is_in(s1) or any(vj is u for u in used):
                continue
            dist = vi.compute_distance(vj)
            if dist < best_dist:
                best, best_dist = vj, dist
        if best is not None:
            matches.append((vi, best))
            used.append(best)

    if not matches:
        return

    described = _describe(s1, s2)
    collapsed: OrderedUniqueList[Surface] = OrderedUniqueList()
    for vi, vj in matches:
        for s in _redirect_vertex(vj, vi):
            if len(s.vertices) < SURFACE_MIN_VERTICES:
                collapsed.add(s)
        mesh._remove(vj)
    for s in collapsed:
        _discard_surface(mesh, s)
    _notify(mesh, "sew", described)


def sew_all(mesh: "Mesh", surfaces: Sequence[Surface], distance_cf: float) -> None:
    """Sew every ordered pair of ``surfaces``, skipping any removed along the way."""
    surfaces = list(surfaces)
    _require_stored(mesh, *surfaces)
    distance_cf = _distance_cf(mesh, distance_cf)
    for s1, s2 in itertools.permutations(surfaces, 2):
        if s1.mesh is not mesh or s2.mesh is not mesh:
            continue
        sew_surfaces(mesh, s1, s2, distance_cf)
