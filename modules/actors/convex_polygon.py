"""Convexity-restoring actor for polygonal surfaces.

For a vertex ``c`` of a surface with neighbours ``a`` and ``b``, let ``m`` be
the centroid of the remaining vertices. When ``c`` and ``m`` lie on the same
side of the line through ``a`` and ``b`` the polygon is reflex at ``c`` and the
vertex is pushed onto that line:

    F = lam * mass / dt * r
    E = lam * mass / dt * |r|^2 / 2

with ``r`` the displacement from ``c`` to its projection on the line. Convex
vertices and triangles contribute nothing.
"""

from typing import Dict, Optional

import numpy as np

from core.parameters.global_parameters import GlobalParameters
from modules.actors.base import MeshActor


def _timestep(vertex) -> float:
    mesh = vertex.mesh
    dt = mesh.global_parameters.get("dt") if mesh is not None else None
    if not dt:
        dt = GlobalParameters().get("dt")
    return float(dt)


def reflex_displacement(surface, vertex) -> Optional[np.ndarray]:
    """Displacement restoring convexity at ``vertex``, or None if convex."""
    n = len(surface.vertices)
    if n <= 3:
        return None

    va, vb = surface.neighbor_vertices(vertex)
    posa = va.position
    posb = vb.position
    posc = vertex.position
    centroid_loo = (surface.centroid * n - posc) / (n - 1)

    line = posb - posa
    length = np.linalg.norm(line)
    if length < 1e-12:
        return None
    line_dir = line / length

    rel_c2ab = posa + np.dot(posc - posa, line_dir) * line_dir - posc
    rel_cent2ab = posa + np.dot(centroid_loo - posa, line_dir) * line_dir - centroid_loo
    if np.dot(rel_c2ab, rel_cent2ab) > 0.0:
        return rel_c2ab
    return None


class ConvexPolygonConstraint(MeshActor):
    type_name = "convex_polygon"

    def __init__(self, lam: float):
        self.lam = float(lam)

    def parameters(self) -> Dict[str, float]:
        return {"lam": self.lam}

    def _stiffness(self, vertex) -> float:
        return self.lam * vertex.mass / _timestep(vertex)

    def energy(self, source, target) -> float:
        disp = reflex_displacement(source, target)
        if disp is None:
            return 0.0
        return 0.5 * self._stiffness(target) * float(np.dot(disp, disp))

    def force(self, source, target) -> np.ndarray:
        disp = reflex_displacement(source, target)
        if disp is None:
            return np.zeros(3)
        return disp * self._stiffness(target)


ACTOR = ConvexPolygonConstraint
