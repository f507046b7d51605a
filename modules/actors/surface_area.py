"""Body surface-area constraint.

For a body of total area ``A`` and target ``A0``

    E = lam * (A - A0)^2

Each surface is triangulated about its centroid, so the force on a vertex
collects the area gradient of every triangle that moves with it, including
the centroid's share. Every (body, vertex) pair reports the full body
energy ``E``.
"""

from typing import Dict

import numpy as np

from geometry.entities import _fast_cross
from modules.actors.base import MeshActor


def area_gradient_terms(surface, vertex) -> np.ndarray:
    """Twice the gradient of ``surface.area`` with respect to ``vertex``."""
    pos = surface.positions()
    n = len(pos)
    idxc = surface.index_of(vertex)
    idxp = (idxc - 1) % n
    idxn = (idxc + 1) % n
    units = surface.unit_triangle_normals()
    centroid = surface.centroid

    edges = np.roll(pos, -1, axis=0) - pos
    total = _fast_cross(units, edges).sum(axis=0) / n
    total += np.cross(units[idxc], centroid - pos[idxn])
    total -= np.cross(units[idxp], centroid - pos[idxp])
    return total


class SurfaceAreaConstraint(MeshActor):
    type_name = "surface_area"

    def __init__(self, lam: float, constr: float):
        self.lam = float(lam)
        self.constr = float(constr)

    def parameters(self) -> Dict[str, float]:
        return {"lam": self.lam, "constr": self.constr}

    def energy(self, source, target) -> float:
        darea = source.area - self.constr
        return self.lam * darea * darea

    def force(self, source, target) -> np.ndarray:
        body = source
        ftotal = np.zeros(3)
        for s in target.surfaces:
            if not s.is_in(body):
                continue
            ftotal += area_gradient_terms(s, target)
        return ftotal * (self.lam * (self.constr - body.area))


ACTOR = SurfaceAreaConstraint
