"""In-memory point-mass particles backing mesh vertices.

The physics backend that integrates particle motion lives outside this
package. Vertices only need a handle that reports position and mass and can
answer relative-position queries, plus a factory that creates a new particle at
a given position whenever an edit creates a vertex.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field

import numpy as np

_particle_ids = itertools.count()


@dataclass(eq=False)
class Particle:
    position: np.ndarray
    mass: float = 1.0
    id: int = field(default_factory=lambda: next(_particle_ids))

    def __post_init__(self):
        self.position = np.array(self.position, dtype=float)

    def relative_position(self, pos) -> np.ndarray:
        """Displacement of this particle from ``pos``."""
        return self.position - np.asarray(pos, dtype=float)

    def distance(self, other: "Particle") -> float:
        return float(np.linalg.norm(self.position - other.position))


class ParticleType:
    """Factory creating particles of a fixed mass."""

    def __init__(self, mass: float = 1.0):
        self.mass = float(mass)

    def __call__(self, position) -> Particle:
        return Particle(position=position, mass=self.mass)

    def __repr__(self) -> str:
        return f"ParticleType(mass={self.mass!r})"
