# modules/actors/base.py
from abc import ABC, abstractmethod
from typing import Any, Dict

import numpy as np


class MeshActor(ABC):
    """Energy/force contribution attached to a surface or body.

    The solver calls :meth:`energy` and :meth:`force` once per
    ``(owner, vertex)`` pair, where ``owner`` is the surface or body the actor
    is attached to and ``vertex`` one of its vertices.
    """

    #: Module name under ``modules.actors`` used to rebuild the actor.
    type_name: str = ""

    @abstractmethod
    def energy(self, source, target) -> float:
        ...

    @abstractmethod
    def force(self, source, target) -> np.ndarray:
        ...

    @abstractmethod
    def parameters(self) -> Dict[str, float]:
        ...

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type_name}
        data.update(self.parameters())
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MeshActor":
        params = {k: float(v) for k, v in data.items() if k != "type"}
        return cls(**params)

    def __repr__(self):
        params = ", ".join(f"{k}={v!r}" for k, v in self.parameters().items())
        return f"{type(self).__name__}({params})"
