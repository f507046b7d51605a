# runtime/actor_manager.py

import importlib
import logging

logger = logging.getLogger("tissue_mesh")


class ActorModuleManager:
    """Resolve actor modules under ``modules.actors`` by name.

    Each module exposes its actor class as ``ACTOR``; persisted actors are
    rebuilt from ``{"type": <module name>, **parameters}`` dictionaries.
    """

    def __init__(self):
        self.modules = {}

    def get_module(self, mod):
        """
        Retrieve an actor module by name, importing it on first use.
        """
        if mod in self.modules:
            return self.modules[mod]
        try:
            module = importlib.import_module(f"modules.actors.{mod}")
        except ImportError as exc:
            raise KeyError(f"Actor module '{mod}' not found.") from exc
        self.modules[mod] = module
        logger.debug("Loaded actor module (lazy): %s", mod)
        return module

    def actor_class(self, mod):
        module = self.get_module(mod)
        actor_cls = getattr(module, "ACTOR", None)
        if actor_cls is None:
            raise KeyError(f"Actor module '{mod}' does not define ACTOR.")
        return actor_cls

    def actor_from_dict(self, data):
        name = data.get("type")
        if not name:
            raise ValueError(f"Actor entry is missing its 'type': {data!r}")
        return self.actor_class(name).from_dict(data)
