# global_parameters.py


class GlobalParameters:
    def __init__(self, initial_params=None):
        """
        all parameters are defined with underscore, _, instead of spaces
        """
        # Use a dictionary to store all parameters
        self._params = {
            # Integration timestep of the external physics backend. Actors
            # that scale stiffness by mass / timestep read it from here.
            "dt": 0.01,
            # Number of slots added to an inventory when no id is available.
            "inventory_increment": 100,
            # Length coefficient assumed for surface merges when the caller
            # provides fewer coefficients than exclusive vertices.
            "default_length_cf": 0.5,
            # Mass of particles created by the default particle type.
            "vertex_mass": 1.0,
            "find_vertex_tolerance": 1e-4,
        }
        # Load initial parameters if provided
        if initial_params:
            self.update(initial_params)

    def __getattr__(self, name):
        """Attribute access for known parameter keys.

        Callers use both ``global_params.dt`` and ``global_params.get("dt")``;
        the canonical storage is the internal ``_params`` dict.
        """
        params = self.__dict__.get("_params")
        if params is not None and name in params:
            return params[name]
        raise AttributeError(
            f"{type(self).__name__!s} object has no attribute {name!r}"
        )

    def __setattr__(self, name, value):
        """Attribute assignment for known parameter keys."""
        if name == "_params":
            object.__setattr__(self, name, value)
            return
        params = self.__dict__.get("_params")
        if params is not None and name in params:
            params[name] = value
            return
        object.__setattr__(self, name, value)

    def get(self, key, default=None):
        """Retrieve a parameter value, or return a default if not found."""
        return self._params.get(key, default)

    def set(self, key, value):
        """Set or update a parameter."""
        self._params[key] = value

    def update(self, params):
        """Update multiple parameters at once."""
        self._params.update(params)

    def __contains__(self, key):
        return key in self._params

    def __repr__(self):
        return f"GlobalParameters({self._params})"

    def to_dict(self):
        """Convert the parameters to a dictionary for serialization."""
        return dict(self._params)
