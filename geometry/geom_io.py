# geom_io.py
import json
import logging

import yaml

from core.parameters.global_parameters import GlobalParameters
from geometry.entities import Body, BodyType, Structure, Surface, SurfaceType, Vertex
from geometry.mesh import Mesh
from runtime.actor_manager import ActorModuleManager

logger = logging.getLogger("tissue_mesh")


def load_data(filename):
    """Load a mesh description from a JSON or YAML file.

    Expected format:
    {
        "global_parameters": {"dt": 0.01, ...},
        "surface_types": {"name": {"actors": [{"type": "convex_polygon", "lam": 1.0}]}},
        "body_types": {"name": {"actors": [...]}},
        "vertices": [{"id": 0, "position": [x, y, z], "mass": 1.0}, ...],
        "surfaces": [{"id": 0, "vertices": [0, 1, 2], "type": "name"}, ...],
        "bodies": [{"id": 0, "surfaces": [0, 1, 2, 3], "type": "name"}, ...],
        "structures": [{"id": 0, "bodies": [0], "structures": []}, ...]
    }"""
    filename_str = str(filename)
    with open(filename_str, "r") as f:
        if filename_str.endswith((".yaml", ".yml")):
            data = yaml.safe_load(f)
        elif filename_str.endswith(".json"):
            data = json.load(f)
        else:
            logger.error(f"Unsupported file format for: {filename_str}")
            raise ValueError(f"Unsupported file format for: {filename_str}")

    return data


def _build_types(type_cls, entries, manager):
    types = {}
    for name, entry in (entries or {}).items():
        entry = entry or {}
        actors = [manager.actor_from_dict(a) for a in entry.get("actors", [])]
        types[name] = type_cls(name, actors)
    return types


def _add_actors(obj, entry, manager):
    for actor_data in entry.get("actors", []):
        obj.actors.append(manager.actor_from_dict(actor_data))


def parse_mesh(data: dict, solver=None) -> Mesh:
    """Rebuild a :class:`Mesh` from a description produced by :func:`mesh_to_dict`."""
    params = GlobalParameters(data.get("global_parameters", {}))
    mesh = Mesh(solver=solver, global_parameters=params)
    manager = ActorModuleManager()

    surface_types = _build_types(SurfaceType, data.get("surface_types"), manager)
    body_types = _build_types(BodyType, data.get("body_types"), manager)

    def _entries(key):
        return sorted(data.get(key, []), key=lambda e: int(e["id"]))

    try:
        vertices = {}
        for entry in _entries("vertices"):
            v = Vertex.from_dict(entry)
            _add_actors(v, entry, manager)
            vertices[int(entry["id"])] = v

        surfaces = {}
        for entry in _entries("surfaces"):
            s = Surface.from_dict(entry, vertices, surface_types)
            _add_actors(s, entry, manager)
            surfaces[int(entry["id"])] = s

        bodies = {}
        for entry in _entries("bodies"):
            b = Body.from_dict(entry, surfaces, body_types)
            _add_actors(b, entry, manager)
            bodies[int(entry["id"])] = b

        structures = {}
        structure_entries = _entries("structures")
        for entry in structure_entries:
            st = Structure(bodies=[bodies[i] for i in entry.get("bodies", [])])
            st.options.update(entry.get("options", {}))
            structures[int(entry["id"])] = st
        for entry in structure_entries:
            st = structures[int(entry["id"])]
            for parent_id in entry.get("structures", []):
                parent = structures[parent_id]
                st.add_parent(parent)
                parent.add_child(st)
    except KeyError as exc:
        raise ValueError(f"Mesh description references unknown id {exc}") from exc

    for group in (vertices, surfaces, bodies, structures):
        for obj in group.values():
            if obj.mesh is None and not mesh.add(obj):
                raise ValueError(f"Could not add {obj!r} to mesh")

    logger.debug("Parsed %r", mesh)
    return mesh


def mesh_to_dict(mesh: Mesh) -> dict:
    """Describe ``mesh`` with ids compacted to 0..N-1 per variant."""
    vertex_ids = {id(v): i for i, v in enumerate(mesh.vertices)}
    surface_ids = {id(s): i for i, s in enumerate(mesh.surfaces)}
    body_ids = {id(b): i for i, b in enumerate(mesh.bodies)}
    structure_ids = {id(st): i for i, st in enumerate(mesh.structures)}

    surface_types = {}
    body_types = {}

    def _entry(obj, new_id):
        data = obj.to_dict()
        data["id"] = new_id
        return data

    vertices = [_entry(v, vertex_ids[id(v)]) for v in mesh.vertices]

    surfaces = []
    for s in mesh.surfaces:
        entry = _entry(s, surface_ids[id(s)])
        entry["vertices"] = [vertex_ids[id(v)] for v in s.vertices]
        if s.type is not None:
            surface_types.setdefault(s.type.name, s.type.to_dict())
        surfaces.append(entry)

    bodies = []
    for b in mesh.bodies:
        entry = _entry(b, body_ids[id(b)])
        entry["surfaces"] = [surface_ids[id(s)] for s in b.surfaces if id(s) in surface_ids]
        if b.type is not None:
            body_types.setdefault(b.type.name, b.type.to_dict())
        bodies.append(entry)

    structures = []
    for st in mesh.structures:
        entry = _entry(st, structure_ids[id(st)])
        entry["bodies"] = [body_ids[id(b)] for b in st.bodies if id(b) in body_ids]
        entry["structures"] = [
            structure_ids[id(p)] for p in st.parent_structures if id(p) in structure_ids
        ]
        structures.append(entry)

    return {
        "global_parameters": mesh.global_parameters.to_dict(),
        "surface_types": surface_types,
        "body_types": body_types,
        "vertices": vertices,
        "surfaces": surfaces,
        "bodies": bodies,
        "structures": structures,
    }


def save_mesh(mesh: Mesh, path: str = "outputs/temp_output_file.json", *, compact: bool = False):
    """Write ``mesh`` as JSON, or YAML when ``path`` ends in .yaml/.yml."""
    data = mesh_to_dict(mesh)
    path_str = str(path)
    with open(path_str, "w") as f:
        if path_str.endswith((".yaml", ".yml")):
            yaml.safe_dump(data, f, sort_keys=False)
        elif compact:
            json.dump(data, f, separators=(",", ":"), ensure_ascii=False)
        else:
            json.dump(data, f, indent=4, ensure_ascii=False)
    logger.info("Saved mesh to %s", path_str)
