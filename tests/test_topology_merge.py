import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from geometry.entities import SurfaceType, Vertex
from geometry.mesh import Mesh
from sample_meshes import build_grid, build_polygon


def _grid_mesh(nx, ny):
    mesh = Mesh()
    surfaces, verts = build_grid(nx, ny)
    for s in surfaces.values():
        mesh.add(s)
    return mesh, surfaces, verts


def test_merge_vertices_collapses_edge_to_midpoint():
    mesh, surfaces, verts = _grid_mesh(2, 1)
    keep, remove = verts[(1, 0)], verts[(1, 1)]

    assert mesh.merge(keep, remove, 0.5) is True

    assert remove.mesh is None
    assert np.allclose(keep.position, [1.0, 0.5, 0.0])
    assert mesh.num_vertices == 5
    assert len(surfaces[(0, 0)].vertices) == 3
    assert len(surfaces[(1, 0)].vertices) == 3
    assert mesh.validate()


def test_merge_vertices_redirects_unshared_surfaces():
    mesh, surfaces, verts = _grid_mesh(2, 2)
    keep, remove = verts[(1, 0)], verts[(1, 1)]

    assert mesh.merge_vertices(keep, remove, 0.0) is True

    assert np.allclose(keep.position, [1.0, 0.0, 0.0])
    assert mesh.num_vertices == 8
    assert len(keep.surfaces) == 4
    for key in [(0, 1), (1, 1)]:
        assert keep.is_in(surfaces[key])
        assert len(surfaces[key].vertices) == 4
    assert mesh.validate()


def test_merge_vertices_requires_adjacency():
    mesh, surfaces, verts = _grid_mesh(2, 1)
    assert mesh.merge(verts[(0, 0)], verts[(1, 1)]) is False
    assert mesh.merge(verts[(0, 0)], verts[(2, 1)]) is False
    assert mesh.num_vertices == 6
    assert np.allclose(verts[(0, 0)].position, [0.0, 0.0, 0.0])


def test_merge_vertices_rejects_collapsing_triangle():
    mesh = Mesh()
    triangle, tverts = build_polygon([(0, 0), (1, 0), (0, 1)])
    mesh.add(triangle)
    assert mesh.merge(tverts[0], tverts[1]) is False
    assert mesh.num_vertices == 3
    assert len(triangle.vertices) == 3


def test_merge_surfaces_folds_remove_onto_keep():
    mesh = Mesh()
    keep, kverts = build_polygon([(0, 0), (1, 0), (1, 1), (0, 1)])
    rverts = [Vertex(v.position + np.array([0.0, 0.0, 0.2])) for v in kverts]
    stype = SurfaceType()
    remove = stype(rverts)
    side = stype([rverts[0], rverts[1], Vertex([1.0, 0.0, 1.0]), Vertex([0.0, 0.0, 1.0])])
    for s in (keep, remove, side):
        mesh.add(s)

    assert mesh.merge(keep, remove, [0.5, 0.5, 0.5, 0.5]) is True

    assert remove.mesh is None
    assert all(v.mesh is None for v in rverts)
    assert mesh.num_surfaces == 2
    assert mesh.num_vertices == 6
    for v in kverts:
        assert v.position[2] == pytest.approx(0.1)
    assert side.vertices[0] is kverts[0]
    assert side.vertices[1] is kverts[1]
    assert mesh.validate()


def test_merge_surfaces_pads_missing_length_coefficients():
    mesh = Mesh()
    keep, kverts = build_polygon([(0, 0), (1, 0), (1, 1), (0, 1)])
    remove = SurfaceType()([Vertex(v.position + np.array([0.0, 0.0, 1.0])) for v in kverts])
    mesh.add(keep)
    mesh.add(remove)

    assert mesh.merge_surfaces(keep, remove, [0.0]) is True

    assert kverts[0].position[2] == pytest.approx(0.0)
    for v in kverts[1:]:
        assert v.position[2] == pytest.approx(0.5)


def test_merge_surfaces_keeps_shared_vertices():
    mesh, surfaces, verts = _grid_mesh(2, 1)
    keep, remove = surfaces[(0, 0)], surfaces[(1, 0)]

    assert mesh.merge(keep, remove, [0.5, 0.5]) is True

    assert mesh.num_surfaces == 1
    assert mesh.num_vertices == 4
    assert verts[(1, 0)].mesh is mesh
    assert np.allclose(verts[(0, 0)].position, [1.0, 0.0, 0.0])
    assert mesh.validate()


def test_merge_surfaces_requires_matching_vertex_counts():
    mesh = Mesh()
    square, _ = build_polygon([(0, 0), (1, 0), (1, 1), (0, 1)])
    triangle, _ = build_polygon([(0, 0), (1, 0), (0, 1)])
    mesh.add(square)
    mesh.add(triangle)
    assert mesh.merge(square, triangle) is False
    assert mesh.num_surfaces == 2


def test_merge_surfaces_accepts_numpy_coefficients():
    mesh = Mesh()
    keep, kverts = build_polygon([(0, 0), (1, 0), (1, 1), (0, 1)])
    remove = SurfaceType()([Vertex(v.position + np.array([0.0, 0.0, 1.0])) for v in kverts])
    mesh.add(keep)
    mesh.add(remove)

    assert mesh.merge(keep, remove, np.full(4, 0.25)) is True

    for v in kverts:
        assert v.position[2] == pytest.approx(0.25)
    assert mesh.num_vertices == 4
