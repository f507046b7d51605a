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


def _coords(surface):
    return [tuple(np.round(v.position[:2], 6)) for v in surface.vertices]


def test_insert_vertex_on_shared_edge():
    mesh, surfaces, verts = _grid_mesh(2, 1)
    new_vertex = Vertex([1.0, 0.5, 0.0])
    assert mesh.insert(new_vertex, verts[(1, 0)], verts[(1, 1)]) is True

    assert new_vertex.object_id >= 0
    assert _coords(surfaces[(0, 0)]) == [(0, 0), (1, 0), (1, 0.5), (1, 1), (0, 1)]
    assert _coords(surfaces[(1, 0)]) == [(1, 0), (2, 0), (2, 1), (1, 1), (1, 0.5)]
    assert len(new_vertex.surfaces) == 2
    assert mesh.validate()


def test_insert_rejects_stored_vertex():
    mesh, _, verts = _grid_mesh(1, 1)
    assert mesh.insert(verts[(0, 0)], verts[(1, 0)], verts[(1, 1)]) is False


def test_replace_surface_with_vertex_collapses_center_square():
    mesh, surfaces, verts = _grid_mesh(3, 3)
    center = surfaces[(1, 1)]
    new_vertex = Vertex([1.5, 1.5, 0.0])

    assert mesh.replace(new_vertex, center) is True

    assert center.mesh is None
    assert mesh.num_surfaces == 8
    assert mesh.num_vertices == 13
    assert len(new_vertex.surfaces) == 8
    for key in [(1, 0), (0, 1), (2, 1), (1, 2)]:
        assert len(surfaces[key].vertices) == 3
    for key in [(0, 0), (2, 0), (0, 2), (2, 2)]:
        assert len(surfaces[key].vertices) == 4
    assert _coords(surfaces[(1, 0)]) == [(1, 0), (2, 0), (1.5, 1.5)]
    for key in [(1, 1), (2, 1), (2, 2), (1, 2)]:
        assert verts[key].mesh is None
    assert mesh.validate()


def test_replace_surface_rejects_non_contiguous_contact():
    mesh = Mesh()
    target, tverts = build_polygon([(0, 0), (1, 0), (1, 1), (0, 1)])
    x = Vertex([2.0, -1.0, 0.0])
    y = Vertex([2.0, 2.0, 0.0])
    SurfaceType()([tverts[0], x, tverts[2], y])
    mesh.add(target)
    mesh.add(x.surfaces[0])
    positions = [v.position.copy() for v in mesh.vertices]
    new_vertex = Vertex([0.5, 0.5, 0.0])

    assert mesh.replace(new_vertex, target) is False

    assert target.mesh is mesh
    assert new_vertex.mesh is None
    assert mesh.num_surfaces == 2
    assert mesh.num_vertices == 6
    assert all(np.allclose(a, v.position) for a, v in zip(positions, mesh.vertices))
    assert len(x.surfaces[0].vertices) == 4


def test_replace_surface_rejects_collapsing_neighbor():
    mesh = Mesh()
    target, tverts = build_polygon([(0, 0), (1, 0), (1, 1), (0, 1)])
    apex = Vertex([0.5, -1.0, 0.0])
    triangle = SurfaceType()([tverts[0], tverts[1], apex])
    mesh.add(target)
    mesh.add(triangle)

    assert mesh.replace(Vertex([0.5, 0.5, 0.0]), target) is False
    assert mesh.num_surfaces == 2
    assert len(triangle.vertices) == 3


def test_replace_vertex_with_surface():
    mesh, surfaces, verts = _grid_mesh(2, 2)
    center = verts[(1, 1)]

    new_surface = mesh.replace(SurfaceType(), center, [0.5, 0.5, 0.5, 0.5])

    assert new_surface is not None
    assert new_surface.mesh is mesh
    assert center.mesh is None
    assert mesh.num_surfaces == 5
    assert mesh.num_vertices == 12
    assert new_surface.area == pytest.approx(0.5)
    assert np.allclose(new_surface.normal, [0.0, 0.0, 1.0])
    assert sorted(_coords(new_surface)) == [(0.5, 1), (1, 0.5), (1, 1.5), (1.5, 1)]
    for s in surfaces.values():
        assert len(s.vertices) == 5
        assert not center.is_in(s)
    assert mesh.validate()


def test_replace_vertex_with_surface_uses_length_coefficients():
    mesh, _, verts = _grid_mesh(2, 2)
    center = verts[(1, 1)]
    neighbors = center.neighbor_vertices()
    cfs = [0.25, 0.25, 0.25, 0.25]

    new_surface = mesh.replace_vertex(SurfaceType(), center, cfs)

    assert new_surface is not None
    for v in new_surface.vertices:
        assert np.linalg.norm(v.position - np.array([1.0, 1.0, 0.0])) == pytest.approx(0.25)
    assert len(neighbors) == 4


@pytest.mark.parametrize("cfs", [[0.5, 0.5, 0.5], [0.5, 0.5, 0.5, 1.0], [0.0, 0.5, 0.5, 0.5]])
def test_replace_vertex_with_surface_rejects_bad_coefficients(cfs):
    mesh, _, verts = _grid_mesh(2, 2)
    positions = {v.object_id: v.position.copy() for v in mesh.vertices}
    assert mesh.replace(SurfaceType(), verts[(1, 1)], cfs) is None
    assert all(np.allclose(positions[v.object_id], v.position) for v in mesh.vertices)
    assert mesh.num_surfaces == 4
    assert mesh.num_vertices == 9


def test_replace_dispatch_rejects_unknown_arguments():
    mesh, surfaces, verts = _grid_mesh(1, 1)
    with pytest.raises(TypeError):
        mesh.replace(surfaces[(0, 0)], verts[(0, 0)])


def test_replace_vertex_accepts_numpy_coefficients():
    mesh, _, verts = _grid_mesh(2, 2)

    new_surface = mesh.replace(SurfaceType(), verts[(1, 1)], np.full(4, 0.5))

    assert new_surface is not None
    assert new_surface.area == pytest.approx(0.5)
    assert mesh.validate()


def test_replace_vertex_reports_bad_numpy_coefficients():
    mesh, _, verts = _grid_mesh(2, 2)
    assert mesh.replace(SurfaceType(), verts[(1, 1)], np.full(3, 0.5)) is None
    assert mesh.num_vertices == 9
