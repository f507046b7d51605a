import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from geometry.entities import BodyType, SurfaceType
from geometry.mesh import Mesh
from sample_meshes import build_polygon


def _square_mesh(surface_type=None):
    mesh = Mesh()
    square, verts = build_polygon([(0, 0), (1, 0), (1, 1), (0, 1)], surface_type=surface_type)
    mesh.add(square)
    return mesh, square, verts


def test_extend_surface_builds_triangle_on_edge():
    stype = SurfaceType("cell")
    mesh, square, verts = _square_mesh(stype)

    triangle = mesh.extend(square, 0, [0.5, -1.0, 0.0])

    assert triangle is not None
    assert triangle.type is stype
    assert triangle.vertices[0] is verts[0]
    assert triangle.vertices[1] is verts[1]
    assert np.allclose(triangle.vertices[2].position, [0.5, -1.0, 0.0])
    assert mesh.num_surfaces == 2
    assert mesh.num_vertices == 5
    assert triangle.area == pytest.approx(0.5)


def test_extend_surface_rejects_bad_edge_index():
    mesh, square, _ = _square_mesh()
    assert mesh.extend_surface(square, 4, [0.0, 0.0, 1.0]) is None
    assert mesh.extend_surface(square, -1, [0.0, 0.0, 1.0]) is None
    assert mesh.num_surfaces == 1


def test_extrude_surface_sweeps_edge_along_normal():
    mesh, square, verts = _square_mesh()

    quad = mesh.extrude(square, 1, 2.0)

    assert quad is not None
    assert quad.vertices[0] is verts[1]
    assert quad.vertices[1] is verts[2]
    assert np.allclose(quad.vertices[2].position, [1.0, 1.0, 2.0])
    assert np.allclose(quad.vertices[3].position, [1.0, 0.0, 2.0])
    assert quad.area == pytest.approx(2.0)
    assert quad.validate()


def test_extend_body_builds_pyramid():
    mesh, square, _ = _square_mesh()

    body = mesh.extend(square, BodyType(), [0.5, 0.5, 1.0])

    assert body is not None
    assert body.mesh is mesh
    assert len(body.surfaces) == 5
    assert mesh.num_vertices == 5
    assert body.volume == pytest.approx(1.0 / 3.0)
    assert square.b2 is body
    assert mesh.validate()


def test_extrude_body_builds_prism():
    mesh, square, _ = _square_mesh()

    body = mesh.extrude(square, BodyType(), 1.0)

    assert body is not None
    assert len(body.surfaces) == 6
    assert mesh.num_vertices == 8
    assert mesh.num_surfaces == 6
    assert body.volume == pytest.approx(1.0)
    assert body.area == pytest.approx(6.0)
    assert mesh.validate()


def test_extrude_body_follows_outward_normal():
    mesh, square, _ = _square_mesh()
    first = mesh.extrude_body(square, BodyType(), 1.0)
    assert square.b2 is first

    second = mesh.extrude_body(square, BodyType(), 1.0)

    assert second is not None
    assert square.b1 is second
    assert second.centroid[2] == pytest.approx(-0.5)
    assert second.volume == pytest.approx(1.0)


def test_extend_and_extrude_reject_twice_connected_surface():
    mesh, square, _ = _square_mesh()
    mesh.extend_body(square, BodyType(), [0.5, 0.5, 1.0])
    mesh.extend_body(square, BodyType(), [0.5, 0.5, -1.0])
    surfaces_before = mesh.num_surfaces
    vertices_before = mesh.num_vertices

    assert mesh.extrude_body(square, BodyType(), 1.0) is None
    assert mesh.extend_body(square, BodyType(), [0.5, 0.5, 2.0]) is None
    assert mesh.num_surfaces == surfaces_before
    assert mesh.num_vertices == vertices_before
    assert mesh.num_bodies == 2
