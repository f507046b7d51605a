import numpy as np

from geometry.entities import BodyType, SurfaceType, Vertex

CUBE_POSITIONS = [
    [0, 0, 0],
    [1, 0, 0],
    [1, 1, 0],
    [0, 1, 0],
    [0, 0, 1],
    [1, 0, 1],
    [1, 1, 1],
    [0, 1, 1],
]

# Counterclockwise seen from outside, so every normal points outward.
CUBE_FACES = [
    [0, 3, 2, 1],
    [4, 5, 6, 7],
    [0, 1, 5, 4],
    [1, 2, 6, 5],
    [2, 3, 7, 6],
    [3, 0, 4, 7],
]


def build_cube(surface_type=None, body_type=None, size=1.0, origin=(0.0, 0.0, 0.0)):
    """Return ``(body, surfaces, vertices)`` of an unstored cube."""
    surface_type = surface_type or SurfaceType()
    body_type = body_type or BodyType()
    origin = np.asarray(origin, dtype=float)
    vertices = [Vertex(np.asarray(p, dtype=float) * size + origin) for p in CUBE_POSITIONS]
    surfaces = [surface_type([vertices[i] for i in face]) for face in CUBE_FACES]
    body = body_type(surfaces)
    return body, surfaces, vertices


def build_grid(nx, ny, surface_type=None):
    """Return ``(surfaces, vertices)`` of an unstored grid of unit squares.

    ``vertices`` maps ``(i, j)`` to the vertex at ``(i, j, 0)`` and
    ``surfaces`` maps ``(i, j)`` to the square with lower-left corner ``(i, j)``.
    All squares are counterclockwise seen from +z.
    """
    surface_type = surface_type or SurfaceType()
    vertices = {
        (i, j): Vertex([float(i), float(j), 0.0])
        for i in range(nx + 1)
        for j in range(ny + 1)
    }
    surfaces = {}
    for i in range(nx):
        for j in range(ny):
            surfaces[(i, j)] = surface_type(
                [
                    vertices[(i, j)],
                    vertices[(i + 1, j)],
                    vertices[(i + 1, j + 1)],
                    vertices[(i, j + 1)],
                ]
            )
    return surfaces, vertices


def build_polygon(points, surface_type=None):
    """Return ``(surface, vertices)`` of an unstored polygon in the z=0 plane."""
    surface_type = surface_type or SurfaceType()
    vertices = [Vertex([float(x), float(y), 0.0]) for x, y in points]
    return surface_type(vertices), vertices


PENTAGON_REFLEX = [(0, 0), (2, 0), (2, 2), (1, 1.5), (0, 2)]
