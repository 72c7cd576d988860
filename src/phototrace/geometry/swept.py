"""Swept surfaces: closed spline cross-sections interpolated along a path.

A swept surface is described by a sequence of sections. Each section is a
closed planar curve (control points in its local x-z plane) together with a
scale, a rotation and a position that place it in the world. The generator:

1. Converts each section's closed B-spline or Catmull-Rom control polygon to
   a chain of cubic Bezier segments.
2. Subdivides every segment ``level`` times by de Casteljau halving and keeps
   the on-curve points.
3. Interpolates between consecutive sections with Catmull-Rom control
   sections (scale, position and control points blended linearly, rotations
   slerped) and subdivides that chain the same way.
4. Stitches consecutive rings into quads, two triangles each, with vertex
   normals averaged from the neighbouring quads.

The result is a plain Mesh; UVs are zero.

Swept-surface file format (whitespace separated, ``#`` starts a comment)::

    BSPLINE | CATMULL_ROM
    <number of sections>
    <number of control points per section>
    then per section:
        <x z> pairs for every control point
        <scale>
        <angle (radians)> <axis x> <axis y> <axis z>
        <position x> <position y> <position z>
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TypeVar

import numpy as np
import numpy.typing as npt

from phototrace.core import quaternion
from phototrace.geometry.mesh import Mesh, MeshFormatError
from phototrace.materials.material import Material

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SplineType(Enum):
    """Cross-section curve types."""

    BSPLINE = "BSPLINE"
    CATMULL_ROM = "CATMULL_ROM"


@dataclass
class Section:
    """One cross-section of a swept surface.

    Attributes:
        control_points: (N, 2) points (x, z) in the section's local plane.
        scale: Uniform scale applied before rotation.
        rotation: Unit quaternion (w, x, y, z).
        position: World-space position of the local origin.
    """

    control_points: npt.NDArray[np.float64]
    scale: float = 1.0
    rotation: quaternion.Quaternion = field(default_factory=lambda: np.array(quaternion.IDENTITY))
    position: npt.NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        self.control_points = np.asarray(self.control_points, dtype=np.float64).reshape(-1, 2)
        self.scale = float(self.scale)
        self.rotation = quaternion.as_quaternion(self.rotation)
        self.position = np.asarray(self.position, dtype=np.float64).reshape(3)

    def _with_points(self, points: npt.NDArray[np.float64]) -> Section:
        return Section(points, self.scale, self.rotation, self.position)

    def midpoint(self, other: Section) -> Section:
        """The section halfway to ``other``."""
        return Section(
            (self.control_points + other.control_points) / 2.0,
            (self.scale + other.scale) / 2.0,
            quaternion.slerp(self.rotation, other.rotation, 0.5),
            (self.position + other.position) / 2.0,
        )

    def catmull_rom_control(self, toward: Section, away: Section | None = None) -> Section:
        """Bezier control section next to this one on a Catmull-Rom sweep.

        With both neighbours the tangent is (toward - away) / 6; at the ends
        of the sweep, where only ``toward`` exists, the control lies a third
        of the way to it.
        """
        if away is None:
            return Section(
                (toward.control_points - self.control_points) / 3.0 + self.control_points,
                (toward.scale - self.scale) / 3.0 + self.scale,
                quaternion.slerp(self.rotation, toward.rotation, 1.0 / 3.0),
                (toward.position - self.position) / 3.0 + self.position,
            )
        step = quaternion.slerp(away.rotation, toward.rotation, 1.0 / 6.0)
        rotation = quaternion.multiply(
            quaternion.multiply(step, quaternion.conjugate(away.rotation)), self.rotation
        )
        return Section(
            (toward.control_points - away.control_points) / 6.0 + self.control_points,
            (toward.scale - away.scale) / 6.0 + self.scale,
            rotation,
            (toward.position - away.position) / 6.0 + self.position,
        )

    def world_points(self) -> npt.NDArray[np.float64]:
        """Control points placed in world space, shape (N, 3)."""
        local = np.zeros((self.control_points.shape[0], 3))
        local[:, 0] = self.control_points[:, 0]
        local[:, 2] = self.control_points[:, 1]
        rot = quaternion.to_rotation_matrix(self.rotation)
        return self.position + self.scale * local @ rot.T


# =============================================================================
# Curve Conversion and Subdivision
# =============================================================================


def bspline_to_bezier(points: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """Convert a closed uniform cubic B-spline polygon to a Bezier chain.

    Returns:
        (3N + 1, 2) control points; the last equals the first.
    """
    p = np.asarray(points, dtype=np.float64)
    v0, v1, v2 = p, np.roll(p, -1, axis=0), np.roll(p, -2, axis=0)
    chain = np.stack(
        [(v0 + 4.0 * v1 + v2) / 6.0, (4.0 * v1 + 2.0 * v2) / 6.0, (2.0 * v1 + 4.0 * v2) / 6.0],
        axis=1,
    ).reshape(-1, 2)
    return np.vstack([chain, chain[:1]])


def catmull_rom_to_bezier(points: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """Convert a closed Catmull-Rom polygon to a Bezier chain.

    Returns:
        (3N + 1, 2) control points; the last equals the first.
    """
    p = np.asarray(points, dtype=np.float64)
    v0, v1, v2, v3 = (np.roll(p, -k, axis=0) for k in range(4))
    chain = np.stack([v1, (v2 - v0) / 6.0 + v1, (v1 - v3) / 6.0 + v2], axis=1).reshape(-1, 2)
    return np.vstack([chain, chain[:1]])


def subdivide_bezier(chain: Sequence[T], level: int, midpoint: Callable[[T, T], T]) -> list[T]:
    """Halve every cubic segment of a Bezier chain ``level`` times.

    Works on anything with a midpoint operation (points or whole sections).

    Args:
        chain: 3K + 1 control items describing K cubic segments.
        level: Number of halving rounds.
        midpoint: Returns the item halfway between two items.

    Returns:
        The on-curve items: K * 2**level + 1 of them.
    """
    segment = list(chain)
    for _ in range(level):
        refined: list[T] = []
        for i in range(0, len(segment) - 1, 3):
            a0 = midpoint(segment[i], segment[i + 1])
            a1 = midpoint(segment[i + 1], segment[i + 2])
            a2 = midpoint(segment[i + 2], segment[i + 3])
            b0 = midpoint(a0, a1)
            b1 = midpoint(a1, a2)
            c0 = midpoint(b0, b1)
            refined.extend([segment[i], a0, b0, c0, b1, a2])
        refined.append(segment[-1])
        segment = refined
    return segment[::3]


def _point_midpoint(a: npt.NDArray[np.float64], b: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    return (a + b) / 2.0


def _normalize_rows(v: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    length = np.linalg.norm(v, axis=-1, keepdims=True)
    return v / np.maximum(length, 1e-12)


# =============================================================================
# Sweep
# =============================================================================


def sweep_sections(
    sections: Sequence[Section],
    level: int,
    material: Material,
    spline: SplineType = SplineType.BSPLINE,
) -> Mesh:
    """Build a triangle mesh by sweeping closed cross-sections.

    Args:
        sections: Sections in sweep order; their control points are the
            spline control polygon.
        level: Subdivision rounds, both around and along the sweep.
        material: Material of every face.
        spline: How the control polygons are interpreted.

    Returns:
        A single-material Mesh.

    Raises:
        ValueError: If there are fewer than two sections, the sections have
            different or too few (< 3) control points, or level is negative.
    """
    if len(sections) < 2:
        raise ValueError(f"A swept surface needs at least 2 sections, got {len(sections)}")
    if level < 0:
        raise ValueError(f"Subdivision level must be non-negative, got {level}")
    n_points = sections[0].control_points.shape[0]
    if n_points < 3 or any(s.control_points.shape[0] != n_points for s in sections):
        raise ValueError("All sections must share the same number (at least 3) of control points")

    to_bezier = catmull_rom_to_bezier if spline == SplineType.CATMULL_ROM else bspline_to_bezier
    rings = [
        s._with_points(np.asarray(subdivide_bezier(list(to_bezier(s.control_points)), level, _point_midpoint)))
        for s in sections
    ]

    n = len(rings)
    chain: list[Section] = []
    for i in range(n - 1):
        chain.append(rings[i])
        if i == 0:
            chain.append(rings[i].catmull_rom_control(rings[i + 1]))
        else:
            chain.append(rings[i].catmull_rom_control(rings[i + 1], rings[i - 1]))
        if i == n - 2:
            chain.append(rings[i + 1].catmull_rom_control(rings[i]))
        else:
            chain.append(rings[i + 1].catmull_rom_control(rings[i], rings[i + 2]))
    chain.append(rings[-1])
    swept = subdivide_bezier(chain, level, Section.midpoint)

    # Rings are closed; drop the repeated first point
    grid = np.stack([s.world_points()[:-1] for s in swept])
    n_rings, m, _ = grid.shape

    p1 = grid[:-1]
    p2 = np.roll(grid, -1, axis=1)[:-1]
    p3 = grid[1:]
    p4 = np.roll(grid, -1, axis=1)[1:]
    quad_normals = _normalize_rows(
        _normalize_rows(np.cross(p3 - p4, p3 - p1)) + _normalize_rows(np.cross(p2 - p1, p2 - p4))
    )

    # Each vertex averages the quads on both sides of it in both directions
    around = quad_normals + np.roll(quad_normals, 1, axis=1)
    vertex_normals = np.zeros_like(grid)
    vertex_normals[1:] += around
    vertex_normals[:-1] += around
    vertex_normals = _normalize_rows(vertex_normals)

    i = np.arange(n_rings - 1)[:, None]
    j = np.arange(m)[None, :]
    j_next = (j + 1) % m
    a = i * m + j
    b = (i + 1) * m + j
    c = (i + 1) * m + j_next
    d = i * m + j_next
    order = np.stack([a, b, c, a, c, d], axis=-1).reshape(-1)

    vertices = grid.reshape(-1, 3)[order]
    normals = vertex_normals.reshape(-1, 3)[order]
    mesh = Mesh(
        vertices=vertices,
        normals=normals,
        uvs=np.zeros((vertices.shape[0], 2), dtype=np.float32),
        face_materials=np.zeros(vertices.shape[0] // 3, dtype=np.int32),
        materials=[material],
    )
    logger.debug("Swept %d sections into %d rings of %d points (%d faces)", n, n_rings, m, mesh.face_count)
    return mesh


def load_swept_surface(path: str | Path, level: int, material: Material) -> Mesh:
    """Read a swept-surface description file and sweep it.

    Args:
        path: File in the format described in the module docstring.
        level: Subdivision rounds.
        material: Material of every face.

    Raises:
        MeshFormatError: If the file is malformed.
        ValueError: If the described sweep is invalid (see sweep_sections).
    """
    tokens: list[str] = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            tokens.extend(line.split("#", 1)[0].split())

    if len(tokens) < 3:
        raise MeshFormatError(f"{path}: missing swept-surface header")
    try:
        spline = SplineType(tokens[0])
    except ValueError:
        raise MeshFormatError(f"{path}: unknown curve type {tokens[0]!r}") from None
    try:
        n_sections = int(tokens[1])
        n_points = int(tokens[2])
        values = [float(t) for t in tokens[3:]]
    except ValueError as exc:
        raise MeshFormatError(f"{path}: {exc}") from exc

    per_section = 2 * n_points + 8
    if n_sections < 0 or n_points < 0 or len(values) < n_sections * per_section:
        raise MeshFormatError(
            f"{path}: expected {n_sections} sections of {per_section} values, got {len(values)} values"
        )

    sections = []
    for k in range(n_sections):
        chunk = values[k * per_section : (k + 1) * per_section]
        points = np.asarray(chunk[: 2 * n_points]).reshape(-1, 2)
        scale, angle, ax, ay, az, px, py, pz = chunk[2 * n_points :]
        sections.append(Section(points, scale, quaternion.from_axis_angle(angle, (ax, ay, az)), (px, py, pz)))

    logger.debug("Loaded %d %s sections from %s", n_sections, spline.value, path)
    return sweep_sections(sections, level, material, spline)
