"""Ready-made scenes.

Two scenes are provided:
- The showcase: a ground plane, three diffuse spheres, a small textured
  sphere turned about the vertical axis, a refractive trefoil-knot tube, two
  sun lights of different colors, a red spot light and a grey sky.
- An enclosed box: six inward-facing diffuse walls lit by a point light,
  with no way for a path to escape. Useful for checking energy behaviour.

Both factories reset the active scene and return it with a matching camera.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from phototrace.scene.showcase import create_showcase_scene
    >>> from phototrace.core.integrator import render
    >>> scene, camera = create_showcase_scene(width=160, height=90)
    >>> pixels = render(scene, camera)
"""

from __future__ import annotations

import math

import numpy as np
import numpy.typing as npt

from phototrace.camera.thin_lens import ThinLensCamera
from phototrace.core import quaternion
from phototrace.geometry.mesh import Mesh, quad_mesh
from phototrace.geometry.swept import Section, SplineType, sweep_sections
from phototrace.lights.light import Light
from phototrace.materials.material import IllumModel, Material
from phototrace.materials.texture import Texture
from phototrace.scene.manager import SceneManager

# Camera pose of the showcase
SHOWCASE_CAMERA_POSITION = (7.1806, -6.3057, 4.1167)
SHOWCASE_CAMERA_ORIENTATION = (0.749, 0.508, 0.238, 0.352)


def checker_texture(
    width: int = 128,
    height: int = 64,
    tiles: tuple[int, int] = (16, 8),
    colors: tuple[tuple[int, int, int], tuple[int, int, int]] = ((230, 230, 220), (40, 90, 160)),
) -> Texture:
    """Procedural two-color checkerboard."""
    rows = (np.arange(height) * tiles[1] // height)[:, None]
    cols = (np.arange(width) * tiles[0] // width)[None, :]
    mask = (rows + cols) % 2 == 1
    pixels = np.where(mask[..., None], np.array(colors[1]), np.array(colors[0]))
    return Texture.from_srgb8(pixels.astype(np.uint8))


def _frame_quaternion(tangent: npt.NDArray[np.float64]) -> quaternion.Quaternion:
    # Local y follows the sweep; the cross-section lies in local x-z
    y = tangent / np.linalg.norm(tangent)
    reference = np.array([0.0, 0.0, 1.0]) if abs(y[2]) < 0.9 else np.array([1.0, 0.0, 0.0])
    x = np.cross(y, reference)
    x /= np.linalg.norm(x)
    z = np.cross(x, y)
    return quaternion.from_rotation_matrix(np.column_stack([x, y, z]))


def trefoil_sections(
    n_sections: int = 25,
    size: float = 0.45,
    tube_radius: float = 0.22,
    center: tuple[float, float, float] = (0.6, -1.6, 1.4),
    ring_points: int = 8,
) -> list[Section]:
    """Circular cross-sections placed along a trefoil knot.

    The first and last sections coincide so the tube closes up.
    """
    angles = 2.0 * np.pi * np.arange(ring_points) / ring_points
    ring = np.column_stack([np.cos(angles), np.sin(angles)])
    center_arr = np.asarray(center, dtype=np.float64)

    sections = []
    for t in np.linspace(0.0, 2.0 * np.pi, n_sections):
        p = np.array([
            math.sin(t) + 2.0 * math.sin(2.0 * t),
            math.cos(t) - 2.0 * math.cos(2.0 * t),
            -math.sin(3.0 * t),
        ])
        dp = np.array([
            math.cos(t) + 4.0 * math.cos(2.0 * t),
            -math.sin(t) + 4.0 * math.sin(2.0 * t),
            -3.0 * math.cos(3.0 * t),
        ])
        sections.append(
            Section(
                control_points=ring,
                scale=tube_radius,
                rotation=_frame_quaternion(dp),
                position=center_arr + size * p,
            )
        )
    return sections


def create_showcase_scene(
    width: int = 320,
    height: int = 180,
    samples_per_pixel: int = 32,
    level: int = 2,
) -> tuple[SceneManager, ThinLensCamera]:
    """Build the showcase scene and its depth-of-field camera.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Paths per pixel.
        level: Subdivision level of the knot tube.

    Returns:
        (scene, camera); the scene is not built yet.
    """
    scene = SceneManager()

    scene.add_light(Light.sun(direction=(-7.26, -0.48, -4.60), color=(4.0, 3.584, 2.492)))
    scene.add_light(
        Light.spot(
            position=(2.00, -5.15, 6.77),
            direction=(-0.30, 0.51, -0.74),
            color=(50.0, 1.5, 1.5),
            half_angle=0.5,
            exponent=1.0,
        )
    )
    scene.add_light(Light.sun(direction=(2.26, 0.10, -0.70), color=(2.96, 7.5, 10.0)))
    scene.set_background((0.4, 0.4, 0.4))

    ground = Material(name="ground", kd=(0.55, 0.55, 0.5), ks=(0.05, 0.05, 0.05), ns=16.0)
    scene.add_mesh(quad_mesh((-15.0, -15.0, 0.0), (30.0, 0.0, 0.0), (0.0, 30.0, 0.0), ground))

    white = scene.add_material(Material(name="white"))
    scene.add_sphere((-4.96, 0.36, 1.18), 1.18, white)
    scene.add_sphere((-1.77, 3.14, 1.80), 1.80, white)
    scene.add_sphere((2.36, 2.85, 0.95), 0.95, white)

    checker = Material(name="checker", kd=(0.7, 0.7, 0.7), ks=(0.2, 0.2, 0.2), texture=checker_texture())
    scene.add_sphere(
        (2.70, -0.13, 0.49),
        0.49,
        checker,
        orientation=quaternion.from_axis_angle(math.pi * 1.7, (0.0, 0.0, 1.0)),
    )

    glass = Material(
        name="glass",
        kd=(0.02, 0.02, 0.02),
        ks=(0.08, 0.08, 0.08),
        kr=(0.85, 0.9, 0.85),
        ni=1.5,
        illum=IllumModel.REFRACTION,
    )
    scene.add_mesh(sweep_sections(trefoil_sections(), level, glass, SplineType.CATMULL_ROM))

    camera = ThinLensCamera(
        width=width,
        height=height,
        samples_per_pixel=samples_per_pixel,
        fovy=24.0,
        position=SHOWCASE_CAMERA_POSITION,
        orientation=SHOWCASE_CAMERA_ORIENTATION,
        f_number=2.0,
        plane_dist=0.5,
        focus_dist=8.5,
    )
    return scene, camera


def box_mesh(half_size: float, material: Material) -> Mesh:
    """Closed axis-aligned cube centred at the origin with inward normals."""
    s = half_size
    e = 2.0 * s
    faces = [
        quad_mesh((-s, -s, -s), (e, 0, 0), (0, e, 0), material),  # floor
        quad_mesh((-s, -s, s), (0, e, 0), (e, 0, 0), material),  # ceiling
        quad_mesh((-s, -s, -s), (0, e, 0), (0, 0, e), material),  # -x
        quad_mesh((s, -s, -s), (0, 0, e), (0, e, 0), material),  # +x
        quad_mesh((-s, -s, -s), (0, 0, e), (e, 0, 0), material),  # -y
        quad_mesh((-s, s, -s), (e, 0, 0), (0, 0, e), material),  # +y
    ]
    return Mesh(
        vertices=np.concatenate([f.vertices for f in faces]),
        normals=np.concatenate([f.normals for f in faces]),
        uvs=np.concatenate([f.uvs for f in faces]),
        face_materials=np.zeros(12, dtype=np.int32),
        materials=[material],
    )


def create_enclosed_box_scene(
    albedo: float = 0.5,
    light_intensity: float = 1.0,
    width: int = 32,
    height: int = 32,
    samples_per_pixel: int = 16,
) -> tuple[SceneManager, ThinLensCamera]:
    """Build a closed diffuse box with a point light inside.

    Returns:
        (scene, camera); the camera sits inside the box looking along -x.
    """
    scene = SceneManager()
    wall = Material(name="wall", kd=(albedo, albedo, albedo), ks=(0.0, 0.0, 0.0))
    scene.add_mesh(box_mesh(1.0, wall))
    scene.add_light(Light.point(position=(0.0, 0.0, 0.5), color=(light_intensity,) * 3))
    scene.set_background((0.0, 0.0, 0.0))
    camera = ThinLensCamera.looking_at(
        (0.8, 0.0, 0.0),
        (-1.0, 0.0, 0.0),
        width=width,
        height=height,
        samples_per_pixel=samples_per_pixel,
        fovy=60.0,
        focus_dist=1.8,
    )
    return scene, camera
