"""Thin-lens camera model with depth of field.

The camera is placed at ``position`` and oriented by a unit quaternion: in the
camera frame the view direction is -Z, X points right and Y points up. The
image plane sits ``plane_dist`` in front of the camera; one pixel spans

    px = tan(fovy / 2) / height * 2

at unit distance. For every sample the pixel position is jittered uniformly
inside its footprint and a lens offset is drawn on a disk whose radius (in
pixels) is plane_dist / px / f_number. The primary ray starts at the
perturbed point on the image plane and passes through the point at distance
``focus_dist`` along the unperturbed pinhole direction. Geometry on the focus
plane stays sharp; blur grows with 1 / f_number and with distance from it.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from phototrace.camera.thin_lens import ThinLensCamera, setup_camera
    >>> camera = ThinLensCamera(position=(0, 0, 10), width=64, height=64)
    >>> setup_camera(camera)
    >>> # Use get_ray_jittered(row, col, width, height) within a Taichi kernel
"""

import math
from dataclasses import dataclass, field

import numpy as np
import taichi as ti
import taichi.math as tm

from phototrace.core import quaternion
from phototrace.core.ray import Ray, make_ray, sample_unit_disk

vec3 = tm.vec3

# Image size limits, matching the film buffer capacity
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048


@dataclass
class ThinLensCamera:
    """Intrinsic and extrinsic camera parameters.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Number of paths traced per pixel.
        fovy: Vertical field of view in degrees.
        position: Camera position in world space.
        orientation: Unit quaternion (w, x, y, z) rotating camera axes into
            world space.
        f_number: Lens f-number. Large values approach a pinhole.
        plane_dist: Distance from the camera to the image plane.
        focus_dist: Distance to the plane in focus.
    """

    width: int = 160
    height: int = 90
    samples_per_pixel: int = 32
    fovy: float = 50.0
    position: tuple[float, float, float] = (10.0, 0.0, 0.0)
    orientation: tuple[float, float, float, float] = field(default=quaternion.IDENTITY)
    f_number: float = 9999.0
    plane_dist: float = 1.0
    focus_dist: float = 10.0

    def __post_init__(self) -> None:
        if not 0 < self.width <= MAX_IMAGE_WIDTH or not 0 < self.height <= MAX_IMAGE_HEIGHT:
            raise ValueError(
                f"Image size {self.width}x{self.height} must be within "
                f"1..{MAX_IMAGE_WIDTH} x 1..{MAX_IMAGE_HEIGHT}"
            )
        if self.samples_per_pixel < 1:
            raise ValueError(f"samples_per_pixel must be at least 1, got {self.samples_per_pixel}")
        if not 0.0 < self.fovy < 180.0:
            raise ValueError(f"fovy must lie in (0, 180) degrees, got {self.fovy}")
        for name in ("f_number", "plane_dist", "focus_dist"):
            if getattr(self, name) <= 0.0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        self.orientation = tuple(float(c) for c in quaternion.as_quaternion(self.orientation))

    @classmethod
    def looking_at(
        cls,
        position: tuple[float, float, float],
        target: tuple[float, float, float],
        up: tuple[float, float, float] = (0.0, 0.0, 1.0),
        **kwargs,
    ) -> "ThinLensCamera":
        """Build a camera at ``position`` whose view direction points at ``target``.

        Raises:
            ValueError: If position and target coincide or ``up`` is parallel
                to the view direction.
        """
        eye = np.asarray(position, dtype=np.float64)
        backward = eye - np.asarray(target, dtype=np.float64)
        norm = np.linalg.norm(backward)
        if norm < 1e-12:
            raise ValueError("Camera position and target must differ")
        backward /= norm
        right = np.cross(np.asarray(up, dtype=np.float64), backward)
        norm = np.linalg.norm(right)
        if norm < 1e-12:
            raise ValueError("Up vector must not be parallel to the view direction")
        right /= norm
        true_up = np.cross(backward, right)
        rotation = np.column_stack([right, true_up, backward])
        q = quaternion.from_rotation_matrix(rotation)
        return cls(position=tuple(position), orientation=tuple(q), **kwargs)

    @property
    def pixel_size(self) -> float:
        """Angular size of one pixel on a plane at unit distance."""
        return math.tan(math.radians(self.fovy) / 2.0) / self.height * 2.0


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_position = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_forward = ti.Vector.field(3, dtype=ti.f32, shape=())
# Right and up axes, scaled to the size of one pixel
_camera_right = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_up = ti.Vector.field(3, dtype=ti.f32, shape=())
_plane_dist = ti.field(dtype=ti.f32, shape=())
_focus_dist = ti.field(dtype=ti.f32, shape=())
# Lens disk radius measured in pixels
_lens_radius = ti.field(dtype=ti.f32, shape=())


def setup_camera(camera: ThinLensCamera) -> None:
    """Upload the camera frame and lens parameters.

    Must be called before rendering whenever the camera changes.
    """
    px = camera.pixel_size
    rot = quaternion.to_rotation_matrix(camera.orientation)

    _camera_position[None] = [float(c) for c in camera.position]
    _camera_forward[None] = (-rot[:, 2]).tolist()
    _camera_right[None] = (rot[:, 0] * px).tolist()
    _camera_up[None] = (rot[:, 1] * px).tolist()
    _plane_dist[None] = camera.plane_dist
    _focus_dist[None] = camera.focus_dist
    _lens_radius[None] = camera.plane_dist / px / camera.f_number


@ti.func
def get_ray_jittered(row: ti.i32, col: ti.i32, width: ti.i32, height: ti.i32) -> Ray:
    """Generate a primary ray through a random point of pixel (row, col).

    Row 0 is the top image row and column 0 the leftmost column. Four
    uniforms are drawn: the vertical jitter, the horizontal jitter, then the
    lens radius and angle.

    Returns:
        A Ray with unit direction.
    """
    y = row - height / 2.0 + ti.random(ti.f32)
    x = col - width / 2.0 + ti.random(ti.f32)
    lens_x, lens_y = sample_unit_disk(ti.random(ti.f32), ti.random(ti.f32))
    lens_x *= _lens_radius[None]
    lens_y *= _lens_radius[None]

    position = _camera_position[None]
    forward = _camera_forward[None]
    right = _camera_right[None]
    up = _camera_up[None]

    pinhole = tm.normalize(forward + right * x - up * y)
    focal_point = position + pinhole * _focus_dist[None]
    origin = position + (forward + right * (x + lens_x) - up * (y + lens_y)) * _plane_dist[None]
    return make_ray(origin, tm.normalize(focal_point - origin))


def get_camera_info() -> dict[str, tuple[float, float, float] | float]:
    """Get current camera state for debugging."""

    def as_tuple(v) -> tuple[float, float, float]:
        return (float(v[0]), float(v[1]), float(v[2]))

    return {
        "position": as_tuple(_camera_position[None]),
        "forward": as_tuple(_camera_forward[None]),
        "right": as_tuple(_camera_right[None]),
        "up": as_tuple(_camera_up[None]),
        "plane_dist": float(_plane_dist[None]),
        "focus_dist": float(_focus_dist[None]),
        "lens_radius": float(_lens_radius[None]),
    }
