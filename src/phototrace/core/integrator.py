"""Path tracing integrator.

Each sample traces one camera path. At every vertex the path gathers direct
light from all lights (next-event estimation), then asks the BSDF sampler for
a continuation direction. Absorption in the BSDF sampler ends the path; a
path that leaves the scene picks up the background radiance. Paths are cut
after MAX_BOUNCES vertices, which bounds the cost of rays trapped between
mirrors or inside glass.

    weight = (1, 1, 1)
    repeat up to MAX_BOUNCES:
        hit = nearest hit of the ray
        if no hit:  radiance += weight * background; stop
        radiance += weight * direct(hit)
        continue, w, dir = sample_bsdf(hit)
        if not continue: stop
        weight *= w

The film keeps a radiance sum and a sample count per pixel, so the image is
valid after any number of passes. Pixels are indexed [row, col] with row 0
at the top of the image.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from phototrace.core.integrator import render
    >>> from phototrace.scene.showcase import create_showcase_scene
    >>> scene, camera = create_showcase_scene()
    >>> pixels = render(scene, camera)  # (height, width, 3) uint8
"""

import logging
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from phototrace.camera.thin_lens import (
    MAX_IMAGE_HEIGHT,
    MAX_IMAGE_WIDTH,
    ThinLensCamera,
    get_ray_jittered,
    setup_camera,
)
from phototrace.lights.direct import direct_contribution
from phototrace.materials.bsdf import sample_bsdf
from phototrace.preview.export import image_to_uint8
from phototrace.scene.intersection import T_INFINITY, T_MIN, background, intersect_scene

if TYPE_CHECKING:
    from phototrace.scene.manager import SceneManager

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

# Maximum number of path vertices
MAX_BOUNCES = 12

# =============================================================================
# Render Target (Film Buffer)
# =============================================================================

# Image dimensions (actual active size)
_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Radiance sum and sample count, preallocated to the maximum size
_radiance_sum = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH))
_sample_count = ti.field(dtype=ti.i32, shape=(MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH))

# Flag to track if render target is initialized
_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Set the active image size and clear the film.

    Args:
        width: Image width in pixels (max MAX_IMAGE_WIDTH).
        height: Image height in pixels (max MAX_IMAGE_HEIGHT).

    Raises:
        ValueError: If dimensions are not positive or exceed the maximum size.
    """
    if not 0 < width <= MAX_IMAGE_WIDTH or not 0 < height <= MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) must be positive and within "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1
    clear_render_target()


def clear_render_target() -> None:
    """Clear the film to zero."""
    _radiance_sum.fill(0.0)
    _sample_count.fill(0)


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions as (width, height)."""
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    """Check if render target is initialized and raise if not."""
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def trace_path(row: ti.i32, col: ti.i32, width: ti.i32, height: ti.i32) -> vec3:
    """Estimate the radiance through pixel (row, col) with one camera path."""
    ray = get_ray_jittered(row, col, width, height)
    origin = ray.origin
    direction = ray.direction

    radiance = vec3(0.0, 0.0, 0.0)
    weight = vec3(1.0, 1.0, 1.0)

    # Taichi doesn't support break in ti.func loops
    active = 1

    for _ in range(MAX_BOUNCES):
        if active == 1:
            rec = intersect_scene(origin, direction, T_MIN, T_INFINITY)
            if rec.hit == 0:
                radiance += weight * background[None]
                active = 0
            else:
                origin = rec.point
                radiance += weight * direct_contribution(
                    rec.material_id, origin, rec.normal, direction, rec.uv
                )
                continues, next_direction, bsdf_weight = sample_bsdf(
                    rec.material_id, rec.normal, direction, rec.uv
                )
                if continues == 0:
                    active = 0
                else:
                    weight *= bsdf_weight
                    direction = next_direction

    return radiance


@ti.func
def _sanitize(color: vec3) -> vec3:
    """Zero out negative, NaN and infinite channels."""
    result = tm.max(color, vec3(0.0, 0.0, 0.0))
    for c in ti.static(range(3)):
        if tm.isnan(color[c]) or tm.isinf(color[c]):
            result[c] = 0.0
    return result


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_one_spp(width: ti.i32, height: ti.i32):
    """Trace one path through every pixel and add it to the film.

    Each pixel is owned by a single thread, so the film needs no atomics.
    """
    for row, col in ti.ndrange(height, width):
        color = _sanitize(trace_path(row, col, width, height))
        _radiance_sum[row, col] += color
        _sample_count[row, col] += 1


@ti.kernel
def _render_single_pixel(row: ti.i32, col: ti.i32, width: ti.i32, height: ti.i32) -> vec3:
    """Trace one path through a single pixel without touching the film."""
    return _sanitize(trace_path(row, col, width, height))


# =============================================================================
# Public Rendering API
# =============================================================================


def render_sample(row: int, col: int) -> tuple[float, float, float]:
    """Trace a single path through pixel (row, col) and return its radiance.

    Intended for testing; use render_image() for full frames.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()
    color = _render_single_pixel(row, col, width, height)
    return (float(color[0]), float(color[1]), float(color[2]))


def render_image(num_samples: int = 1) -> None:
    """Add num_samples passes of one path per pixel to the film.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()
    for _ in range(num_samples):
        _render_one_spp(width, height)


def get_total_samples() -> int:
    """Get the number of samples per pixel accumulated so far.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()
    return int(_sample_count[0, 0])


def get_image_numpy() -> npt.NDArray[np.float32]:
    """Get the mean linear radiance per pixel, shape (height, width, 3).

    Values are not clamped. Pixels without samples are zero.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()
    radiance = _radiance_sum.to_numpy()[:height, :width, :]
    counts = _sample_count.to_numpy()[:height, :width]
    image = radiance / np.maximum(counts, 1)[..., None]
    return image.astype(np.float32)


def render(scene: "SceneManager", camera: ThinLensCamera) -> npt.NDArray[np.uint8]:
    """Render a scene to an 8-bit image.

    Builds the scene's BVH if needed, uploads the camera, traces
    camera.samples_per_pixel paths per pixel and encodes the mean radiance
    with a gamma-2.2 curve.

    Args:
        scene: The assembled scene.
        camera: Camera parameters, including resolution and sample count.

    Returns:
        Array of shape (camera.height, camera.width, 3), dtype uint8.
    """
    if not scene.is_built:
        scene.build()
    setup_camera(camera)
    setup_render_target(camera.width, camera.height)
    logger.info(
        "Rendering %dx%d at %d spp",
        camera.width,
        camera.height,
        camera.samples_per_pixel,
    )
    render_image(camera.samples_per_pixel)
    return image_to_uint8(get_image_numpy())
