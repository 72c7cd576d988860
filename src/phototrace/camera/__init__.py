"""Camera module for primary ray generation.

Components:
    thin_lens: Thin-lens camera with depth of field, posed by a quaternion

Rays are generated per pixel (row, col) with row 0 at the top of the image,
jittered inside the pixel footprint for antialiasing.
"""

from .thin_lens import (
    MAX_IMAGE_HEIGHT,
    MAX_IMAGE_WIDTH,
    ThinLensCamera,
    get_camera_info,
    get_ray_jittered,
    setup_camera,
)

__all__ = [
    "MAX_IMAGE_HEIGHT",
    "MAX_IMAGE_WIDTH",
    "ThinLensCamera",
    "get_camera_info",
    "get_ray_jittered",
    "setup_camera",
]
