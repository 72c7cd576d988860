"""Core rendering module.

Components:
    ray: Ray struct, vector helpers, reflection/refraction and sampling
    quaternion: Host-side unit quaternion algebra (NumPy)
    integrator: Film buffer, path loop and rendering kernels
    progressive: Batched, callback-driven and time-bounded rendering

The integrator declares Taichi fields, so it is not imported here; import
phototrace.core.integrator or phototrace.core.progressive after ti.init().
"""

from .ray import (
    PARALLEL_EPSILON,
    Ray,
    build_onb_from_normal,
    length_squared,
    make_ray,
    mean3,
    ray_at,
    reflect,
    refract,
    sample_around_axis,
    sample_cosine_hemisphere,
    sample_phong_lobe,
    sample_unit_disk,
    vec3,
)

__all__ = [
    "PARALLEL_EPSILON",
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length_squared",
    "mean3",
    "reflect",
    "refract",
    "build_onb_from_normal",
    "sample_around_axis",
    "sample_cosine_hemisphere",
    "sample_phong_lobe",
    "sample_unit_disk",
]
