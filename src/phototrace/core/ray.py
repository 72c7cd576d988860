"""Ray data structure and vector utilities for Monte Carlo ray tracing.

This module provides the fundamental Ray dataclass together with the vector
helpers and sampling routines shared by the camera, the BSDF sampler and the
direct-lighting estimator. All operations are Taichi functions so they can be
inlined into rendering kernels.

Random numbers are never drawn here: sampling routines take their uniform
variates as arguments so that callers control the draw order.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> origin = ti.math.vec3(0.0, 0.0, 0.0)
    >>> direction = ti.math.vec3(0.0, 0.0, -1.0)
    >>> ray = Ray(origin=origin, direction=direction)
    >>> point = ray_at(ray, 5.0)  # Point 5 units along the ray
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Single-precision machine epsilon, used to detect parallel rays
PARALLEL_EPSILON = 1.1920929e-07


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Intersection
            routines assume unit length.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction."""
    return Ray(origin=origin, direction=direction)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def length_squared(v: vec3) -> ti.f32:
    """Compute the squared length of a vector.

    Args:
        v: The input vector.

    Returns:
        The squared Euclidean length of the vector.
    """
    return tm.dot(v, v)


@ti.func
def mean3(v: vec3) -> ti.f32:
    """Arithmetic mean of the three channels of a color."""
    return (v.x + v.y + v.z) / 3.0


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a normal.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (should be normalized).

    Returns:
        The mirrored direction vector.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(incident: vec3, normal: vec3, ior: ti.f32) -> vec3:
    """Refract an incident direction through a surface using Snell's law.

    Whether the ray enters or leaves the medium is decided by the sign of
    cos(incidence) = dot(normal, -incident): positive means the ray arrives
    from the side the normal points to (outside), so the relative index is
    1/ior; otherwise it is ior. When the implied sine of the transmitted
    angle exceeds one, the ray is totally internally reflected.

    Args:
        incident: The incoming direction (unit length).
        normal: The outward surface normal (unit length).
        ior: The index of refraction of the material.

    Returns:
        The refracted (or totally reflected) direction.
    """
    cos1 = tm.dot(normal, -incident)
    sin1 = ti.sqrt(ti.max(1.0 - cos1 * cos1, 0.0))
    sin2 = sin1 * ior
    if cos1 > 0.0:
        sin2 = sin1 / ior

    cos2 = ti.sqrt(ti.max(1.0 - sin2 * sin2, 0.0))
    result = incident - 2.0 * tm.dot(normal, incident) * normal
    if sin2 <= 1.0:
        if cos1 > 0.0:
            # Outside to inside
            result = incident / ior + (cos1 / ior - cos2) * normal
        else:
            # Inside to outside
            result = ior * incident + (ior * cos1 + cos2) * normal
    return result


# =============================================================================
# Local Frames and Sampling
# =============================================================================


@ti.func
def build_onb_from_normal(normal: vec3):
    """Build an orthonormal basis from a normal vector.

    Creates a local coordinate frame where the normal is the z-axis.

    Args:
        normal: The surface normal (should be normalized).

    Returns:
        A tuple (tangent, bitangent, normal) forming an orthonormal basis.
    """
    # Choose a vector not parallel to normal
    a = vec3(1.0, 0.0, 0.0)
    if ti.abs(normal.x) > 0.9:
        a = vec3(0.0, 1.0, 0.0)
    tangent = tm.normalize(tm.cross(a, normal))
    bitangent = tm.cross(normal, tangent)
    return tangent, bitangent, normal


@ti.func
def sample_around_axis(axis: vec3, cos_theta: ti.f32, phi: ti.f32) -> vec3:
    """Build a unit direction at polar angle theta and azimuth phi about an axis.

    Args:
        axis: The polar axis (unit length).
        cos_theta: Cosine of the polar angle measured from the axis.
        phi: Azimuth in radians.

    Returns:
        The direction in world space.
    """
    tangent, bitangent, n = build_onb_from_normal(axis)
    sin_theta = ti.sqrt(ti.max(1.0 - cos_theta * cos_theta, 0.0))
    return n * cos_theta + (tangent * ti.cos(phi) + bitangent * ti.sin(phi)) * sin_theta


@ti.func
def sample_cosine_hemisphere(normal: vec3, x: ti.f32, y: ti.f32) -> vec3:
    """Cosine-weighted hemisphere sampling (Malley's method).

    A point sampled uniformly on the unit disk is projected up onto the
    hemisphere: the normal component is sqrt(x) and the azimuth is 2*pi*y.
    The resulting density is cos(theta) / pi.

    Args:
        normal: The hemisphere axis (unit length).
        x: Uniform variate in [0, 1].
        y: Uniform variate in [0, 1].

    Returns:
        The sampled direction in world space.
    """
    return sample_around_axis(normal, ti.sqrt(x), 2.0 * tm.pi * y)


@ti.func
def sample_phong_lobe(axis: vec3, exponent: ti.f32, x: ti.f32, y: ti.f32) -> vec3:
    """Sample a Phong cosine-power lobe around an axis.

    cos(theta) = x^(1 / (exponent + 1)), so larger exponents concentrate
    samples near the axis.

    Args:
        axis: The lobe axis, typically the mirror direction (unit length).
        exponent: The Phong specular exponent Ns.
        x: Uniform variate in [0, 1].
        y: Uniform variate in [0, 1].

    Returns:
        The sampled direction in world space.
    """
    cos_theta = x ** (1.0 / (exponent + 1.0))
    return sample_around_axis(axis, cos_theta, 2.0 * tm.pi * y)


@ti.func
def sample_unit_disk(x: ti.f32, y: ti.f32):
    """Map two uniform variates to a uniformly distributed point on the unit disk.

    Uses radius sqrt(x) and angle 2*pi*y.

    Returns:
        A tuple (dx, dy) with dx^2 + dy^2 <= 1.
    """
    radius = ti.sqrt(x)
    angle = 2.0 * tm.pi * y
    return radius * ti.cos(angle), radius * ti.sin(angle)
