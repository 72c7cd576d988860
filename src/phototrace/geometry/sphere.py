"""Sphere primitive with analytic ray-sphere intersection and UV mapping.

The intersection solves |origin + t * direction - center|^2 = radius^2 for a
unit-length direction using the half-b form relative to the sphere center:

    delta = center - origin
    b = dot(delta, direction)
    c = dot(delta, delta) - radius^2
    t = b -/+ sqrt(b^2 - c)

Texture coordinates are spherical coordinates of the outward normal after it
has been rotated into the sphere's own orientation frame, so a textured sphere
can be spun independently of its position.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from phototrace.geometry.sphere import Sphere, hit_sphere
    >>> sphere = Sphere(center=ti.math.vec3(0, 0, -1), radius=0.5,
    ...                 rotation=ti.math.mat3([[1, 0, 0], [0, 1, 0], [0, 0, 1]]))
    >>> # Use hit_sphere within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

# Type aliases using Taichi's math module
vec2 = tm.vec2
vec3 = tm.vec3
mat3 = tm.mat3


@ti.dataclass
class Sphere:
    """A sphere defined by center point, radius and UV orientation.

    Attributes:
        center: The center point of the sphere (vec3).
        radius: The radius of the sphere (positive float).
        rotation: Rotation matrix applied to the surface normal before the
            spherical UV mapping.
    """

    center: vec3
    radius: ti.f32
    rotation: mat3


@ti.dataclass
class HitRecord:
    """Record of a ray-sphere intersection.

    Attributes:
        hit: Whether the ray intersected the sphere (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
            Only valid if hit == 1.
        normal: The outward radial surface normal (unit length).
            Only valid if hit == 1.
        uv: Spherical texture coordinates in [-0.5, 0.5] x [0, 1].
            Only valid if hit == 1.
    """

    hit: ti.i32
    t: ti.f32
    normal: vec3
    uv: vec2


@ti.func
def sphere_uv(rotation: mat3, normal: vec3) -> vec2:
    """Map a surface normal to spherical texture coordinates.

    Args:
        rotation: The sphere's orientation as a rotation matrix.
        normal: The outward unit normal at the hit point.

    Returns:
        (atan2(y, x) / 2pi, acos(z) / pi) of the rotated normal.
    """
    o = rotation @ normal
    z = tm.clamp(o.z, -1.0, 1.0)
    return vec2(ti.atan2(o.y, o.x) / (2.0 * tm.pi), ti.acos(z) / tm.pi)


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    sphere: Sphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-sphere intersection.

    Both roots are examined and the smallest one inside (t_min, t_max) is
    accepted, so a ray starting inside the sphere reports the far wall.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The unit direction of the ray.
        sphere: The sphere to test intersection against.
        t_min: Minimum t value to consider a valid hit (avoids self-intersection).
        t_max: Maximum t value to consider a valid hit (closest hit so far).

    Returns:
        A HitRecord containing intersection information. Check hit field
        to determine if intersection occurred.
    """
    delta = sphere.center - ray_origin
    b = tm.dot(delta, ray_direction)
    c = tm.dot(delta, delta) - sphere.radius * sphere.radius
    discriminant = b * b - c

    # Initialize result fields (Taichi requires outer-scope declaration)
    did_hit = 0
    hit_t = 0.0
    hit_normal = vec3(0.0, 0.0, 0.0)
    hit_uv = vec2(0.0, 0.0)

    if discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)

        t = b - sqrt_d
        valid = t_min < t < t_max
        if not valid:
            t = b + sqrt_d
            valid = t_min < t < t_max

        if valid:
            did_hit = 1
            hit_t = t
            hit_normal = tm.normalize(t * ray_direction - delta)
            hit_uv = sphere_uv(sphere.rotation, hit_normal)

    return HitRecord(hit=did_hit, t=hit_t, normal=hit_normal, uv=hit_uv)
