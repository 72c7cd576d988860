"""Ray-triangle intersection using the Moller-Trumbore algorithm.

The test works directly on the three vertex positions of a face and returns
the ray parameter together with the barycentric coordinates (u, v) of the hit,
so callers can interpolate per-vertex attributes with weights (1 - u - v, u, v).

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from phototrace.geometry.triangle import hit_triangle
    >>> # Use hit_triangle within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from phototrace.core.ray import PARALLEL_EPSILON

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class TriangleHit:
    """Result of a ray-triangle test.

    Attributes:
        hit: 1 if the ray hits the triangle within (t_min, t_max), else 0.
        t: The ray parameter of the hit. Only valid if hit == 1.
        u: Barycentric weight of the second vertex. Only valid if hit == 1.
        v: Barycentric weight of the third vertex. Only valid if hit == 1.
    """

    hit: ti.i32
    t: ti.f32
    u: ti.f32
    v: ti.f32


@ti.func
def hit_triangle(
    ray_origin: vec3,
    ray_direction: vec3,
    p0: vec3,
    p1: vec3,
    p2: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> TriangleHit:
    """Test a ray against the triangle (p0, p1, p2).

    With edges e1 = p1 - p0 and e2 = p2 - p0, the determinant
    det = e1 . (d x e2) vanishes when the ray is parallel to the triangle's
    plane; such rays are rejected instead of dividing by a tiny number.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction of the ray.
        p0: First vertex.
        p1: Second vertex.
        p2: Third vertex.
        t_min: Hits at or below this parameter are rejected (self-intersection).
        t_max: Hits at or beyond this parameter are rejected (closest so far).

    Returns:
        A TriangleHit record.
    """
    e1 = p1 - p0
    e2 = p2 - p0
    h = tm.cross(ray_direction, e2)
    det = tm.dot(e1, h)

    did_hit = 0
    hit_t = 0.0
    hit_u = 0.0
    hit_v = 0.0

    if ti.abs(det) >= PARALLEL_EPSILON:
        inv_det = 1.0 / det
        s = ray_origin - p0
        u = tm.dot(s, h) * inv_det
        if 0.0 <= u <= 1.0:
            q = tm.cross(s, e1)
            v = tm.dot(ray_direction, q) * inv_det
            if v >= 0.0 and u + v <= 1.0:
                t = tm.dot(e2, q) * inv_det
                if t_min < t < t_max:
                    did_hit = 1
                    hit_t = t
                    hit_u = u
                    hit_v = v

    return TriangleHit(hit=did_hit, t=hit_t, u=hit_u, v=hit_v)
