"""Scene-level primitive intersection testing.

This module stores the scene's triangle soup and spheres in Taichi fields and
resolves the nearest hit of a ray against all of them. Triangles are reached
through the BVH uploaded by geometry.bvh; spheres are few and are tested
exhaustively.

A hit carries the interpolated shading normal and texture coordinates:
barycentric interpolation of per-vertex attributes for triangles, the radial
normal and the spherical mapping for spheres.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from phototrace.scene.intersection import add_sphere, intersect_scene, T_MIN
    >>> add_sphere((0, 0, 0), 1.0, material_id=0)
    >>> # Use intersect_scene(origin, direction, T_MIN, 1e30) within a Taichi kernel
"""

from collections.abc import Sequence

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from phototrace.core.ray import length_squared
from phototrace.geometry.bvh import (
    MAX_STACK_DEPTH,
    MAX_TRIANGLES,
    bvh_bbox_max,
    bvh_bbox_min,
    bvh_left,
    bvh_prim_count,
    bvh_prim_indices,
    bvh_prim_start,
    bvh_right,
    clear_bvh,
    hit_aabb,
    num_bvh_nodes,
)
from phototrace.geometry.sphere import Sphere, hit_sphere
from phototrace.geometry.triangle import hit_triangle

# Type aliases using Taichi's math module
vec2 = tm.vec2
vec3 = tm.vec3

# Hits closer than this are treated as self-intersections
T_MIN = 1e-5

# Stand-in for an unbounded ray
T_INFINITY = 1e30


@ti.dataclass
class SceneHitRecord:
    """Record of the nearest ray-scene intersection.

    Attributes:
        hit: 1 if the ray intersected any primitive, 0 on a miss.
        t: Ray parameter of the hit. Only valid if hit == 1.
        point: The 3D point where the ray intersected the surface.
        normal: Interpolated unit shading normal. Not flipped toward the ray.
        uv: Interpolated texture coordinates.
        material_id: Material of the hit primitive, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    uv: vec2
    material_id: ti.i32


# Maximum number of spheres in the scene
MAX_SPHERES = 1024

# Triangle soup storage: three consecutive vertex slots per face
tri_vertices = ti.Vector.field(3, dtype=ti.f32, shape=3 * MAX_TRIANGLES)
tri_normals = ti.Vector.field(3, dtype=ti.f32, shape=3 * MAX_TRIANGLES)
tri_uvs = ti.Vector.field(2, dtype=ti.f32, shape=3 * MAX_TRIANGLES)
tri_material_ids = ti.field(dtype=ti.i32, shape=MAX_TRIANGLES)
num_triangles = ti.field(dtype=ti.i32, shape=())

# Sphere storage: Structure of Arrays layout
sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
sphere_rotations = ti.Matrix.field(3, 3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_material_ids = ti.field(dtype=ti.i32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Radiance returned by rays that escape the scene
background = ti.Vector.field(3, dtype=ti.f32, shape=())


def clear_scene() -> None:
    """Remove all primitives, the BVH and the background radiance."""
    num_triangles[None] = 0
    num_spheres[None] = 0
    background[None] = vec3(0.0, 0.0, 0.0)
    clear_bvh()


@ti.kernel
def _upload_triangles(
    vertices: ti.types.ndarray(),
    normals: ti.types.ndarray(),
    uvs: ti.types.ndarray(),
    face_materials: ti.types.ndarray(),
):
    for i in range(vertices.shape[0]):
        tri_vertices[i] = vec3(vertices[i, 0], vertices[i, 1], vertices[i, 2])
        tri_normals[i] = vec3(normals[i, 0], normals[i, 1], normals[i, 2])
        tri_uvs[i] = vec2(uvs[i, 0], uvs[i, 1])
    for f in range(face_materials.shape[0]):
        tri_material_ids[f] = face_materials[f]


def set_triangles(
    vertices: npt.NDArray[np.float32],
    normals: npt.NDArray[np.float32],
    uvs: npt.NDArray[np.float32],
    face_materials: npt.NDArray[np.int32],
) -> None:
    """Replace the scene's triangle soup.

    Args:
        vertices: (3F, 3) positions.
        normals: (3F, 3) per-vertex normals.
        uvs: (3F, 2) per-vertex texture coordinates.
        face_materials: (F,) material id per face.

    Raises:
        ValueError: If the arrays are inconsistent.
        RuntimeError: If F exceeds MAX_TRIANGLES.
    """
    face_count = int(face_materials.shape[0])
    if vertices.shape[0] != 3 * face_count:
        raise ValueError(f"Expected {3 * face_count} vertices for {face_count} faces, got {vertices.shape[0]}")
    if face_count > MAX_TRIANGLES:
        raise RuntimeError(f"Maximum number of triangles ({MAX_TRIANGLES}) exceeded: {face_count}")
    if face_count > 0:
        _upload_triangles(
            np.ascontiguousarray(vertices, dtype=np.float32),
            np.ascontiguousarray(normals, dtype=np.float32),
            np.ascontiguousarray(uvs, dtype=np.float32),
            np.ascontiguousarray(face_materials, dtype=np.int32),
        )
    num_triangles[None] = face_count


def add_sphere(
    center: Sequence[float],
    radius: float,
    material_id: int = 0,
    rotation: npt.ArrayLike | None = None,
) -> int:
    """Add a sphere to the scene.

    Args:
        center: The center point of the sphere.
        radius: The radius of the sphere.
        material_id: The material ID to associate with this sphere.
        rotation: Optional 3x3 rotation applied to normals before the UV
            mapping. Defaults to the identity.

    Returns:
        The index of the added sphere.

    Raises:
        ValueError: If the radius is not positive.
        RuntimeError: If the maximum number of spheres is exceeded.
    """
    if radius <= 0.0:
        raise ValueError(f"Sphere radius must be positive, got {radius}")
    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
    rot = np.eye(3, dtype=np.float32) if rotation is None else np.asarray(rotation, dtype=np.float32)
    sphere_centers[idx] = vec3(float(center[0]), float(center[1]), float(center[2]))
    sphere_radii[idx] = radius
    sphere_rotations[idx] = ti.Matrix(rot.tolist())
    sphere_material_ids[idx] = material_id
    num_spheres[None] = idx + 1
    return idx


def set_background(color: Sequence[float]) -> None:
    """Set the radiance seen by rays that leave the scene."""
    background[None] = vec3(float(color[0]), float(color[1]), float(color[2]))


def get_background() -> tuple[float, float, float]:
    """Get the background radiance."""
    c = background[None]
    return (float(c[0]), float(c[1]), float(c[2]))


def get_triangle_count() -> int:
    """Get the number of triangles in the scene."""
    return int(num_triangles[None])


def get_sphere_count() -> int:
    """Get the number of spheres in the scene."""
    return int(num_spheres[None])


@ti.func
def _nearest_triangle(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
    any_hit: ti.template(),
):
    """Walk the BVH and test the triangles of every leaf the ray reaches.

    Boxes are clipped to the closest hit found so far, so subtrees entirely
    behind it are skipped. With any_hit the walk stops at the first hit.

    Returns:
        A tuple (face, t, u, v); face is -1 when nothing was hit.
    """
    closest_t = t_max
    face = -1
    bary_u = 0.0
    bary_v = 0.0

    stack = ti.Vector([0 for _ in range(MAX_STACK_DEPTH)], dt=ti.i32)
    stack_ptr = 0
    node = 0
    active = 1
    if num_bvh_nodes[None] == 0:
        active = 0

    while active == 1:
        descended = 0
        if hit_aabb(bvh_bbox_min[node], bvh_bbox_max[node], ray_origin, ray_direction, 0.0, closest_t):
            if bvh_left[node] < 0:
                start = bvh_prim_start[node]
                for k in range(bvh_prim_count[node]):
                    f = bvh_prim_indices[start + k]
                    rec = hit_triangle(
                        ray_origin,
                        ray_direction,
                        tri_vertices[3 * f],
                        tri_vertices[3 * f + 1],
                        tri_vertices[3 * f + 2],
                        t_min,
                        closest_t,
                    )
                    if rec.hit == 1:
                        closest_t = rec.t
                        face = f
                        bary_u = rec.u
                        bary_v = rec.v
            else:
                if stack_ptr < MAX_STACK_DEPTH:
                    stack[stack_ptr] = bvh_left[node]
                    stack_ptr += 1
                node = bvh_right[node]
                descended = 1
        if descended == 0:
            if stack_ptr == 0:
                active = 0
            else:
                stack_ptr -= 1
                node = stack[stack_ptr]
        if ti.static(any_hit):
            if face >= 0:
                active = 0

    return face, closest_t, bary_u, bary_v


@ti.func
def _make_miss_record() -> SceneHitRecord:
    """Create a SceneHitRecord indicating no intersection."""
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        uv=vec2(0.0, 0.0),
        material_id=-1,
    )


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Find the nearest primitive hit by a ray.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The unit direction of the ray.
        t_min: Hits at or below this parameter are ignored (use T_MIN).
        t_max: Hits at or beyond this parameter are ignored.

    Returns:
        A SceneHitRecord for the closest hit, or a miss record.
    """
    result = _make_miss_record()

    face, closest_t, u, v = _nearest_triangle(ray_origin, ray_direction, t_min, t_max, False)
    if face >= 0:
        w = 1.0 - u - v
        i0 = 3 * face
        n = w * tri_normals[i0] + u * tri_normals[i0 + 1] + v * tri_normals[i0 + 2]
        if length_squared(n) < 1e-20:
            # Degenerate vertex normals; use the geometric normal
            n = tm.cross(tri_vertices[i0 + 1] - tri_vertices[i0], tri_vertices[i0 + 2] - tri_vertices[i0])
        result = SceneHitRecord(
            hit=1,
            t=closest_t,
            point=ray_origin + closest_t * ray_direction,
            normal=tm.normalize(n),
            uv=w * tri_uvs[i0] + u * tri_uvs[i0 + 1] + v * tri_uvs[i0 + 2],
            material_id=tri_material_ids[face],
        )

    for i in range(num_spheres[None]):
        sphere = Sphere(center=sphere_centers[i], radius=sphere_radii[i], rotation=sphere_rotations[i])
        rec = hit_sphere(ray_origin, ray_direction, sphere, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = SceneHitRecord(
                hit=1,
                t=rec.t,
                point=ray_origin + rec.t * ray_direction,
                normal=rec.normal,
                uv=rec.uv,
                material_id=sphere_material_ids[i],
            )

    return result


@ti.func
def intersect_scene_any(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Test if a ray hits any primitive in (t_min, t_max) (shadow ray query).

    Returns:
        1 if any primitive was hit, 0 otherwise.
    """
    face, _t, _u, _v = _nearest_triangle(ray_origin, ray_direction, t_min, t_max, True)
    hit_any = 0
    if face >= 0:
        hit_any = 1

    for i in range(num_spheres[None]):
        if hit_any == 0:
            sphere = Sphere(center=sphere_centers[i], radius=sphere_radii[i], rotation=sphere_rotations[i])
            rec = hit_sphere(ray_origin, ray_direction, sphere, t_min, t_max)
            if rec.hit == 1:
                hit_any = 1

    return hit_any
