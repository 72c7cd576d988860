"""Geometry module for shape primitives and spatial acceleration.

Components:
    triangle: Moller-Trumbore ray-triangle intersection
    sphere: Sphere primitive with ray-sphere intersection and UV mapping
    bvh: Median-split bounding volume hierarchy over a triangle soup
    mesh: Triangle-soup container exchanged with loaders and the scene
    swept: Swept-surface generator (spline cross-sections to a Mesh)

Intersection routines are Taichi functions (@ti.func) meant to be inlined
into rendering kernels. The BVH and mesh modules declare Taichi fields
(directly or through the material registry), so ti.init() must run before
this package is imported.
"""

from .bvh import (
    LEAF_SIZE,
    MAX_TRIANGLES,
    FlatBVH,
    build_bvh,
    clear_bvh,
    hit_aabb,
    is_bvh_built,
    query_candidates,
    upload_bvh,
)
from .mesh import Mesh, merge_meshes, quad_mesh
from .sphere import HitRecord, Sphere, hit_sphere, sphere_uv
from .swept import Section, SplineType, load_swept_surface, sweep_sections
from .triangle import TriangleHit, hit_triangle

__all__ = [
    # BVH
    "LEAF_SIZE",
    "MAX_TRIANGLES",
    "FlatBVH",
    "build_bvh",
    "clear_bvh",
    "hit_aabb",
    "is_bvh_built",
    "query_candidates",
    "upload_bvh",
    # Mesh
    "Mesh",
    "merge_meshes",
    "quad_mesh",
    # Primitives
    "HitRecord",
    "Sphere",
    "hit_sphere",
    "sphere_uv",
    "TriangleHit",
    "hit_triangle",
    # Swept surfaces
    "Section",
    "SplineType",
    "load_swept_surface",
    "sweep_sections",
]
