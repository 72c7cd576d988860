"""Scene module for scene storage, assembly and loading.

Components:
    intersection: Device triangle-soup and sphere storage, nearest-hit and
        shadow queries
    loaders: Wavefront OBJ / MTL readers
    manager: SceneManager assembling materials, meshes, spheres and lights
    showcase: Ready-made demo and test scenes

Scene data lives in module-level Taichi fields:
    - Triangle soup in Structure-of-Arrays layout, traversed through the BVH
    - Spheres tested exhaustively after the triangles
    - One background radiance for escaping rays
"""

from .intersection import (
    MAX_SPHERES,
    T_INFINITY,
    T_MIN,
    SceneHitRecord,
    add_sphere,
    clear_scene,
    get_background,
    get_sphere_count,
    get_triangle_count,
    intersect_scene,
    intersect_scene_any,
    set_background,
    set_triangles,
)
from .loaders import MeshFormatError, load_mtl, load_obj
from .manager import MeshInfo, SceneManager, SphereInfo
from .showcase import (
    box_mesh,
    checker_texture,
    create_enclosed_box_scene,
    create_showcase_scene,
    trefoil_sections,
)

__all__ = [
    # Intersection module
    "MAX_SPHERES",
    "T_INFINITY",
    "T_MIN",
    "SceneHitRecord",
    "add_sphere",
    "clear_scene",
    "get_background",
    "get_sphere_count",
    "get_triangle_count",
    "intersect_scene",
    "intersect_scene_any",
    "set_background",
    "set_triangles",
    # Loaders
    "MeshFormatError",
    "load_mtl",
    "load_obj",
    # Manager module
    "MeshInfo",
    "SceneManager",
    "SphereInfo",
    # Showcase scenes
    "box_mesh",
    "checker_texture",
    "create_enclosed_box_scene",
    "create_showcase_scene",
    "trefoil_sections",
]
