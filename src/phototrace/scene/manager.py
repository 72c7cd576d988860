"""Scene manager: assembles geometry, materials and lights for rendering.

The SceneManager is the host-side owner of a scene. It keeps the
concatenated triangle soup in NumPy arrays, registers materials, spheres and
lights in their Taichi registries as they are added, and on build() uploads
the triangles and builds and uploads the BVH. Rendering reads only the
device fields, so exactly one scene is active at a time; creating a
SceneManager clears the previous one.

Material ids form a single space. A mesh brings its own material list; when
it is added, those materials are registered and the mesh's per-face indices
are offset by the number of materials registered before it.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from phototrace.scene.manager import SceneManager
    >>> from phototrace.materials.material import Material
    >>> from phototrace.lights.light import Light
    >>> scene = SceneManager()
    >>> scene.add_sphere((0, 0, 0), 1.0, Material(kd=(0.8, 0.3, 0.3)))
    0
    >>> scene.add_light(Light.sun(direction=(0, 0, -1), color=(3, 3, 3)))
    0
    >>> scene.build()
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from phototrace.core import quaternion
from phototrace.geometry.bvh import FlatBVH, build_bvh, upload_bvh
from phototrace.geometry.mesh import Mesh
from phototrace.lights.light import Light, add_light, clear_lights
from phototrace.materials.material import Material, add_material, clear_materials
from phototrace.materials.texture import clear_textures
from phototrace.scene.intersection import (
    MAX_TRIANGLES,
    add_sphere,
    clear_scene,
    get_background,
    get_sphere_count,
    get_triangle_count,
    set_background,
    set_triangles,
)

logger = logging.getLogger(__name__)


@dataclass
class MeshInfo:
    """Where a mesh landed in the scene's triangle soup.

    Attributes:
        face_offset: Index of the mesh's first face in the scene.
        face_count: Number of faces.
        material_offset: Scene material id of the mesh's material 0.
    """

    face_offset: int
    face_count: int
    material_offset: int


@dataclass
class SphereInfo:
    """Information about a sphere in the scene.

    Attributes:
        sphere_index: The index in the sphere storage arrays.
        center: The center of the sphere.
        radius: The radius of the sphere.
        material_id: The material ID assigned to the sphere.
        orientation: Unit quaternion (w, x, y, z) of the UV frame.
    """

    sphere_index: int
    center: tuple[float, float, float]
    radius: float
    material_id: int
    orientation: tuple[float, float, float, float]


class SceneManager:
    """Host-side scene assembly.

    Attributes:
        materials: Registered materials, indexed by material id.
        meshes: Placement of every added mesh.
        spheres: Every added sphere.
        lights: Every added light.
    """

    def __init__(self) -> None:
        """Initialize an empty scene, clearing any previously active one."""
        self.materials: list[Material] = []
        self.meshes: list[MeshInfo] = []
        self.spheres: list[SphereInfo] = []
        self.lights: list[Light] = []
        self._clear_all()

    def _clear_all(self) -> None:
        """Clear all scene data including Taichi fields."""
        clear_scene()
        clear_materials()
        clear_textures()
        clear_lights()
        self.materials.clear()
        self.meshes.clear()
        self.spheres.clear()
        self.lights.clear()
        self._vertices: list[npt.NDArray[np.float32]] = []
        self._normals: list[npt.NDArray[np.float32]] = []
        self._uvs: list[npt.NDArray[np.float32]] = []
        self._face_materials: list[npt.NDArray[np.int32]] = []
        self._face_count = 0
        self._bvh: FlatBVH | None = None
        self._built = False

    def clear(self) -> None:
        """Clear the entire scene."""
        self._clear_all()

    # =========================================================================
    # Materials
    # =========================================================================

    def add_material(self, material: Material) -> int:
        """Register a material and return its id.

        Raises:
            RuntimeError: If the maximum number of materials or textures is
                exceeded.
        """
        material_id = add_material(material)
        self.materials.append(material)
        return material_id

    def get_material_count(self) -> int:
        """Get the total number of materials in the scene."""
        return len(self.materials)

    def _resolve_material(self, material: Material | int) -> int:
        if isinstance(material, Material):
            return self.add_material(material)
        material_id = int(material)
        if not 0 <= material_id < len(self.materials):
            raise ValueError(f"Invalid material_id: {material_id}")
        return material_id

    # =========================================================================
    # Geometry
    # =========================================================================

    def add_mesh(self, mesh: Mesh) -> MeshInfo:
        """Append a mesh's triangles and register its materials.

        Raises:
            ValueError: If the mesh is inconsistent.
            RuntimeError: If the scene would exceed MAX_TRIANGLES faces.
        """
        mesh.validate()
        if self._face_count + mesh.face_count > MAX_TRIANGLES:
            raise RuntimeError(
                f"Maximum number of triangles ({MAX_TRIANGLES}) exceeded: "
                f"{self._face_count} + {mesh.face_count}"
            )

        material_offset = len(self.materials)
        for material in mesh.materials:
            self.add_material(material)

        info = MeshInfo(
            face_offset=self._face_count,
            face_count=mesh.face_count,
            material_offset=material_offset,
        )
        self._vertices.append(mesh.vertices)
        self._normals.append(mesh.normals)
        self._uvs.append(mesh.uvs)
        self._face_materials.append(mesh.face_materials + material_offset)
        self._face_count += mesh.face_count
        self.meshes.append(info)
        self._built = False
        return info

    def add_sphere(
        self,
        center: Sequence[float],
        radius: float,
        material: Material | int,
        orientation: Sequence[float] = quaternion.IDENTITY,
    ) -> int:
        """Add a sphere.

        Args:
            center: The center point of the sphere as (x, y, z).
            radius: The radius of the sphere; must be positive.
            material: A new Material to register, or the id of a registered one.
            orientation: Unit quaternion (w, x, y, z) rotating the sphere's
                texture frame.

        Returns:
            The index of the added sphere.

        Raises:
            ValueError: If the radius is not positive or the material id is invalid.
            RuntimeError: If the maximum number of spheres is exceeded.
        """
        if radius <= 0.0:
            raise ValueError(f"Sphere radius must be positive, got {radius}")
        q = quaternion.as_quaternion(orientation)
        material_id = self._resolve_material(material)
        sphere_index = add_sphere(center, radius, material_id, quaternion.to_rotation_matrix(q))
        self.spheres.append(
            SphereInfo(
                sphere_index=sphere_index,
                center=tuple(float(c) for c in center),
                radius=float(radius),
                material_id=material_id,
                orientation=tuple(float(c) for c in q),
            )
        )
        return sphere_index

    # =========================================================================
    # Lighting
    # =========================================================================

    def add_light(self, light: Light) -> int:
        """Add a light and return its index."""
        index = add_light(light)
        self.lights.append(light)
        return index

    def set_background(self, color: Sequence[float]) -> None:
        """Set the radiance of rays that escape the scene."""
        set_background(color)

    @property
    def background(self) -> tuple[float, float, float]:
        return get_background()

    # =========================================================================
    # Build
    # =========================================================================

    @property
    def is_built(self) -> bool:
        """Whether the device triangle soup and BVH match the added meshes."""
        return self._built

    @property
    def bvh(self) -> FlatBVH | None:
        """The last built hierarchy, or None before build()."""
        return self._bvh

    def triangle_soup(self) -> tuple[npt.NDArray[np.float32], ...]:
        """Concatenated (vertices, normals, uvs, face_materials) of all meshes."""
        if not self._vertices:
            return (
                np.zeros((0, 3), dtype=np.float32),
                np.zeros((0, 3), dtype=np.float32),
                np.zeros((0, 2), dtype=np.float32),
                np.zeros(0, dtype=np.int32),
            )
        return (
            np.concatenate(self._vertices),
            np.concatenate(self._normals),
            np.concatenate(self._uvs),
            np.concatenate(self._face_materials),
        )

    def build(self) -> FlatBVH:
        """Upload the triangle soup and build and upload its BVH.

        A scene without triangles gets an empty hierarchy, so rays only
        test spheres.

        Returns:
            The flattened hierarchy.
        """
        vertices, normals, uvs, face_materials = self.triangle_soup()
        set_triangles(vertices, normals, uvs, face_materials)
        self._bvh = build_bvh(vertices)
        upload_bvh(self._bvh)
        self._built = True
        logger.info(
            "Scene built: %d triangles, %d spheres, %d materials, %d lights, %d BVH nodes",
            self._face_count,
            len(self.spheres),
            len(self.materials),
            len(self.lights),
            self._bvh.node_count,
        )
        return self._bvh

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def get_triangle_count(self) -> int:
        """Number of triangles added so far (uploaded or not)."""
        return self._face_count

    def get_uploaded_triangle_count(self) -> int:
        """Number of triangles currently in the device fields."""
        return get_triangle_count()

    def get_sphere_count(self) -> int:
        """Get the number of spheres in the scene."""
        return get_sphere_count()

    def get_light_count(self) -> int:
        """Get the number of lights in the scene."""
        return len(self.lights)

    def __repr__(self) -> str:
        return (
            f"SceneManager(triangles={self._face_count}, spheres={len(self.spheres)}, "
            f"materials={len(self.materials)}, lights={len(self.lights)}, built={self._built})"
        )
