"""Triangle-soup mesh container.

A Mesh is the value type exchanged between geometry producers (file loaders,
the swept-surface generator, procedural helpers) and the SceneManager. Faces
are stored unindexed: three consecutive entries of ``vertices``, ``normals``
and ``uvs`` describe one face, and ``face_materials`` holds one index per face
into the mesh's own ``materials`` list.

Example:
    >>> from phototrace.geometry.mesh import Mesh, quad_mesh
    >>> from phototrace.materials.material import Material
    >>> floor = quad_mesh((-5, -5, 0), (10, 0, 0), (0, 10, 0), Material())
    >>> floor.face_count
    2
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np
import numpy.typing as npt

from phototrace.materials.material import Material


class MeshFormatError(ValueError):
    """Raised when a geometry or material file cannot be parsed."""


@dataclass
class Mesh:
    """An unindexed triangle soup with per-vertex attributes.

    Attributes:
        vertices: (3F, 3) vertex positions.
        normals: (3F, 3) per-vertex normals.
        uvs: (3F, 2) per-vertex texture coordinates.
        face_materials: (F,) index into ``materials`` per face.
        materials: Materials referenced by this mesh.
    """

    vertices: npt.NDArray[np.float32]
    normals: npt.NDArray[np.float32]
    uvs: npt.NDArray[np.float32]
    face_materials: npt.NDArray[np.int32]
    materials: list[Material] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.vertices = np.asarray(self.vertices, dtype=np.float32).reshape(-1, 3)
        self.normals = np.asarray(self.normals, dtype=np.float32).reshape(-1, 3)
        self.uvs = np.asarray(self.uvs, dtype=np.float32).reshape(-1, 2)
        self.face_materials = np.asarray(self.face_materials, dtype=np.int32).reshape(-1)
        self.validate()

    @property
    def face_count(self) -> int:
        """Number of triangles."""
        return int(self.face_materials.shape[0])

    def validate(self) -> None:
        """Check the triangle-soup invariants.

        Raises:
            ValueError: If the attribute arrays disagree in length or a face
                references a material outside ``materials``.
        """
        n = self.vertices.shape[0]
        if n % 3 != 0:
            raise ValueError(f"Mesh must have 3 vertices per face, got {n} vertices")
        if self.normals.shape[0] != n or self.uvs.shape[0] != n:
            raise ValueError(
                f"Mesh attribute lengths differ: {n} vertices, "
                f"{self.normals.shape[0]} normals, {self.uvs.shape[0]} uvs"
            )
        if self.face_materials.shape[0] * 3 != n:
            raise ValueError(
                f"Mesh has {n // 3} faces but {self.face_materials.shape[0]} face material indices"
            )
        if self.face_count > 0:
            lo = int(self.face_materials.min())
            hi = int(self.face_materials.max())
            if lo < 0 or hi >= len(self.materials):
                raise ValueError(
                    f"Face material indices must lie in [0, {len(self.materials)}), "
                    f"got range [{lo}, {hi}]"
                )

    @classmethod
    def empty(cls) -> Mesh:
        """A mesh with no faces."""
        return cls(
            vertices=np.zeros((0, 3), dtype=np.float32),
            normals=np.zeros((0, 3), dtype=np.float32),
            uvs=np.zeros((0, 2), dtype=np.float32),
            face_materials=np.zeros(0, dtype=np.int32),
        )

    @classmethod
    def from_triangles(
        cls,
        vertices: npt.ArrayLike,
        material: Material,
        uvs: npt.ArrayLike | None = None,
    ) -> Mesh:
        """Build a flat-shaded single-material mesh from vertex positions.

        Each face gets its geometric normal (right-handed winding) on all
        three vertices.

        Args:
            vertices: (3F, 3) vertex positions.
            material: Material applied to every face.
            uvs: Optional (3F, 2) texture coordinates; zeros when omitted.
        """
        verts = np.asarray(vertices, dtype=np.float32).reshape(-1, 3)
        tris = verts.reshape(-1, 3, 3)
        face_normals = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
        lengths = np.linalg.norm(face_normals, axis=1, keepdims=True)
        face_normals = face_normals / np.maximum(lengths, 1e-12)
        normals = np.repeat(face_normals, 3, axis=0)
        if uvs is None:
            uvs = np.zeros((verts.shape[0], 2), dtype=np.float32)
        return cls(
            vertices=verts,
            normals=normals,
            uvs=uvs,
            face_materials=np.zeros(tris.shape[0], dtype=np.int32),
            materials=[material],
        )


def quad_mesh(
    corner: Sequence[float],
    edge_u: Sequence[float],
    edge_v: Sequence[float],
    material: Material,
) -> Mesh:
    """Two triangles spanning the parallelogram corner + s*edge_u + t*edge_v.

    The normal is normalize(edge_u x edge_v) and UVs run from (0, 0) at the
    corner to (1, 1) at the opposite corner.
    """
    q = np.asarray(corner, dtype=np.float32)
    u = np.asarray(edge_u, dtype=np.float32)
    v = np.asarray(edge_v, dtype=np.float32)
    vertices = np.array([q, q + u, q + u + v, q, q + u + v, q + v], dtype=np.float32)
    uvs = np.array([[0, 0], [1, 0], [1, 1], [0, 0], [1, 1], [0, 1]], dtype=np.float32)
    return Mesh.from_triangles(vertices, material, uvs=uvs)


def merge_meshes(meshes: Sequence[Mesh]) -> Mesh:
    """Concatenate meshes, re-indexing each mesh's materials into one list."""
    if not meshes:
        return Mesh.empty()
    materials: list[Material] = []
    face_materials = []
    for mesh in meshes:
        face_materials.append(mesh.face_materials + len(materials))
        materials.extend(mesh.materials)
    return Mesh(
        vertices=np.concatenate([m.vertices for m in meshes]),
        normals=np.concatenate([m.normals for m in meshes]),
        uvs=np.concatenate([m.uvs for m in meshes]),
        face_materials=np.concatenate(face_materials),
        materials=materials,
    )
