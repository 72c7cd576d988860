"""Wavefront OBJ and MTL readers.

``load_obj`` turns an OBJ file into a triangle-soup Mesh whose materials come
from the MTL libraries the file references. Polygons are fan-triangulated
around their first vertex. Texture coordinates are flipped vertically,
``(u, 1 - v)``, so that v = 0 addresses the top image row like the texture
store does.

Example:
    >>> from phototrace.scene.loaders import load_obj
    >>> mesh = load_obj("assets/bunny.obj")
    >>> scene.add_mesh(mesh)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path

import numpy as np

from phototrace.geometry.mesh import Mesh, MeshFormatError
from phototrace.materials.material import IllumModel, Material
from phototrace.materials.texture import Texture, load_texture

logger = logging.getLogger(__name__)

__all__ = ["MeshFormatError", "load_mtl", "load_obj"]

_COLOR_KEYS = {"Ka": "ka", "Kd": "kd", "Ks": "ks", "Kr": "kr"}
_SCALAR_KEYS = {"Ns": "ns", "Ni": "ni"}


def _tokenize(path: Path):
    """Yield (line_number, keyword, args) for every non-empty line."""
    with path.open("r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            tokens = line.split("#", 1)[0].split()
            if tokens:
                yield line_number, tokens[0], tokens[1:]


def _floats(path: Path, line_number: int, args: list[str], count: int) -> list[float]:
    if len(args) < count:
        raise MeshFormatError(
            f"{path}:{line_number}: expected {count} numbers, got {len(args)}"
        )
    try:
        return [float(a) for a in args[:count]]
    except ValueError as e:
        raise MeshFormatError(f"{path}:{line_number}: {e}") from e


# =============================================================================
# MTL
# =============================================================================


def load_mtl(path: str | PathLike[str]) -> list[Material]:
    """Read every material of an MTL file, in file order.

    Texture paths in ``map_Kd`` are resolved relative to the MTL file. The
    same image referenced twice is loaded once.

    Raises:
        FileNotFoundError: If the file does not exist.
        MeshFormatError: If a line is malformed, a property precedes the
            first ``newmtl``, or a value is out of range.
    """
    path = Path(path)
    materials: list[Material] = []
    textures: dict[Path, Texture] = {}
    current: dict | None = None
    start_line = 0

    def finish() -> None:
        if current is None:
            return
        try:
            materials.append(Material(**current))
        except ValueError as e:
            raise MeshFormatError(f"{path}:{start_line}: material {current['name']!r}: {e}") from e

    for line_number, keyword, args in _tokenize(path):
        if keyword == "newmtl":
            finish()
            if not args:
                raise MeshFormatError(f"{path}:{line_number}: newmtl without a name")
            current = {"name": " ".join(args)}
            start_line = line_number
            continue

        if current is None:
            raise MeshFormatError(f"{path}:{line_number}: '{keyword}' before any newmtl")

        if keyword in _COLOR_KEYS:
            current[_COLOR_KEYS[keyword]] = tuple(_floats(path, line_number, args, 3))
        elif keyword in _SCALAR_KEYS:
            current[_SCALAR_KEYS[keyword]] = _floats(path, line_number, args, 1)[0]
        elif keyword == "illum":
            model = int(_floats(path, line_number, args, 1)[0])
            current["illum"] = IllumModel.REFRACTION if model == IllumModel.REFRACTION else IllumModel.BASIC
        elif keyword == "map_Kd":
            if not args:
                raise MeshFormatError(f"{path}:{line_number}: map_Kd without a file name")
            texture_path = (path.parent / args[-1]).resolve()
            if texture_path not in textures:
                try:
                    textures[texture_path] = load_texture(texture_path)
                except OSError as e:
                    raise MeshFormatError(f"{path}:{line_number}: {e}") from e
            current["texture"] = textures[texture_path]
        else:
            logger.debug("%s:%d: ignoring '%s'", path, line_number, keyword)

    finish()
    logger.info("Loaded %d materials from %s", len(materials), path)
    return materials


# =============================================================================
# OBJ
# =============================================================================


@dataclass
class _ObjState:
    positions: list[list[float]] = field(default_factory=list)
    uvs: list[list[float]] = field(default_factory=list)
    normals: list[list[float]] = field(default_factory=list)
    library: dict[str, int] = field(default_factory=dict)
    materials: list[Material] = field(default_factory=list)
    default_material: int = -1
    current_material: int = -1


def _resolve_index(path: Path, line_number: int, token: str, count: int, kind: str) -> int:
    try:
        index = int(token)
    except ValueError as e:
        raise MeshFormatError(f"{path}:{line_number}: bad {kind} index {token!r}") from e
    resolved = index - 1 if index > 0 else count + index
    if index == 0 or not 0 <= resolved < count:
        raise MeshFormatError(
            f"{path}:{line_number}: {kind} index {index} out of range (have {count})"
        )
    return resolved


def _parse_vertex_ref(
    path: Path, line_number: int, ref: str, state: _ObjState
) -> tuple[int, int, int]:
    """Parse ``v``, ``v/vt``, ``v//vn`` or ``v/vt/vn`` into 0-based indices (-1 if absent)."""
    parts = ref.split("/")
    if len(parts) > 3 or not parts[0]:
        raise MeshFormatError(f"{path}:{line_number}: bad face vertex {ref!r}")
    v = _resolve_index(path, line_number, parts[0], len(state.positions), "vertex")
    vt = -1
    vn = -1
    if len(parts) > 1 and parts[1]:
        vt = _resolve_index(path, line_number, parts[1], len(state.uvs), "texture coordinate")
    if len(parts) > 2 and parts[2]:
        vn = _resolve_index(path, line_number, parts[2], len(state.normals), "normal")
    return v, vt, vn


def load_obj(path: str | PathLike[str]) -> Mesh:
    """Read an OBJ file into a triangle-soup Mesh.

    Supported statements are ``v``, ``vt``, ``vn``, ``f``, ``o``, ``usemtl``
    and ``mtllib``; others are skipped. Faces before any ``usemtl``, or
    after an ``o``, use a default Material appended to the mesh on demand,
    as do faces naming a material no library defines. A face vertex without
    a normal gets the face's geometric normal; one without a texture
    coordinate gets (0, 0).

    Raises:
        FileNotFoundError: If the OBJ file or a referenced MTL file is missing.
        MeshFormatError: If a line is malformed or an index is out of range.
    """
    path = Path(path)
    state = _ObjState()
    vertices: list[np.ndarray] = []
    normals: list[np.ndarray] = []
    uvs: list[np.ndarray] = []
    face_materials: list[int] = []

    for line_number, keyword, args in _tokenize(path):
        if keyword == "v":
            state.positions.append(_floats(path, line_number, args, 3))
        elif keyword == "vt":
            u, v = _floats(path, line_number, args, 2)
            state.uvs.append([u, 1.0 - v])
        elif keyword == "vn":
            state.normals.append(_floats(path, line_number, args, 3))
        elif keyword == "f":
            if len(args) < 3:
                raise MeshFormatError(f"{path}:{line_number}: face needs at least 3 vertices")
            refs = [_parse_vertex_ref(path, line_number, ref, state) for ref in args]
            material_id = _face_material(state)
            for k in range(1, len(refs) - 1):
                tri = (refs[0], refs[k], refs[k + 1])
                p = np.array([state.positions[r[0]] for r in tri], dtype=np.float32)
                geometric = np.cross(p[1] - p[0], p[2] - p[0])
                length = float(np.linalg.norm(geometric))
                if length > 0.0:
                    geometric = geometric / length
                vertices.append(p)
                normals.append(
                    np.array(
                        [state.normals[r[2]] if r[2] >= 0 else geometric for r in tri],
                        dtype=np.float32,
                    )
                )
                uvs.append(
                    np.array(
                        [state.uvs[r[1]] if r[1] >= 0 else (0.0, 0.0) for r in tri],
                        dtype=np.float32,
                    )
                )
                face_materials.append(material_id)
        elif keyword == "o":
            state.current_material = -1
        elif keyword == "usemtl":
            name = " ".join(args)
            if name in state.library:
                state.current_material = state.library[name]
            else:
                logger.warning("%s:%d: unknown material %r, using default", path, line_number, name)
                state.current_material = -1
        elif keyword == "mtllib":
            if not args:
                raise MeshFormatError(f"{path}:{line_number}: mtllib without a file name")
            for library in args:
                for material in load_mtl(path.parent / library):
                    state.library[material.name] = len(state.materials)
                    state.materials.append(material)
        else:
            logger.debug("%s:%d: ignoring '%s'", path, line_number, keyword)

    if not face_materials:
        mesh = Mesh.empty()
        mesh.materials = state.materials
    else:
        mesh = Mesh(
            vertices=np.concatenate(vertices),
            normals=np.concatenate(normals),
            uvs=np.concatenate(uvs),
            face_materials=np.array(face_materials, dtype=np.int32),
            materials=state.materials,
        )
    logger.info(
        "Loaded %s: %d faces, %d materials", path, mesh.face_count, len(mesh.materials)
    )
    return mesh


def _face_material(state: _ObjState) -> int:
    if state.current_material >= 0:
        return state.current_material
    if state.default_material < 0:
        state.default_material = len(state.materials)
        state.materials.append(Material())
    return state.default_material
