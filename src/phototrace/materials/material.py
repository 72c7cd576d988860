"""Surface materials and the device material registry.

A material combines ambient (Ka), diffuse (Kd), specular (Ks) and refractive
(Kr) reflectance, a Phong specular exponent (Ns), an index of refraction (Ni)
and an illumination model. The mean of each reflectance is used directly as
the probability of the corresponding scattering event, so the three means may
sum to less than one; the remainder is absorption.

The diffuse color can come from a texture, in which case Kd's mean still sets
the diffuse event probability and the texel replaces Kd in the weight.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from phototrace.materials.material import Material, IllumModel, add_material
    >>> glass = Material(kd=(0, 0, 0), ks=(0.05, 0.05, 0.05), kr=(0.9, 0.9, 0.9),
    ...                  illum=IllumModel.REFRACTION)
    >>> glass_id = add_material(glass)
"""

from dataclasses import dataclass, field
from enum import IntEnum

import taichi as ti
import taichi.math as tm

from phototrace.materials.texture import Texture, add_texture, sample_texture

# Type aliases
vec2 = tm.vec2
vec3 = tm.vec3

Color = tuple[float, float, float]


class IllumModel(IntEnum):
    """Illumination models, numbered as in Wavefront MTL files."""

    BASIC = 3
    REFRACTION = 6


@dataclass(eq=False)
class Material:
    """Reflectance description of a surface.

    Attributes:
        name: Label used by material files; not used for rendering.
        ka: Ambient reflectance. Carried for completeness, unused by the renderer.
        kd: Diffuse reflectance.
        ks: Specular reflectance.
        kr: Refractive transmittance, only used with IllumModel.REFRACTION.
        ns: Phong specular exponent.
        ni: Index of refraction.
        illum: Illumination model.
        texture: Optional diffuse texture replacing kd in the diffuse weight.
    """

    name: str = "default"
    ka: Color = (0.0, 0.0, 0.0)
    kd: Color = (0.8, 0.8, 0.8)
    ks: Color = (0.1, 0.1, 0.1)
    kr: Color = (0.0, 0.0, 0.0)
    ns: float = 128.0
    ni: float = 1.45
    illum: IllumModel = IllumModel.BASIC
    texture: Texture | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.ka = _as_color("ka", self.ka)
        self.kd = _as_color("kd", self.kd)
        self.ks = _as_color("ks", self.ks)
        self.kr = _as_color("kr", self.kr)
        if self.ns < 0.0:
            raise ValueError(f"Specular exponent must be non-negative, got {self.ns}")
        if self.ni <= 0.0:
            raise ValueError(f"Index of refraction must be positive, got {self.ni}")
        self.illum = IllumModel(self.illum)


def _as_color(name: str, value) -> Color:
    color = tuple(float(c) for c in value)
    if len(color) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(color)}")
    for i, component in enumerate(color):
        if component < 0.0:
            raise ValueError(f"{name} component {i} = {component} must be non-negative")
    return color


# =============================================================================
# Material Field Storage
# =============================================================================

# Maximum number of materials in the scene
MAX_MATERIALS = 1024

mat_kd = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
mat_ks = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
mat_kr = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
mat_ns = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
mat_ni = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
mat_illum = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
# -1 when the material has no texture
mat_texture = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def clear_materials() -> None:
    """Clear all materials.

    Textures live in their own store and are cleared separately.
    """
    num_materials[None] = 0


def add_material(material: Material) -> int:
    """Add a material to the registry, uploading its texture if it has one.

    Returns:
        The material id.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    idx = num_materials[None]
    if idx >= MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

    texture_id = -1
    if material.texture is not None:
        texture_id = add_texture(material.texture)

    mat_kd[idx] = vec3(*material.kd)
    mat_ks[idx] = vec3(*material.ks)
    mat_kr[idx] = vec3(*material.kr)
    mat_ns[idx] = material.ns
    mat_ni[idx] = material.ni
    mat_illum[idx] = int(material.illum)
    mat_texture[idx] = texture_id
    num_materials[None] = idx + 1
    return idx


def get_material_count() -> int:
    """Get the number of materials in the registry."""
    return int(num_materials[None])


@ti.func
def diffuse_color(material_id: ti.i32, uv: vec2) -> vec3:
    """Diffuse reflectance at a surface point, texture-sampled if present."""
    color = mat_kd[material_id]
    tex = mat_texture[material_id]
    if tex >= 0:
        color = sample_texture(tex, uv)
    return color
