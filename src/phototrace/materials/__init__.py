"""Materials module: reflectance descriptions, textures and BSDF sampling.

Components:
    texture: Pillow image loading and the device texel store
    material: Material value type, illumination models, device registry
    bsdf: Stochastic selection of diffuse, specular, refractive or
        absorbing events

The diffuse, specular and refractive reflectances double as event
probabilities (their channel means), and the remaining probability is
absorption. Registries are Taichi fields, so ti.init() must run first.
"""

from .bsdf import sample_bsdf
from .material import (
    MAX_MATERIALS,
    IllumModel,
    Material,
    add_material,
    clear_materials,
    diffuse_color,
    get_material_count,
)
from .texture import (
    MAX_TEXELS,
    MAX_TEXTURES,
    Texture,
    add_texture,
    clear_textures,
    get_texture_count,
    load_texture,
    sample_texture,
)

__all__ = [
    # BSDF
    "sample_bsdf",
    # Materials
    "MAX_MATERIALS",
    "IllumModel",
    "Material",
    "add_material",
    "clear_materials",
    "diffuse_color",
    "get_material_count",
    # Textures
    "MAX_TEXELS",
    "MAX_TEXTURES",
    "Texture",
    "add_texture",
    "clear_textures",
    "get_texture_count",
    "load_texture",
    "sample_texture",
]
