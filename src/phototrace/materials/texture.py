"""Diffuse color textures.

Images are decoded with Pillow, converted from 8-bit gamma-2.2 values to
linear float radiance factors and packed into one flat texel store on the
device. Each registered texture remembers its offset into the store and its
size, and is sampled with a nearest-texel lookup that wraps in both
directions.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from phototrace.materials.texture import load_texture, add_texture
    >>> tex_id = add_texture(load_texture("assets/earth.png"))
    >>> # Use sample_texture(tex_id, uv) within a Taichi kernel
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm
from PIL import Image

logger = logging.getLogger(__name__)

# Type aliases
vec2 = tm.vec2
vec3 = tm.vec3

# Gamma of 8-bit image files
GAMMA = 2.2

# Maximum number of textures in the scene
MAX_TEXTURES = 64

# Total number of texels shared by all textures
MAX_TEXELS = 1 << 21


@dataclass(eq=False)
class Texture:
    """A linear-space RGB image.

    Attributes:
        texels: (height, width, 3) float32 array; row 0 is the top of the image.
    """

    texels: npt.NDArray[np.float32]

    def __post_init__(self) -> None:
        self.texels = np.asarray(self.texels, dtype=np.float32)
        if self.texels.ndim != 3 or self.texels.shape[2] != 3:
            raise ValueError(f"Texture must have shape (height, width, 3), got {self.texels.shape}")
        if self.width == 0 or self.height == 0:
            raise ValueError("Texture must not be empty")

    @property
    def width(self) -> int:
        return int(self.texels.shape[1])

    @property
    def height(self) -> int:
        return int(self.texels.shape[0])

    @classmethod
    def from_srgb8(cls, pixels: npt.ArrayLike) -> "Texture":
        """Build a texture from 8-bit gamma-encoded RGB values."""
        arr = np.asarray(pixels, dtype=np.float32) / 255.0
        return cls(np.power(arr, GAMMA))


def load_texture(path: str | Path) -> Texture:
    """Read an image file into a linear-space texture.

    Args:
        path: Any image format Pillow can read.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    with Image.open(path) as img:
        pixels = np.asarray(img.convert("RGB"), dtype=np.uint8)
    logger.debug("Loaded texture %s (%dx%d)", path, pixels.shape[1], pixels.shape[0])
    return Texture.from_srgb8(pixels)


# =============================================================================
# Texture Field Storage
# =============================================================================

texels = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXELS)
texture_offsets = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_widths = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_heights = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
num_textures = ti.field(dtype=ti.i32, shape=())
num_texels = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _upload_texels(offset: ti.i32, data: ti.types.ndarray()):
    for i in range(data.shape[0]):
        texels[offset + i] = vec3(data[i, 0], data[i, 1], data[i, 2])


def clear_textures() -> None:
    """Clear all textures."""
    num_textures[None] = 0
    num_texels[None] = 0


def add_texture(texture: Texture) -> int:
    """Copy a texture into the texel store.

    Returns:
        The texture id.

    Raises:
        RuntimeError: If the texture or texel capacity is exceeded.
    """
    idx = num_textures[None]
    if idx >= MAX_TEXTURES:
        raise RuntimeError(f"Maximum number of textures ({MAX_TEXTURES}) exceeded")
    offset = num_texels[None]
    size = texture.width * texture.height
    if offset + size > MAX_TEXELS:
        raise RuntimeError(
            f"Texture of {size} texels does not fit in the texel store "
            f"({offset} of {MAX_TEXELS} used)"
        )

    _upload_texels(offset, np.ascontiguousarray(texture.texels.reshape(-1, 3)))
    texture_offsets[idx] = offset
    texture_widths[idx] = texture.width
    texture_heights[idx] = texture.height
    num_texels[None] = offset + size
    num_textures[None] = idx + 1
    return idx


def get_texture_count() -> int:
    """Get the number of registered textures."""
    return int(num_textures[None])


@ti.func
def sample_texture(texture_id: ti.i32, uv: vec2) -> vec3:
    """Nearest-texel lookup with wrap-around addressing.

    Args:
        texture_id: Id returned by add_texture().
        uv: Texture coordinates; any real value, wrapped into the image.

    Returns:
        The linear RGB texel.
    """
    w = texture_widths[texture_id]
    h = texture_heights[texture_id]
    x = ti.cast(tm.floor(uv.x * w + 0.5), ti.i32) % w
    y = ti.cast(tm.floor(uv.y * h + 0.5), ti.i32) % h
    return texels[texture_offsets[texture_id] + y * w + x]
