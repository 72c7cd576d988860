"""Tests for diffuse textures.

Tests cover:
- Gamma decoding of 8-bit images
- Loading images with Pillow
- The texel store and its capacity
- Nearest-texel lookup with wrap-around
"""

import numpy as np
import pytest
import taichi as ti
from PIL import Image as PILImage


def _lookup(texture_id, uvs):
    from phototrace.materials.texture import sample_texture

    uv_arr = np.asarray(uvs, dtype=np.float32)
    result = ti.Vector.field(3, dtype=ti.f32, shape=len(uv_arr))

    @ti.kernel
    def test_kernel(tid: ti.i32, coords: ti.types.ndarray()):
        for i in range(coords.shape[0]):
            result[i] = sample_texture(tid, ti.math.vec2(coords[i, 0], coords[i, 1]))

    test_kernel(texture_id, uv_arr)
    return result.to_numpy()


def _gradient_texture():
    """A 4x2 texture whose red channel is the column and green the row."""
    from phototrace.materials.texture import Texture

    texels = np.zeros((2, 4, 3), dtype=np.float32)
    texels[..., 0] = np.arange(4)[None, :]
    texels[..., 1] = np.arange(2)[:, None]
    return Texture(texels)


class TestTexture:
    """Tests for the Texture value type."""

    def test_srgb_decoding(self):
        from phototrace.materials.texture import Texture

        texture = Texture.from_srgb8(np.array([[[0, 128, 255]]], dtype=np.uint8))
        assert np.allclose(texture.texels[0, 0], [0.0, (128 / 255) ** 2.2, 1.0], atol=1e-6)

    def test_shape_validation(self):
        from phototrace.materials.texture import Texture

        with pytest.raises(ValueError):
            Texture(np.zeros((4, 4), dtype=np.float32))
        with pytest.raises(ValueError):
            Texture(np.zeros((0, 4, 3), dtype=np.float32))

    def test_load_texture(self, tmp_path):
        from phototrace.materials.texture import load_texture

        pixels = np.zeros((3, 5, 3), dtype=np.uint8)
        pixels[0, 0] = (255, 0, 0)
        PILImage.fromarray(pixels).save(tmp_path / "red.png")

        texture = load_texture(tmp_path / "red.png")
        assert (texture.width, texture.height) == (5, 3)
        assert np.allclose(texture.texels[0, 0], [1.0, 0.0, 0.0])

    def test_load_missing_texture(self, tmp_path):
        from phototrace.materials.texture import load_texture

        with pytest.raises(FileNotFoundError):
            load_texture(tmp_path / "missing.png")


class TestTextureStore:
    """Tests for add_texture and the device store."""

    def test_ids_are_sequential(self):
        from phototrace.materials.texture import add_texture, get_texture_count

        assert add_texture(_gradient_texture()) == 0
        assert add_texture(_gradient_texture()) == 1
        assert get_texture_count() == 2

    def test_texture_capacity(self):
        from phototrace.materials.texture import MAX_TEXTURES, Texture, add_texture

        tiny = Texture(np.ones((1, 1, 3), dtype=np.float32))
        for _ in range(MAX_TEXTURES):
            add_texture(tiny)
        with pytest.raises(RuntimeError):
            add_texture(tiny)

    def test_texel_capacity(self):
        from phototrace.materials.texture import MAX_TEXELS, Texture, add_texture

        too_big = Texture(np.zeros((1, MAX_TEXELS + 1, 3), dtype=np.float32))
        with pytest.raises(RuntimeError, match="does not fit"):
            add_texture(too_big)


class TestSampleTexture:
    """Tests for sample_texture."""

    def test_nearest_texel(self):
        from phototrace.materials.texture import add_texture

        add_texture(_gradient_texture())
        tid = add_texture(_gradient_texture())
        result = _lookup(tid, [(0.0, 0.0), (0.3, 0.0), (0.55, 0.6)])
        assert np.allclose(result[0, :2], [0.0, 0.0])
        assert np.allclose(result[1, :2], [1.0, 0.0])
        assert np.allclose(result[2, :2], [2.0, 1.0])

    def test_wraps_in_both_directions(self):
        from phototrace.materials.texture import add_texture

        tid = add_texture(_gradient_texture())
        base = _lookup(tid, [(0.3, 0.1)])[0]
        shifted = _lookup(tid, [(1.3, 0.1), (-0.7, 0.1), (0.3, 2.1), (0.3, -0.9)])
        assert np.allclose(shifted, base)
