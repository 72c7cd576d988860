"""Tests for the ready-made scenes."""

import numpy as np
import pytest


class TestShowcaseScene:
    """Tests for create_showcase_scene."""

    def test_contents(self):
        from phototrace.lights.light import LightType
        from phototrace.materials.material import IllumModel
        from phototrace.scene.showcase import create_showcase_scene

        scene, camera = create_showcase_scene(width=64, height=36, samples_per_pixel=2, level=1)

        assert scene.get_sphere_count() == 4
        assert [light.light_type for light in scene.lights] == [LightType.SUN, LightType.SPOT, LightType.SUN]
        assert scene.background == pytest.approx((0.4, 0.4, 0.4))
        assert len(scene.meshes) == 2
        assert scene.meshes[0].face_count == 2
        assert any(m.illum == IllumModel.REFRACTION for m in scene.materials)
        assert any(m.texture is not None for m in scene.materials)
        assert (camera.width, camera.height, camera.samples_per_pixel) == (64, 36, 2)
        assert not scene.is_built

    def test_knot_detail_grows_with_level(self):
        from phototrace.scene.showcase import create_showcase_scene

        coarse, _ = create_showcase_scene(level=0)
        coarse_faces = coarse.meshes[1].face_count
        fine, _ = create_showcase_scene(level=1)
        assert fine.meshes[1].face_count == 4 * coarse_faces

    def test_small_render(self):
        from phototrace.core.integrator import render
        from phototrace.scene.showcase import create_showcase_scene

        scene, camera = create_showcase_scene(width=32, height=18, samples_per_pixel=2, level=0)
        pixels = render(scene, camera)
        assert pixels.shape == (18, 32, 3)
        assert pixels.max() > 0

    def test_trefoil_closes(self):
        from phototrace.scene.showcase import trefoil_sections

        sections = trefoil_sections(n_sections=10)
        assert len(sections) == 10
        assert np.allclose(sections[0].position, sections[-1].position)

    def test_checker_texture(self):
        from phototrace.scene.showcase import checker_texture

        texture = checker_texture(width=8, height=4, tiles=(2, 2))
        assert (texture.width, texture.height) == (8, 4)
        assert not np.allclose(texture.texels[0, 0], texture.texels[0, 4])
        assert np.allclose(texture.texels[0, 0], texture.texels[2, 4])


class TestEnclosedBoxScene:
    """Tests for create_enclosed_box_scene."""

    def test_box_is_closed(self):
        from phototrace.scene.showcase import create_enclosed_box_scene

        scene, camera = create_enclosed_box_scene()
        vertices, normals, _, _ = scene.triangle_soup()

        assert scene.get_triangle_count() == 12
        assert scene.get_light_count() == 1
        assert np.allclose(np.abs(vertices), 1.0)
        # Every wall normal points to the center
        centroids = vertices.reshape(-1, 3, 3).mean(axis=1)
        face_normals = normals.reshape(-1, 3, 3)[:, 0]
        assert np.all(np.sum(centroids * face_normals, axis=1) < 0.0)

    def test_camera_inside_box(self):
        from phototrace.scene.showcase import create_enclosed_box_scene

        _, camera = create_enclosed_box_scene(width=8, height=8, samples_per_pixel=4)
        assert np.all(np.abs(np.array(camera.position)) < 1.0)
        assert (camera.width, camera.height, camera.samples_per_pixel) == (8, 8, 4)
