"""Tests for light sources and direct lighting.

Tests cover:
- Light construction: normalization, clamping, validation
- The device light registry
- Incident radiance of sun, point and spot lights
- Diffuse and specular direct contributions
- Shadowing by scene geometry
"""

import math

import numpy as np
import pytest
import taichi as ti


class TestLightConstruction:
    """Tests for the Light value type."""

    def test_sun_direction_normalized(self):
        from phototrace.lights.light import Light, LightType

        light = Light.sun(direction=(0.0, 0.0, -2.0), color=(1.0, 1.0, 1.0))
        assert light.light_type == LightType.SUN
        assert light.direction == pytest.approx((0.0, 0.0, -1.0))

    def test_spot_half_angle_clamped(self):
        from phototrace.lights.light import Light

        wide = Light.spot((0, 0, 1), (0, 0, -1), (1, 1, 1), half_angle=3.0)
        negative = Light.spot((0, 0, 1), (0, 0, -1), (1, 1, 1), half_angle=-0.2)
        assert wide.half_angle == pytest.approx(math.pi / 2)
        assert negative.half_angle == 0.0

    def test_zero_direction_rejected(self):
        from phototrace.lights.light import Light

        with pytest.raises(ValueError):
            Light.sun(direction=(0.0, 0.0, 0.0), color=(1.0, 1.0, 1.0))

    def test_point_light_ignores_direction(self):
        from phototrace.lights.light import Light

        light = Light.point(position=(1, 2, 3), color=(5, 5, 5))
        assert light.position == (1.0, 2.0, 3.0)


class TestLightRegistry:
    """Tests for add_light / clear_lights."""

    def test_add_and_clear(self):
        from phototrace.lights.light import Light, add_light, clear_lights, get_light_count

        assert add_light(Light.point((0, 0, 0), (1, 1, 1))) == 0
        assert add_light(Light.sun((0, 0, -1), (1, 1, 1))) == 1
        assert get_light_count() == 2
        clear_lights()
        assert get_light_count() == 0

    def test_capacity(self):
        from phototrace.lights.light import MAX_LIGHTS, Light, add_light

        for _ in range(MAX_LIGHTS):
            add_light(Light.point((0, 0, 0), (1, 1, 1)))
        with pytest.raises(RuntimeError):
            add_light(Light.point((0, 0, 0), (1, 1, 1)))


def _incident(point):
    from phototrace.lights.direct import incident_radiance

    to_light = ti.Vector.field(3, dtype=ti.f32, shape=())
    distance = ti.field(dtype=ti.f32, shape=())
    radiance = ti.Vector.field(3, dtype=ti.f32, shape=())

    @ti.kernel
    def test_kernel(px: ti.f32, py: ti.f32, pz: ti.f32):
        o, d, r = incident_radiance(0, ti.math.vec3(px, py, pz))
        to_light[None] = o
        distance[None] = d
        radiance[None] = r

    test_kernel(*point)
    return to_light.to_numpy(), float(distance[None]), radiance.to_numpy()


class TestIncidentRadiance:
    """Tests for incident_radiance."""

    def test_sun(self):
        from phototrace.lights.light import Light, add_light

        add_light(Light.sun(direction=(0.0, 0.0, -1.0), color=(2.0, 3.0, 4.0)))
        to_light, distance, radiance = _incident((5.0, 5.0, 0.0))
        assert np.allclose(to_light, [0.0, 0.0, 1.0], atol=1e-6)
        assert distance > 1e20
        assert np.allclose(radiance, [2.0, 3.0, 4.0])

    def test_point_inverse_square(self):
        from phototrace.lights.light import Light, add_light

        add_light(Light.point(position=(0.0, 0.0, 2.0), color=(8.0, 8.0, 8.0)))
        to_light, distance, radiance = _incident((0.0, 0.0, 0.0))
        assert np.allclose(to_light, [0.0, 0.0, 1.0], atol=1e-6)
        assert distance == pytest.approx(2.0)
        assert np.allclose(radiance, 2.0, atol=1e-5)

    def test_spot_on_axis(self):
        from phototrace.lights.light import Light, add_light

        add_light(Light.spot((0.0, 0.0, 2.0), (0.0, 0.0, -1.0), (4.0, 4.0, 4.0), half_angle=0.5, exponent=2.0))
        _, _, radiance = _incident((0.0, 0.0, 0.0))
        assert np.allclose(radiance, 1.0, atol=1e-5)

    def test_spot_inside_cone_falloff(self):
        from phototrace.lights.light import Light, add_light

        add_light(Light.spot((0.0, 0.0, 2.0), (0.0, 0.0, -1.0), (4.0, 4.0, 4.0), half_angle=0.5, exponent=2.0))
        _, _, radiance = _incident((0.5, 0.0, 0.0))
        cos_angle = 2.0 / math.sqrt(4.25)
        assert np.allclose(radiance, 4.0 / 4.25 * cos_angle**2, atol=1e-5)

    def test_spot_outside_cone_is_dark(self):
        from phototrace.lights.light import Light, add_light

        add_light(Light.spot((0.0, 0.0, 2.0), (0.0, 0.0, -1.0), (4.0, 4.0, 4.0), half_angle=0.5))
        _, _, radiance = _incident((3.0, 0.0, 0.0))
        assert np.allclose(radiance, 0.0)


def _direct(material_id, point, normal, incoming):
    from phototrace.lights.direct import direct_contribution

    result = ti.Vector.field(3, dtype=ti.f32, shape=())

    @ti.kernel
    def test_kernel(mid: ti.i32, px: ti.f32, py: ti.f32, pz: ti.f32, nx: ti.f32, ny: ti.f32, nz: ti.f32,
                    ix: ti.f32, iy: ti.f32, iz: ti.f32):
        result[None] = direct_contribution(
            mid,
            ti.math.vec3(px, py, pz),
            ti.math.normalize(ti.math.vec3(nx, ny, nz)),
            ti.math.normalize(ti.math.vec3(ix, iy, iz)),
            ti.math.vec2(0.0, 0.0),
        )

    test_kernel(material_id, *point, *normal, *incoming)
    return result.to_numpy()


class TestDirectContribution:
    """Tests for direct_contribution."""

    def test_lambertian_term(self):
        """Test cos * L * Kd / pi for a sun at 60 degrees."""
        from phototrace.lights.light import Light, add_light
        from phototrace.materials.material import Material, add_material

        mid = add_material(Material(kd=(0.5, 0.5, 0.5), ks=(0.0, 0.0, 0.0)))
        theta = math.radians(60.0)
        add_light(Light.sun(direction=(-math.sin(theta), 0.0, -math.cos(theta)), color=(2.0, 2.0, 2.0)))
        result = _direct(mid, (0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (0.0, 0.0, -1.0))
        assert np.allclose(result, math.cos(theta) * 2.0 * 0.5 / math.pi, atol=1e-5)

    def test_light_below_surface_contributes_nothing(self):
        from phototrace.lights.light import Light, add_light
        from phototrace.materials.material import Material, add_material

        mid = add_material(Material(kd=(0.5, 0.5, 0.5), ks=(0.0, 0.0, 0.0)))
        add_light(Light.sun(direction=(0.0, 0.0, 1.0), color=(2.0, 2.0, 2.0)))
        result = _direct(mid, (0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (0.0, 0.0, -1.0))
        assert np.allclose(result, 0.0)

    def test_specular_peak(self):
        """Test the normalized Phong peak (Ns + 2) / 2pi at perfect alignment."""
        from phototrace.lights.light import Light, add_light
        from phototrace.materials.material import Material, add_material

        mid = add_material(Material(kd=(0.0, 0.0, 0.0), ks=(1.0, 1.0, 1.0), ns=10.0))
        add_light(Light.sun(direction=(0.0, 0.0, -1.0), color=(1.0, 1.0, 1.0)))
        result = _direct(mid, (0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (0.0, 0.0, -1.0))
        assert np.allclose(result, 12.0 / (2.0 * math.pi), atol=1e-4)

    def test_specular_off_peak(self):
        """Test the cosine power falloff away from the mirror direction."""
        from phototrace.lights.light import Light, add_light
        from phototrace.materials.material import Material, add_material

        mid = add_material(Material(kd=(0.0, 0.0, 0.0), ks=(1.0, 1.0, 1.0), ns=10.0))
        add_light(Light.sun(direction=(0.0, 0.0, -1.0), color=(1.0, 1.0, 1.0)))
        tilt = math.radians(20.0)
        incoming = (math.sin(tilt), 0.0, -math.cos(tilt))
        result = _direct(mid, (0.0, 0.0, 0.0), (0.0, 0.0, 1.0), incoming)
        expected = 12.0 / (2.0 * math.pi) * math.cos(tilt) ** 10
        assert np.allclose(result, expected, atol=1e-4)

    def test_shadowed_by_sphere(self):
        """Test that an occluder between point and light blocks it."""
        from phototrace.lights.light import Light
        from phototrace.materials.material import Material
        from phototrace.scene.manager import SceneManager

        scene = SceneManager()
        floor = scene.add_material(Material(kd=(0.5, 0.5, 0.5), ks=(0.0, 0.0, 0.0)))
        scene.add_sphere((0.0, 0.0, 2.0), 0.5, floor)
        scene.add_light(Light.point(position=(0.0, 0.0, 4.0), color=(10.0, 10.0, 10.0)))
        scene.build()

        shadowed = _direct(floor, (0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (0.0, 0.0, -1.0))
        lit = _direct(floor, (3.0, 0.0, 0.0), (0.0, 0.0, 1.0), (0.0, 0.0, -1.0))
        assert np.allclose(shadowed, 0.0)
        assert np.all(lit > 0.0)

    def test_occluder_beyond_point_light_ignored(self):
        """Test that geometry behind a point light does not shadow."""
        from phototrace.lights.light import Light
        from phototrace.materials.material import Material
        from phototrace.scene.manager import SceneManager

        scene = SceneManager()
        mid = scene.add_material(Material(kd=(0.5, 0.5, 0.5), ks=(0.0, 0.0, 0.0)))
        scene.add_sphere((0.0, 0.0, 6.0), 0.5, mid)
        scene.add_light(Light.point(position=(0.0, 0.0, 2.0), color=(4.0, 4.0, 4.0)))
        scene.build()

        result = _direct(mid, (0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (0.0, 0.0, -1.0))
        assert np.allclose(result, 1.0 * 0.5 / math.pi, atol=1e-5)
