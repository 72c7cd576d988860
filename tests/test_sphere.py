"""Unit tests for sphere intersection.

Tests cover:
- Ray hitting sphere from outside
- Ray missing sphere
- Ray starting inside sphere (far wall)
- Ray tangent to sphere
- The (t_min, t_max) window and the two roots along a ray through the center
- Spherical UV mapping, with and without an orientation
"""

import math

import numpy as np
import pytest
import taichi as ti


def _run_hit(origin, direction, center=(0.0, 0.0, 0.0), radius=1.0, t_min=1e-5, t_max=1e30):
    from phototrace.geometry.sphere import Sphere, hit_sphere, vec3

    hit = ti.field(dtype=ti.i32, shape=())
    t_val = ti.field(dtype=ti.f32, shape=())
    normal = ti.Vector.field(3, dtype=ti.f32, shape=())
    uv = ti.Vector.field(2, dtype=ti.f32, shape=())

    @ti.kernel
    def test_kernel(ox: ti.f32, oy: ti.f32, oz: ti.f32, dx: ti.f32, dy: ti.f32, dz: ti.f32,
                    cx: ti.f32, cy: ti.f32, cz: ti.f32, r: ti.f32, lo: ti.f32, hi: ti.f32):
        sphere = Sphere(center=vec3(cx, cy, cz), radius=r, rotation=ti.Matrix.identity(ti.f32, 3))
        rec = hit_sphere(vec3(ox, oy, oz), ti.math.normalize(vec3(dx, dy, dz)), sphere, lo, hi)
        hit[None] = rec.hit
        t_val[None] = rec.t
        normal[None] = rec.normal
        uv[None] = rec.uv

    test_kernel(*origin, *direction, *center, radius, t_min, t_max)
    n = normal[None]
    return hit[None], t_val[None], np.array([n[0], n[1], n[2]]), (uv[None][0], uv[None][1])


class TestSphereIntersection:
    """Tests for ray-sphere intersection."""

    def test_hit_sphere_direct_hit(self):
        """Test ray hitting sphere head-on from outside."""
        hit, t, n, _ = _run_hit((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        assert hit == 1
        assert t == pytest.approx(4.0, abs=1e-5)
        assert np.allclose(n, [0.0, 0.0, 1.0], atol=1e-5)

    def test_hit_offset_center(self):
        """Test a sphere away from the origin."""
        hit, t, n, _ = _run_hit((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), center=(10.0, 0.0, 0.0), radius=2.0)
        assert hit == 1
        assert t == pytest.approx(8.0, abs=1e-4)
        assert np.allclose(n, [-1.0, 0.0, 0.0], atol=1e-5)

    def test_hit_sphere_miss(self):
        """Test ray missing sphere entirely."""
        hit, _, _, _ = _run_hit((5.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert hit == 0

    def test_hit_sphere_inside(self):
        """Test ray starting inside the sphere reports the far wall with an outward normal."""
        hit, t, n, _ = _run_hit((0.0, 0.0, 0.0), (0.0, 0.0, 1.0))
        assert hit == 1
        assert t == pytest.approx(1.0, abs=1e-5)
        assert np.allclose(n, [0.0, 0.0, 1.0], atol=1e-5)

    def test_hit_sphere_tangent(self):
        """Test ray tangent to sphere (grazing hit)."""
        hit, t, _, _ = _run_hit((1.0, 0.0, -5.0), (0.0, 0.0, 1.0))
        assert hit == 1
        assert t == pytest.approx(5.0, abs=1e-3)

    def test_hit_sphere_behind_ray(self):
        """Test that spheres behind ray origin are missed."""
        hit, _, _, _ = _run_hit((0.0, 0.0, 5.0), (0.0, 0.0, 1.0))
        assert hit == 0

    def test_hit_sphere_t_min_selects_far_root(self):
        """Test that a near root below t_min falls back to the far root."""
        hit, t, _, _ = _run_hit((0.0, 0.0, 1.001), (0.0, 0.0, -1.0), t_min=0.01)
        assert hit == 1
        assert t == pytest.approx(2.001, abs=1e-4)

    def test_roots_symmetric_about_center(self):
        """Test that a ray through the center has both roots positive and centered on the center distance."""
        origin = (3.0, 4.0, 0.0)
        direction = (-3.0, -4.0, 0.0)
        hit_near, t_near, _, _ = _run_hit(origin, direction, radius=1.5, t_min=0.0)
        hit_far, t_far, _, _ = _run_hit(origin, direction, radius=1.5, t_min=t_near + 1e-3)
        assert hit_near == 1 and hit_far == 1
        assert 0.0 < t_near < t_far
        assert t_near == pytest.approx(5.0 - 1.5, abs=1e-4)
        assert t_far == pytest.approx(5.0 + 1.5, abs=1e-4)
        assert (t_near + t_far) / 2.0 == pytest.approx(5.0, abs=1e-4)

    def test_hit_sphere_t_max_boundary(self):
        """Test that hits after t_max are rejected."""
        hit, _, _, _ = _run_hit((0.0, 0.0, 100.0), (0.0, 0.0, -1.0), t_max=50.0)
        assert hit == 0


class TestSphereUV:
    """Tests for the spherical texture mapping."""

    def _uv(self, normal, rotation):
        from phototrace.geometry.sphere import sphere_uv

        result = ti.Vector.field(2, dtype=ti.f32, shape=())
        rot = ti.Matrix.field(3, 3, dtype=ti.f32, shape=())
        rot[None] = ti.Matrix(np.asarray(rotation, dtype=np.float32).tolist())

        @ti.kernel
        def test_kernel(nx: ti.f32, ny: ti.f32, nz: ti.f32):
            result[None] = sphere_uv(rot[None], ti.math.vec3(nx, ny, nz))

        test_kernel(*normal)
        return result[None][0], result[None][1]

    def test_uv_poles_and_equator(self):
        """Test u = atan2(y, x) / 2pi and v = acos(z) / pi."""
        identity = np.eye(3)
        u, v = self._uv((0.0, 0.0, 1.0), identity)
        assert v == pytest.approx(0.0, abs=1e-5)
        u, v = self._uv((0.0, 0.0, -1.0), identity)
        assert v == pytest.approx(1.0, abs=1e-5)
        u, v = self._uv((0.0, 1.0, 0.0), identity)
        assert u == pytest.approx(0.25, abs=1e-5)
        assert v == pytest.approx(0.5, abs=1e-5)

    def test_uv_rotated_frame(self):
        """Test that the orientation rotates the normal before mapping."""
        from phototrace.core import quaternion

        rot = quaternion.to_rotation_matrix(quaternion.from_axis_angle(math.pi / 2, (0.0, 0.0, 1.0)))
        u, v = self._uv((1.0, 0.0, 0.0), rot)
        assert u == pytest.approx(0.25, abs=1e-5)
        assert v == pytest.approx(0.5, abs=1e-5)
