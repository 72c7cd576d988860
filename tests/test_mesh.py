"""Tests for the triangle-soup Mesh container."""

import numpy as np
import pytest


class TestMesh:
    """Tests for Mesh construction and validation."""

    def test_from_triangles_flat_normals(self):
        from phototrace.geometry.mesh import Mesh
        from phototrace.materials.material import Material

        mesh = Mesh.from_triangles([[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 0], [0, 0, 1], [1, 0, 0]], Material())
        assert mesh.face_count == 2
        assert np.allclose(mesh.normals[:3], [0, 0, 1])
        assert np.allclose(mesh.normals[3:], [0, 1, 0])
        assert np.allclose(mesh.uvs, 0.0)
        assert mesh.vertices.dtype == np.float32

    def test_empty(self):
        from phototrace.geometry.mesh import Mesh

        mesh = Mesh.empty()
        assert mesh.face_count == 0
        assert mesh.materials == []

    def test_partial_face_rejected(self):
        from phototrace.geometry.mesh import Mesh

        with pytest.raises(ValueError, match="3 vertices per face"):
            Mesh(np.zeros((4, 3)), np.zeros((4, 3)), np.zeros((4, 2)), [0])

    def test_attribute_lengths_must_match(self):
        from phototrace.geometry.mesh import Mesh
        from phototrace.materials.material import Material

        with pytest.raises(ValueError, match="lengths differ"):
            Mesh(np.zeros((3, 3)), np.zeros((3, 3)), np.zeros((6, 2)), [0], [Material()])

    def test_face_material_out_of_range(self):
        from phototrace.geometry.mesh import Mesh
        from phototrace.materials.material import Material

        with pytest.raises(ValueError, match="Face material indices"):
            Mesh(np.zeros((3, 3)), np.zeros((3, 3)), np.zeros((3, 2)), [1], [Material()])


class TestHelpers:
    """Tests for quad_mesh and merge_meshes."""

    def test_quad_mesh(self):
        from phototrace.geometry.mesh import quad_mesh
        from phototrace.materials.material import Material

        quad = quad_mesh((1, 1, 1), (2, 0, 0), (0, 3, 0), Material())
        assert quad.face_count == 2
        assert np.allclose(quad.normals, [0, 0, 1])
        assert np.allclose(quad.vertices.min(axis=0), [1, 1, 1])
        assert np.allclose(quad.vertices.max(axis=0), [3, 4, 1])
        assert np.allclose(quad.uvs.min(axis=0), [0, 0])
        assert np.allclose(quad.uvs.max(axis=0), [1, 1])

    def test_merge_reindexes_materials(self):
        from phototrace.geometry.mesh import merge_meshes, quad_mesh
        from phototrace.materials.material import Material

        a = quad_mesh((0, 0, 0), (1, 0, 0), (0, 1, 0), Material(name="a"))
        b = quad_mesh((0, 0, 1), (1, 0, 0), (0, 1, 0), Material(name="b"))
        merged = merge_meshes([a, b])
        assert merged.face_count == 4
        assert [m.name for m in merged.materials] == ["a", "b"]
        assert list(merged.face_materials) == [0, 0, 1, 1]

    def test_merge_nothing(self):
        from phototrace.geometry.mesh import merge_meshes

        assert merge_meshes([]).face_count == 0
