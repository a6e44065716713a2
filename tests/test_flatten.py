"""Tests for scene flattening into instances."""

import warnings

import numpy as np
import pytest

from mstconv.errors import ValidationError
from mstconv.flatten import convert_scene
from mstconv.mst import BaseMaterial, LambertMaterial
from mstconv.options import ConversionOptions
from mstconv.scene import Material, MaterialProperty, Mesh, Node, Scene
from mstconv.warning_policy import ConversionWarning, WarningPolicy


def _translation(x, y, z) -> np.ndarray:
    m = np.eye(4)
    m[:3, 3] = (x, y, z)
    return m


def _triangle(name="tri", material_index=0) -> Mesh:
    return Mesh(
        vertices=[[0, 0, 0], [1, 0, 0], [0, 1, 0]],
        faces=[(0, 1, 2)],
        material_index=material_index,
        name=name,
    )


LOCAL = ConversionOptions(transform_mode="local")


class TestConvertScene:
    def test_missing_scene_is_empty(self):
        target = convert_scene(None)
        assert target.materials == []
        assert target.nodes == []
        assert target.instances == []
        assert target.version == 1

    def test_scene_without_root(self):
        target = convert_scene(Scene(meshes=[_triangle()]))
        assert len(target.nodes) == 1
        assert target.instances == []

    def test_materials_in_source_order(self):
        red = Material([MaterialProperty(key="$clr.diffuse", data=bytes([255, 0, 0]))])
        scene = Scene(materials=[red, None, Material()])
        target = convert_scene(scene)
        assert isinstance(target.materials[0], LambertMaterial)
        assert target.materials[0].color == (255, 0, 0)
        assert isinstance(target.materials[1], BaseMaterial)
        assert isinstance(target.materials[2], LambertMaterial)

    def test_missing_mesh_keeps_indices(self):
        scene = Scene(meshes=[None, _triangle("second")], root=Node(mesh_indices=[1]))
        target = convert_scene(scene)
        assert len(target.nodes) == 2
        assert len(target.nodes[0].vertices) == 0
        assert target.instances[0].mesh is target.nodes[1]

    def test_root_without_transform_is_identity(self):
        scene = Scene(meshes=[_triangle()], root=Node(name="root", mesh_indices=[0]))
        target = convert_scene(scene)
        assert len(target.instances) == 1
        np.testing.assert_array_equal(target.instances[0].transforms[0], np.eye(4))
        assert target.instances[0].name == "root"
        assert target.instances[0].mesh_index == 0


class TestInstancing:
    def _shared_scene(self) -> Scene:
        t0 = _translation(1, 0, 0)
        t1 = _translation(0, 5, 0)
        root = Node(
            name="root",
            children=[
                Node(name="a", transform=t0, mesh_indices=[0]),
                Node(name="b", transform=t1, mesh_indices=[0]),
            ],
        )
        return Scene(meshes=[_triangle()], root=root)

    def test_shared_mesh_placed_twice(self):
        target = convert_scene(self._shared_scene(), options=LOCAL)
        assert len(target.nodes) == 1
        assert len(target.instances) == 2
        first, second = target.instances
        assert first.mesh is second.mesh
        assert first.mesh is target.nodes[0]
        np.testing.assert_array_equal(first.transforms[0], _translation(1, 0, 0))
        np.testing.assert_array_equal(second.transforms[0], _translation(0, 5, 0))

    def _parent_child_scene(self, t0, t1) -> Scene:
        child = Node(name="child", transform=t1, mesh_indices=[0])
        root = Node(name="root", transform=t0, mesh_indices=[0], children=[child])
        return Scene(meshes=[_triangle()], root=root)

    def test_parent_and_child_local_transforms(self):
        t0, t1 = _translation(1, 0, 0), _translation(0, 5, 0)
        target = convert_scene(self._parent_child_scene(t0, t1), options=LOCAL)
        assert len(target.instances) == 2
        first, second = target.instances
        assert first.mesh is second.mesh
        np.testing.assert_allclose(first.transforms[0], t0)
        np.testing.assert_allclose(second.transforms[0], t1)

    def test_parent_and_child_world_transforms(self):
        t0, t1 = _translation(1, 0, 0), _translation(0, 5, 0)
        target = convert_scene(self._parent_child_scene(t0, t1))
        first, second = target.instances
        assert first.mesh is second.mesh
        np.testing.assert_allclose(first.transforms[0], t0)
        np.testing.assert_allclose(second.transforms[0], t0 @ t1)
        np.testing.assert_allclose(second.transforms[0][:3, 3], [1, 5, 0])

    def test_one_instance_per_mesh_reference(self):
        root = Node(mesh_indices=[0, 1, 0])
        target = convert_scene(Scene(meshes=[_triangle("a"), _triangle("b")], root=root))
        assert [inst.mesh_index for inst in target.instances] == [0, 1, 0]

    def test_depth_first_order(self):
        root = Node(
            name="r",
            mesh_indices=[0],
            children=[
                Node(name="c1", mesh_indices=[0], children=[Node(name="g", mesh_indices=[0])]),
                Node(name="c2", mesh_indices=[0]),
            ],
        )
        target = convert_scene(Scene(meshes=[_triangle()], root=root))
        assert [inst.name for inst in target.instances] == ["r", "c1", "g", "c2"]

    def test_transform_is_a_copy(self):
        scene = self._shared_scene()
        target = convert_scene(scene, options=LOCAL)
        source = scene.root.children[0].transform
        assert target.instances[0].transforms[0] is not source


class TestTransformModes:
    def _nested_scene(self) -> Scene:
        leaf = Node(name="leaf", transform=_translation(0, 0, 3), mesh_indices=[0])
        mid = Node(name="mid", transform=_translation(0, 2, 0), children=[leaf])
        root = Node(name="root", transform=_translation(1, 0, 0), children=[mid])
        return Scene(meshes=[_triangle()], root=root)

    def test_world_mode_composes_ancestors(self):
        target = convert_scene(self._nested_scene())
        np.testing.assert_allclose(target.instances[0].transforms[0], _translation(1, 2, 3))

    def test_local_mode_uses_node_matrix(self):
        target = convert_scene(self._nested_scene(), options=LOCAL)
        np.testing.assert_allclose(target.instances[0].transforms[0], _translation(0, 0, 3))

    def test_world_mode_matches_node_world_matrix(self):
        scene = self._nested_scene()
        leaf = scene.root.children[0].children[0]
        target = convert_scene(scene)
        np.testing.assert_allclose(target.instances[0].transforms[0], leaf.world_matrix())

    def test_rotation_then_translation_order(self):
        rot = np.array(
            [[0, -1, 0, 0], [1, 0, 0, 0], [0, 0, 1, 0], [0, 0, 0, 1]], dtype=float
        )
        child = Node(name="child", transform=_translation(1, 0, 0), mesh_indices=[0])
        root = Node(name="root", transform=rot, children=[child])
        target = convert_scene(Scene(meshes=[_triangle()], root=root))
        # parent rotation is applied after the child's own translation
        np.testing.assert_allclose(target.instances[0].transforms[0][:3, 3], [0, 1, 0])


class TestBadReferences:
    def test_out_of_range_mesh_skipped(self):
        root = Node(
            name="root",
            mesh_indices=[5, 0, -1],
            children=[Node(name="child", mesh_indices=[0])],
        )
        with pytest.warns(ConversionWarning, match=r"\[W02\]") as record:
            target = convert_scene(Scene(meshes=[_triangle()], root=root))
        assert len([w for w in record if w.message.code == "W02"]) == 2
        assert [inst.name for inst in target.instances] == ["root", "child"]

    def test_no_meshes_at_all(self):
        with pytest.warns(ConversionWarning, match=r"\[W02\]"):
            target = convert_scene(Scene(root=Node(mesh_indices=[0])))
        assert target.instances == []

    def test_suppressed(self):
        options = ConversionOptions(warning_policy=WarningPolicy(suppress=frozenset({"W02"})))
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            target = convert_scene(Scene(root=Node(mesh_indices=[3])), options=options)
        assert target.instances == []

    def test_warn_as_error(self):
        options = ConversionOptions(
            warning_policy=WarningPolicy(warn_as_error=frozenset({"W02"}))
        )
        with pytest.raises(ValidationError, match="W02"):
            convert_scene(Scene(root=Node(mesh_indices=[3])), options=options)
