"""Shared fixtures for mstconv tests."""

from __future__ import annotations

import pytest
from PIL import Image

from mstconv.scene import Mesh

MINIMAL_SCENE_YAML = """\
version: "1"
materials:
  - name: red
    properties:
      - key: $clr.diffuse
        color: [255, 0, 0]
meshes:
  - name: tri
    vertices: [[0, 0, 0], [1, 0, 0], [0, 1, 0]]
    normals: [[0, 0, 1], [0, 0, 1], [0, 0, 1]]
    faces: [[0, 1, 2]]
    material_index: 0
root:
  name: root
  meshes: [0]
  children:
    - name: moved
      translation: [1, 2, 3]
      meshes: [0]
"""


@pytest.fixture
def minimal_scene_yaml() -> str:
    return MINIMAL_SCENE_YAML


@pytest.fixture
def png_texture(tmp_path):
    """A 2x3 RGBA PNG whose top-left pixel is (10, 20, 30, 255)."""
    img = Image.new("RGBA", (2, 3), (200, 100, 50, 255))
    img.putpixel((0, 0), (10, 20, 30, 255))
    path = tmp_path / "brick.png"
    img.save(path)
    return path


@pytest.fixture
def quad_mesh() -> Mesh:
    return Mesh(
        vertices=[[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]],
        normals=[[0, 0, 1]] * 4,
        faces=[(0, 1, 2, 3)],
        material_index=2,
        name="quad",
    )
