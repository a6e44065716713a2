"""Read-only value objects for an imported scene.

These mirror the structure produced by the asset importer: a node tree,
flat mesh and material lists referenced by index, and embedded textures.
Objects are populated once and never mutated afterwards.
"""

from __future__ import annotations

import weakref
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from types import MappingProxyType
from typing import Any

import numpy as np

MAX_COLOR_SETS = 8
MAX_TEXCOORDS = 8


class TextureType(IntEnum):
    NONE = 0
    DIFFUSE = 1
    SPECULAR = 2
    AMBIENT = 3
    EMISSIVE = 4
    HEIGHT = 5
    NORMALS = 6
    SHININESS = 7
    OPACITY = 8
    DISPLACEMENT = 9
    LIGHTMAP = 10
    REFLECTION = 11
    BASE_COLOR = 12
    NORMAL_CAMERA = 13
    EMISSION_COLOR = 14
    METALNESS = 15
    DIFFUSE_ROUGHNESS = 16
    AMBIENT_OCCLUSION = 17
    UNKNOWN = 18


class PropertyType(IntEnum):
    FLOAT32 = 1
    FLOAT64 = 2
    STRING = 3
    INT32 = 4
    BUFFER = 5

    @property
    def width(self) -> int | None:
        """Byte width a numeric payload must have, or None for variable-length types."""
        return _PROPERTY_WIDTHS.get(self)


_PROPERTY_WIDTHS = {
    PropertyType.FLOAT32: 4,
    PropertyType.FLOAT64: 8,
    PropertyType.INT32: 4,
}


class MorphMethod(IntEnum):
    UNKNOWN = 0
    VERTEX_BLEND = 1
    MORPH_NORMALIZED = 2
    MORPH_RELATIVE = 3


class PrimitiveType(IntFlag):
    POINT = 1
    LINE = 2
    TRIANGLE = 4
    POLYGON = 8


def _vec_array(
    values: Any, width: int, *, min_width: int | None = None, fill: float = 0.0
) -> np.ndarray:
    """Coerce a sequence of vectors to an (N, width) float32 array.

    Rows with fewer than ``width`` but at least ``min_width`` components are
    padded with ``fill``. A flat sequence is read as packed ``width``-vectors.
    """
    if values is None:
        return np.zeros((0, width), dtype=np.float32)
    arr = np.asarray(values, dtype=np.float32)
    if arr.size == 0:
        return np.zeros((0, width), dtype=np.float32)
    if arr.ndim == 1:
        return arr.reshape(-1, width)
    if arr.ndim != 2:
        raise ValueError(f"Expected a list of vectors, got shape {arr.shape}")

    cols = arr.shape[1]
    if cols == width:
        return arr
    if min_width is not None and min_width <= cols < width:
        padded = np.full((len(arr), width), fill, dtype=np.float32)
        padded[:, :cols] = arr
        return padded
    raise ValueError(f"Expected vectors of {width} components, got {cols}")


def _row_width(values: Any, default: int) -> int:
    arr = np.asarray(values)
    if arr.ndim == 2 and arr.size:
        return int(arr.shape[1])
    return default


@dataclass(frozen=True, eq=False)
class MaterialProperty:
    """One named, typed attribute of a material with its raw payload."""

    key: str
    data: bytes = b""
    semantic: TextureType = TextureType.NONE
    index: int = 0
    type: PropertyType = PropertyType.BUFFER

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))
        object.__setattr__(self, "semantic", TextureType(self.semantic))
        object.__setattr__(self, "type", PropertyType(self.type))


@dataclass(frozen=True, eq=False)
class Material:
    properties: tuple[MaterialProperty, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", tuple(self.properties))

    @property
    def name(self) -> str:
        for prop in self.properties:
            if prop.key == "?mat.name":
                return prop.data.decode("utf-8", errors="replace").strip("\x00")
        return ""


@dataclass(frozen=True)
class Face:
    indices: tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "indices", tuple(int(i) for i in self.indices))


@dataclass(frozen=True, eq=False)
class AABB:
    min: np.ndarray
    max: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "min", np.asarray(self.min, dtype=np.float32).reshape(3))
        object.__setattr__(self, "max", np.asarray(self.max, dtype=np.float32).reshape(3))


@dataclass(frozen=True, eq=False)
class Mesh:
    """One block of vertex/face geometry.

    Per-vertex arrays are (N, 3) float32; color sets are (N, 4) RGBA floats;
    texture coordinate sets are (N, 3) with the UV in the first two columns.
    """

    vertices: np.ndarray = None
    normals: np.ndarray = None
    tangents: np.ndarray = None
    bitangents: np.ndarray = None
    color_sets: tuple[np.ndarray, ...] = ()
    texcoords: tuple[np.ndarray, ...] = ()
    texcoord_components: tuple[int, ...] = ()
    faces: tuple[Face, ...] = ()
    material_index: int = 0
    name: str = ""
    aabb: AABB | None = None
    morph_method: MorphMethod = MorphMethod.UNKNOWN
    primitive_types: PrimitiveType = PrimitiveType(0)

    def __post_init__(self) -> None:
        if len(self.color_sets) > MAX_COLOR_SETS:
            raise ValueError(f"At most {MAX_COLOR_SETS} color sets are supported")
        if len(self.texcoords) > MAX_TEXCOORDS:
            raise ValueError(f"At most {MAX_TEXCOORDS} texture coordinate sets are supported")

        for name in ("vertices", "normals", "tangents", "bitangents"):
            object.__setattr__(self, name, _vec_array(getattr(self, name), 3))
        if not self.texcoord_components:
            object.__setattr__(
                self, "texcoord_components", tuple(_row_width(t, 3) for t in self.texcoords)
            )
        object.__setattr__(
            self,
            "color_sets",
            tuple(_vec_array(c, 4, min_width=3, fill=1.0) for c in self.color_sets),
        )
        object.__setattr__(
            self, "texcoords", tuple(_vec_array(t, 3, min_width=2) for t in self.texcoords)
        )
        object.__setattr__(self, "texcoord_components", tuple(self.texcoord_components))
        object.__setattr__(
            self,
            "faces",
            tuple(f if isinstance(f, Face) else Face(tuple(f)) for f in self.faces),
        )


@dataclass(frozen=True, eq=False)
class Node:
    """Element of the scene hierarchy.

    ``transform`` is a row-major 4x4 matrix with the translation in the last
    column, or None when the importer supplied none (treated as identity).
    The parent link is a weak reference assigned when the parent node is
    constructed; a node can be adopted by exactly one parent.
    """

    name: str = ""
    transform: np.ndarray | None = None
    children: tuple[Node, ...] = ()
    mesh_indices: tuple[int, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)
    _parent: weakref.ref | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.transform is not None:
            object.__setattr__(
                self, "transform", np.asarray(self.transform, dtype=np.float64).reshape(4, 4)
            )
        object.__setattr__(self, "children", tuple(self.children))
        object.__setattr__(self, "mesh_indices", tuple(int(i) for i in self.mesh_indices))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

        for child in self.children:
            if child._parent is not None:
                raise ValueError(f"Node {child.name!r} already has a parent")
            object.__setattr__(child, "_parent", weakref.ref(self))

    @property
    def parent(self) -> Node | None:
        if self._parent is None:
            return None
        return self._parent()

    def local_matrix(self) -> np.ndarray:
        """Return the local transform, identity when absent."""
        if self.transform is None:
            return np.eye(4, dtype=np.float64)
        return self.transform

    def world_matrix(self) -> np.ndarray:
        """Compose the local transform with all ancestors (parent @ local)."""
        matrix = self.local_matrix()
        node = self.parent
        while node is not None:
            matrix = node.local_matrix() @ matrix
            node = node.parent
        return matrix

    def walk(self) -> Iterator[Node]:
        """Yield this node and all descendants depth-first, pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True, eq=False)
class EmbeddedTexture:
    """Texture stored inside the asset file.

    A height of 0 marks a compressed texture: ``data`` then holds a complete
    encoded image file of ``width`` bytes and ``format_hint`` names its codec.
    Otherwise ``data`` holds ``width * height`` RGBA texels.
    """

    width: int
    height: int
    data: bytes
    format_hint: str = ""
    filename: str = ""

    @property
    def is_compressed(self) -> bool:
        return self.height == 0


@dataclass(frozen=True, eq=False)
class Scene:
    root: Node | None = None
    meshes: tuple[Mesh, ...] = ()
    materials: tuple[Material, ...] = ()
    textures: tuple[EmbeddedTexture, ...] = ()
    flags: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "meshes", tuple(self.meshes))
        object.__setattr__(self, "materials", tuple(self.materials))
        object.__setattr__(self, "textures", tuple(self.textures))
