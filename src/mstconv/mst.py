"""Target MST mesh model: materials, geometry nodes and instances."""

from __future__ import annotations

import zlib
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Annotated, Literal, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

MST_VERSION = 1

Color = tuple[int, int, int]

DEFAULT_COLOR: Color = (128, 128, 128)
BLACK: Color = (0, 0, 0)


class TextureFormat(IntEnum):
    RGB = 1
    RGBA = 2


class PixelType(IntEnum):
    UBYTE = 1
    FLOAT = 2


class TextureCompression(IntEnum):
    NONE = 0
    ZLIB = 1


class Texture(BaseModel):
    """Decoded texture with its pixel buffer stored compressed."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: int
    name: str
    size: tuple[int, int]
    format: TextureFormat = TextureFormat.RGBA
    pixel_type: PixelType = PixelType.UBYTE
    compression: TextureCompression = TextureCompression.ZLIB
    data: bytes

    def pixels(self) -> bytes:
        """Return the raw pixel buffer, decompressing if needed."""
        if self.compression == TextureCompression.ZLIB:
            return zlib.decompress(self.data)
        return self.data


# --- Material variants (closed set, discriminated by ``kind``) ---


class BaseMaterial(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["base"] = "base"
    color: Color = DEFAULT_COLOR
    transparency: float = 1.0


class TextureMaterial(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["textured"] = "textured"
    color: Color = DEFAULT_COLOR
    transparency: float = 1.0
    texture: Texture | None = None
    normal: Texture | None = None


class LambertMaterial(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["lambert"] = "lambert"
    color: Color = DEFAULT_COLOR
    transparency: float = 1.0
    ambient: Color = BLACK
    diffuse: Color = DEFAULT_COLOR
    emissive: Color = BLACK


class PhongMaterial(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["phong"] = "phong"
    color: Color = DEFAULT_COLOR
    transparency: float = 1.0
    ambient: Color = BLACK
    diffuse: Color = DEFAULT_COLOR
    emissive: Color = BLACK
    specular: Color = BLACK
    shininess: float = 32.0
    specularity: float = 1.0


class PbrMaterial(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["pbr"] = "pbr"
    color: Color = DEFAULT_COLOR
    transparency: float = 1.0
    texture: Texture | None = None
    normal: Texture | None = None
    emissive: Color = BLACK
    metallic: float = 0.0
    roughness: float = 0.5
    reflectance: float = 0.5


MeshMaterial = Annotated[
    Union[BaseMaterial, TextureMaterial, LambertMaterial, PhongMaterial, PbrMaterial],
    Field(discriminator="kind"),
]

MATERIAL_KINDS: tuple[str, ...] = ("base", "textured", "lambert", "phong", "pbr")


def material_textures(material: MeshMaterial) -> list[Texture]:
    """Return the textures a material references (diffuse first, then normal)."""
    if material.kind not in ("textured", "pbr"):
        return []
    return [t for t in (material.texture, material.normal) if t is not None]


# --- Geometry ---


@dataclass
class FaceGroup:
    """Triangles sharing one material batch."""

    batch_id: int
    faces: np.ndarray  # (M, 3) uint32


@dataclass
class MeshNode:
    """Converted geometry for one source mesh. Carries no transform."""

    vertices: np.ndarray  # (N, 3) float32
    normals: np.ndarray  # (N, 3) float32
    colors: np.ndarray  # (N, 3) uint8
    texcoords: np.ndarray  # (N, 2) float32
    face_groups: list[FaceGroup] = field(default_factory=list)
    name: str = ""

    @property
    def triangle_count(self) -> int:
        return sum(len(g.faces) for g in self.face_groups)


@dataclass(frozen=True, eq=False)
class InstanceMesh:
    """World-space placements of one shared mesh node."""

    transforms: tuple[np.ndarray, ...]  # each 4x4 float64, row-major
    mesh: MeshNode
    mesh_index: int
    name: str = ""


@dataclass
class TargetMesh:
    version: int = MST_VERSION
    materials: list[MeshMaterial] = field(default_factory=list)
    nodes: list[MeshNode] = field(default_factory=list)
    instances: list[InstanceMesh] = field(default_factory=list)
