"""Pydantic v2 schema models for scene description documents."""

from __future__ import annotations

import struct
from typing import Any, Literal

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from mstconv.scene import MaterialProperty, PropertyType, TextureType

SUPPORTED_VERSIONS: frozenset[str] = frozenset({"1", "1.0"})

_SEMANTIC_ALIASES: dict[str, TextureType] = {
    "normal": TextureType.NORMALS,
    "basecolor": TextureType.BASE_COLOR,
    "base_colour": TextureType.BASE_COLOR,
    "metallic": TextureType.METALNESS,
    "roughness": TextureType.DIFFUSE_ROUGHNESS,
    "ao": TextureType.AMBIENT_OCCLUSION,
}

PropertyTypeName = Literal["float32", "float64", "string", "int32", "buffer"]

_TYPE_NAMES: dict[str, PropertyType] = {
    "float32": PropertyType.FLOAT32,
    "float64": PropertyType.FLOAT64,
    "string": PropertyType.STRING,
    "int32": PropertyType.INT32,
    "buffer": PropertyType.BUFFER,
}


class PropertyDoc(BaseModel):
    """One material property. The payload is given by at most one of
    ``data`` (raw bytes), ``color`` (0-255 components) or ``value``."""

    model_config = ConfigDict(extra="forbid")

    key: str
    semantic: TextureType = TextureType.NONE
    index: int = Field(default=0, ge=0)
    type: PropertyTypeName | None = None
    data: list[int] | None = None
    color: list[int] | None = None
    value: int | float | str | None = None

    @field_validator("semantic", mode="before")
    @classmethod
    def parse_semantic(cls, v: object) -> object:
        if isinstance(v, str):
            token = v.strip().lower()
            if token in _SEMANTIC_ALIASES:
                return _SEMANTIC_ALIASES[token]
            try:
                return TextureType[token.upper()]
            except KeyError:
                raise ValueError(f"Unknown texture semantic: {v!r}") from None
        return v

    @field_validator("data", "color")
    @classmethod
    def bytes_in_range(cls, v: list[int] | None) -> list[int] | None:
        if v is not None and any(not 0 <= b <= 255 for b in v):
            raise ValueError("Byte values must be in range 0-255")
        return v

    @model_validator(mode="after")
    def _check_single_payload(self) -> PropertyDoc:
        given = [self.data is not None, self.color is not None, self.value is not None]
        if sum(given) > 1:
            raise ValueError("Property must set at most one of 'data', 'color', 'value'")
        return self

    def resolved_type(self) -> PropertyType:
        if self.type is not None:
            return _TYPE_NAMES[self.type]
        if isinstance(self.value, bool) or self.value is None:
            return PropertyType.BUFFER
        if isinstance(self.value, str):
            return PropertyType.STRING
        # importer scalars are float32; integers need an explicit int32 type
        return PropertyType.FLOAT32

    def payload(self) -> bytes:
        if self.data is not None:
            return bytes(self.data)
        if self.color is not None:
            return bytes(self.color)
        if self.value is None:
            return b""
        if isinstance(self.value, str):
            return self.value.encode("utf-8")
        prop_type = self.resolved_type()
        if prop_type == PropertyType.FLOAT64:
            return struct.pack("<d", float(self.value))
        if prop_type == PropertyType.INT32:
            return struct.pack("<i", int(self.value))
        return struct.pack("<f", float(self.value))

    def to_property(self) -> MaterialProperty:
        return MaterialProperty(
            key=self.key,
            data=self.payload(),
            semantic=self.semantic,
            index=self.index,
            type=self.resolved_type(),
        )


class MaterialDoc(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    properties: list[PropertyDoc] = []


class MeshDoc(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = ""
    vertices: list[tuple[float, float, float]] = []
    normals: list[tuple[float, float, float]] = []
    tangents: list[tuple[float, float, float]] = []
    bitangents: list[tuple[float, float, float]] = []
    colors: list[list[list[float]]] = Field(default=[], max_length=8)
    texcoords: list[list[list[float]]] = Field(default=[], max_length=8)
    faces: list[list[int]] = []
    material_index: int = Field(default=0, ge=0)

    @field_validator("colors")
    @classmethod
    def color_width(cls, v: list[list[list[float]]]) -> list[list[list[float]]]:
        for channel in v:
            for c in channel:
                if len(c) not in (3, 4):
                    raise ValueError(f"Vertex colors need 3 or 4 components, got {len(c)}")
        return v

    @field_validator("texcoords")
    @classmethod
    def texcoord_width(cls, v: list[list[list[float]]]) -> list[list[list[float]]]:
        for channel in v:
            for t in channel:
                if len(t) not in (2, 3):
                    raise ValueError(
                        f"Texture coordinates need 2 or 3 components, got {len(t)}"
                    )
        return v

    def color_arrays(self) -> list[np.ndarray]:
        """Color channels as (N, 4) arrays, alpha defaulting to 1."""
        arrays = []
        for channel in self.colors:
            arrays.append(
                np.array([list(c) + [1.0] * (4 - len(c)) for c in channel], dtype=np.float32)
            )
        return arrays

    def texcoord_arrays(self) -> tuple[list[np.ndarray], list[int]]:
        """Texture coordinate channels as (N, 3) arrays plus their component counts."""
        arrays = []
        components = []
        for channel in self.texcoords:
            arrays.append(
                np.array([list(t) + [0.0] * (3 - len(t)) for t in channel], dtype=np.float32)
            )
            components.append(len(channel[0]) if channel else 0)
        return arrays, components


class NodeDoc(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = ""
    matrix: tuple[
        tuple[float, float, float, float],
        tuple[float, float, float, float],
        tuple[float, float, float, float],
        tuple[float, float, float, float],
    ] | None = None
    translation: tuple[float, float, float] | None = None
    rotation_quat: tuple[float, float, float, float] | None = None  # (x, y, z, w)
    scale: tuple[float, float, float] | None = None
    meshes: list[int] = []
    children: list[NodeDoc] = []
    metadata: dict[str, Any] = {}

    @model_validator(mode="after")
    def _check_transform_form(self) -> NodeDoc:
        trs = [self.translation, self.rotation_quat, self.scale]
        if self.matrix is not None and any(v is not None for v in trs):
            raise ValueError(
                "Node must set either 'matrix' or translation/rotation_quat/scale, not both"
            )
        return self

    def transform(self) -> np.ndarray | None:
        """Row-major 4x4 local transform, or None when the node sets none."""
        if self.matrix is not None:
            return np.array(self.matrix, dtype=np.float64)
        if self.translation is None and self.rotation_quat is None and self.scale is None:
            return None

        m = np.eye(4, dtype=np.float64)
        if self.rotation_quat is not None:
            m[:3, :3] = _quat_to_matrix(*self.rotation_quat)
        if self.scale is not None:
            m[:3, :3] = m[:3, :3] @ np.diag(self.scale)
        if self.translation is not None:
            m[:3, 3] = self.translation
        return m


class EmbeddedTextureDoc(BaseModel):
    """Embedded texture, either an image file (``path``, relative to the
    document) or base64 data. ``height: 0`` marks encoded image data."""

    model_config = ConfigDict(extra="forbid")

    filename: str = ""
    format_hint: str = ""
    path: str | None = None
    data_base64: str | None = None
    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_source(self) -> EmbeddedTextureDoc:
        if (self.path is None) == (self.data_base64 is None):
            raise ValueError("Embedded texture must set exactly one of 'path', 'data_base64'")
        if self.path is not None and self.height != 0:
            raise ValueError("Embedded texture loaded from 'path' must have height 0")
        return self


class SceneDoc(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: str
    root: NodeDoc | None = None
    meshes: list[MeshDoc] = []
    materials: list[MaterialDoc | None] = []
    textures: list[EmbeddedTextureDoc] = []


NodeDoc.model_rebuild()


def _quat_to_matrix(qx: float, qy: float, qz: float, qw: float) -> np.ndarray:
    """Convert a unit quaternion (x, y, z, w) to a 3x3 rotation matrix."""
    x2 = qx + qx
    y2 = qy + qy
    z2 = qz + qz
    xx = qx * x2
    xy = qx * y2
    xz = qx * z2
    yy = qy * y2
    yz = qy * z2
    zz = qz * z2
    wx = qw * x2
    wy = qw * y2
    wz = qw * z2
    return np.array(
        [
            [1.0 - (yy + zz), xy - wz, xz + wy],
            [xy + wz, 1.0 - (xx + zz), yz - wx],
            [xz - wy, yz + wx, 1.0 - (xx + yy)],
        ],
        dtype=np.float64,
    )
