"""Material classification: source material properties to an MST material variant."""

from __future__ import annotations

import struct
from collections.abc import Sequence

from mstconv.mst import (
    BLACK,
    DEFAULT_COLOR,
    BaseMaterial,
    Color,
    LambertMaterial,
    MeshMaterial,
    PbrMaterial,
    PhongMaterial,
    Texture,
    TextureMaterial,
)
from mstconv.options import ConversionOptions
from mstconv.scene import EmbeddedTexture, Material, MaterialProperty, PropertyType, TextureType
from mstconv.textures import TextureRole, resolve_texture
from mstconv.warning_policy import emit_warning

# Raw importer keys, with the importer's human-readable names accepted as aliases.
PROPERTY_FIELDS: dict[str, str] = {
    "$clr.diffuse": "diffuse",
    "$clr.base": "diffuse",
    "COLOR_DIFFUSE": "diffuse",
    "$clr.specular": "specular",
    "COLOR_SPECULAR": "specular",
    "$clr.ambient": "ambient",
    "COLOR_AMBIENT": "ambient",
    "$clr.emissive": "emissive",
    "COLOR_EMISSIVE": "emissive",
    "$mat.opacity": "opacity",
    "OPACITY": "opacity",
    "$mat.shininess": "shininess",
    "SHININESS": "shininess",
    "$mat.metallic": "metallic",
    "$mat.metallicFactor": "metallic",
    "METALLIC": "metallic",
    "$mat.roughness": "roughness",
    "$mat.roughnessFactor": "roughness",
    "ROUGHNESS": "roughness",
}

TEXTURE_FILE_KEYS: frozenset[str] = frozenset({"$tex.file", "TEXTURE_BASE"})

ROLE_SEMANTICS: dict[str, frozenset[TextureType]] = {
    "diffuse": frozenset({TextureType.DIFFUSE, TextureType.BASE_COLOR}),
    "normal": frozenset({TextureType.NORMALS, TextureType.NORMAL_CAMERA}),
}

_COLOR_FIELDS = frozenset({"diffuse", "specular", "ambient", "emissive"})


def read_color(data: bytes) -> Color | None:
    """Read the first three payload bytes as an RGB byte triple."""
    if len(data) < 3:
        return None
    return (data[0], data[1], data[2])


def read_float32(data: bytes) -> float | None:
    """Reinterpret a little-endian 4-byte payload as an IEEE-754 float32."""
    if len(data) < 4:
        return None
    return struct.unpack_from("<f", data)[0]


def read_float64(data: bytes) -> float | None:
    if len(data) < 8:
        return None
    return struct.unpack_from("<d", data)[0]


def read_scalar(prop: MaterialProperty) -> float | None:
    """Decode a scalar property, honouring a declared float64 type."""
    if prop.type == PropertyType.FLOAT64:
        return read_float64(prop.data)
    return read_float32(prop.data)


def read_string(prop: MaterialProperty) -> str:
    """Decode a string payload.

    Importer string properties may carry a little-endian uint32 length
    prefix ahead of the characters; plain byte strings are used as is.
    """
    data = prop.data
    if prop.type == PropertyType.STRING and len(data) >= 4:
        (length,) = struct.unpack_from("<I", data)
        if length in (len(data) - 4, len(data) - 5):
            data = data[4 : 4 + length]
    return data.decode("utf-8", errors="replace")


def material_texture(
    material: Material,
    role: TextureRole,
    *,
    options: ConversionOptions | None = None,
    embedded: Sequence[EmbeddedTexture] = (),
) -> Texture | None:
    """Resolve the texture a material binds for ``role``.

    Candidate texture-file properties are tried by ascending channel index;
    the first one that resolves wins.
    """
    semantics = ROLE_SEMANTICS[role]
    candidates = [
        p
        for p in material.properties
        if p.semantic in semantics and p.key in TEXTURE_FILE_KEYS and p.data
    ]
    for prop in sorted(candidates, key=lambda p: p.index):
        texture = resolve_texture(read_string(prop), role, options=options, embedded=embedded)
        if texture is not None:
            return texture
    return None


def classify_material(
    material: Material | None,
    *,
    options: ConversionOptions | None = None,
    embedded: Sequence[EmbeddedTexture] = (),
) -> MeshMaterial:
    """Convert a source material to the MST variant that best represents it.

    Variant priority: PBR (metallic or roughness present) > textured (a
    diffuse or normal texture resolved) > Phong (specular color present) >
    Lambert. A missing material yields a flat gray base material.
    """
    if material is None:
        return BaseMaterial(color=DEFAULT_COLOR)

    options = options or ConversionOptions()
    values: dict[str, object] = {
        "diffuse": DEFAULT_COLOR,
        "specular": BLACK,
        "ambient": BLACK,
        "emissive": BLACK,
        "opacity": 1.0,
        "metallic": 0.0,
        "roughness": 0.5,
        "shininess": 32.0,
    }
    present: set[str] = set()

    for prop in material.properties:
        name = PROPERTY_FIELDS.get(prop.key)
        if name is None:
            continue
        present.add(name)
        value = read_color(prop.data) if name in _COLOR_FIELDS else read_scalar(prop)
        if value is None:
            emit_warning(
                "W03",
                f"Material property {prop.key!r} has a {len(prop.data)}-byte payload; "
                "keeping default",
                policy=options.warning_policy,
            )
            continue
        values[name] = value

    color = values["diffuse"]
    transparency = float(values["opacity"])
    texture = material_texture(material, "diffuse", options=options, embedded=embedded)
    normal = material_texture(material, "normal", options=options, embedded=embedded)

    if "metallic" in present or "roughness" in present:
        return PbrMaterial(
            color=color,
            transparency=transparency,
            texture=texture,
            normal=normal,
            emissive=values["emissive"],
            metallic=values["metallic"],
            roughness=values["roughness"],
            reflectance=0.5,
        )
    if texture is not None or normal is not None:
        return TextureMaterial(
            color=color, transparency=transparency, texture=texture, normal=normal
        )
    if "specular" in present:
        return PhongMaterial(
            color=color,
            transparency=transparency,
            ambient=values["ambient"],
            diffuse=values["diffuse"],
            emissive=values["emissive"],
            specular=values["specular"],
            shininess=values["shininess"],
            specularity=1.0,
        )
    return LambertMaterial(
        color=color,
        transparency=transparency,
        ambient=values["ambient"],
        diffuse=values["diffuse"],
        emissive=values["emissive"],
    )
