"""YAML loading of scene description documents into Scene objects."""

from __future__ import annotations

import base64
import binascii
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from mstconv.errors import ParseError
from mstconv.models import SUPPORTED_VERSIONS, EmbeddedTextureDoc, NodeDoc, SceneDoc
from mstconv.scene import EmbeddedTexture, Material, MaterialProperty, Mesh, Node, Scene


def _make_yaml() -> YAML:
    """Create a ruamel.yaml safe loader that errors on duplicate keys."""
    yml = YAML(typ="safe")
    yml.allow_duplicate_keys = False
    return yml


def _read_source_text(source: str | Path) -> str:
    """Read document content from path or treat input as raw YAML text."""
    if isinstance(source, Path):
        try:
            return source.read_text(encoding="utf-8")
        except OSError as e:
            raise ParseError(f"Cannot read file: {e}") from e
    return source


def load_scene_doc(source: str | Path) -> SceneDoc:
    """Load and schema-validate a scene description.

    Raises:
        ParseError: On YAML syntax errors, schema violations, or version mismatches.
    """
    text = _read_source_text(source)
    try:
        data = _make_yaml().load(text)
    except YAMLError as e:
        raise ParseError(f"Invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ParseError("Top-level YAML value must be a mapping")

    version = data.get("version")
    if version is None:
        raise ParseError("Missing required field: version")
    version = str(version)
    if version not in SUPPORTED_VERSIONS:
        raise ParseError(
            f"Unsupported version: {version!r} (supported: {sorted(SUPPORTED_VERSIONS)})"
        )
    data["version"] = version

    try:
        return SceneDoc(**data)
    except PydanticValidationError as e:
        raise ParseError(f"Schema validation failed:\n{e}") from e


def parse_scene(source: str | Path, *, base_dir: Path | None = None) -> Scene:
    """Parse a scene description from a string or file path into a Scene.

    Embedded texture paths are resolved against ``base_dir``, which
    defaults to the document's directory (or the working directory for
    string input).
    """
    doc = load_scene_doc(source)
    if base_dir is None:
        base_dir = source.parent if isinstance(source, Path) else Path(".")
    return build_scene(doc, base_dir=base_dir)


def build_scene(doc: SceneDoc, *, base_dir: Path) -> Scene:
    materials: list[Material | None] = []
    for mat_doc in doc.materials:
        if mat_doc is None:
            materials.append(None)
            continue
        props = [p.to_property() for p in mat_doc.properties]
        if mat_doc.name is not None:
            props.insert(0, MaterialProperty(key="?mat.name", data=mat_doc.name.encode("utf-8")))
        materials.append(Material(properties=tuple(props)))

    meshes = []
    for mesh_doc in doc.meshes:
        texcoords, components = mesh_doc.texcoord_arrays()
        meshes.append(
            Mesh(
                vertices=mesh_doc.vertices,
                normals=mesh_doc.normals,
                tangents=mesh_doc.tangents,
                bitangents=mesh_doc.bitangents,
                color_sets=tuple(mesh_doc.color_arrays()),
                texcoords=tuple(texcoords),
                texcoord_components=tuple(components),
                faces=tuple(tuple(f) for f in mesh_doc.faces),
                material_index=mesh_doc.material_index,
                name=mesh_doc.name,
            )
        )

    textures = [_build_embedded(t, base_dir) for t in doc.textures]
    root = _build_node(doc.root) if doc.root is not None else None

    return Scene(root=root, meshes=meshes, materials=materials, textures=textures)


def _build_node(node_doc: NodeDoc) -> Node:
    return Node(
        name=node_doc.name,
        transform=node_doc.transform(),
        children=tuple(_build_node(c) for c in node_doc.children),
        mesh_indices=tuple(node_doc.meshes),
        metadata=node_doc.metadata,
    )


def _build_embedded(tex_doc: EmbeddedTextureDoc, base_dir: Path) -> EmbeddedTexture:
    if tex_doc.path is not None:
        tex_path = base_dir / tex_doc.path
        try:
            data = tex_path.read_bytes()
        except OSError as e:
            raise ParseError(f"Cannot read embedded texture {tex_doc.path!r}: {e}") from e
        format_hint = tex_doc.format_hint or tex_path.suffix.lstrip(".").lower()
        return EmbeddedTexture(
            width=len(data),
            height=0,
            data=data,
            format_hint=format_hint,
            filename=tex_doc.filename or tex_path.name,
        )

    try:
        data = base64.b64decode(tex_doc.data_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ParseError(f"Invalid base64 data for embedded texture: {e}") from e
    width = tex_doc.width if tex_doc.height else len(data)
    return EmbeddedTexture(
        width=width,
        height=tex_doc.height,
        data=data,
        format_hint=tex_doc.format_hint,
        filename=tex_doc.filename,
    )
