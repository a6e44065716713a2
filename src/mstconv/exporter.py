"""GLB serialization of converted MST meshes via pygltflib."""

from __future__ import annotations

import io
import math
from pathlib import Path

import numpy as np
import pygltflib
from PIL import Image

from mstconv.errors import ExportError
from mstconv.mst import MeshMaterial, MeshNode, TargetMesh, Texture


def export_glb(target: TargetMesh, output_path: Path) -> None:
    """Write a converted mesh to a GLB file.

    Each mesh node becomes one glTF mesh; each instance transform becomes a
    scene node referencing it, so shared geometry is stored once.
    """
    data = target_to_glb_bytes(target)
    try:
        output_path.write_bytes(data)
    except OSError as e:
        raise ExportError(f"Cannot write GLB to {output_path}: {e}") from e


def target_to_glb_bytes(target: TargetMesh) -> bytes:
    """Serialize a converted mesh to GLB bytes."""
    try:
        gltf = _build_gltf(target)
        return b"".join(gltf.save_to_bytes())
    except Exception as e:
        if isinstance(e, ExportError):
            raise
        raise ExportError(f"Failed to export glTF: {e}") from e


def _build_gltf(target: TargetMesh) -> pygltflib.GLTF2:
    gltf = pygltflib.GLTF2(
        scene=0,
        scenes=[pygltflib.Scene(nodes=[])],
        nodes=[],
        meshes=[],
        accessors=[],
        bufferViews=[],
        buffers=[],
        materials=[],
        textures=[],
        images=[],
        samplers=[],
    )
    gltf.asset = pygltflib.Asset(version="2.0", generator=f"mstconv (mst v{target.version})")

    blob_data = bytearray()
    texture_map: dict[int, int] = {}  # MST texture id -> glTF texture index

    for i, material in enumerate(target.materials):
        gltf.materials.append(_build_material(gltf, blob_data, material, i, texture_map))

    mesh_map: dict[int, int | None] = {}
    for i, node in enumerate(target.nodes):
        mesh_map[i] = _build_mesh(gltf, blob_data, node, i, len(target.materials))

    scene_nodes: list[int] = []
    for i, inst in enumerate(target.instances):
        gltf_mesh_idx = mesh_map.get(inst.mesh_index)
        if gltf_mesh_idx is None:
            continue
        for transform in inst.transforms:
            # glTF matrices are column-major
            mat_col_major = transform.T.flatten().tolist()
            node_idx = len(gltf.nodes)
            gltf.nodes.append(
                pygltflib.Node(
                    name=inst.name or f"instance_{i}",
                    mesh=gltf_mesh_idx,
                    matrix=mat_col_major,
                )
            )
            scene_nodes.append(node_idx)

    gltf.scenes[0].nodes = scene_nodes
    gltf.buffers = [pygltflib.Buffer(byteLength=len(blob_data))]
    gltf.set_binary_blob(bytes(blob_data))
    return gltf


def _build_material(
    gltf: pygltflib.GLTF2,
    blob_data: bytearray,
    material: MeshMaterial,
    index: int,
    texture_map: dict[int, int],
) -> pygltflib.Material:
    """Map an MST material variant onto a glTF metallic-roughness material."""
    alpha = min(max(float(material.transparency), 0.0), 1.0)
    base_color = [c / 255.0 for c in material.color] + [alpha]
    pbr = pygltflib.PbrMetallicRoughness(
        baseColorFactor=base_color,
        metallicFactor=0.0,
        roughnessFactor=1.0,
    )
    gltf_mat = pygltflib.Material(
        name=f"{material.kind}_{index}",
        pbrMetallicRoughness=pbr,
        alphaMode="OPAQUE" if alpha >= 1.0 else "BLEND",
        doubleSided=False,
    )

    if material.kind == "pbr":
        pbr.metallicFactor = min(max(float(material.metallic), 0.0), 1.0)
        pbr.roughnessFactor = min(max(float(material.roughness), 0.0), 1.0)
    elif material.kind == "phong":
        # Blinn-Phong exponent to perceptual roughness
        pbr.roughnessFactor = math.sqrt(2.0 / (max(float(material.shininess), 0.0) + 2.0))

    if material.kind in ("lambert", "phong", "pbr") and any(material.emissive):
        gltf_mat.emissiveFactor = [c / 255.0 for c in material.emissive]

    if material.kind in ("textured", "pbr"):
        if material.texture is not None:
            tex_idx = _register_texture(gltf, blob_data, material.texture, texture_map)
            pbr.baseColorTexture = pygltflib.TextureInfo(index=tex_idx)
        if material.normal is not None:
            tex_idx = _register_texture(gltf, blob_data, material.normal, texture_map)
            gltf_mat.normalTexture = pygltflib.NormalMaterialTexture(index=tex_idx)

    return gltf_mat


def _register_texture(
    gltf: pygltflib.GLTF2,
    blob_data: bytearray,
    texture: Texture,
    texture_map: dict[int, int],
) -> int:
    """Embed a texture as a PNG image once per texture id."""
    if texture.id in texture_map:
        return texture_map[texture.id]

    img = Image.frombytes("RGBA", texture.size, texture.pixels())
    png = io.BytesIO()
    img.save(png, format="PNG")
    png_bytes = png.getvalue()

    _align(blob_data)
    bv_idx = len(gltf.bufferViews)
    gltf.bufferViews.append(
        pygltflib.BufferView(buffer=0, byteOffset=len(blob_data), byteLength=len(png_bytes))
    )
    blob_data.extend(png_bytes)

    if not gltf.samplers:
        gltf.samplers.append(pygltflib.Sampler())

    image_idx = len(gltf.images)
    gltf.images.append(
        pygltflib.Image(name=texture.name, bufferView=bv_idx, mimeType="image/png")
    )
    tex_idx = len(gltf.textures)
    gltf.textures.append(pygltflib.Texture(name=texture.name, sampler=0, source=image_idx))
    texture_map[texture.id] = tex_idx
    return tex_idx


def _build_mesh(
    gltf: pygltflib.GLTF2,
    blob_data: bytearray,
    node: MeshNode,
    index: int,
    material_count: int,
) -> int | None:
    """Write one mesh node's buffers; returns the glTF mesh index or None if empty."""
    n_verts = len(node.vertices)
    if n_verts == 0 or not node.face_groups:
        return None

    attributes = pygltflib.Attributes(
        POSITION=_write_buffer_view_and_accessor(
            gltf,
            blob_data,
            node.vertices.astype(np.float32),
            pygltflib.FLOAT,
            pygltflib.VEC3,
            pygltflib.ARRAY_BUFFER,
            include_min_max=True,
        )
    )
    if len(node.normals) == n_verts:
        attributes.NORMAL = _write_buffer_view_and_accessor(
            gltf,
            blob_data,
            node.normals.astype(np.float32),
            pygltflib.FLOAT,
            pygltflib.VEC3,
            pygltflib.ARRAY_BUFFER,
        )
    if len(node.colors) == n_verts:
        # Vertex attributes must be 4-byte aligned, so RGB bytes are widened to RGBA
        rgba = np.full((n_verts, 4), 255, dtype=np.uint8)
        rgba[:, :3] = node.colors
        attributes.COLOR_0 = _write_buffer_view_and_accessor(
            gltf,
            blob_data,
            rgba,
            pygltflib.UNSIGNED_BYTE,
            pygltflib.VEC4,
            pygltflib.ARRAY_BUFFER,
            normalized=True,
        )
    if len(node.texcoords) == n_verts:
        attributes.TEXCOORD_0 = _write_buffer_view_and_accessor(
            gltf,
            blob_data,
            node.texcoords.astype(np.float32),
            pygltflib.FLOAT,
            pygltflib.VEC2,
            pygltflib.ARRAY_BUFFER,
        )

    primitives = []
    for group in node.face_groups:
        idx_acc = _write_buffer_view_and_accessor(
            gltf,
            blob_data,
            group.faces.astype(np.uint32).reshape(-1),
            pygltflib.UNSIGNED_INT,
            pygltflib.SCALAR,
            pygltflib.ELEMENT_ARRAY_BUFFER,
        )
        material = group.batch_id if 0 <= group.batch_id < material_count else None
        primitives.append(
            pygltflib.Primitive(attributes=attributes, indices=idx_acc, material=material)
        )

    mesh_idx = len(gltf.meshes)
    gltf.meshes.append(pygltflib.Mesh(name=node.name or f"mesh_{index}", primitives=primitives))
    return mesh_idx


def _align(blob_data: bytearray) -> None:
    """Pad the blob to a 4-byte boundary."""
    blob_data.extend(b"\x00" * ((4 - len(blob_data) % 4) % 4))


def _write_buffer_view_and_accessor(
    gltf: pygltflib.GLTF2,
    blob_data: bytearray,
    data_array: np.ndarray,
    component_type: int,
    accessor_type: str,
    target: int | None = None,
    *,
    include_min_max: bool = False,
    normalized: bool = False,
) -> int:
    """Write a buffer view and accessor, returning the accessor index."""
    _align(blob_data)
    offset = len(blob_data)
    data_bytes = np.ascontiguousarray(data_array).tobytes()
    blob_data.extend(data_bytes)

    bv_idx = len(gltf.bufferViews)
    bv = pygltflib.BufferView(
        buffer=0,
        byteOffset=offset,
        byteLength=len(data_bytes),
    )
    if target is not None:
        bv.target = target
    gltf.bufferViews.append(bv)

    acc_kwargs: dict = {
        "bufferView": bv_idx,
        "byteOffset": 0,
        "componentType": component_type,
        "count": len(data_array),
        "type": accessor_type,
    }
    if normalized:
        acc_kwargs["normalized"] = True
    if include_min_max:
        acc_kwargs["min"] = data_array.min(axis=0).tolist()
        acc_kwargs["max"] = data_array.max(axis=0).tolist()

    acc_idx = len(gltf.accessors)
    gltf.accessors.append(pygltflib.Accessor(**acc_kwargs))
    return acc_idx
