"""Per-mesh geometry conversion and polygon triangulation."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from mstconv.mst import FaceGroup, MeshNode
from mstconv.options import ConversionOptions
from mstconv.scene import Mesh
from mstconv.warning_policy import emit_warning


def triangulate_fan(indices: Sequence[int]) -> list[tuple[int, int, int]]:
    """Split a polygon into triangles fanning out from its first vertex.

    ``[i0, i1, ..., in]`` becomes ``(i0, i1, i2), (i0, i2, i3), ..., (i0, in-1, in)``.
    Only correct for convex planar polygons; concave input is triangulated
    the same way. Fewer than 3 indices yield no triangles.
    """
    if len(indices) < 3:
        return []
    first = indices[0]
    return [(first, indices[i], indices[i + 1]) for i in range(1, len(indices) - 1)]


def colors_to_bytes(colors: np.ndarray) -> np.ndarray:
    """Scale RGB(A) float colors in [0, 1] to (N, 3) bytes, clamping out-of-range values."""
    if len(colors) == 0:
        return np.zeros((0, 3), dtype=np.uint8)
    scaled = np.nan_to_num(colors[:, :3].astype(np.float64) * 255.0)
    return np.clip(scaled, 0.0, 255.0).astype(np.uint8)


def convert_mesh(mesh: Mesh | None, *, options: ConversionOptions | None = None) -> MeshNode:
    """Convert one source mesh to an MST mesh node.

    Only color set 0 and texture coordinate set 0 are kept. All triangles go
    into a single face group tagged with the mesh's material index. A
    missing mesh converts to an empty node so output indices stay aligned
    with the source list.
    """
    if mesh is None:
        return MeshNode(
            vertices=np.zeros((0, 3), dtype=np.float32),
            normals=np.zeros((0, 3), dtype=np.float32),
            colors=np.zeros((0, 3), dtype=np.uint8),
            texcoords=np.zeros((0, 2), dtype=np.float32),
        )

    options = options or ConversionOptions()

    colors = np.zeros((0, 3), dtype=np.uint8)
    if mesh.color_sets and len(mesh.color_sets[0]) > 0:
        colors = colors_to_bytes(mesh.color_sets[0])

    texcoords = np.zeros((0, 2), dtype=np.float32)
    if mesh.texcoords and len(mesh.texcoords[0]) > 0:
        texcoords = mesh.texcoords[0][:, :2].astype(np.float32)

    triangles: list[tuple[int, int, int]] = []
    degenerate = 0
    for face in mesh.faces:
        if len(face.indices) < 3:
            degenerate += 1
            continue
        triangles.extend(triangulate_fan(face.indices))

    if degenerate:
        emit_warning(
            "W04",
            f"Mesh {mesh.name!r}: skipped {degenerate} face(s) with fewer than 3 indices",
            policy=options.warning_policy,
        )

    face_groups: list[FaceGroup] = []
    if triangles:
        face_groups.append(
            FaceGroup(
                batch_id=mesh.material_index,
                faces=np.asarray(triangles, dtype=np.uint32).reshape(-1, 3),
            )
        )

    return MeshNode(
        vertices=mesh.vertices.copy(),
        normals=mesh.normals.copy(),
        colors=colors,
        texcoords=texcoords,
        face_groups=face_groups,
        name=mesh.name,
    )
