"""Summary diagnostics for converted MST meshes."""

from __future__ import annotations

import numpy as np

from mstconv import __version__
from mstconv.mst import MATERIAL_KINDS, TargetMesh, material_textures


def summarize(target: TargetMesh) -> dict[str, object]:
    """Return deterministic summary statistics for a converted mesh.

    Bounds are the world-space AABB of every instanced vertex; both
    corners are None when nothing is instanced.
    """
    kinds = {kind: 0 for kind in MATERIAL_KINDS}
    texture_ids: set[int] = set()
    for material in target.materials:
        kinds[material.kind] += 1
        texture_ids.update(t.id for t in material_textures(material))

    bounds_min: np.ndarray | None = None
    bounds_max: np.ndarray | None = None
    placements = 0
    for inst in target.instances:
        vertices = inst.mesh.vertices
        for transform in inst.transforms:
            placements += 1
            if len(vertices) == 0:
                continue
            homogeneous = np.hstack([vertices.astype(np.float64), np.ones((len(vertices), 1))])
            world = (transform @ homogeneous.T).T[:, :3]
            lo, hi = world.min(axis=0), world.max(axis=0)
            bounds_min = lo if bounds_min is None else np.minimum(bounds_min, lo)
            bounds_max = hi if bounds_max is None else np.maximum(bounds_max, hi)

    return {
        "mstconv_version": __version__,
        "mst_version": target.version,
        "material_count": len(target.materials),
        "materials_by_kind": kinds,
        "texture_count": len(texture_ids),
        "mesh_count": len(target.nodes),
        "vertex_count": sum(len(n.vertices) for n in target.nodes),
        "triangle_count": sum(n.triangle_count for n in target.nodes),
        "instance_count": len(target.instances),
        "placement_count": placements,
        "bounds": {
            "min": None if bounds_min is None else [float(v) for v in bounds_min],
            "max": None if bounds_max is None else [float(v) for v in bounds_max],
        },
    }


def _fmt_vec(values: list[float] | None) -> str:
    if values is None:
        return "-"
    return "[" + ", ".join(f"{v:.6g}" for v in values) + "]"


def render_text(summary: dict[str, object]) -> str:
    """Render human-readable text output for a summary."""
    lines = ["summary:"]
    lines.append(f"  mst_version: {summary['mst_version']}")
    lines.append(f"  materials: {summary['material_count']}")
    for kind, count in summary["materials_by_kind"].items():
        if count:
            lines.append(f"    {kind}: {count}")
    lines.append(f"  textures: {summary['texture_count']}")
    lines.append(f"  meshes: {summary['mesh_count']}")
    lines.append(f"  vertices: {summary['vertex_count']}")
    lines.append(f"  triangles: {summary['triangle_count']}")
    lines.append(f"  instances: {summary['instance_count']}")
    bounds = summary["bounds"]
    lines.append(f"  bounds.min: {_fmt_vec(bounds['min'])}")
    lines.append(f"  bounds.max: {_fmt_vec(bounds['max'])}")
    return "\n".join(lines) + "\n"
