"""Scene flattening: imported scene to an instance-based MST mesh."""

from __future__ import annotations

import numpy as np

from mstconv.geometry import convert_mesh
from mstconv.materials import classify_material
from mstconv.mst import InstanceMesh, TargetMesh
from mstconv.options import ConversionOptions
from mstconv.scene import Node, Scene
from mstconv.warning_policy import emit_warning


def convert_scene(scene: Scene | None, *, options: ConversionOptions | None = None) -> TargetMesh:
    """Convert an imported scene into an MST mesh.

    Materials and meshes are converted once each, in source order, so output
    indices match source indices. The node tree is then walked depth-first,
    emitting one instance per valid mesh reference. Geometry is shared
    between instances, never copied.

    A missing scene yields an empty mesh.
    """
    target = TargetMesh()
    if scene is None:
        return target

    options = options or ConversionOptions()

    for material in scene.materials:
        target.materials.append(
            classify_material(material, options=options, embedded=scene.textures)
        )

    for mesh in scene.meshes:
        target.nodes.append(convert_mesh(mesh, options=options))

    if scene.root is not None:
        _flatten_node(scene.root, np.eye(4, dtype=np.float64), target, options)

    return target


def _flatten_node(
    node: Node,
    parent_world: np.ndarray,
    target: TargetMesh,
    options: ConversionOptions,
) -> None:
    """Emit instances for ``node`` and recurse into its children in order."""
    local = node.local_matrix()
    world = parent_world @ local
    transform = world if options.transform_mode == "world" else local

    for mesh_index in node.mesh_indices:
        if not 0 <= mesh_index < len(target.nodes):
            emit_warning(
                "W02",
                f"Node {node.name!r} references mesh {mesh_index} "
                f"but only {len(target.nodes)} mesh(es) exist",
                policy=options.warning_policy,
            )
            continue
        target.instances.append(
            InstanceMesh(
                transforms=(transform.copy(),),
                mesh=target.nodes[mesh_index],
                mesh_index=mesh_index,
                name=node.name,
            )
        )

    for child in node.children:
        _flatten_node(child, world, target, options)
