"""mstconv: flatten imported 3D scenes into instance-based MST meshes."""

__version__ = "0.3.0"
