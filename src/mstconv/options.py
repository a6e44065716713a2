"""Conversion options."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from mstconv.warning_policy import WarningPolicy

DEFAULT_SEARCH_DIRS: tuple[str, ...] = (
    ".",
    "..",
    "textures",
    "Textures",
    os.path.join("..", "textures"),
    os.path.join("..", "Textures"),
)

TransformMode = Literal["world", "local"]


@dataclass(frozen=True)
class ConversionOptions:
    """Controls scene conversion.

    ``transform_mode`` selects what an instance records for a node: ``"world"``
    composes the node matrix with all ancestors, ``"local"`` uses the node's
    own matrix unchanged.
    """

    transform_mode: TransformMode = "world"
    search_dirs: tuple[str, ...] = DEFAULT_SEARCH_DIRS
    extra_search_roots: tuple[Path, ...] = ()
    warning_policy: WarningPolicy | None = None

    def __post_init__(self) -> None:
        if self.transform_mode not in ("world", "local"):
            raise ValueError(f"Unknown transform mode: {self.transform_mode!r}")
