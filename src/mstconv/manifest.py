"""Build manifest for mstconv conversion output."""

from __future__ import annotations

import hashlib
import subprocess
import sys
from datetime import datetime, timezone
from pathlib import Path

from mstconv import __version__
from mstconv.options import ConversionOptions


def _sha256_of_file(path: Path) -> str:
    """Return the hex SHA-256 digest of a file."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()


def _git_sha() -> str | None:
    """Return current git HEAD SHA, or None if unavailable."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    if result.returncode == 0:
        return result.stdout.strip()
    return None


def build_manifest(
    *,
    input_path: Path,
    output_path: Path,
    summary: dict | None = None,
    options: ConversionOptions | None = None,
    command_args: list[str] | None = None,
) -> dict:
    """Build a manifest dict describing a conversion run.

    Should be called *after* the output GLB has been written.
    """
    manifest: dict = {
        "manifest_version": 1,
        "tool": {
            "name": "mstconv",
            "version": __version__,
            "python": sys.version.split()[0],
            "git_sha": _git_sha(),
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "input": {
            "path": str(input_path),
            "sha256": _sha256_of_file(input_path),
        },
        "output": {
            "path": str(output_path),
            "sha256": _sha256_of_file(output_path),
        },
    }

    if options is not None:
        manifest["options"] = {
            "transform_mode": options.transform_mode,
            "search_dirs": list(options.search_dirs),
            "extra_search_roots": [str(p) for p in options.extra_search_roots],
        }

    if summary is not None:
        manifest["summary"] = summary

    if command_args is not None:
        manifest["command_args"] = command_args

    return manifest
