"""Click CLI entry point for mstconv."""

from __future__ import annotations

import json
import sys
import warnings
from pathlib import Path

import click

from mstconv import __version__
from mstconv.errors import MstconvError
from mstconv.exporter import export_glb
from mstconv.flatten import convert_scene
from mstconv.inspection import render_text, summarize
from mstconv.manifest import build_manifest
from mstconv.mst import TargetMesh
from mstconv.options import ConversionOptions
from mstconv.parser import parse_scene
from mstconv.warning_policy import CODE_DESCRIPTIONS, ConversionWarning, WarningPolicy


def _build_warning_policy(
    warn_as_error: str | None, suppress_warning: str | None
) -> WarningPolicy | None:
    """Parse CLI warning options into a WarningPolicy, or None if unset."""
    if warn_as_error is None and suppress_warning is None:
        return None
    try:
        return WarningPolicy.from_code_lists(warn_as_error, suppress_warning)
    except ValueError as e:
        raise click.ClickException(str(e)) from e


def _default_output(input_file: Path) -> Path:
    """Strip .scene.yaml or .yaml and add .glb."""
    stem = input_file.name
    for suffix in [".scene.yaml", ".scene.yml", ".yaml", ".yml"]:
        if stem.endswith(suffix):
            stem = stem[: -len(suffix)]
            break
    return input_file.parent / f"{stem}.glb"


def _convert_file(input_file: Path, options: ConversionOptions) -> TargetMesh:
    """Parse and convert, echoing conversion warnings to stderr."""
    scene = parse_scene(input_file)
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", ConversionWarning)
        target = convert_scene(scene, options=options)
    for w in caught:
        if not issubclass(w.category, ConversionWarning):
            continue
        click.echo(f"Warning: {w.message}", err=True)
    return target


_CODES_HELP = "; ".join(f"{code} {text}" for code, text in sorted(CODE_DESCRIPTIONS.items()))

_shared_options = [
    click.option(
        "--transform-mode",
        type=click.Choice(["world", "local"]),
        default="world",
        show_default=True,
        help="Record world (ancestor-composed) or local node transforms on instances.",
    ),
    click.option(
        "--texture-dir",
        "texture_dirs",
        type=click.Path(file_okay=False, path_type=Path),
        multiple=True,
        help="Extra directory to search for textures. May be repeated.",
    ),
    click.option(
        "--warn-as-error",
        "warn_as_error",
        type=str,
        default=None,
        help=f"Comma-separated W-codes to treat as errors (e.g. W01,W02). Codes: {_CODES_HELP}.",
    ),
    click.option(
        "--suppress-warning",
        "suppress_warning",
        type=str,
        default=None,
        help="Comma-separated W-codes to suppress (e.g. W04).",
    ),
]


def _with_shared_options(func):
    for option in reversed(_shared_options):
        func = option(func)
    return func


def _build_options(
    input_file: Path,
    transform_mode: str,
    texture_dirs: tuple[Path, ...],
    warn_as_error: str | None,
    suppress_warning: str | None,
) -> ConversionOptions:
    return ConversionOptions(
        transform_mode=transform_mode,
        extra_search_roots=(input_file.parent, *texture_dirs),
        warning_policy=_build_warning_policy(warn_as_error, suppress_warning),
    )


@click.group()
@click.version_option(version=__version__, prog_name="mstconv")
def main() -> None:
    """mstconv: flatten imported 3D scenes into instance-based MST meshes."""


@main.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    default=None,
    help="Output GLB file path. Defaults to input name with .glb extension.",
)
@_with_shared_options
@click.option(
    "--emit-manifest",
    "emit_manifest",
    type=click.Path(path_type=Path),
    default=None,
    help="Write a JSON build manifest to this path after successful conversion.",
)
def convert(
    input_file: Path,
    output: Path | None,
    transform_mode: str = "world",
    texture_dirs: tuple[Path, ...] = (),
    warn_as_error: str | None = None,
    suppress_warning: str | None = None,
    emit_manifest: Path | None = None,
) -> None:
    """Convert a scene description to a GLB file."""
    options = _build_options(
        input_file, transform_mode, texture_dirs, warn_as_error, suppress_warning
    )
    if output is None:
        output = _default_output(input_file)

    try:
        target = _convert_file(input_file, options)
        export_glb(target, output)
        if emit_manifest is not None:
            manifest = build_manifest(
                input_path=input_file,
                output_path=output,
                summary=summarize(target),
                options=options,
                command_args=sys.argv[1:],
            )
            emit_manifest.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
        click.echo(f"Converted: {output}")
    except MstconvError as e:
        raise click.ClickException(str(e))


@main.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Inspection output format.",
)
@_with_shared_options
def inspect(
    input_file: Path,
    output_format: str = "text",
    transform_mode: str = "world",
    texture_dirs: tuple[Path, ...] = (),
    warn_as_error: str | None = None,
    suppress_warning: str | None = None,
) -> None:
    """Convert a scene description and print a summary without writing GLB."""
    options = _build_options(
        input_file, transform_mode, texture_dirs, warn_as_error, suppress_warning
    )
    try:
        summary = summarize(_convert_file(input_file, options))
    except MstconvError as e:
        raise click.ClickException(str(e))

    if output_format == "json":
        click.echo(json.dumps(summary, indent=2))
    else:
        click.echo(render_text(summary), nl=False)
