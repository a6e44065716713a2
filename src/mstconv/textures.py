"""Texture lookup and decoding.

Texture resolution is best-effort: a path that cannot be located, read or
decoded produces a ``W01`` warning and no texture, never an exception.
"""

from __future__ import annotations

import io
import zlib
from collections.abc import Sequence
from pathlib import Path
from typing import BinaryIO, Literal

from PIL import Image, UnidentifiedImageError

from mstconv.mst import PixelType, Texture, TextureCompression, TextureFormat
from mstconv.options import ConversionOptions
from mstconv.scene import EmbeddedTexture
from mstconv.warning_policy import emit_warning

TextureRole = Literal["diffuse", "normal"]

_EXTENSION_FORMATS: dict[str, str] = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".gif": "GIF",
    ".bmp": "BMP",
    ".tif": "TIFF",
    ".tiff": "TIFF",
}

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193

# Errors Pillow and zlib raise for unreadable or corrupt image data
_DECODE_ERRORS = (OSError, ValueError, SyntaxError, zlib.error, Image.DecompressionBombError)


def fnv1a_32(text: str) -> int:
    """Return the 32-bit FNV-1a hash of ``text`` as a signed integer."""
    h = _FNV32_OFFSET
    for byte in text.encode("utf-8"):
        h ^= byte
        h = (h * _FNV32_PRIME) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def clean_texture_path(raw: str | bytes) -> str:
    """Strip whitespace and null terminators from a raw texture reference."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    return raw.strip().strip("\x00").strip()


def _base_name(path: str) -> str:
    return path.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]


def candidate_paths(
    path: str,
    search_dirs: Sequence[str],
    extra_roots: Sequence[Path] = (),
) -> list[Path]:
    """List the distinct fallback locations tried for a missing texture, in order."""
    filename = _base_name(path)
    if not filename:
        return []
    candidates = [Path(filename)]
    candidates.extend(Path(d) / filename for d in search_dirs)
    for root in extra_roots:
        root = Path(root)
        candidates.append(root / filename)
        candidates.append(root / "textures" / filename)
        candidates.append(root / "Textures" / filename)
    # Path(".") / name == Path(name); keep the first occurrence only
    return list(dict.fromkeys(candidates))


def find_texture_file(
    path: str,
    search_dirs: Sequence[str],
    extra_roots: Sequence[Path] = (),
) -> Path | None:
    """Locate a texture file, falling back to nearby directories by base name."""
    given = Path(path)
    if given.is_file():
        return given
    for candidate in candidate_paths(path, search_dirs, extra_roots):
        if candidate.is_file():
            return candidate
    return None


def compress_image(buf: bytes) -> bytes:
    return zlib.compress(buf)


def _open_image(fp: BinaryIO, name: str, format_hint: str = "") -> Image.Image:
    """Open an image by sniffing its header, then by extension or format hint."""
    try:
        img = Image.open(fp)
        img.load()
        return img
    except UnidentifiedImageError:
        suffix = Path(name).suffix.lower() or f".{format_hint.lower()}"
        fmt = _EXTENSION_FORMATS.get(suffix)
        if fmt is None:
            raise
        fp.seek(0)
        img = Image.open(fp, formats=[fmt])
        img.load()
        return img


def _rgba_texture(img: Image.Image, *, texture_id: int, name: str) -> Texture:
    rgba = img.convert("RGBA")
    return Texture(
        id=texture_id,
        name=name,
        size=(rgba.width, rgba.height),
        format=TextureFormat.RGBA,
        pixel_type=PixelType.UBYTE,
        compression=TextureCompression.ZLIB,
        data=compress_image(rgba.tobytes()),
    )


def load_texture_file(path: Path) -> Texture:
    """Decode an image file into an RGBA texture record.

    Raises:
        OSError, ValueError: When the file cannot be read or decoded.
    """
    with open(path, "rb") as f:
        img = _open_image(f, path.name)
        return _rgba_texture(img, texture_id=fnv1a_32(str(path)), name=path.name)


def load_embedded_texture(reference: str, embedded: EmbeddedTexture) -> Texture:
    """Decode a texture stored inside the asset.

    Raises:
        OSError, ValueError: When the texel data is short or undecodable.
    """
    name = _base_name(embedded.filename) if embedded.filename else reference
    texture_id = fnv1a_32(reference)

    if embedded.is_compressed:
        img = _open_image(io.BytesIO(embedded.data), name, embedded.format_hint)
        return _rgba_texture(img, texture_id=texture_id, name=name)

    expected = embedded.width * embedded.height * 4
    if len(embedded.data) < expected:
        raise ValueError(
            f"Embedded texture {reference!r} has {len(embedded.data)} bytes, expected {expected}"
        )
    img = Image.frombytes("RGBA", (embedded.width, embedded.height), embedded.data[:expected])
    return _rgba_texture(img, texture_id=texture_id, name=name)


def _resolve_embedded(
    reference: str,
    role: TextureRole,
    embedded: Sequence[EmbeddedTexture],
    options: ConversionOptions,
) -> Texture | None:
    try:
        index = int(reference[1:])
    except ValueError:
        index = -1
    if not 0 <= index < len(embedded):
        emit_warning(
            "W01",
            f"{role} texture {reference!r} does not name an embedded texture",
            policy=options.warning_policy,
        )
        return None
    try:
        return load_embedded_texture(reference, embedded[index])
    except _DECODE_ERRORS as e:
        emit_warning(
            "W01",
            f"Cannot decode embedded {role} texture {reference!r}: {e}",
            policy=options.warning_policy,
        )
        return None


def resolve_texture(
    raw_path: str | bytes,
    role: TextureRole,
    *,
    options: ConversionOptions | None = None,
    embedded: Sequence[EmbeddedTexture] = (),
) -> Texture | None:
    """Resolve a material texture reference to a decoded texture, or None."""
    options = options or ConversionOptions()
    path = clean_texture_path(raw_path)
    if not path:
        return None

    if path.startswith("*") and embedded:
        return _resolve_embedded(path, role, embedded, options)

    found = find_texture_file(path, options.search_dirs, options.extra_search_roots)
    if found is None:
        emit_warning("W01", f"{role} texture {path!r} not found", policy=options.warning_policy)
        return None

    try:
        return load_texture_file(found)
    except _DECODE_ERRORS as e:
        emit_warning(
            "W01", f"Cannot load {role} texture {str(found)!r}: {e}", policy=options.warning_policy
        )
        return None
