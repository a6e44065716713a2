"""Tests for texture lookup and decoding."""

import io
import warnings
from pathlib import Path

import pytest
from PIL import Image

from mstconv.mst import PixelType, TextureCompression, TextureFormat
from mstconv.options import DEFAULT_SEARCH_DIRS, ConversionOptions
from mstconv.scene import EmbeddedTexture
from mstconv.textures import (
    candidate_paths,
    clean_texture_path,
    find_texture_file,
    fnv1a_32,
    load_texture_file,
    resolve_texture,
)
from mstconv.warning_policy import ConversionWarning


def _png_bytes(size=(2, 2), color=(1, 2, 3, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


class TestHash:
    def test_known_values(self):
        assert fnv1a_32("") == -2128831035  # 0x811c9dc5
        assert fnv1a_32("a") == -468965076  # 0xe40c292c

    def test_deterministic(self):
        assert fnv1a_32("textures/brick.png") == fnv1a_32("textures/brick.png")
        assert fnv1a_32("textures/brick.png") != fnv1a_32("textures/stone.png")

    def test_fits_int32(self):
        value = fnv1a_32("some/long/path/to/a/texture.png")
        assert -(2**31) <= value < 2**31


class TestCleanPath:
    def test_strips_whitespace_and_nulls(self):
        assert clean_texture_path("  brick.png\x00\x00 ") == "brick.png"

    def test_bytes_input(self):
        assert clean_texture_path(b"brick.png\x00") == "brick.png"


class TestFindTextureFile:
    def test_existing_path_used_as_is(self, png_texture):
        assert find_texture_file(str(png_texture), DEFAULT_SEARCH_DIRS) == png_texture

    def test_candidate_order(self):
        candidates = candidate_paths("/art/brick.png", DEFAULT_SEARCH_DIRS)
        assert candidates == [Path("brick.png")] + [
            Path(d) / "brick.png" for d in DEFAULT_SEARCH_DIRS if d != "."
        ]

    def test_current_dir_probed_once(self):
        candidates = candidate_paths("brick.png", (".", "textures"), extra_roots=(Path("."),))
        assert candidates.count(Path("brick.png")) == 1
        assert candidates.count(Path("textures") / "brick.png") == 1
        assert len(candidates) == len(set(candidates))

    def test_backslash_paths_use_base_name(self):
        candidates = candidate_paths("C:\\art\\brick.png", DEFAULT_SEARCH_DIRS)
        assert candidates[0] == Path("brick.png")

    def test_fallback_to_textures_dir(self, tmp_path, monkeypatch):
        (tmp_path / "model" / "textures").mkdir(parents=True)
        (tmp_path / "model" / "textures" / "brick.png").write_bytes(_png_bytes())
        monkeypatch.chdir(tmp_path / "model")
        found = find_texture_file("/somewhere/else/brick.png", DEFAULT_SEARCH_DIRS)
        assert found == Path("textures") / "brick.png"

    def test_fallback_to_parent_textures_dir(self, tmp_path, monkeypatch):
        (tmp_path / "Textures").mkdir()
        (tmp_path / "model").mkdir()
        (tmp_path / "Textures" / "brick.png").write_bytes(_png_bytes())
        monkeypatch.chdir(tmp_path / "model")
        found = find_texture_file("brick.png", DEFAULT_SEARCH_DIRS)
        assert found is not None
        assert found.resolve() == (tmp_path / "Textures" / "brick.png").resolve()

    def test_extra_roots_searched_last(self, tmp_path, monkeypatch):
        (tmp_path / "assets" / "textures").mkdir(parents=True)
        (tmp_path / "assets" / "textures" / "brick.png").write_bytes(_png_bytes())
        (tmp_path / "cwd").mkdir()
        monkeypatch.chdir(tmp_path / "cwd")
        found = find_texture_file(
            "brick.png", DEFAULT_SEARCH_DIRS, extra_roots=(tmp_path / "assets",)
        )
        assert found == tmp_path / "assets" / "textures" / "brick.png"

    def test_not_found(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert find_texture_file("missing.png", DEFAULT_SEARCH_DIRS) is None


class TestLoadTextureFile:
    def test_record_fields(self, png_texture):
        tex = load_texture_file(png_texture)
        assert tex.size == (2, 3)
        assert tex.name == "brick.png"
        assert tex.id == fnv1a_32(str(png_texture))
        assert tex.format == TextureFormat.RGBA
        assert tex.pixel_type == PixelType.UBYTE
        assert tex.compression == TextureCompression.ZLIB

    def test_pixels_are_rgba_quadruplets(self, png_texture):
        pixels = load_texture_file(png_texture).pixels()
        assert len(pixels) == 2 * 3 * 4
        assert pixels[:4] == bytes([10, 20, 30, 255])
        assert pixels[4:8] == bytes([200, 100, 50, 255])

    def test_data_is_compressed(self, tmp_path):
        path = tmp_path / "flat.png"
        Image.new("RGBA", (64, 64), (5, 5, 5, 255)).save(path)
        tex = load_texture_file(path)
        assert len(tex.data) < 64 * 64 * 4

    @pytest.mark.parametrize(
        "suffix,fmt",
        [(".bmp", "BMP"), (".gif", "GIF"), (".tiff", "TIFF"), (".jpg", "JPEG")],
    )
    def test_other_codecs(self, tmp_path, suffix, fmt):
        path = tmp_path / f"img{suffix}"
        if fmt in ("JPEG", "BMP"):
            img = Image.new("RGB", (4, 5), (255, 0, 0))
        else:
            img = Image.new("RGBA", (4, 5), (255, 0, 0, 255))
        img.save(path, format=fmt)
        tex = load_texture_file(path)
        assert tex.size == (4, 5)
        assert len(tex.pixels()) == 4 * 5 * 4

    def test_palette_image_converted_to_rgba(self, tmp_path):
        path = tmp_path / "pal.png"
        Image.new("P", (3, 1), 0).save(path)
        assert len(load_texture_file(path).pixels()) == 3 * 4


class TestResolveTexture:
    def test_resolves_existing_file(self, png_texture):
        tex = resolve_texture(f"  {png_texture}\x00", "diffuse")
        assert tex is not None
        assert tex.size == (2, 3)

    def test_same_path_same_id(self, png_texture):
        a = resolve_texture(str(png_texture), "diffuse")
        b = resolve_texture(str(png_texture), "normal")
        assert a.id == b.id

    def test_missing_file_warns(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.warns(ConversionWarning, match=r"\[W01\].*not found"):
            assert resolve_texture("nowhere.png", "diffuse") is None

    def test_corrupt_file_warns(self, tmp_path):
        path = tmp_path / "broken.png"
        path.write_bytes(b"\x89PNG\r\n\x1a\n garbage")
        with pytest.warns(ConversionWarning, match=r"\[W01\]"):
            assert resolve_texture(str(path), "diffuse") is None

    def test_unknown_format_warns(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("not an image")
        with pytest.warns(ConversionWarning, match=r"\[W01\]"):
            assert resolve_texture(str(path), "normal") is None

    def test_empty_path_is_silent(self):
        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always")
            assert resolve_texture("\x00 ", "diffuse") is None
        assert not w

    def test_extra_search_roots_from_options(self, tmp_path, monkeypatch, png_texture):
        (tmp_path / "a" / "b").mkdir(parents=True)
        monkeypatch.chdir(tmp_path / "a" / "b")
        options = ConversionOptions(extra_search_roots=(png_texture.parent,))
        tex = resolve_texture("D:/old/brick.png", "diffuse", options=options)
        assert tex is not None
        assert tex.name == "brick.png"


class TestEmbeddedTextures:
    def test_compressed_embedded(self):
        data = _png_bytes((3, 2))
        embedded = [EmbeddedTexture(width=len(data), height=0, data=data, format_hint="png")]
        tex = resolve_texture("*0", "diffuse", embedded=embedded)
        assert tex.size == (3, 2)
        assert tex.name == "*0"
        assert tex.id == fnv1a_32("*0")

    def test_embedded_filename_used_as_name(self):
        data = _png_bytes()
        embedded = [
            EmbeddedTexture(width=len(data), height=0, data=data, filename="dir/skin.png")
        ]
        assert resolve_texture("*0", "diffuse", embedded=embedded).name == "skin.png"

    def test_uncompressed_embedded(self):
        texels = bytes([1, 2, 3, 4]) * 6
        embedded = [EmbeddedTexture(width=3, height=2, data=texels)]
        tex = resolve_texture("*0", "normal", embedded=embedded)
        assert tex.size == (3, 2)
        assert tex.pixels() == texels

    def test_short_texel_data_warns(self):
        embedded = [EmbeddedTexture(width=4, height=4, data=b"\x00" * 8)]
        with pytest.warns(ConversionWarning, match=r"\[W01\]"):
            assert resolve_texture("*0", "diffuse", embedded=embedded) is None

    def test_out_of_range_reference_warns(self):
        embedded = [EmbeddedTexture(width=1, height=1, data=b"\x00" * 4)]
        with pytest.warns(ConversionWarning, match=r"\[W01\]"):
            assert resolve_texture("*7", "diffuse", embedded=embedded) is None
