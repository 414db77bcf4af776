"""图片编解码测试。"""

from __future__ import annotations

from pathlib import Path

import pytest

from digi_studio.gemini.image_codec import (
    get_mime_type,
    load_image_file,
    resolve_image_input,
    sniff_mime_type,
)
from digi_studio.gemini.types import ImagePayload


class TestImagePayload:
    """测试 data URI 表示。"""

    def test_to_data_uri(self):
        payload = ImagePayload(b"\x00\x01", "image/jpeg")
        assert payload.to_data_uri() == "data:image/jpeg;base64,AAE="

    def test_from_data_uri(self, png_b64, png_bytes):
        payload = ImagePayload.from_data_uri(f"data:image/png;base64,{png_b64}")
        assert payload.data == png_bytes
        assert payload.mime_type == "image/png"

    def test_bare_base64_defaults_to_png(self, png_b64):
        assert ImagePayload.from_data_uri(png_b64).mime_type == "image/png"

    def test_non_base64_data_uri_rejected(self):
        with pytest.raises(ValueError):
            ImagePayload.from_data_uri("data:image/svg+xml,<svg/>")

    def test_invalid_base64_rejected(self):
        with pytest.raises(ValueError):
            ImagePayload.from_data_uri("data:image/png;base64,not base64!!")

    def test_frozen(self):
        payload = ImagePayload(b"x")
        with pytest.raises(AttributeError):
            payload.data = b"y"  # type: ignore[misc]


class TestMimeDetection:
    @pytest.mark.parametrize("data,expected", [
        (b"\x89PNG\r\n\x1a\n....", "image/png"),
        (b"\xff\xd8\xff\xe0....", "image/jpeg"),
        (b"GIF89a....", "image/gif"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
        (b"plain text", None),
    ])
    def test_sniff(self, data: bytes, expected: str | None):
        assert sniff_mime_type(data) == expected

    def test_extension_fallback(self):
        assert get_mime_type("photo.jpg") == "image/jpeg"
        assert get_mime_type("unknown") == "image/png"


class TestLoadImage:
    def test_load_png_file(self, tmp_path: Path, png_bytes):
        path = tmp_path / "upload.bin"
        path.write_bytes(png_bytes)
        payload = load_image_file(path)
        assert payload.data == png_bytes
        # 文件头优先于扩展名
        assert payload.mime_type == "image/png"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_image_file(tmp_path / "missing.png")

    def test_resolve_data_uri(self, png_b64, png_bytes):
        assert resolve_image_input(f"data:image/png;base64,{png_b64}").data == png_bytes

    def test_resolve_path(self, tmp_path: Path, png_bytes):
        path = tmp_path / "a.png"
        path.write_bytes(png_bytes)
        assert resolve_image_input(str(path)).data == png_bytes
