"""图片编解码工具。

用于把上传的图片（data URI 或本地文件）转换为 ImagePayload。
"""

from __future__ import annotations

import mimetypes
from pathlib import Path

from .types import ImagePayload

__all__ = [
    "get_mime_type",
    "sniff_mime_type",
    "load_image_file",
    "resolve_image_input",
]

# 常见图片格式的文件头
_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def sniff_mime_type(data: bytes) -> str | None:
    """根据文件头识别图片 MIME 类型。"""
    for signature, mime_type in _SIGNATURES:
        if data.startswith(signature):
            return mime_type
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def get_mime_type(file_path: str | Path) -> str:
    """获取文件的 MIME 类型。

    Args:
        file_path: 文件路径

    Returns:
        MIME 类型字符串，默认 image/png
    """
    mime_type, _ = mimetypes.guess_type(str(file_path))
    return mime_type or "image/png"


def load_image_file(file_path: str | Path) -> ImagePayload:
    """读取图片文件。

    优先按文件头识别 MIME 类型，识别不了再按扩展名。

    Raises:
        FileNotFoundError: 文件不存在
    """
    path = Path(file_path)
    if not path.is_file():
        raise FileNotFoundError(f"Image file not found: {path}")

    data = path.read_bytes()
    return ImagePayload(data=data, mime_type=sniff_mime_type(data) or get_mime_type(path))


def resolve_image_input(value: str) -> ImagePayload:
    """把 data URI 或本地文件路径解析为 ImagePayload。

    Raises:
        FileNotFoundError: 看起来是路径但文件不存在
        ValueError: data URI 不合法
    """
    value = value.strip()
    if value.startswith("data:"):
        return ImagePayload.from_data_uri(value)
    return load_image_file(Path(value).expanduser())
