"""Gemini 调用类型定义。"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass, field
from enum import Enum

from .errors import ErrorKind

__all__ = [
    "AspectRatio",
    "ChatRole",
    "ChatTurn",
    "ImagePayload",
    "RetryPolicy",
    "DEFAULT_RETRY_ON",
]

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)


class AspectRatio(str, Enum):
    """输出图片宽高比。原样透传给远端，不做校验。"""
    RATIO_1_1 = "1:1"
    RATIO_16_9 = "16:9"
    RATIO_9_16 = "9:16"
    RATIO_4_3 = "4:3"
    RATIO_3_4 = "3:4"


class ChatRole(str, Enum):
    """对话角色。"""
    USER = "user"
    ASSISTANT = "assistant"

    @property
    def remote_role(self) -> str:
        """远端 API 使用的角色名（assistant -> model）。"""
        return "user" if self is ChatRole.USER else "model"


@dataclass(frozen=True)
class ChatTurn:
    """对话中的一轮。

    Attributes:
        role: 发言角色
        text: 文本内容
    """
    role: ChatRole
    text: str

    @classmethod
    def from_dict(cls, data: dict) -> "ChatTurn":
        """从 {"role": ..., "text": ...} 构建，兼容远端的 "model" 角色名。"""
        role = str(data.get("role", "")).lower().strip()
        if role == "model":
            role = ChatRole.ASSISTANT.value
        return cls(role=ChatRole(role), text=str(data.get("text", "")))


@dataclass(frozen=True)
class ImagePayload:
    """二进制图片及其 MIME 类型。

    边界上以 data URI 表示: data:<mime>;base64,<data>
    """
    data: bytes
    mime_type: str = "image/png"

    @property
    def base64_data(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64_data}"

    @classmethod
    def from_base64(cls, data: str, mime_type: str = "image/png") -> "ImagePayload":
        """解码 base64 字符串。

        Raises:
            ValueError: 不是合法的 base64
        """
        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 image data: {e}") from e
        return cls(data=raw, mime_type=mime_type)

    @classmethod
    def from_data_uri(cls, uri: str) -> "ImagePayload":
        """解析 data URI。没有 data: 前缀时按裸 base64 处理，默认 image/png。"""
        uri = uri.strip()
        match = _DATA_URI_RE.match(uri)
        if match:
            return cls.from_base64(match.group("data"), match.group("mime"))
        if uri.startswith("data:"):
            raise ValueError("Unsupported data URI (expected ';base64,' encoding)")
        return cls.from_base64(uri)


# 默认可重试的错误分类
DEFAULT_RETRY_ON: frozenset[ErrorKind] = frozenset({
    ErrorKind.RATE_LIMITED,
    ErrorKind.FORBIDDEN,
    ErrorKind.NOT_FOUND,
})


@dataclass(frozen=True)
class RetryPolicy:
    """重试策略。

    Attributes:
        max_attempts: 最大调用次数（>= 1）
        initial_delay: 首次重试前等待时间（秒）
        backoff_multiplier: 每次重试后延迟的倍数
        retry_on: 视为可重试的错误分类
    """
    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0
    retry_on: frozenset[ErrorKind] = field(default_factory=lambda: DEFAULT_RETRY_ON)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay < 0:
            raise ValueError(f"initial_delay must be >= 0, got {self.initial_delay}")
        if self.backoff_multiplier < 1:
            raise ValueError(
                f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}"
            )

    def delay_for_retry(self, retry: int) -> float:
        """第 retry 次重试（从 1 开始）前的等待时间。"""
        return self.initial_delay * self.backoff_multiplier ** (retry - 1)
