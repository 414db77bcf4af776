"""Gemini / Imagen 调用底层模块。

提供带分类标签的异常、重试执行器、REST 传输层和图片编解码。
"""

from __future__ import annotations

from .types import (
    AspectRatio,
    ChatRole,
    ChatTurn,
    ImagePayload,
    RetryPolicy,
)
from .errors import (
    ErrorKind,
    GeminiError,
    GeminiConfigError,
    GeminiAPIError,
    RetriesExhaustedError,
)
from .retry import execute_with_retry, is_retriable
from .transport import GeminiTransport, classify_error

__all__ = [
    # Types
    "AspectRatio",
    "ChatRole",
    "ChatTurn",
    "ImagePayload",
    "RetryPolicy",
    # Errors
    "ErrorKind",
    "GeminiError",
    "GeminiConfigError",
    "GeminiAPIError",
    "RetriesExhaustedError",
    # Retry
    "execute_with_retry",
    "is_retriable",
    # Transport
    "GeminiTransport",
    "classify_error",
]
