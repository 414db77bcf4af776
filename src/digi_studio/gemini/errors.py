"""Gemini 调用异常类。

远端失败统一收敛为带 kind 标签的 GeminiAPIError，重试策略只根据 kind 分派，
不再对错误消息做字符串匹配。
"""

from __future__ import annotations

from enum import Enum

__all__ = [
    "ErrorKind",
    "GeminiError",
    "GeminiConfigError",
    "GeminiAPIError",
    "RetriesExhaustedError",
]


class ErrorKind(str, Enum):
    """远端错误分类。"""
    RATE_LIMITED = "rate_limited"  # 429 / RESOURCE_EXHAUSTED
    FORBIDDEN = "forbidden"        # 403 / PERMISSION_DENIED
    NOT_FOUND = "not_found"        # "Requested entity was not found."
    OTHER = "other"


class GeminiError(Exception):
    """Gemini 模块基础异常。"""
    pass


class GeminiConfigError(GeminiError):
    """配置错误（如缺少 API key）。不会被重试。"""
    pass


class GeminiAPIError(GeminiError):
    """远端 API 调用错误。

    Attributes:
        status_code: HTTP 状态码（网络错误时为 0）
        message: 错误消息
        kind: 错误分类，决定是否可重试
        api_url: 请求的 API 完整路径
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        kind: ErrorKind = ErrorKind.OTHER,
        api_url: str = "",
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.kind = kind
        self.api_url = api_url
        super().__init__(f"[{status_code}] {message}")


class RetriesExhaustedError(GeminiError):
    """所有重试次数用尽仍未成功。

    Attributes:
        attempts: 实际调用次数
        last_error: 最后一次失败的异常
    """

    def __init__(self, attempts: int, last_error: BaseException | None = None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"Maximum retry attempts reached ({attempts}){detail}")
