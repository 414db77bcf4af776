"""Digi Studio 环境变量配置。

每次调用时重新读取，API key 轮换后无需重启即可生效。

环境变量:
    DIGI_API_KEY: API key（回退 API_KEY、GOOGLE_API_KEY）
        - 以 "Bearer " 开头时改用 Authorization 头
    DIGI_ENDPOINT: API 端点 URL（默认 Google AI Studio，自动补全 /v1beta）
    DIGI_IMAGE_MODEL: 文生图模型（默认 imagen-4.0-generate-001）
    DIGI_EDIT_MODEL: 图片编辑模型（默认 gemini-2.5-flash-image）
    DIGI_CHAT_MODEL: 对话模型（默认 gemini-2.5-flash）
    DIGI_TIMEOUT: 单次请求超时（秒，默认 120）

    DIGI_RETRY_ATTEMPTS: 最大调用次数（默认 3）
    DIGI_RETRY_DELAY_MS: 首次重试等待（毫秒，默认 1000）
    DIGI_RETRY_MULTIPLIER: 退避倍数（默认 2）
    DIGI_RETRY_FORBIDDEN: 403 是否视为可重试（默认 true）

    DIGI_DEBUG: 调试模式（MCP 响应附带 <debug_info>，默认 false）

    DIGI_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (DEBUG 日志输出到临时文件)
        - false/0/no = 关闭 (默认，INFO 日志输出到 stderr)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .gemini.errors import ErrorKind
from .gemini.types import DEFAULT_RETRY_ON, RetryPolicy

__all__ = [
    "DEFAULT_ENDPOINT",
    "DEFAULT_IMAGE_MODEL",
    "DEFAULT_EDIT_MODEL",
    "DEFAULT_CHAT_MODEL",
    "StudioConfig",
    "generate_log_file_path",
    "get_api_key",
    "get_studio_config",
    "mask_token",
]

DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_IMAGE_MODEL = "imagen-4.0-generate-001"
DEFAULT_EDIT_MODEL = "gemini-2.5-flash-image"
DEFAULT_CHAT_MODEL = "gemini-2.5-flash"
DEFAULT_TIMEOUT = 120.0


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_int(value: str | None, default: int, minimum: int) -> int:
    if not value:
        return default
    try:
        return max(minimum, int(value))
    except ValueError:
        return default


def _parse_float(value: str | None, default: float, minimum: float) -> float:
    if not value:
        return default
    try:
        return max(minimum, float(value))
    except ValueError:
        return default


def _normalize_endpoint(url: str) -> str:
    """规范化端点 URL，自动补全版本路径。"""
    url = url.rstrip("/")
    if url.endswith(("/v1beta", "/v1", "/v2")):
        return url
    return f"{url}/v1beta"


def get_api_key() -> str:
    """读取当前的 API key（DIGI_API_KEY > API_KEY > GOOGLE_API_KEY）。"""
    return (
        os.environ.get("DIGI_API_KEY")
        or os.environ.get("API_KEY")
        or os.environ.get("GOOGLE_API_KEY", "")
    ).strip()


def mask_token(token: str) -> str:
    """脱敏 token，只显示前4位和后4位。"""
    if not token:
        return "(empty)"
    clean = token.replace("Bearer ", "")
    if len(clean) <= 8:
        return clean[:2] + "***"
    return f"{clean[:4]}...{clean[-4:]}"


def generate_log_file_path() -> str:
    """生成临时目录下的日志文件路径（会创建目录，仅在配置日志时调用）。"""
    log_dir = Path(tempfile.gettempdir()) / "digi-studio"
    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return str((log_dir / f"digi_debug_{timestamp}.log").resolve())


def _load_retry_policy() -> RetryPolicy:
    retry_on = set(DEFAULT_RETRY_ON)
    if not _parse_bool(os.environ.get("DIGI_RETRY_FORBIDDEN"), default=True):
        retry_on.discard(ErrorKind.FORBIDDEN)

    return RetryPolicy(
        max_attempts=_parse_int(os.environ.get("DIGI_RETRY_ATTEMPTS"), 3, minimum=1),
        initial_delay=_parse_int(os.environ.get("DIGI_RETRY_DELAY_MS"), 1000, minimum=0) / 1000,
        backoff_multiplier=_parse_float(os.environ.get("DIGI_RETRY_MULTIPLIER"), 2.0, minimum=1.0),
        retry_on=frozenset(retry_on),
    )


@dataclass
class StudioConfig:
    """Digi Studio 配置。

    Attributes:
        base_url: API 端点 URL
        image_model: 文生图模型
        edit_model: 图片编辑模型
        chat_model: 对话模型
        timeout: 单次请求超时（秒）
        retry_policy: 重试策略
        debug: 调试模式（响应附带调试信息）
        log_debug: 日志调试模式
    """
    base_url: str = DEFAULT_ENDPOINT
    image_model: str = DEFAULT_IMAGE_MODEL
    edit_model: str = DEFAULT_EDIT_MODEL
    chat_model: str = DEFAULT_CHAT_MODEL
    timeout: float = DEFAULT_TIMEOUT
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    debug: bool = False
    log_debug: bool = False

    def __repr__(self) -> str:
        return (
            f"StudioConfig(base_url={self.base_url}, "
            f"image_model={self.image_model}, "
            f"edit_model={self.edit_model}, "
            f"chat_model={self.chat_model}, "
            f"timeout={self.timeout}, "
            f"max_attempts={self.retry_policy.max_attempts}, "
            f"api_key={mask_token(get_api_key())}, "
            f"debug={self.debug}, "
            f"log_debug={self.log_debug})"
        )


def get_studio_config() -> StudioConfig:
    """从环境变量加载配置。无副作用，每次工具调用都可以调用。"""
    return StudioConfig(
        base_url=_normalize_endpoint(os.environ.get("DIGI_ENDPOINT") or DEFAULT_ENDPOINT),
        image_model=os.environ.get("DIGI_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
        edit_model=os.environ.get("DIGI_EDIT_MODEL") or DEFAULT_EDIT_MODEL,
        chat_model=os.environ.get("DIGI_CHAT_MODEL") or DEFAULT_CHAT_MODEL,
        timeout=_parse_float(os.environ.get("DIGI_TIMEOUT"), DEFAULT_TIMEOUT, minimum=1.0),
        retry_policy=_load_retry_policy(),
        debug=_parse_bool(os.environ.get("DIGI_DEBUG"), default=False),
        log_debug=_parse_bool(os.environ.get("DIGI_LOG_DEBUG"), default=False),
    )
