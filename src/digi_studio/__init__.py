"""Digi Studio - 文生图、图片编辑和对话助手。

环境变量:
    DIGI_API_KEY: Gemini API key（回退 API_KEY、GOOGLE_API_KEY）
    DIGI_DEBUG: 响应附带调试信息
    DIGI_LOG_DEBUG: DEBUG 日志输出到临时文件

用法:
    uvx digi-studio
"""

__version__ = "0.1.0"

from .gemini import (
    AspectRatio,
    ChatRole,
    ChatTurn,
    ErrorKind,
    GeminiAPIError,
    GeminiConfigError,
    GeminiError,
    ImagePayload,
    RetriesExhaustedError,
    RetryPolicy,
    execute_with_retry,
)
from .studio import StudioClient, edit_image, generate_image, send_chat_message

__all__ = [
    "__version__",
    "AspectRatio",
    "ChatRole",
    "ChatTurn",
    "ErrorKind",
    "GeminiAPIError",
    "GeminiConfigError",
    "GeminiError",
    "ImagePayload",
    "RetriesExhaustedError",
    "RetryPolicy",
    "StudioClient",
    "execute_with_retry",
    "generate_image",
    "edit_image",
    "send_chat_message",
]
