"""Tool Handlers 模块。

提供工具处理器抽象和具体实现。
"""

from .base import ToolContent, ToolContext, ToolHandler, format_error_response
from .studio_tools import ChatHandler, EditImageHandler, GenerateImageHandler

__all__ = [
    "ToolContent",
    "ToolContext",
    "ToolHandler",
    "format_error_response",
    "GenerateImageHandler",
    "EditImageHandler",
    "ChatHandler",
    "HANDLERS",
]

# 工具名 -> 处理器
HANDLERS: dict[str, ToolHandler] = {
    handler.name: handler
    for handler in (GenerateImageHandler(), EditImageHandler(), ChatHandler())
}
