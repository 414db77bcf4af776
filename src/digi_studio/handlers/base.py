"""Tool Handler 基础抽象。

定义工具处理器的协议、上下文和统一的响应格式。
"""

from __future__ import annotations

import html
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Union

from mcp.types import ImageContent, TextContent

if TYPE_CHECKING:
    from ..studio import StudioClient

__all__ = [
    "ToolContent",
    "ToolContext",
    "ToolHandler",
    "format_error_response",
    "format_text_response",
]

ToolContent = Union[TextContent, ImageContent]


def format_error_response(error: str) -> list[TextContent]:
    """统一的错误响应格式：<response><error>...</error></response>。"""
    text = f"<response>\n  <error>{html.escape(error, quote=False)}</error>\n</response>"
    return [TextContent(type="text", text=text)]


def format_text_response(answer: str) -> list[TextContent]:
    return [TextContent(type="text", text=answer)]


@dataclass
class ToolContext:
    """工具执行上下文。

    Attributes:
        client_factory: 创建 StudioClient 的函数（每次调用新建）
        debug: 响应中附带调试信息
    """

    client_factory: Callable[[], "StudioClient"]
    debug: bool = False


class ToolHandler(ABC):
    """工具处理器协议。"""

    @property
    @abstractmethod
    def name(self) -> str:
        """工具名称。"""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """工具描述。"""
        ...

    @abstractmethod
    def get_input_schema(self) -> dict[str, Any]:
        """获取输入参数 schema。"""
        ...

    @abstractmethod
    async def handle(
        self,
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> list[ToolContent]:
        """处理工具调用。"""
        ...

    def validate(self, arguments: dict[str, Any]) -> str | None:
        """验证参数，通过时返回 None，否则返回错误消息。"""
        return None
