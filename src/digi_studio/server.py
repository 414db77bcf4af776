"""Digi Studio MCP Server。

把文生图、图片编辑和对话助手暴露为 MCP 工具。

用法:
    digi-studio
    python -m digi_studio
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable

from mcp.server import Server
from mcp.types import Tool

from .config import get_studio_config
from .handlers import HANDLERS, ToolContent, ToolContext, format_error_response
from .studio import StudioClient

__all__ = ["create_server"]

logger = logging.getLogger(__name__)


def _summarize_arguments(arguments: dict[str, Any]) -> str:
    """截断长参数（如 data URI），用于日志。"""
    return json.dumps(
        {
            k: v[:100] + "..." if isinstance(v, str) and len(v) > 100 else v
            for k, v in arguments.items()
        },
        ensure_ascii=False,
        default=str,
    )


def create_server(
    client_factory: Callable[[], StudioClient] | None = None,
) -> Server:
    """创建 MCP Server 实例。

    Args:
        client_factory: 创建 StudioClient 的函数（可选，默认每次调用读取环境变量新建）
    """
    server = Server("digi-studio")
    factory = client_factory or StudioClient

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """列出可用工具。"""
        tools = [
            Tool(
                name=handler.name,
                description=handler.description,
                inputSchema=handler.get_input_schema(),
            )
            for handler in HANDLERS.values()
        ]
        logger.debug(f"[MCP] list_tools called, returning {[t.name for t in tools]}")
        return tools

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[ToolContent]:
        """调用工具。"""
        logger.debug(f"[MCP] call_tool: {name} {_summarize_arguments(arguments or {})}")

        handler = HANDLERS.get(name)
        if handler is None:
            return format_error_response(f"Unknown tool '{name}'")

        # 每次调用重新读取配置
        ctx = ToolContext(client_factory=factory, debug=get_studio_config().debug)

        try:
            return await handler.handle(arguments or {}, ctx)
        except asyncio.CancelledError:
            logger.info(f"Tool '{name}' cancelled")
            raise

    return server
