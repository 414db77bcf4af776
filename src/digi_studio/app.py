"""Digi Studio 应用入口。

包含日志配置和 stdio 服务器生命周期。
"""

from __future__ import annotations

import asyncio
import logging
import sys

from mcp.server.stdio import stdio_server

from .config import generate_log_file_path, get_studio_config
from .server import create_server

__all__ = ["run_server", "main"]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


async def run_server() -> None:
    """通过 stdio 运行 MCP Server。"""
    logger.info(f"Starting Digi Studio MCP Server: {get_studio_config()}")
    server = create_server()

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )
    logger.info("Digi Studio MCP Server stopped")


def configure_logging() -> None:
    """配置日志输出。

    默认 INFO 级别输出到 stderr（stdout 由 MCP 协议占用）；
    DIGI_LOG_DEBUG 开启时 DEBUG 级别输出到临时文件。
    """
    config = get_studio_config()

    if config.log_debug:
        handler: logging.Handler = logging.FileHandler(generate_log_file_path(), encoding="utf-8")
        log_level = logging.DEBUG
    else:
        handler = logging.StreamHandler(sys.stderr)
        log_level = logging.INFO
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    # 第三方库保持 WARNING，减少噪音
    logging.basicConfig(level=logging.WARNING, handlers=[handler])
    logging.getLogger("digi_studio").setLevel(log_level)


def main() -> None:
    """主入口点。"""
    configure_logging()
    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")
        sys.exit(130)


if __name__ == "__main__":
    main()
