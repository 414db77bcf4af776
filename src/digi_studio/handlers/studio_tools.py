"""Digi Studio 工具处理器。

处理 generate_image、edit_image 和 chat 工具调用。
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import abstractmethod
from typing import Any

from mcp.types import ImageContent, TextContent

from .base import (
    ToolContent,
    ToolContext,
    ToolHandler,
    format_error_response,
    format_text_response,
)
from ..gemini.errors import GeminiError
from ..gemini.image_codec import resolve_image_input
from ..gemini.types import AspectRatio, ChatTurn, ImagePayload

__all__ = ["GenerateImageHandler", "EditImageHandler", "ChatHandler"]

logger = logging.getLogger(__name__)

NO_IMAGE_GENERATED = "No image was generated. Try rephrasing the prompt."
NO_IMAGE_EDITED = "No edited image was returned. Try a different instruction."
NO_CHAT_REPLY = "The assistant returned no reply. Please try again."


def _image_content(image: ImagePayload) -> ImageContent:
    return ImageContent(type="image", data=image.base64_data, mimeType=image.mime_type)


def _debug_info(model: str, duration_sec: float, **extra: Any) -> TextContent:
    lines = [
        "<debug_info>",
        f"  <model>{model}</model>",
        f"  <duration_sec>{duration_sec:.3f}</duration_sec>",
    ]
    lines.extend(f"  <{key}>{value}</{key}>" for key, value in extra.items())
    lines.append("</debug_info>")
    return TextContent(type="text", text="\n".join(lines))


class _StudioToolHandler(ToolHandler):
    """统一的异常到错误响应的转换。"""

    async def handle(
        self,
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> list[ToolContent]:
        error = self.validate(arguments)
        if error:
            return format_error_response(error)

        try:
            return await self._run(arguments, ctx)

        except asyncio.CancelledError:
            raise

        except (GeminiError, ValueError, FileNotFoundError) as e:
            logger.warning(f"{self.name} failed: {e}")
            return format_error_response(str(e))

        except Exception as e:
            logger.exception(f"{self.name} tool error: {e}")
            return format_error_response(f"Unexpected error: {e}")

    @abstractmethod
    async def _run(self, arguments: dict[str, Any], ctx: ToolContext) -> list[ToolContent]:
        """执行工具调用，异常由 handle 统一转换。"""
        ...


class GenerateImageHandler(_StudioToolHandler):
    """文生图工具。"""

    @property
    def name(self) -> str:
        return "generate_image"

    @property
    def description(self) -> str:
        return """Generate an image from a text prompt (Imagen).

RESPONSE FORMAT:
- Returns the PNG image as MCP image content
- Returns <response><error>...</error></response> when nothing was generated

BEST PRACTICES:
- Describe the scene, subject, lighting and style
- A quality suffix is appended to every prompt automatically"""

    def get_input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "prompt": {
                    "type": "string",
                    "description": "Text description of the image to generate.",
                },
                "aspect_ratio": {
                    "type": "string",
                    "enum": [ratio.value for ratio in AspectRatio],
                    "default": AspectRatio.RATIO_1_1.value,
                    "description": "Output aspect ratio.",
                },
            },
            "required": ["prompt"],
        }

    def validate(self, arguments: dict[str, Any]) -> str | None:
        if not str(arguments.get("prompt", "")).strip():
            return "Missing required argument: 'prompt'"
        return None

    async def _run(self, arguments: dict[str, Any], ctx: ToolContext) -> list[ToolContent]:
        prompt = str(arguments["prompt"]).strip()
        aspect_ratio = arguments.get("aspect_ratio") or AspectRatio.RATIO_1_1.value

        start_time = time.time()
        async with ctx.client_factory() as client:
            image = await client.generate_image(prompt, aspect_ratio)
            model = client.config.image_model

        if image is None:
            return format_error_response(NO_IMAGE_GENERATED)

        result: list[ToolContent] = [_image_content(image)]
        if ctx.debug:
            result.append(_debug_info(
                model, time.time() - start_time,
                aspect_ratio=aspect_ratio, image_bytes=len(image.data),
            ))
        return result


class EditImageHandler(_StudioToolHandler):
    """图片编辑工具。"""

    @property
    def name(self) -> str:
        return "edit_image"

    @property
    def description(self) -> str:
        return """Edit an existing image following a text instruction (Gemini image model).

The source image is a data URI (data:image/png;base64,...) or a local file path.
Returns the edited PNG image as MCP image content."""

    def get_input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "prompt": {
                    "type": "string",
                    "description": "Edit instruction, e.g. 'make the sky purple'.",
                },
                "image": {
                    "type": "string",
                    "description": "Source image as a data URI or an absolute file path.",
                },
            },
            "required": ["prompt", "image"],
        }

    def validate(self, arguments: dict[str, Any]) -> str | None:
        if not str(arguments.get("prompt", "")).strip():
            return "Missing required argument: 'prompt'"
        if not str(arguments.get("image", "")).strip():
            return "Missing required argument: 'image'"
        return None

    async def _run(self, arguments: dict[str, Any], ctx: ToolContext) -> list[ToolContent]:
        prompt = str(arguments["prompt"]).strip()
        source = resolve_image_input(str(arguments["image"]))

        start_time = time.time()
        async with ctx.client_factory() as client:
            image = await client.edit_image(prompt, source)
            model = client.config.edit_model

        if image is None:
            return format_error_response(NO_IMAGE_EDITED)

        result: list[ToolContent] = [_image_content(image)]
        if ctx.debug:
            result.append(_debug_info(
                model, time.time() - start_time,
                source_mime=source.mime_type, image_bytes=len(image.data),
            ))
        return result


class ChatHandler(_StudioToolHandler):
    """对话助手工具。"""

    @property
    def name(self) -> str:
        return "chat"

    @property
    def description(self) -> str:
        return """Talk to Digi AI Assistant, a professional problem-solving assistant.

The server keeps no session: pass the full prior transcript in 'history'
and append both your message and the returned reply before the next call."""

    def get_input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "message": {
                    "type": "string",
                    "description": "The new user message.",
                },
                "history": {
                    "type": "array",
                    "default": [],
                    "description": "Prior turns, oldest first.",
                    "items": {
                        "type": "object",
                        "properties": {
                            "role": {"type": "string", "enum": ["user", "assistant"]},
                            "text": {"type": "string"},
                        },
                        "required": ["role", "text"],
                    },
                },
            },
            "required": ["message"],
        }

    def validate(self, arguments: dict[str, Any]) -> str | None:
        if not str(arguments.get("message", "")).strip():
            return "Missing required argument: 'message'"
        history = arguments.get("history", [])
        if not isinstance(history, list):
            return "'history' must be an array of {role, text} objects"
        for index, turn in enumerate(history):
            if not isinstance(turn, dict) or turn.get("role") not in ("user", "assistant", "model"):
                return f"Invalid history entry at index {index}: expected role 'user' or 'assistant'"
        return None

    async def _run(self, arguments: dict[str, Any], ctx: ToolContext) -> list[ToolContent]:
        message = str(arguments["message"])
        history = [ChatTurn.from_dict(turn) for turn in arguments.get("history", [])]

        start_time = time.time()
        async with ctx.client_factory() as client:
            reply = await client.send_chat_message(history, message)
            model = client.config.chat_model

        if reply is None:
            return format_error_response(NO_CHAT_REPLY)

        result: list[ToolContent] = list(format_text_response(reply))
        if ctx.debug:
            result.append(_debug_info(model, time.time() - start_time, history_turns=len(history)))
        return result
