"""Digi Studio 客户端。

三种远端调用（文生图、图片编辑、对话），全部包在指数退避重试中。

Example:
    async with StudioClient() as client:
        image = await client.generate_image("a cat", AspectRatio.RATIO_1_1)
        if image is None:
            ...  # 远端成功但没有产出图片
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from .config import StudioConfig, get_api_key, get_studio_config
from .gemini.retry import EventCallback, SleepFunc, execute_with_retry
from .gemini.transport import CredentialProvider, GeminiTransport
from .gemini.types import AspectRatio, ChatRole, ChatTurn, ImagePayload

__all__ = [
    "ASSISTANT_PERSONA",
    "QUALITY_SUFFIX",
    "StudioClient",
    "build_generate_body",
    "parse_generated_image",
    "build_edit_body",
    "parse_edited_image",
    "build_chat_body",
    "parse_chat_reply",
    "generate_image",
    "edit_image",
    "send_chat_message",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")

QUALITY_SUFFIX = "high quality, professional, highly detailed."

EDIT_INSTRUCTION = (
    "Edit this image based on the following instruction: {prompt}. "
    "Return ONLY the edited image."
)

ASSISTANT_PERSONA = (
    "You are 'Digi AI Assistant', a highly professional, mannerful, and helpful "
    "problem-solving AI. Your goal is to provide clear, effective, and supportive "
    "solutions to user problems. Maintain a warm, encouraging, and sophisticated "
    "tone, similar to a premium consultant or mentor."
)

ChatHistory = Iterable[ChatTurn | dict[str, Any]]


# =============================================================================
# 请求构建 / 响应解析
# =============================================================================


def build_generate_body(prompt: str, aspect_ratio: AspectRatio | str) -> dict[str, Any]:
    """构建 Imagen predict 请求体。"""
    ratio = aspect_ratio.value if isinstance(aspect_ratio, AspectRatio) else aspect_ratio
    return {
        "instances": [{"prompt": f"{prompt}, {QUALITY_SUFFIX}"}],
        "parameters": {
            "sampleCount": 1,
            "aspectRatio": ratio,
            "outputOptions": {"mimeType": "image/png"},
        },
    }


def parse_generated_image(response: dict[str, Any]) -> ImagePayload | None:
    """取第一张生成图片，没有则返回 None。"""
    predictions = response.get("predictions") or []
    if not predictions:
        return None
    b64_data = predictions[0].get("bytesBase64Encoded", "")
    if not b64_data:
        return None
    return ImagePayload.from_base64(b64_data, "image/png")


def build_edit_body(prompt: str, image: ImagePayload) -> dict[str, Any]:
    """构建图片编辑 generateContent 请求体。"""
    return {
        "contents": [{
            "role": "user",
            "parts": [
                {"text": EDIT_INSTRUCTION.format(prompt=prompt)},
                {
                    "inline_data": {
                        "mime_type": image.mime_type,
                        "data": image.base64_data,
                    }
                },
            ],
        }],
    }


def _first_candidate_parts(response: dict[str, Any]) -> list[dict[str, Any]]:
    candidates = response.get("candidates") or []
    if not candidates:
        return []
    content = candidates[0].get("content") or {}
    return content.get("parts") or []


def parse_edited_image(response: dict[str, Any]) -> ImagePayload | None:
    """按顺序扫描 parts，返回第一张内联图片。

    MIME 类型固定为 image/png，与 part 声明的类型无关。
    """
    for part in _first_candidate_parts(response):
        # 兼容 inlineData 和 inline_data
        inline_data = part.get("inlineData") or part.get("inline_data")
        if inline_data and inline_data.get("data"):
            return ImagePayload.from_base64(inline_data["data"], "image/png")
    return None


def _to_turn(item: ChatTurn | dict[str, Any]) -> ChatTurn:
    return item if isinstance(item, ChatTurn) else ChatTurn.from_dict(item)


def build_chat_body(history: ChatHistory, new_message: str) -> dict[str, Any]:
    """构建对话请求体：人设 + 完整历史 + 新消息。"""
    contents = [
        {"role": turn.role.remote_role, "parts": [{"text": turn.text}]}
        for turn in map(_to_turn, history)
    ]
    contents.append({"role": ChatRole.USER.remote_role, "parts": [{"text": new_message}]})
    return {
        "systemInstruction": {"parts": [{"text": ASSISTANT_PERSONA}]},
        "contents": contents,
    }


def parse_chat_reply(response: dict[str, Any]) -> str | None:
    """拼接第一个候选的文本 parts（跳过思考内容），没有文本则返回 None。"""
    texts = [
        part["text"]
        for part in _first_candidate_parts(response)
        if isinstance(part.get("text"), str) and not part.get("thought")
    ]
    if not texts:
        return None
    return "".join(texts)


# =============================================================================
# 客户端
# =============================================================================


class StudioClient:
    """Digi Studio 客户端。

    不持有任何对话状态；凭证在每次请求时通过 credential_provider 重新读取。
    """

    def __init__(
        self,
        config: StudioConfig | None = None,
        transport: GeminiTransport | None = None,
        credential_provider: CredentialProvider | None = None,
        event_callback: EventCallback | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """初始化客户端。

        Args:
            config: 配置（可选，默认从环境变量加载）
            transport: 传输层（可选，测试时注入替身）
            credential_provider: 凭证提供函数（默认 get_api_key）
            event_callback: 事件回调函数
            sleep: 退避等待函数
        """
        self._config = config or get_studio_config()
        self._event_callback = event_callback
        self._sleep = sleep
        self._transport = transport or GeminiTransport(
            self._config.base_url,
            credential_provider=credential_provider or get_api_key,
            timeout=self._config.timeout,
            event_callback=event_callback,
        )

    @property
    def config(self) -> StudioConfig:
        return self._config

    async def close(self) -> None:
        """关闭传输层。"""
        await self._transport.close()

    async def __aenter__(self) -> "StudioClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _call(self, label: str, operation: Callable[[], Awaitable[T]]) -> T:
        """带重试执行，失败时记录日志后原样抛出。"""
        try:
            return await execute_with_retry(
                operation,
                self._config.retry_policy,
                sleep=self._sleep,
                event_callback=self._event_callback,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"{label} error: {e}")
            raise

    async def generate_image(
        self,
        prompt: str,
        aspect_ratio: AspectRatio | str = AspectRatio.RATIO_1_1,
    ) -> ImagePayload | None:
        """文生图。

        Returns:
            PNG 图片；远端成功但没有图片时返回 None
        """
        body = build_generate_body(prompt, aspect_ratio)
        model = self._config.image_model

        async def operation() -> ImagePayload | None:
            response = await self._transport.predict(model, body)
            return parse_generated_image(response)

        return await self._call("Imagen image generation", operation)

    async def edit_image(self, prompt: str, image: ImagePayload | str) -> ImagePayload | None:
        """按指令编辑图片。

        Args:
            prompt: 编辑指令
            image: 源图片（ImagePayload 或 data URI）

        Returns:
            编辑后的图片（image/png）；响应中没有图片时返回 None
        """
        if isinstance(image, str):
            image = ImagePayload.from_data_uri(image)
        body = build_edit_body(prompt, image)
        model = self._config.edit_model

        async def operation() -> ImagePayload | None:
            response = await self._transport.generate_content(model, body)
            return parse_edited_image(response)

        return await self._call("Gemini image editing", operation)

    async def send_chat_message(self, history: ChatHistory, new_message: str) -> str | None:
        """发送对话消息。

        每次都根据传入的 history 重建上下文，调用方负责把用户消息和回复追加到
        自己的记录中。

        Returns:
            回复文本；没有文本时返回 None
        """
        body = build_chat_body(list(history), new_message)
        model = self._config.chat_model

        async def operation() -> str | None:
            response = await self._transport.generate_content(model, body)
            return parse_chat_reply(response)

        return await self._call("Gemini chat", operation)


# =============================================================================
# 函数接口（每次调用新建客户端，重新读取配置）
# =============================================================================


async def generate_image(
    prompt: str,
    aspect_ratio: AspectRatio | str = AspectRatio.RATIO_1_1,
) -> ImagePayload | None:
    async with StudioClient() as client:
        return await client.generate_image(prompt, aspect_ratio)


async def edit_image(prompt: str, image: ImagePayload | str) -> ImagePayload | None:
    async with StudioClient() as client:
        return await client.edit_image(prompt, image)


async def send_chat_message(history: ChatHistory, new_message: str) -> str | None:
    async with StudioClient() as client:
        return await client.send_chat_message(history, new_message)
