"""Gemini REST 传输层。

使用 aiohttp 异步调用 Gemini / Imagen API，把失败的 HTTP 响应转换为带分类标签的
GeminiAPIError。本层不做重试，重试由 retry.execute_with_retry 负责。
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from typing import Any, Callable

import aiohttp

from .errors import ErrorKind, GeminiAPIError, GeminiConfigError

__all__ = [
    "GeminiTransport",
    "CredentialProvider",
    "classify_error",
    "sanitize_for_debug",
]

logger = logging.getLogger(__name__)

# 凭证提供函数：每次请求时调用
CredentialProvider = Callable[[], str]
EventCallback = Callable[[dict[str, Any]], None]

NOT_FOUND_MESSAGE = "Requested entity was not found"

_STATUS_KINDS = {
    "RESOURCE_EXHAUSTED": ErrorKind.RATE_LIMITED,
    "PERMISSION_DENIED": ErrorKind.FORBIDDEN,
}


def sanitize_for_debug(data: Any) -> Any:
    """Sanitize data for debug output, replacing base64 strings with summaries."""
    if isinstance(data, dict):
        return {k: sanitize_for_debug(v) for k, v in data.items()}
    if isinstance(data, list):
        return [sanitize_for_debug(item) for item in data]
    if isinstance(data, str) and len(data) > 100:
        if re.match(r'^[A-Za-z0-9+/=]+$', data[:100]):
            return f"<base64:{len(data)} bytes>"
    return data


def classify_error(status_code: int, body: str) -> tuple[ErrorKind, str]:
    """根据 HTTP 状态码和 Google 错误体对失败分类。

    Google 错误体格式: {"error": {"code": 404, "message": "...", "status": "NOT_FOUND"}}

    NOT_FOUND 只由消息 "Requested entity was not found" 判定；模型名错误等
    status 为 NOT_FOUND 的其他 404 属于 OTHER，不重试。

    Returns:
        (kind, message) 元组
    """
    message = body
    status = ""
    try:
        payload = json.loads(body)
    except (TypeError, ValueError):
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        error = payload["error"]
        message = str(error.get("message") or body)
        status = str(error.get("status") or "")

    if status_code == 429:
        return ErrorKind.RATE_LIMITED, message
    if status_code == 403:
        return ErrorKind.FORBIDDEN, message
    if NOT_FOUND_MESSAGE in message:
        return ErrorKind.NOT_FOUND, message
    return _STATUS_KINDS.get(status, ErrorKind.OTHER), message


class GeminiTransport:
    """Gemini REST 传输层。

    Example:
        transport = GeminiTransport(base_url, credential_provider=get_api_key)
        data = await transport.generate_content("gemini-2.5-flash", body)
    """

    def __init__(
        self,
        base_url: str,
        credential_provider: CredentialProvider,
        timeout: float = 120.0,
        event_callback: EventCallback | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._credential_provider = credential_provider
        self._timeout = timeout
        self._event_callback = event_callback
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """获取或创建 HTTP 会话。"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout)
            )
        return self._session

    async def close(self) -> None:
        """关闭 HTTP 会话。"""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    def _emit_event(self, event: dict[str, Any]) -> None:
        """发送事件到回调。"""
        if self._event_callback:
            self._event_callback(event)

    def _build_headers(self) -> dict[str, str]:
        """构建请求头。每次调用都重新读取凭证。

        Raises:
            GeminiConfigError: 未配置 API key
        """
        token = (self._credential_provider() or "").strip()
        if not token:
            raise GeminiConfigError(
                "API key not configured. Set DIGI_API_KEY, API_KEY or GOOGLE_API_KEY."
            )
        if token.startswith("Bearer "):
            return {"Content-Type": "application/json", "Authorization": token}
        return {"Content-Type": "application/json", "x-goog-api-key": token}

    def build_url(self, model: str, method: str) -> str:
        return f"{self._base_url}/models/{model}:{method}"

    async def post(self, model: str, method: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST 到 models/{model}:{method}。

        Returns:
            解析后的 JSON 响应

        Raises:
            GeminiConfigError: 未配置 API key
            GeminiAPIError: 非 200 响应、无效 JSON 或网络错误
        """
        url = self.build_url(model, method)
        headers = self._build_headers()
        session = await self._get_session()

        self._emit_event({
            "type": "api_request",
            "url": url,
            "method": "POST",
            "body": sanitize_for_debug(body),
        })

        start_time = time.time()
        try:
            async with session.post(url, json=body, headers=headers) as resp:
                duration_ms = int((time.time() - start_time) * 1000)

                if resp.status == 200:
                    try:
                        data = await resp.json(content_type=None)
                    except ValueError as e:
                        raise GeminiAPIError(
                            resp.status,
                            f"Invalid JSON response: {e}",
                            ErrorKind.OTHER,
                            api_url=url,
                        ) from e
                    if not isinstance(data, dict):
                        raise GeminiAPIError(
                            resp.status,
                            f"Invalid JSON response: expected an object, got {type(data).__name__}",
                            ErrorKind.OTHER,
                            api_url=url,
                        )
                    self._emit_event({
                        "type": "api_response",
                        "status_code": resp.status,
                        "duration_ms": duration_ms,
                        "body": sanitize_for_debug(data),
                    })
                    return data

                error_text = await resp.text()
                self._emit_event({
                    "type": "api_response",
                    "status_code": resp.status,
                    "duration_ms": duration_ms,
                    "body": error_text[:2000],
                })
                kind, message = classify_error(resp.status, error_text)
                logger.debug(f"API error {resp.status} ({kind.value}) from {url}: {message[:200]}")
                raise GeminiAPIError(resp.status, message, kind, api_url=url)

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise GeminiAPIError(0, f"Network error: {e}", ErrorKind.OTHER, api_url=url) from e

    async def predict(self, model: str, body: dict[str, Any]) -> dict[str, Any]:
        """Imagen 文生图接口。"""
        return await self.post(model, "predict", body)

    async def generate_content(self, model: str, body: dict[str, Any]) -> dict[str, Any]:
        """Gemini generateContent 接口。"""
        return await self.post(model, "generateContent", body)
