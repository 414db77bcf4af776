"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import base64
import sys
from pathlib import Path
from typing import Any

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from digi_studio.config import StudioConfig  # noqa: E402
from digi_studio.gemini.types import RetryPolicy  # noqa: E402

# 最小的 1x1 PNG
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


class FakeTransport:
    """GeminiTransport 替身：按顺序返回预设响应或抛出预设异常。"""

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.closed = False

    async def _next(self, model: str, method: str, body: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((model, method, body))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def predict(self, model: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._next(model, "predict", body)

    async def generate_content(self, model: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._next(model, "generateContent", body)

    async def close(self) -> None:
        self.closed = True


class SleepRecorder:
    """记录等待时间，不真正等待。"""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def png_b64() -> str:
    return base64.b64encode(PNG_BYTES).decode("ascii")


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def studio_config() -> StudioConfig:
    """默认模型和 3 次重试策略。"""
    return StudioConfig(retry_policy=RetryPolicy(max_attempts=3, initial_delay=1.0, backoff_multiplier=2.0))


@pytest.fixture
def make_transport() -> type[FakeTransport]:
    """返回 FakeTransport 类，用法: make_transport(response1, error2, ...)。"""
    return FakeTransport
