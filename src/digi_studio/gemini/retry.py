"""指数退避重试执行器。

对一个无参协程函数进行调用，遇到可重试错误时按 RetryPolicy 等待后重试。
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from .errors import GeminiAPIError, RetriesExhaustedError
from .types import RetryPolicy

__all__ = ["execute_with_retry", "is_retriable", "EventCallback"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 事件回调类型
EventCallback = Callable[[dict[str, Any]], None]
SleepFunc = Callable[[float], Awaitable[Any]]


def is_retriable(error: BaseException, policy: RetryPolicy) -> bool:
    """判断异常是否属于可重试分类。"""
    return isinstance(error, GeminiAPIError) and error.kind in policy.retry_on


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    sleep: SleepFunc = asyncio.sleep,
    event_callback: EventCallback | None = None,
) -> T:
    """执行 operation，可重试错误按指数退避重试。

    Args:
        operation: 无参协程函数
        policy: 重试策略（默认 3 次、1 秒、x2）
        sleep: 等待函数（测试时可替换）
        event_callback: 重试事件回调

    Returns:
        operation 的返回值

    Raises:
        RetriesExhaustedError: 可重试错误持续到最后一次调用
        Exception: 不可重试错误原样抛出
    """
    policy = policy or RetryPolicy()
    delay = policy.initial_delay
    last_error: BaseException | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except GeminiAPIError as e:
            if not is_retriable(e, policy):
                raise
            last_error = e
            if attempt >= policy.max_attempts:
                raise RetriesExhaustedError(attempt, e) from e

            logger.warning(
                f"Attempt {attempt} failed ({e.kind.value}), "
                f"retrying in {delay:.2f}s: {e.message[:200]}"
            )
            if event_callback:
                event_callback({
                    "type": "api_retry",
                    "attempt": attempt,
                    "status_code": e.status_code,
                    "kind": e.kind.value,
                    "delay": delay,
                })
            await sleep(delay)
            delay *= policy.backoff_multiplier

    # 合法的 policy 下不会到达这里
    raise RetriesExhaustedError(policy.max_attempts, last_error)
