# 重试封装：只对暂时性错误（网络 / 超时 / 5xx）做指数退避重试

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

import httpx
import tenacity

from core.errors import error_text

logger = logging.getLogger("llm.retry")

T = TypeVar("T")

TRANSIENT_MARKERS = ("network", "timeout", "temporarily unavailable", "502", "503", "504")


def is_transient_error(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    lowered = error_text(exc).lower()
    return any(marker in lowered for marker in TRANSIENT_MARKERS)


def _log_retry(retry_state: tenacity.RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    if exc is None:
        return
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        "[RETRY] attempt %s failed, retry in %.1fs: %s",
        retry_state.attempt_number,
        wait,
        error_text(exc),
    )


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    growth: float = 2.0,
    is_retryable: Callable[[BaseException], bool] = is_transient_error,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    执行 operation，失败时：
      - is_retryable(exc) 为真且还有次数 → 等待 base_delay * growth ** attempt 后重试（attempt 从 0 开始）
      - 否则立即抛出
    次数用尽时抛出最后一次的异常。没有抖动，也没有总时长上限。
    """
    retrying = tenacity.AsyncRetrying(
        stop=tenacity.stop_after_attempt(max(1, max_attempts)),
        wait=tenacity.wait_exponential(multiplier=base_delay, exp_base=growth, min=0),
        retry=tenacity.retry_if_exception(is_retryable),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    # tenacity 只 await 协程函数；lambda 返回的协程需要包一层
    async def _attempt() -> T:
        return await operation()

    return await retrying(_attempt)
