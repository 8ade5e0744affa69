# 前端调用的 service facade：封装 /api/chat 与 /api/summary，任何情况下都不向调用方抛异常

import logging
from typing import Any, Dict, List, Optional

import httpx

from core import config
from core.errors import ERROR_MESSAGES, ErrorKind, error_text
from core.retry import with_retry
from models.record_model import (
    DEFAULT_MOOD_COLOR,
    DEFAULT_MOOD_EMOJI,
    ChatResp,
    DailySummaryResp,
    Record,
    today_label,
)
from services.summary_parser import clean_text, stat_list, str_list

logger = logging.getLogger("sparklog.client")

CLIENT_SUMMARY_ERROR = "客户端网络错误"


class RouteServerError(Exception):
    """路由返回 5xx；保留响应，重试用尽后仍读取其中的结构化错误"""

    def __init__(self, response: httpx.Response):
        super().__init__(f"服务器错误: {response.status_code}")
        self.response = response


def _is_retryable(exc: BaseException) -> bool:
    # 只重试网络错误和服务器错误，4xx 不重试
    return isinstance(exc, (RouteServerError, httpx.TransportError))


def _records(messages: List[Any]) -> List[Dict[str, Any]]:
    out = []
    for m in messages:
        if isinstance(m, Record):
            out.append(m.model_dump(exclude_none=True))
        else:
            out.append(dict(m))
    return out


def _kind(value: Any) -> ErrorKind:
    try:
        return ErrorKind(value)
    except ValueError:
        return ErrorKind.SERVICE


def _sources(v: Any) -> List[Dict[str, str]]:
    if not isinstance(v, list):
        return []
    return [
        {"uri": s["uri"], "title": s["title"]}
        for s in v
        if isinstance(s, dict) and isinstance(s.get("uri"), str) and isinstance(s.get("title"), str)
    ]


class JournalClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_attempts: int = 2,
        base_delay: float = 1.0,
        timeout: float = 120.0,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or config.API_BASE,
            transport=transport,
            timeout=timeout,
        )
        self._max_attempts = max_attempts
        self._base_delay = base_delay

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        async def _once() -> httpx.Response:
            r = await self._client.post(path, json=payload)
            if r.status_code >= 500:
                raise RouteServerError(r)
            return r

        try:
            return await with_retry(
                _once,
                max_attempts=self._max_attempts,
                base_delay=self._base_delay,
                is_retryable=_is_retryable,
            )
        except RouteServerError as e:
            # 重试用尽：返回最后一次响应，由调用方读取其中的错误字段
            return e.response

    async def send_message(
        self,
        text: str,
        history: List[Any],
        image_base64: Optional[str] = None,
    ) -> ChatResp:
        payload: Dict[str, Any] = {"text": text, "history": _records(history)}
        if image_base64:
            payload["image"] = image_base64
        try:
            r = await self._post("/api/chat", payload)
            data = r.json()
            if not r.is_success:
                # 服务端已经给出了可读的错误信息
                error_kind = data.get("error")
                detail = clean_text(data.get("detail"))
                logger.error("API Error: %s %s", data.get("text"), error_kind or "unknown")
                return ChatResp(
                    text=clean_text(data.get("text")) or detail or "API请求失败",
                    sources=[],
                    error=_kind(error_kind),
                    diagnostic=clean_text(data.get("diagnostic")) or None,
                )
            return ChatResp(text=clean_text(data.get("text")), sources=_sources(data.get("sources")))
        except Exception as e:
            logger.exception("Error sending message")
            return ChatResp(
                text=ERROR_MESSAGES[ErrorKind.NETWORK_CLIENT],
                sources=[],
                error=ErrorKind.NETWORK_CLIENT,
                diagnostic=None if config.is_production() else error_text(e),
            )

    async def generate_daily_summary(self, messages: List[Any]) -> DailySummaryResp:
        try:
            r = await self._post("/api/summary", {"messages": _records(messages)})
            data = r.json()
            if not isinstance(data, dict):
                raise ValueError(f"unexpected summary body: {type(data).__name__}")
            error = clean_text(data.get("error")) or None
            if not error and not r.is_success:
                error = clean_text(data.get("detail")) or "API请求失败"
            if error:
                logger.error("Summary API Error: %s %s", error, data.get("errorType") or "unknown")
            # 逐个字段兜底：某个字段格式不对只影响它自己，其余内容和错误信息原样保留
            return DailySummaryResp(
                highlight=str_list(data.get("highlight")),
                actionItems=str_list(data.get("actionItems")),
                inspirations=str_list(data.get("inspirations")),
                stats=stat_list(data.get("stats")),
                moodEmoji=clean_text(data.get("moodEmoji")) or DEFAULT_MOOD_EMOJI,
                moodColor=clean_text(data.get("moodColor")) or DEFAULT_MOOD_COLOR,
                date=clean_text(data.get("date")) or today_label(),
                rawLog=data.get("rawLog") if isinstance(data.get("rawLog"), list) else [],
                error=error,
                errorType=_kind(data.get("errorType")) if error else None,
                diagnostic=clean_text(data.get("diagnostic")) or None,
            )
        except Exception:
            logger.exception("Summary Generation Error")
            # 返回默认的空总结，而不是抛出异常
            return DailySummaryResp(
                error=CLIENT_SUMMARY_ERROR,
                errorType=ErrorKind.NETWORK_CLIENT,
            )
