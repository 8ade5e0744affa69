# 日结接口：POST /api/summary

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from core import config
from core.errors import ERROR_MESSAGES, ErrorKind, SummaryParseError, classify_error, diagnostic_for, error_text
from core.retry import with_retry
from models.record_model import DailySummaryResp, SummaryReq
from services.builder import build_summary_request
from services.llm_clients import smart_call
from services.prompts import load_prompts
from services.summary_parser import SUMMARY_SCHEMA, normalize_summary, parse_summary_output
import json
import logging

router = APIRouter(prefix="/api")

# 用 uvicorn 的 logger，确保日志出现在 docker logs / uvicorn 输出里
logger = logging.getLogger("uvicorn.error")


def _default_body(status_code: int, error: str, kind: ErrorKind, diagnostic: str | None = None) -> JSONResponse:
    # 出错时也返回完整的默认结构，调用方不需要判断字段是否存在
    resp = DailySummaryResp(error=error, errorType=kind, diagnostic=diagnostic)
    return JSONResponse(status_code=status_code, content=resp.model_dump(mode="json", exclude_none=True))


# ================= 主逻辑 =================
@router.post("/summary", response_model=DailySummaryResp, response_model_exclude_none=True)
async def summarize(body: SummaryReq):
    try:
        provider = config.llm_provider()
    except RuntimeError as e:
        logger.error(str(e))
        return _default_body(500, str(e), ErrorKind.SERVICE)

    missing = config.missing_credential(provider)
    if missing:
        logger.error("Summary rejected: %s not configured", missing)
        return _default_body(500, f"{missing} not configured.", ErrorKind.SERVICE)

    prompts = load_prompts("summary_prompts")
    req = build_summary_request(body.messages, prompts, SUMMARY_SCHEMA)
    logger.info("daily summary request messages=%d promptLen=%d", len(body.messages), len(req.message.text))

    try:
        reply = await with_retry(
            lambda: smart_call(req),
            max_attempts=config.LLM_RETRY_MAX_ATTEMPTS,
            base_delay=config.LLM_RETRY_BASE_DELAY,
        )
    except Exception as e:
        classified = classify_error(e)
        logger.error("Summary generation failed [%s]: %s", classified.kind.value, error_text(e))
        return _default_body(500, classified.message, classified.kind, diagnostic_for(e))

    logger.info("LLM raw output len=%d head=%s", len(reply.text), reply.text[:200])

    try:
        obj = parse_summary_output(reply.text)
    except (json.JSONDecodeError, SummaryParseError) as e:
        # 解析失败 → 默认结构 + parsing 错误
        logger.error("Failed to parse summary output: %s", error_text(e))
        return _default_body(200, ERROR_MESSAGES[ErrorKind.PARSING], ErrorKind.PARSING, diagnostic_for(e))

    return normalize_summary(obj)
