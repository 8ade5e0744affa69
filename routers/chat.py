# 聊天接口：POST /api/chat

import logging
from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from core import config
from core.errors import ErrorKind, classify_error, diagnostic_for, error_text
from core.retry import with_retry
from models.record_model import ChatReq, ChatResp, GroundingSource
from services.builder import build_chat_request
from services.llm_clients import smart_call
from services.prompts import load_prompts

router = APIRouter(prefix="/api")
logger = logging.getLogger("uvicorn.error")


def _error_response(status_code: int, resp: ChatResp) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=resp.model_dump(mode="json", exclude_none=True))


@router.post("/chat", response_model=ChatResp, response_model_exclude_none=True)
async def chat(body: ChatReq):
    try:
        provider = config.llm_provider()
    except RuntimeError as e:
        logger.error(str(e))
        return _error_response(500, ChatResp(text=str(e), error=ErrorKind.SERVICE))

    missing = config.missing_credential(provider)
    if missing:
        logger.error("Chat rejected: %s not configured", missing)
        return _error_response(
            500,
            ChatResp(text=f"Error: {missing} not configured on server.", error=ErrorKind.SERVICE),
        )

    prompts = load_prompts("chat_prompts")
    req = build_chat_request(body, prompts)
    if not req.message.text.strip() and not req.message.image_base64:
        raise HTTPException(status_code=400, detail="text 不能为空")

    # 开发模式下直接返回模拟回复，不调用模型
    if config.is_development():
        logger.info("Development mode: using mock chat reply")
        template = prompts.get("mockReply") or "这是模拟响应：{message}"
        return ChatResp(text=template.replace("{message}", req.message.text), sources=[])

    try:
        reply = await with_retry(
            lambda: smart_call(req),
            max_attempts=config.LLM_RETRY_MAX_ATTEMPTS,
            base_delay=config.LLM_RETRY_BASE_DELAY,
        )
    except Exception as e:
        classified = classify_error(e)
        logger.error("Chat failed [%s]: %s", classified.kind.value, error_text(e))
        return _error_response(
            500,
            ChatResp(text=classified.message, error=classified.kind, diagnostic=diagnostic_for(e)),
        )

    return ChatResp(
        text=reply.text,
        sources=[GroundingSource(**s) for s in reply.sources],
    )
