# VolcEngine (Ark) 调用封装 + provider 分发

import httpx
from fastapi import HTTPException
import logging
import time
import json
logger = logging.getLogger("llm.call")
from core import config
from models.chat_models import ChatRequest, Message, ProviderReply
from services import gemini_clients

__all__ = ["call_volcengine", "smart_call", "extract_reply", "to_openai_messages"]

def _extract_text_from_choices(choices):
    if isinstance(choices, list) and choices:
        ch0 = choices[0] or {}
        msg = ch0.get("message") or {}
        content = msg.get("content")
        if isinstance(content, str) and content:
            return content
        if isinstance(content, list):
            parts = []
            for part in content:
                if isinstance(part, dict) and part.get("type") == "text":
                    t = part.get("text")
                    if isinstance(t, str):
                        parts.append(t)
            if parts:
                return "".join(parts)
        if isinstance(ch0.get("text"), str) and ch0["text"]:
            return ch0["text"]
    return None

def extract_reply(data) -> str:
    if isinstance(data, dict) and "choices" in data:
        text = _extract_text_from_choices(data["choices"])
        if text:
            return text
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        # 200 但带 error 体，按服务错误处理
        raise HTTPException(status_code=502, detail=_safe_json(data["error"]) + " err from volcengine")
    return ""

def _safe_json(obj):
    """Safely json-serialize any object for logging."""
    try:
        return json.dumps(obj, ensure_ascii=False)
    except (TypeError, ValueError):
        return json.dumps(str(obj), ensure_ascii=False)

def _mask(key: str) -> str:
    if len(key) <= 8:
        return "***"
    return key[:4] + "***" + key[-4:]

def _message_content(m: Message):
    if not m.image_base64:
        return m.text
    return [
        {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{m.image_data()}"}},
        {"type": "text", "text": m.text},
    ]

def to_openai_messages(req: ChatRequest) -> list:
    msgs = []
    if req.system_instruction:
        msgs.append({"role": "system", "content": req.system_instruction})
    for m in req.history:
        msgs.append({"role": "assistant" if m.role == "model" else "user", "content": m.text})
    msgs.append({"role": "user", "content": _message_content(req.message)})
    return msgs

async def call_volcengine(req: ChatRequest) -> ProviderReply:
    api_key = config.volc_api_key()
    headers = {"Authorization": f"Bearer {api_key}"}
    payload = {
        "model": req.model or config.VOLC_MODEL,
        "messages": to_openai_messages(req),
        "max_completion_tokens": req.max_completion_tokens or config.CHAT_MAX_TOKENS,
        "reasoning_effort": config.VOLC_REASONING_EFFORT,
    }

    logger.info(
        "[LLM][VOLC][REQUEST] %s",
        _safe_json({
            "url": config.VOLC_URL,
            "auth": _mask(api_key),
            "model": payload["model"],
            "messages": len(payload["messages"]),
            "has_image": bool(req.message.image_base64),
        }),
    )

    start = time.time()
    timeout = httpx.Timeout(config.LLM_TIMEOUT_S, connect=10.0)
    async with httpx.AsyncClient(timeout=timeout) as client:
        r = await client.post(config.VOLC_URL, headers=headers, json=payload)
    cost_ms = int((time.time() - start) * 1000)

    if r.status_code != 200:
        logger.error(
            "[LLM][VOLC][ERROR] costMs=%s status=%s response=%s",
            cost_ms,
            r.status_code,
            r.text,
        )
        raise HTTPException(status_code=r.status_code, detail=r.text + " err from volcengine")

    try:
        resp_json = r.json()
    except ValueError:
        resp_json = r.text

    logger.info(
        "[LLM][VOLC][RESPONSE] costMs=%s %s",
        cost_ms,
        _safe_json(resp_json),
    )

    return ProviderReply(text=extract_reply(resp_json))

async def smart_call(req: ChatRequest) -> ProviderReply:
    """
    按 LLM_PROVIDER 分发：
      - gemini        → google-genai
      - gemini_legacy → google-generativeai
      - volcengine    → Ark REST
    每次调用都新建会话，不复用任何跨请求状态。
    """
    provider = config.llm_provider()
    if provider == "gemini":
        return await gemini_clients.call_gemini(req)
    if provider == "gemini_legacy":
        return await gemini_clients.call_gemini_legacy(req)
    return await call_volcengine(req)
