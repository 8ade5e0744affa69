# Gemini 调用封装：google-genai（新 SDK）与 google-generativeai（旧 SDK）

import base64
import logging
import time
from typing import Any, Dict, List

import google.generativeai as legacy_genai
from google import genai
from google.genai import types

from core import config
from models.chat_models import ChatRequest, Message, ProviderReply

logger = logging.getLogger("llm.call")

__all__ = ["call_gemini", "call_gemini_legacy", "extract_sources", "to_genai_history"]


def _decode_image(m: Message) -> bytes:
    return base64.b64decode(m.image_data())


def extract_sources(response: Any) -> List[Dict[str, str]]:
    """从 grounding metadata 中取出同时带 uri 和 title 的网页引用"""
    sources: List[Dict[str, str]] = []
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return sources
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        uri = getattr(web, "uri", None)
        title = getattr(web, "title", None)
        if uri and title:
            sources.append({"uri": uri, "title": title})
    return sources


def _response_text(response: Any) -> str:
    text = getattr(response, "text", None)
    return text if isinstance(text, str) else ""


# ================= google-genai =================
def to_genai_history(history: List[Message]) -> List[types.Content]:
    return [
        types.Content(role="model" if m.role == "model" else "user", parts=[types.Part(text=m.text)])
        for m in history
    ]


def _genai_parts(m: Message) -> list:
    parts = []
    if m.image_base64:
        parts.append(types.Part.from_bytes(data=_decode_image(m), mime_type="image/jpeg"))
    parts.append(types.Part(text=m.text))
    return parts


def _genai_config(req: ChatRequest) -> types.GenerateContentConfig:
    kwargs: Dict[str, Any] = {}
    if req.system_instruction:
        kwargs["system_instruction"] = req.system_instruction
    if req.max_completion_tokens:
        kwargs["max_output_tokens"] = req.max_completion_tokens
    if req.json_mode:
        kwargs["response_mime_type"] = "application/json"
        kwargs["response_schema"] = req.json_schema
    elif req.use_search:
        kwargs["tools"] = [types.Tool(google_search=types.GoogleSearch())]
    return types.GenerateContentConfig(**kwargs)


async def call_gemini(req: ChatRequest) -> ProviderReply:
    model = req.model or config.GEMINI_MODEL
    client = genai.Client(
        api_key=config.gemini_api_key(),
        http_options=types.HttpOptions(timeout=int(config.LLM_TIMEOUT_S * 1000)),
    )
    gen_config = _genai_config(req)

    logger.info(
        "[LLM][GEMINI][REQUEST] model=%s history=%s json=%s search=%s image=%s",
        model,
        len(req.history),
        req.json_mode,
        req.use_search,
        bool(req.message.image_base64),
    )

    start = time.time()
    if req.json_mode:
        response = await client.aio.models.generate_content(
            model=model,
            contents=req.message.text,
            config=gen_config,
        )
    else:
        # 每次请求都用调用方传入的历史新建会话
        chat = client.aio.chats.create(model=model, config=gen_config, history=to_genai_history(req.history))
        response = await chat.send_message(_genai_parts(req.message))
    cost_ms = int((time.time() - start) * 1000)

    reply = ProviderReply(text=_response_text(response), sources=extract_sources(response))
    logger.info(
        "[LLM][GEMINI][RESPONSE] costMs=%s len=%s sources=%s",
        cost_ms,
        len(reply.text),
        len(reply.sources),
    )
    return reply


# ================= google-generativeai (legacy) =================
def to_legacy_history(history: List[Message]) -> List[Dict[str, Any]]:
    return [{"role": "model" if m.role == "model" else "user", "parts": [m.text]} for m in history]


def _legacy_parts(m: Message) -> list:
    parts: list = []
    if m.image_base64:
        parts.append({"mime_type": "image/jpeg", "data": _decode_image(m)})
    parts.append(m.text)
    return parts


async def call_gemini_legacy(req: ChatRequest) -> ProviderReply:
    model_name = req.model or config.GEMINI_MODEL
    legacy_genai.configure(api_key=config.gemini_api_key())

    generation_config: Dict[str, Any] = {}
    if req.max_completion_tokens:
        generation_config["max_output_tokens"] = req.max_completion_tokens
    if req.json_mode:
        generation_config["response_mime_type"] = "application/json"

    model = legacy_genai.GenerativeModel(
        model_name,
        system_instruction=req.system_instruction or None,
        generation_config=generation_config or None,
    )
    request_options = {"timeout": config.LLM_TIMEOUT_S}

    logger.info(
        "[LLM][GEMINI-LEGACY][REQUEST] model=%s history=%s json=%s image=%s",
        model_name,
        len(req.history),
        req.json_mode,
        bool(req.message.image_base64),
    )

    start = time.time()
    if req.json_mode:
        response = await model.generate_content_async(req.message.text, request_options=request_options)
    else:
        chat = model.start_chat(history=to_legacy_history(req.history))
        response = await chat.send_message_async(_legacy_parts(req.message), request_options=request_options)
    cost_ms = int((time.time() - start) * 1000)

    reply = ProviderReply(text=_response_text(response), sources=extract_sources(response))
    logger.info(
        "[LLM][GEMINI-LEGACY][RESPONSE] costMs=%s len=%s",
        cost_ms,
        len(reply.text),
    )
    return reply
