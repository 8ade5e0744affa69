# ChatRequest 构建：聊天历史 → provider 请求；消息列表 → 日结对话记录

from typing import Any, Dict, List, Optional

from core import config
from models.chat_models import ChatRequest
from models.record_model import ChatReq, Record
from services.prompts import join_lines


def _normalize_role(role: Optional[str]) -> Optional[str]:
    r = (role or "user").strip().lower()
    if r == "system":
        return None
    if r in ("model", "assistant"):
        return "model"
    return "user"


def build_chat_request(body: ChatReq, prompts: dict, model: Optional[str] = None) -> ChatRequest:
    b = ChatRequest.builder()
    b.model(model)
    b.systemInstruction(join_lines(prompts.get("systemInstruction")))
    b.max_completion_tokens(config.CHAT_MAX_TOKENS)
    b.search()

    # messages 优先于 history
    records: List[Record] = list(body.messages or body.history or [])
    records = [r for r in records if _normalize_role(r.role) is not None]

    latest = (body.text or "").strip()
    image = body.image
    if not latest and records and _normalize_role(records[-1].role) == "user":
        # 没有单独传 text 时，最后一条用户消息就是本轮输入，不再放进历史
        last = records.pop()
        latest = last.text.strip()
        image = image or last.imageBase64

    for r in records:
        text = (r.text or "").strip()
        if text:
            b.addHistory(_normalize_role(r.role), text)

    if image and not latest:
        latest = prompts.get("imagePrompt") or "看看这张图！"
    b.message(latest, image_base64=image)
    return b.build()


def build_transcript(messages: List[Record], prompts: dict) -> str:
    user_label = prompts.get("userLabel") or "用户"
    model_label = prompts.get("modelLabel") or "SparkLog"
    lines = []
    for m in messages:
        role = _normalize_role(m.role)
        if role is None:
            continue
        label = user_label if role == "user" else model_label
        lines.append(f"{label}: {m.text}")
    return "\n".join(lines)


def build_summary_request(
    messages: List[Record],
    prompts: dict,
    schema: Dict[str, Any],
    model: Optional[str] = None,
) -> ChatRequest:
    transcript = build_transcript(messages, prompts)
    prompt = join_lines(prompts.get("template")).replace("{transcript}", transcript)
    return (
        ChatRequest.builder()
        .model(model)
        .message(prompt)
        .max_completion_tokens(config.SUMMARY_MAX_TOKENS)
        .jsonSchema(schema)
        .build()
    )
