# 日结 JSON：输出结构定义、去掉代码块外壳、解析与字段兜底

import json
import re
from typing import Any, Dict, List

from core.errors import SummaryParseError
from models.record_model import DEFAULT_MOOD_COLOR, DEFAULT_MOOD_EMOJI, DailySummaryResp, Stat, today_label

_STRING = {"type": "STRING"}
_STRING_LIST = {"type": "ARRAY", "items": _STRING}

SUMMARY_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "highlight": _STRING_LIST,
        "actionItems": _STRING_LIST,
        "inspirations": _STRING_LIST,
        "stats": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {"label": _STRING, "value": _STRING},
            },
        },
        "moodEmoji": _STRING,
        "moodColor": _STRING,
    },
    "required": ["highlight", "actionItems", "inspirations", "moodEmoji", "moodColor"],
}

_FENCE = re.compile(r"```(?:json|JSON)?")


def strip_code_fence(raw: str) -> str:
    # 有些模型会输出 ```json ... ```，这里去掉外壳
    return _FENCE.sub("", raw or "").strip()


def parse_summary_output(raw: str) -> Dict[str, Any]:
    s = strip_code_fence(raw)
    if not s:
        raise SummaryParseError("empty JSON output from model")
    obj = json.loads(s)
    # 个别模型会把 JSON 再包一层字符串
    if isinstance(obj, str):
        obj = json.loads(strip_code_fence(obj))
    if not isinstance(obj, dict):
        raise SummaryParseError(f"summary JSON must be an object, got {type(obj).__name__}")
    return obj


def clean_text(s: Any) -> str:
    if isinstance(s, str):
        return s.strip()
    if isinstance(s, (int, float)) and not isinstance(s, bool):
        return str(s)
    return ""


def str_list(v: Any) -> List[str]:
    if not isinstance(v, list):
        return []
    out = []
    for item in v:
        t = clean_text(item)
        if t:
            out.append(t)
    return out


def stat_list(v: Any) -> List[Stat]:
    if not isinstance(v, list):
        return []
    out = []
    for item in v:
        if not isinstance(item, dict):
            continue
        label = clean_text(item.get("label"))
        value = clean_text(item.get("value"))
        if label and value:
            out.append(Stat(label=label, value=value))
    return out


def normalize_summary(obj: Dict[str, Any]) -> DailySummaryResp:
    """有哪些给哪些，缺失或类型不对的字段用默认值；date 永远取服务器当天"""
    return DailySummaryResp(
        highlight=str_list(obj.get("highlight")),
        actionItems=str_list(obj.get("actionItems")),
        inspirations=str_list(obj.get("inspirations")),
        stats=stat_list(obj.get("stats")),
        moodEmoji=clean_text(obj.get("moodEmoji")) or DEFAULT_MOOD_EMOJI,
        moodColor=clean_text(obj.get("moodColor")) or DEFAULT_MOOD_COLOR,
        date=today_label(),
        rawLog=[],
    )
