from datetime import date
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from core.errors import ErrorKind

DEFAULT_MOOD_EMOJI = "😐"
DEFAULT_MOOD_COLOR = "#808080"


def today_label(today: Optional[date] = None) -> str:
    """服务器当天日期，例如 2026年10月19日"""
    d = today or date.today()
    return f"{d.year}年{d.month}月{d.day}日"


class Record(BaseModel):
    """
    对话记录单元（由浏览器保存，每次请求完整传入）
    - role: user / model；也接受 assistant（视为 model）与 system（发给模型前会被过滤）
    - text: 文本内容，兼容旧字段 content
    - imageBase64: 可选图片
    """
    model_config = ConfigDict(populate_by_name=True)

    role: str = "user"
    text: str = Field("", validation_alias=AliasChoices("text", "content"))
    imageBase64: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _text_or_content(cls, data):
        # text 为 null / 空时回退到 content，都没有就当空串
        if isinstance(data, dict) and not data.get("text"):
            data = {**data, "text": data.get("content") or ""}
        return data


class ChatReq(BaseModel):
    text: Optional[str] = None
    history: List[Record] = Field(default_factory=list)
    messages: List[Record] = Field(default_factory=list)
    image: Optional[str] = None  # base64, jpeg


class GroundingSource(BaseModel):
    uri: str
    title: str


class ChatResp(BaseModel):
    text: str
    sources: List[GroundingSource] = Field(default_factory=list)
    error: Optional[ErrorKind] = None
    diagnostic: Optional[str] = None


class SummaryReq(BaseModel):
    messages: List[Record] = Field(default_factory=list)


class Stat(BaseModel):
    label: str
    value: str


class DailySummaryResp(BaseModel):
    highlight: List[str] = Field(default_factory=list)
    actionItems: List[str] = Field(default_factory=list)
    inspirations: List[str] = Field(default_factory=list)
    stats: List[Stat] = Field(default_factory=list)
    moodEmoji: str = DEFAULT_MOOD_EMOJI
    moodColor: str = DEFAULT_MOOD_COLOR  # 不做校验，可能不是合法的 hex
    date: str = Field(default_factory=today_label)
    rawLog: list = Field(default_factory=list)
    error: Optional[str] = None
    errorType: Optional[ErrorKind] = None
    diagnostic: Optional[str] = None
