# dataclass：Message / ChatRequest / Builder（provider 侧的内部请求结构）

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

@dataclass
class Message:
    role: str  # "user" | "model"
    text: str
    image_base64: Optional[str] = None

    def image_data(self) -> Optional[str]:
        """去掉 data:image/...;base64, 前缀后的纯 base64"""
        if not self.image_base64:
            return None
        if self.image_base64.startswith("data:") and "," in self.image_base64:
            return self.image_base64.split(",", 1)[1]
        return self.image_base64

@dataclass
class ChatRequest:
    message: Message
    model: Optional[str] = None
    system_instruction: Optional[str] = None
    history: List[Message] = field(default_factory=list)
    max_completion_tokens: Optional[int] = None
    use_search: bool = False
    # 非空时要求 provider 返回 JSON
    json_schema: Optional[Dict[str, Any]] = None

    @property
    def json_mode(self) -> bool:
        return self.json_schema is not None

    @classmethod
    def builder(cls):
        return ChatRequestBuilder()

class ChatRequestBuilder:
    def __init__(self):
        self._model = None
        self._system_instruction = None
        self._history: List[Message] = []
        self._message: Optional[Message] = None
        self._max_completion_tokens = None
        self._use_search = False
        self._json_schema = None

    def model(self, model: str):
        self._model = model
        return self

    def systemInstruction(self, text: str):
        self._system_instruction = text
        return self

    def addHistory(self, role: str, text: str):
        self._history.append(Message(role=role, text=text))
        return self

    def message(self, text: str, image_base64: Optional[str] = None):
        self._message = Message(role="user", text=text, image_base64=image_base64)
        return self

    def max_completion_tokens(self, tokens: int):
        self._max_completion_tokens = tokens
        return self

    def search(self, enabled: bool = True):
        self._use_search = enabled
        return self

    def jsonSchema(self, schema: Dict[str, Any]):
        self._json_schema = schema
        return self

    def build(self) -> "ChatRequest":
        if self._message is None:
            raise ValueError("ChatRequest 缺少当前消息")
        return ChatRequest(
            message=self._message,
            model=self._model,
            system_instruction=self._system_instruction,
            history=self._history,
            max_completion_tokens=self._max_completion_tokens,
            use_search=self._use_search,
            json_schema=self._json_schema,
        )

@dataclass
class ProviderReply:
    text: str
    sources: List[Dict[str, str]] = field(default_factory=list)
