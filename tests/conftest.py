"""Shared fixtures: a clean provider environment and a stubbed provider call."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from core import config
from models.chat_models import ChatRequest, ProviderReply

_ENV_VARS = (
    'GEMINI_API_KEY',
    'VOLCENGINE_API_KEY',
    'VOLCENGINE_API_SECRET',
    'LLM_PROVIDER',
    'APP_ENV',
    'NODE_ENV',
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, 'LLM_RETRY_BASE_DELAY', 0.0)


@pytest.fixture
def client() -> TestClient:
    from main import app

    return TestClient(app)


class ProviderStub:
    """Records every provider request and answers from a scripted list."""

    def __init__(self) -> None:
        self.requests: list[ChatRequest] = []
        self.outcomes: list[Any] = []

    def script(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)

    async def __call__(self, req: ChatRequest) -> ProviderReply:
        self.requests.append(req)
        outcome = self.outcomes.pop(0) if self.outcomes else ProviderReply(text='')
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def provider(monkeypatch: pytest.MonkeyPatch) -> ProviderStub:
    stub = ProviderStub()
    monkeypatch.setattr('routers.chat.smart_call', stub)
    monkeypatch.setattr('routers.summary.smart_call', stub)
    return stub


@pytest.fixture
def gemini_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv('GEMINI_API_KEY', 'test-gemini-key')
