"""Tests for provider adapters: VolcEngine wire format, reply/source extraction, dispatch."""

from __future__ import annotations

import asyncio
import functools
import json
from types import SimpleNamespace

import httpx
import pytest
from fastapi import HTTPException

from core import config
from models.chat_models import ChatRequest, Message, ProviderReply
from services import gemini_clients, llm_clients


def _request(**kwargs) -> ChatRequest:
    b = ChatRequest.builder().systemInstruction('be brief').addHistory('user', '早').addHistory('model', '早！')
    b.message(kwargs.pop('text', '今天跑了5公里'), image_base64=kwargs.pop('image', None))
    b.max_completion_tokens(256)
    return b.build()


@pytest.fixture
def volc_transport(monkeypatch: pytest.MonkeyPatch):
    """Routes every httpx.AsyncClient created by the adapter through a MockTransport."""
    monkeypatch.setenv('VOLCENGINE_API_KEY', 'volc-secret-key')
    captured: dict = {}

    def install(response: httpx.Response) -> dict:
        def handler(request: httpx.Request) -> httpx.Response:
            captured['url'] = str(request.url)
            captured['auth'] = request.headers.get('Authorization')
            captured['payload'] = json.loads(request.content)
            return response

        monkeypatch.setattr(
            llm_clients.httpx,
            'AsyncClient',
            functools.partial(httpx.AsyncClient, transport=httpx.MockTransport(handler)),
        )
        return captured

    return install


def test_volcengine_payload_and_reply(volc_transport) -> None:
    captured = volc_transport(httpx.Response(200, json={'choices': [{'message': {'content': '厉害！'}}]}))
    reply = asyncio.run(llm_clients.call_volcengine(_request()))

    assert reply == ProviderReply(text='厉害！', sources=[])
    assert captured['url'] == config.VOLC_URL
    assert captured['auth'] == 'Bearer volc-secret-key'
    payload = captured['payload']
    assert set(payload) == {'model', 'messages', 'max_completion_tokens', 'reasoning_effort'}
    assert payload['model'] == config.VOLC_MODEL
    assert payload['max_completion_tokens'] == 256
    assert [m['role'] for m in payload['messages']] == ['system', 'user', 'assistant', 'user']
    assert payload['messages'][-1]['content'] == '今天跑了5公里'


def test_volcengine_image_data_uri_not_doubled(volc_transport) -> None:
    captured = volc_transport(httpx.Response(200, json={'choices': [{'message': {'content': 'ok'}}]}))
    asyncio.run(llm_clients.call_volcengine(_request(image='data:image/jpeg;base64,aGVsbG8=')))

    content = captured['payload']['messages'][-1]['content']
    assert content[0]['image_url']['url'] == 'data:image/jpeg;base64,aGVsbG8='
    assert content[1] == {'type': 'text', 'text': '今天跑了5公里'}


def test_message_content_accepts_bare_base64() -> None:
    content = llm_clients._message_content(Message('user', '看图', image_base64='aGVsbG8='))
    assert content[0]['image_url']['url'] == 'data:image/jpeg;base64,aGVsbG8='


def test_volcengine_non_200_raises_http_exception(volc_transport) -> None:
    volc_transport(httpx.Response(401, text='{"error": "invalid api key"}'))
    with pytest.raises(HTTPException) as info:
        asyncio.run(llm_clients.call_volcengine(_request()))
    assert info.value.status_code == 401


def test_extract_reply_variants() -> None:
    assert llm_clients.extract_reply({'choices': [{'message': {'content': 'hi'}}]}) == 'hi'
    parts = [{'type': 'text', 'text': 'a'}, {'type': 'image_url'}, {'type': 'text', 'text': 'b'}]
    assert llm_clients.extract_reply({'choices': [{'message': {'content': parts}}]}) == 'ab'
    assert llm_clients.extract_reply({'choices': []}) == ''
    with pytest.raises(HTTPException):
        llm_clients.extract_reply({'error': {'code': 'InternalServiceError'}})


def test_extract_sources_requires_uri_and_title() -> None:
    chunks = [
        SimpleNamespace(web=SimpleNamespace(uri='https://a.example', title='A')),
        SimpleNamespace(web=SimpleNamespace(uri='https://b.example', title=None)),
        SimpleNamespace(web=None),
    ]
    response = SimpleNamespace(
        candidates=[SimpleNamespace(grounding_metadata=SimpleNamespace(grounding_chunks=chunks))]
    )
    assert gemini_clients.extract_sources(response) == [{'uri': 'https://a.example', 'title': 'A'}]
    assert gemini_clients.extract_sources(SimpleNamespace(candidates=None)) == []
    assert gemini_clients.extract_sources(
        SimpleNamespace(candidates=[SimpleNamespace(grounding_metadata=None)])
    ) == []


def test_genai_history_roles() -> None:
    contents = gemini_clients.to_genai_history([Message('user', '早'), Message('model', '早！')])
    assert [c.role for c in contents] == ['user', 'model']
    assert contents[1].parts[0].text == '早！'


def test_legacy_history_and_parts() -> None:
    assert gemini_clients.to_legacy_history([Message('model', 'hi')]) == [{'role': 'model', 'parts': ['hi']}]
    parts = gemini_clients._legacy_parts(Message('user', '看图', image_base64='data:image/jpeg;base64,aGVsbG8='))
    assert parts == [{'mime_type': 'image/jpeg', 'data': b'hello'}, '看图']


@pytest.mark.parametrize(
    'env, expected',
    [
        ({'LLM_PROVIDER': 'doubao'}, 'volcengine'),
        ({'LLM_PROVIDER': 'gemini_legacy'}, 'gemini_legacy'),
        ({'GEMINI_API_KEY': 'k'}, 'gemini'),
        ({'VOLCENGINE_API_KEY': 'k'}, 'volcengine'),
        ({}, 'gemini'),
    ],
)
def test_provider_selection(monkeypatch: pytest.MonkeyPatch, env: dict, expected: str) -> None:
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    assert config.llm_provider() == expected


def test_unknown_provider_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv('LLM_PROVIDER', 'openai')
    with pytest.raises(RuntimeError):
        config.llm_provider()


@pytest.mark.parametrize(
    'provider, target',
    [('gemini', 'call_gemini'), ('gemini_legacy', 'call_gemini_legacy')],
)
def test_smart_call_dispatch(monkeypatch: pytest.MonkeyPatch, provider: str, target: str) -> None:
    monkeypatch.setenv('LLM_PROVIDER', provider)
    called = []

    async def fake(req: ChatRequest) -> ProviderReply:
        called.append(target)
        return ProviderReply(text='ok')

    monkeypatch.setattr(gemini_clients, target, fake)
    assert asyncio.run(llm_clients.smart_call(_request())).text == 'ok'
    assert called == [target]
