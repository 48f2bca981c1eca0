import asyncio

import pytest

from vitrine.llm import LLMClient, RetryPolicy
from vitrine.providers.gemini import _extract_text, _prompt_to_contents, create_gemini_client


def test_generate_times_out_hung_call():
    async def hung(*, prompt, timeout=None):
        await asyncio.sleep(5)
        return {"text": "[]", "error": None}

    client = LLMClient(call=hung)
    with pytest.raises(asyncio.TimeoutError):
        asyncio.run(client.generate({"user": "q"}, timeout=0.05))


def test_generate_retries_error_payload_then_returns_last():
    calls = []

    async def flaky(*, prompt, timeout=None):
        calls.append(prompt)
        return {"text": None, "error": {"message": "quota"}}

    client = LLMClient(call=flaky)
    response = asyncio.run(client.generate({"user": "q"}, retry=RetryPolicy(max_attempts=3)))
    assert len(calls) == 3
    assert response["error"] == {"message": "quota"}


def test_generate_reraises_after_final_attempt():
    async def failing(*, prompt, timeout=None):
        raise ConnectionError("down")

    client = LLMClient(call=failing)
    with pytest.raises(ConnectionError):
        asyncio.run(client.generate({"user": "q"}, retry=RetryPolicy(max_attempts=2)))


def test_prompt_to_contents_merges_system_into_user_turn():
    contents = _prompt_to_contents({"system": "sys", "user": "hello"})
    assert contents == [{"role": "user", "parts": [{"text": "sys"}, {"text": "hello"}]}]


def test_extract_text_from_candidate_parts():
    response = {"candidates": [{"content": {"parts": [{"text": '["a"]'}]}}]}

    class Wrapper:
        text = None
        candidates = response["candidates"]

    assert _extract_text(Wrapper()) == '["a"]'


def test_extract_text_when_sdk_accessor_raises():
    class Blocked:
        candidates = []

        @property
        def text(self):
            raise ValueError("no text part")

    assert _extract_text(Blocked()) is None


def test_gemini_client_normalizes_response():
    class Model:
        async def generate_content_async(self, contents, request_options=None):
            class Response:
                text = '["x"]'

            return Response()

    client = create_gemini_client(model="gemini-test", api_key="k", client=Model())
    response = asyncio.run(client.generate({"user": "q"}))
    assert response["text"] == '["x"]'
    assert response["error"] is None
    assert set(response) == {"status", "text", "items", "result", "error"}
