import asyncio
from types import SimpleNamespace

import pytest

from taxibot.agent.resolver import IntentResolver
from taxibot.errors import GenerationError
from taxibot.nl.intents import Intent
from taxibot.providers import litellm_provider
from taxibot.providers.base import GenerationOptions
from taxibot.providers.litellm_provider import LiteLLMProvider
from taxibot.settings import TaxiBotSettings


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _patch_acompletion(monkeypatch, fn) -> None:
    monkeypatch.setattr(litellm_provider, "acompletion", fn)


@pytest.mark.asyncio
async def test_slow_completion_times_out_and_resolves_to_error(monkeypatch) -> None:
    async def slow(**kwargs):
        await asyncio.sleep(5)
        return _completion("too late")

    _patch_acompletion(monkeypatch, slow)
    provider = LiteLLMProvider(model="test-model", timeout=0.05)

    with pytest.raises(GenerationError, match="timed out"):
        await provider.generate("system", "hello")

    resolver = IntentResolver(provider, settings=TaxiBotSettings(_env_file=None))
    try:
        result = await resolver.resolve("какой-то непонятный текст без совпадений")
    finally:
        await resolver.stop()

    assert result.intent is Intent.ERROR
    assert "7 927 883-55-66" in result.response


@pytest.mark.asyncio
async def test_upstream_exception_maps_to_generation_error(monkeypatch) -> None:
    async def boom(**kwargs):
        raise RuntimeError("rate limited")

    _patch_acompletion(monkeypatch, boom)
    provider = LiteLLMProvider(model="test-model")

    with pytest.raises(GenerationError) as excinfo:
        await provider.generate("system", "hello")

    assert excinfo.value.model == "test-model"
    assert isinstance(excinfo.value.__cause__, RuntimeError)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        SimpleNamespace(choices=[]),
        _completion("   "),
        _completion(None),
        object(),
    ],
)
async def test_malformed_or_empty_completion_is_rejected(monkeypatch, response) -> None:
    async def reply(**kwargs):
        return response

    _patch_acompletion(monkeypatch, reply)
    provider = LiteLLMProvider(model="test-model")

    with pytest.raises(GenerationError):
        await provider.generate("system", "hello")


@pytest.mark.asyncio
async def test_credentials_are_sent_per_call_only_when_set(monkeypatch) -> None:
    calls: list[dict] = []

    async def capture(**kwargs):
        calls.append(kwargs)
        return _completion("Ответ")

    _patch_acompletion(monkeypatch, capture)

    bare = LiteLLMProvider(model="test-model", api_key="", api_base=None)
    keyed = LiteLLMProvider(model="test-model", api_key="sk-test", api_base="http://localhost:4000")

    assert await bare.generate("system", "hello") == "Ответ"
    await keyed.generate("system", "hello", GenerationOptions(temperature=0.1, max_tokens=42))

    assert "api_key" not in calls[0]
    assert "api_base" not in calls[0]
    assert calls[1]["api_key"] == "sk-test"
    assert calls[1]["api_base"] == "http://localhost:4000"
    assert calls[1]["temperature"] == 0.1
    assert calls[1]["max_tokens"] == 42
    assert [m["role"] for m in calls[1]["messages"]] == ["system", "user"]
