import asyncio

import pytest

from taxibot.agent.resolver import IntentResolver, format_response_text
from taxibot.errors import GenerationError
from taxibot.nl.intent_engine import IntentEngine
from taxibot.nl.intents import Intent, IntentRule
from taxibot.providers.base import GenerationOptions, GenerationProvider
from taxibot.settings import TaxiBotSettings

UNMATCHED = "какой-то непонятный текст без совпадений"
TEACH_OFFICE = "/learn\nQ: Где офис?\nA: Строителей 100А\nT: available_cars"


class FakeGenerator(GenerationProvider):
    def __init__(self, reply: str = "Ответ оператора", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, GenerationOptions | None]] = []

    async def generate(
        self,
        system_prompt: str,
        user_message: str,
        options: GenerationOptions | None = None,
    ) -> str:
        self.calls.append((user_message, options))
        if self.error is not None:
            raise self.error
        return self.reply


def _settings() -> TaxiBotSettings:
    return TaxiBotSettings(_env_file=None)


def _single_rule_engine(intent: Intent, word: str) -> IntentEngine:
    rule = IntentRule().merge(keywords=[word], patterns=[word], context_triggers=[word])
    return IntentEngine(rules={intent: rule})


def _resolver(generator: GenerationProvider, **kwargs) -> IntentResolver:
    return IntentResolver(generator, settings=_settings(), **kwargs)


@pytest.mark.asyncio
async def test_taught_answer_is_served_from_cache() -> None:
    generator = FakeGenerator()
    resolver = _resolver(generator)

    taught = await resolver.resolve(TEACH_OFFICE)
    answer = await resolver.resolve("Где офис?")

    assert taught.intent is Intent.LEARNING
    assert "Добавлено 33 вариаций" in taught.response
    assert answer.intent is Intent.CACHED
    assert answer.response == "Строителей 100А"
    assert generator.calls == []


@pytest.mark.asyncio
async def test_taught_variation_is_served_from_cache() -> None:
    resolver = _resolver(FakeGenerator())
    await resolver.resolve(TEACH_OFFICE)

    answer = await resolver.resolve("Подскажите офис")

    assert answer.intent is Intent.CACHED
    assert answer.response == "Строителей 100А"


@pytest.mark.asyncio
async def test_teach_with_invalid_intent_changes_nothing() -> None:
    resolver = _resolver(FakeGenerator())

    result = await resolver.resolve("/learn\nQ: Где офис?\nA: Строителей 100А\nT: foo")

    assert result.intent is Intent.LEARNING
    assert 'неправильный тип интента "foo"' in result.response
    assert len(resolver.cache) == 0
    assert len(resolver.examples) == 0


@pytest.mark.asyncio
async def test_teach_with_missing_fields_lists_received_values() -> None:
    resolver = _resolver(FakeGenerator())

    result = await resolver.resolve("/learn\nQ: Где офис?\nT: office_hours")

    assert result.intent is Intent.LEARNING
    assert "Answer: отсутствует" in result.response
    assert "Question: Где офис?" in result.response
    assert len(resolver.cache) == 0


@pytest.mark.asyncio
async def test_fuzzy_cache_hit_is_written_back_under_new_key() -> None:
    generator = FakeGenerator()
    resolver = _resolver(generator)
    await resolver.cache.set("штрафы", "Смотрите в приложении")

    result = await resolver.resolve("где посмотреть штраф")

    assert result.intent is Intent.CACHED
    assert result.response == "Смотрите в приложении"
    assert await resolver.cache.get("посмотреть штрафы") == "Смотрите в приложении"
    assert generator.calls == []


@pytest.mark.asyncio
async def test_failed_generation_returns_apology() -> None:
    generator = FakeGenerator(error=GenerationError("upstream down"))
    resolver = _resolver(generator)

    result = await resolver.resolve(UNMATCHED)

    assert result.intent is Intent.ERROR
    assert "7 927 883-55-66" in result.response
    assert len(generator.calls) == 1
    assert len(resolver.cache) == 0
    assert resolver.feedback_collector.get_all() == []


@pytest.mark.asyncio
async def test_unexpected_provider_exception_is_contained() -> None:
    resolver = _resolver(FakeGenerator(error=RuntimeError("boom")))

    result = await resolver.resolve(UNMATCHED)

    assert result.intent is Intent.ERROR
    assert "7 927 883-55-66" in result.response


@pytest.mark.asyncio
async def test_confident_intent_is_generated_cached_and_learned() -> None:
    generator = FakeGenerator(reply="Офис на карте: https://example.ru/map")
    resolver = _resolver(generator, engine=_single_rule_engine(Intent.OFFICE_HOURS, "офис"))

    first = await resolver.resolve("Где офис?")
    second = await resolver.resolve("где офис")

    assert first.intent is Intent.OFFICE_HOURS
    assert first.confidence == pytest.approx(0.9)
    assert first.response == "Офис на карте: <https://example.ru/map>"
    assert first.interaction_id is not None
    assert second.intent is Intent.CACHED
    assert second.response == first.response
    assert len(generator.calls) == 1
    _, options = generator.calls[0]
    assert options == GenerationOptions(temperature=0.3, max_tokens=150)
    assert {e.intent for e in resolver.examples.examples()} == {Intent.OFFICE_HOURS}


@pytest.mark.asyncio
async def test_unresolved_message_is_generated_but_not_learned() -> None:
    resolver = _resolver(FakeGenerator(reply="Уточните вопрос"))

    result = await resolver.resolve(UNMATCHED)

    assert result.intent is Intent.ERROR
    assert result.response == "Уточните вопрос"
    assert result.interaction_id is not None
    assert len(resolver.examples) == 0


@pytest.mark.asyncio
async def test_fine_check_uses_canned_response_without_generation() -> None:
    generator = FakeGenerator()
    resolver = _resolver(generator, engine=_single_rule_engine(Intent.FINE_CHECK, "штраф"))

    result = await resolver.resolve("проверить штраф")

    assert result.intent is Intent.FINE_CHECK
    assert "Элемент водитель" in result.response
    assert [b.text for b in result.keyboard[0]] == ["Android", "iPhone"]
    assert generator.calls == []
    assert await resolver.cache.get("проверить штрафы") == result.response


@pytest.mark.asyncio
async def test_status_without_examples_reports_zero_accuracy() -> None:
    resolver = _resolver(FakeGenerator())

    result = await resolver.resolve("/status")

    assert result.intent is Intent.STATUS
    assert "Точность: 0.0%" in result.response
    assert "- available_cars: 30 примеров" in result.response


@pytest.mark.asyncio
async def test_status_after_teaching_counts_examples() -> None:
    resolver = _resolver(FakeGenerator())
    await resolver.resolve(TEACH_OFFICE)

    result = await resolver.resolve("/status")

    assert "Всего примеров: 34" in result.response
    assert "Точность: 100.0%" in result.response
    assert "- available_cars: 34 примеров" in result.response


@pytest.mark.asyncio
async def test_negative_feedback_unlearns_and_uncaches() -> None:
    resolver = _resolver(FakeGenerator(), engine=_single_rule_engine(Intent.OFFICE_HOURS, "офис"))
    result = await resolver.resolve("Где офис?")

    accepted = await resolver.feedback(result.interaction_id, False)

    assert accepted
    assert len(resolver.examples) == 0
    assert await resolver.cache.get("Где офис?") is None
    assert resolver.feedback_collector.get(result.interaction_id).was_helpful is False


@pytest.mark.asyncio
async def test_feedback_for_unknown_interaction_is_rejected() -> None:
    resolver = _resolver(FakeGenerator())

    assert not await resolver.feedback("missing", True)


@pytest.mark.asyncio
async def test_concurrent_resolves_all_complete() -> None:
    resolver = _resolver(FakeGenerator(reply="ok"))
    messages = [f"{UNMATCHED} {i}" for i in range(20)]

    results = await asyncio.gather(*(resolver.resolve(m) for m in messages))

    # later messages may be answered from the fuzzy cache instead of generation
    assert [r.response for r in results] == ["ok"] * 20
    assert {r.intent for r in results} <= {Intent.ERROR, Intent.CACHED}
    assert len(resolver.feedback_collector.get_all()) >= 1


def test_format_response_text_wraps_urls_and_drops_escapes() -> None:
    assert format_response_text("  см. https://a.ru и \\*важно\\*  ") == "см. <https://a.ru> и *важно*"
    assert format_response_text("<https://a.ru>") == "<https://a.ru>"
    assert format_response_text("a\\\\\\-b") == "a-b"


@pytest.mark.asyncio
async def test_first_resolve_starts_cache_sweeper() -> None:
    resolver = _resolver(FakeGenerator())
    assert not resolver.cache.running

    await resolver.resolve("/status")

    assert resolver.cache.running
    await resolver.stop()
    assert not resolver.cache.running


@pytest.mark.asyncio
async def test_status_reports_helpful_ratio() -> None:
    resolver = _resolver(FakeGenerator(), engine=_single_rule_engine(Intent.OFFICE_HOURS, "офис"))
    before = await resolver.resolve("/status")
    answered = await resolver.resolve("Где офис?")
    await resolver.feedback(answered.interaction_id, True)

    after = await resolver.resolve("/status")
    await resolver.stop()

    assert "Полезных ответов: нет оценок" in before.response
    assert "Полезных ответов: 100.0%" in after.response
