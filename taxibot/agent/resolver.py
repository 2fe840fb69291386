"""End-to-end message resolution: commands, cache, intent policy, generation.

``IntentResolver.resolve`` never raises. Every failure ends up as
``Intent.ERROR`` with the apology text, so the chat transport can always
send something back.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from loguru import logger

from taxibot.agent.commands import (
    FALLBACK_TOP_INTENTS,
    LearnCommand,
    StatusReport,
    format_invalid_intent,
    format_learn_success,
    format_missing_fields,
    format_processing_error,
    format_status,
    generate_question_variations,
    is_status_command,
    parse_learn_command,
    validate_learn_command,
)
from taxibot.agent.keyboards import Keyboard, keyboard_for
from taxibot.cache.matching import find_similar_key
from taxibot.cache.response_cache import ResponseCache
from taxibot.errors import GenerationError, InvalidIntentError, MissingFieldsError
from taxibot.feedback.collector import FeedbackCollector
from taxibot.memory.example_store import ExampleStore
from taxibot.nl.intent_engine import IntentEngine
from taxibot.nl.intents import Intent
from taxibot.nl.normalizer import normalize
from taxibot.providers.base import GenerationOptions, GenerationProvider
from taxibot.settings import TaxiBotSettings, get_settings

SYSTEM_PROMPT = """
Ты бот-помощник автопарка такси "Центральный". Твоя задача - помогать водителям и клиентам решать их вопросы.

ВАЖНЫЕ ПРАВИЛА:
1. Отвечай на все вопросы о доступных машинах и ценах
2. Не отправляй в офис при вопросах о наличии машин
3. Давай конкретную информацию о ценах
4. Используй только указанные контакты
5. Будь краток и конкретен

ДОСТУПНЫЕ АВТОМОБИЛИ И ЦЕНЫ:
При вопросах о наличии и ценах ВСЕГДА отвечай следующей информацией:
У нас в парке более 200 машин. Доступные варианты:
1. Лада Веста 2021 г. (МКПП) - 1700₽/сутки
2. Лада Веста 2023 г. (МКПП) - 2000₽/сутки
3. Солярис 2020-21 г. (АКПП) - 2000₽/сутки
4. Джетта 2023 г. (АКПП) - 2300₽/сутки
5. Солярис 2024 г. (АКПП) - 2600₽/сутки

КОНТАКТЫ И ОФИС:
- Общие вопросы: тел. 7 927 883-55-66
- График: Пн-Пт 9:00-19:00, Сб-Вс 10:00-17:00
- Тех. поддержка: тел. 7 929 734-45-55 (24/7)
- Проблемы с авто: тел. 7 937 936-00-19 (9:00-18:00)"""

DEFAULT_RESPONSES: dict[Intent, str] = {
    Intent.FINE_CHECK: (
        "Посмотреть штрафы на автомобиле, Вы можете через приложение Элемент водитель "
        "или обратиться в офис (+79278835566)"
    ),
}


def apology_text(contact_phone: str) -> str:
    return (
        "Извините, произошла ошибка. Пожалуйста, попробуйте позже "
        f"или позвоните нам: {contact_phone}"
    )


_BARE_URL = re.compile(r"(?<!<)(https?://[^\s>]+)")
_BACKSLASH_RUN = re.compile(r"\\{2,}")
_ESCAPE = re.compile(r"\\(.)")


def format_response_text(text: str) -> str:
    """Wrap bare URLs in ``<…>`` and drop markdown escape backslashes."""
    text = _BARE_URL.sub(r"<\1>", text)
    text = _BACKSLASH_RUN.sub(r"\\", text)
    text = _ESCAPE.sub(r"\1", text)
    return text.strip()


@dataclass(frozen=True, slots=True)
class Resolution:
    """Reply for one incoming message."""

    intent: Intent
    response: str
    confidence: float | None = None
    keyboard: Keyboard = field(default_factory=tuple)
    interaction_id: str | None = None
    source: str = ""  # learn | status | cache | similar | default | generated | error


class IntentResolver:
    """
    Composes the normaliser, response cache, intent engine, example store,
    feedback collector and generation provider.

    All collaborators are injected; omitted ones are created fresh for this
    resolver, so instances never share state by accident.

    The cache sweeper starts with the first ``resolve`` call (or an explicit
    ``start()``) and runs until ``stop()``.
    """

    def __init__(
        self,
        generator: GenerationProvider,
        *,
        cache: ResponseCache | None = None,
        examples: ExampleStore | None = None,
        feedback: FeedbackCollector | None = None,
        engine: IntentEngine | None = None,
        settings: TaxiBotSettings | None = None,
        system_prompt: str = SYSTEM_PROMPT,
        default_responses: dict[Intent, str] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.generator = generator
        self.cache = cache if cache is not None else ResponseCache(
            ttl_seconds=self.settings.cache_ttl_seconds,
            check_period_seconds=self.settings.cache_check_period_seconds,
        )
        self.examples = examples if examples is not None else ExampleStore(
            max_examples=self.settings.max_examples,
            similarity_threshold=self.settings.similarity_threshold,
            max_similar=self.settings.max_similar_examples,
        )
        self.feedback_collector = feedback if feedback is not None else FeedbackCollector()
        self.engine = engine if engine is not None else IntentEngine(
            confidence_threshold=self.settings.confidence_threshold,
        )
        self.system_prompt = system_prompt
        self.default_responses = DEFAULT_RESPONSES if default_responses is None else default_responses
        self.generation_options = GenerationOptions(
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
        )
        self.error_response = apology_text(self.settings.contact_phone)

    @classmethod
    def from_settings(cls, settings: TaxiBotSettings | None = None) -> IntentResolver:
        """Build a resolver that generates through LiteLLM."""
        from taxibot.providers.litellm_provider import LiteLLMProvider

        settings = settings or get_settings()
        provider = LiteLLMProvider(
            model=settings.model,
            api_key=settings.api_key,
            api_base=settings.api_base,
            timeout=settings.generation_timeout,
        )
        return cls(provider, settings=settings)

    # ── lifecycle ───────────────────────────────────────────────────

    async def start(self) -> None:
        """Start the cache sweeper. ``resolve`` also starts it on first use."""
        self.cache.start()

    async def stop(self) -> None:
        await self.cache.stop()

    # ── public API ──────────────────────────────────────────────────

    async def resolve(self, message: str) -> Resolution:
        """Answer one chat message."""
        try:
            if not self.cache.running:
                self.cache.start()
            logger.info(f"Processing message ({len(message)} chars)")

            learn_cmd = parse_learn_command(message)
            if learn_cmd is not None:
                return await self._handle_learn(learn_cmd)

            if is_status_command(message):
                return await self._handle_status()

            normalized = normalize(message)

            cached = await self.cache.get(normalized)
            if cached is not None:
                logger.info(f"Cache hit (exact match): {normalized!r}")
                return self._reply(Intent.CACHED, cached, source="cache")

            match = find_similar_key(normalized, self.cache.keys())
            if match is not None:
                similar = await self.cache.get(match.key)
                if similar is not None:
                    logger.info(f"Cache hit ({match.kind}): {normalized!r} -> {match.key!r}")
                    await self._cache_quietly(normalized, similar)
                    return self._reply(Intent.CACHED, similar, source="similar")

            decision = await self.engine.detect(message, self.examples)
            logger.debug(f"Detected intent: {decision.intent.value} via {decision.source}")

            canned = self.default_responses.get(decision.intent)
            if canned:
                await self._cache_quietly(normalized, canned)
                return self._reply(decision.intent, canned, confidence=decision.confidence, source="default")

            return await self._generate(message, normalized, decision.intent)

        except GenerationError as exc:
            logger.warning(f"Generation failed: {exc}")
            return self._error_reply()
        except Exception as exc:
            logger.exception(f"Error in resolve: {exc}")
            return self._error_reply()

    async def feedback(self, interaction_id: str, was_helpful: bool) -> bool:
        """Rate an earlier answer. Unhelpful answers are unlearned and uncached."""
        try:
            interaction = await self.feedback_collector.record_explicit(interaction_id, was_helpful)
            if interaction is None:
                return False
            if not was_helpful:
                await self.examples.forget(interaction.message, interaction.intent)
                await self.cache.delete(interaction.message)
            return True
        except Exception as exc:
            logger.error(f"Error processing feedback for {interaction_id}: {exc}")
            return False

    async def status_report(self) -> StatusReport:
        stats = self.examples.stats()
        top = tuple(self.examples.intent_counts(3)) or FALLBACK_TOP_INTENTS
        return StatusReport(
            total_examples=stats.total,
            confirmed_examples=stats.confirmed,
            cache=self.cache.stats(),
            top_intents=top,
            helpful_ratio=self.feedback_collector.helpful_ratio(),
        )

    # ── internals ───────────────────────────────────────────────────

    async def _handle_learn(self, cmd: LearnCommand) -> Resolution:
        logger.info("Processing learning command")
        try:
            intent = validate_learn_command(cmd)
        except MissingFieldsError as exc:
            text = format_missing_fields(exc.question, exc.answer, exc.intent_tag)
            return self._reply(Intent.LEARNING, text, source="learn")
        except InvalidIntentError as exc:
            return self._reply(Intent.LEARNING, format_invalid_intent(exc.intent_tag), source="learn")

        try:
            await self.cache.set(cmd.question, cmd.answer)
            await self.examples.learn(cmd.question, intent, confirmed=True)

            variations = generate_question_variations(cmd.question)
            for variant in variations:
                await self.cache.set(variant, cmd.answer)
                await self.examples.learn(variant, intent, confirmed=True)
                logger.debug(f"Saved variation: {variant!r} ({intent.value})")
        except Exception as exc:
            logger.error(f"Learning command error: {exc}")
            return self._reply(Intent.LEARNING, format_processing_error(str(exc)), source="learn")

        text = format_learn_success(cmd.question, cmd.answer, intent, len(variations))
        return self._reply(Intent.LEARNING, text, source="learn")

    async def _handle_status(self) -> Resolution:
        try:
            report = await self.status_report()
            text = format_status(report)
        except Exception as exc:
            logger.error(f"Status check error: {exc}")
            text = f"❌ Ошибка при получении статистики: {exc}"
        return self._reply(Intent.STATUS, text, source="status")

    async def _generate(self, message: str, normalized: str, intent: Intent) -> Resolution:
        raw = await self.generator.generate(self.system_prompt, message, self.generation_options)
        response = format_response_text(raw) or self.error_response

        # Post-generation bookkeeping must not cost the user the answer.
        await self._cache_quietly(normalized, response)
        if intent is not Intent.ERROR:
            await self.examples.learn(message, intent, confirmed=True)
        interaction_id: str | None = None
        try:
            interaction_id = await self.feedback_collector.record_implicit(message, response, intent)
        except Exception as exc:
            logger.error(f"Failed to record interaction: {exc}")

        logger.info(f"Generated response for intent {intent.value}")
        return self._reply(
            intent,
            response,
            confidence=self.settings.generated_confidence,
            interaction_id=interaction_id,
            source="generated",
        )

    async def _cache_quietly(self, key: str, value: str) -> None:
        try:
            await self.cache.set(key, value)
        except Exception as exc:
            logger.error(f"Cache write failed for {key!r}: {exc}")

    def _reply(
        self,
        intent: Intent,
        response: str,
        *,
        confidence: float | None = None,
        interaction_id: str | None = None,
        source: str = "",
    ) -> Resolution:
        return Resolution(
            intent=intent,
            response=response,
            confidence=confidence,
            keyboard=keyboard_for(intent),
            interaction_id=interaction_id,
            source=source,
        )

    def _error_reply(self) -> Resolution:
        return self._reply(Intent.ERROR, self.error_response, source="error")
