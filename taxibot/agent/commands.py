"""Operator commands typed into the chat: ``/learn`` and ``/status``.

``/learn`` teaches the bot a question/answer pair::

    /learn
    Q: Где офис?
    A: Строителей 100А
       (answer lines continue until the next prefixed line)
    T: available_cars
"""

from __future__ import annotations

from dataclasses import dataclass, field

from taxibot.cache.response_cache import CacheStats
from taxibot.errors import InvalidIntentError, MissingFieldsError
from taxibot.nl.intents import Intent, parse_intent
from taxibot.nl.normalizer import normalize

LEARN_MARKER = "/learn"
STATUS_COMMAND = "/status"


@dataclass(frozen=True, slots=True)
class LearnCommand:
    question: str = ""
    answer: str = ""
    intent_tag: str = ""


def parse_learn_command(message: str) -> LearnCommand | None:
    """Extract Q/A/T fields after the ``/learn`` marker; ``None`` without a marker."""
    start = message.find(LEARN_MARKER)
    if start == -1:
        return None

    question = answer = intent_tag = ""
    collecting_answer = False
    for line in message[start:].split("\n"):
        stripped = line.strip()
        if stripped.startswith("Q:"):
            question = stripped[2:].strip()
            collecting_answer = False
        elif stripped.startswith("A:"):
            answer = stripped[2:].strip()
            collecting_answer = True
        elif stripped.startswith("T:"):
            intent_tag = stripped[2:].strip()
            collecting_answer = False
        elif collecting_answer and stripped:
            answer = f"{answer}\n{stripped}" if answer else stripped
    return LearnCommand(question=question, answer=answer, intent_tag=intent_tag)


def validate_learn_command(cmd: LearnCommand) -> Intent:
    """Return the taught intent or raise a :class:`TeachValidationError`."""
    if not cmd.question or not cmd.answer or not cmd.intent_tag:
        raise MissingFieldsError(cmd.question, cmd.answer, cmd.intent_tag)
    intent = parse_intent(cmd.intent_tag)
    if intent is None:
        raise InvalidIntentError(cmd.intent_tag)
    return intent


def is_status_command(message: str) -> bool:
    return message.strip().lower() == STATUS_COMMAND


# ---------------------------------------------------------------------------
# Question variations
# ---------------------------------------------------------------------------

# First matching type wins.
QUESTION_TYPES: dict[str, tuple[str, ...]] = {
    "штрафы": ("штраф", "штрафы", "штрафов"),
    "машины": ("машин", "авто", "автомобил"),
    "оплата": ("оплат", "плат", "платеж"),
    "работа": ("график", "режим", "работ"),
    "проблемы": ("проблем", "поломк", "сломал"),
}

TYPE_VARIATIONS: dict[str, tuple[str, ...]] = {
    "штрафы": (
        "штрафы", "штраф", "посмотреть штрафы", "проверить штрафы", "узнать штрафы", "где штрафы",
        "как посмотреть штрафы", "где посмотреть штрафы", "можно посмотреть штрафы",
        "хочу посмотреть штрафы", "нужно посмотреть штрафы", "проверка штрафов",
    ),
    "машины": (
        "машины в наличии", "доступные машины", "свободные автомобили", "какие машины есть",
        "автомобили в парке", "машины в парке", "есть ли машины",
    ),
    "оплата": (
        "способы оплаты", "как оплатить", "варианты оплаты", "принимаете ли карты",
        "можно ли картой", "условия оплаты",
    ),
}

QUESTION_PREFIXES: tuple[str, ...] = (
    "как", "где", "можно ли", "хочу", "нужно", "подскажите", "скажите", "расскажите",
    "объясните", "помогите", "надо", "мне нужно", "я хочу", "хотел бы", "могу ли я",
)


def detect_question_type(base_form: str) -> str | None:
    for qtype, keywords in QUESTION_TYPES.items():
        if any(kw in base_form for kw in keywords):
            return qtype
    return None


def generate_question_variations(question: str) -> list[str]:
    """Phrasings of *question* worth caching alongside it (ordered, unique)."""
    base = normalize(question)
    variations: dict[str, None] = dict.fromkeys([question, base, f"{base}?"])

    qtype = detect_question_type(base)
    if qtype is not None:
        variations.update(dict.fromkeys(TYPE_VARIATIONS.get(qtype, ())))

    for prefix in QUESTION_PREFIXES:
        variations[f"{prefix} {base}"] = None
        variations[f"{prefix} {base}?"] = None
    return list(variations)


# ---------------------------------------------------------------------------
# Reply texts
# ---------------------------------------------------------------------------


def format_learn_success(question: str, answer: str, intent: Intent, variations_count: int) -> str:
    return (
        "✅ Пример успешно добавлен!\n\n"
        "📝 Детали:\n"
        f"Вопрос: {question}\n"
        f"Ответ: {answer}\n"
        f"Тип: {intent.value}\n\n"
        f"🔄 Добавлено {variations_count} вариаций вопроса для лучшего распознавания.\n"
        "Теперь я буду использовать эту информацию при ответах на похожие вопросы."
    )


def format_missing_fields(question: str, answer: str, intent_tag: str) -> str:
    return (
        "❌ Ошибка: неправильный формат. Используйте:\n"
        f"{LEARN_MARKER}\n"
        "Q: ваш вопрос\n"
        "A: правильный ответ\n"
        "T: тип_интента\n\n"
        "Полученные значения:\n"
        f"Question: {question or 'отсутствует'}\n"
        f"Answer: {answer or 'отсутствует'}\n"
        f"Type: {intent_tag or 'отсутствует'}"
    )


def format_invalid_intent(intent_tag: str) -> str:
    return (
        f'❌ Ошибка: неправильный тип интента "{intent_tag}".\n'
        "Используйте один из следующих типов:\n"
        "- fine_check (штрафы)\n"
        "- available_cars (доступные машины)\n"
        "- payment_methods (способы оплаты)\n"
        "- car_problem (проблемы с машиной)\n"
        "- dtp (ДТП)\n"
        "и другие..."
    )


def format_processing_error(error: str) -> str:
    return (
        f"❌ Ошибка при обработке команды обучения: {error}\n"
        "Проверьте формат и попробуйте снова."
    )


# Fixed top-3 summary for /status; live intent counts replace it once examples exist.
FALLBACK_TOP_INTENTS: tuple[tuple[Intent, int], ...] = (
    (Intent.AVAILABLE_CARS, 30),
    (Intent.PAYMENT_METHODS, 25),
    (Intent.MAINTENANCE, 20),
)


@dataclass(frozen=True, slots=True)
class StatusReport:
    total_examples: int
    confirmed_examples: int
    cache: CacheStats
    top_intents: tuple[tuple[Intent, int], ...] = field(default_factory=tuple)
    helpful_ratio: float | None = None

    @property
    def accuracy_rate(self) -> float:
        return self.confirmed_examples / max(self.total_examples, 1)


def format_status(report: StatusReport) -> str:
    top = "\n".join(f"- {intent.value}: {count} примеров" for intent, count in report.top_intents)
    helpful = "нет оценок" if report.helpful_ratio is None else f"{report.helpful_ratio * 100:.1f}%"
    return (
        "📊 Статистика обучения:\n\n"
        f"Всего примеров: {report.total_examples}\n"
        f"Успешных ответов: {report.confirmed_examples}\n"
        f"Точность: {report.accuracy_rate * 100:.1f}%\n"
        f"Полезных ответов: {helpful}\n\n"
        "💾 Статистика кэша:\n"
        f"Записей: {report.cache.count}\n"
        f"Попаданий: {report.cache.hits}\n"
        f"Промахов: {report.cache.misses}\n\n"
        "🔝 Топ интентов:\n"
        f"{top}"
    )
