"""Intent vocabulary and the static rule table.

The rule table is plain data (``DEFAULT_RULE_TABLE``) compiled into
:class:`IntentRule` objects by :func:`load_rules`, so the scorer never
dispatches on intents in code and runtime rule updates work the same way for
every intent.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable


class Intent(str, Enum):
    """Closed set of intents. Declaration order is the score tie-break order."""

    PAYMENT_METHODS = "payment_methods"        # способы оплаты аренды
    PAYMENT_SCHEDULE = "payment_schedule"      # график списаний
    CAR_RETURN = "car_return"                  # возврат автомобиля
    PENALTIES = "penalties"                    # штрафы и санкции парка
    MAINTENANCE = "maintenance"                # техобслуживание
    RENTAL_RULES = "rental_rules"              # общие правила аренды
    OFFICE_HOURS = "office_hours"              # часы работы офиса
    GEOGRAPHICAL_RULES = "geographical_rules"  # зона передвижения
    SICK_LEAVE = "sick_leave"                  # больничный
    REPAIR_RULES = "repair_rules"              # правила ремонта
    ACCIDENT = "accident"                      # действия при ДТП
    CAR_PROBLEM = "car_problem"                # неисправности
    BALANCE_TOPUP = "balance_topup"            # пополнение баланса
    AVAILABLE_CARS = "available_cars"          # машины в наличии
    LEARNING = "learning"                      # команда /learn
    STATUS = "status"                          # команда /status
    CACHED = "cached"                          # ответ из кэша
    SERVICE = "service"                        # запись на сервис
    CAR_QUESTION = "car_question"              # вопросы по автомобилю
    DTP = "dtp"                                # ДТП (альтернативное)
    FINE_CHECK = "fine_check"                  # проверка штрафов ГИБДД
    LONG_DISTANCE = "long_distance"            # дальние поездки
    ERROR = "error"                            # ошибка обработки

    def __str__(self) -> str:
        return self.value


# Meta intents describe how a reply was produced, not what the user asked.
META_INTENTS: frozenset[Intent] = frozenset({
    Intent.LEARNING, Intent.STATUS, Intent.CACHED, Intent.ERROR,
})


def parse_intent(tag: str) -> Intent | None:
    """Return the :class:`Intent` for *tag*, or ``None`` if it is not in the set."""
    try:
        return Intent(tag.strip())
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class IntentScore:
    intent: Intent
    confidence: float


@dataclass(frozen=True, slots=True)
class IntentRule:
    """Keywords, regex patterns and context triggers for one intent."""

    keywords: frozenset[str] = frozenset()
    patterns: tuple[re.Pattern[str], ...] = ()
    context_triggers: frozenset[str] = frozenset()

    def merge(
        self,
        keywords: Iterable[str] | None = None,
        patterns: Iterable[str | re.Pattern[str]] | None = None,
        context_triggers: Iterable[str] | None = None,
    ) -> IntentRule:
        """Return a rule with the given values unioned in (duplicates collapse)."""
        merged_patterns = list(self.patterns)
        seen = {p.pattern for p in merged_patterns}
        for p in patterns or ():
            compiled = compile_pattern(p)
            if compiled.pattern not in seen:
                seen.add(compiled.pattern)
                merged_patterns.append(compiled)
        return IntentRule(
            keywords=self.keywords | {k.lower() for k in keywords or ()},
            patterns=tuple(merged_patterns),
            context_triggers=self.context_triggers | {t.lower() for t in context_triggers or ()},
        )


def compile_pattern(pattern: str | re.Pattern[str]) -> re.Pattern[str]:
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern, re.IGNORECASE)


# ---------------------------------------------------------------------------
# Static rule table
# ---------------------------------------------------------------------------

DEFAULT_RULE_TABLE: dict[Intent, dict[str, list[str]]] = {
    Intent.PAYMENT_METHODS: {
        "keywords": ["оплата", "платеж", "карта", "наличные", "перевод", "способ", "деньги", "счет", "банк"],
        "patterns": [r"как (оплатить|заплатить)", r"способы? оплаты", r"чем (платить|оплатить)",
                     r"принимае(те|м) (оплату|карты)"],
        "context_triggers": ["платеж", "транзакция", "перевод"],
    },
    Intent.PAYMENT_SCHEDULE: {
        "keywords": ["график", "расписание", "списание", "время", "дата", "платеж", "периодичность",
                     "регулярность"],
        "patterns": [r"когда (списывают|платить)", r"график (оплаты|платежей)", r"частота списаний",
                     r"периодичность платежей"],
        "context_triggers": ["число", "месяц", "период", "дата"],
    },
    Intent.CAR_RETURN: {
        "keywords": ["вернуть", "возврат", "сдать", "сдача", "завершить", "закончить", "аренда", "прекратить"],
        "patterns": [r"как (вернуть|сдать) (машину|автомобиль)", r"правила (возврата|сдачи)",
                     r"где (вернуть|сдать)", r"когда (вернуть|сдать)"],
        "context_triggers": ["место", "время", "адрес", "пункт"],
    },
    Intent.PENALTIES: {
        "keywords": ["штраф", "нарушение", "пени", "санкции", "наказание", "взыскание", "задолженность"],
        "patterns": [r"получил штраф", r"есть ли штрафы", r"проверить (штрафы|нарушения)", r"что будет (за|если)"],
        "context_triggers": ["нарушение", "правила", "оплата"],
    },
    Intent.MAINTENANCE: {
        "keywords": ["то", "обслуживание", "проверка", "диагностика", "осмотр", "техосмотр", "сервис"],
        "patterns": [r"техническое обслуживание", r"когда (то|обслуживание)", r"нужно ли (то|обслуживание)",
                     r"правила обслуживания"],
        "context_triggers": ["масло", "фильтр", "колеса", "тормоза"],
    },
    Intent.RENTAL_RULES: {
        "keywords": ["правила", "условия", "требования", "ограничения", "запрет", "разрешение", "можно", "нельзя"],
        "patterns": [r"какие правила", r"что (можно|нельзя)", r"правила (использования|аренды)",
                     r"условия (аренды|использования)"],
        "context_triggers": ["документ", "договор", "соглашение"],
    },
    Intent.OFFICE_HOURS: {
        "keywords": ["график", "время", "часы", "работа", "открыто", "закрыто", "перерыв", "обед"],
        "patterns": [r"когда (работает|открыто)", r"часы работы", r"время работы", r"график работы"],
        "context_triggers": ["офис", "филиал", "отделение"],
    },
    Intent.GEOGRAPHICAL_RULES: {
        "keywords": ["зона", "территория", "город", "область", "регион", "граница", "выезд", "передвижение"],
        "patterns": [r"где можно ездить", r"зона (использования|поездок)", r"можно ли выехать",
                     r"территория (использования|обслуживания)"],
        "context_triggers": ["карта", "маршрут", "расстояние"],
    },
    Intent.SICK_LEAVE: {
        "keywords": ["больничный", "болезнь", "заболел", "врач", "недомогание", "плохо", "здоровье"],
        "patterns": [r"как оформить больничный", r"заболел, что делать", r"если заболею", r"плохо себя чувствую"],
        "context_triggers": ["справка", "документ", "медицинский"],
    },
    Intent.REPAIR_RULES: {
        "keywords": ["ремонт", "поломка", "починка", "сервис", "мастерская", "запчасти", "детали"],
        "patterns": [r"как (починить|отремонтировать)", r"правила ремонта", r"где (чинить|ремонтировать)",
                     r"поломалась машина"],
        "context_triggers": ["сервис", "мастер", "механик"],
    },
    Intent.ACCIDENT: {
        "keywords": ["дтп", "авария", "столкновение", "происшествие", "удар", "повреждение", "царапина"],
        "patterns": [r"что делать при дтп", r"попал в аварию", r"случилось дтп", r"пдд нарушение"],
        "context_triggers": ["страховка", "полиция", "гибдд"],
    },
    Intent.CAR_PROBLEM: {
        "keywords": ["проблема", "неисправность", "поломка", "сломалась", "не работает", "не заводится"],
        "patterns": [r"машина сломалась", r"проблема с автомобилем", r"не работает", r"что делать если"],
        "context_triggers": ["стук", "шум", "вибрация", "течь"],
    },
    Intent.BALANCE_TOPUP: {
        "keywords": ["пополнить", "баланс", "деньги", "счет", "оплата", "перевод", "внести"],
        "patterns": [r"как пополнить", r"пополнение баланса", r"внести деньги", r"способы пополнения"],
        "context_triggers": ["карта", "банк", "терминал"],
    },
    Intent.AVAILABLE_CARS: {
        "keywords": ["машины", "автомобили", "доступно", "свободно", "варианты", "выбор", "модели"],
        "patterns": [r"какие машины есть", r"доступные автомобили", r"что есть в наличии", r"свободные машины"],
        "context_triggers": ["цена", "стоимость", "тариф"],
    },
    Intent.SERVICE: {
        "keywords": ["сервис", "обслуживание", "ремонт", "то", "диагностика", "проверка", "осмотр"],
        "patterns": [r"записаться на сервис", r"нужно обслуживание", r"проверить машину", r"записать на то"],
        "context_triggers": ["механик", "мастер", "станция"],
    },
    Intent.CAR_QUESTION: {
        "keywords": ["вопрос", "машина", "автомобиль", "характеристики", "особенности", "комплектация",
                     "информация"],
        "patterns": [r"расскажите про (машину|автомобиль)", r"какая машина", r"что за автомобиль",
                     r"характеристики авто"],
        "context_triggers": ["модель", "марка", "год", "двигатель"],
    },
    Intent.DTP: {
        "keywords": ["дтп", "авария", "столкновение", "удар", "гибдд", "страховка", "происшествие", "повреждение"],
        "patterns": [r"попал в (дтп|аварию)", r"меня (стукнули|подбили)", r"(случилось|произошло) дтп",
                     r"что делать при (дтп|аварии)"],
        "context_triggers": ["царапина", "вмятина", "разбил", "помял"],
    },
    Intent.FINE_CHECK: {
        "keywords": ["штраф", "нарушение", "проверка", "гибдд", "камера", "пдд", "оплата", "квитанция"],
        "patterns": [r"проверить штрафы?", r"есть ли штрафы?", r"как (оплатить|проверить) штраф",
                     r"где посмотреть штрафы"],
        "context_triggers": ["постановление", "нарушение", "камера"],
    },
    Intent.LONG_DISTANCE: {
        "keywords": ["поездка", "дальняя", "межгород", "расстояние", "километраж", "маршрут", "путь"],
        "patterns": [r"дальняя поездка", r"выезд (в|за) город", r"межгород(няя|нее)", r"поездка в другой город"],
        "context_triggers": ["километр", "регион", "область", "граница"],
    },
}


def load_rules(
    table: dict[Intent, dict[str, list[str]]] | None = None,
) -> dict[Intent, IntentRule]:
    """Compile a rule table (defaults to ``DEFAULT_RULE_TABLE``).

    Meta intents are skipped even if present in *table*.
    """
    source = DEFAULT_RULE_TABLE if table is None else table
    rules: dict[Intent, IntentRule] = {}
    for intent, spec in source.items():
        intent = Intent(intent)
        if intent in META_INTENTS:
            continue
        rules[intent] = IntentRule().merge(
            keywords=spec.get("keywords", ()),
            patterns=spec.get("patterns", ()),
            context_triggers=spec.get("context_triggers", ()),
        )
    return rules


@dataclass(frozen=True, slots=True)
class IntentDecision:
    """Outcome of the resolution policy for one message."""

    intent: Intent
    confidence: float
    source: str  # "rules" | "examples" | "unresolved"
    scores: tuple[IntentScore, ...] = field(default_factory=tuple)
