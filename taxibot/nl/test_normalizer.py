import pytest

from taxibot.nl.normalizer import normalize, tokenize


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("  Где   ОФИС?  ", "офис"),
        ("Как можно посмотреть штраф?!", "посмотреть штрафы"),
        ("мне нужно оплатить аренду...", "оплатить аренду"),
        ("Штрафы", "штрафы"),
        ("проверка штрафов", "проверка штрафов"),
        ("", ""),
        ("?!", ""),
    ],
)
def test_normalize_examples(raw: str, expected: str) -> None:
    assert normalize(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "Где офис?",
        "как где можно штраф ?",
        "Хочу   узнать про машины !",
        "ли   как",
        "надо мне надо штраф.",
    ],
)
def test_normalize_is_idempotent(raw: str) -> None:
    once = normalize(raw)
    assert normalize(once) == once


def test_normalize_keeps_filler_words_in_the_middle() -> None:
    assert normalize("подскажите где офис") == "подскажите где офис"


def test_tokenize_splits_on_whitespace_runs_and_keeps_duplicates() -> None:
    assert tokenize("штраф  штраф\tоплата") == ["штраф", "штраф", "оплата"]
    assert tokenize("") == []
