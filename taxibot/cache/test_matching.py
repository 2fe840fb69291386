from taxibot.cache.matching import find_similar_key
from taxibot.nl.normalizer import normalize


def test_exact_match_wins_over_category() -> None:
    keys = ["штрафы за парковку", "посмотреть штрафы"]

    match = find_similar_key(normalize("как посмотреть штраф?"), keys)

    assert match is not None
    assert (match.key, match.kind) == ("посмотреть штрафы", "exact")


def test_category_match_for_fines() -> None:
    match = find_similar_key(normalize("где посмотреть штраф"), ["штрафы"])

    assert match is not None
    assert match.kind == "category"
    assert match.category == "штраф"


def test_category_requires_same_topic_in_key() -> None:
    match = find_similar_key("оплата картой", ["машины в наличии"])

    assert match is None


def test_partial_match_on_long_shared_word() -> None:
    match = find_similar_key("режим работы офиса", ["когда открыт офис", "режим работы"])

    assert match is not None
    assert (match.key, match.kind) == ("режим работы", "partial")


def test_short_words_do_not_partially_match() -> None:
    assert find_similar_key("где сдать авто", ["где офис"]) is None


def test_empty_inputs_find_nothing() -> None:
    assert find_similar_key("", ["офис"]) is None
    assert find_similar_key("офис", []) is None


def test_four_letter_words_are_long_enough_for_partial_match() -> None:
    match = find_similar_key("офис", ["когда открыт офис"])

    assert match is not None
    assert match.kind == "partial"
    assert find_similar_key("дом", ["мой дом"]) is None
