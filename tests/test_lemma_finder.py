import pytest

from sitesearch.lemmas.lemma_finder import LemmaFinder
from sitesearch.lemmas.morphology import PymorphyAnalyzer


def test_split_words_keeps_only_cyrillic_runs():
    words = LemmaFinder.split_words("Коты, 42 cats & Собаки-друзья!")

    assert words == ["коты", "собаки", "друзья"]


def test_collect_lemmas_counts_normal_forms(lemma_finder):
    lemmas = lemma_finder.collect_lemmas("Коты и кота видели собаки в саду")

    assert lemmas == {"кот": 2, "видели": 1, "собака": 1, "саду": 1}


def test_collect_lemmas_skips_words_the_analyzer_rejects(analyzer):
    analyzer.broken.add("шум")
    finder = LemmaFinder(analyzer)

    assert finder.collect_lemmas("шум мыши") == {"мышь": 1}


def test_collect_lemmas_of_empty_or_latin_text(lemma_finder):
    assert lemma_finder.collect_lemmas("") == {}
    assert lemma_finder.collect_lemmas("only latin words 123") == {}


def test_strip_markup_returns_visible_text(lemma_finder):
    html = "<html><head><title>Заголовок</title><script>var x;</script></head><body><p>Текст</p></body></html>"

    assert lemma_finder.strip_markup(html) == "Заголовок Текст"


@pytest.fixture(scope="module")
def russian_finder():
    return LemmaFinder(PymorphyAnalyzer())


def test_pymorphy_reduces_russian_words(russian_finder):
    assert russian_finder.normal_form("лошади") == "лошадь"
    assert russian_finder.normal_form("и") is None


def test_pymorphy_counts_repeated_lemma(russian_finder):
    text = (
        "Повторное появление леопарда в Осетии позволяет предположить, "
        "что леопард постоянно обитает в некоторых районах Северного Кавказа."
    )

    lemmas = russian_finder.collect_lemmas(text)

    assert lemmas["леопард"] == 2
    assert "в" not in lemmas
