from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Protocol

import pymorphy3


# interjections, prepositions and conjunctions carry no search value
FUNCTION_WORD_TAGS = frozenset({"INTJ", "PREP", "CONJ"})


@dataclass(frozen=True)
class MorphAnalysis:
    normal_forms: List[str] = field(default_factory=list)
    is_function_word: bool = False


class MorphologyAnalyzer(Protocol):
    def analyze(self, word: str) -> MorphAnalysis:
        ...


class PymorphyAnalyzer:
    """Russian morphology backed by pymorphy3 and its OpenCorpora dictionaries."""

    def __init__(self, cache_size: int = 100_000):
        self._morph = pymorphy3.MorphAnalyzer(lang="ru")
        self.analyze = lru_cache(maxsize=cache_size)(self._analyze)

    def _analyze(self, word: str) -> MorphAnalysis:
        parses = self._morph.parse(word)
        if not parses:
            return MorphAnalysis()

        is_function_word = any(p.tag.POS in FUNCTION_WORD_TAGS for p in parses)

        normal_forms: List[str] = []
        for p in parses:
            if p.normal_form and p.normal_form not in normal_forms:
                normal_forms.append(p.normal_form)

        return MorphAnalysis(normal_forms=normal_forms, is_function_word=is_function_word)


@lru_cache(maxsize=1)
def default_analyzer() -> PymorphyAnalyzer:
    # dictionary load takes a noticeable moment; share one instance per process
    return PymorphyAnalyzer()
