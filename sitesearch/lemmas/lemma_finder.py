from __future__ import annotations

import re
from collections import Counter
from typing import Dict, List, Optional

from loguru import logger

from sitesearch.lemmas.morphology import MorphologyAnalyzer, default_analyzer
from sitesearch.parsing.html_extractor import extract_text


_NON_CYRILLIC = re.compile(r"[^а-яё\s]")


class LemmaFinder:
    """Reduces text to a frequency map of dictionary forms.

    Tokens are runs of Cyrillic letters; everything else separates them.
    Function words (interjections, prepositions, conjunctions) and tokens the
    analyzer cannot reduce are dropped.
    """

    def __init__(self, analyzer: Optional[MorphologyAnalyzer] = None):
        self.analyzer = analyzer if analyzer is not None else default_analyzer()

    @staticmethod
    def split_words(text: str) -> List[str]:
        return _NON_CYRILLIC.sub(" ", text.lower()).split()

    def collect_lemmas(self, text: str) -> Dict[str, int]:
        lemmas: Counter = Counter()
        if not text:
            return {}

        for word in self.split_words(text):
            normal_form = self.normal_form(word)
            if normal_form:
                lemmas[normal_form] += 1

        return dict(lemmas)

    def normal_form(self, word: str) -> Optional[str]:
        try:
            analysis = self.analyzer.analyze(word)
        except Exception as e:
            logger.debug(f"Morphology failed for {word!r}: {e}")
            return None

        if analysis.is_function_word or not analysis.normal_forms:
            return None
        return analysis.normal_forms[0]

    @staticmethod
    def strip_markup(html: str) -> str:
        return extract_text(html)
