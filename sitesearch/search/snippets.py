import html
import re
from typing import Iterable, List, Optional


ELLIPSIS = "..."


def _highlight_pattern(words: Iterable[str]) -> Optional["re.Pattern[str]"]:
    # longest first so a lemma contained in another never opens a nested tag
    unique = sorted({w for w in words if w}, key=len, reverse=True)
    if not unique:
        return None
    return re.compile("|".join(re.escape(w) for w in unique), re.IGNORECASE)


def highlight(text: str, words: Iterable[str]) -> str:
    """HTML-escape ``text`` and wrap every occurrence of ``words`` in ``<b>``."""
    pattern = _highlight_pattern(words)
    if pattern is None:
        return html.escape(text)

    parts = []
    last = 0
    for m in pattern.finditer(text):
        parts.append(html.escape(text[last:m.start()]))
        parts.append(f"<b>{html.escape(m.group(0))}</b>")
        last = m.end()
    parts.append(html.escape(text[last:]))
    return "".join(parts)


def first_occurrence(text: str, words: Iterable[str]) -> int:
    lowered = text.lower()
    positions = [lowered.find(w.lower()) for w in words if w]
    positions = [p for p in positions if p != -1]
    return min(positions) if positions else -1


def build_snippet(text: str, words: List[str], max_length: int) -> str:
    """Window of ``text`` around the first lemma hit with every hit in bold.

    Without a hit the snippet is the beginning of the text; with one it is a
    ``max_length`` window centred on the hit, followed by an ellipsis.
    """
    if not text or max_length <= 0:
        return ""

    index = first_occurrence(text, words)
    if index == -1:
        return highlight(text[:max_length], words)

    start = max(0, index - max_length // 2)
    end = min(len(text), start + max_length)
    return highlight(text[start:end], words) + ELLIPSIS
