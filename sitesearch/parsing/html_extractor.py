from __future__ import annotations

from bs4 import BeautifulSoup


NON_CONTENT_TAGS = ["script", "style", "noscript", "template"]


def extract_title(html: str) -> str:
    if not html:
        return ""
    try:
        soup = BeautifulSoup(html, "lxml")
        if soup.title and soup.title.string:
            return soup.title.string.strip()
    except Exception:
        pass
    return ""


def extract_text(html: str) -> str:
    """
    Visible text of an HTML document with whitespace collapsed.

    This is the text that gets lemmatized and that snippets are cut from.
    """
    if not html:
        return ""
    try:
        soup = BeautifulSoup(html, "lxml")
        for tag in soup(NON_CONTENT_TAGS):
            tag.decompose()
        text = soup.get_text(separator=" ", strip=True)
        return " ".join(text.split())
    except Exception:
        return ""
