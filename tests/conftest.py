import os
import sys
from pathlib import Path
from typing import Dict, Iterable, Tuple

import httpx
import pytest
import pytest_asyncio

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sitesearch.lemmas.lemma_finder import LemmaFinder
from sitesearch.lemmas.morphology import MorphAnalysis
from sitesearch.storage.db_init import close_db, init_db
from sitesearch.utils.config_loader import Config, SiteConfig
from sitesearch.utils.env_loader import load_environment


SITE_URL = "https://example.com/"
OTHER_SITE_URL = "https://other.org/"


@pytest.fixture(autouse=True)
def load_dotenv_defaults(monkeypatch):
    """Ensure every test starts from the same environment."""

    # Clear variables the config loader reads so that a developer's shell
    # never leaks into the test run.
    for key in [
        "DATABASE_URL",
        "CRAWLER_USER_AGENT",
        "CRAWLER_REFERRER",
        "CRAWLER_WORKERS",
        "API_HOST",
        "API_PORT",
        "LOG_LEVEL",
        "SITESEARCH_CONFIG",
        "SITESEARCH_ENV_FILE",
    ]:
        monkeypatch.delenv(key, raising=False)

    load_environment(override=True)

    yield

    for key in list(os.environ.keys()):
        if key.startswith("TEST_"):
            monkeypatch.delenv(key, raising=False)


class FakeAnalyzer:
    """Dictionary-backed morphology: unknown words are their own normal form."""

    FUNCTION_WORDS = {"и", "в", "на", "или", "ой", "под"}

    def __init__(self, forms: Dict[str, str] | None = None, broken: Iterable[str] = ()):
        self.forms = forms or {}
        self.broken = set(broken)
        self.calls = 0

    def analyze(self, word: str) -> MorphAnalysis:
        self.calls += 1
        if word in self.broken:
            raise ValueError(f"cannot analyze {word}")
        if word in self.FUNCTION_WORDS:
            return MorphAnalysis(normal_forms=[word], is_function_word=True)
        return MorphAnalysis(normal_forms=[self.forms.get(word, word)])


@pytest.fixture
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer(
        forms={
            "коты": "кот",
            "кота": "кот",
            "собаки": "собака",
            "мыши": "мышь",
        }
    )


@pytest.fixture
def lemma_finder(analyzer) -> LemmaFinder:
    return LemmaFinder(analyzer)


@pytest.fixture
def config() -> Config:
    return Config(
        database_url="sqlite://:memory:",
        sites=[
            SiteConfig(name="Example", url=SITE_URL),
            SiteConfig(name="Other", url=OTHER_SITE_URL),
        ],
        min_delay_ms=0,
        max_delay_ms=0,
        crawler_workers=3,
        max_lemma_share=0.5,
        snippet_length=40,
        log_path=None,
    )


@pytest_asyncio.fixture
async def db():
    await init_db("sqlite://:memory:")
    yield
    await close_db()


def html_page(title: str, body: str, links: Iterable[str] = ()) -> str:
    anchors = "".join(f'<a href="{href}">link</a>' for href in links)
    return (
        f"<html><head><title>{title}</title></head>"
        f"<body><p>{body}</p>{anchors}</body></html>"
    )


class FakeSite:
    """Routes httpx requests to canned responses and records what was fetched."""

    def __init__(self, pages: Dict[str, Tuple[int, str, str]]):
        # url -> (status, content type, body)
        self.pages = pages
        self.requests: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        status, content_type, body = self.pages.get(url, (404, "text/html", ""))
        return httpx.Response(status, headers={"Content-Type": content_type}, text=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)
