import asyncio

import httpx
import pytest

from conftest import SITE_URL, FakeSite, html_page
from sitesearch.crawler.site_crawler import SiteCrawler
from sitesearch.indexing.job_registry import (
    INTERRUPTED_BY_RESTART,
    STOPPED_BY_USER,
    IndexingJobRegistry,
)
from sitesearch.indexing.page_indexer import PageIndexer
from sitesearch.storage import repository
from sitesearch.storage.models import Page, Site, SiteStatus


@pytest.fixture
def single_site_config(config):
    return config.model_copy(update={"sites": [config.sites[0]]})


def three_page_site() -> FakeSite:
    return FakeSite(
        {
            "https://example.com/": (
                200,
                "text/html",
                html_page(
                    "Home",
                    "коты",
                    links=["/about", "/missing", "/photo.jpg", "https://external.com/"],
                ),
            ),
            "https://example.com/about": (200, "text/html", html_page("About", "собаки")),
        }
    )


@pytest.mark.asyncio
async def test_campaign_indexes_whole_site(db, single_site_config, lemma_finder):
    fake = three_page_site()
    indexer = PageIndexer(single_site_config, lemma_finder)
    registry = IndexingJobRegistry(single_site_config, indexer, transport=fake.transport)

    assert await registry.start() is True
    await registry.wait()

    site = await Site.get(url=SITE_URL)
    assert site.status == SiteStatus.INDEXED
    pages = {p.path: p for p in await Page.filter(site_id=site.id)}
    assert sorted(pages) == ["/", "/about", "/missing"]
    assert pages["/missing"].code == 404
    assert pages["/missing"].content == ""
    assert all("photo" not in url and "external" not in url for url in fake.requests)
    assert registry.is_active() is False


@pytest.mark.asyncio
async def test_restart_replaces_previous_site_data(db, single_site_config, lemma_finder):
    fake = three_page_site()
    indexer = PageIndexer(single_site_config, lemma_finder)
    registry = IndexingJobRegistry(single_site_config, indexer, transport=fake.transport)

    await registry.start()
    await registry.wait()
    first = await Site.get(url=SITE_URL)

    await registry.start()
    await registry.wait()

    assert await Site.filter(id=first.id).count() == 0
    assert await repository.count_pages() == 3
    assert await repository.count_lemmas() == 2


@pytest.mark.asyncio
async def test_start_and_stop_while_crawling(db, config, lemma_finder):
    async def slow_handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(30)
        return httpx.Response(200, headers={"Content-Type": "text/html"}, text="")

    indexer = PageIndexer(config, lemma_finder)
    registry = IndexingJobRegistry(config, indexer, transport=httpx.MockTransport(slow_handler))

    assert await registry.start() is True
    await asyncio.sleep(0.05)

    assert registry.is_active() is True
    assert await registry.start() is False

    assert await registry.stop() is True
    assert registry.is_active() is False

    sites = await Site.all()
    assert len(sites) == 2
    assert all(s.status == SiteStatus.FAILED for s in sites)
    assert all(s.last_error == STOPPED_BY_USER for s in sites)
    assert await repository.count_pages() == 0

    assert await registry.stop() is False


@pytest.mark.asyncio
async def test_stop_without_campaign(db, config, lemma_finder):
    registry = IndexingJobRegistry(config, PageIndexer(config, lemma_finder))

    assert await registry.stop() is False


@pytest.mark.asyncio
async def test_failed_campaign_marks_site_failed(db, single_site_config, lemma_finder, monkeypatch):
    async def broken_run(self):
        raise RuntimeError("worker pool collapsed")

    monkeypatch.setattr(SiteCrawler, "run", broken_run)
    registry = IndexingJobRegistry(single_site_config, PageIndexer(single_site_config, lemma_finder))

    await registry.start()
    await registry.wait()

    site = await Site.get(url=SITE_URL)
    assert site.status == SiteStatus.FAILED
    assert site.last_error == "Indexing error: worker pool collapsed"


@pytest.mark.asyncio
async def test_recover_interrupted_fails_stale_sites(db, config, lemma_finder):
    await repository.create_site(SITE_URL, "Example")
    registry = IndexingJobRegistry(config, PageIndexer(config, lemma_finder))

    assert await registry.recover_interrupted() == 1

    site = await Site.get(url=SITE_URL)
    assert site.status == SiteStatus.FAILED
    assert site.last_error == INTERRUPTED_BY_RESTART
