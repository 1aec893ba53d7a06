import asyncio
import random
import time
from dataclasses import dataclass, field
from typing import Optional, Set

import httpx
from loguru import logger
from tortoise.exceptions import IntegrityError, OperationalError as DBError

from sitesearch.crawler.fetcher import FetchResult, build_client, fetch_page
from sitesearch.crawler.link_parser import LinkParser
from sitesearch.indexing.page_indexer import PageIndexer
from sitesearch.monitoring.metrics import (
    CRAWL_FAILURES,
    CRAWLED_PAGES,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    SKIPPED_LINKS,
)
from sitesearch.storage import repository
from sitesearch.storage.models import Site
from sitesearch.utils.config_loader import Config
from sitesearch.utils.url_utils import normalize_root, site_relative_path


@dataclass
class CrawlContext:
    """State owned by one crawl campaign and shared by its workers."""

    site: Site
    root_url: str
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)
    visited: Set[str] = field(default_factory=set)
    frontier: asyncio.Queue = field(default_factory=asyncio.Queue)

    @classmethod
    def for_site(cls, site: Site) -> "CrawlContext":
        return cls(site=site, root_url=normalize_root(site.url))

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    def admit(self, path: str) -> bool:
        # no await between check and insert, so admission is exactly-once
        if path in self.visited:
            return False
        self.visited.add(path)
        return True


class SiteCrawler:
    """Crawls one site with a fixed pool of workers over a frontier queue.

    Each URL is fetched at most once per campaign, after a random politeness
    delay. Fetched pages go straight to the indexing pipeline. The campaign
    ends when the frontier is empty and no worker is still processing a URL.
    """

    def __init__(
        self,
        context: CrawlContext,
        config: Config,
        indexer: PageIndexer,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.context = context
        self.config = config
        self.indexer = indexer
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None
        self.link_parser = LinkParser(context.root_url)
        self.site_label = context.site.url
        self.log = logger.bind(component="crawler")

    # --------------------------
    #  Politeness
    # --------------------------
    def _random_delay(self) -> float:
        low = self.config.min_delay_ms
        high = self.config.max_delay_ms
        return random.randint(low, high) / 1000

    # --------------------------
    #  HTTP fetch with metrics
    # --------------------------
    async def _fetch(self, url: str) -> FetchResult:
        if self.client is None:
            raise RuntimeError("HTTP client is not initialized")

        REQUEST_COUNT.labels(site=self.site_label).inc()
        start = time.perf_counter()
        try:
            return await fetch_page(self.client, url)
        finally:
            REQUEST_LATENCY.labels(site=self.site_label).observe(time.perf_counter() - start)

    # --------------------------
    #  Main processing
    # --------------------------
    async def process_url(self, url: str) -> None:
        ctx = self.context

        if ctx.stopped:
            return

        path = site_relative_path(url, ctx.root_url)
        if path is None:
            SKIPPED_LINKS.labels(reason="outside_site").inc()
            return

        if not ctx.admit(path):
            return

        try:
            await asyncio.sleep(self._random_delay())
            if ctx.stopped:
                return

            # --------------------------
            # 1) Fetch stage
            # --------------------------
            result = await self._fetch(url)

            # --------------------------
            # 2) Storage + indexing stage
            # --------------------------
            await self.indexer.index_page(ctx.site, path, result.status_code, result.content)
            await repository.touch_site(ctx.site.id)
            CRAWLED_PAGES.labels(site=self.site_label).inc()
            self.log.info(f"Crawled: {url} (status={result.status_code})")

            if not result.is_html:
                return

            # --------------------------
            # 3) Link discovery stage
            # --------------------------
            links = await asyncio.to_thread(self.link_parser.extract_links, url, result.content)
            for link in links:
                if ctx.stopped:
                    return
                child_path = site_relative_path(link, ctx.root_url)
                if child_path is None or child_path in ctx.visited:
                    continue
                ctx.frontier.put_nowait(link)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            category = self._categorize_error(e)
            CRAWL_FAILURES.labels(site=self.site_label, category=category).inc()
            self.log.error(f"Error processing {url} ({category}): {e}")
            await repository.record_site_error(
                ctx.site.id, f"Crawl error at {url}: {e or e.__class__.__name__}"
            )

    def _categorize_error(self, exc: Exception) -> str:
        if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
            return "network_timeout"
        if isinstance(exc, httpx.TransportError):
            return "connection_error"
        if isinstance(exc, (DBError, IntegrityError)):
            return "db_error"
        if isinstance(exc, (ValueError, UnicodeDecodeError, AttributeError)):
            return "parse_error"
        return "unexpected"

    # --------------------------
    #  Worker loop
    # --------------------------
    async def _worker(self) -> None:
        frontier = self.context.frontier
        while True:
            url = await frontier.get()
            try:
                await self.process_url(url)
            finally:
                frontier.task_done()

    async def run(self) -> None:
        """Crawl until the frontier quiesces.

        Raises when a worker dies, so the caller can fail the whole campaign.
        """
        ctx = self.context
        self.log.info(f"Campaign started for {ctx.root_url}")

        async with build_client(self.config, self.transport) as client:
            self.client = client
            ctx.frontier.put_nowait(ctx.site.url)

            workers = [
                asyncio.create_task(self._worker(), name=f"crawler-{ctx.site.id}-{i}")
                for i in range(self.config.crawler_workers)
            ]
            drained = asyncio.create_task(ctx.frontier.join())

            try:
                await asyncio.wait([drained, *workers], return_when=asyncio.FIRST_COMPLETED)
                for worker in workers:
                    if worker.done() and not worker.cancelled() and worker.exception():
                        raise worker.exception()
            finally:
                drained.cancel()
                for worker in workers:
                    worker.cancel()
                await asyncio.gather(drained, *workers, return_exceptions=True)
                self.client = None

        self.log.info(f"Campaign finished for {ctx.root_url}: {len(ctx.visited)} paths visited")
