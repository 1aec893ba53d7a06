import asyncio
from typing import Dict, Optional, Tuple

import httpx
from loguru import logger
from tortoise.backends.base.client import BaseDBAsyncClient
from tortoise.transactions import in_transaction

from sitesearch.crawler.fetcher import build_client, fetch_page
from sitesearch.lemmas.lemma_finder import LemmaFinder
from sitesearch.monitoring.metrics import INDEXED_PAGES
from sitesearch.storage import repository
from sitesearch.storage.models import Page, Site, SiteStatus
from sitesearch.utils.config_loader import Config, SiteConfig
from sitesearch.utils.url_utils import is_under_root, normalize_root, site_relative_path


OUT_OF_SCOPE_ERROR = "This page is outside the sites specified in the configuration file"


class PageIndexer:
    """Turns fetched pages into lemma postings.

    Crawl campaigns call ``index_page``; ``reindex_page`` replaces one page.
    Both persist the page, add one to the frequency of every lemma found on it
    and store one posting per lemma ranked by occurrence count, all in a
    single transaction.
    """

    def __init__(
        self,
        config: Config,
        lemma_finder: Optional[LemmaFinder] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.lemma_finder = lemma_finder if lemma_finder is not None else LemmaFinder()
        self.transport = transport
        self.log = logger.bind(component="indexer")

    # --------------------------
    #  Core routine
    # --------------------------
    async def index_page(
        self,
        site: Site,
        path: str,
        status_code: int,
        html: str,
        *,
        mode: str = "crawl",
    ) -> Page:
        content = (html or "") if status_code < 400 else ""
        lemmas = await self._lemmas_of(content)

        async with in_transaction() as conn:
            page = await self._store(site, path, status_code, content, lemmas, conn)

        INDEXED_PAGES.labels(mode=mode).inc()
        self.log.debug(f"Indexed {site.url}{path.lstrip('/')} ({len(lemmas)} lemmas)")
        return page

    async def _lemmas_of(self, content: str) -> Dict[str, int]:
        if not content:
            return {}
        return await asyncio.to_thread(self._collect_lemmas, content)

    async def _store(
        self,
        site: Site,
        path: str,
        status_code: int,
        content: str,
        lemmas: Dict[str, int],
        conn: BaseDBAsyncClient,
    ) -> Page:
        page = await repository.save_page(site.id, path, status_code, content, using_db=conn)

        ranks: Dict[int, float] = {}
        # fixed order so concurrent pages take lemma row locks in the same sequence
        for normal_form in sorted(lemmas):
            lemma = await repository.increment_lemma(site.id, normal_form, using_db=conn)
            ranks[lemma.id] = lemmas[normal_form]

        await repository.save_postings(page, ranks, using_db=conn)
        return page

    def _collect_lemmas(self, html: str) -> Dict[str, int]:
        text = self.lemma_finder.strip_markup(html)
        return self.lemma_finder.collect_lemmas(text)

    # --------------------------
    #  Single page reindex
    # --------------------------
    def find_site_config(self, url: str) -> Optional[SiteConfig]:
        matches = [s for s in self.config.sites if is_under_root(url, s.url)]
        if not matches:
            return None
        return max(matches, key=lambda s: len(s.url))

    async def reindex_page(self, url: str) -> Tuple[bool, Optional[str]]:
        url = (url or "").strip()
        site_config = self.find_site_config(url) if url else None
        if site_config is None:
            self.log.info(f"Reindex rejected, {url!r} is outside configured sites")
            return False, OUT_OF_SCOPE_ERROR

        root = normalize_root(site_config.url)
        path = site_relative_path(url, root)
        if path is None:
            return False, OUT_OF_SCOPE_ERROR

        try:
            async with build_client(self.config, self.transport) as client:
                result = await fetch_page(client, url)
        except httpx.HTTPError as e:
            self.log.warning(f"Reindex fetch failed for {url}: {e}")
            return False, f"Failed to fetch page: {e}"

        try:
            site = await repository.find_site_by_url(site_config.url)
            if site is None:
                site = await repository.create_site(
                    site_config.url, site_config.name, SiteStatus.INDEXED
                )

            content = result.content if result.status_code < 400 else ""
            lemmas = await self._lemmas_of(content)

            async with in_transaction() as conn:
                existing = await repository.find_page_by_path_and_site(path, site.id, using_db=conn)
                if existing is not None:
                    released = await repository.release_page_lemmas(existing, using_db=conn)
                    await repository.delete_page(existing, using_db=conn)
                    self.log.info(f"Dropped previous copy of {url} ({released} lemmas released)")

                await self._store(site, path, result.status_code, content, lemmas, conn)

            INDEXED_PAGES.labels(mode="reindex").inc()
        except Exception as e:
            self.log.exception(f"Reindex of {url} failed")
            return False, f"Indexing error: {e}"

        self.log.info(f"Reindexed {url} (status={result.status_code})")
        return True, None
