import asyncio
from dataclasses import dataclass
from typing import Dict, Optional

import httpx
from loguru import logger

from sitesearch.crawler.site_crawler import CrawlContext, SiteCrawler
from sitesearch.indexing.page_indexer import PageIndexer
from sitesearch.monitoring.metrics import ACTIVE_CAMPAIGNS
from sitesearch.storage import repository
from sitesearch.storage.models import Site
from sitesearch.utils.config_loader import Config


STOPPED_BY_USER = "Indexing stopped by user"
INTERRUPTED_BY_RESTART = "Indexing interrupted by restart"


@dataclass
class Campaign:
    site: Site
    context: CrawlContext
    task: asyncio.Task


class IndexingJobRegistry:
    """Owns the running crawl campaigns.

    Callers only go through ``start``/``stop``/``is_active``; the campaign map
    is never handed out. One campaign set runs at a time across all sites.
    """

    def __init__(
        self,
        config: Config,
        indexer: PageIndexer,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.indexer = indexer
        self.transport = transport
        self._campaigns: Dict[int, Campaign] = {}
        self._lock = asyncio.Lock()
        self.log = logger.bind(component="crawler")

    def is_active(self) -> bool:
        return any(not c.task.done() for c in self._campaigns.values())

    async def start(self) -> bool:
        async with self._lock:
            if self.is_active():
                self.log.info("Start rejected, indexing is already running")
                return False

            for site_config in self.config.sites:
                previous = await repository.find_site_by_url(site_config.url)
                if previous is not None:
                    await repository.purge_site(previous)

                site = await repository.create_site(site_config.url, site_config.name)
                context = CrawlContext.for_site(site)
                crawler = SiteCrawler(context, self.config, self.indexer, self.transport)
                task = asyncio.create_task(
                    self._run_campaign(site, crawler), name=f"campaign-{site.id}"
                )
                self._campaigns[site.id] = Campaign(site=site, context=context, task=task)

            ACTIVE_CAMPAIGNS.set(len(self._campaigns))
            self.log.info(f"Indexing started for {len(self.config.sites)} site(s)")
            return True

    async def _run_campaign(self, site: Site, crawler: SiteCrawler) -> None:
        try:
            await crawler.run()
        except asyncio.CancelledError:
            self.log.info(f"Campaign for {site.url} cancelled")
            raise
        except Exception as e:
            self.log.exception(f"Campaign for {site.url} failed")
            await repository.fail_site(site.id, f"Indexing error: {e}")
        else:
            if await repository.finish_site(site.id):
                self.log.info(f"Site {site.url} indexed")
        finally:
            self._campaigns.pop(site.id, None)
            ACTIVE_CAMPAIGNS.set(len(self._campaigns))

    async def stop(self) -> bool:
        async with self._lock:
            if not self.is_active():
                return False

            campaigns = list(self._campaigns.values())
            for campaign in campaigns:
                campaign.context.stop_event.set()
            for campaign in campaigns:
                campaign.task.cancel()
            await asyncio.gather(*(c.task for c in campaigns), return_exceptions=True)

            failed = await repository.fail_indexing_sites(STOPPED_BY_USER)
            self._campaigns.clear()
            ACTIVE_CAMPAIGNS.set(0)
            self.log.info(f"Indexing stopped by user, {failed} site(s) marked FAILED")
            return True

    async def wait(self) -> None:
        """Block until every running campaign has finished."""
        tasks = [c.task for c in self._campaigns.values()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def recover_interrupted(self) -> int:
        """Fail sites a previous process left in INDEXING."""
        failed = await repository.fail_indexing_sites(INTERRUPTED_BY_RESTART)
        if failed:
            self.log.warning(f"{failed} site(s) were left INDEXING by a previous run")
        return failed
