"""Storage operations used by the crawler, indexer and search service.

Every function is a single short unit of work against Tortoise ORM. Writes
that must land together take ``using_db`` so the caller can run them on one
transaction connection.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from loguru import logger
from tortoise.backends.base.client import BaseDBAsyncClient
from tortoise.expressions import F, Subquery

from sitesearch.storage.models import Lemma, Page, SearchIndex, Site, SiteStatus


MAX_ERROR_LENGTH = 1000


def _now() -> datetime:
    return datetime.now(timezone.utc)


# -------------------------------------------------------
# Sites
# -------------------------------------------------------

async def find_site_by_url(url: str) -> Optional[Site]:
    return await Site.get_or_none(url=url)


async def list_sites() -> List[Site]:
    return await Site.all().order_by("id")


async def create_site(url: str, name: str, status: SiteStatus = SiteStatus.INDEXING) -> Site:
    return await Site.create(url=url, name=name, status=status, status_time=_now())


async def purge_site(site: Site) -> None:
    """Remove a site together with its pages, lemmas and postings."""
    site_pages = Page.filter(site_id=site.id).values("id")
    await SearchIndex.filter(page_id__in=Subquery(site_pages)).delete()
    await Lemma.filter(site_id=site.id).delete()
    await Page.filter(site_id=site.id).delete()
    await site.delete()
    logger.info(f"Purged previous data of {site.url}")


async def touch_site(site_id: int) -> None:
    await Site.filter(id=site_id, status=SiteStatus.INDEXING).update(status_time=_now())


async def record_site_error(site_id: int, message: str) -> None:
    await Site.filter(id=site_id).update(
        last_error=message[:MAX_ERROR_LENGTH],
        status_time=_now(),
    )


async def finish_site(site_id: int) -> bool:
    """INDEXING -> INDEXED; a site that already left INDEXING is left alone."""
    updated = await Site.filter(id=site_id, status=SiteStatus.INDEXING).update(
        status=SiteStatus.INDEXED,
        status_time=_now(),
    )
    return updated > 0


async def fail_site(site_id: int, message: str) -> None:
    await Site.filter(id=site_id).update(
        status=SiteStatus.FAILED,
        last_error=message[:MAX_ERROR_LENGTH],
        status_time=_now(),
    )


async def fail_indexing_sites(message: str) -> int:
    return await Site.filter(status=SiteStatus.INDEXING).update(
        status=SiteStatus.FAILED,
        last_error=message[:MAX_ERROR_LENGTH],
        status_time=_now(),
    )


# -------------------------------------------------------
# Pages
# -------------------------------------------------------

async def save_page(
    site_id: int,
    path: str,
    code: int,
    content: str,
    using_db: Optional[BaseDBAsyncClient] = None,
) -> Page:
    return await Page.create(
        site_id=site_id, path=path, code=code, content=content, using_db=using_db
    )


async def find_page_by_path_and_site(
    path: str,
    site_id: int,
    using_db: Optional[BaseDBAsyncClient] = None,
) -> Optional[Page]:
    return await Page.filter(path=path, site_id=site_id).using_db(using_db).first()


async def find_pages_by_ids(page_ids: Iterable[int]) -> Dict[int, Page]:
    pages = await Page.filter(id__in=list(page_ids)).prefetch_related("site")
    return {page.id: page for page in pages}


async def release_page_lemmas(page: Page, using_db: Optional[BaseDBAsyncClient] = None) -> int:
    """Subtract one page's contribution from its site's lemma frequencies.

    Lemmas that no longer occur on any page are removed. Returns the number of
    lemmas touched.
    """
    lemma_ids = await (
        SearchIndex.filter(page_id=page.id).using_db(using_db).values_list("lemma_id", flat=True)
    )
    if not lemma_ids:
        return 0

    await Lemma.filter(id__in=lemma_ids).using_db(using_db).update(frequency=F("frequency") - 1)
    await SearchIndex.filter(page_id=page.id).using_db(using_db).delete()
    await Lemma.filter(id__in=lemma_ids, frequency__lte=0).using_db(using_db).delete()
    return len(lemma_ids)


async def delete_page(page: Page, using_db: Optional[BaseDBAsyncClient] = None) -> None:
    await SearchIndex.filter(page_id=page.id).using_db(using_db).delete()
    await page.delete(using_db=using_db)


async def count_pages(site_id: Optional[int] = None) -> int:
    if site_id is None:
        return await Page.all().count()
    return await Page.filter(site_id=site_id).count()


async def count_pages_by_site_url(url: str) -> int:
    return await Page.filter(site__url=url).count()


# -------------------------------------------------------
# Lemmas and postings
# -------------------------------------------------------

async def count_lemmas(site_id: Optional[int] = None) -> int:
    if site_id is None:
        return await Lemma.all().count()
    return await Lemma.filter(site_id=site_id).count()


async def increment_lemma(
    site_id: int,
    lemma: str,
    using_db: Optional[BaseDBAsyncClient] = None,
) -> Lemma:
    """Find-or-create the (site, lemma) row and add one page to its frequency."""
    row, created = await Lemma.get_or_create(
        site_id=site_id,
        lemma=lemma,
        defaults={"frequency": 1},
        using_db=using_db,
    )
    if not created:
        await Lemma.filter(id=row.id).using_db(using_db).update(frequency=F("frequency") + 1)
    return row


async def save_postings(
    page: Page,
    ranks: Dict[int, float],
    using_db: Optional[BaseDBAsyncClient] = None,
) -> None:
    """Insert one posting per lemma id with the given rank."""
    if not ranks:
        return
    await SearchIndex.bulk_create(
        [
            SearchIndex(page_id=page.id, lemma_id=lemma_id, rank=float(rank))
            for lemma_id, rank in ranks.items()
        ],
        using_db=using_db,
    )


async def find_total_frequency_by_lemma(lemma: str) -> int:
    frequencies = await Lemma.filter(lemma=lemma).values_list("frequency", flat=True)
    return int(sum(frequencies))


async def find_page_ids_by_lemma(lemma: str, site_url: Optional[str] = None) -> List[int]:
    query = SearchIndex.filter(lemma__lemma=lemma)
    if site_url is not None:
        query = query.filter(lemma__site__url=site_url)
    return list(await query.values_list("page_id", flat=True))


async def find_rank_by_page_and_lemma(page_id: int, lemma: str) -> Optional[float]:
    ranks = await SearchIndex.filter(page_id=page_id, lemma__lemma=lemma).values_list(
        "rank", flat=True
    )
    if not ranks:
        return None
    return float(sum(ranks))
