import asyncio
import math
import time
from typing import Dict, List, Optional, Set

from loguru import logger

from sitesearch.api.schemas import SearchResponse, SearchResult
from sitesearch.lemmas.lemma_finder import LemmaFinder
from sitesearch.monitoring.metrics import SEARCH_LATENCY, SEARCH_REQUESTS
from sitesearch.parsing.html_extractor import extract_text, extract_title
from sitesearch.search.snippets import build_snippet
from sitesearch.storage import repository
from sitesearch.utils.config_loader import Config


def lemma_threshold(total_pages: int, max_lemma_share: float) -> int:
    """Largest page frequency a query lemma may have and still narrow results."""
    return max(1, math.floor(total_pages * max_lemma_share + 0.5))


class SearchService:
    """Ranked conjunctive search over the lemma index.

    Query lemmas that never occur, or occur on more than ``max_lemma_share``
    of the pages in scope, are dropped. Pages must contain every remaining
    lemma; their relevance is the summed posting rank divided by the best
    page's sum.
    """

    def __init__(self, config: Config, lemma_finder: Optional[LemmaFinder] = None):
        self.max_lemma_share = config.max_lemma_share
        self.snippet_length = config.snippet_length
        self.lemma_finder = lemma_finder if lemma_finder is not None else LemmaFinder()
        self.log = logger.bind(component="search")

    async def search(
        self,
        query: Optional[str],
        site_url: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> SearchResponse:
        start = time.perf_counter()
        try:
            response = await self._search(query, site_url, offset, limit)
            SEARCH_REQUESTS.labels(outcome="hit" if response.count else "miss").inc()
            return response
        except Exception:
            self.log.exception(f"Search failed for query {query!r}")
            SEARCH_REQUESTS.labels(outcome="error").inc()
            return SearchResponse.empty()
        finally:
            SEARCH_LATENCY.observe(time.perf_counter() - start)

    async def _search(
        self,
        query: Optional[str],
        site_url: Optional[str],
        offset: int,
        limit: int,
    ) -> SearchResponse:
        if not query or not query.strip():
            return SearchResponse.empty()

        site_url = (site_url or "").strip() or None
        if site_url and not site_url.endswith("/"):
            site_url += "/"

        query_lemmas = await asyncio.to_thread(self.lemma_finder.collect_lemmas, query)
        lemmas = await self.filter_lemmas(list(query_lemmas), site_url)
        if not lemmas:
            return SearchResponse.empty()

        page_ids = await self.find_candidate_pages(lemmas, site_url)
        if not page_ids:
            return SearchResponse.empty()

        relevance = await self.relative_relevance(page_ids, lemmas)
        results = await self.build_results(page_ids, lemmas, relevance)

        # sort is stable and candidates arrive in page id order
        results.sort(key=lambda r: r.relevance, reverse=True)

        offset = max(0, offset)
        limit = max(0, limit)
        return SearchResponse(
            result=True,
            count=len(results),
            data=results[offset:offset + limit],
        )

    async def filter_lemmas(self, lemmas: List[str], site_url: Optional[str]) -> List[str]:
        if site_url:
            total_pages = await repository.count_pages_by_site_url(site_url)
        else:
            total_pages = await repository.count_pages()
        threshold = lemma_threshold(total_pages, self.max_lemma_share)

        frequencies: Dict[str, int] = {}
        for lemma in lemmas:
            frequency = await repository.find_total_frequency_by_lemma(lemma)
            if 0 < frequency <= threshold:
                frequencies[lemma] = frequency
            else:
                self.log.debug(f"Dropping lemma {lemma!r} (frequency={frequency}, threshold={threshold})")

        return sorted(frequencies, key=frequencies.__getitem__)

    async def find_candidate_pages(self, lemmas: List[str], site_url: Optional[str]) -> List[int]:
        candidates: Optional[Set[int]] = None
        # rarest lemma first keeps the running intersection small
        for lemma in lemmas:
            page_ids = set(await repository.find_page_ids_by_lemma(lemma, site_url))
            candidates = page_ids if candidates is None else candidates & page_ids
            if not candidates:
                return []
        return sorted(candidates or [])

    async def relative_relevance(self, page_ids: List[int], lemmas: List[str]) -> Dict[int, float]:
        absolute: Dict[int, float] = {}
        for page_id in page_ids:
            total = 0.0
            for lemma in lemmas:
                rank = await repository.find_rank_by_page_and_lemma(page_id, lemma)
                if rank is not None:
                    total += rank
            absolute[page_id] = total

        best = max(absolute.values(), default=0.0)
        if best <= 0:
            return {page_id: 1.0 for page_id in absolute}
        return {page_id: value / best for page_id, value in absolute.items()}

    async def build_results(
        self,
        page_ids: List[int],
        lemmas: List[str],
        relevance: Dict[int, float],
    ) -> List[SearchResult]:
        pages = await repository.find_pages_by_ids(page_ids)
        results: List[SearchResult] = []
        for page_id in page_ids:
            page = pages.get(page_id)
            if page is None:
                # removed by a concurrent reindex
                continue
            title, text = await asyncio.to_thread(self._render, page.content)
            results.append(
                SearchResult(
                    site=page.site.url.rstrip("/"),
                    site_name=page.site.name,
                    uri=page.path,
                    title=title,
                    snippet=build_snippet(text, lemmas, self.snippet_length),
                    relevance=relevance[page_id],
                )
            )
        return results

    @staticmethod
    def _render(html: str):
        return extract_title(html), extract_text(html)
