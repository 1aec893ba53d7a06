from typing import Callable

from sitesearch.api.schemas import (
    DetailedStatisticsItem,
    StatisticsData,
    StatisticsResponse,
    TotalStatistics,
)
from sitesearch.storage import repository


class StatisticsService:
    def __init__(self, is_indexing: Callable[[], bool]):
        self.is_indexing = is_indexing

    async def get_statistics(self) -> StatisticsResponse:
        sites = await repository.list_sites()

        detailed = []
        for site in sites:
            detailed.append(
                DetailedStatisticsItem(
                    url=site.url,
                    name=site.name,
                    status=site.status.value,
                    status_time=site.status_time,
                    error=site.last_error,
                    pages=await repository.count_pages(site.id),
                    lemmas=await repository.count_lemmas(site.id),
                )
            )

        total = TotalStatistics(
            sites=len(sites),
            pages=await repository.count_pages(),
            lemmas=await repository.count_lemmas(),
            indexing=self.is_indexing(),
        )

        return StatisticsResponse(
            result=True,
            statistics=StatisticsData(total=total, detailed=detailed),
        )
