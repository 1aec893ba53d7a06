from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class OperationResponse(BaseModel):
    result: bool
    error: Optional[str] = None


class SearchResult(BaseModel):
    site: str
    site_name: str
    uri: str
    title: str
    snippet: str
    relevance: float


class SearchResponse(BaseModel):
    result: bool = True
    count: int = 0
    data: List[SearchResult] = []
    error: Optional[str] = None

    @classmethod
    def empty(cls) -> "SearchResponse":
        return cls(result=True, count=0, data=[])

    @classmethod
    def failure(cls, message: str) -> "SearchResponse":
        return cls(result=False, error=message)


class TotalStatistics(BaseModel):
    sites: int
    pages: int
    lemmas: int
    indexing: bool


class DetailedStatisticsItem(BaseModel):
    url: str
    name: str
    status: str
    status_time: datetime
    error: Optional[str] = None
    pages: int
    lemmas: int


class StatisticsData(BaseModel):
    total: TotalStatistics
    detailed: List[DetailedStatisticsItem]


class StatisticsResponse(BaseModel):
    result: bool
    statistics: StatisticsData
