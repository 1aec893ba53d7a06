from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    generate_latest,
    Counter,
    Gauge,
    Histogram,
)

# -------------------------
# Crawl Metrics
# -------------------------

REQUEST_COUNT = Counter(
    "sitesearch_requests_total",
    "Total HTTP requests issued by crawl campaigns",
    ["site"],
)

REQUEST_LATENCY = Histogram(
    "sitesearch_request_latency_seconds",
    "Time to fetch a page",
    ["site"],
)

CRAWLED_PAGES = Counter(
    "sitesearch_crawled_pages_total",
    "Pages persisted by crawl campaigns",
    ["site"],
)

CRAWL_FAILURES = Counter(
    "sitesearch_crawl_failures_total",
    "URLs whose processing raised",
    ["site", "category"],
)

SKIPPED_LINKS = Counter(
    "sitesearch_skipped_links_total",
    "Discovered links that were not crawled",
    ["reason"],
)

ACTIVE_CAMPAIGNS = Gauge(
    "sitesearch_active_campaigns",
    "Crawl campaigns currently running",
)

# -------------------------
# Index / Search Metrics
# -------------------------

INDEXED_PAGES = Counter(
    "sitesearch_indexed_pages_total",
    "Pages run through the indexing pipeline",
    ["mode"],
)

SEARCH_REQUESTS = Counter(
    "sitesearch_search_requests_total",
    "Search queries answered",
    ["outcome"],
)

SEARCH_LATENCY = Histogram(
    "sitesearch_search_latency_seconds",
    "Time to answer a search query",
)


# -------------------------
# /metrics endpoint
# -------------------------

async def metrics_handler(request):
    data = generate_latest()

    # aiohttp refuses a content_type that carries a charset
    ctype = CONTENT_TYPE_LATEST.split(";")[0]

    return web.Response(
        body=data,
        content_type=ctype
    )
