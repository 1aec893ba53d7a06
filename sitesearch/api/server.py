from dataclasses import dataclass

from aiohttp import web
from loguru import logger

from sitesearch.api.schemas import OperationResponse, SearchResponse
from sitesearch.indexing.job_registry import IndexingJobRegistry
from sitesearch.indexing.page_indexer import PageIndexer
from sitesearch.indexing.statistics import StatisticsService
from sitesearch.monitoring.metrics import metrics_handler
from sitesearch.search.search_service import SearchService


ALREADY_RUNNING = "Indexing is already running"
NOT_RUNNING = "Indexing is not running"
EMPTY_QUERY = "Empty search query"
DEFAULT_LIMIT = 20

log = logger.bind(component="api")


@dataclass
class Services:
    registry: IndexingJobRegistry
    indexer: PageIndexer
    search: SearchService
    statistics: StatisticsService


SERVICES_KEY = web.AppKey("services", Services)


def _json(model, status: int = 200) -> web.Response:
    return web.json_response(text=model.model_dump_json(exclude_none=True), status=status)


def _int_param(request: web.Request, name: str, default: int) -> int:
    raw = request.query.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# -------------------------
# Handlers
# -------------------------

async def start_indexing(request: web.Request) -> web.Response:
    services = request.app[SERVICES_KEY]
    try:
        started = await services.registry.start()
    except Exception as e:
        log.exception("startIndexing failed")
        return _json(OperationResponse(result=False, error=str(e)), status=500)
    if not started:
        return _json(OperationResponse(result=False, error=ALREADY_RUNNING))
    return _json(OperationResponse(result=True))


async def stop_indexing(request: web.Request) -> web.Response:
    services = request.app[SERVICES_KEY]
    try:
        stopped = await services.registry.stop()
    except Exception as e:
        log.exception("stopIndexing failed")
        return _json(OperationResponse(result=False, error=str(e)), status=500)
    if not stopped:
        return _json(OperationResponse(result=False, error=NOT_RUNNING))
    return _json(OperationResponse(result=True))


async def index_page(request: web.Request) -> web.Response:
    services = request.app[SERVICES_KEY]
    url = request.query.get("url")
    if url is None and request.can_read_body:
        form = await request.post()
        url = form.get("url")

    ok, error = await services.indexer.reindex_page(str(url or ""))
    if not ok:
        return _json(OperationResponse(result=False, error=error), status=400)
    return _json(OperationResponse(result=True))


async def statistics(request: web.Request) -> web.Response:
    services = request.app[SERVICES_KEY]
    try:
        response = await services.statistics.get_statistics()
    except Exception as e:
        log.exception("statistics failed")
        return _json(OperationResponse(result=False, error=str(e)), status=500)
    return _json(response)


async def search(request: web.Request) -> web.Response:
    services = request.app[SERVICES_KEY]
    query = request.query.get("query", "")
    if not query.strip():
        return _json(SearchResponse.failure(EMPTY_QUERY), status=400)

    response = await services.search.search(
        query,
        request.query.get("site") or None,
        _int_param(request, "offset", 0),
        _int_param(request, "limit", DEFAULT_LIMIT),
    )
    return _json(response)


# -------------------------
# Application
# -------------------------

def create_app(services: Services) -> web.Application:
    app = web.Application()
    app[SERVICES_KEY] = services
    app.router.add_get("/api/startIndexing", start_indexing)
    app.router.add_get("/api/stopIndexing", stop_indexing)
    app.router.add_post("/api/indexPage", index_page)
    app.router.add_get("/api/statistics", statistics)
    app.router.add_get("/api/search", search)
    app.router.add_get("/metrics", metrics_handler)
    return app


async def start_api_server(app: web.Application, host: str, port: int):
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    log.info(f"API listening on {host}:{port}")

    return runner, site
