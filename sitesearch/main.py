import asyncio
import signal
from loguru import logger

# -------------------------------
# UVLOOP (used when installed)
# -------------------------------
try:
    import uvloop
    uvloop.install()
except ImportError:
    logger.warning("uvloop not available, using default asyncio loop.")

# -------------------------------
# INTERNAL IMPORTS
# -------------------------------
from sitesearch.api.server import Services, create_app, start_api_server
from sitesearch.indexing.job_registry import IndexingJobRegistry
from sitesearch.indexing.page_indexer import PageIndexer
from sitesearch.indexing.statistics import StatisticsService
from sitesearch.lemmas.lemma_finder import LemmaFinder
from sitesearch.search.search_service import SearchService
from sitesearch.storage.db_init import close_db, init_db
from sitesearch.utils.config_loader import load_config
from sitesearch.utils.env_loader import load_environment
from sitesearch.utils.logger import setup_logger


def build_services(config, lemma_finder: LemmaFinder | None = None) -> Services:
    lemma_finder = lemma_finder if lemma_finder is not None else LemmaFinder()
    indexer = PageIndexer(config, lemma_finder)
    registry = IndexingJobRegistry(config, indexer)
    return Services(
        registry=registry,
        indexer=indexer,
        search=SearchService(config, lemma_finder),
        statistics=StatisticsService(registry.is_active),
    )


# -------------------------------
# MAIN APPLICATION
# -------------------------------
async def main() -> None:
    load_environment()
    config = load_config()
    setup_logger(config.log_level, config.log_path)

    logger.info("Starting search engine...")
    logger.info(f"Configured sites: {', '.join(s.url for s in config.sites) or 'none'}")

    # ---- Database ----
    await init_db(config.database_url)

    services = build_services(config)
    await services.registry.recover_interrupted()

    # ---- API + Metrics ----
    app = create_app(services)
    runner, _site = await start_api_server(app, config.api_host, config.api_port)

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown_event.set)

    logger.info("Search engine started successfully.")

    try:
        await shutdown_event.wait()
    except asyncio.CancelledError:
        pass
    finally:
        logger.info("Shutting down...")
        if services.registry.is_active():
            await services.registry.stop()

        await runner.shutdown()
        await runner.cleanup()
        await close_db()


def run() -> None:
    asyncio.run(main())


# -------------------------------
# ENTRYPOINT
# -------------------------------
if __name__ == "__main__":
    run()
