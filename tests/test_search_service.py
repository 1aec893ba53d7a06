import pytest
import pytest_asyncio

from conftest import OTHER_SITE_URL, SITE_URL, html_page
from sitesearch.indexing.page_indexer import PageIndexer
from sitesearch.search.search_service import SearchService, lemma_threshold
from sitesearch.storage import repository


@pytest_asyncio.fixture
async def corpus(db, config, lemma_finder):
    """Four pages: "дом" is on three of them, above the 50% threshold."""
    site = await repository.create_site(SITE_URL, "Example")
    indexer = PageIndexer(config, lemma_finder)
    await indexer.index_page(site, "/one", 200, html_page("First", "кот кот дом"))
    await indexer.index_page(site, "/two", 200, html_page("Second", "кот дом мышь"))
    await indexer.index_page(site, "/three", 200, html_page("Third", "собака дом"))
    await indexer.index_page(site, "/four", 200, html_page("Fourth", "лес"))
    return site


@pytest.fixture
def service(config, lemma_finder):
    return SearchService(config, lemma_finder)


def test_lemma_threshold_rounds_half_up():
    assert lemma_threshold(4, 0.5) == 2
    assert lemma_threshold(5, 0.5) == 3
    assert lemma_threshold(3, 0.1) == 1
    assert lemma_threshold(0, 0.5) == 1


@pytest.mark.asyncio
async def test_relevance_is_relative_to_best_page(corpus, service):
    response = await service.search("коты")

    assert response.result is True
    assert response.count == 2
    assert [r.uri for r in response.data] == ["/one", "/two"]
    assert [r.relevance for r in response.data] == [1.0, 0.5]

    top = response.data[0]
    assert top.site == "https://example.com"
    assert top.site_name == "Example"
    assert top.title == "First"
    assert "<b>кот</b>" in top.snippet


@pytest.mark.asyncio
async def test_frequent_lemma_does_not_narrow_results(corpus, service):
    with_noise = await service.search("кот дом")
    without_noise = await service.search("кот")

    assert [r.uri for r in with_noise.data] == [r.uri for r in without_noise.data]


@pytest.mark.asyncio
async def test_query_is_conjunctive(corpus, service):
    both = await service.search("кот мышь")
    disjoint = await service.search("кот собака")

    assert [r.uri for r in both.data] == ["/two"]
    assert both.data[0].relevance == 1.0
    assert disjoint.count == 0
    assert disjoint.data == []


@pytest.mark.asyncio
async def test_pagination(corpus, service):
    second = await service.search("кот", offset=1, limit=1)
    beyond = await service.search("кот", offset=5, limit=10)

    assert second.count == 2
    assert [r.uri for r in second.data] == ["/two"]
    assert beyond.count == 2
    assert beyond.data == []


@pytest.mark.asyncio
async def test_empty_and_unknown_queries(corpus, service):
    for query in ["", "   ", "жираф", "и в на", "hello"]:
        response = await service.search(query)
        assert response.result is True
        assert response.count == 0


@pytest.mark.asyncio
async def test_search_on_empty_index(db, service):
    response = await service.search("кот")

    assert response.count == 0


@pytest.mark.asyncio
async def test_site_filter(db, config, lemma_finder, service):
    example = await repository.create_site(SITE_URL, "Example")
    other = await repository.create_site(OTHER_SITE_URL, "Other")
    indexer = PageIndexer(config, lemma_finder)
    await indexer.index_page(example, "/", 200, html_page("Example", "лес"))
    await indexer.index_page(example, "/x", 200, html_page("Example", "поле"))
    await indexer.index_page(other, "/", 200, html_page("Other", "мыши"))
    await indexer.index_page(other, "/y", 200, html_page("Other", "поле"))

    scoped = await service.search("мышь", site_url="https://other.org")
    elsewhere = await service.search("мышь", site_url=SITE_URL)

    assert [(r.site, r.uri) for r in scoped.data] == [("https://other.org", "/")]
    assert elsewhere.count == 0


@pytest.mark.asyncio
async def test_search_failure_degrades_to_empty(corpus, service, monkeypatch):
    async def broken(*args, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr(repository, "find_page_ids_by_lemma", broken)

    response = await service.search("кот")

    assert response.result is True
    assert response.count == 0
