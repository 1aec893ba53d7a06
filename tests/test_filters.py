import pytest

from sitesearch.utils.filters import has_blocked_extension, is_valid_link


ROOT = "https://example.com/"


def test_is_valid_link_accepts_internal_html_pages():
    assert is_valid_link(ROOT, "https://example.com/articles/intro")
    assert is_valid_link(ROOT, "https://example.com/articles/intro.html")


@pytest.mark.parametrize(
    "url",
    [
        "https://example.com/image.JPG",
        "https://example.com/files/archive.zip",
        "https://example.com/static/site.css",
        "https://example.com/report.pdf",
        "https://external.com/page",
        "javascript:alert('x')",
        "mailto:someone@example.com",
    ],
)
def test_is_valid_link_rejects_assets_and_external_sites(url):
    assert not is_valid_link(ROOT, url)


def test_blocked_extension_ignores_query_string():
    assert has_blocked_extension("https://example.com/photo.png?size=large")
    assert not has_blocked_extension("https://example.com/page?file=photo.png")
