from dataclasses import dataclass
from typing import Optional

import httpx

from sitesearch.utils.config_loader import Config


MAX_REDIRECTS = 10


@dataclass
class FetchResult:
    status_code: int
    content: str
    content_type: str
    is_html: bool


def build_client(
    config: Config,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout=config.request_timeout),
        follow_redirects=True,
        max_redirects=MAX_REDIRECTS,
        transport=transport,
        headers={
            "User-Agent": config.crawler_user_agent,
            "Referer": config.crawler_referrer,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "ru-RU,ru;q=0.9,en-US;q=0.8,en;q=0.7",
        },
    )


async def fetch_page(client: httpx.AsyncClient, url: str) -> FetchResult:
    """GET ``url``; HTTP error statuses come back as data, transport errors raise.

    The body is kept only for successful HTML responses.
    """
    resp = await client.get(url)

    content_type = (resp.headers.get("Content-Type") or "").lower()
    is_html = "text/html" in content_type
    keep_body = resp.status_code < 400 and is_html

    return FetchResult(
        status_code=resp.status_code,
        content=(resp.text or "") if keep_body else "",
        content_type=content_type,
        is_html=keep_body,
    )
