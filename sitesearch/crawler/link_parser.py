from typing import List

from selectolax.parser import HTMLParser

from sitesearch.utils.filters import is_valid_link
from sitesearch.utils.url_utils import resolve_link


class LinkParser:
    """Pulls crawlable same-site links out of a fetched page."""

    def __init__(self, root_url: str):
        self.root_url = root_url

    def extract_links(self, page_url: str, html: str) -> List[str]:
        tree = HTMLParser(html)
        links: List[str] = []
        seen = set()

        for node in tree.css("a[href]"):
            link = resolve_link(page_url, node.attributes.get("href"))
            if not link or link in seen:
                continue
            seen.add(link)
            if is_valid_link(self.root_url, link):
                links.append(link)

        return links
