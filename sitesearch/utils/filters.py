import re
from urllib.parse import urlparse

from sitesearch.utils.url_utils import is_under_root

# extensions that never hold crawlable text
BLOCKED_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".bmp", ".ico", ".tif", ".tiff",
    ".mp4", ".mp3", ".avi", ".mov", ".wmv", ".webm", ".ogg", ".wav", ".flac",
    ".zip", ".rar", ".7z", ".tar", ".gz", ".bz2", ".exe", ".apk", ".iso", ".dmg",
    ".css", ".js", ".json", ".xml", ".woff", ".woff2", ".ttf", ".eot",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".odt", ".rtf", ".csv",
)

_NON_NAVIGABLE = re.compile(r"^(javascript:|mailto:|tel:|data:)", re.I)


def has_blocked_extension(url: str) -> bool:
    path = urlparse(url).path.lower()
    return path.endswith(BLOCKED_EXTENSIONS)


def is_valid_link(root_url: str, url: str) -> bool:
    """Whether ``url`` should be crawled as part of the site at ``root_url``."""
    if _NON_NAVIGABLE.match(url):
        return False

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False

    if has_blocked_extension(url):
        return False

    return is_under_root(url, root_url)
