from urllib.parse import urldefrag, urljoin, urlparse


def normalize_root(url: str) -> str:
    """Site roots are compared with a trailing slash and a lowercase host."""
    parsed = urlparse(url.strip())
    path = parsed.path or "/"
    if not path.endswith("/"):
        path += "/"
    return parsed._replace(
        scheme=parsed.scheme.lower(),
        netloc=parsed.netloc.lower(),
        path=path,
        params="",
        query="",
        fragment="",
    ).geturl()


def strip_fragment(url: str) -> str:
    return urldefrag(url)[0]


def resolve_link(base_url: str, href: str | None) -> str | None:
    """Absolute http(s) URL for ``href`` relative to ``base_url``, fragment removed."""
    if not href:
        return None
    raw = href.strip()
    if not raw:
        return None
    try:
        absolute = urljoin(base_url, raw)
    except ValueError:
        return None
    if urlparse(absolute).scheme not in ("http", "https"):
        return None
    return strip_fragment(absolute)


def _comparable(url: str) -> str:
    parsed = urlparse(url)
    return parsed._replace(scheme=parsed.scheme.lower(), netloc=parsed.netloc.lower()).geturl()


def is_under_root(url: str, root_url: str) -> bool:
    return _comparable(url).startswith(normalize_root(root_url))


def site_relative_path(url: str, root_url: str) -> str | None:
    """Path of ``url`` relative to the site root, always starting with "/".

    Returns None when ``url`` lies outside the root.
    """
    root = normalize_root(root_url)
    candidate = _comparable(strip_fragment(url))
    if candidate + "/" == root:
        return "/"
    if not candidate.startswith(root):
        return None
    return "/" + candidate[len(root):]
