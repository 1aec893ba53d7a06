from .site_model import Site, SiteStatus
from .page_model import Page
from .lemma_model import Lemma
from .search_index_model import SearchIndex

MODEL_MODULES = [
    "sitesearch.storage.models.site_model",
    "sitesearch.storage.models.page_model",
    "sitesearch.storage.models.lemma_model",
    "sitesearch.storage.models.search_index_model",
]

__all__ = [
    "Site",
    "SiteStatus",
    "Page",
    "Lemma",
    "SearchIndex",
    "MODEL_MODULES",
]
