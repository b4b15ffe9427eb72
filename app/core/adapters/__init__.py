"""Content-source adapters."""

from app.core.adapters.api_sports import ApiSportsAdapter
from app.core.adapters.base import AdapterConfig, BaseAdapter, NormalizedItem
from app.core.adapters.mediastack import MediastackRapidApiAdapter
from app.core.adapters.newsx import NewsXAdapter
from app.core.adapters.tmdb import TmdbAdapter

__all__ = [
    "AdapterConfig",
    "BaseAdapter",
    "NormalizedItem",
    "ApiSportsAdapter",
    "MediastackRapidApiAdapter",
    "NewsXAdapter",
    "TmdbAdapter",
]
