from typing import Any

from loguru import logger

from app.config import settings
from app.core.adapters.base import BaseAdapter, NormalizedItem
from app.core.exceptions import AdapterConfigurationError, AdapterFetchError
from app.core.registry import register_adapter

DEFAULT_BASE_URL = "https://api.themoviedb.org/3"
DEFAULT_IMAGE_BASE_URL = "https://image.tmdb.org/t/p/w500"
DEFAULT_MEDIA_TYPES = ("movie", "tv")


@register_adapter("tmdb")
class TmdbAdapter(BaseAdapter):
    """Daily trending movies and TV shows from The Movie Database."""

    @property
    def media_types(self) -> list[str]:
        return list(self.adapter_config.get("media_types", DEFAULT_MEDIA_TYPES))

    async def fetch(self) -> Any:
        api_key = self.adapter_config.get("api_key") or settings.TMDB_API_KEY
        if not api_key:
            raise AdapterConfigurationError("TMDB_API_KEY is not configured", self.source_key)

        base_url = (self.base_url or DEFAULT_BASE_URL).rstrip("/")
        results = []
        for media_type in self.media_types:
            url = f"{base_url}/trending/{media_type}/day"
            logger.info(f"Fetching TMDB trending {media_type}")
            data = await self.http_client.get_json(url, params={"api_key": api_key, "page": "1"})
            if data is None:
                status = self.http_client.last_status_code
                raise AdapterFetchError(f"TMDB fetch failed for {media_type}: {status}", self.source_key, status)
            entries = data.get("results", []) if isinstance(data, dict) else []
            results.append({"type": media_type, "data": entries})
        return results

    async def parse(self, raw: Any) -> list[NormalizedItem]:
        image_base = self.adapter_config.get("image_base_url", DEFAULT_IMAGE_BASE_URL)
        per_type_limit = min(int(self.adapter_config.get("per_type_limit", 50)), self.max_items_per_run)

        aggregated: list[NormalizedItem] = []
        for group in raw if isinstance(raw, list) else []:
            media_type = group.get("type")
            for entry in group.get("data", [])[:per_type_limit]:
                if len(aggregated) >= self.max_items_per_run:
                    return aggregated
                poster_path = entry.get("poster_path")
                aggregated.append(
                    NormalizedItem(
                        title=entry.get("title") or entry.get("name") or "",
                        source_url=f"https://www.themoviedb.org/{media_type}/{entry.get('id')}",
                        image_url=f"{image_base}{poster_path}" if poster_path else None,
                        excerpt=entry.get("overview") or None,
                        published_at=self.parse_date(entry.get("release_date") or entry.get("first_air_date")),
                        external_id=str(entry["id"]) if entry.get("id") else None,
                        content_type=media_type,
                        categories=["entertainment"],
                        raw_data=entry,
                    ),
                )
        return aggregated
