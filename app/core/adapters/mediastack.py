from typing import Any

from loguru import logger

from app.config import settings
from app.core.adapters.base import BaseAdapter, NormalizedItem
from app.core.exceptions import AdapterConfigurationError, AdapterFetchError
from app.core.registry import register_adapter

DEFAULT_BASE_URL = "https://mediastack.p.rapidapi.com/news"
DEFAULT_HOST = "mediastack.p.rapidapi.com"


@register_adapter("mediastack-rapidapi")
class MediastackRapidApiAdapter(BaseAdapter):
    """Mediastack news search served through RapidAPI."""

    def _request_params(self) -> dict[str, str]:
        limit = min(int(self.adapter_config.get("limit", 50)), self.max_items_per_run)
        return {
            "keywords": self.adapter_config.get("keywords", "news"),
            "languages": self.adapter_config.get("languages", "en"),
            "sort": self.adapter_config.get("sort", "published_desc"),
            "limit": str(limit),
        }

    async def fetch(self) -> Any:
        api_key = self.adapter_config.get("api_key") or settings.RAPIDAPI_KEY
        if not api_key:
            raise AdapterConfigurationError("RAPIDAPI_KEY is not configured", self.source_key)

        host = self.adapter_config.get("host", DEFAULT_HOST)
        url = self.base_url or DEFAULT_BASE_URL
        logger.info(f"Fetching Mediastack (RapidAPI) news from {url}")

        data = await self.http_client.get_json(
            url,
            params=self._request_params(),
            headers={"X-RapidAPI-Key": api_key, "X-RapidAPI-Host": host},
        )
        if data is None:
            status = self.http_client.last_status_code
            raise AdapterFetchError(f"Mediastack RapidAPI fetch failed: {status}", self.source_key, status)
        return data

    async def parse(self, raw: Any) -> list[NormalizedItem]:
        entries = raw.get("data") if isinstance(raw, dict) else None
        if not isinstance(entries, list):
            return []

        items = []
        for entry in entries[: self.max_items_per_run]:
            if not isinstance(entry, dict):
                continue
            category = entry.get("category")
            items.append(
                NormalizedItem(
                    title=entry.get("title") or "",
                    source_url=self.normalize_url(entry.get("url")),
                    image_url=entry.get("image") or None,
                    excerpt=entry.get("description") or None,
                    published_at=self.parse_date(entry.get("published_at")),
                    external_id=entry.get("url") or None,
                    categories=[category] if category else None,
                    raw_data=entry,
                ),
            )
        return items
