from typing import Any

from loguru import logger

from app.config import settings
from app.core.adapters.base import BaseAdapter, NormalizedItem
from app.core.exceptions import AdapterConfigurationError, AdapterFetchError
from app.core.registry import register_adapter

DEFAULT_BASE_URL = "https://newsx.p.rapidapi.com"
DEFAULT_HOST = "newsx.p.rapidapi.com"


def _first(entry: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = entry.get(key)
        if value:
            return value
    return None


@register_adapter("newsx")
class NewsXAdapter(BaseAdapter):
    """NewsX search endpoint (RapidAPI). The response shape varies between releases."""

    async def fetch(self) -> Any:
        api_key = self.adapter_config.get("api_key") or settings.RAPIDAPI_KEY
        if not api_key:
            raise AdapterConfigurationError("RAPIDAPI_KEY is not configured", self.source_key)

        host = self.adapter_config.get("host", DEFAULT_HOST)
        url = f"{(self.base_url or DEFAULT_BASE_URL).rstrip('/')}/search"
        params = {
            "limit": str(min(int(self.adapter_config.get("limit", 50)), self.max_items_per_run)),
            "skip": str(self.adapter_config.get("skip", 0)),
        }
        logger.info(f"Fetching NewsX articles from {url}")

        data = await self.http_client.get_json(
            url,
            params=params,
            headers={"X-RapidAPI-Key": api_key, "X-RapidAPI-Host": host},
        )
        if data is None:
            status = self.http_client.last_status_code
            raise AdapterFetchError(f"NewsX RapidAPI fetch failed: {status}", self.source_key, status)
        return data

    async def parse(self, raw: Any) -> list[NormalizedItem]:
        if isinstance(raw, dict):
            articles = raw.get("articles") if isinstance(raw.get("articles"), list) else raw.get("results")
        else:
            articles = raw
        if not isinstance(articles, list):
            return []

        items = []
        for article in articles[: self.max_items_per_run]:
            if not isinstance(article, dict):
                continue
            link = _first(article, "url", "link")
            external_id = str(article["id"]) if article.get("id") else link
            items.append(
                NormalizedItem(
                    title=_first(article, "title", "headline") or "",
                    source_url=self.normalize_url(link),
                    image_url=_first(article, "image", "imageUrl", "thumbnail"),
                    excerpt=_first(article, "description", "excerpt", "summary"),
                    published_at=self.parse_date(_first(article, "publishedAt", "published_at", "pubDate", "date")),
                    external_id=external_id,
                    raw_data=article,
                ),
            )
        return items
