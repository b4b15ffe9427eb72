from datetime import UTC, datetime
from typing import Any

from loguru import logger

from app.config import settings
from app.core.adapters.base import BaseAdapter, NormalizedItem
from app.core.exceptions import AdapterConfigurationError, AdapterFetchError
from app.core.registry import register_adapter

DEFAULT_BASE_URL = "https://v3.football.api-sports.io"


@register_adapter("api-sports")
class ApiSportsAdapter(BaseAdapter):
    """
    Today's football fixtures from API-SPORTS.

    This provider bills per call, so the runner charges the daily budget for
    every fetch made through this adapter.
    """

    async def fetch(self) -> Any:
        api_key = self.adapter_config.get("api_key") or settings.API_SPORTS_KEY
        if not api_key:
            raise AdapterConfigurationError("API_SPORTS_KEY is not configured", self.source_key)

        url = f"{(self.base_url or DEFAULT_BASE_URL).rstrip('/')}/fixtures"
        params: dict[str, str] = {"date": datetime.now(UTC).strftime("%Y-%m-%d")}
        if self.adapter_config.get("league"):
            params["league"] = str(self.adapter_config["league"])
            params["season"] = str(self.adapter_config.get("season", datetime.now(UTC).year))
        logger.info(f"Fetching API-SPORTS fixtures for {params['date']}")

        data = await self.http_client.get_json(url, params=params, headers={"x-apisports-key": api_key})
        if data is None:
            status = self.http_client.last_status_code
            raise AdapterFetchError(f"API-SPORTS fetch failed: {status}", self.source_key, status)
        if isinstance(data, dict) and data.get("errors"):
            raise AdapterFetchError(f"API-SPORTS returned errors: {data['errors']}", self.source_key)
        return data

    async def parse(self, raw: Any) -> list[NormalizedItem]:
        fixtures = raw.get("response") if isinstance(raw, dict) else None
        if not isinstance(fixtures, list):
            return []

        items = []
        for entry in fixtures[: self.max_items_per_run]:
            fixture = entry.get("fixture") or {}
            teams = entry.get("teams") or {}
            league = entry.get("league") or {}
            home = (teams.get("home") or {}).get("name")
            away = (teams.get("away") or {}).get("name")
            if not fixture.get("id") or not home or not away:
                continue

            status = (fixture.get("status") or {}).get("long")
            league_name = league.get("name")
            excerpt = " · ".join(part for part in (league_name, status) if part) or None
            items.append(
                NormalizedItem(
                    title=f"{home} vs {away}",
                    source_url=f"https://www.api-football.com/fixture/{fixture['id']}",
                    external_id=str(fixture["id"]),
                    published_at=self.parse_date(fixture.get("date")),
                    excerpt=excerpt,
                    image_url=league.get("logo"),
                    content_type="fixture",
                    categories=["sports"],
                    raw_data=entry,
                ),
            )
        return items
