from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, Field

from app.core.http_client import RateLimitedClient


class NormalizedItem(BaseModel):
    """Provider item after parsing, before hashing and persistence."""

    title: str
    source_url: str = ""
    external_id: str | None = None
    published_at: datetime | None = None
    excerpt: str | None = None
    image_url: str | None = None
    content_type: str | None = None
    categories: list[str] | None = None
    raw_data: dict[str, Any] | None = None


class AdapterConfig(BaseModel):
    """Configuration handed to an adapter by the registry."""

    max_items_per_run: int = 100
    base_url: str | None = None
    rate_limit: int = Field(default=0, description="Requests per minute, 0 for no limit")
    config: dict[str, Any] = Field(default_factory=dict)


class BaseAdapter(ABC):
    """Abstract base class for all content-source adapters."""

    source_key: str = ""

    def __init__(self, config: AdapterConfig, http_client: RateLimitedClient | None = None) -> None:
        self.config = config
        self.max_items_per_run = config.max_items_per_run
        self.base_url = config.base_url
        self.adapter_config = config.config
        self.http_client = http_client or self.get_http_client()

    def get_http_client(self) -> RateLimitedClient:
        """
        Create HTTP client with configuration from source config.

        Returns:
            Configured RateLimitedClient instance
        """
        client_config = self.adapter_config.get("client", {})
        return RateLimitedClient(
            rate_limit=client_config.get("rate_limit", self.config.rate_limit),
            retries=client_config.get("retries", 3),
            backoff_base=client_config.get("backoff_base", 1.0),
            timeout=client_config.get("timeout", 10.0),
        )

    @abstractmethod
    async def fetch(self) -> Any:
        """
        Retrieve the raw payload from the provider.

        Raises:
            AdapterConfigurationError: If credentials are missing
            AdapterFetchError: If the provider call fails
        """

    @abstractmethod
    async def parse(self, raw: Any) -> list[NormalizedItem]:
        """
        Convert a raw payload into normalized items.

        Args:
            raw: Payload returned by ``fetch``

        Returns:
            At most ``max_items_per_run`` normalized items
        """

    @staticmethod
    def normalize_url(url: str | None) -> str:
        """Drop the fragment from a URL; unparseable values are returned unchanged."""
        if not url:
            return ""
        try:
            parts = urlsplit(url)
        except ValueError:
            return url
        if not parts.scheme or not parts.netloc:
            return url
        return urlunsplit((parts.scheme, parts.netloc, parts.path or "/", parts.query, ""))

    @staticmethod
    def parse_date(value: Any) -> datetime | None:
        """Parse an ISO string or epoch seconds into an aware UTC datetime."""
        if value is None or value == "":
            return None
        if isinstance(value, int | float):
            return datetime.fromtimestamp(float(value), tz=UTC)
        if not isinstance(value, str):
            return None

        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed.astimezone(UTC)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.http_client.close()

    async def __aenter__(self) -> "BaseAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

