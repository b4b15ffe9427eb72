"""
Registry for content-source adapters.

Adapters register themselves under their source key at import time, so new
sources are added without touching the runner.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING

from app.core.exceptions import AdapterNotFoundError

if TYPE_CHECKING:
    from app.core.adapters.base import AdapterConfig, BaseAdapter

# Global registry of adapter classes keyed by source key
adapter_registry: dict[str, type["BaseAdapter"]] = {}


def register_adapter(source_key: str) -> Callable[[type["BaseAdapter"]], type["BaseAdapter"]]:
    """
    Decorator to register an adapter class in the global registry.

    Args:
        source_key: Source key the adapter serves (e.g., "tmdb", "api-sports")

    Returns:
        Decorator function that registers the class

    Example:
        @register_adapter("tmdb")
        class TmdbAdapter(BaseAdapter):
            pass
    """

    def decorator(cls: type["BaseAdapter"]) -> type["BaseAdapter"]:
        cls.source_key = source_key
        adapter_registry[source_key] = cls
        return cls

    return decorator


def get_adapter_class(source_key: str) -> type["BaseAdapter"]:
    """
    Get an adapter class from the registry.

    Raises:
        AdapterNotFoundError: If no adapter is registered for the key
    """
    if source_key not in adapter_registry:
        raise AdapterNotFoundError(
            f"Adapter not found for source_key: {source_key}. Available: {list_registered_adapters()}",
            source_key=source_key,
        )

    return adapter_registry[source_key]


def list_registered_adapters() -> list[str]:
    """Get the sorted list of registered source keys."""
    return sorted(adapter_registry.keys())


def get_adapter(source_key: str, config: "AdapterConfig") -> "BaseAdapter":
    """
    Factory function to get an adapter instance for a source.

    Args:
        source_key: Key of the content source
        config: AdapterConfig carrying max_items_per_run and the source's config

    Returns:
        Configured adapter instance

    Raises:
        AdapterNotFoundError: If no adapter is registered for the key
    """
    adapter_class = get_adapter_class(source_key)
    return adapter_class(config)
