"""
Core module initialization with auto-discovery for the adapter registry.

Importing this package registers every content-source adapter.
"""

# Import all adapters to trigger registration
from app.core.adapters import api_sports, mediastack, newsx, tmdb  # noqa: F401

# Import registry for convenience
from app.core.registry import get_adapter, list_registered_adapters  # noqa: F401
