"""Exception hierarchy for the ingestion pipeline."""


class IngestionError(Exception):
    """Base class for ingestion pipeline errors."""

    def __init__(self, message: str, source_key: str | None = None) -> None:
        self.message = message
        self.source_key = source_key
        super().__init__(self.message)


class AdapterNotFoundError(IngestionError, KeyError):
    """Raised when no adapter is registered for a source key."""

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.message


class AdapterConfigurationError(IngestionError):
    """Raised when an adapter is missing credentials or required settings."""


class AdapterFetchError(IngestionError):
    """Raised when a provider request fails or returns an unusable body."""

    def __init__(self, message: str, source_key: str | None = None, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message, source_key)


class ContentInsertError(IngestionError):
    """Raised when a content item cannot be inserted; aborts the current run."""
