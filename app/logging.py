import sys

from loguru import logger

from app.config import settings

_configured = False


def setup_logging(level: str | None = None) -> None:
    """Install the stderr sink used by the API and the Celery workers."""
    global _configured
    if _configured:
        return

    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.LOG_LEVEL).upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level> | {extra}",
        backtrace=False,
        diagnose=False,
    )
    _configured = True
