from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Import core module to trigger adapter registration
import app.core  # noqa: F401
from app.api.v1 import admin, cron, health, items, runs, sources
from app.config import settings
from app.core.redis import RedisClient
from app.logging import setup_logging

setup_logging()


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    await RedisClient.close()


app = FastAPI(
    title="Fluxa Ingest",
    description="Content ingestion pipeline and feed API for Fluxa",
    version="0.1.0",
    lifespan=lifespan,
)

# Set up CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.API_V1_STR, tags=["health"])
app.include_router(cron.router, prefix=f"{settings.API_V1_STR}/cron", tags=["cron"])
app.include_router(items.router, prefix=f"{settings.API_V1_STR}/items", tags=["items"])
app.include_router(sources.router, prefix=f"{settings.API_V1_STR}/sources", tags=["sources"])
app.include_router(runs.router, prefix=f"{settings.API_V1_STR}/runs", tags=["runs"])
app.include_router(admin.router, prefix=f"{settings.API_V1_STR}/admin", tags=["admin"])


def main() -> None:
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=not settings.is_production,
    )


if __name__ == "__main__":
    main()
