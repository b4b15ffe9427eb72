from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://fluxa:dev_password@db/fluxa"
    CELERY_BROKER_URL: Optional[str] = None
    CELERY_RESULT_BACKEND: Optional[str] = None
    ENVIRONMENT: str = "development"
    CRON_SECRET: Optional[str] = None
    ADMIN_SECRET: Optional[str] = None
    INGESTION_SCHEDULE_SECONDS: float = 3600.0
    RAPIDAPI_KEY: Optional[str] = None
    TMDB_API_KEY: Optional[str] = None
    API_SPORTS_KEY: Optional[str] = None
    LOG_LEVEL: str = "INFO"
    API_V1_STR: str = "/api/v1"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


settings = Settings()
