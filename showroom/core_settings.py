from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "showroom"
    POSTGRES_USER: str = "showroom"
    POSTGRES_PASSWORD: str = "showroom"
    # Full SQLAlchemy URL; wins over the POSTGRES_* fields when set
    DATABASE_URL: Optional[str] = None
    REDIS_URL: Optional[str] = None
    VIEW_CACHE_TTL: int = 60
    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"
    ACCESS_TOKEN_MINUTES: int = 60 * 24 * 7
    ADMIN_USERNAME: str = "admin@showroom"
    ADMIN_PASSWORD: str = "change-me"
    LOW_STOCK_THRESHOLD: int = 10
    LOG_LEVEL: str = "INFO"
    RUN_MIGRATIONS: bool = True

    class Config:
        env_file = ".env"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

@lru_cache
def get_settings() -> Settings:
    return Settings()
