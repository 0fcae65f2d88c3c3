from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


BRANCHES = ["CS", "IT", "EE", "ME", "CE", "EC", "CT"]
SEMESTERS = ["S1", "S2", "S3", "S4", "S5", "S6", "S7", "S8"]
SECTIONS = ["A", "B", "C", "D"]


class Settings(BaseSettings):
    """
    All config comes from .env file.
    Change values in .env and they apply everywhere.
    """

    # ── Database ──────────────────────────────────────────
    DATABASE_URL: str       # asyncpg in production, aiosqlite in tests

    # ── JWT ───────────────────────────────────────────────
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # ── CORS ──────────────────────────────────────────────
    ALLOWED_ORIGINS: str = "http://localhost:5173"

    # ── App ───────────────────────────────────────────────
    APP_ENV: str = "production"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Document storage ──────────────────────────────────
    MINIO_ENDPOINT: str = "127.0.0.1:9000"
    MINIO_ACCESS_KEY: str = ""
    MINIO_SECRET_KEY: str = ""
    MINIO_BUCKET: str = "capms-activity-documents"
    MINIO_SECURE: bool = False
    MINIO_PUBLIC_URL: str | None = None  # optional (if you want public file links)

    # ── Points policy ─────────────────────────────────────
    REQUIRED_TOTAL_POINTS: int = 100
    LOW_POINTS_THRESHOLD: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def origins_list(self) -> list[str]:
        """Splits comma-separated ALLOWED_ORIGINS into a list."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()


# Single instance used across the entire app
settings = get_settings()
