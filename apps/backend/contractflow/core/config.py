from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


class Settings(BaseSettings):
    APP_NAME: str = "Contractflow Backend"
    ENV: str = "dev"

    # SQLite file next to apps/backend so the path does not depend on CWD
    _default_db_path = Path(__file__).resolve().parents[2] / "db.sqlite3"
    DATABASE_URL: str = f"sqlite:///{_default_db_path}"

    CORS_ORIGINS: list[str] = ["*"]
    # every "today" (overdue age, generation cut-off) is taken in this zone
    TIMEZONE: str = "America/Sao_Paulo"
    LOG_LEVEL: str = "INFO"

    # upper bound of occurrences materialized per contract in one run; the next run resumes
    GENERATION_MAX_OCCURRENCES_PER_RUN: int = 500

    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="CONTRACTFLOW_", case_sensitive=False)


settings = Settings()
