from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    CORS_ORIGINS: str = "*"

    # --- Embedded SQLite backend ---
    # Explicit path wins; otherwise /data/checkin.db in production, ./checkin.db elsewhere.
    SQLITE_PATH: Optional[str] = None
    SQLITE_BUSY_TIMEOUT_MS: int = 30_000
    # DELETE journaling works on network-backed volumes where WAL does not.
    SQLITE_JOURNAL_MODE: str = "DELETE"

    # Startup initialization retry: attempt n waits BASE * 2**(n-1) seconds.
    DB_INIT_MAX_ATTEMPTS: int = 10
    DB_INIT_BASE_DELAY_SECONDS: float = 1.0

    # --- Networked Azure SQL backend (all four required) ---
    AZURE_SQL_SERVER: Optional[str] = None
    AZURE_SQL_DATABASE: Optional[str] = None
    AZURE_SQL_USERNAME: Optional[str] = None
    AZURE_SQL_PASSWORD: Optional[str] = None
    AZURE_SQL_DRIVER: str = "ODBC Driver 18 for SQL Server"
    DB_POOL_SIZE: int = 10
    DB_POOL_TIMEOUT_SECONDS: float = 30.0

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def azure_sql_credentials(self) -> dict[str, Optional[str]]:
        return {
            "AZURE_SQL_SERVER": self.AZURE_SQL_SERVER,
            "AZURE_SQL_DATABASE": self.AZURE_SQL_DATABASE,
            "AZURE_SQL_USERNAME": self.AZURE_SQL_USERNAME,
            "AZURE_SQL_PASSWORD": self.AZURE_SQL_PASSWORD,
        }

    @property
    def sqlite_path(self) -> str:
        if self.SQLITE_PATH:
            return self.SQLITE_PATH
        if self.APP_ENV == "production":
            return "/data/checkin.db"
        return "./checkin.db"


settings = Settings()
