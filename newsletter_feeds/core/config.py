from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    service_token: str = Field(alias="SERVICE_TOKEN")

    db_path: str = Field(default="/data/app.db", alias="DB_PATH")

    request_timeout_seconds: int = Field(default=10, alias="REQUEST_TIMEOUT_SECONDS")
    user_agent: str = Field(default="Mozilla/5.0 (compatible; RSS Newsletter Bot/1.0)", alias="USER_AGENT")

    # Feeds fetched by anyone within this window are reused for everyone
    cache_window_hours: float = Field(default=3, alias="CACHE_WINDOW_HOURS")
    article_limit: int = Field(default=100, alias="ARTICLE_LIMIT")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

settings = Settings()
