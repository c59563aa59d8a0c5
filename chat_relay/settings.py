from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True)

    # Server settings
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # WebSocket endpoint path, shares the port with the static client UI
    WS_PATH: str = "/"

    # Directory with the static client UI, mounted only if it exists
    STATIC_DIR: str = str(Path(__file__).resolve().parent.parent / "public")

    # Time-of-day format stamped on private messages
    TIMESTAMP_FORMAT: str = "%H:%M"

    # Logging settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_FILE_PATH: str = "chat_relay_errors.log"
    LOG_EXCLUDED_PATHS: list[str] = ["/metrics", "/health"]


app_settings = Settings()
