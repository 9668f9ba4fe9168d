from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PORT: int = 8100
    UPLOAD_DIR: Path = Path("data/uploads")
    OUTPUT_DIR: Path = Path("data/outputs")
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]
    LOG_LEVEL: str = "INFO"

    # Remote generation service
    REMOTE_BASE_URL: str = "http://192.168.0.239:42004"
    # Only disable for a LAN service with a self-signed certificate
    REMOTE_VERIFY_TLS: bool = True
    HTTP_TIMEOUT_SECONDS: float = 60.0
    STREAM_TIMEOUT_SECONDS: float = 900.0

    DOWNLOAD_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    DOWNLOAD_BACKOFF_SECONDS: float = Field(default=1.0, ge=0)

    # None keeps job concurrency unbounded
    MAX_CONCURRENT_JOBS: int | None = None

    model_config = {"env_prefix": ""}


settings = Settings()
