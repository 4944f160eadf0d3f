# tempchat/core/config.py
import os
from typing import List, Literal

from dotenv import load_dotenv


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Setup environment variables.
        - DATABASE_URL the SQLAlchemy URL of the store of record
        - PUB_SUB_SERVICE the fan-out backend: "local", "redis" or "google_pub_sub"
        - UPLOAD_DIR / PUBLIC_BASE_URL where shared files are written and served from
        - SWEEP_INTERVAL_SECONDS how often expired rooms are purged (0 disables)
    """

    # Load environment variables from the .env file
    load_dotenv()

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./tempchat.db")

    PUB_SUB_SERVICE: Literal["local", "redis", "google_pub_sub"] = os.getenv("PUB_SUB_SERVICE", "local")

    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_ACCESS_KEY: str = os.getenv("REDIS_ACCESS_KEY", "")
    REDIS_SSL: bool = _env_bool("REDIS_SSL")

    PROJECT_ID = os.getenv("PROJECT_ID", "")
    TOPIC_ID = os.getenv("TOPIC_ID", "")
    SUBSCRIPTION_ID = os.getenv("SUBSCRIPTION_ID", "")

    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "./uploads")
    PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
    MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(25 * 1024 * 1024)))

    DEFAULT_MEMBER_LIMIT: int = int(os.getenv("DEFAULT_MEMBER_LIMIT", "10"))
    DEFAULT_TIME_LIMIT_HOURS: int = int(os.getenv("DEFAULT_TIME_LIMIT_HOURS", "24"))
    JOIN_MAX_ATTEMPTS: int = int(os.getenv("JOIN_MAX_ATTEMPTS", "3"))
    SWEEP_INTERVAL_SECONDS: float = float(os.getenv("SWEEP_INTERVAL_SECONDS", "300"))

    # Client side (SyncCoordinator / RoomsApiClient)
    POLL_INTERVAL_SECONDS: float = float(os.getenv("POLL_INTERVAL_SECONDS", "5"))
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "5"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    CORS_ORIGINS: List[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


settings = Settings()
