from pydantic import BaseModel

from app.shared.config import config


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class AppEnvironConfig(BaseModel):
    DEBUG: bool = (config.get("DEBUG") or "false").strip().lower() == "true"

    # Registry persistence
    STORE_PATH: str = (config.get("STORE_PATH") or "").strip() or "store.db"

    # RTMP applications offered to the admin surface
    APPLICATIONS: list[str] = _split_csv(config.get("APPLICATIONS") or "stream") or ["stream"]

    # nginx-rtmp control module; empty disables dropping publishers
    CTRL_URL: str = (config.get("CTRL_URL") or "").strip()
    CTRL_TIMEOUT_SECONDS: float = float((config.get("CTRL_TIMEOUT_SECONDS") or "").strip() or 5)

    # Expiry sweeper period
    EXPIRE_INTERVAL_SECONDS: float = float(
        (config.get("EXPIRE_INTERVAL_SECONDS") or "").strip() or 10
    )

    # When set, admin routes require a matching X-Api-Key header
    ADMIN_API_KEY: str | None = (config.get("ADMIN_API_KEY") or "").strip() or None

    # Server
    API_HOST: str = (config.get("API_HOST") or "").strip() or "127.0.0.1"
    API_PORT: int = int((config.get("API_PORT") or "").strip() or 8080)
    # The registry lives in process memory, so more than one worker splits it
    API_WORKERS: int = int((config.get("API_WORKERS") or "").strip() or 1)


_app_environ_config = AppEnvironConfig()


def get_app_environ_config() -> AppEnvironConfig:
    return _app_environ_config
