import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    geocoder_base_url: str
    geocoder_timeout_seconds: float
    geocoder_cache_seconds: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).")


def _getenv_float(name: str, default: float) -> float:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number (got {raw!r}).")


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///quietmap.db"),
        geocoder_base_url=_getenv("GEOCODER_BASE_URL", "https://api.postcodes.io"),
        geocoder_timeout_seconds=_getenv_float("GEOCODER_TIMEOUT_SECONDS", 5.0),
        geocoder_cache_seconds=_getenv_int("GEOCODER_CACHE_SECONDS", 60 * 60),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "GEOCODER_BASE_URL": s.geocoder_base_url,
        "GEOCODER_TIMEOUT_SECONDS": s.geocoder_timeout_seconds,
        "GEOCODER_CACHE_SECONDS": s.geocoder_cache_seconds,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,
        # JSON bodies only; image upload lives elsewhere
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
