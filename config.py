import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        auth_enabled: bool,
        token_secret: str,
        token_max_age_hours: int,
        cache_ttl_secs: float,
        cache_prune_minutes: int,
        page_size: int,
        max_page_size: int,
        cors_origins: list[str],
    ) -> None:
        self.database_url = database_url
        self.auth_enabled = auth_enabled
        self.token_secret = token_secret
        self.token_max_age_hours = token_max_age_hours
        self.cache_ttl_secs = cache_ttl_secs
        self.cache_prune_minutes = cache_prune_minutes
        self.page_size = page_size
        self.max_page_size = max_page_size
        self.cors_origins = cors_origins


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("EXPENSES_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "expenses.db"
    database_url = os.getenv("EXPENSES_DATABASE_URL", f"sqlite:///{default_db}")
    auth_enabled = _env_flag("EXPENSES_AUTH_ENABLED", True)
    token_secret = os.getenv(
        "EXPENSES_TOKEN_SECRET",
        "5d0c1e8f2b7a4e3c9a61f0d4b8e27c5a3f9d1b6e0a4c8f2d7b3e9a5c1f6d0b8e",
    )
    token_max_age_hours = int(os.getenv("EXPENSES_TOKEN_MAX_AGE_HOURS", "720"))
    cache_ttl_secs = float(os.getenv("EXPENSES_CACHE_TTL_SECS", "3600"))
    cache_prune_minutes = int(os.getenv("EXPENSES_CACHE_PRUNE_MINUTES", "10"))
    page_size = int(os.getenv("EXPENSES_PAGE_SIZE", "10"))
    max_page_size = int(os.getenv("EXPENSES_MAX_PAGE_SIZE", "100"))
    cors_origins = [
        origin.strip()
        for origin in os.getenv("EXPENSES_CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]
    return Settings(
        database_url=database_url,
        auth_enabled=auth_enabled,
        token_secret=token_secret,
        token_max_age_hours=token_max_age_hours,
        cache_ttl_secs=cache_ttl_secs,
        cache_prune_minutes=cache_prune_minutes,
        page_size=page_size,
        max_page_size=max_page_size,
        cors_origins=cors_origins,
    )
