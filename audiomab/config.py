"""Application settings loaded from .env via pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

_DEFAULT_INVIDIOUS = ",".join(
    [
        "https://invidious.nerdvpn.de",
        "https://invidious.jing.rocks",
        "https://yt.artemislena.eu",
        "https://inv.nadeko.net",
    ]
)
_DEFAULT_PIPED = ",".join(
    [
        "https://pipedapi.kavin.rocks",
        "https://pipedapi.r4fo.com",
        "https://pipedapi.adminforge.de",
    ]
)


def _split_list(raw: str) -> list[str]:
    return [item.strip().rstrip("/") for item in raw.split(",") if item.strip()]


class Settings(BaseSettings):
    """Central configuration — values come from environment / .env file."""

    # Resolvers
    local_resolver_enabled: bool = False  # trusted/local deployment only
    ytdlp_cookiefile: str = ""
    ytdlp_api_url: str = ""
    invidious_instances: str = _DEFAULT_INVIDIOUS  # comma-separated, tried in order
    piped_instances: str = _DEFAULT_PIPED

    # Per-attempt timeouts (seconds)
    connect_timeout: float = 10.0
    search_timeout: float = 8.0
    video_timeout: float = 10.0
    playlist_timeout: float = 15.0
    stream_timeout: float = 1200.0  # end-to-end media relay

    # Limits
    search_limit: int = 15
    catalog_max_songs: int = 50
    recent_limit: int = 50

    # Lyrics
    lyrics_api_url: str = "https://lrclib.net"
    lyrics_timeout: float = 8.0

    # App
    cors_origins: str = "*"
    log_level: str = "INFO"

    # Database
    db_path: str = "./data/audiomab.db"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def invidious_instance_list(self) -> list[str]:
        return _split_list(self.invidious_instances)

    @property
    def piped_instance_list(self) -> list[str]:
        return _split_list(self.piped_instances)

    @property
    def cors_origins_list(self) -> list[str]:
        if self.cors_origins.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def db_abs_path(self) -> Path:
        """Return the database path as an absolute Path, creating parents if needed."""
        p = Path(self.db_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p.resolve()


@lru_cache
def get_settings() -> Settings:
    """Cached singleton so .env is read only once."""
    return Settings()
