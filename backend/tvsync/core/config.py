from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "TvDB Sync"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # Database
    DATABASE_URL: str = "sqlite:////db/tvsync.db"

    # Redis / Celery
    REDIS_URL: str = "redis://localhost:6379/0"
    TIMEZONE: str = "Europe/Paris"

    # TvDB API
    TVDB_URL: str = "https://api.thetvdb.com"
    TVDB_ARTWORK_URL: str = "https://artworks.thetvdb.com/banners"
    TVDB_API_KEY: str = ""
    TVDB_USERNAME: Optional[str] = None
    TVDB_USER_KEY: Optional[str] = None
    TVDB_LANGUAGE: str = "en"
    TVDB_TIMEOUT: float = 30.0

    # Request budget: N requests per rolling period (seconds)
    TVDB_RATE_LIMIT_REQUESTS: int = 10
    TVDB_RATE_LIMIT_PERIOD: float = 1.0
    TVDB_PAGE_WORKERS: int = 4

    # Automatic artwork
    TVDB_AUTO_FANART: bool = True
    TVDB_AUTO_FANART_AMOUNT: int = 10
    TVDB_AUTO_POSTERS: bool = True
    TVDB_AUTO_POSTERS_AMOUNT: int = 10
    TVDB_AUTO_WIDEBANNERS: bool = True
    TVDB_AUTO_WIDEBANNERS_AMOUNT: int = 10
    TVDB_UPDATE_FREQUENCY_HOURS: int = 24

    IMAGES_DIR: str = "/data/images"

    # Downstream propagation
    WEBCACHE_URL: Optional[str] = None
    WEBCACHE_AUTH_KEY: Optional[str] = None
    WEBCACHE_TIMEOUT: float = 15.0
    TRAKT_ENABLED: bool = False
    TRAKT_URL: str = "https://api.trakt.tv"
    TRAKT_CLIENT_ID: Optional[str] = None
    TRAKT_AUTH_TOKEN: Optional[str] = None

    class Config:
        env_file = ".env"

settings = Settings()
