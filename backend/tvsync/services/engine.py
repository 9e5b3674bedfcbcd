"""
Composition root of the synchronization engine.

One ``SyncEngine`` is built per process (FastAPI lifespan, Celery worker
start) and shared by reference; it owns the only rate limiter and the only
TvDB session of that process.
"""
import logging
from typing import Optional

import httpx
from sqlalchemy.orm import sessionmaker

from tvsync.db.repository import KeyedLock, Repository
from tvsync.models.anime import AnimeSeries
from tvsync.models.crossref import CrossRefSource, CrossRefTrakt, CrossRefTvDB, CrossRefTvDBEpisode, EpisodeType
from tvsync.models.scheduled_update import ScheduledUpdate
from tvsync.models.tvdb_episode import TvDBEpisode
from tvsync.models.tvdb_image import IMAGE_MODELS, ImageType
from tvsync.models.tvdb_series import TvDBSeries
from tvsync.schemas import IncrementalSyncOutcome, LinkOutcome, SeriesSyncOutcome, UnlinkOutcome
from tvsync.services.downloader import ImageDownloader, create_image_downloader
from tvsync.services.image_store import ImageStore
from tvsync.services.images import ImageAcquisitionPolicy, policies_from_settings
from tvsync.services.linker import CrossReferenceLinker
from tvsync.services.queue import JobQueue
from tvsync.services.rate_limiter import RateLimiter
from tvsync.services.scheduler import IncrementalSyncScheduler
from tvsync.services.series import SeriesSynchronizer
from tvsync.services.tvdb import TvDBClient, create_tvdb_client
from tvsync.services.webcache import TraktLinker, WebCacheClient, create_trakt_linker, create_web_cache_client

logger = logging.getLogger(__name__)


class SyncEngine:
    def __init__(self, client: TvDBClient, series_sync: SeriesSynchronizer, images: ImageAcquisitionPolicy,
                 linker: CrossReferenceLinker, scheduler: IncrementalSyncScheduler, image_store: ImageStore,
                 downloader: ImageDownloader, web_cache: WebCacheClient, trakt: TraktLinker,
                 repositories: dict, settings):
        self.client = client
        self.series_sync = series_sync
        self.images = images
        self.linker = linker
        self.scheduler = scheduler
        self.image_store = image_store
        self.downloader = downloader
        self.web_cache = web_cache
        self.trakt = trakt
        self.repositories = repositories
        self.settings = settings

    def synchronize_series(self, series_id: int, force_refresh: bool = False, download_images: bool = True) -> SeriesSyncOutcome:
        return self.series_sync.synchronize_series(series_id, force_refresh, download_images)

    def link_cross_reference(self, anime_id: int, episode_type: EpisodeType, episode_number: int,
                             tvdb_id: int, tvdb_season_number: int, tvdb_episode_number: int,
                             source: CrossRefSource = CrossRefSource.USER, additive: bool = False,
                             exclude_from_web_cache: bool = False) -> LinkOutcome:
        return self.linker.link(anime_id, episode_type, episode_number, tvdb_id, tvdb_season_number,
                                tvdb_episode_number, source, additive, exclude_from_web_cache)

    def unlink_cross_reference(self, anime_id: int, episode_type: EpisodeType, episode_number: int,
                               tvdb_id: int, tvdb_season_number: int, tvdb_episode_number: int) -> UnlinkOutcome:
        return self.linker.unlink(anime_id, episode_type, episode_number, tvdb_id,
                                  tvdb_season_number, tvdb_episode_number)

    def run_incremental_sync(self) -> IncrementalSyncOutcome:
        return self.scheduler.run_incremental_sync()

    def close(self):
        self.client.close()
        self.downloader.close()
        self.web_cache.close()
        self.trakt.close()


def build_engine(settings, session_factory: sessionmaker, queue: JobQueue,
                 transport: Optional[httpx.BaseTransport] = None) -> SyncEngine:
    rate_limiter = RateLimiter(settings.TVDB_RATE_LIMIT_REQUESTS, settings.TVDB_RATE_LIMIT_PERIOD)
    client = create_tvdb_client(settings, rate_limiter, transport)

    locks = KeyedLock()
    repositories = {
        "anime": Repository(session_factory, AnimeSeries, locks),
        "series": Repository(session_factory, TvDBSeries, locks),
        "episodes": Repository(session_factory, TvDBEpisode, locks),
        "cross_refs": Repository(session_factory, CrossRefTvDB, locks),
        "episode_cross_refs": Repository(session_factory, CrossRefTvDBEpisode, locks),
        "trakt_cross_refs": Repository(session_factory, CrossRefTrakt, locks),
        "checkpoints": Repository(session_factory, ScheduledUpdate, locks),
    }
    image_repositories = {
        image_type: Repository(session_factory, model, locks) for image_type, model in IMAGE_MODELS.items()
    }
    repositories["images"] = image_repositories

    image_store = ImageStore(settings.IMAGES_DIR)
    downloader = create_image_downloader(
        settings, image_store, {**image_repositories, ImageType.EPISODE: repositories["episodes"]}, transport
    )
    images = ImageAcquisitionPolicy(client, image_repositories, image_store, queue,
                                    policies_from_settings(settings), settings.TVDB_LANGUAGE)
    series_sync = SeriesSynchronizer(client, repositories["series"], repositories["episodes"],
                                     images, queue, settings.TVDB_LANGUAGE)
    linker = CrossReferenceLinker(
        repositories["cross_refs"], repositories["episode_cross_refs"], repositories["trakt_cross_refs"],
        repositories["anime"], series_sync, queue,
        trakt_enabled=bool(settings.TRAKT_ENABLED and settings.TRAKT_AUTH_TOKEN),
    )
    scheduler = IncrementalSyncScheduler(client, repositories["checkpoints"], repositories["cross_refs"], queue)
    web_cache = create_web_cache_client(settings, transport)
    trakt = create_trakt_linker(settings, repositories["cross_refs"], repositories["trakt_cross_refs"], transport)

    logger.info(f"TvDB sync engine ready ({settings.TVDB_RATE_LIMIT_REQUESTS} requests per "
                f"{settings.TVDB_RATE_LIMIT_PERIOD}s)")
    return SyncEngine(client, series_sync, images, linker, scheduler, image_store, downloader,
                      web_cache, trakt, repositories, settings)
