from pydantic import BaseModel, Field
from typing import ClassVar, List, Optional
from datetime import datetime

from tvsync.models.crossref import CrossRefSource, EpisodeType
from tvsync.models.tvdb_image import ImageType


# --- Job descriptors (executed by the Celery worker) ---

class Job(BaseModel):
    task_name: ClassVar[str] = ""

    def task_kwargs(self) -> dict:
        return self.model_dump(mode="json")


class UpdateSeriesJob(Job):
    task_name: ClassVar[str] = "tvsync.tasks.tvdb.update_series_task"
    series_id: int
    force_refresh: bool = False


class UpdateEpisodeJob(Job):
    task_name: ClassVar[str] = "tvsync.tasks.tvdb.update_episode_task"
    episode_id: int
    info: str = ""
    download_images: bool = True
    force_refresh: bool = False


class SearchAnimeJob(Job):
    task_name: ClassVar[str] = "tvsync.tasks.tvdb.search_anime_task"
    anime_id: int
    force_refresh: bool = False


class UpdateAnimeStatsJob(Job):
    task_name: ClassVar[str] = "tvsync.tasks.tvdb.update_anime_stats_task"
    anime_id: int


class DownloadImageJob(Job):
    task_name: ClassVar[str] = "tvsync.tasks.images.download_image_task"
    image_type: ImageType
    entity_id: int  # Local row id
    force_download: bool = False


class WebCacheSendXRefJob(Job):
    task_name: ClassVar[str] = "tvsync.tasks.webcache.send_xref_task"
    cross_ref_id: int


class WebCacheDeleteXRefJob(Job):
    task_name: ClassVar[str] = "tvsync.tasks.webcache.delete_xref_task"
    anime_id: int
    anidb_episode_type: int
    anidb_episode_number: int
    tvdb_id: int
    tvdb_season_number: int
    tvdb_episode_number: int


class TraktSearchAnimeJob(Job):
    task_name: ClassVar[str] = "tvsync.tasks.webcache.trakt_search_anime_task"
    anime_id: int
    force_refresh: bool = False


# --- Provider payloads ---

class SeriesSearchResult(BaseModel):
    series_id: int
    series_name: Optional[str] = None
    aliases: List[str] = Field(default_factory=list)
    overview: Optional[str] = None
    first_aired: Optional[str] = None
    network: Optional[str] = None
    status: Optional[str] = None
    banner: Optional[str] = None


# --- Outcomes ---

class SeriesSyncOutcome(BaseModel):
    series_id: int
    found: bool
    series_name: Optional[str] = None
    episodes_listed: int = 0
    episodes_queued: int = 0
    episodes_deleted: int = 0
    episode_listing_failed: bool = False


class CrossRefResponse(BaseModel):
    id: int
    anime_id: int
    anidb_start_episode_type: EpisodeType
    anidb_start_episode_number: int
    tvdb_id: int
    tvdb_season_number: int
    tvdb_start_episode_number: int
    tvdb_title: Optional[str] = None
    cross_ref_source: CrossRefSource

    class Config:
        from_attributes = True


class LinkOutcome(BaseModel):
    cross_ref: CrossRefResponse
    removed: int = 0
    series_found: bool = True
    propagated: bool = False


class UnlinkOutcome(BaseModel):
    removed: bool


class ScanOutcome(BaseModel):
    queued_anime_ids: List[int]


class RefreshAllOutcome(BaseModel):
    queued_series_ids: List[int]


class IncrementalSyncOutcome(BaseModel):
    updated_ids: List[int] = Field(default_factory=list)
    provider_reachable: bool = True
    full_pass: bool = False
    server_time: Optional[str] = None
    checkpoint_advanced: bool = False


class CheckpointResponse(BaseModel):
    update_type: int
    last_update: datetime
    update_details: str

    class Config:
        from_attributes = True


# --- Requests ---

class LinkRequest(BaseModel):
    anime_id: int
    episode_type: EpisodeType = EpisodeType.EPISODE
    episode_number: int = 1
    tvdb_id: int
    tvdb_season_number: int = 1
    tvdb_episode_number: int = 1
    source: CrossRefSource = CrossRefSource.USER
    additive: bool = False
    exclude_from_web_cache: bool = False


class UnlinkRequest(BaseModel):
    anime_id: int
    episode_type: EpisodeType = EpisodeType.EPISODE
    episode_number: int = 1
    tvdb_id: int
    tvdb_season_number: int = 1
    tvdb_episode_number: int = 1
