"""
AniDB <-> TvDB cross-references.

A cross-reference maps the start of an AniDB episode run (anime, episode
type, episode number) to a TvDB series, season and episode number. Unless a
link is additive, linking first clears every cross-reference of the anime.
Each removal queues a web cache delete, each new link a web cache send.
"""
import logging
from datetime import datetime
from typing import List, Optional

from tvsync.db.repository import Repository
from tvsync.models.crossref import CrossRefSource, CrossRefTvDB, EpisodeType
from tvsync.schemas import (
    CrossRefResponse, LinkOutcome, SearchAnimeJob, TraktSearchAnimeJob, UnlinkOutcome,
    UpdateAnimeStatsJob, UpdateSeriesJob, WebCacheDeleteXRefJob, WebCacheSendXRefJob,
)
from tvsync.services.queue import JobQueue
from tvsync.services.series import SeriesSynchronizer

logger = logging.getLogger(__name__)


class CrossReferenceLinker:
    def __init__(self, cross_refs: Repository, episode_cross_refs: Repository, trakt_cross_refs: Repository,
                 anime: Repository, series_sync: SeriesSynchronizer, queue: JobQueue,
                 trakt_enabled: bool = False):
        self.cross_refs = cross_refs
        self.episode_cross_refs = episode_cross_refs
        self.trakt_cross_refs = trakt_cross_refs
        self.anime = anime
        self.series_sync = series_sync
        self.queue = queue
        self.trakt_enabled = trakt_enabled

    def get_links(self, anime_id: int) -> List[CrossRefTvDB]:
        return self.cross_refs.list_by(anime_id=anime_id)

    def link(self, anime_id: int, episode_type: EpisodeType, episode_number: int,
             tvdb_id: int, tvdb_season_number: int, tvdb_episode_number: int,
             source: CrossRefSource = CrossRefSource.USER, additive: bool = False,
             exclude_from_web_cache: bool = False) -> LinkOutcome:
        # Resolved before anything is removed, a provider failure leaves the links as they were
        tv_series = self.series_sync.series.get_by(series_id=tvdb_id)
        known = tv_series is not None
        if not known:
            tv_series = self.series_sync.get_series_info(tvdb_id, force_refresh=True)

        removed = 0
        if not additive:
            logger.info(f"Removing All TvDB Links for: {anime_id}")
            removed = self.remove_all_links(anime_id, update_stats=False)

        # Known series get refreshed in the background
        if known:
            self.queue.enqueue(UpdateSeriesJob(series_id=tvdb_id, force_refresh=False))

        natural_key = dict(
            tvdb_id=tvdb_id,
            tvdb_season_number=tvdb_season_number,
            tvdb_start_episode_number=tvdb_episode_number,
            anime_id=anime_id,
            anidb_start_episode_type=int(episode_type),
            anidb_start_episode_number=episode_number,
        )
        with self.cross_refs.begin_add_or_update_by(**natural_key) as upd:
            for column, value in natural_key.items():
                setattr(upd.entity, column, value)
            # Best effort: a series lookup failure leaves the title blank
            if tv_series is not None:
                upd.entity.tvdb_title = tv_series.series_name
            upd.entity.cross_ref_source = int(source)
            xref = upd.commit()

        logger.info(
            f"Adding TvDB Link: AniDB(ID:{anime_id}|Type:{episode_type.name}|Number:{episode_number}) -> "
            f"TvDB(ID:{tvdb_id}|Season:{tvdb_season_number}|Number:{tvdb_episode_number})"
        )

        if not exclude_from_web_cache:
            self.queue.enqueue(WebCacheSendXRefJob(cross_ref_id=xref.id))

        self._invalidate_trakt(anime_id)
        self.queue.enqueue(UpdateAnimeStatsJob(anime_id=anime_id))

        return LinkOutcome(
            cross_ref=CrossRefResponse.model_validate(xref),
            removed=removed,
            series_found=tv_series is not None,
            propagated=not exclude_from_web_cache,
        )

    def unlink(self, anime_id: int, episode_type: EpisodeType, episode_number: int,
               tvdb_id: int, tvdb_season_number: int, tvdb_episode_number: int) -> UnlinkOutcome:
        xref = self.cross_refs.get_by(
            tvdb_id=tvdb_id,
            tvdb_season_number=tvdb_season_number,
            tvdb_start_episode_number=tvdb_episode_number,
            anime_id=anime_id,
            anidb_start_episode_type=int(episode_type),
            anidb_start_episode_number=episode_number,
        )
        if xref is None:
            return UnlinkOutcome(removed=False)

        self.cross_refs.delete(xref.id)
        self.queue.enqueue(UpdateAnimeStatsJob(anime_id=anime_id))
        self._queue_web_cache_delete(xref)
        logger.info(f"Removed TvDB Link {xref.id} of anime {anime_id}")
        return UnlinkOutcome(removed=True)

    def remove_all_links(self, anime_id: int, episode_type: Optional[EpisodeType] = None,
                         update_stats: bool = True) -> int:
        """
        Delete the cross-references of an anime, optionally only those starting
        at ``episode_type``. Returns the number of removed rows.
        """
        self.trakt_cross_refs.delete_by(anime_id=anime_id)

        removed = 0
        for xref in self.cross_refs.list_by(anime_id=anime_id):
            if episode_type is not None and xref.anidb_start_episode_type != int(episode_type):
                continue
            if self.cross_refs.delete(xref.id):
                self._queue_web_cache_delete(xref)
                removed += 1

        if update_stats and removed:
            self.queue.enqueue(UpdateAnimeStatsJob(anime_id=anime_id))
        return removed

    def link_episode(self, anidb_episode_id: int, tvdb_episode_id: int, anime_id: int):
        """Pin one AniDB episode to one TvDB episode."""
        with self.episode_cross_refs.begin_add_or_update_by(anidb_episode_id=anidb_episode_id) as upd:
            upd.entity.anime_id = anime_id
            upd.entity.anidb_episode_id = anidb_episode_id
            upd.entity.tvdb_episode_id = tvdb_episode_id
            xref = upd.commit()

        self.queue.enqueue(UpdateAnimeStatsJob(anime_id=anime_id))
        logger.debug(f"Changed tvdb episode association: {anidb_episode_id}")
        return xref

    def scan_for_unlinked(self) -> List[int]:
        """Queue a search job for every searchable catalog entry without a link."""
        already_linked = {xref.anime_id for xref in self.cross_refs.get_all()}

        queued = []
        for anime in self.anime.get_all():
            if anime.anime_id in already_linked:
                continue
            if not anime.search_on_tvdb:
                continue
            logger.debug(f"Found anime without tvDB association: {anime.title}")
            if anime.tvdb_link_disabled:
                logger.debug(f"Skipping scan tvDB link because it is disabled: {anime.title}")
                continue
            self.queue.enqueue(SearchAnimeJob(anime_id=anime.anime_id, force_refresh=False))
            queued.append(anime.anime_id)
        return queued

    def search_and_link(self, anime_id: int, force_refresh: bool = False) -> Optional[LinkOutcome]:
        """
        Search TvDB by the catalog title and link when it matches exactly one
        series. Anime that already have a link are left alone unless forced.
        """
        anime = self.anime.get_by(anime_id=anime_id)
        if anime is None:
            logger.warning(f"Anime {anime_id} not in the catalog, skipping TvDB search")
            return None
        if anime.tvdb_link_disabled:
            logger.debug(f"TvDB link disabled for: {anime.title}")
            return None
        if not force_refresh and self.cross_refs.count_by(anime_id=anime_id):
            return None

        results = self.series_sync.search(anime.title)
        logger.info(f"Found {len(results)} tvdb results for {anime.title}")
        if len(results) != 1:
            return None

        match = results[0]
        logger.info(f"Linking {anime.title} to TvDB series {match.series_id} ({match.series_name})")
        return self.link(anime_id, EpisodeType.EPISODE, 1, match.series_id, 1, 1,
                         source=CrossRefSource.AUTOMATIC)

    def update_stats(self, anime_id: int):
        """Recompute the link counters of a catalog entry."""
        anime = self.anime.get_by(anime_id=anime_id)
        if anime is None:
            return None
        link_count = self.cross_refs.count_by(anime_id=anime_id)
        episode_link_count = self.episode_cross_refs.count_by(anime_id=anime_id)
        with self.anime.begin_update(anime) as upd:
            if upd.original is None:
                return None
            upd.entity.tvdb_link_count = link_count
            upd.entity.tvdb_episode_link_count = episode_link_count
            upd.entity.stats_updated_at = datetime.now()
            return upd.commit()

    def update_all_info(self, force: bool = False) -> List[int]:
        """Queue a refresh of every linked TvDB series."""
        series_ids = sorted({xref.tvdb_id for xref in self.cross_refs.get_all()})
        for series_id in series_ids:
            self.queue.enqueue(UpdateSeriesJob(series_id=series_id, force_refresh=force))
        return series_ids

    def _queue_web_cache_delete(self, xref: CrossRefTvDB):
        self.queue.enqueue(WebCacheDeleteXRefJob(
            anime_id=xref.anime_id,
            anidb_episode_type=xref.anidb_start_episode_type,
            anidb_episode_number=xref.anidb_start_episode_number,
            tvdb_id=xref.tvdb_id,
            tvdb_season_number=xref.tvdb_season_number,
            tvdb_episode_number=xref.tvdb_start_episode_number,
        ))

    def _invalidate_trakt(self, anime_id: int):
        # Trakt links are derived from the TvDB ones, so they are searched again
        if not self.trakt_enabled:
            return
        self.trakt_cross_refs.delete_by(anime_id=anime_id)
        self.queue.enqueue(TraktSearchAnimeJob(anime_id=anime_id, force_refresh=False))
