"""
Series and episode metadata refresh.

Series rows are refreshed synchronously; episode details are fetched lazily
through ``UpdateEpisodeJob`` so a large series does not block the caller.
"""
import logging
from datetime import datetime
from typing import List, Optional

from tvsync.db.repository import Repository
from tvsync.models.tvdb_episode import TvDBEpisode
from tvsync.models.tvdb_series import TvDBSeries
from tvsync.schemas import SeriesSearchResult, SeriesSyncOutcome, UpdateEpisodeJob
from tvsync.services.images import ImageAcquisitionPolicy
from tvsync.services.queue import JobQueue
from tvsync.services.tvdb import TvDBClient

logger = logging.getLogger(__name__)


class SeriesSynchronizer:
    def __init__(self, client: TvDBClient, series: Repository, episodes: Repository,
                 images: ImageAcquisitionPolicy, queue: JobQueue, language: str = "en"):
        self.client = client
        self.series = series
        self.episodes = episodes
        self.images = images
        self.queue = queue
        self.language = language

    def get_series_info(self, series_id: int, force_refresh: bool = False) -> Optional[TvDBSeries]:
        """
        Local series row, fetched from the provider when it is missing or a
        refresh is forced. None when the provider has nothing for the id.
        """
        local = self.series.get_by(series_id=series_id)
        if local is not None and not force_refresh:
            return local

        data = self.client.get_series(series_id)
        if not data:
            return local

        with self.series.begin_add_or_update_by(series_id=series_id) as upd:
            upd.entity.populate(data, self.language)
            upd.entity.series_id = series_id
            upd.entity.last_refreshed = datetime.now()
            return upd.commit()

    def search(self, criteria: str) -> List[SeriesSearchResult]:
        results = []
        for item in self.client.search_series(criteria):
            if not item or not item.get("id"):
                continue
            results.append(SeriesSearchResult(
                series_id=item["id"],
                series_name=item.get("seriesName"),
                aliases=item.get("aliases") or [],
                overview=item.get("overview"),
                first_aired=item.get("firstAired"),
                network=item.get("network"),
                status=item.get("status"),
                banner=item.get("banner"),
            ))
        return results

    def synchronize_series(self, series_id: int, force_refresh: bool = False, download_images: bool = True) -> SeriesSyncOutcome:
        """
        Refresh a series, its artwork and its episode list.

        Episodes that are new, changed upstream or forced get an update job;
        local episodes the provider no longer lists are deleted. When the
        listing failed the local episodes are left alone.
        """
        series = self.get_series_info(series_id, force_refresh)
        if series is None:
            logger.warning(f"TvDB series {series_id} not found")
            return SeriesSyncOutcome(series_id=series_id, found=False)

        outcome = SeriesSyncOutcome(series_id=series_id, found=True, series_name=series.series_name)

        if download_images:
            self.images.refresh_all(series_id, force_refresh)

        items = self.client.get_episodes(series_id)
        if items is None:
            logger.error(f"Episode listing of TvDB series {series_id} failed, keeping local episodes")
            outcome.episode_listing_failed = True
            return outcome

        logger.debug(f"Found {len(items)} Episode nodes")
        outcome.episodes_listed = len(items)

        local_episodes = {ep.episode_id: ep for ep in self.episodes.list_by(series_id=series_id)}
        listed_ids = set()
        for item in items:
            episode_id = item.get("id")
            if not episode_id:
                continue
            listed_ids.add(episode_id)

            local = local_episodes.get(episode_id)
            if local is not None and not force_refresh and local.last_updated == item.get("lastUpdated"):
                continue

            number = item.get("absoluteNumber")
            info = f"{series.series_name} - Episode {number if number is not None else 'X'}"
            self.queue.enqueue(UpdateEpisodeJob(
                episode_id=episode_id, info=info,
                download_images=download_images, force_refresh=force_refresh,
            ))
            outcome.episodes_queued += 1

        # get all the existing tvdb episodes, to see if any have been deleted
        for episode_id, local in local_episodes.items():
            if episode_id not in listed_ids and self.episodes.delete(local.id):
                outcome.episodes_deleted += 1

        logger.info(
            f"Synchronized TvDB series {series_id}: {outcome.episodes_listed} listed, "
            f"{outcome.episodes_queued} queued, {outcome.episodes_deleted} deleted"
        )
        return outcome

    def update_episode(self, episode_id: int, download_images: bool = True, force_refresh: bool = False) -> Optional[TvDBEpisode]:
        """Fetch an episode when missing or forced, then queue its still if wanted."""
        episode = self.episodes.get_by(episode_id=episode_id)
        if episode is None or force_refresh:
            data = self.client.get_episode(episode_id)
            if not data:
                return episode
            with self.episodes.begin_add_or_update_by(episode_id=episode_id) as upd:
                upd.entity.populate(data)
                upd.entity.episode_id = episode_id
                episode = upd.commit()

        if download_images:
            self.images.queue_episode_image(episode, force_refresh)
        return episode
