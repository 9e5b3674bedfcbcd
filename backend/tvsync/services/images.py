"""
Automatic artwork for TvDB series.

For each category the provider's current candidates are reconciled against
the local rows (upsert the first ``keep_count`` candidates, delete everything
else), then downloads are queued until ``keep_count`` files are on disk.
Running a category twice against the same candidates and the same disk state
leaves the rows unchanged, and downloads still pending from the first run are
not queued again.
"""
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from tvsync.db.repository import Repository
from tvsync.models.tvdb_episode import TvDBEpisode
from tvsync.models.tvdb_image import ImageType
from tvsync.schemas import DownloadImageJob
from tvsync.services.image_store import ImageStore
from tvsync.services.queue import JobQueue
from tvsync.services.tvdb import TvDBClient

logger = logging.getLogger(__name__)

# A queued download older than this is assumed lost and queued again
PENDING_DOWNLOAD_TTL = timedelta(hours=1)


@dataclass
class CategoryPolicy:
    image_type: ImageType
    key_types: Tuple[str, ...]
    auto_download: bool = True
    keep_count: int = 10


@dataclass
class CategoryResult:
    image_type: ImageType
    kept: int = 0
    deleted: int = 0
    queued: int = 0
    skipped: bool = False


def policies_from_settings(settings) -> Dict[ImageType, CategoryPolicy]:
    return {
        ImageType.FANART: CategoryPolicy(
            ImageType.FANART, ("fanart",),
            settings.TVDB_AUTO_FANART, settings.TVDB_AUTO_FANART_AMOUNT,
        ),
        ImageType.POSTER: CategoryPolicy(
            ImageType.POSTER, ("poster", "season"),
            settings.TVDB_AUTO_POSTERS, settings.TVDB_AUTO_POSTERS_AMOUNT,
        ),
        ImageType.WIDE_BANNER: CategoryPolicy(
            ImageType.WIDE_BANNER, ("seasonwide", "series"),
            settings.TVDB_AUTO_WIDEBANNERS, settings.TVDB_AUTO_WIDEBANNERS_AMOUNT,
        ),
    }


class ImageAcquisitionPolicy:
    def __init__(self, client: TvDBClient, images: Dict[ImageType, Repository], image_store: ImageStore,
                 queue: JobQueue, policies: Dict[ImageType, CategoryPolicy], language: str = "en"):
        self.client = client
        self.images = images
        self.image_store = image_store
        self.queue = queue
        self.policies = policies
        self.language = language

    def fetch_candidates(self, series_id: int, image_type: ImageType) -> Optional[List[dict]]:
        """Provider candidates for a category, None if any of its queries failed."""
        candidates = []
        for key_type in self.policies[image_type].key_types:
            images = self.client.get_images(series_id, key_type)
            if images is None:
                return None
            candidates.extend(images)
        return candidates

    def reconcile(self, series_id: int, image_type: ImageType, candidates: List[dict]) -> Tuple[list, int]:
        """
        Upsert the first ``keep_count`` candidates and delete every other local
        row of the series in this category, enabled or not.

        Returns the kept rows and the number of deleted rows.
        """
        policy = self.policies[image_type]
        repo = self.images[image_type]

        kept = []
        valid_ids = set()
        for image in candidates:
            image_id = image.get("id") or 0
            if not image_id or image_id in valid_ids:
                continue
            if len(kept) >= policy.keep_count:
                break

            with repo.begin_add_or_update_by(image_id=image_id) as upd:
                if upd.original is None:
                    upd.entity.enabled = True
                upd.entity.populate(series_id, image, self.language)
                path = self.image_store.path_for(upd.entity)
                upd.entity.local_path = path if path and os.path.exists(path) else None
                kept.append(upd.commit())
            valid_ids.add(image_id)

        # delete any images from the database which are no longer valid
        deleted = 0
        for row in repo.list_by(series_id=series_id):
            if row.image_id not in valid_ids and repo.delete(row.id):
                deleted += 1

        if deleted:
            logger.info(f"Removed {deleted} stale {image_type.value} images of TvDB series {series_id}")
        return kept, deleted

    def acquire(self, series_id: int, image_type: ImageType, rows: list, force: bool = False) -> Tuple[int, int]:
        """
        Queue downloads until ``keep_count`` files of the category are on disk.

        Rows that are not on disk and did not fit under the cap are deleted.
        Returns the number of queued downloads and deleted rows.
        """
        policy = self.policies[image_type]
        if not policy.auto_download:
            return 0, 0

        repo = self.images[image_type]
        present = sum(1 for row in repo.list_by(series_id=series_id) if self.image_store.exists(row))

        queued = 0
        deleted = 0
        for row in rows:
            path = self.image_store.path_for(row)
            on_disk = bool(path) and os.path.exists(path)
            if on_disk and not force:
                continue

            # Re-downloading a file already counted does not use up the budget
            if path and (on_disk or present < policy.keep_count):
                if not on_disk:
                    present += 1
                if not force and self.download_pending(row):
                    continue
                if self._mark_queued(repo, row):
                    self.queue.enqueue(DownloadImageJob(image_type=image_type, entity_id=row.id, force_download=force))
                    queued += 1
            elif not on_disk:
                repo.delete(row.id)
                deleted += 1

        return queued, deleted

    @staticmethod
    def download_pending(row) -> bool:
        """A download job was queued for the row and has not finished or expired yet."""
        queued_at = row.download_queued_at
        return queued_at is not None and datetime.now() - queued_at < PENDING_DOWNLOAD_TTL

    @staticmethod
    def _mark_queued(repo: Repository, row) -> bool:
        with repo.begin_update(row) as upd:
            if upd.original is None:
                return False
            upd.entity.download_queued_at = datetime.now()
            upd.commit()
        return True

    def refresh_category(self, series_id: int, image_type: ImageType, force: bool = False) -> CategoryResult:
        result = CategoryResult(image_type)
        candidates = self.fetch_candidates(series_id, image_type)
        if candidates is None:
            logger.warning(f"Skipping {image_type.value} images of TvDB series {series_id}, listing failed")
            result.skipped = True
            return result

        rows, result.deleted = self.reconcile(series_id, image_type, candidates)
        result.queued, dropped = self.acquire(series_id, image_type, rows, force)
        result.deleted += dropped
        result.kept = len(rows) - dropped
        return result

    def refresh_all(self, series_id: int, force: bool = False) -> List[CategoryResult]:
        """
        Refresh every category of a series. Categories the provider reports no
        images for are reconciled against an empty candidate set.
        """
        summary = self.client.get_images_summary(series_id)
        if summary is None:
            logger.warning(f"No image summary for TvDB series {series_id}, skipping artwork")
            return []

        results = []
        for image_type, policy in self.policies.items():
            if any(summary.get(key_type) for key_type in policy.key_types):
                results.append(self.refresh_category(series_id, image_type, force))
            else:
                _, deleted = self.reconcile(series_id, image_type, [])
                results.append(CategoryResult(image_type, deleted=deleted))
        return results

    def queue_episode_image(self, episode: TvDBEpisode, force: bool = False) -> bool:
        if not episode.filename:
            return False
        if self.image_store.exists(episode) and not force:
            return False
        self.queue.enqueue(DownloadImageJob(image_type=ImageType.EPISODE, entity_id=episode.id, force_download=force))
        return True
