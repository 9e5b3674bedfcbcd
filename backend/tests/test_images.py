"""
Tests for automatic artwork acquisition
"""
from datetime import datetime, timedelta

import pytest

from tvsync.models.tvdb_image import ImageType
from tvsync.schemas import DownloadImageJob
from tvsync.services.images import PENDING_DOWNLOAD_TTL

SERIES_ID = 76885


@pytest.fixture
def images(engine, fake_tvdb):
    fake_tvdb.add_series(SERIES_ID)
    return engine.images


@pytest.fixture
def fanart_repo(engine):
    return engine.repositories["images"][ImageType.FANART]


def put_on_disk(engine, image_type, remote_path):
    path = engine.image_store.get_full_image_path(image_type, SERIES_ID, remote_path)
    engine.image_store.write_image(path, [b"\xff\xd8image"])
    return path


class TestReconcile:
    """Tests for the per-category cap and stale cleanup"""

    def test_cap_limits_rows_and_downloads(self, images, fanart_repo, fake_tvdb, queue):
        """Test 10 candidates with a cap of 5 keep and queue exactly 5"""
        fake_tvdb.add_images(SERIES_ID, "fanart", 10)

        result = images.refresh_category(SERIES_ID, ImageType.FANART)

        assert result.kept == 5
        assert result.queued == 5
        assert sorted(row.image_id for row in fanart_repo.list_by(series_id=SERIES_ID)) == [1, 2, 3, 4, 5]
        jobs = queue.of_type(DownloadImageJob)
        assert len(jobs) == 5
        assert all(job.image_type == ImageType.FANART for job in jobs)

    def test_stale_rows_removed_even_when_disabled(self, images, fanart_repo, fake_tvdb):
        """Test rows the provider no longer lists are deleted whatever their enabled flag"""
        with fanart_repo.begin_add_or_update_by(image_id=999) as upd:
            upd.entity.image_id = 999
            upd.entity.series_id = SERIES_ID
            upd.entity.enabled = False
            upd.entity.remote_path = "fanart/original/old.jpg"
            upd.commit()
        fake_tvdb.add_images(SERIES_ID, "fanart", 2)

        result = images.refresh_category(SERIES_ID, ImageType.FANART)

        assert result.deleted == 1
        assert fanart_repo.get_by(image_id=999) is None
        assert fanart_repo.count_by(series_id=SERIES_ID) == 2

    def test_repeated_runs_are_idempotent(self, images, fanart_repo, fake_tvdb, queue):
        """Test a second run against the same candidates leaves the rows and the queue unchanged"""
        fake_tvdb.add_images(SERIES_ID, "fanart", 8)

        images.refresh_category(SERIES_ID, ImageType.FANART)
        first = {row.image_id: row.id for row in fanart_repo.list_by(series_id=SERIES_ID)}
        images.refresh_category(SERIES_ID, ImageType.FANART)
        second = {row.image_id: row.id for row in fanart_repo.list_by(series_id=SERIES_ID)}

        assert first == second
        assert len(second) == 5
        # The downloads of the first run are still pending
        assert len(queue.of_type(DownloadImageJob)) == 5

    def test_existing_enabled_flag_kept(self, images, fanart_repo, fake_tvdb):
        """Test a user-disabled image stays disabled across refreshes"""
        fake_tvdb.add_images(SERIES_ID, "fanart", 1)
        images.refresh_category(SERIES_ID, ImageType.FANART)
        row = fanart_repo.get_by(image_id=1)
        with fanart_repo.begin_update(row) as upd:
            upd.entity.enabled = False
            upd.commit()

        images.refresh_category(SERIES_ID, ImageType.FANART)

        assert fanart_repo.get_by(image_id=1).enabled is False


class TestAcquire:
    """Tests for download queueing"""

    def test_files_on_disk_are_not_queued(self, engine, images, fanart_repo, fake_tvdb, queue):
        """Test images already on disk count towards the cap and are not downloaded again"""
        candidates = fake_tvdb.add_images(SERIES_ID, "fanart", 5)
        for image in candidates:
            put_on_disk(engine, ImageType.FANART, image["fileName"])

        result = images.refresh_category(SERIES_ID, ImageType.FANART)

        assert result.queued == 0
        assert queue.of_type(DownloadImageJob) == []
        assert all(row.local_path for row in fanart_repo.list_by(series_id=SERIES_ID))

    def test_forced_refresh_requeues_files_on_disk(self, engine, images, fake_tvdb, queue):
        candidates = fake_tvdb.add_images(SERIES_ID, "fanart", 3)
        put_on_disk(engine, ImageType.FANART, candidates[0]["fileName"])

        result = images.refresh_category(SERIES_ID, ImageType.FANART, force=True)

        assert result.queued == 3
        assert all(job.force_download for job in queue.of_type(DownloadImageJob))

    def test_expired_pending_download_queued_again(self, images, fanart_repo, fake_tvdb, queue):
        """Test a download queued too long ago is assumed lost"""
        fake_tvdb.add_images(SERIES_ID, "fanart", 1)
        images.refresh_category(SERIES_ID, ImageType.FANART)
        row = fanart_repo.get_by(image_id=1)
        with fanart_repo.begin_update(row) as upd:
            upd.entity.download_queued_at = datetime.now() - PENDING_DOWNLOAD_TTL - timedelta(minutes=1)
            upd.commit()

        result = images.refresh_category(SERIES_ID, ImageType.FANART)

        assert result.queued == 1
        assert len(queue.of_type(DownloadImageJob)) == 2

    def test_auto_download_disabled(self, images, fanart_repo, fake_tvdb, queue):
        """Test a disabled category keeps its rows but queues nothing"""
        images.policies[ImageType.FANART].auto_download = False
        fake_tvdb.add_images(SERIES_ID, "fanart", 3)

        result = images.refresh_category(SERIES_ID, ImageType.FANART)

        assert result.queued == 0
        assert fanart_repo.count_by(series_id=SERIES_ID) == 3
        assert queue.of_type(DownloadImageJob) == []


class TestRefreshAll:
    """Tests for refresh_all"""

    def test_failed_listing_keeps_local_rows(self, images, fanart_repo, fake_tvdb):
        """Test a failed candidate query skips the category without deleting anything"""
        fake_tvdb.add_images(SERIES_ID, "fanart", 3)
        images.refresh_category(SERIES_ID, ImageType.FANART)
        fake_tvdb.failing_paths.add(f"/series/{SERIES_ID}/images/query")

        result = images.refresh_category(SERIES_ID, ImageType.FANART)

        assert result.skipped is True
        assert fanart_repo.count_by(series_id=SERIES_ID) == 3

    def test_category_without_images_is_cleared(self, engine, images, fake_tvdb):
        """Test rows of a category the summary no longer reports are removed"""
        posters = engine.repositories["images"][ImageType.POSTER]
        fake_tvdb.add_images(SERIES_ID, "poster", 2)
        images.refresh_all(SERIES_ID)
        assert posters.count_by(series_id=SERIES_ID) == 2

        fake_tvdb.images.clear()
        fake_tvdb.add_images(SERIES_ID, "fanart", 1)
        results = images.refresh_all(SERIES_ID)

        assert posters.count_by(series_id=SERIES_ID) == 0
        assert {r.image_type for r in results} == {ImageType.FANART, ImageType.POSTER, ImageType.WIDE_BANNER}

    def test_poster_category_merges_key_types(self, engine, images, fake_tvdb):
        posters = engine.repositories["images"][ImageType.POSTER]
        fake_tvdb.add_images(SERIES_ID, "poster", 2, start_id=1)
        fake_tvdb.add_images(SERIES_ID, "season", 2, start_id=10)

        images.refresh_all(SERIES_ID)

        assert sorted(row.image_id for row in posters.list_by(series_id=SERIES_ID)) == [1, 2, 10, 11]
