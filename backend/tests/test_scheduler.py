"""
Tests for the incremental TvDB refresh
"""
import time
from datetime import datetime, timedelta

import pytest

from tvsync.models.crossref import EpisodeType
from tvsync.schemas import UpdateSeriesJob


@pytest.fixture
def scheduler(engine, fake_tvdb, queue):
    for series_id, name in [(1, "Cowboy Bebop"), (2, "Trigun"), (3, "Planetes")]:
        fake_tvdb.add_series(series_id, name)
        engine.link_cross_reference(series_id * 10, EpisodeType.EPISODE, 1, series_id, 1, 1)
    queue.clear()
    return engine.scheduler


def save_checkpoint(scheduler, cursor):
    with scheduler.checkpoints.begin_add_or_update_by(update_type=int(scheduler.update_type)) as upd:
        upd.entity.update_type = int(scheduler.update_type)
        upd.entity.last_update = datetime.now() - timedelta(days=1)
        upd.entity.update_details = str(cursor)
        upd.commit()


def queued_series(queue):
    return sorted(job.series_id for job in queue.of_type(UpdateSeriesJob))


class TestIncrementalSync:
    """Tests for run_incremental_sync"""

    def test_full_pass_without_checkpoint(self, engine, scheduler, fake_tvdb, queue):
        """Test the first pass queues every linked series and stores the server time"""
        now = int(time.time())
        fake_tvdb.server_time = now

        outcome = engine.run_incremental_sync()

        assert outcome.full_pass is True
        assert sorted(outcome.updated_ids) == [1, 2, 3]
        assert queued_series(queue) == [1, 2, 3]
        assert outcome.checkpoint_advanced is True
        assert scheduler.get_checkpoint().update_details == str(now)

    def test_delta_pass_intersects_local_series(self, engine, scheduler, fake_tvdb, queue):
        """Test only linked series reported as updated are queued"""
        now = int(time.time())
        save_checkpoint(scheduler, now - 3600)
        fake_tvdb.server_time = now
        fake_tvdb.updates = [(2, now - 1800), (99, now - 1200), (3, now - 600)]

        outcome = engine.run_incremental_sync()

        assert outcome.full_pass is False
        assert outcome.updated_ids == [2, 3]
        assert queued_series(queue) == [2, 3]
        assert scheduler.get_checkpoint().update_details == str(now)

    def test_offline_provider_leaves_checkpoint(self, engine, scheduler, fake_tvdb, queue):
        """Test an unreachable provider changes nothing"""
        save_checkpoint(scheduler, 1000)
        fake_tvdb.failing_paths.add("/languages")

        outcome = engine.run_incremental_sync()

        assert outcome.provider_reachable is False
        assert queue.jobs == []
        assert scheduler.get_checkpoint().update_details == "1000"

    def test_authentication_failure_is_offline(self, engine, scheduler, fake_tvdb):
        fake_tvdb.api_key = "revoked"
        engine.client.session.invalidate()
        outcome = engine.run_incremental_sync()
        assert outcome.provider_reachable is False
        assert scheduler.get_checkpoint() is None

    def test_failed_feed_leaves_checkpoint(self, engine, scheduler, fake_tvdb, queue):
        """Test a failed updates feed is a failed pass"""
        now = int(time.time())
        save_checkpoint(scheduler, now - 3600)
        fake_tvdb.server_time = now
        fake_tvdb.failing_paths.add("/updated/query")

        outcome = engine.run_incremental_sync()

        assert outcome.checkpoint_advanced is False
        assert queue.jobs == []
        assert scheduler.get_checkpoint().update_details == str(now - 3600)

    def test_checkpoint_never_regresses(self, engine, scheduler, fake_tvdb):
        """Test a server time older than the stored cursor keeps the cursor"""
        now = int(time.time())
        save_checkpoint(scheduler, now)
        fake_tvdb.server_time = now - 7200

        outcome = engine.run_incremental_sync()

        assert outcome.checkpoint_advanced is False
        assert scheduler.get_checkpoint().update_details == str(now)

    def test_failed_enqueue_leaves_checkpoint(self, engine, scheduler, fake_tvdb, queue):
        def refuse(job):
            raise ConnectionError("broker down")

        queue.enqueue = refuse
        fake_tvdb.server_time = int(time.time())

        outcome = engine.run_incremental_sync()

        assert outcome.updated_ids == []
        assert outcome.checkpoint_advanced is False
        assert scheduler.get_checkpoint() is None


class TestIsDue:
    """Tests for is_due"""

    def test_due_without_checkpoint(self, scheduler):
        assert scheduler.is_due(24) is True

    def test_due_after_frequency(self, scheduler):
        save_checkpoint(scheduler, 1000)
        assert scheduler.is_due(12) is True
        assert scheduler.is_due(48) is False
