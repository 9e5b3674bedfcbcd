"""
Incremental TvDB refresh.

Without a checkpoint every linked series is queued for refresh (full pass).
With one, only linked series the provider reports as changed since the
checkpoint are queued (delta pass). The provider time is read before any other
request and becomes the new checkpoint only when the whole pass succeeded, so
a failed pass is retried over the same window next time.
"""
import logging
from datetime import datetime
from typing import List, Optional, Set

from tvsync.core.exceptions import AuthenticationFailed
from tvsync.db.repository import Repository
from tvsync.models.scheduled_update import ScheduledUpdate, ScheduledUpdateType
from tvsync.schemas import IncrementalSyncOutcome, UpdateSeriesJob
from tvsync.services.queue import JobQueue
from tvsync.services.tvdb import TvDBClient

logger = logging.getLogger(__name__)


def _cursor_value(server_time: str) -> Optional[float]:
    try:
        return float(server_time)
    except (TypeError, ValueError):
        return None


class IncrementalSyncScheduler:
    def __init__(self, client: TvDBClient, checkpoints: Repository, cross_refs: Repository, queue: JobQueue,
                 update_type: ScheduledUpdateType = ScheduledUpdateType.TVDB_INFO):
        self.client = client
        self.checkpoints = checkpoints
        self.cross_refs = cross_refs
        self.queue = queue
        self.update_type = update_type

    def get_checkpoint(self) -> Optional[ScheduledUpdate]:
        return self.checkpoints.get_by(update_type=int(self.update_type))

    def is_due(self, frequency_hours: int) -> bool:
        """True when no pass succeeded within the last ``frequency_hours``."""
        checkpoint = self.get_checkpoint()
        if checkpoint is None:
            return True
        hours_since_last = (datetime.now() - checkpoint.last_update).total_seconds() / 3600
        logger.debug(f"Last tvdb info update was {hours_since_last:.1f} hours ago")
        return hours_since_last >= frequency_hours

    def local_series_ids(self) -> Set[int]:
        return {xref.tvdb_id for xref in self.cross_refs.get_all()}

    def run_incremental_sync(self) -> IncrementalSyncOutcome:
        # record the tvdb server time when we started, to include any possible misses
        try:
            server_time = self.client.get_server_time()
        except AuthenticationFailed as e:
            logger.error(f"Incremental TvDB update aborted: {e.message}")
            server_time = ""
        if not server_time:
            logger.warning("TvDB is offline, incremental update skipped")
            return IncrementalSyncOutcome(provider_reachable=False)

        all_ids = self.local_series_ids()
        checkpoint = self.get_checkpoint()
        last_server_time = checkpoint.update_details if checkpoint else ""

        outcome = IncrementalSyncOutcome(server_time=server_time)
        if last_server_time:
            try:
                updated = self.client.get_updated_series(last_server_time)
            except AuthenticationFailed as e:
                logger.error(f"Incremental TvDB update failed: {e.message}")
                return outcome
            if updated is None:
                logger.error("TvDB updates feed failed, checkpoint left unchanged")
                return outcome
            logger.debug(f"{len(updated)} series have been updated since last download")
            logger.debug(f"{len(all_ids)} TvDB series locally")
            series_ids = [series_id for series_id in updated if series_id in all_ids]
            logger.info(f"{len(series_ids)} TvDB local series have been updated since last download")
        else:
            outcome.full_pass = True
            series_ids = sorted(all_ids)
            logger.info(f"No TvDB checkpoint, queueing all {len(series_ids)} linked series")

        outcome.updated_ids = self._queue_refreshes(series_ids)
        if len(outcome.updated_ids) < len(series_ids):
            logger.error("Some TvDB refreshes could not be queued, checkpoint left unchanged")
            return outcome
        outcome.checkpoint_advanced = self._save_checkpoint(server_time)
        return outcome

    def _queue_refreshes(self, series_ids: List[int]) -> List[int]:
        queued = []
        for series_id in series_ids:
            try:
                self.queue.enqueue(UpdateSeriesJob(series_id=series_id, force_refresh=True))
                queued.append(series_id)
            except Exception:
                logger.exception(f"Failed to queue refresh of TvDB series {series_id}")
        return queued

    def _save_checkpoint(self, server_time: str) -> bool:
        """Store ``server_time`` unless it is older than the stored cursor."""
        with self.checkpoints.begin_add_or_update_by(update_type=int(self.update_type)) as upd:
            previous = _cursor_value(upd.entity.update_details) if upd.original is not None else None
            current = _cursor_value(server_time)
            advanced = previous is None or (current is not None and current >= previous)
            upd.entity.update_type = int(self.update_type)
            upd.entity.last_update = datetime.now()
            if advanced:
                upd.entity.update_details = server_time
            upd.commit()
        return advanced
