import logging
import threading
from typing import Optional

from celery.signals import worker_process_shutdown

from tvsync.core.config import settings
from tvsync.db.session import SessionLocal
from tvsync.services.engine import SyncEngine, build_engine
from tvsync.services.queue import CeleryJobQueue

logger = logging.getLogger(__name__)

_engine: Optional[SyncEngine] = None
_engine_lock = threading.Lock()


def get_engine() -> SyncEngine:
    """The engine of this worker process, built on first use."""
    global _engine
    with _engine_lock:
        if _engine is None:
            from tvsync.core.celery_app import celery_app
            _engine = build_engine(settings, SessionLocal, CeleryJobQueue(celery_app))
        return _engine


@worker_process_shutdown.connect
def close_engine(**kwargs):
    global _engine
    with _engine_lock:
        if _engine is not None:
            logger.info("Closing TvDB sync engine")
            _engine.close()
            _engine = None
