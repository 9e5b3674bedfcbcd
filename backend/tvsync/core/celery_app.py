from celery import Celery
from tvsync.core.config import settings

celery_app = Celery("worker", broker=settings.REDIS_URL, backend=settings.REDIS_URL)

celery_app.conf.update(task_track_started=True)

# Configure Celery Beat schedule
celery_app.conf.beat_schedule = {
    'tvdb-incremental-sync-every-hour': {
        'task': 'tvsync.tasks.tvdb.incremental_sync_task',
        'schedule': 3600.0,
    },
}
celery_app.conf.timezone = settings.TIMEZONE

# Import tasks to register them
from tvsync.tasks import tvdb  # noqa
from tvsync.tasks import images  # noqa
from tvsync.tasks import webcache  # noqa
