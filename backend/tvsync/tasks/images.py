import logging

from tvsync.core.celery_app import celery_app
from tvsync.models.tvdb_image import ImageType
from tvsync.tasks.worker import get_engine

logger = logging.getLogger(__name__)


@celery_app.task
def download_image_task(image_type: str, entity_id: int, force_download: bool = False):
    path = get_engine().downloader.download(ImageType(image_type), entity_id, force_download)
    if path is None:
        return f"Image {image_type}/{entity_id} not downloaded"
    return path
