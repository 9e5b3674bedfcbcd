import logging
from typing import Dict, Optional

import httpx

from tvsync.db.repository import Repository
from tvsync.models.tvdb_image import ImageType, TvDBImageMixin
from tvsync.services.image_store import ImageStore

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class ImageDownloader:
    """Fetches artwork files from the TvDB artwork host into the image store."""

    def __init__(self, http: httpx.Client, artwork_url: str, image_store: ImageStore,
                 repositories: Dict[ImageType, Repository]):
        self.http = http
        self.artwork_url = artwork_url.rstrip("/")
        self.image_store = image_store
        self.repositories = repositories

    def close(self):
        self.http.close()

    def remote_url(self, remote_path: str) -> str:
        return f"{self.artwork_url}/{remote_path.lstrip('/')}"

    def download(self, image_type: ImageType, entity_id: int, force: bool = False) -> Optional[str]:
        """
        Download the file of one image (or episode) row and record its local
        path. Returns the path, or None when the row or its file name is gone
        or the transfer failed.
        """
        repo = self.repositories[image_type]
        row = repo.get_by(id=entity_id)
        if row is None:
            logger.debug(f"{image_type.value} image {entity_id} no longer exists, skipping download")
            return None

        remote_path = row.filename if image_type == ImageType.EPISODE else row.remote_path
        path = self.image_store.path_for(row)
        if not remote_path or not path:
            logger.warning(f"{image_type.value} image {entity_id} has no file name")
            return None

        if self.image_store.exists(row) and not force:
            logger.debug(f"Image already on disk: {path}")
        else:
            url = self.remote_url(remote_path)
            try:
                with self.http.stream("GET", url) as response:
                    response.raise_for_status()
                    self.image_store.write_image(path, response.iter_bytes(chunk_size=CHUNK_SIZE))
            except httpx.HTTPError as e:
                logger.error(f"Failed to download {url}: {e}")
                self._finish(repo, row, None)
                return None
            logger.info(f"Image downloaded: {path}")

        self._finish(repo, row, path)
        return path

    @staticmethod
    def _finish(repo: Repository, row, path: Optional[str]):
        """Record the local file of the row and release its pending download."""
        pending = isinstance(row, TvDBImageMixin)
        with repo.begin_update(row) as upd:
            if upd.original is None:
                # Deleted while downloading
                return
            changed = False
            if path and upd.entity.local_path != path:
                upd.entity.local_path = path
                changed = True
            if pending and upd.entity.download_queued_at is not None:
                upd.entity.download_queued_at = None
                changed = True
            if changed:
                upd.commit()


def create_image_downloader(settings, image_store: ImageStore, repositories: Dict[ImageType, Repository],
                            transport: Optional[httpx.BaseTransport] = None) -> ImageDownloader:
    http = httpx.Client(timeout=settings.TVDB_TIMEOUT, follow_redirects=True, transport=transport)
    return ImageDownloader(http, settings.TVDB_ARTWORK_URL, image_store, repositories)
