import os
import re
from typing import Iterable, Optional

from tvsync.models.tvdb_image import ImageType


class ImageStore:
    """Where provider artwork lives on disk: ``<images_dir>/TvDB/<series id>/<category>/``."""

    def __init__(self, images_dir: str):
        self.images_dir = images_dir

    def sanitize_name(self, name: str) -> str:
        # Replace invalid characters with underscore
        return re.sub(r'[\\:*?"<>|]', '_', name)

    def ensure_directory(self, path: str):
        os.makedirs(path, exist_ok=True)

    def get_full_image_path(self, image_type: ImageType, series_id: int, remote_path: Optional[str]) -> Optional[str]:
        """Local path for an image, or None when the provider gave no file name."""
        if not remote_path:
            return None
        filename = os.path.basename(self.sanitize_name(remote_path.replace("\\", "/")))
        if not filename:
            return None
        return os.path.join(self.images_dir, "TvDB", str(series_id), image_type.value, filename)

    def path_for(self, image) -> Optional[str]:
        """Local path for an image row or an episode row."""
        if hasattr(image, "image_type"):
            return self.get_full_image_path(image.image_type, image.series_id, image.remote_path)
        return self.get_full_image_path(ImageType.EPISODE, image.series_id, image.filename)

    def exists(self, image) -> bool:
        path = self.path_for(image)
        return bool(path) and os.path.exists(path)

    def write_image(self, path: str, chunks: Iterable[bytes]):
        """Write to a sibling .part file and move it into place once complete."""
        self.ensure_directory(os.path.dirname(path))
        tmp_path = f"{path}.part"
        try:
            with open(tmp_path, 'wb') as f:
                for chunk in chunks:
                    f.write(chunk)
        except Exception:
            self.delete_file(tmp_path)
            raise
        os.replace(tmp_path, path)

    def delete_file(self, path: Optional[str]):
        if path and os.path.exists(path):
            os.remove(path)
