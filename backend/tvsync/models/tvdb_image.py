"""
Provider artwork, one table per category.

The categories share columns but are kept apart because each one has its own
keep-count and cleanup pass.
"""
import enum
from sqlalchemy import Column, String, Integer, Boolean, Float, DateTime
from tvsync.db.base_class import Base


class ImageType(str, enum.Enum):
    FANART = "fanart"
    POSTER = "poster"
    WIDE_BANNER = "banner"
    EPISODE = "episode"


class TvDBImageMixin:
    id = Column(Integer, primary_key=True, index=True)
    image_id = Column(Integer, nullable=False, unique=True, index=True)  # TvDB image id
    series_id = Column(Integer, nullable=False, index=True)
    enabled = Column(Boolean, nullable=False, default=True)
    key_type = Column(String, nullable=True)
    sub_key = Column(String, nullable=True)
    remote_path = Column(String, nullable=True)  # fileName, relative to the artwork root
    thumbnail = Column(String, nullable=True)
    resolution = Column(String, nullable=True)
    rating = Column(Float, nullable=True)
    rating_count = Column(Integer, nullable=True)
    language = Column(String, nullable=True)
    local_path = Column(String, nullable=True)  # Set once the file is on disk
    download_queued_at = Column(DateTime, nullable=True)  # Cleared when the download job finishes

    def populate(self, series_id: int, data: dict, language: str):
        ratings = data.get("ratingsInfo") or {}
        self.image_id = data.get("id", self.image_id)
        self.series_id = series_id
        self.key_type = data.get("keyType")
        self.sub_key = data.get("subKey")
        self.remote_path = data.get("fileName") or None
        self.thumbnail = data.get("thumbnail")
        self.resolution = data.get("resolution")
        self.rating = ratings.get("average")
        self.rating_count = ratings.get("count")
        self.language = language


class TvDBImageFanart(TvDBImageMixin, Base):
    __tablename__ = "tvdb_image_fanart"
    image_type = ImageType.FANART


class TvDBImagePoster(TvDBImageMixin, Base):
    __tablename__ = "tvdb_image_posters"
    image_type = ImageType.POSTER


class TvDBImageWideBanner(TvDBImageMixin, Base):
    __tablename__ = "tvdb_image_wide_banners"
    image_type = ImageType.WIDE_BANNER


IMAGE_MODELS = {
    ImageType.FANART: TvDBImageFanart,
    ImageType.POSTER: TvDBImagePoster,
    ImageType.WIDE_BANNER: TvDBImageWideBanner,
}
