# Import Base class
from tvsync.db.base_class import Base

# Import all models here so that Base has them registered
# This is needed for Base.metadata.create_all()
from tvsync.models.anime import AnimeSeries
from tvsync.models.tvdb_series import TvDBSeries
from tvsync.models.tvdb_episode import TvDBEpisode
from tvsync.models.tvdb_image import TvDBImageFanart, TvDBImagePoster, TvDBImageWideBanner
from tvsync.models.crossref import CrossRefTvDB, CrossRefTvDBEpisode, CrossRefTrakt
from tvsync.models.scheduled_update import ScheduledUpdate
