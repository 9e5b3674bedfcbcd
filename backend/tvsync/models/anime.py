from sqlalchemy import Column, String, Integer, Boolean, DateTime
from tvsync.db.base_class import Base

class AnimeSeries(Base):
    """Local catalog entry, keyed by AniDB anime id."""
    __tablename__ = "anime_series"

    id = Column(Integer, primary_key=True, index=True)
    anime_id = Column(Integer, nullable=False, unique=True, index=True)
    title = Column(String, nullable=False)

    # Automatic TvDB matching
    search_on_tvdb = Column(Boolean, nullable=False, default=True)
    tvdb_link_disabled = Column(Boolean, nullable=False, default=False)

    # Stats, recomputed after link changes
    tvdb_link_count = Column(Integer, nullable=False, default=0)
    tvdb_episode_link_count = Column(Integer, nullable=False, default=0)
    stats_updated_at = Column(DateTime, nullable=True)
