import enum
from sqlalchemy import Column, String, Integer, UniqueConstraint
from tvsync.db.base_class import Base


class CrossRefSource(int, enum.Enum):
    AUTOMATIC = 0  # Found by the search job
    USER = 1
    WEB_CACHE = 2


class EpisodeType(int, enum.Enum):
    EPISODE = 1
    CREDITS = 2
    SPECIAL = 3
    TRAILER = 4
    PARODY = 5
    OTHER = 6


class CrossRefTvDB(Base):
    """
    Maps the start of an AniDB episode run to a TvDB season/episode.

    The natural key (TvDB id, season, episode, anime id, episode type, episode
    number) is what makes re-linking idempotent; ``id`` is only used to name
    the row in web cache propagation jobs.
    """
    __tablename__ = "crossref_anidb_tvdb"
    __table_args__ = (
        UniqueConstraint(
            "tvdb_id", "tvdb_season_number", "tvdb_start_episode_number",
            "anime_id", "anidb_start_episode_type", "anidb_start_episode_number",
            name="uq_crossref_anidb_tvdb",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    anime_id = Column(Integer, nullable=False, index=True)
    anidb_start_episode_type = Column(Integer, nullable=False)
    anidb_start_episode_number = Column(Integer, nullable=False)
    tvdb_id = Column(Integer, nullable=False, index=True)
    tvdb_season_number = Column(Integer, nullable=False)
    tvdb_start_episode_number = Column(Integer, nullable=False)
    tvdb_title = Column(String, nullable=True)
    cross_ref_source = Column(Integer, nullable=False, default=CrossRefSource.USER)


class CrossRefTvDBEpisode(Base):
    """Per-episode override of the run based mapping."""
    __tablename__ = "crossref_anidb_tvdb_episode"

    id = Column(Integer, primary_key=True, index=True)
    anime_id = Column(Integer, nullable=False, index=True)
    anidb_episode_id = Column(Integer, nullable=False, unique=True, index=True)
    tvdb_episode_id = Column(Integer, nullable=False)


class CrossRefTrakt(Base):
    """Companion Trakt linkage, invalidated whenever the TvDB links change."""
    __tablename__ = "crossref_anidb_trakt"

    id = Column(Integer, primary_key=True, index=True)
    anime_id = Column(Integer, nullable=False, index=True)
    trakt_id = Column(String, nullable=False)
    trakt_season_number = Column(Integer, nullable=True)
    trakt_start_episode_number = Column(Integer, nullable=True)
    cross_ref_source = Column(Integer, nullable=False, default=CrossRefSource.USER)
