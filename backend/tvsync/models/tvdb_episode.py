from sqlalchemy import Column, String, Integer, Text
from tvsync.db.base_class import Base

class TvDBEpisode(Base):
    __tablename__ = "tvdb_episodes"

    id = Column(Integer, primary_key=True, index=True)
    episode_id = Column(Integer, nullable=False, unique=True, index=True)  # TvDB episode id
    series_id = Column(Integer, nullable=False, index=True)
    season_number = Column(Integer, nullable=True)
    episode_number = Column(Integer, nullable=True)
    absolute_number = Column(Integer, nullable=True)
    episode_name = Column(String, nullable=True)
    overview = Column(Text, nullable=True)
    first_aired = Column(String, nullable=True)
    filename = Column(String, nullable=True)  # Episode still, relative to the artwork root
    local_path = Column(String, nullable=True)
    last_updated = Column(Integer, nullable=True)

    def populate(self, data: dict):
        self.episode_id = data.get("id", self.episode_id)
        self.series_id = data.get("seriesId", self.series_id)
        self.season_number = data.get("airedSeason")
        self.episode_number = data.get("airedEpisodeNumber")
        self.absolute_number = data.get("absoluteNumber")
        self.episode_name = data.get("episodeName")
        self.overview = data.get("overview")
        self.first_aired = data.get("firstAired")
        self.filename = data.get("filename") or None
        self.last_updated = data.get("lastUpdated")
