from sqlalchemy import Column, String, Integer, DateTime, Text
from tvsync.db.base_class import Base

class TvDBSeries(Base):
    __tablename__ = "tvdb_series"

    id = Column(Integer, primary_key=True, index=True)
    series_id = Column(Integer, nullable=False, unique=True, index=True)  # TvDB series id
    series_name = Column(String, nullable=True)
    overview = Column(Text, nullable=True)
    status = Column(String, nullable=True)
    network = Column(String, nullable=True)
    first_aired = Column(String, nullable=True)
    banner = Column(String, nullable=True)
    language = Column(String, nullable=True)
    last_updated = Column(Integer, nullable=True)  # TvDB lastUpdated (epoch seconds)
    last_refreshed = Column(DateTime, nullable=True)

    def populate(self, data: dict, language: str):
        self.series_id = data.get("id", self.series_id)
        self.series_name = data.get("seriesName")
        self.overview = data.get("overview")
        self.status = data.get("status")
        self.network = data.get("network")
        self.first_aired = data.get("firstAired")
        self.banner = data.get("banner")
        self.last_updated = data.get("lastUpdated")
        self.language = language
