"""
Checkpoint of periodic provider updates.

One row per update type. ``update_details`` holds the provider server time the
last successful pass started at; it is the cursor of the next delta query.
"""
import enum
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime
from tvsync.db.base_class import Base


class ScheduledUpdateType(int, enum.Enum):
    TVDB_INFO = 2


class ScheduledUpdate(Base):
    __tablename__ = "scheduled_updates"

    id = Column(Integer, primary_key=True, index=True)
    update_type = Column(Integer, nullable=False, unique=True, index=True)
    last_update = Column(DateTime, nullable=False, default=datetime.now)
    update_details = Column(String, nullable=False, default="")
