from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from tvsync.core.config import settings

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)

# Entities are handed back to callers after commit, so keep their loaded state
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
