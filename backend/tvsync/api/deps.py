from fastapi import Request
from tvsync.services.engine import SyncEngine


def get_engine(request: Request) -> SyncEngine:
    return request.app.state.engine
