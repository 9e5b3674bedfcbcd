import logging

from tvsync.core.celery_app import celery_app
from tvsync.tasks.worker import get_engine

logger = logging.getLogger(__name__)


@celery_app.task
def send_xref_task(cross_ref_id: int):
    engine = get_engine()
    if not engine.web_cache.enabled:
        return "Web cache not configured"
    xref = engine.repositories["cross_refs"].get_by(id=cross_ref_id)
    if xref is None:
        # Removed before it could be sent
        return f"Cross-reference {cross_ref_id} not found"
    sent = engine.web_cache.send_xref(xref)
    return f"Cross-reference {cross_ref_id} {'sent' if sent else 'not sent'}"


@celery_app.task
def delete_xref_task(anime_id: int, anidb_episode_type: int, anidb_episode_number: int,
                     tvdb_id: int, tvdb_season_number: int, tvdb_episode_number: int):
    engine = get_engine()
    if not engine.web_cache.enabled:
        return "Web cache not configured"
    deleted = engine.web_cache.delete_xref(anime_id, anidb_episode_type, anidb_episode_number,
                                           tvdb_id, tvdb_season_number, tvdb_episode_number)
    return f"Web cache delete for anime {anime_id} {'sent' if deleted else 'not sent'}"


@celery_app.task
def trakt_search_anime_task(anime_id: int, force_refresh: bool = False):
    linked = get_engine().trakt.search_anime(anime_id, force_refresh)
    return {"anime_id": anime_id, "trakt_ids": linked}
