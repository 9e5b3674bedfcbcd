import logging

from tvsync.core.celery_app import celery_app
from tvsync.core.config import settings
from tvsync.core.exceptions import AuthenticationFailed
from tvsync.tasks.worker import get_engine

logger = logging.getLogger(__name__)


@celery_app.task
def update_series_task(series_id: int, force_refresh: bool = False):
    engine = get_engine()
    try:
        outcome = engine.synchronize_series(series_id, force_refresh=force_refresh)
    except AuthenticationFailed as e:
        logger.error(f"TvDB series {series_id} update failed: {e.message}")
        return e.to_dict()
    return outcome.model_dump(mode="json")


@celery_app.task
def update_episode_task(episode_id: int, info: str = "", download_images: bool = True, force_refresh: bool = False):
    engine = get_engine()
    logger.debug(f"Updating TvDB episode {episode_id}: {info}")
    try:
        episode = engine.series_sync.update_episode(episode_id, download_images, force_refresh)
    except AuthenticationFailed as e:
        logger.error(f"TvDB episode {episode_id} update failed: {e.message}")
        return e.to_dict()
    if episode is None:
        return f"Episode {episode_id} not found"
    return f"Episode {episode_id} updated"


@celery_app.task
def search_anime_task(anime_id: int, force_refresh: bool = False):
    engine = get_engine()
    try:
        outcome = engine.linker.search_and_link(anime_id, force_refresh)
    except AuthenticationFailed as e:
        logger.error(f"TvDB search for anime {anime_id} failed: {e.message}")
        return e.to_dict()
    if outcome is None:
        return f"No TvDB link made for anime {anime_id}"
    return outcome.model_dump(mode="json")


@celery_app.task
def update_anime_stats_task(anime_id: int):
    anime = get_engine().linker.update_stats(anime_id)
    if anime is None:
        return f"Anime {anime_id} not found"
    return {"anime_id": anime_id, "tvdb_link_count": anime.tvdb_link_count,
            "tvdb_episode_link_count": anime.tvdb_episode_link_count}


@celery_app.task
def incremental_sync_task(force: bool = False):
    """Beat entry point: run an incremental pass when the last one is old enough."""
    engine = get_engine()
    if not force and not engine.scheduler.is_due(settings.TVDB_UPDATE_FREQUENCY_HOURS):
        return "Incremental TvDB update not due"
    return engine.run_incremental_sync().model_dump(mode="json")
