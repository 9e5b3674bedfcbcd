from fastapi import APIRouter, Depends, HTTPException
from typing import List
from tvsync.api.deps import get_engine
from tvsync.core.exceptions import SeriesNotFound
from tvsync.schemas import (
    CheckpointResponse, CrossRefResponse, IncrementalSyncOutcome, LinkOutcome, LinkRequest,
    RefreshAllOutcome, ScanOutcome, SeriesSearchResult, SeriesSyncOutcome, UnlinkOutcome, UnlinkRequest,
)
from tvsync.services.engine import SyncEngine

router = APIRouter()


@router.post("/series/{series_id}/sync", response_model=SeriesSyncOutcome)
def sync_series(series_id: int, force_refresh: bool = False, download_images: bool = True,
                engine: SyncEngine = Depends(get_engine)):
    outcome = engine.synchronize_series(series_id, force_refresh=force_refresh, download_images=download_images)
    if not outcome.found:
        raise SeriesNotFound(series_id)
    return outcome


@router.get("/search", response_model=List[SeriesSearchResult])
def search_series(criteria: str, engine: SyncEngine = Depends(get_engine)):
    if not criteria.strip():
        raise HTTPException(status_code=400, detail="Search criteria is required")
    return engine.series_sync.search(criteria)


@router.get("/links/{anime_id}", response_model=List[CrossRefResponse])
def get_links(anime_id: int, engine: SyncEngine = Depends(get_engine)):
    return engine.linker.get_links(anime_id)


@router.post("/links", response_model=LinkOutcome)
def create_link(request: LinkRequest, engine: SyncEngine = Depends(get_engine)):
    return engine.link_cross_reference(
        request.anime_id, request.episode_type, request.episode_number,
        request.tvdb_id, request.tvdb_season_number, request.tvdb_episode_number,
        source=request.source, additive=request.additive,
        exclude_from_web_cache=request.exclude_from_web_cache,
    )


@router.post("/links/remove", response_model=UnlinkOutcome)
def remove_link(request: UnlinkRequest, engine: SyncEngine = Depends(get_engine)):
    outcome = engine.unlink_cross_reference(
        request.anime_id, request.episode_type, request.episode_number,
        request.tvdb_id, request.tvdb_season_number, request.tvdb_episode_number,
    )
    if not outcome.removed:
        raise HTTPException(status_code=404, detail="Cross-reference not found")
    return outcome


@router.post("/scan", response_model=ScanOutcome)
def scan_for_unlinked(engine: SyncEngine = Depends(get_engine)):
    """Queue a TvDB search for every catalog entry without a link"""
    return ScanOutcome(queued_anime_ids=engine.linker.scan_for_unlinked())


@router.post("/refresh-all", response_model=RefreshAllOutcome)
def refresh_all_series(force: bool = False, engine: SyncEngine = Depends(get_engine)):
    """Queue a refresh of every linked TvDB series"""
    return RefreshAllOutcome(queued_series_ids=engine.linker.update_all_info(force))


@router.post("/incremental", response_model=IncrementalSyncOutcome)
def run_incremental_sync(engine: SyncEngine = Depends(get_engine)):
    return engine.run_incremental_sync()


@router.get("/checkpoint", response_model=CheckpointResponse)
def get_checkpoint(engine: SyncEngine = Depends(get_engine)):
    checkpoint = engine.scheduler.get_checkpoint()
    if not checkpoint:
        raise HTTPException(status_code=404, detail="No incremental update has run yet")
    return checkpoint
