"""
Downstream propagation of cross-references.

The web cache is a shared service that collects user-made links; the Trakt
linker derives Trakt show links from the TvDB ones. Both are optional and a
failure in either is logged, never raised into a sync pass.
"""
import logging
from typing import List, Optional

import httpx

from tvsync.db.repository import Repository
from tvsync.models.crossref import CrossRefSource, CrossRefTvDB

logger = logging.getLogger(__name__)


class WebCacheClient:
    def __init__(self, http: httpx.Client, base_url: Optional[str], auth_key: Optional[str] = None):
        self.http = http
        self.base_url = base_url.rstrip("/") if base_url else None
        self.auth_key = auth_key

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def close(self):
        self.http.close()

    def _post(self, path: str, payload: dict) -> bool:
        if not self.enabled:
            logger.debug(f"Web cache not configured, not sending {path}")
            return False
        if self.auth_key:
            payload = {**payload, "AuthKey": self.auth_key}
        try:
            response = self.http.post(f"{self.base_url}{path}", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Web cache request {path} failed: {e}")
            return False
        return True

    def send_xref(self, xref: CrossRefTvDB) -> bool:
        return self._post("/api/CrossRef_AniDB_TvDB", {
            "AnimeID": xref.anime_id,
            "AniDBStartEpisodeType": xref.anidb_start_episode_type,
            "AniDBStartEpisodeNumber": xref.anidb_start_episode_number,
            "TvDBID": xref.tvdb_id,
            "TvDBSeasonNumber": xref.tvdb_season_number,
            "TvDBStartEpisodeNumber": xref.tvdb_start_episode_number,
            "TvDBTitle": xref.tvdb_title or "",
        })

    def delete_xref(self, anime_id: int, anidb_episode_type: int, anidb_episode_number: int,
                    tvdb_id: int, tvdb_season_number: int, tvdb_episode_number: int) -> bool:
        return self._post("/api/CrossRef_AniDB_TvDB/Delete", {
            "AnimeID": anime_id,
            "AniDBStartEpisodeType": anidb_episode_type,
            "AniDBStartEpisodeNumber": anidb_episode_number,
            "TvDBID": tvdb_id,
            "TvDBSeasonNumber": tvdb_season_number,
            "TvDBStartEpisodeNumber": tvdb_episode_number,
        })


class TraktLinker:
    """Maps the TvDB links of an anime to Trakt shows through Trakt's id lookup."""

    def __init__(self, http: httpx.Client, cross_refs: Repository, trakt_cross_refs: Repository,
                 client_id: Optional[str] = None, auth_token: Optional[str] = None, enabled: bool = False):
        self.http = http
        self.cross_refs = cross_refs
        self.trakt_cross_refs = trakt_cross_refs
        self.client_id = client_id
        self.auth_token = auth_token
        self.enabled = enabled and bool(auth_token)

    def close(self):
        self.http.close()

    def lookup_show(self, tvdb_id: int) -> Optional[str]:
        """Trakt slug of the show with this TvDB id, None when unknown or unreachable."""
        headers = {"trakt-api-version": "2", "Authorization": f"Bearer {self.auth_token}"}
        if self.client_id:
            headers["trakt-api-key"] = self.client_id
        try:
            response = self.http.get(f"/search/tvdb/{tvdb_id}", params={"type": "show"}, headers=headers)
            response.raise_for_status()
            results = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Trakt lookup of TvDB series {tvdb_id} failed: {e}")
            return None

        for result in results or []:
            ids = (result.get("show") or {}).get("ids") or {}
            if ids.get("slug"):
                return ids["slug"]
        return None

    def search_anime(self, anime_id: int, force_refresh: bool = False) -> List[str]:
        if not self.enabled:
            logger.debug(f"Trakt disabled, not searching anime {anime_id}")
            return []
        if not force_refresh and self.trakt_cross_refs.count_by(anime_id=anime_id):
            return []

        linked = []
        for xref in self.cross_refs.list_by(anime_id=anime_id):
            slug = self.lookup_show(xref.tvdb_id)
            if slug is None:
                continue
            with self.trakt_cross_refs.begin_add_or_update_by(anime_id=anime_id, trakt_id=slug,
                                                              trakt_season_number=xref.tvdb_season_number) as upd:
                upd.entity.anime_id = anime_id
                upd.entity.trakt_id = slug
                upd.entity.trakt_season_number = xref.tvdb_season_number
                upd.entity.trakt_start_episode_number = xref.tvdb_start_episode_number
                upd.entity.cross_ref_source = int(CrossRefSource.AUTOMATIC)
                upd.commit()
            logger.info(f"Linked anime {anime_id} to Trakt show {slug}")
            linked.append(slug)
        return linked


def create_web_cache_client(settings, transport: Optional[httpx.BaseTransport] = None) -> WebCacheClient:
    http = httpx.Client(timeout=settings.WEBCACHE_TIMEOUT, transport=transport)
    return WebCacheClient(http, settings.WEBCACHE_URL, settings.WEBCACHE_AUTH_KEY)


def create_trakt_linker(settings, cross_refs: Repository, trakt_cross_refs: Repository,
                        transport: Optional[httpx.BaseTransport] = None) -> TraktLinker:
    http = httpx.Client(base_url=settings.TRAKT_URL.rstrip("/"), timeout=settings.WEBCACHE_TIMEOUT, transport=transport)
    return TraktLinker(http, cross_refs, trakt_cross_refs, settings.TRAKT_CLIENT_ID,
                       settings.TRAKT_AUTH_TOKEN, settings.TRAKT_ENABLED)
