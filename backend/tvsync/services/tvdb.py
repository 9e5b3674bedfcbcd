"""
TvDB API v2 client.

Every call goes through the same sequence: make sure a token is held, wait
for the rate limiter, issue the request. A 401 drops the token, logs in again
and retries the request exactly once; a second 401 surfaces as
``AuthenticationFailed``. A 404 is an absent result and every other failure is
logged and also returned as an absent result, so one bad request never takes
down a whole sync pass.

@example
    limiter = RateLimiter(10, 1.0)
    http = httpx.Client(base_url="https://api.thetvdb.com")
    client = TvDBClient(AuthSession(http, limiter, api_key), limiter, http)
    series = client.get_series(81797)
"""
import httpx
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from email.utils import parsedate_to_datetime
from typing import List, Dict, Optional, Any
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from tvsync.core.exceptions import AuthenticationFailed, NotFound, TokenRejected, TransportError
from tvsync.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# The updates feed refuses windows longer than a week
UPDATES_MAX_WINDOW = 7 * 24 * 60 * 60

_SAME = object()


class AuthSession:
    """Holds the bearer token shared by every caller of the client."""

    def __init__(self, http: httpx.Client, rate_limiter: RateLimiter, api_key: str,
                 username: Optional[str] = None, user_key: Optional[str] = None):
        self.http = http
        self.rate_limiter = rate_limiter
        self.api_key = api_key
        self.username = username
        self.user_key = user_key
        self._token: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def token(self) -> Optional[str]:
        return self._token

    def ensure_authenticated(self) -> str:
        """Return the current token, logging in first if none is held."""
        with self._lock:
            if self._token:
                return self._token

            payload = {"apikey": self.api_key}
            if self.username and self.user_key:
                payload["username"] = self.username
                payload["userkey"] = self.user_key

            self.rate_limiter.ensure_rate()
            try:
                response = self.http.post("/login", json=payload)
            except httpx.HTTPError as e:
                raise TransportError(f"TvDB login failed: {e}") from e

            if response.status_code in (401, 403):
                raise AuthenticationFailed(f"TvDB rejected the credentials ({response.status_code})")
            if response.is_error:
                raise TransportError(f"TvDB login returned {response.status_code}", response.status_code)

            try:
                token = response.json().get("token")
            except ValueError:
                token = None
            if not token:
                raise AuthenticationFailed("TvDB returned no token")

            logger.info("Authenticated with TvDB")
            self._token = token
            return token

    def invalidate(self, stale_token: Optional[str] = None):
        """
        Drop the held token. When ``stale_token`` is given, only drop it if it
        is still the current one.
        """
        with self._lock:
            if stale_token is None or stale_token == self._token:
                self._token = None


class TvDBClient:
    def __init__(self, session: AuthSession, rate_limiter: RateLimiter, http: httpx.Client,
                 language: str = "en", page_workers: int = 4):
        self.session = session
        self.rate_limiter = rate_limiter
        self.http = http
        self.language = language
        self.page_workers = max(1, page_workers)

    def close(self):
        self.http.close()

    # --- Calling convention ---

    def _send(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        token = self.session.ensure_authenticated()
        self.rate_limiter.ensure_rate()
        headers = {"Authorization": f"Bearer {token}", "Accept-Language": self.language}
        try:
            response = self.http.get(path, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"GET {path}: {e}") from e

        if response.status_code == 401:
            self.session.invalidate(token)
            raise TokenRejected(f"TvDB rejected the token for {path}")
        if response.status_code == 404:
            raise NotFound(f"TvDB has no resource at {path}")
        if response.is_error:
            raise TransportError(f"TvDB returned {response.status_code} for {path}", response.status_code)
        return response

    def _request(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        retrying = Retrying(
            stop=stop_after_attempt(2),
            retry=retry_if_exception_type(TokenRejected),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    return self._send(path, params)
        except TokenRejected as e:
            raise AuthenticationFailed(f"TvDB rejected the token twice for {path}") from e

    def _fetch(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = self._request(path, params)
        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError(f"Malformed payload from {path}") from e
        if not isinstance(payload, dict):
            raise TransportError(f"Unexpected payload from {path}")
        return payload

    def _data(self, path: str, params: Optional[Dict[str, Any]] = None, absent: Any = None, failed: Any = _SAME) -> Any:
        try:
            data = self._fetch(path, params).get("data")
        except NotFound:
            return absent
        except TransportError as e:
            logger.error(f"TvDB request failed: {e.message}")
            return absent if failed is _SAME else failed
        return data if data is not None else absent

    # --- Endpoints ---

    def get_series(self, series_id: int) -> Optional[Dict]:
        return self._data(f"/series/{series_id}")

    def search_series(self, criteria: str) -> List[Dict]:
        logger.debug(f"Search TvDB Series: {criteria}")
        return self._data("/search/series", {"name": criteria}, absent=[])

    def get_episode(self, episode_id: int) -> Optional[Dict]:
        return self._data(f"/episodes/{episode_id}")

    def get_images_summary(self, series_id: int) -> Optional[Dict]:
        return self._data(f"/series/{series_id}/images")

    def get_images(self, series_id: int, key_type: str) -> Optional[List[Dict]]:
        """Images of one key type; [] when there are none, None when the query failed."""
        return self._data(f"/series/{series_id}/images/query", {"keyType": key_type}, absent=[], failed=None)

    def _get_episode_page(self, series_id: int, page: int) -> Optional[List[Dict]]:
        try:
            return self._fetch(f"/series/{series_id}/episodes", {"page": page}).get("data") or []
        except NotFound:
            return []
        except TransportError as e:
            logger.error(f"Failed to fetch episode page {page} of series {series_id}: {e.message}")
            return None

    def get_episodes(self, series_id: int) -> Optional[List[Dict]]:
        """
        All episodes of a series, in page order.

        The first page reports the page count; the remaining pages are fetched
        concurrently. Returns None when any page could not be fetched, so a
        partial listing is never mistaken for the full one.
        """
        try:
            first = self._fetch(f"/series/{series_id}/episodes", {"page": 1})
        except NotFound:
            return []
        except TransportError as e:
            logger.error(f"Failed to fetch episodes of series {series_id}: {e.message}")
            return None

        pages = [first.get("data") or []]
        last_page = (first.get("links") or {}).get("last") or 1
        if last_page > 1:
            workers = min(self.page_workers, last_page - 1)
            with ThreadPoolExecutor(max_workers=workers) as executor:
                pages.extend(executor.map(
                    lambda page: self._get_episode_page(series_id, page),
                    range(2, last_page + 1),
                ))
            if any(page is None for page in pages):
                return None

        episodes = []
        seen = set()
        for page in pages:
            for episode in page:
                if episode.get("id") in seen:
                    continue
                seen.add(episode.get("id"))
                episodes.append(episode)
        return episodes

    def get_updated_series(self, server_time: str, until: Optional[int] = None) -> Optional[List[int]]:
        """
        Ids of series changed since ``server_time`` (epoch seconds).

        Returns None when the feed could not be read, so the caller can tell
        a failed query from an empty one.
        """
        try:
            window_start = int(float(server_time))
        except (TypeError, ValueError):
            logger.error(f"Invalid TvDB server time: {server_time!r}")
            return None
        until = until or int(time.time())

        series_ids = []
        while True:
            window_end = window_start + UPDATES_MAX_WINDOW
            params = {"fromTime": window_start}
            if window_end < until:
                params["toTime"] = window_end
            try:
                updates = self._fetch("/updated/query", params).get("data") or []
            except NotFound:
                updates = []
            except TransportError as e:
                logger.error(f"Failed to fetch TvDB updates since {window_start}: {e.message}")
                return None
            series_ids.extend(item["id"] for item in updates if item and item.get("id"))
            if window_end >= until:
                break
            window_start = window_end

        return list(dict.fromkeys(series_ids))

    def get_server_time(self) -> str:
        """
        Current provider time as epoch seconds, read from the Date header of a
        cheap request. Empty when the provider cannot be reached.
        """
        try:
            response = self._request("/languages")
        except (NotFound, TransportError) as e:
            logger.warning(f"TvDB is unreachable: {e.message}")
            return ""

        date_header = response.headers.get("Date")
        if date_header:
            try:
                return str(int(parsedate_to_datetime(date_header).timestamp()))
            except (TypeError, ValueError):
                logger.debug(f"Unparseable Date header from TvDB: {date_header!r}")
        return str(int(time.time()))


def create_tvdb_client(settings, rate_limiter: RateLimiter, transport: Optional[httpx.BaseTransport] = None) -> TvDBClient:
    """Build a client from application settings."""
    http = httpx.Client(
        base_url=settings.TVDB_URL.rstrip("/"),
        timeout=settings.TVDB_TIMEOUT,
        follow_redirects=True,
        transport=transport,
    )
    session = AuthSession(http, rate_limiter, settings.TVDB_API_KEY,
                          settings.TVDB_USERNAME, settings.TVDB_USER_KEY)
    return TvDBClient(session, rate_limiter, http,
                      language=settings.TVDB_LANGUAGE, page_workers=settings.TVDB_PAGE_WORKERS)
