"""
Pytest fixtures and configuration for tvsync tests
"""
import json
import threading
from email.utils import formatdate

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tvsync.core.config import Settings
from tvsync.db.base import Base
from tvsync.services.engine import build_engine


class RecordingQueue:
    """Job queue that keeps every enqueued job instead of sending it."""

    def __init__(self):
        self.jobs = []

    def enqueue(self, job):
        self.jobs.append(job)

    def of_type(self, job_class):
        return [job for job in self.jobs if isinstance(job, job_class)]

    def clear(self):
        self.jobs.clear()


class FakeTvDB:
    """
    In-memory TvDB v2 API behind an ``httpx.MockTransport``.

    Also answers the artwork host, the web cache and Trakt so a whole engine
    can run against it.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.api_key = "test-key"
        self.tokens_issued = 0
        self.reject_tokens = set()
        self.always_reject = False
        self.series = {}
        self.episodes = {}
        self.episode_details = {}
        self.images = {}
        self.updates = []
        self.failing_paths = set()
        self.failing_episode_pages = set()
        self.server_time = None
        self.artwork = {}
        self.trakt_shows = {}
        self.requests = []
        self.web_cache_posts = []

    # --- Fixture helpers ---

    def add_series(self, series_id, name="Cowboy Bebop", last_updated=1000):
        self.series[series_id] = {
            "id": series_id, "seriesName": name, "overview": f"{name} overview",
            "status": "Ended", "network": "TV Tokyo", "firstAired": "1998-04-03",
            "banner": f"graphical/{series_id}-g.jpg", "lastUpdated": last_updated,
        }

    def add_episodes(self, series_id, count, last_updated=1000):
        episodes = self.episodes.setdefault(series_id, [])
        start = len(episodes) + 1
        for number in range(start, start + count):
            episode = {
                "id": series_id * 1000 + number, "seriesId": series_id,
                "airedSeason": 1, "airedEpisodeNumber": number, "absoluteNumber": number,
                "episodeName": f"Session {number}", "filename": f"episodes/{series_id}/{number}.jpg",
                "lastUpdated": last_updated,
            }
            episodes.append(episode)
            self.episode_details[episode["id"]] = episode
        return episodes

    def add_images(self, series_id, key_type, count, start_id=1):
        images = self.images.setdefault((series_id, key_type), [])
        for image_id in range(start_id, start_id + count):
            images.append({
                "id": image_id, "keyType": key_type, "subKey": "",
                "fileName": f"{key_type}/original/{series_id}-{image_id}.jpg",
                "thumbnail": f"_cache/{key_type}/original/{series_id}-{image_id}.jpg",
                "resolution": "1920x1080", "ratingsInfo": {"average": 7.5, "count": 3},
            })
        return images

    def requests_to(self, prefix):
        return [path for path in self.requests if path.startswith(prefix)]

    # --- Transport ---

    def handler(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        path = request.url.path
        with self.lock:
            self.requests.append(path)

        if host == "artworks.thetvdb.com":
            if path in self.failing_paths:
                return httpx.Response(500)
            content = self.artwork.get(path, b"\xff\xd8image")
            return httpx.Response(200, content=content)
        if host == "webcache.test":
            self.web_cache_posts.append((path, json.loads(request.content)))
            return httpx.Response(200, json={})
        if host == "api.trakt.tv":
            tvdb_id = int(path.rsplit("/", 1)[-1])
            slug = self.trakt_shows.get(tvdb_id)
            return httpx.Response(200, json=[{"type": "show", "show": {"ids": {"slug": slug}}}] if slug else [])

        if path in self.failing_paths:
            return httpx.Response(500, json={"Error": "boom"})
        if path == "/login":
            return self._login(request)

        token = request.headers.get("Authorization", "").replace("Bearer ", "")
        if self.always_reject or token in self.reject_tokens:
            return httpx.Response(401, json={"Error": "Not authorized"})
        return self._route(request, path)

    def _login(self, request):
        payload = json.loads(request.content)
        if payload.get("apikey") != self.api_key:
            return httpx.Response(401, json={"Error": "API Key Required"})
        with self.lock:
            self.tokens_issued += 1
            token = f"token-{self.tokens_issued}"
        return httpx.Response(200, json={"token": token})

    def _route(self, request, path):
        parts = path.strip("/").split("/")
        params = request.url.params

        if parts == ["languages"]:
            headers = {"Date": formatdate(self.server_time, usegmt=True)} if self.server_time else {}
            return httpx.Response(200, json={"data": [{"abbreviation": "en"}]}, headers=headers)
        if parts == ["search", "series"]:
            name = params.get("name", "").lower()
            matches = [s for s in self.series.values() if name in s["seriesName"].lower()]
            if not matches:
                return httpx.Response(404, json={"Error": "Resource not found"})
            return httpx.Response(200, json={"data": matches})
        if parts == ["updated", "query"]:
            from_time = int(params["fromTime"])
            to_time = int(params["toTime"]) if "toTime" in params else None
            data = [{"id": series_id, "lastUpdated": when} for series_id, when in self.updates
                    if when >= from_time and (to_time is None or when <= to_time)]
            return httpx.Response(200, json={"data": data or None})
        if parts[0] == "episodes" and len(parts) == 2:
            episode = self.episode_details.get(int(parts[1]))
            if episode is None:
                return httpx.Response(404, json={"Error": "ID not found"})
            return httpx.Response(200, json={"data": episode})
        if parts[0] == "series":
            return self._route_series(int(parts[1]), parts[2:], params)
        return httpx.Response(404, json={"Error": "Resource not found"})

    def _route_series(self, series_id, rest, params):
        if series_id not in self.series:
            return httpx.Response(404, json={"Error": "ID not found"})
        if not rest:
            return httpx.Response(200, json={"data": self.series[series_id]})
        if rest == ["episodes"]:
            episodes = self.episodes.get(series_id, [])
            page = int(params.get("page", 1))
            if page in self.failing_episode_pages:
                return httpx.Response(503, json={"Error": "Service unavailable"})
            last = max(1, (len(episodes) + 99) // 100)
            data = episodes[(page - 1) * 100:page * 100]
            return httpx.Response(200, json={"data": data, "links": {"first": 1, "last": last}})
        if rest == ["images"]:
            summary = {}
            for (image_series, key_type), images in self.images.items():
                if image_series == series_id:
                    summary[key_type] = len(images)
            return httpx.Response(200, json={"data": summary})
        if rest == ["images", "query"]:
            images = self.images.get((series_id, params.get("keyType")))
            if not images:
                return httpx.Response(404, json={"Error": "No results for your query"})
            return httpx.Response(200, json={"data": images})
        return httpx.Response(404, json={"Error": "Resource not found"})


@pytest.fixture
def session_factory():
    """SQLite in-memory database shared by every session of a test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def queue():
    return RecordingQueue()


@pytest.fixture
def fake_tvdb():
    return FakeTvDB()


@pytest.fixture
def transport(fake_tvdb):
    return httpx.MockTransport(fake_tvdb.handler)


@pytest.fixture
def test_settings(tmp_path):
    """Settings isolated from the environment, with a throwaway image directory"""
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        TVDB_API_KEY="test-key",
        TVDB_RATE_LIMIT_REQUESTS=1000,
        TVDB_RATE_LIMIT_PERIOD=1.0,
        TVDB_AUTO_FANART_AMOUNT=5,
        TVDB_AUTO_POSTERS_AMOUNT=5,
        TVDB_AUTO_WIDEBANNERS_AMOUNT=5,
        IMAGES_DIR=str(tmp_path / "images"),
        WEBCACHE_URL="http://webcache.test",
    )


@pytest.fixture
def engine(test_settings, session_factory, queue, transport):
    sync_engine = build_engine(test_settings, session_factory, queue, transport)
    yield sync_engine
    sync_engine.close()
