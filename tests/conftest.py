import base64
import io
import os
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
import redis
from fastapi.testclient import TestClient
from PIL import Image

# Keep the module level app in files_manager.main away from real stores
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from files_manager.cache import RedisClient  # noqa: E402
from files_manager.db import DBClient  # noqa: E402
from files_manager.main import create_app  # noqa: E402
from files_manager.services.thumbnails import ThumbnailQueue  # noqa: E402
from files_manager.storage import ContentStorage  # noqa: E402


class InMemoryRedis:
    """Just enough of the redis-py client for sessions."""

    def __init__(self):
        self.values = {}
        self.ttls = {}
        self.now = 0.0
        self.alive = True

    def _check(self):
        if not self.alive:
            raise redis.ConnectionError("connection refused")

    def advance(self, seconds):
        self.now += seconds

    def ping(self):
        self._check()
        return True

    def get(self, key):
        self._check()
        if key in self.ttls and self.now >= self.ttls[key]:
            self.values.pop(key, None)
            self.ttls.pop(key, None)
        return self.values.get(key)

    def setex(self, key, seconds, value):
        self._check()
        self.values[key] = str(value)
        self.ttls[key] = self.now + seconds

    def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            removed += int(self.values.pop(key, None) is not None)
            self.ttls.pop(key, None)
        return removed

    def close(self):
        pass


class InMemoryArqPool:
    """Records ``enqueue_job`` calls the way arq's pool would queue them."""

    def __init__(self):
        self.jobs = []
        self.alive = True
        self.closed = False

    async def enqueue_job(self, function, *args, _queue_name=None, **kwargs):
        if not self.alive:
            raise redis.ConnectionError("connection refused")
        self.jobs.append((_queue_name, function, args))
        return SimpleNamespace(job_id=f"job-{len(self.jobs)}")

    async def aclose(self):
        self.closed = True


def make_image(width=800, height=600, fmt="PNG", color=(200, 30, 90)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def basic_auth(email: str, password: str) -> dict:
    credentials = base64.b64encode(f"{email}:{password}".encode("utf-8")).decode("ascii")
    return {"Authorization": f"Basic {credentials}"}


def _prepare_client(tmp_path, *, owner_scoped_listing=False):
    db = DBClient(f"sqlite:///{tmp_path / 'test.db'}")
    fake = InMemoryRedis()
    cache = RedisClient(client=fake)
    storage = ContentStorage(str(tmp_path / "files"))
    pool = InMemoryArqPool()
    thumbnails = ThumbnailQueue(name="fileQueue", pool=pool)

    app = create_app(db=db, cache=cache, storage=storage, thumbnails=thumbnails)
    app.state.files.owner_scoped_listing = owner_scoped_listing

    test_client = TestClient(app)
    test_client.redis = fake  # type: ignore[attr-defined]
    test_client.db = db  # type: ignore[attr-defined]
    test_client.cache = cache  # type: ignore[attr-defined]
    test_client.storage = storage  # type: ignore[attr-defined]
    test_client.jobs = pool  # type: ignore[attr-defined]
    test_client.upload_dir = tmp_path / "files"  # type: ignore[attr-defined]
    return test_client


@pytest.fixture
def client(tmp_path):
    test_client = _prepare_client(tmp_path)
    with test_client as c:
        yield c


def register_and_login(client, email="alice@test.io", password="secret1") -> dict:
    """Create a user and return the ``X-Token`` header for it."""
    response = client.post("/users", json={"email": email, "password": password})
    assert response.status_code == 201
    token = client.post("/connect", headers=basic_auth(email, password)).json()["token"]
    return {"X-Token": token}


@pytest.fixture
def alice(client):
    return register_and_login(client)


@pytest.fixture
def bob(client):
    return register_and_login(client, email="bob@test.io", password="hunter2")
