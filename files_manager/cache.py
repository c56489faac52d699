from __future__ import annotations

import logging
from typing import Optional

import redis

from files_manager.config import REDIS_URL

logger = logging.getLogger("files_manager.cache")


class RedisClient:
    """Handle on the key-value cache that backs sessions.

    Pass an already built ``client`` to reuse a connection (or a test
    double); otherwise one is created lazily from ``url``.
    """

    def __init__(self, url: str = REDIS_URL, client=None) -> None:
        self.url = url
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = redis.from_url(self.url, decode_responses=True)
        return self._client

    def connect(self) -> "RedisClient":
        if not self.is_alive():
            logger.warning("event=redis_unavailable url=%s", self.url)
        return self

    def is_alive(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def get(self, key: str) -> Optional[str]:
        return self.client.get(key)

    def set(self, key: str, value: str, duration_seconds: int) -> None:
        self.client.setex(key, duration_seconds, value)

    def delete(self, key: str) -> None:
        self.client.delete(key)
