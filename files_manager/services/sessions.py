from __future__ import annotations

import logging
import uuid
from typing import Optional

from redis import RedisError

from files_manager.cache import RedisClient
from files_manager.config import SESSION_TTL_SECONDS
from files_manager.core.exceptions import InternalError

logger = logging.getLogger("files_manager.sessions")


def session_key(token: str) -> str:
    return f"auth_{token}"


class SessionStore:
    """Maps opaque tokens to user ids in the cache with a fixed TTL."""

    def __init__(self, cache: RedisClient, ttl_seconds: int = SESSION_TTL_SECONDS) -> None:
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def create_session(self, user_id: int) -> str:
        token = str(uuid.uuid4())
        try:
            self.cache.set(session_key(token), str(user_id), self.ttl_seconds)
        except RedisError as exc:
            logger.error("event=session_create_failed user_id=%s error=%s", user_id, exc)
            raise InternalError() from exc
        logger.info("event=session_created user_id=%s", user_id)
        return token

    def resolve_session(self, token: Optional[str]) -> Optional[int]:
        if not token:
            return None
        try:
            user_id = self.cache.get(session_key(token))
        except RedisError as exc:
            logger.error("event=session_lookup_failed error=%s", exc)
            raise InternalError() from exc
        if user_id is None:
            return None
        return int(user_id)

    def destroy_session(self, token: str) -> None:
        try:
            self.cache.delete(session_key(token))
        except RedisError as exc:
            logger.error("event=session_destroy_failed error=%s", exc)
            raise InternalError() from exc

    def is_alive(self) -> bool:
        return self.cache.is_alive()
