"""Thumbnail pipeline: queue producer plus the image resizing helpers.

The API process only ever enqueues; the resizing runs in the arq worker
process (see ``files_manager.worker``).
"""
from __future__ import annotations

import io
import logging
from typing import Optional

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from PIL import Image
from redis import RedisError

from files_manager.config import REDIS_URL, THUMBNAIL_QUEUE, THUMBNAIL_WIDTHS

logger = logging.getLogger("files_manager.thumbnails")

THUMBNAIL_JOB = "generate_thumbnails_job"


class ThumbnailQueue:
    """Producer side of the named job queue.

    The arq pool is opened on first use. Pass ``pool`` to reuse one (or a
    test double).
    """

    def __init__(self, redis_url: str = REDIS_URL, name: str = THUMBNAIL_QUEUE, pool=None) -> None:
        self.redis_url = redis_url
        self.name = name
        self._pool: Optional[ArqRedis] = pool

    async def pool(self) -> ArqRedis:
        if self._pool is None:
            self._pool = await create_pool(RedisSettings.from_dsn(self.redis_url), default_queue_name=self.name)
        return self._pool

    async def enqueue(self, file_id: int, user_id: int) -> bool:
        """Queue a job and return immediately.

        A failed enqueue is logged and reported as ``False``; the caller's
        record stays committed and simply never gets thumbnails.
        """
        try:
            redis = await self.pool()
            job = await redis.enqueue_job(THUMBNAIL_JOB, file_id, user_id, _queue_name=self.name)
        except (RedisError, OSError) as exc:
            logger.error("event=job_enqueue_failed queue=%s file_id=%s error=%s", self.name, file_id, exc)
            return False
        logger.info(
            "event=job_enqueued queue=%s file_id=%s user_id=%s job_id=%s",
            self.name,
            file_id,
            user_id,
            job.job_id if job is not None else None,
        )
        return True

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.aclose()
            self._pool = None


def resize_to_width(img: Image.Image, width: int) -> bytes:
    """Return ``img`` scaled to ``width`` pixels wide as JPEG bytes."""
    height = max(1, round(img.height * width / img.width))
    resized = img.resize((width, height), Image.Resampling.LANCZOS)
    # JPEG has no alpha channel or palette
    if resized.mode not in ("RGB", "L"):
        resized = resized.convert("RGB")
    buffer = io.BytesIO()
    resized.save(buffer, format="JPEG", quality=85)
    return buffer.getvalue()


def generate_thumbnails(image_data: bytes, widths=THUMBNAIL_WIDTHS) -> dict[int, bytes]:
    img = Image.open(io.BytesIO(image_data))
    img.load()
    return {width: resize_to_width(img, width) for width in widths}
