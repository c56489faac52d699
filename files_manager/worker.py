"""Thumbnail worker process.

Run with ``python -m files_manager.worker`` (or ``files-manager-worker``). arq
consumes the same named queue the API enqueues to, running at most
``WORKER_CONCURRENCY`` jobs at once. Failed jobs are logged and never retried.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from arq.connections import RedisSettings
from arq.worker import run_worker
from sqlmodel import select

from files_manager.config import (
    DB_URL,
    FOLDER_PATH,
    LOG_LEVEL,
    REDIS_URL,
    THUMBNAIL_QUEUE,
    THUMBNAIL_WIDTHS,
    WORKER_CONCURRENCY,
)
from files_manager.core.exceptions import NotFound
from files_manager.db import DBClient
from files_manager.models import File
from files_manager.services.thumbnails import generate_thumbnails
from files_manager.storage import ContentStorage, derivative_path

logger = logging.getLogger("files_manager.worker")


class JobFailed(Exception):
    pass


def _parse_id(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _load_record(db: DBClient, file_id: int, user_id: int) -> Optional[File]:
    with db.session_scope() as session:
        return session.exec(select(File).where(File.id == file_id, File.user_id == user_id)).first()


def _write_bytes(path: str, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)


async def _process(db: DBClient, storage: ContentStorage, file_id, user_id) -> list[str]:
    file_id, user_id = _parse_id(file_id), _parse_id(user_id)
    if file_id is None or user_id is None:
        raise JobFailed("Missing fileId or userId")

    record = await asyncio.to_thread(_load_record, db, file_id, user_id)
    if record is None:
        raise JobFailed("File not found")

    try:
        original = await asyncio.to_thread(storage.read, record.local_path)
    except NotFound:
        raise JobFailed(f"Content missing on disk for file {file_id}")

    try:
        thumbnails = await asyncio.to_thread(generate_thumbnails, original)
    except (OSError, ValueError) as exc:
        raise JobFailed(f"Cannot decode image for file {file_id}: {exc}") from exc

    paths = {width: derivative_path(record.local_path, width) for width in THUMBNAIL_WIDTHS}
    results = await asyncio.gather(
        *(asyncio.to_thread(_write_bytes, paths[width], thumbnails[width]) for width in paths),
        return_exceptions=True,
    )
    errors = [result for result in results if isinstance(result, BaseException)]
    if errors:
        raise JobFailed(f"{len(errors)} of {len(paths)} thumbnail writes failed: {errors[0]}")
    return list(paths.values())


async def generate_thumbnails_job(ctx: dict[str, Any], file_id, user_id) -> list[str]:
    """Write the 500/250/100 px derivatives of one image; returns their paths.

    Metadata is only read. Any error fails the job: it is logged here and
    re-raised so arq records the failure and moves on to the next job.
    """
    logger.info("event=job_processing job_id=%s file_id=%s user_id=%s", ctx.get("job_id"), file_id, user_id)
    try:
        paths = await _process(ctx["db"], ctx["storage"], file_id, user_id)
    except JobFailed as exc:
        logger.error("event=job_failed file_id=%s error=%s", file_id, exc)
        raise
    except Exception as exc:
        logger.exception("event=job_failed file_id=%s reason=unexpected error=%s", file_id, exc)
        raise
    logger.info("event=job_completed file_id=%s thumbnails=%s", file_id, ",".join(paths))
    return paths


async def startup(ctx: dict[str, Any]) -> None:
    ctx["db"] = DBClient(DB_URL).connect()
    ctx["storage"] = ContentStorage(FOLDER_PATH)
    logger.info("event=worker_started queue=%s max_jobs=%s", THUMBNAIL_QUEUE, WORKER_CONCURRENCY)


async def shutdown(ctx: dict[str, Any]) -> None:
    db = ctx.get("db")
    if db is not None:
        db.close()
    logger.info("event=worker_stopped queue=%s", THUMBNAIL_QUEUE)


class WorkerSettings:
    # Attributes arq reads off the settings class
    redis_settings = RedisSettings.from_dsn(REDIS_URL)
    queue_name = THUMBNAIL_QUEUE
    functions = [generate_thumbnails_job]
    on_startup = startup
    on_shutdown = shutdown
    max_jobs = WORKER_CONCURRENCY
    max_tries = 1


def main() -> None:
    logging.basicConfig(level=LOG_LEVEL)
    run_worker(WorkerSettings)


if __name__ == "__main__":
    main()
