from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select
from starlette.concurrency import run_in_threadpool

from files_manager.config import LIST_OWNER_SCOPED, PAGE_SIZE
from files_manager.core.exceptions import InternalError, NotFound, ValidationError
from files_manager.db import DBClient
from files_manager.models import FILE_TYPES, ROOT_FOLDER_ID, File
from files_manager.services.thumbnails import ThumbnailQueue
from files_manager.storage import ContentStorage

logger = logging.getLogger("files_manager.files")

MAX_FILE_ID = 2**63 - 1


def parse_file_id(value) -> Optional[int]:
    """Coerce a client supplied id, ``None`` when it cannot name a record."""
    if isinstance(value, bool):
        return None
    try:
        file_id = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    # Ids are stored as signed 64-bit integers
    return file_id if 0 <= file_id <= MAX_FILE_ID else None


def parse_page(value) -> int:
    try:
        page = int(value)
    except (TypeError, ValueError):
        return 0
    return max(page, 0)


def is_visible(record: Optional[File], user_id: Optional[int]) -> bool:
    """Single access rule for content: public, or owned by the requester.

    Absent and forbidden records are indistinguishable to the caller.
    """
    if record is None:
        return False
    return record.is_public or (user_id is not None and record.user_id == user_id)


class FileStore:
    def __init__(
        self,
        db: DBClient,
        storage: ContentStorage,
        thumbnails: ThumbnailQueue,
        page_size: int = PAGE_SIZE,
        owner_scoped_listing: bool = LIST_OWNER_SCOPED,
    ) -> None:
        self.db = db
        self.storage = storage
        self.thumbnails = thumbnails
        self.page_size = page_size
        self.owner_scoped_listing = owner_scoped_listing

    def _load(self, file_id) -> Optional[File]:
        file_id = parse_file_id(file_id)
        if file_id is None:
            return None
        try:
            with self.db.session_scope() as session:
                return session.get(File, file_id)
        except SQLAlchemyError as exc:
            logger.error("event=file_lookup_failed file_id=%s error=%s", file_id, exc)
            raise InternalError() from exc

    def _check_parent(self, parent_id) -> int:
        if parent_id in (None, ROOT_FOLDER_ID, str(ROOT_FOLDER_ID)):
            return ROOT_FOLDER_ID
        # Any folder is accepted as parent, whoever owns it
        parent = self._load(parent_id)
        if parent is None:
            raise ValidationError("Parent not found")
        if parent.type != "folder":
            raise ValidationError("Parent is not a folder")
        return parent.id

    async def create(
        self,
        user_id: int,
        name: Optional[str],
        type: Optional[str],
        parent_id=ROOT_FOLDER_ID,
        is_public: bool = False,
        data: Optional[str] = None,
    ) -> File:
        """Validate, store and record one upload, then queue its thumbnails.

        The database and disk work runs in the threadpool; only the enqueue
        touches the event loop.
        """
        record = await run_in_threadpool(self._insert, user_id, name, type, parent_id, is_public, data)
        if record.type == "image":
            await self.thumbnails.enqueue(record.id, user_id)
        return record

    def _insert(self, user_id, name, type, parent_id, is_public, data) -> File:
        if not name or not isinstance(name, str):
            raise ValidationError("Missing name")
        if not isinstance(type, str) or type not in FILE_TYPES:
            raise ValidationError("Missing or invalid type")
        if type != "folder" and (not data or not isinstance(data, str)):
            raise ValidationError("Missing data")
        if is_public is None:
            is_public = False
        elif not isinstance(is_public, bool):
            raise ValidationError("Invalid isPublic")
        parent_id = self._check_parent(parent_id)

        record = File(
            user_id=user_id,
            name=name,
            type=type,
            is_public=is_public,
            parent_id=parent_id,
        )
        if type != "folder":
            # Bytes first: a failed write leaves no record behind
            record.local_path = self.storage.store(data, name)

        try:
            with self.db.session_scope() as session:
                session.add(record)
                session.commit()
                session.refresh(record)
        except SQLAlchemyError as exc:
            logger.error("event=file_create_failed user_id=%s name=%s error=%s", user_id, name, exc)
            raise InternalError() from exc

        logger.info(
            "event=upload_success file_id=%s user_id=%s type=%s parent_id=%s",
            record.id,
            user_id,
            type,
            parent_id,
        )
        return record

    def get(self, user_id: int, file_id) -> File:
        record = self._load(file_id)
        if record is None or record.user_id != user_id:
            raise NotFound()
        return record

    def get_public_or_owned(self, user_id: Optional[int], file_id) -> File:
        record = self._load(file_id)
        if not is_visible(record, user_id):
            raise NotFound()
        return record

    def list(self, user_id: int, parent_id=ROOT_FOLDER_ID, page=0) -> list[File]:
        parent = parse_file_id(parent_id if parent_id not in (None, "") else ROOT_FOLDER_ID)
        if parent is None:
            return []
        page = parse_page(page)

        stmt = select(File).where(File.parent_id == parent)
        if self.owner_scoped_listing:
            stmt = stmt.where(File.user_id == user_id)
        stmt = stmt.order_by(File.id).offset(page * self.page_size).limit(self.page_size)
        try:
            with self.db.session_scope() as session:
                return list(session.exec(stmt).all())
        except SQLAlchemyError as exc:
            logger.error("event=file_list_failed parent_id=%s page=%s error=%s", parent, page, exc)
            raise InternalError() from exc

    def set_public(self, user_id: int, file_id, value: bool) -> File:
        file_id = parse_file_id(file_id)
        if file_id is None:
            raise NotFound()
        try:
            with self.db.session_scope() as session:
                record = session.get(File, file_id)
                if record is None or record.user_id != user_id:
                    raise NotFound()
                record.is_public = value
                session.add(record)
                session.commit()
                session.refresh(record)
        except SQLAlchemyError as exc:
            logger.error("event=file_publish_failed file_id=%s error=%s", file_id, exc)
            raise InternalError() from exc
        logger.info("event=file_visibility file_id=%s is_public=%s", file_id, value)
        return record
