from __future__ import annotations

import base64
import binascii
import logging
import os
import uuid

from files_manager.config import FOLDER_PATH, THUMBNAIL_WIDTHS
from files_manager.core.exceptions import InternalError, NotFound, ValidationError

logger = logging.getLogger("files_manager.storage")


def derivative_path(local_path: str, width: int) -> str:
    """Path of the ``width`` thumbnail written beside ``local_path``."""
    base, _ = os.path.splitext(local_path)
    return f"{base}_{width}.jpg"


class ContentStorage:
    """Writes uploaded payloads under random names in ``root``.

    The storage root is shared by every upload and every worker; names are
    uuid4 based so concurrent writers never target the same path.
    """

    def __init__(self, root: str = FOLDER_PATH) -> None:
        self.root = os.path.abspath(root)

    def _reserve_path(self, original_name: str) -> str:
        ext = os.path.splitext(original_name)[1]
        return os.path.join(self.root, f"{uuid.uuid4()}{ext}")

    def store(self, data: str, original_name: str) -> str:
        try:
            file_bytes = base64.b64decode(data)
        except (binascii.Error, ValueError, TypeError):
            raise ValidationError("Invalid data")

        path = self._reserve_path(original_name)
        try:
            os.makedirs(self.root, exist_ok=True)
            with open(path, "wb") as f:
                f.write(file_bytes)
        except OSError as exc:
            logger.error("event=store_failed path=%s error=%s", path, exc)
            raise InternalError() from exc

        logger.info("event=content_stored path=%s size_bytes=%s", path, len(file_bytes))
        return path

    def read(self, local_path: str | None) -> bytes:
        # The record can outlive the bytes on disk, so always check here
        if not local_path or not os.path.isfile(local_path):
            raise NotFound()
        try:
            with open(local_path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            raise NotFound()

    def resolve_derivative(self, local_path: str, size) -> str:
        try:
            width = int(size)
        except (TypeError, ValueError):
            raise NotFound()
        if width not in THUMBNAIL_WIDTHS:
            raise NotFound()
        return derivative_path(local_path, width)
