from __future__ import annotations

import logging
import mimetypes
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, Response

from files_manager.core.exceptions import ValidationError
from files_manager.services.auth import CredentialVerifier
from files_manager.services.files import FileStore

router = APIRouter()

logger = logging.getLogger("files_manager")


def get_auth(request: Request) -> CredentialVerifier:
    return request.app.state.auth


def get_files(request: Request) -> FileStore:
    return request.app.state.files


def require_user(
    x_token: Optional[str] = Header(default=None),
    auth: CredentialVerifier = Depends(get_auth),
) -> int:
    return auth.require_user_id(x_token)


def optional_user(
    x_token: Optional[str] = Header(default=None),
    auth: CredentialVerifier = Depends(get_auth),
) -> Optional[int]:
    return auth.sessions.resolve_session(x_token)


async def read_json(request: Request) -> dict:
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON body")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON body")
    return payload


@router.get("/status")
def status(request: Request):
    return {
        "redis": request.app.state.cache.is_alive(),
        "db": request.app.state.db.is_alive(),
    }


@router.get("/stats")
def stats(request: Request):
    db = request.app.state.db
    return {"users": db.nb_users(), "files": db.nb_files()}


@router.post("/users", status_code=201)
def create_user(payload: dict = Depends(read_json), auth: CredentialVerifier = Depends(get_auth)):
    user = auth.register(payload.get("email"), payload.get("password"))
    return user.to_public()


@router.get("/users/me")
def me(x_token: Optional[str] = Header(default=None), auth: CredentialVerifier = Depends(get_auth)):
    return auth.current_user(x_token).to_public()


@router.api_route("/connect", methods=["GET", "POST"])
def connect(
    authorization: Optional[str] = Header(default=None),
    auth: CredentialVerifier = Depends(get_auth),
):
    return {"token": auth.authenticate(authorization)}


@router.get("/disconnect", status_code=204)
def disconnect(x_token: Optional[str] = Header(default=None), auth: CredentialVerifier = Depends(get_auth)):
    auth.logout(x_token)
    return Response(status_code=204)


@router.post("/files", status_code=201)
async def upload(
    user_id: int = Depends(require_user),
    payload: dict = Depends(read_json),
    files: FileStore = Depends(get_files),
):
    record = await files.create(
        user_id,
        name=payload.get("name"),
        type=payload.get("type"),
        parent_id=payload.get("parentId", 0),
        is_public=payload.get("isPublic", False),
        data=payload.get("data"),
    )
    return record.to_public()


@router.get("/files")
def list_files(
    parentId: Optional[str] = None,  # noqa: N803
    page: Optional[str] = None,
    user_id: int = Depends(require_user),
    files: FileStore = Depends(get_files),
):
    return [record.to_public() for record in files.list(user_id, parentId, page)]


@router.get("/files/{file_id}")
def show_file(file_id: str, user_id: int = Depends(require_user), files: FileStore = Depends(get_files)):
    return files.get(user_id, file_id).to_public()


@router.put("/files/{file_id}/publish")
def publish(file_id: str, user_id: int = Depends(require_user), files: FileStore = Depends(get_files)):
    return files.set_public(user_id, file_id, True).to_public()


@router.put("/files/{file_id}/unpublish")
def unpublish(file_id: str, user_id: int = Depends(require_user), files: FileStore = Depends(get_files)):
    return files.set_public(user_id, file_id, False).to_public()


@router.get("/files/{file_id}/data")
def file_data(
    file_id: str,
    size: Optional[str] = None,
    user_id: Optional[int] = Depends(optional_user),
    files: FileStore = Depends(get_files),
):
    record = files.get_public_or_owned(user_id, file_id)
    if record.type == "folder":
        raise ValidationError("A folder doesn't have content")

    path = record.local_path
    if size is not None:
        path = files.storage.resolve_derivative(path, size)
    content = files.storage.read(path)

    media_type = mimetypes.guess_type(record.name)[0] or "application/octet-stream"
    if size is not None:
        media_type = "image/jpeg"
    logger.info("event=file_served file_id=%s size=%s", record.id, size)
    return Response(content=content, media_type=media_type)

