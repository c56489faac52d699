from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from files_manager.core.exceptions import Conflict, InternalError, Unauthorized, ValidationError
from files_manager.db import DBClient
from files_manager.models import User
from files_manager.services.sessions import SessionStore

logger = logging.getLogger("files_manager.auth")


def hash_password(password: str) -> str:
    """One-way hash shared by registration and login."""
    return hashlib.sha1(password.encode("utf-8")).hexdigest()


def parse_basic_auth(header: Optional[str]) -> tuple[str, str]:
    """Return ``(email, password)`` from a ``Basic`` Authorization header."""
    if not header:
        raise Unauthorized()
    scheme, _, encoded = header.strip().partition(" ")
    if scheme.lower() != "basic" or not encoded:
        raise Unauthorized()
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise Unauthorized()
    email, sep, password = decoded.partition(":")
    if not sep or not email or not password:
        raise Unauthorized()
    return email, password


class CredentialVerifier:
    def __init__(self, db: DBClient, sessions: SessionStore) -> None:
        self.db = db
        self.sessions = sessions

    def register(self, email: Optional[str], password: Optional[str]) -> User:
        if not email or not isinstance(email, str):
            raise ValidationError("Missing email")
        if not password or not isinstance(password, str):
            raise ValidationError("Missing password")

        try:
            with self.db.session_scope() as session:
                if session.exec(select(User).where(User.email == email)).first():
                    raise Conflict("Already exist")
                user = User(email=email, password_hash=hash_password(password))
                session.add(user)
                session.commit()
                session.refresh(user)
        except IntegrityError as exc:
            # Lost a race against a concurrent registration
            raise Conflict("Already exist") from exc
        except SQLAlchemyError as exc:
            logger.error("event=register_failed email=%s error=%s", email, exc)
            raise InternalError() from exc

        logger.info("event=user_registered user_id=%s", user.id)
        return user

    def authenticate(self, authorization: Optional[str]) -> str:
        email, password = parse_basic_auth(authorization)
        try:
            with self.db.session_scope() as session:
                user = session.exec(
                    select(User).where(User.email == email, User.password_hash == hash_password(password))
                ).first()
        except SQLAlchemyError as exc:
            logger.error("event=authenticate_failed error=%s", exc)
            raise InternalError() from exc
        if user is None:
            logger.info("event=login_rejected email=%s", email)
            raise Unauthorized()
        return self.sessions.create_session(user.id)

    def logout(self, token: Optional[str]) -> None:
        if self.sessions.resolve_session(token) is None:
            raise Unauthorized()
        self.sessions.destroy_session(token)

    def require_user_id(self, token: Optional[str]) -> int:
        user_id = self.sessions.resolve_session(token)
        if user_id is None:
            raise Unauthorized()
        return user_id

    def current_user(self, token: Optional[str]) -> User:
        user_id = self.require_user_id(token)
        try:
            with self.db.session_scope() as session:
                user = session.get(User, user_id)
        except SQLAlchemyError as exc:
            raise InternalError() from exc
        if user is None:
            raise Unauthorized()
        return user
