from __future__ import annotations

from typing import Optional

from sqlmodel import Field, SQLModel

ROOT_FOLDER_ID = 0
FILE_TYPES = ("folder", "file", "image")


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str

    def to_public(self) -> dict:
        return {"id": self.id, "email": self.email}


class File(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="user.id")
    name: str
    type: str
    is_public: bool = Field(default=False)
    parent_id: int = Field(default=ROOT_FOLDER_ID, index=True)  # 0 = root
    local_path: Optional[str] = Field(default=None, nullable=True)  # never serialized

    def to_public(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "type": self.type,
            "isPublic": self.is_public,
            "parentId": self.parent_id,
        }
