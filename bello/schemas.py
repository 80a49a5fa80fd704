from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["admin", "member"]


class ErrorOut(BaseModel):
    error: str
    details: Optional[list[Any]] = None


class Ping(BaseModel):
    message: str = "pong"
    time: datetime


class Success(BaseModel):
    success: bool = True


# === Auth ===


class SignupIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=256)
    name: str = Field(min_length=1, max_length=128)


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=256)


class UserPublic(BaseModel):
    id: str
    email: str
    name: str
    isAdmin: bool


class UserEnvelope(BaseModel):
    user: Optional[UserPublic]


# === Membership ===


class InviteIn(BaseModel):
    email: EmailStr
    role: Role = "member"


class MemberOut(BaseModel):
    id: str
    email: str
    name: str
    role: str


# === Projects ===


class ProjectIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)


class ProjectPatch(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)


class ProjectOut(BaseModel):
    id: str
    title: str
    description: Optional[str]
    ownerId: str
    createdAt: datetime


# === Boards ===


class BoardIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    projectId: Optional[str] = None


class BoardPatch(BaseModel):
    title: str = Field(min_length=1, max_length=200)


class BoardOut(BaseModel):
    id: str
    title: str
    ownerId: str
    projectId: Optional[str]
    createdAt: datetime


class ProjectDetail(ProjectOut):
    members: list[MemberOut]
    boards: list[BoardOut]


# === Lists & cards ===


class ListIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    position: Optional[float] = Field(default=None, allow_inf_nan=False)
    color: Optional[str] = Field(default=None, max_length=32)


class ListPatch(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    position: Optional[float] = Field(default=None, allow_inf_nan=False)
    color: Optional[str] = Field(default=None, max_length=32)


class MoveCardsIn(BaseModel):
    targetListId: str


class SortIn(BaseModel):
    sortBy: Literal["oldest", "newest", "abc"]


class CardIn(BaseModel):
    content: str = Field(min_length=1, max_length=8000)
    listId: str
    position: Optional[float] = Field(default=None, allow_inf_nan=False)


class CardPatch(BaseModel):
    content: Optional[str] = Field(default=None, min_length=1, max_length=8000)
    listId: Optional[str] = None
    position: Optional[float] = Field(default=None, allow_inf_nan=False)


class CardOut(BaseModel):
    id: str
    content: str
    listId: str
    position: float
    createdAt: datetime


class ListOut(BaseModel):
    id: str
    title: str
    position: float
    boardId: Optional[str]
    color: Optional[str]
    createdAt: datetime


class ListView(ListOut):
    cards: list[CardOut]


class BoardView(BoardOut):
    members: list[MemberOut]
    lists: list[ListView]


# === Admin ===


class AdminUserOut(BaseModel):
    id: str
    email: str
    name: str
    isAdmin: bool
    isBanned: bool
    createdAt: datetime
    projectsCount: int = 0
    boardsCount: int = 0


class RenameIn(BaseModel):
    name: str = Field(min_length=1, max_length=128)


class ProjectAccess(BaseModel):
    id: str
    title: str
    role: str
    isOwner: bool


class BoardAccess(BaseModel):
    id: str
    title: str
    role: str
    isOwner: bool
    projectId: Optional[str]


class UserAccess(BaseModel):
    user: AdminUserOut
    projects: list[ProjectAccess]
    boards: list[BoardAccess]
