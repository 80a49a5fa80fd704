from __future__ import annotations

from .db import Board, Card, ListModel, Project, User, as_utc
from .schemas import (
    AdminUserOut,
    BoardOut,
    CardOut,
    ListOut,
    ListView,
    MemberOut,
    ProjectOut,
    UserPublic,
)


def user_public(user: User) -> UserPublic:
    return UserPublic(id=user.id, email=user.email, name=user.name, isAdmin=user.is_admin)


def admin_user_out(user: User, projects_count: int = 0, boards_count: int = 0) -> AdminUserOut:
    return AdminUserOut(
        id=user.id,
        email=user.email,
        name=user.name,
        isAdmin=user.is_admin,
        isBanned=user.is_banned,
        createdAt=as_utc(user.created_at),
        projectsCount=projects_count,
        boardsCount=boards_count,
    )


def member_out(user: User, role: str) -> MemberOut:
    return MemberOut(id=user.id, email=user.email, name=user.name, role=role)


def project_out(project: Project) -> ProjectOut:
    return ProjectOut(
        id=project.id,
        title=project.title,
        description=project.description,
        ownerId=project.owner_id,
        createdAt=as_utc(project.created_at),
    )


def board_out(board: Board) -> BoardOut:
    return BoardOut(
        id=board.id,
        title=board.title,
        ownerId=board.owner_id,
        projectId=board.project_id,
        createdAt=as_utc(board.created_at),
    )


def list_out(lst: ListModel) -> ListOut:
    return ListOut(
        id=lst.id,
        title=lst.title,
        position=lst.position,
        boardId=lst.board_id,
        color=lst.color,
        createdAt=as_utc(lst.created_at),
    )


def list_view(lst: ListModel, cards: list[Card]) -> ListView:
    return ListView(**list_out(lst).model_dump(), cards=[card_out(c) for c in cards])


def card_out(card: Card) -> CardOut:
    return CardOut(
        id=card.id,
        content=card.content,
        listId=card.list_id,
        position=card.position,
        createdAt=as_utc(card.created_at),
    )
