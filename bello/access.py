"""Membership-based authorization.

Every project and board scoped handler resolves its target through the
``load_*`` helpers (404 when missing) and then calls ``check_project`` or
``check_board`` (403 when the caller has no standing). Owners are always
authorized, with or without a membership row, and report the pseudo-role
``"owner"``.
"""
from __future__ import annotations

from typing import Iterable, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from .db import Board, BoardMember, Card, ListModel, Project, ProjectMember, User

OWNER = "owner"
MANAGERS = (OWNER, "admin")


def project_role(db: Session, project: Project, user_id: str) -> Optional[str]:
    if project.owner_id == user_id:
        return OWNER
    row = db.get(ProjectMember, (project.id, user_id))
    return row.role if row else None


def board_role(db: Session, board: Board, user_id: str) -> Optional[str]:
    if board.owner_id == user_id:
        return OWNER
    row = db.get(BoardMember, (board.id, user_id))
    return row.role if row else None


def _require(role: Optional[str], roles: Optional[Iterable[str]]) -> str:
    if role is None:
        raise HTTPException(status_code=403, detail="Forbidden")
    if roles is not None and role not in roles:
        raise HTTPException(status_code=403, detail="Forbidden")
    return role


def check_project(
    db: Session, project: Project, user: User, roles: Optional[Iterable[str]] = None
) -> str:
    return _require(project_role(db, project, user.id), roles)


def check_board(
    db: Session, board: Board, user: User, roles: Optional[Iterable[str]] = None
) -> str:
    return _require(board_role(db, board, user.id), roles)


def load_project(db: Session, project_id: str) -> Project:
    project = db.get(Project, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def load_board(db: Session, board_id: str) -> Board:
    board = db.get(Board, board_id)
    if board is None:
        raise HTTPException(status_code=404, detail="Board not found")
    return board


def load_list(db: Session, list_id: str) -> tuple[ListModel, Board]:
    """Return a list with its board; orphaned lists count as missing."""
    lst = db.get(ListModel, list_id)
    if lst is None or lst.board_id is None:
        raise HTTPException(status_code=404, detail="List not found")
    board = db.get(Board, lst.board_id)
    if board is None:
        raise HTTPException(status_code=404, detail="List not found")
    return lst, board


def load_card(db: Session, card_id: str) -> tuple[Card, ListModel, Board]:
    card = db.get(Card, card_id)
    if card is None:
        raise HTTPException(status_code=404, detail="Card not found")
    lst = db.get(ListModel, card.list_id)
    if lst is None or lst.board_id is None:
        raise HTTPException(status_code=404, detail="Card not found")
    board = db.get(Board, lst.board_id)
    if board is None:
        raise HTTPException(status_code=404, detail="Card not found")
    return card, lst, board


def can_access(db: Session, user: User, kind: str, resource_id: str) -> bool:
    """Single yes/no entry point: may ``user`` see ``kind``/``resource_id``?"""
    if kind == "user":
        return resource_id == user.id or user.is_admin
    if kind == "project":
        project = db.get(Project, resource_id)
        return project is not None and project_role(db, project, user.id) is not None
    if kind == "board":
        board = db.get(Board, resource_id)
        return board is not None and board_role(db, board, user.id) is not None
    return False
