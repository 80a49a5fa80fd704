import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..access import load_board, load_project
from ..auth import require_admin
from ..db import Board, BoardMember, Project, ProjectMember, User, get_db
from ..realtime import Broadcaster, get_broadcaster
from ..schemas import AdminUserOut, BoardAccess, ProjectAccess, RenameIn, Success, UserAccess
from ..serializers import admin_user_out

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def membership_counts(db: Session, model, user_id: Optional[str] = None) -> dict[str, int]:
    """Grouped ``user_id -> rows`` count over a membership table."""
    query = select(model.user_id, func.count()).group_by(model.user_id)
    if user_id is not None:
        query = query.where(model.user_id == user_id)
    return {uid: count for uid, count in db.execute(query).all()}


def load_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def user_stats(db: Session, user: User) -> AdminUserOut:
    projects = membership_counts(db, ProjectMember, user.id)
    boards = membership_counts(db, BoardMember, user.id)
    return admin_user_out(user, projects.get(user.id, 0), boards.get(user.id, 0))


@router.get("/users", response_model=list[AdminUserOut])
def list_users(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        users = db.scalars(select(User).order_by(User.created_at, User.id)).all()
        projects = membership_counts(db, ProjectMember)
        boards = membership_counts(db, BoardMember)
    except SQLAlchemyError:
        logger.exception("Admin user listing failed")
        raise HTTPException(status_code=500, detail="Failed to fetch users")
    return [admin_user_out(u, projects.get(u.id, 0), boards.get(u.id, 0)) for u in users]


@router.get("/users/{user_id}/access", response_model=UserAccess)
def user_access(user_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    user = load_user(db, user_id)

    project_rows = db.execute(
        select(Project, ProjectMember.role)
        .join(ProjectMember, ProjectMember.project_id == Project.id)
        .where(ProjectMember.user_id == user.id)
    ).all()
    projects = {
        p.id: ProjectAccess(id=p.id, title=p.title, role=role, isOwner=p.owner_id == user.id)
        for p, role in project_rows
    }
    for p in db.scalars(select(Project).where(Project.owner_id == user.id)):
        projects.setdefault(p.id, ProjectAccess(id=p.id, title=p.title, role="admin", isOwner=True))

    board_rows = db.execute(
        select(Board, BoardMember.role)
        .join(BoardMember, BoardMember.board_id == Board.id)
        .where(BoardMember.user_id == user.id)
    ).all()
    boards = {
        b.id: BoardAccess(
            id=b.id, title=b.title, role=role, isOwner=b.owner_id == user.id, projectId=b.project_id
        )
        for b, role in board_rows
    }
    for b in db.scalars(select(Board).where(Board.owner_id == user.id)):
        boards.setdefault(
            b.id,
            BoardAccess(id=b.id, title=b.title, role="admin", isOwner=True, projectId=b.project_id),
        )

    return UserAccess(
        user=user_stats(db, user),
        projects=sorted(projects.values(), key=lambda a: (a.title, a.id)),
        boards=sorted(boards.values(), key=lambda a: (a.title, a.id)),
    )


@router.post("/users/{user_id}/ban", response_model=AdminUserOut)
def toggle_ban(
    user_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="Cannot ban yourself")
    user = load_user(db, user_id)
    user.is_banned = not user.is_banned
    db.commit()
    logger.info("Admin %s set banned=%s on user %s", admin.id, user.is_banned, user.id)
    broadcast.user(user.id)
    return user_stats(db, user)


@router.patch("/users/{user_id}/name", response_model=AdminUserOut)
def rename_user(
    user_id: str,
    payload: RenameIn,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    user = load_user(db, user_id)
    user.name = payload.name.strip()
    db.commit()
    broadcast.user(user.id)
    return user_stats(db, user)


@router.delete("/users/{user_id}/projects/{project_id}", response_model=Success)
def remove_from_project(
    user_id: str,
    project_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    user = load_user(db, user_id)
    project = load_project(db, project_id)
    if project.owner_id == user.id:
        raise HTTPException(status_code=400, detail="Cannot remove the project owner")
    row = db.get(ProjectMember, (project.id, user.id))
    if row is None:
        raise HTTPException(status_code=404, detail="Membership not found")

    board_ids = db.scalars(select(Board.id).where(Board.project_id == project.id)).all()
    db.delete(row)
    db.commit()
    logger.info("Admin %s removed user %s from project %s", admin.id, user_id, project_id)
    broadcast.user(user_id)
    broadcast.project(project_id)
    for board_id in board_ids:
        broadcast.board(board_id)
    return Success()


@router.delete("/users/{user_id}/boards/{board_id}", response_model=Success)
def remove_from_board(
    user_id: str,
    board_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    user = load_user(db, user_id)
    board = load_board(db, board_id)
    if board.owner_id == user.id:
        raise HTTPException(status_code=400, detail="Cannot remove the board owner")
    row = db.get(BoardMember, (board.id, user.id))
    if row is None:
        raise HTTPException(status_code=404, detail="Membership not found")

    db.delete(row)
    db.commit()
    logger.info("Admin %s removed user %s from board %s", admin.id, user_id, board_id)
    broadcast.user(user_id)
    broadcast.board(board_id)
    return Success()
