from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..access import MANAGERS, check_project, load_project
from ..auth import get_current_user
from ..db import Board, Project, ProjectMember, User, get_db
from ..realtime import Broadcaster, get_broadcaster
from ..schemas import (
    InviteIn,
    MemberOut,
    ProjectDetail,
    ProjectIn,
    ProjectOut,
    ProjectPatch,
    Success,
)
from ..security import new_id
from ..serializers import board_out, member_out, project_out

router = APIRouter(prefix="/projects", tags=["projects"])


def project_members(db: Session, project: Project) -> list[MemberOut]:
    rows = db.execute(
        select(User, ProjectMember.role)
        .join(ProjectMember, ProjectMember.user_id == User.id)
        .where(ProjectMember.project_id == project.id)
        .order_by(User.name, User.id)
    ).all()
    members = [member_out(user, role) for user, role in rows]
    if all(m.id != project.owner_id for m in members):
        owner = db.get(User, project.owner_id)
        if owner is not None:
            members.insert(0, member_out(owner, "admin"))
    return members


@router.get("", response_model=list[ProjectOut])
def list_projects(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    member_of = select(ProjectMember.project_id).where(ProjectMember.user_id == user.id)
    projects = db.scalars(
        select(Project)
        .where(or_(Project.owner_id == user.id, Project.id.in_(member_of)))
        .order_by(Project.created_at.desc(), Project.id)
    ).all()
    return [project_out(p) for p in projects]


@router.post("", response_model=ProjectOut, status_code=201)
def create_project(
    payload: ProjectIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    project = Project(
        id=new_id(),
        title=payload.title.strip(),
        description=payload.description.strip() if payload.description else None,
        owner_id=user.id,
    )
    db.add(project)
    db.commit()
    db.add(ProjectMember(project_id=project.id, user_id=user.id, role="admin"))
    db.commit()
    broadcast.user(user.id)
    return project_out(project)


@router.get("/{project_id}", response_model=ProjectDetail)
def get_project(
    project_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    project = load_project(db, project_id)
    check_project(db, project, user)
    boards = db.scalars(
        select(Board).where(Board.project_id == project.id).order_by(Board.created_at, Board.id)
    ).all()
    return ProjectDetail(
        **project_out(project).model_dump(),
        members=project_members(db, project),
        boards=[board_out(b) for b in boards],
    )


@router.patch("/{project_id}", response_model=ProjectOut)
def update_project(
    project_id: str,
    payload: ProjectPatch,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    project = load_project(db, project_id)
    check_project(db, project, user)
    if payload.title is not None:
        project.title = payload.title.strip()
    if payload.description is not None:
        project.description = payload.description.strip() if payload.description else None
    db.commit()
    broadcast.project(project.id)
    return project_out(project)


@router.delete("/{project_id}", response_model=Success)
def delete_project(
    project_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    project = load_project(db, project_id)
    if project.owner_id != user.id:
        raise HTTPException(status_code=403, detail="Only the owner can delete this project")
    board_ids = [b.id for b in project.boards]
    db.delete(project)
    db.commit()
    broadcast.project(project_id)
    for board_id in board_ids:
        broadcast.board(board_id)
    broadcast.user(user.id)
    return Success()


@router.post("/{project_id}/invite", response_model=MemberOut, status_code=201)
def invite_to_project(
    project_id: str,
    payload: InviteIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    project = load_project(db, project_id)
    # any owner or member may invite members; only managers may grant admin
    role = check_project(db, project, user)
    if payload.role == "admin" and role not in MANAGERS:
        raise HTTPException(status_code=403, detail="Only project admins can invite admins")
    invitee = db.scalar(select(User).where(User.email == payload.email.lower().strip()))
    if invitee is None:
        raise HTTPException(status_code=404, detail="User not found")
    if invitee.id == project.owner_id or db.get(ProjectMember, (project.id, invitee.id)):
        raise HTTPException(status_code=400, detail="User is already a member")

    db.add(ProjectMember(project_id=project.id, user_id=invitee.id, role=payload.role))
    db.commit()
    broadcast.project(project.id)
    broadcast.user(invitee.id)
    return member_out(invitee, payload.role)


@router.delete("/{project_id}/members/{member_id}", response_model=Success)
def remove_project_member(
    project_id: str,
    member_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    project = load_project(db, project_id)
    role = check_project(db, project, user)
    if member_id == project.owner_id:
        raise HTTPException(status_code=400, detail="Cannot remove the project owner")
    if member_id != user.id and role not in MANAGERS:
        raise HTTPException(status_code=403, detail="Forbidden")
    row = db.get(ProjectMember, (project.id, member_id))
    if row is None:
        raise HTTPException(status_code=404, detail="Member not found")

    db.delete(row)
    db.commit()
    broadcast.user(member_id)
    broadcast.project(project.id)
    return Success()
