from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..access import MANAGERS, check_board, check_project, load_board, load_project
from ..auth import get_current_user
from ..db import Board, BoardMember, Card, ListModel, User, get_db
from ..ordering import default_position
from ..realtime import Broadcaster, get_broadcaster
from ..schemas import (
    BoardIn,
    BoardOut,
    BoardPatch,
    BoardView,
    InviteIn,
    ListIn,
    ListOut,
    MemberOut,
    Success,
)
from ..security import new_id
from ..serializers import board_out, list_out, list_view, member_out

router = APIRouter(prefix="/boards", tags=["boards"])


def board_members(db: Session, board: Board) -> list[MemberOut]:
    rows = db.execute(
        select(User, BoardMember.role)
        .join(BoardMember, BoardMember.user_id == User.id)
        .where(BoardMember.board_id == board.id)
        .order_by(User.name, User.id)
    ).all()
    members = [member_out(user, role) for user, role in rows]
    if all(m.id != board.owner_id for m in members):
        owner = db.get(User, board.owner_id)
        if owner is not None:
            members.insert(0, member_out(owner, "admin"))
    return members


def board_view(db: Session, board: Board) -> BoardView:
    lists = db.scalars(
        select(ListModel)
        .where(ListModel.board_id == board.id)
        .order_by(ListModel.position, ListModel.created_at, ListModel.id)
    ).all()

    cards_by_list: dict[str, list[Card]] = {lst.id: [] for lst in lists}
    if cards_by_list:
        cards = db.scalars(
            select(Card)
            .where(Card.list_id.in_(list(cards_by_list)))
            .order_by(Card.position, Card.created_at, Card.id)
        ).all()
        for card in cards:
            cards_by_list[card.list_id].append(card)

    return BoardView(
        **board_out(board).model_dump(),
        members=board_members(db, board),
        lists=[list_view(lst, cards_by_list[lst.id]) for lst in lists],
    )


@router.get("", response_model=list[BoardOut])
def list_boards(
    projectId: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    member_of = select(BoardMember.board_id).where(BoardMember.user_id == user.id)
    query = select(Board).where(or_(Board.owner_id == user.id, Board.id.in_(member_of)))
    if projectId is not None:
        query = query.where(Board.project_id == projectId)
    boards = db.scalars(query.order_by(Board.created_at, Board.id)).all()
    return [board_out(b) for b in boards]


@router.post("", response_model=BoardOut, status_code=201)
def create_board(
    payload: BoardIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    if payload.projectId is not None:
        check_project(db, load_project(db, payload.projectId), user)

    board = Board(
        id=new_id(),
        title=payload.title.strip(),
        owner_id=user.id,
        project_id=payload.projectId,
    )
    db.add(board)
    db.commit()
    db.add(BoardMember(board_id=board.id, user_id=user.id, role="admin"))
    db.commit()
    broadcast.project(board.project_id)
    broadcast.user(user.id)
    return board_out(board)


@router.get("/{board_id}", response_model=BoardView)
def get_board(board_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    board = load_board(db, board_id)
    check_board(db, board, user)
    return board_view(db, board)


@router.patch("/{board_id}", response_model=BoardOut)
def update_board(
    board_id: str,
    payload: BoardPatch,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    board = load_board(db, board_id)
    check_board(db, board, user)
    board.title = payload.title.strip()
    db.commit()
    broadcast.board(board.id)
    broadcast.project(board.project_id)
    return board_out(board)


@router.delete("/{board_id}", response_model=Success)
def delete_board(
    board_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    board = load_board(db, board_id)
    if board.owner_id != user.id:
        raise HTTPException(status_code=403, detail="Only the owner can delete this board")
    project_id = board.project_id
    db.delete(board)
    db.commit()
    broadcast.board(board_id)
    broadcast.project(project_id)
    broadcast.user(user.id)
    return Success()


@router.post("/{board_id}/invite", response_model=MemberOut, status_code=201)
def invite_to_board(
    board_id: str,
    payload: InviteIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    board = load_board(db, board_id)
    check_board(db, board, user, roles=MANAGERS)
    invitee = db.scalar(select(User).where(User.email == payload.email.lower().strip()))
    if invitee is None:
        raise HTTPException(status_code=404, detail="User not found")
    if invitee.id == board.owner_id or db.get(BoardMember, (board.id, invitee.id)):
        raise HTTPException(status_code=400, detail="User is already a member")

    db.add(BoardMember(board_id=board.id, user_id=invitee.id, role=payload.role))
    db.commit()
    broadcast.board(board.id)
    broadcast.user(invitee.id)
    return member_out(invitee, payload.role)


@router.delete("/{board_id}/members/{member_id}", response_model=Success)
def remove_board_member(
    board_id: str,
    member_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    board = load_board(db, board_id)
    role = check_board(db, board, user)
    if member_id == board.owner_id:
        raise HTTPException(status_code=400, detail="Cannot remove the board owner")
    if member_id != user.id and role not in MANAGERS:
        raise HTTPException(status_code=403, detail="Forbidden")
    row = db.get(BoardMember, (board.id, member_id))
    if row is None:
        raise HTTPException(status_code=404, detail="Member not found")

    db.delete(row)
    db.commit()
    broadcast.user(member_id)
    broadcast.board(board.id)
    return Success()


@router.post("/{board_id}/lists", response_model=ListOut, status_code=201)
def create_list(
    board_id: str,
    payload: ListIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    board = load_board(db, board_id)
    check_board(db, board, user)
    lst = ListModel(
        id=new_id(),
        title=payload.title.strip(),
        position=payload.position if payload.position is not None else default_position(),
        board_id=board.id,
        color=payload.color,
    )
    db.add(lst)
    db.commit()
    broadcast.board(board.id)
    return list_out(lst)
