from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..access import check_board, load_list
from ..auth import get_current_user
from ..db import Card, ListModel, User, get_db
from ..ordering import DUPLICATE_OFFSET, append_after, ranked, sort_cards
from ..realtime import Broadcaster, get_broadcaster
from ..schemas import ListOut, ListPatch, ListView, MoveCardsIn, SortIn, Success
from ..security import new_id
from ..serializers import list_out, list_view

router = APIRouter(prefix="/lists", tags=["lists"])


def cards_in(db: Session, list_id: str) -> list[Card]:
    return list(
        db.scalars(
            select(Card)
            .where(Card.list_id == list_id)
            .order_by(Card.position, Card.created_at, Card.id)
        ).all()
    )


@router.patch("/{list_id}", response_model=ListOut)
def update_list(
    list_id: str,
    payload: ListPatch,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    lst, board = load_list(db, list_id)
    check_board(db, board, user)
    if payload.title is not None:
        lst.title = payload.title.strip()
    if payload.position is not None:
        lst.position = payload.position
    if payload.color is not None:
        lst.color = payload.color or None
    db.commit()
    broadcast.board(board.id)
    return list_out(lst)


@router.delete("/{list_id}", response_model=Success)
def delete_list(
    list_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    lst, board = load_list(db, list_id)
    check_board(db, board, user)
    db.delete(lst)
    db.commit()
    broadcast.board(board.id)
    return Success()


@router.post("/{list_id}/duplicate", response_model=ListView, status_code=201)
def duplicate_list(
    list_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    source, board = load_list(db, list_id)
    check_board(db, board, user)

    copy = ListModel(
        id=new_id(),
        title=f"{source.title} (copy)",
        position=source.position + DUPLICATE_OFFSET,
        board_id=board.id,
        color=source.color,
    )
    copies = [
        Card(id=new_id(), content=card.content, list_id=copy.id, position=card.position)
        for card in cards_in(db, source.id)
    ]
    db.add(copy)
    db.add_all(copies)
    db.commit()
    broadcast.board(board.id)
    return list_view(copy, copies)


@router.post("/{list_id}/move-cards", response_model=ListView)
def move_cards(
    list_id: str,
    payload: MoveCardsIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    source, board = load_list(db, list_id)
    check_board(db, board, user)
    if payload.targetListId == source.id:
        raise HTTPException(status_code=400, detail="Target list must be different")
    target, target_board = load_list(db, payload.targetListId)
    check_board(db, target_board, user)

    existing = cards_in(db, target.id)
    moving = cards_in(db, source.id)
    positions = append_after([c.position for c in existing], len(moving))
    for card, position in zip(moving, positions):
        card.list_id = target.id
        card.position = position
    db.commit()
    broadcast.board(board.id)
    broadcast.board(target_board.id)
    return list_view(target, existing + moving)


@router.post("/{list_id}/sort", response_model=ListView)
def sort_list(
    list_id: str,
    payload: SortIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    lst, board = load_list(db, list_id)
    check_board(db, board, user)

    ordered = sort_cards(cards_in(db, lst.id), payload.sortBy)
    for card, position in zip(ordered, ranked(len(ordered))):
        card.position = position
    # one flush, one commit for the whole batch
    db.commit()
    broadcast.board(board.id)
    return list_view(lst, ordered)
