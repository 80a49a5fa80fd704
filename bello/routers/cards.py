from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..access import check_board, load_card, load_list
from ..auth import get_current_user
from ..db import Card, User, get_db
from ..ordering import default_position
from ..realtime import Broadcaster, get_broadcaster
from ..schemas import CardIn, CardOut, CardPatch, Success
from ..security import new_id
from ..serializers import card_out

router = APIRouter(prefix="/cards", tags=["cards"])


@router.post("", response_model=CardOut, status_code=201)
def create_card(
    payload: CardIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    lst, board = load_list(db, payload.listId)
    check_board(db, board, user)
    card = Card(
        id=new_id(),
        content=payload.content,
        list_id=lst.id,
        position=payload.position if payload.position is not None else default_position(),
    )
    db.add(card)
    db.commit()
    broadcast.board(board.id)
    return card_out(card)


@router.get("/{card_id}", response_model=CardOut)
def get_card(card_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card, _, board = load_card(db, card_id)
    check_board(db, board, user)
    return card_out(card)


@router.patch("/{card_id}", response_model=CardOut)
def update_card(
    card_id: str,
    payload: CardPatch,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    card, _, board = load_card(db, card_id)
    check_board(db, board, user)

    target_board = board
    if payload.listId is not None and payload.listId != card.list_id:
        target, target_board = load_list(db, payload.listId)
        check_board(db, target_board, user)
        card.list_id = target.id
    if payload.content is not None:
        card.content = payload.content
    if payload.position is not None:
        card.position = payload.position
    db.commit()
    # a move across boards refreshes both sides
    broadcast.board(board.id)
    broadcast.board(target_board.id)
    return card_out(card)


@router.delete("/{card_id}", response_model=Success)
def delete_card(
    card_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    broadcast: Broadcaster = Depends(get_broadcaster),
):
    card, _, board = load_card(db, card_id)
    check_board(db, board, user)
    db.delete(card)
    db.commit()
    broadcast.board(board.id)
    return Success()
