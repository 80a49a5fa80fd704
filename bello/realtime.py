from __future__ import annotations

import json
import logging
from collections import defaultdict
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, WebSocket, WebSocketDisconnect, status
from starlette.concurrency import run_in_threadpool

from .access import can_access
from .auth import resolve_session
from .config import SESSION_COOKIE
from .db import SessionLocal, User

logger = logging.getLogger(__name__)

BOARD_UPDATED = "BOARD_UPDATED"
PROJECT_UPDATED = "PROJECT_UPDATED"
USER_UPDATED = "USER_UPDATED"

TOPIC_KEYS = {"boardId": "board", "projectId": "project", "userId": "user"}


def topic_for(kind: str, resource_id: str) -> str:
    return f"{kind}-{resource_id}"


class ConnectionRegistry:
    """Live websocket connections and the topics each one listens to.

    A connection is registered on accept and must be unregistered on
    disconnect; sockets that fail during a publish are dropped.
    """

    def __init__(self) -> None:
        self._topics: dict[str, set[WebSocket]] = defaultdict(set)
        self._connections: dict[WebSocket, set[str]] = {}
        self._owners: dict[WebSocket, str] = {}

    def register(self, websocket: WebSocket, user_id: Optional[str] = None) -> None:
        self._connections[websocket] = set()
        if user_id is not None:
            self._owners[websocket] = user_id

    def unregister(self, websocket: WebSocket) -> None:
        self._owners.pop(websocket, None)
        for topic in self._connections.pop(websocket, set()):
            self._discard(topic, websocket)

    def subscribe(self, websocket: WebSocket, topic: str) -> None:
        if websocket not in self._connections:
            raise KeyError("connection is not registered")
        self._connections[websocket].add(topic)
        self._topics[topic].add(websocket)

    def unsubscribe(self, websocket: WebSocket, topic: str) -> None:
        self._connections.get(websocket, set()).discard(topic)
        self._discard(topic, websocket)

    def connections_for(self, user_id: str) -> list[tuple[WebSocket, set[str]]]:
        return [
            (websocket, set(topics))
            for websocket, topics in self._connections.items()
            if self._owners.get(websocket) == user_id
        ]

    def subscribers(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    def __len__(self) -> int:
        return len(self._connections)

    async def publish(self, topic: str, message: dict) -> int:
        delivered = 0
        for websocket in list(self._topics.get(topic, ())):
            try:
                await websocket.send_json(message)
            except Exception as exc:
                logger.warning("Dropping connection on %s after send failure: %s", topic, exc)
                self.unregister(websocket)
            else:
                delivered += 1
        return delivered

    def _discard(self, topic: str, websocket: WebSocket) -> None:
        members = self._topics.get(topic)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self._topics[topic]


registry = ConnectionRegistry()


class Broadcaster:
    """Queues ``{type}`` notifications to run once the response is out.

    Handlers call this after ``db.commit()``; each topic is queued at most
    once per request.
    """

    def __init__(self, background: BackgroundTasks) -> None:
        self.background = background
        self._queued: set[str] = set()

    def board(self, board_id: Optional[str]) -> None:
        if board_id:
            self._queue(topic_for("board", board_id), BOARD_UPDATED)

    def project(self, project_id: Optional[str]) -> None:
        if project_id:
            self._queue(topic_for("project", project_id), PROJECT_UPDATED)

    def user(self, user_id: Optional[str]) -> None:
        if not user_id:
            return
        topic = topic_for("user", user_id)
        if topic not in self._queued:
            # queued ahead of every publish so revoked topics get nothing further
            self.background.add_task(revalidate_subscriptions, user_id)
        self._queue(topic, USER_UPDATED)

    def _queue(self, topic: str, event_type: str) -> None:
        if topic in self._queued:
            return
        self._queued.add(topic)
        self.background.add_task(_publish, topic, {"type": event_type})


async def _publish(topic: str, message: dict) -> None:
    # looked up at call time so the module-level registry can be swapped
    await registry.publish(topic, message)


def get_broadcaster(background_tasks: BackgroundTasks) -> Broadcaster:
    return Broadcaster(background_tasks)


# === Websocket endpoint ===

router = APIRouter()


def _authenticate(token: Optional[str]) -> Optional[str]:
    db = SessionLocal()
    try:
        user = resolve_session(db, token)
        return user.id if user else None
    finally:
        db.close()


def _authorize(user_id: str, kind: str, resource_id: str) -> bool:
    db = SessionLocal()
    try:
        user = db.get(User, user_id)
        return user is not None and not user.is_banned and can_access(db, user, kind, resource_id)
    finally:
        db.close()


async def revalidate_subscriptions(user_id: str) -> None:
    """Drop the topics ``user_id`` can no longer read on any of its open sockets."""
    for websocket, topics in registry.connections_for(user_id):
        for topic in sorted(topics):
            kind, resource_id = topic.split("-", 1)
            if not await run_in_threadpool(_authorize, user_id, kind, resource_id):
                registry.unsubscribe(websocket, topic)
                logger.info("Revoked %s for user %s", topic, user_id)


def _parse_topic(message: dict) -> Optional[tuple[str, str]]:
    for key, kind in TOPIC_KEYS.items():
        value = message.get(key)
        if isinstance(value, str) and value:
            return kind, value
    return None


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    user_id = await run_in_threadpool(_authenticate, websocket.cookies.get(SESSION_COOKIE))
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    registry.register(websocket, user_id)
    logger.info("Websocket connected for user %s", user_id)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "error": "Invalid JSON"})
                continue
            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "error": "Invalid message"})
                continue
            await _handle_control(websocket, user_id, message)
    except WebSocketDisconnect:
        pass
    finally:
        registry.unregister(websocket)
        logger.info("Websocket disconnected for user %s", user_id)


async def _handle_control(websocket: WebSocket, user_id: str, message: dict) -> None:
    kind = message.get("type")
    if kind == "ping":
        await websocket.send_json({"type": "pong"})
        return
    if kind not in ("subscribe", "unsubscribe"):
        await websocket.send_json({"type": "error", "error": "Unknown message type"})
        return

    target = _parse_topic(message)
    if target is None:
        await websocket.send_json({"type": "error", "error": "Missing boardId, projectId or userId"})
        return
    topic = topic_for(*target)

    if kind == "unsubscribe":
        registry.unsubscribe(websocket, topic)
        await websocket.send_json({"type": "unsubscribed", "topic": topic})
        return

    allowed = await run_in_threadpool(_authorize, user_id, *target)
    if not allowed:
        await websocket.send_json({"type": "error", "error": "Forbidden", "topic": topic})
        return
    registry.subscribe(websocket, topic)
    logger.debug("User %s subscribed to %s", user_id, topic)
    await websocket.send_json({"type": "subscribed", "topic": topic})
