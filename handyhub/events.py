"""Live connection registry and best-effort event fan-out.

Rooms are addressed by user id and only populated by an explicit client
``join``. Delivery is fire-and-forget: events for users without a live
session are dropped, and a failing session never affects the request that
produced the event. The registry is process-local; running several server
instances needs an external pub/sub layer in its place.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger("handyhub.events")


class LiveSession(Protocol):
    async def send_json(self, data: Any) -> None: ...


@dataclass
class Event:
    type: str
    data: dict = field(default_factory=dict)

    def to_wire(self) -> dict:
        return {"event": self.type, "data": self.data}


class ConnectionRegistry:
    """user id -> live sessions.

    Mutations never await, so they are atomic with respect to the event loop;
    readers get snapshots and may iterate while sessions come and go.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, set[LiveSession]] = {}
        self._joined: dict[LiveSession, set[str]] = {}

    def join(self, user_id: str, session: LiveSession) -> None:
        self._rooms.setdefault(user_id, set()).add(session)
        self._joined.setdefault(session, set()).add(user_id)
        logger.debug("Session joined room %s (%d live)", user_id, len(self._rooms[user_id]))

    def leave(self, user_id: str, session: LiveSession) -> None:
        room = self._rooms.get(user_id)
        if room is not None:
            room.discard(session)
            if not room:
                del self._rooms[user_id]
        joined = self._joined.get(session)
        if joined is not None:
            joined.discard(user_id)
            if not joined:
                del self._joined[session]

    def disconnect(self, session: LiveSession) -> None:
        for user_id in tuple(self._joined.get(session, ())):
            self.leave(user_id, session)

    def sessions(self, user_id: str) -> tuple[LiveSession, ...]:
        return tuple(self._rooms.get(user_id, ()))

    def is_online(self, user_id: str) -> bool:
        return bool(self._rooms.get(user_id))

    def session_count(self) -> int:
        return len(self._joined)

    def clear(self) -> None:
        self._rooms.clear()
        self._joined.clear()


class EventBroadcaster:
    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry
        self._pending: set[asyncio.Task] = set()

    def publish(self, user_id: str, event: Event) -> None:
        self.publish_many([user_id], event)

    def publish_many(self, user_ids: Iterable[str], event: Event) -> None:
        recipients = list(dict.fromkeys(uid for uid in user_ids if uid))
        if not recipients:
            return
        try:
            task = asyncio.get_running_loop().create_task(self._deliver(recipients, event))
        except RuntimeError:
            logger.warning("No running event loop; dropped %s event", event.type)
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, user_ids: list[str], event: Event) -> None:
        try:
            payload = event.to_wire()
            for user_id in user_ids:
                sessions = self.registry.sessions(user_id)
                if not sessions:
                    logger.debug("No live session for %s; dropped %s", user_id, event.type)
                    continue
                for session in sessions:
                    try:
                        await session.send_json(payload)
                    except Exception:
                        logger.warning(
                            "Delivery of %s to %s failed; dropping session",
                            event.type,
                            user_id,
                            exc_info=True,
                        )
                        self.registry.disconnect(session)
        except Exception:
            logger.exception("Broadcast of %s failed", event.type)

    def message_appended(
        self,
        chat_id: str,
        task_id: str,
        message: dict,
        participant_ids: Iterable[str],
        sender_id: str,
    ) -> None:
        """Send ``receive_message`` to every participant except the sender."""
        recipients = [p for p in participant_ids if p != sender_id]
        self.publish_many(
            recipients,
            Event(
                type="receive_message",
                data={"chatId": chat_id, "taskId": task_id, "message": message},
            ),
        )

    def task_updated(self, task: dict) -> None:
        self.publish_many(
            [task["createdBy"], task.get("assignedTo")],
            Event(type="task_updated", data={"task": task}),
        )

    def notification_created(self, user_id: str, notification: dict) -> None:
        self.publish(
            user_id, Event(type="receive_notification", data={"notification": notification})
        )

    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


connections = ConnectionRegistry()
broadcaster = EventBroadcaster(connections)
