from __future__ import annotations

"""
Real-time synchronization protocol for project rooms.

Maps inbound client events onto ``RoomRegistry`` / ``FileTree`` operations and
decides who hears about the outcome:

* structural edits (create/delete) push the full tree to every member,
* content edits push a ``(filePath, newContent)`` delta to everyone but the
  sender, then ask the agent service for an analysis that only the sender
  receives,
* commits hash the canonical tree and broadcast the anchored result.

Concurrent edits are last-write-wins: whichever update is handled last
overwrites the content, with no merge and no conflict detection.

Agent calls run as background tasks so a slow agent never blocks further
events.  Their results carry the room revision captured at request time and
are delivered even when the tree changed meanwhile (flagged ``stale``).  The
agent result itself forms the frame body, so clients read its fields (for
example ``feedback`` or ``answer``) at the top level.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple, Type

from pydantic import BaseModel, ValidationError

from ..agents.gateway import AgentError
from . import events
from .errors import StructuralError
from .room import ClientSession, Room, RoomRegistry

LOGGER = logging.getLogger(__name__)

FILE_KIND = "file"
FOLDER_KIND = "folder"


def _dumps(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def _frame(event: str, payload: Dict[str, Any]) -> str:
    # ``type`` always names the event, even when the payload carries its own.
    return _dumps({**payload, "type": event})


@dataclass(frozen=True, slots=True)
class CommitRecord:
    """Outcome of an anchored commit; never retained server-side."""

    room_key: str
    canonical_hash: str
    wallet_address: str
    transaction_id: str

    def broadcast_payload(self) -> Dict[str, Any]:
        return {
            "user": self.wallet_address,
            "hash": self.canonical_hash,
            "transactionId": self.transaction_id,
        }


Route = Tuple[Type[BaseModel], Callable[[ClientSession, Any], Awaitable[None]]]


class SyncProtocolHandler:
    def __init__(self, registry: RoomRegistry, gateway: Any) -> None:
        self.registry = registry
        self.gateway = gateway
        self._tasks: Set[asyncio.Task] = set()
        self._routes: Dict[str, Route] = {
            events.JOIN_ROOM: (events.JoinRoomEvent, self._on_join),
            events.FILE_CONTENT_UPDATE: (
                events.FileContentUpdateEvent,
                self._on_file_content_update,
            ),
            events.CREATE_FILE: (events.CreateItemEvent, self._on_create_file),
            events.CREATE_FOLDER: (events.CreateItemEvent, self._on_create_folder),
            events.DELETE_ITEM: (events.DeleteItemEvent, self._on_delete_item),
            events.COMMIT_MILESTONE: (
                events.CommitMilestoneEvent,
                self._on_commit_milestone,
            ),
            events.INVOKE_TASK_MASTER: (events.AskTaskMasterEvent, self._on_ask),
        }

    # Transport ----------------------------------------------------------------
    async def send(self, session: ClientSession, event: str, **payload: Any) -> None:
        await session.send(_frame(event, payload))

    async def broadcast(
        self,
        room: Room,
        event: str,
        payload: Dict[str, Any],
        *,
        exclude: Optional[ClientSession] = None,
    ) -> int:
        """Send to room members (minus ``exclude``); drops members whose socket fails."""
        message = _frame(event, payload)
        failures = []
        delivered = 0
        for session in room.recipients(exclude=exclude):
            try:
                await session.send(message)
                delivered += 1
            except Exception as exc:  # pragma: no cover - network path
                LOGGER.warning("Broadcast to %s failed: %s", session.client_id, exc)
                failures.append(session)
        for session in failures:
            room.leave(session)
        return delivered

    async def _deliver_late(
        self, session: ClientSession, event: str, payload: Dict[str, Any]
    ) -> None:
        # Background results may arrive after the requester disconnected.
        try:
            await session.send(_frame(event, payload))
        except Exception as exc:
            LOGGER.info(
                "Dropping %s for %s (send failed: %s)", event, session.client_id, exc
            )

    async def operation_error(self, session: ClientSession, message: str) -> None:
        await self.send(session, events.OPERATION_ERROR, message=message)

    # Dispatch -----------------------------------------------------------------
    async def handle_text(self, session: ClientSession, raw: str) -> None:
        try:
            body = json.loads(raw)
        except ValueError:
            await self.send(session, events.ERROR, error="invalid_json")
            return
        if not isinstance(body, dict):
            await self.send(session, events.ERROR, error="invalid_json")
            return
        await self.handle(session, body)

    async def handle(self, session: ClientSession, body: Dict[str, Any]) -> None:
        msg_type = str(body.get("type") or "").strip().lower()
        if msg_type == events.PING:
            await self.send(session, events.PONG)
            return
        route = self._routes.get(msg_type)
        if route is None:
            await self.send(
                session,
                events.ERROR,
                error="unknown_message_type",
                received=msg_type,
            )
            return
        model, handler = route
        try:
            event = model.model_validate(body)
        except ValidationError as exc:
            details = exc.errors()
            first = details[0] if details else {}
            field = ".".join(str(part) for part in first.get("loc", ()))
            await self.operation_error(
                session,
                f"Invalid {msg_type} event: {field or 'payload'} {first.get('msg', '')}".strip(),
            )
            return
        await handler(session, event)

    async def _on_join(self, session: ClientSession, event: events.JoinRoomEvent) -> None:
        await self.join(session, event.room)

    async def _on_file_content_update(
        self, session: ClientSession, event: events.FileContentUpdateEvent
    ) -> None:
        await self.update_file(session, event.room, event.file_path, event.new_content)

    async def _on_create_file(
        self, session: ClientSession, event: events.CreateItemEvent
    ) -> None:
        await self.create(session, event.room, event.path, event.name, FILE_KIND)

    async def _on_create_folder(
        self, session: ClientSession, event: events.CreateItemEvent
    ) -> None:
        await self.create(session, event.room, event.path, event.name, FOLDER_KIND)

    async def _on_delete_item(
        self, session: ClientSession, event: events.DeleteItemEvent
    ) -> None:
        await self.delete_item(session, event.room, event.item_path)

    async def _on_commit_milestone(
        self, session: ClientSession, event: events.CommitMilestoneEvent
    ) -> None:
        await self.commit_milestone(session, event.room, event.wallet_address)

    async def _on_ask(self, session: ClientSession, event: events.AskTaskMasterEvent) -> None:
        await self.ask(session, event.question)

    # Operations ---------------------------------------------------------------
    async def join(self, session: ClientSession, room_key: str) -> Optional[Room]:
        """Move ``session`` into ``room_key``; a rejected key leaves it where it was."""
        try:
            room = self.registry.get_or_create_room(room_key)
        except StructuralError as exc:
            await self.operation_error(session, exc.message)
            return None
        previous = session.room_key
        if previous is not None and previous != room.key:
            old = self.registry.get_room(previous)
            if old is not None:
                old.leave(session)
        room.join(session)
        LOGGER.info(
            "User %s joined room: %s",
            session.client_id,
            room_key,
            extra={"room": room_key, "client_id": session.client_id},
        )
        await self.send(
            session,
            events.PROJECT_STATE_UPDATE,
            room=room.key,
            revision=room.revision,
            tree=room.tree.snapshot(),
        )
        return room

    async def _room_or_error(self, session: ClientSession, room_key: str) -> Optional[Room]:
        room = self.registry.get_room(room_key)
        if room is None:
            await self.operation_error(session, f"Room not found: {room_key}")
            return None
        room.touch(session)
        return room

    async def _push_snapshot(self, room: Room) -> None:
        await self.broadcast(
            room,
            events.PROJECT_STATE_UPDATE,
            {"room": room.key, "revision": room.revision, "tree": room.tree.snapshot()},
        )

    async def update_file(
        self, session: ClientSession, room_key: str, file_path: str, new_content: str
    ) -> bool:
        room = await self._room_or_error(session, room_key)
        if room is None:
            return False
        try:
            room.tree.update_file_content(file_path, new_content)
        except StructuralError as exc:
            await self.operation_error(session, exc.message)
            return False
        await self.broadcast(
            room,
            events.FILE_CONTENT_UPDATE,
            {"filePath": file_path, "newContent": new_content},
            exclude=session,
        )
        self._spawn(self._analyze(session, room, file_path, new_content, room.revision))
        return True

    async def create(
        self,
        session: ClientSession,
        room_key: str,
        parent_path: str,
        name: str,
        kind: str,
    ) -> bool:
        room = await self._room_or_error(session, room_key)
        if room is None:
            return False
        try:
            if kind == FILE_KIND:
                room.tree.create_file(parent_path, name)
            elif kind == FOLDER_KIND:
                room.tree.create_folder(parent_path, name)
            else:
                raise ValueError(f"unknown item kind: {kind!r}")
        except StructuralError as exc:
            await self.operation_error(
                session, f"Cannot create {kind} in path: {parent_path} ({exc.message})"
            )
            return False
        await self._push_snapshot(room)
        return True

    async def delete_item(self, session: ClientSession, room_key: str, item_path: str) -> bool:
        room = await self._room_or_error(session, room_key)
        if room is None:
            return False
        try:
            room.tree.delete_item(item_path)
        except StructuralError as exc:
            await self.operation_error(session, exc.message)
            return False
        await self._push_snapshot(room)
        return True

    async def commit_milestone(
        self, session: ClientSession, room_key: str, wallet_address: str
    ) -> Optional[str]:
        """Hash the tree now and anchor it in the background; returns the hash."""
        room = await self._room_or_error(session, room_key)
        if room is None:
            return None
        project_hash = room.tree.fingerprint()
        LOGGER.info(
            "Committing project hash for room %s: %s",
            room.key,
            project_hash,
            extra={"room": room.key, "wallet": wallet_address},
        )
        self._spawn(self._anchor(session, room, wallet_address, project_hash))
        return project_hash

    async def ask(self, session: ClientSession, question: str) -> None:
        self._spawn(self._ask(session, question))

    def disconnect(self, session: ClientSession) -> None:
        room_key = session.room_key
        if room_key is not None:
            room = self.registry.get_room(room_key)
            if room is not None:
                room.leave(session)
        LOGGER.info(
            "User disconnected: %s",
            session.client_id,
            extra={"room": room_key, "client_id": session.client_id},
        )

    # Agent round-trips --------------------------------------------------------
    async def _analyze(
        self,
        session: ClientSession,
        room: Room,
        file_path: str,
        code: str,
        revision: int,
    ) -> None:
        try:
            analysis = await self.gateway.analyze(file_path, code)
        except AgentError as exc:
            LOGGER.warning("Analysis skipped for %s: %s", file_path, exc.message)
            return
        await self._deliver_late(
            session,
            events.AGENT_FEEDBACK,
            {
                **analysis,
                "filePath": file_path,
                "revision": revision,
                "stale": room.revision != revision,
            },
        )

    async def _anchor(
        self, session: ClientSession, room: Room, wallet_address: str, project_hash: str
    ) -> None:
        try:
            result = await self.gateway.anchor(wallet_address, project_hash)
        except AgentError as exc:
            await self._deliver_late(session, events.COMMIT_ERROR, exc.as_dict())
            return
        record = CommitRecord(
            room_key=room.key,
            canonical_hash=project_hash,
            wallet_address=wallet_address,
            transaction_id=str(result["transactionId"]),
        )
        LOGGER.info(
            "Milestone committed for room %s (tx %s)",
            record.room_key,
            record.transaction_id,
        )
        await self.broadcast(room, events.MILESTONE_COMMITTED, record.broadcast_payload())

    async def _ask(self, session: ClientSession, question: str) -> None:
        try:
            result = await self.gateway.ask(question)
        except AgentError as exc:
            LOGGER.warning("Task master request failed: %s", exc.message)
            return
        await self._deliver_late(session, events.TASK_MASTER_RESPONSE, result)

    # Background tasks ---------------------------------------------------------
    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Agent task failed", exc_info=exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every pending agent round-trip has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


__all__ = ["CommitRecord", "FILE_KIND", "FOLDER_KIND", "SyncProtocolHandler"]
