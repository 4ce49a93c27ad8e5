from __future__ import annotations

"""
Room orchestration for collaborative project editing.

Each room owns one ``FileTree`` alongside the set of connected members.  Rooms
live until the process exits; the registry never evicts them.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from .errors import StructuralError
from .tree import FileTree

LOGGER = logging.getLogger(__name__)


def _now() -> float:
    return time.time()


@dataclass
class ClientSession:
    """Per-connection state: ``room_key`` is ``None`` until the client joins.

    ``client_id`` is the caller-supplied label and may repeat across tabs;
    ``connection_id`` is unique per socket and keys room membership.
    """

    client_id: str
    websocket: Any
    room_key: Optional[str] = None
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    connected_at: float = field(default_factory=_now)
    last_seen: float = field(default_factory=_now)

    @property
    def joined(self) -> bool:
        return self.room_key is not None

    async def send(self, message: str) -> None:
        await self.websocket.send_text(message)


class Room:
    def __init__(self, key: str, tree: Optional[FileTree] = None) -> None:
        self.key = key
        self.tree = tree if tree is not None else FileTree()
        self.members: Dict[str, ClientSession] = {}
        self.created_at = _now()

    @property
    def revision(self) -> int:
        return self.tree.revision

    # Membership ---------------------------------------------------------------
    def join(self, session: ClientSession) -> None:
        self.members[session.connection_id] = session
        session.room_key = self.key
        session.last_seen = _now()

    def leave(self, session: ClientSession) -> bool:
        if self.members.get(session.connection_id) is not session:
            return False
        del self.members[session.connection_id]
        if session.room_key == self.key:
            session.room_key = None
        return True

    def recipients(self, *, exclude: Optional[ClientSession] = None) -> List[ClientSession]:
        return [session for session in self.members.values() if session is not exclude]

    def member_ids(self) -> List[str]:
        """Client labels of the current members; repeats when one client has several tabs open."""
        return sorted(session.client_id for session in self.members.values())

    def touch(self, session: ClientSession) -> None:
        if self.members.get(session.connection_id) is session:
            session.last_seen = _now()

    def summary(self) -> Dict[str, Any]:
        return {
            "room": self.key,
            "members": self.member_ids(),
            "revision": self.revision,
            "created_at": self.created_at,
        }


class RoomRegistry:
    """
    Registry of active rooms keyed by room name.

    Rooms are created lazily on first join with the default project tree.
    All access happens on the event loop, so lookups and creation need no
    locking.
    """

    def __init__(self, *, tree_factory=FileTree) -> None:
        self._rooms: Dict[str, Room] = {}
        self._tree_factory = tree_factory

    def get_or_create_room(self, key: str) -> Room:
        if not isinstance(key, str) or not key.strip():
            raise StructuralError("Room key must be a non-empty string")
        room = self._rooms.get(key)
        if room is not None:
            return room
        room = Room(key, self._tree_factory())
        self._rooms[key] = room
        LOGGER.info("New room created: %s", key, extra={"room": key})
        return room

    def get_room(self, key: Any) -> Optional[Room]:
        if not isinstance(key, str):
            return None
        return self._rooms.get(key)

    def keys(self) -> List[str]:
        return sorted(self._rooms)

    def __contains__(self, key: object) -> bool:
        return key in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def stats(self) -> Dict[str, Any]:
        rooms = list(self._rooms.values())
        return {
            "rooms": len(rooms),
            "clients": sum(len(room.members) for room in rooms),
        }


__all__ = ["ClientSession", "Room", "RoomRegistry"]
