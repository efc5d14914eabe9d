from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from backend import ROOT, StoreBackend, join_path, now_ms
from constants import MAX_PLAYERS
from errors import AlreadyExists, NotFound, RoomFull
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Room:
    id: str
    host: str
    players: Set[str]
    created_at: Optional[int] = None
    offers: Dict[str, Any] = field(default_factory=dict)
    answers: Dict[str, Any] = field(default_factory=dict)
    ice_candidates: Dict[str, Any] = field(default_factory=dict)
    notifications: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_tree(cls, room_id: str, tree: Dict[str, Any]) -> "Room":
        return cls(
            id=room_id,
            host=tree["host"],
            players=set(tree.get("players") or {}),
            created_at=tree.get("createdAt"),
            offers=tree.get("offers") or {},
            answers=tree.get("answers") or {},
            ice_candidates=tree.get("ice_candidates") or {},
            notifications=tree.get("notifications") or {},
        )


@dataclass
class Removal:
    """Outcome of removing a player from a room."""

    closed: bool
    host: Optional[str] = None
    host_changed: bool = False
    remaining: List[str] = field(default_factory=list)


class RoomRegistry:
    def __init__(self, store: StoreBackend, max_players: int = MAX_PLAYERS, clock: Callable[[], int] = now_ms):
        self.store = store
        self.max_players = max_players
        self.clock = clock

    @staticmethod
    def room_path(room_id: str, *children: str) -> str:
        return join_path(ROOT, room_id, *children)

    async def create(self, room_id: str, host_id: str) -> Room:
        logger.info(f"Creating room {room_id} hosted by {host_id}")
        if self._is_room(await self.store.get(self.room_path(room_id))):
            logger.warning(f"Room {room_id} already exists")
            raise AlreadyExists()
        tree = {
            "host": host_id,
            "players": {host_id: True},
            "createdAt": self.clock(),
        }
        await self.store.set(self.room_path(room_id), tree)
        return Room.from_tree(room_id, tree)

    async def get(self, room_id: str) -> Room:
        tree = await self.store.get(self.room_path(room_id))
        if not self._is_room(tree):
            logger.debug(f"Room {room_id} not found")
            raise NotFound()
        return Room.from_tree(room_id, tree)

    @staticmethod
    def _is_room(tree) -> bool:
        # A node without a host is a stray mailbox written after the room went away
        return isinstance(tree, dict) and "host" in tree

    async def add_player(self, room_id: str, player_id: str) -> str:
        """Add player_id to the room and return the current host id."""
        room = await self.get(room_id)
        if len(room.players) >= self.max_players:
            logger.warning(f"Room {room_id} is full ({len(room.players)}/{self.max_players})")
            raise RoomFull()
        await self.store.update(self.room_path(room_id, "players"), {player_id: True})
        logger.info(f"Player {player_id} added to room {room_id} ({len(room.players | {player_id})}/{self.max_players})")
        return room.host

    async def remove_player(self, room_id: str, player_id: str) -> Removal:
        room = await self.get(room_id)
        await self.store.delete(self.room_path(room_id, "players", player_id))

        players = await self.store.get(self.room_path(room_id, "players")) or {}
        if not players:
            await self.store.delete(self.room_path(room_id))
            logger.info(f"Room {room_id} closed: last player {player_id} left")
            return Removal(closed=True)

        remaining = sorted(players)
        if player_id != room.host:
            return Removal(closed=False, host=room.host, remaining=remaining)

        new_host = remaining[0]
        await self.store.update(self.room_path(room_id), {"host": new_host})
        logger.info(f"Host {player_id} left room {room_id}, {new_host} is the new host")
        return Removal(closed=False, host=new_host, host_changed=True, remaining=remaining)

    async def destroy(self, room_id: str) -> None:
        await self.store.delete(self.room_path(room_id))
        logger.debug(f"Room {room_id} destroyed")

    async def list_rooms(self) -> Dict[str, Any]:
        """Raw room trees keyed by room id."""
        return await self.store.get(ROOT) or {}
