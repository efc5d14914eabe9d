from notifications import NotificationQueue
from registry import Removal, RoomRegistry
from schemas.notifications import NewPlayer, PlayerLeft
from logging_config import get_logger

logger = get_logger(__name__)


class SessionManager:
    def __init__(self, registry: RoomRegistry, queue: NotificationQueue):
        self.registry = registry
        self.queue = queue

    async def join(self, room_id: str, player_id: str) -> str:
        """Add the player and tell the host. Returns the host id so the client can address offers."""
        host_id = await self.registry.add_player(room_id, player_id)
        await self.queue.push(room_id, host_id, NewPlayer(player_id=player_id))
        logger.info(f"Player {player_id} joined room {room_id}, host is {host_id}")
        return host_id

    async def leave(self, room_id: str, player_id: str) -> Removal:
        removal = await self.registry.remove_player(room_id, player_id)
        if removal.closed:
            return removal

        for remaining_id in removal.remaining:
            await self.queue.push(room_id, remaining_id, PlayerLeft(player_id=player_id))
        logger.info(f"Player {player_id} left room {room_id}, notified {len(removal.remaining)} players")
        return removal
