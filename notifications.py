from typing import List

from backend import ROOT, StoreBackend, join_path
from schemas.notifications import Notification, notification_from_wire
from logging_config import get_logger

logger = get_logger(__name__)


class NotificationQueue:
    """Per-room, per-player mailbox of pending notifications.

    Drain reads the mailbox and then deletes it in a second store call. A
    notification pushed between those two calls is lost; callers accept that.
    """

    def __init__(self, store: StoreBackend):
        self.store = store

    @staticmethod
    def mailbox_path(room_id: str, player_id: str) -> str:
        return join_path(ROOT, room_id, "notifications", player_id)

    async def push(self, room_id: str, player_id: str, notification: Notification) -> str:
        key = await self.store.push(self.mailbox_path(room_id, player_id), notification.to_wire())
        logger.debug(f"Queued {notification.type} notification {key} for player {player_id} in room {room_id}")
        return key

    async def drain(self, room_id: str, player_id: str) -> List[Notification]:
        path = self.mailbox_path(room_id, player_id)
        entries = await self.store.get(path) or {}
        await self.store.delete(path)
        notifications = [notification_from_wire(entries[key]) for key in sorted(entries)]
        logger.debug(f"Drained {len(notifications)} notifications for player {player_id} in room {room_id}")
        return notifications
