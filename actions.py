from typing import Awaitable, Callable, Dict, Tuple

from backend import StoreBackend, is_valid_key
from constants import MAX_PLAYERS
from errors import InvalidAction, InvalidIdentifier, MissingField
from notifications import NotificationQueue
from registry import RoomRegistry
from schemas.signaling import CreateRoomResult, JoinRoomResult, MessageResult, PollResult, SignalingRequest
from sessions import SessionManager
from signaling import SignalingRouter
from logging_config import get_logger

logger = get_logger(__name__)

# Request attribute for each wire field name
FIELDS = {
    "roomId": "room_id",
    "playerId": "player_id",
    "targetId": "target_id",
    "data": "data",
}
IDENTIFIER_FIELDS = ("roomId", "playerId", "targetId")


class SignalingService:
    """Resolves an action name to its operation and shapes the result for the wire."""

    def __init__(self, store: StoreBackend, max_players: int = MAX_PLAYERS):
        self.store = store
        self.registry = RoomRegistry(store, max_players=max_players)
        self.queue = NotificationQueue(store)
        self.router = SignalingRouter(store, self.registry, self.queue)
        self.sessions = SessionManager(self.registry, self.queue)

        self.actions: Dict[str, Tuple[Callable[[SignalingRequest], Awaitable[dict]], Tuple[str, ...]]] = {
            "create_room": (self.create_room, ("roomId", "playerId")),
            "join_room": (self.join_room, ("roomId", "playerId")),
            "leave_room": (self.leave_room, ("roomId", "playerId")),
            "poll_notifications": (self.poll_notifications, ("roomId", "playerId")),
            "offer": (self.offer, ("roomId", "playerId", "targetId", "data")),
            "answer": (self.answer, ("roomId", "playerId", "targetId", "data")),
            "ice_candidates": (self.ice_candidates, ("roomId", "playerId", "targetId", "data")),
        }

    async def handle(self, request: SignalingRequest) -> dict:
        entry = self.actions.get(request.action)
        if entry is None:
            raise InvalidAction(request.action)
        operation, required = entry

        for name in required:
            value = getattr(request, FIELDS[name])
            if value is None:
                raise MissingField(name)
            if name in IDENTIFIER_FIELDS and not is_valid_key(value):
                raise InvalidIdentifier(name, value)

        return await operation(request)

    async def create_room(self, request: SignalingRequest) -> dict:
        await self.registry.create(request.room_id, request.player_id)
        return CreateRoomResult(room_id=request.room_id).to_wire()

    async def join_room(self, request: SignalingRequest) -> dict:
        host_id = await self.sessions.join(request.room_id, request.player_id)
        return JoinRoomResult(host_id=host_id, room_id=request.room_id).to_wire()

    async def leave_room(self, request: SignalingRequest) -> dict:
        removal = await self.sessions.leave(request.room_id, request.player_id)
        if removal.closed:
            return MessageResult(message="Room closed (last player left)").to_wire()
        return MessageResult(message="Left room").to_wire()

    async def poll_notifications(self, request: SignalingRequest) -> dict:
        notifications = await self.queue.drain(request.room_id, request.player_id)
        return PollResult(notifications=notifications).to_wire()

    async def offer(self, request: SignalingRequest) -> dict:
        await self.router.offer(request.room_id, request.player_id, request.target_id, request.data)
        return MessageResult(message="Offer sent").to_wire()

    async def answer(self, request: SignalingRequest) -> dict:
        await self.router.answer(request.room_id, request.player_id, request.target_id, request.data)
        return MessageResult(message="Answer sent").to_wire()

    async def ice_candidates(self, request: SignalingRequest) -> dict:
        await self.router.ice_candidates(request.room_id, request.player_id, request.target_id, request.data)
        return MessageResult(message="ICE candidates sent").to_wire()
