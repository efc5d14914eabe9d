from typing import Any, Callable, List

from backend import StoreBackend, now_ms
from errors import InvalidDirection, InvalidPayload
from notifications import NotificationQueue
from registry import RoomRegistry
from schemas.notifications import Answer, NewIceCandidates, Offer
from logging_config import get_logger

logger = get_logger(__name__)


class SignalingRouter:
    """Routes offers, answers and ICE candidates between the host and its clients.

    Only offers are direction-checked: one end must be the host. Answers and
    candidates go to whatever target the sender names.
    """

    def __init__(self, store: StoreBackend, registry: RoomRegistry, queue: NotificationQueue, clock: Callable[[], int] = now_ms):
        self.store = store
        self.registry = registry
        self.queue = queue
        self.clock = clock

    async def offer(self, room_id: str, sender_id: str, target_id: str, payload: Any) -> None:
        room = await self.registry.get(room_id)
        if sender_id != room.host and target_id != room.host:
            logger.warning(f"Rejected offer {sender_id} -> {target_id} in room {room_id}: host is {room.host}")
            raise InvalidDirection()

        await self.store.set(self.registry.room_path(room_id, "offers", sender_id), payload)
        await self.queue.push(room_id, target_id, Offer(from_=sender_id, offer=payload))
        logger.info(f"Offer routed {sender_id} -> {target_id} in room {room_id}")

    async def answer(self, room_id: str, sender_id: str, target_id: str, payload: Any) -> None:
        await self.registry.get(room_id)
        await self.store.set(self.registry.room_path(room_id, "answers", sender_id), payload)
        await self.queue.push(room_id, target_id, Answer(from_=sender_id, answer=payload))
        logger.info(f"Answer routed {sender_id} -> {target_id} in room {room_id}")

    async def ice_candidates(self, room_id: str, sender_id: str, target_id: str, candidates: List[Any]) -> None:
        if not isinstance(candidates, list):
            raise InvalidPayload("ICE candidates must be a list")
        await self.registry.get(room_id)

        # Timestamp plus index keeps concurrent batches from one sender apart
        stamp = self.clock()
        updates = {
            f"ice_candidates/{sender_id}/candidate_{stamp}_{index}": candidate
            for index, candidate in enumerate(candidates)
        }
        await self.store.update(self.registry.room_path(room_id), updates)
        await self.queue.push(room_id, target_id, NewIceCandidates(from_=sender_id, candidates=candidates))
        logger.debug(f"{len(candidates)} ICE candidates routed {sender_id} -> {target_id} in room {room_id}")
