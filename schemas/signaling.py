from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.notifications import Notification


class SignalingRequest(BaseModel):
    """One inbound call: query parameters on GET, JSON body on POST."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    action: Optional[str] = None
    room_id: Optional[str] = Field(None, alias="roomId")
    player_id: Optional[str] = Field(None, alias="playerId")
    target_id: Optional[str] = Field(None, alias="targetId")
    data: Any = None


class _Result(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class MessageResult(_Result):
    message: str


class CreateRoomResult(_Result):
    message: str = "Room created"
    room_id: str = Field(alias="roomId")


class JoinRoomResult(_Result):
    message: str = "Joined room"
    host_id: str = Field(alias="hostId")
    room_id: str = Field(alias="roomId")


class PollResult(_Result):
    notifications: List[Notification]
