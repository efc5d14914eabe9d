from typing import Annotated, Any, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Notification(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class NewPlayer(_Notification):
    type: Literal["new_player"] = "new_player"
    player_id: str = Field(alias="playerId")


class PlayerLeft(_Notification):
    type: Literal["player_left"] = "player_left"
    player_id: str = Field(alias="playerId")


class Offer(_Notification):
    type: Literal["offer"] = "offer"
    from_: str = Field(alias="from")
    offer: Any = None


class Answer(_Notification):
    type: Literal["answer"] = "answer"
    from_: str = Field(alias="from")
    answer: Any = None


class NewIceCandidates(_Notification):
    type: Literal["new_ice_candidates"] = "new_ice_candidates"
    from_: str = Field(alias="from")
    candidates: List[Any]


Notification = Annotated[
    Union[NewPlayer, PlayerLeft, Offer, Answer, NewIceCandidates],
    Field(discriminator="type"),
]

notification_adapter = TypeAdapter(Notification)


def notification_from_wire(data: dict) -> Notification:
    return notification_adapter.validate_python(data)
