from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class OutboundFrame(BaseModel):
    """Base model for frames sent by the server."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump the frame as a JSON-ready dict using wire field names."""
        return self.model_dump(mode="json", by_alias=True)


class SystemFrame(OutboundFrame):
    type: Literal["system"] = "system"
    message: str


class UserListFrame(OutboundFrame):
    type: Literal["user_list"] = "user_list"
    users: list[str]


class PrivateMessageOutFrame(OutboundFrame):
    type: Literal["private_message"] = "private_message"
    sender: str = Field(alias="from")
    message: str
    timestamp: str


class TypingOutFrame(OutboundFrame):
    type: Literal["typing"] = "typing"
    sender: str = Field(alias="from")


class DeliveredFrame(OutboundFrame):
    """Acknowledgement returned to the author of a delivered message."""

    type: Literal["delivered"] = "delivered"
    to: str
    message: str
    timestamp: str
