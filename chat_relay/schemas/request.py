import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from chat_relay.constants import INBOUND_MESSAGE_TYPES
from chat_relay.exceptions import MalformedFrame


class LoginFrame(BaseModel):
    """
    Claim a display name for the connection.

    Attributes:
        username: Requested display name, must be non-empty.
    """

    type: Literal["login"]
    username: Annotated[str, Field(min_length=1)]


class PrivateMessageFrame(BaseModel):
    """
    Direct message addressed to another user.

    Attributes:
        to: Display name of the recipient.
        message: Message text, relayed verbatim.
    """

    type: Literal["private_message"]
    to: str
    message: str


class TypingFrame(BaseModel):
    """Typing notification addressed to another user."""

    type: Literal["typing"]
    to: str


InboundFrame = Annotated[
    Union[LoginFrame, PrivateMessageFrame, TypingFrame],
    Field(discriminator="type"),
]

inbound_frame_adapter: TypeAdapter[InboundFrame] = TypeAdapter(InboundFrame)


def parse_frame(raw: str | bytes | dict[str, Any]) -> InboundFrame | None:
    """
    Parse one inbound frame.

    Unknown fields are ignored. A frame with an unknown ``type`` value is
    ignored as well and yields ``None``.

    Args:
        raw: Frame payload as received (text, bytes or an already decoded
            JSON object).

    Returns:
        Validated frame model, or None for unknown frame types.

    Raises:
        MalformedFrame: If the payload is not a JSON object, has no ``type``
            or fails validation for its type.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MalformedFrame(f"Invalid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise MalformedFrame(
            f"Expected JSON object, got {type(raw).__name__}"
        )

    if not isinstance(raw.get("type"), str):
        raise MalformedFrame("Missing or non-string 'type' field")

    if raw["type"] not in INBOUND_MESSAGE_TYPES:
        return None

    try:
        return inbound_frame_adapter.validate_python(raw)
    except ValidationError as exc:
        raise MalformedFrame(
            f"Invalid {raw['type']} frame: {exc.error_count()} error(s)"
        ) from exc
