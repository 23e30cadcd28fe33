"""Wire schemas for the chat WebSocket protocol.

Every frame in both directions is a JSON object::

    {"event": "<name>", "data": <payload>}

Event names are part of the public contract and must not change.
"""
import base64
import binascii
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ClientEvent(str, Enum):
    """Events a client may send.

    Attributes:
        JOIN_ROOM: Join a room; data is the room name.
        SEND_MESSAGE: Relay an arbitrary object carrying a ``room`` field.
        SEND_FILE: Upload a base64 file and relay a message pointing at it.
    """
    JOIN_ROOM = "join_room"
    SEND_MESSAGE = "send_message"
    SEND_FILE = "send_file"


class ServerEvent(str, Enum):
    """Events the server sends.

    Attributes:
        CONNECTED: First frame after accept; carries the connection id.
        RECEIVE_MESSAGE: A relayed message (or the sender's own file echo).
        UPLOAD_FAILED: A ``send_file`` upload failed; sent to the sender only.
        ERROR: The last frame could not be processed.
    """
    CONNECTED = "connected"
    RECEIVE_MESSAGE = "receive_message"
    UPLOAD_FAILED = "upload_failed"
    ERROR = "error"


class ChatMessageType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    FILE = "file"


def message_type_for(mime_type: str) -> ChatMessageType:
    """Classify a chat file message by MIME type prefix."""
    if mime_type.startswith("image/"):
        return ChatMessageType.IMAGE
    if mime_type.startswith("video/"):
        return ChatMessageType.VIDEO
    return ChatMessageType.FILE


class SendFilePayload(BaseModel):
    """Data of a ``send_file`` frame."""
    name: str = Field(..., min_length=1, description="Original filename")
    mimetype: str = Field(default="application/octet-stream", description="MIME type")
    buffer: str = Field(..., description="Base64-encoded file bytes")
    room: str = Field(..., min_length=1, description="Room to relay the message to")

    def decode_buffer(self) -> bytes:
        """Decode ``buffer``.

        Raises:
            ValueError: If ``buffer`` is not valid base64.
        """
        try:
            return base64.b64decode(self.buffer, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"Invalid base64 buffer: {exc}") from exc


class ChatFileMessage(BaseModel):
    """Message relayed after a successful ``send_file``."""
    type: ChatMessageType
    message: str = Field(..., description="URL of the uploaded file")
    room: str

    def to_payload(self) -> dict:
        return self.model_dump(mode="json")

    def to_echo_payload(self) -> dict:
        """Payload sent back to the uploader, marked so it can tell it apart."""
        return {**self.to_payload(), "self": True}


def frame(event: ServerEvent, data: Any) -> dict:
    return {"event": event.value, "data": data}
