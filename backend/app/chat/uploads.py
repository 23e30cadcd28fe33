"""Chat upload path: a single file sent over the WebSocket.

The file is staged, pushed to the blob store, and a message pointing at it is
relayed to the rest of the room.  The sender gets its own copy marked with
``self: true``.  If the upload fails nothing is relayed.
"""
import logging
from typing import Optional

from app.storage.blob_store import BlobStore, absolute_url
from app.storage.staging import stage_and_upload

from .relay import RoomRelay
from .schemas import ChatFileMessage, ServerEvent, message_type_for

logger = logging.getLogger(__name__)


class ChatUploadService:
    """Uploads chat files and relays the resulting message.

    Args:
        relay:      Relay used to reach the room.
        blob_store: Store the file bytes are pushed to.
        tmp_dir:    Directory for staging.
        folder:     Blob store folder for chat uploads.
    """

    def __init__(
        self,
        relay: RoomRelay,
        blob_store: BlobStore,
        tmp_dir: str = "tmp",
        folder: str = "chat_uploads",
    ) -> None:
        self._relay = relay
        self._blob_store = blob_store
        self._tmp_dir = tmp_dir
        self._folder = folder

    async def send_file(
        self,
        sender_id: str,
        room: str,
        content: bytes,
        filename: str,
        mime_type: str,
        base_url: Optional[str] = None,
    ) -> ChatFileMessage:
        """Upload a file and relay a message referencing it.

        A root-relative blob URL is made absolute against *base_url* so peers
        on other origins can load it.

        Returns:
            The relayed message.

        Raises:
            UploadFailedError: If staging or the blob store call fails.
        """
        stored = await stage_and_upload(
            self._blob_store,
            tmp_dir=self._tmp_dir,
            content=content,
            filename=filename,
            mime_type=mime_type,
            folder=self._folder,
        )

        message = ChatFileMessage(
            type=message_type_for(mime_type),
            message=absolute_url(stored.url, base_url),
            room=room,
        )

        delivered = await self._relay.relay(
            sender_id, room, ServerEvent.RECEIVE_MESSAGE, message.to_payload()
        )
        # The sender may have disconnected mid-upload; then the echo is a no-op.
        await self._relay.send_to(
            sender_id, ServerEvent.RECEIVE_MESSAGE, message.to_echo_payload()
        )

        logger.info(
            f"[Chat] {sender_id} shared {filename} ({message.type.value}) "
            f"in room {room}; delivered to {delivered} peer(s)"
        )
        return message
