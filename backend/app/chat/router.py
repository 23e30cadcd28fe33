"""Chat router providing the relay WebSocket endpoint.

This module provides:
    - WebSocket /ws: Room-scoped message relay

Protocol (every frame is ``{"event": ..., "data": ...}``):
    - connected (server): sent once after accept, data = {id}
    - join_room (client): data = room name
    - send_message (client): data = object with a ``room`` field; relayed
      verbatim to the other members as ``receive_message``
    - send_file (client): data = {name, mimetype, buffer (base64), room};
      peers get ``receive_message`` {type, message, room}, the sender gets
      the same plus ``self: true``
    - upload_failed (server): a send_file upload failed (sender only)
    - error (server): the last frame was not understood (sender only)

Closing the socket removes every room membership; peers are not notified.
A connection the relay has already dropped is closed with code 1011.
"""
import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app.storage.errors import UploadFailedError
from app.storage.router import public_base_url

from .relay import RoomRelay, UnknownConnectionError
from .schemas import ClientEvent, SendFilePayload, ServerEvent
from .uploads import ChatUploadService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


def get_relay(websocket: WebSocket) -> RoomRelay:
    return websocket.app.state.relay


def get_chat_upload_service(websocket: WebSocket) -> ChatUploadService:
    return websocket.app.state.chat_uploads


async def _send_error(relay: RoomRelay, connection_id: str, error: str) -> None:
    await relay.send_to(connection_id, ServerEvent.ERROR, {"error": error})


@router.websocket("/ws")
async def websocket_relay_endpoint(
    websocket: WebSocket,
    relay: RoomRelay = Depends(get_relay),
    uploads: ChatUploadService = Depends(get_chat_upload_service),
) -> None:
    """WebSocket endpoint for the room relay.

    Handles the complete lifecycle of a single connection.  Frames from one
    connection are processed strictly in order, so a sender's messages reach
    each peer in the order they were sent.

    Args:
        websocket: The WebSocket connection.
    """
    connection_id = await relay.connect(websocket)

    try:
        await relay.send_to(connection_id, ServerEvent.CONNECTED, {"id": connection_id})

        # Main message loop
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                await _send_error(relay, connection_id, "Invalid frame: not JSON")
                continue
            if not isinstance(data, dict):
                await _send_error(relay, connection_id, "Invalid frame: expected an object")
                continue

            event = data.get("event")
            payload = data.get("data")
            logger.debug("[WS] %s received: event=%s", connection_id, event)

            # --- Handle JOIN_ROOM ---
            if event == ClientEvent.JOIN_ROOM.value:
                if not isinstance(payload, str) or not payload:
                    await _send_error(relay, connection_id, "join_room requires a room name")
                    continue
                relay.join(connection_id, payload)
                continue

            # --- Handle SEND_MESSAGE (relayed verbatim) ---
            if event == ClientEvent.SEND_MESSAGE.value:
                room = payload.get("room") if isinstance(payload, dict) else None
                if not isinstance(room, str) or not room:
                    await _send_error(relay, connection_id, "send_message requires a room")
                    continue
                await relay.relay(connection_id, room, ServerEvent.RECEIVE_MESSAGE, payload)
                continue

            # --- Handle SEND_FILE (upload, then relay) ---
            if event == ClientEvent.SEND_FILE.value:
                try:
                    file_data = SendFilePayload.model_validate(payload)
                    content = file_data.decode_buffer()
                except (ValidationError, ValueError) as e:
                    logger.info(f"[WS] Rejected send_file from {connection_id}: {e}")
                    await _send_error(relay, connection_id, "Invalid send_file payload")
                    continue

                try:
                    await uploads.send_file(
                        connection_id,
                        file_data.room,
                        content,
                        file_data.name,
                        file_data.mimetype,
                        base_url=public_base_url(websocket),
                    )
                except UploadFailedError as e:
                    logger.error(f"[WS] Upload error from {connection_id}: {e.message}")
                    await relay.send_to(
                        connection_id,
                        ServerEvent.UPLOAD_FAILED,
                        {"error": "Upload failed", "name": file_data.name},
                    )
                continue

            await _send_error(relay, connection_id, f"Unknown event: {event}")

    except WebSocketDisconnect:
        logger.info(f"[WS] Connection {connection_id} disconnected")
    except UnknownConnectionError:
        # The relay already dropped this connection after a failed send.
        logger.warning(f"[WS] Connection {connection_id} was dropped by the relay; closing")
        try:
            await websocket.close(code=1011)
        except Exception as exc:
            logger.debug(f"[WS] Close after drop failed for {connection_id}: {exc}")
    finally:
        relay.disconnect(connection_id)
