"""WebSocket bridge exposing presence channels to browser clients."""
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from ..schemas import PresenceClientFrame
from ..services import (
    AssistantProxyError,
    AuthenticationRequired,
    PresenceChannelError,
    PresenceEvent,
    PresenceHub,
    decode_access_token,
    get_presence_hub,
)

router = APIRouter(prefix="/realtime", tags=["realtime"])
logger = logging.getLogger(__name__)


class WebSocketPresenceSubscriber:
    """Forwards hub events to one connected WebSocket as JSON frames."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    async def deliver(self, event: PresenceEvent) -> None:
        await self._websocket.send_text(json.dumps(event.to_payload(), default=str))


@router.websocket("/presence/{channel_id}")
async def presence_socket(
    websocket: WebSocket,
    channel_id: str,
    token: str = Query(..., alias="token"),
    hub: PresenceHub = Depends(get_presence_hub),
) -> None:
    """Join ``channel_id`` keyed by the token's user and relay presence traffic."""

    try:
        user_id = decode_access_token(token)
    except AuthenticationRequired:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    except AssistantProxyError:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    await websocket.accept()
    await websocket.send_text(json.dumps({"type": "ready", "channel": channel_id}))
    member_id = await hub.join(channel_id, user_id, WebSocketPresenceSubscriber(websocket))
    logger.info("Presence socket joined | channel=%s user=%s", channel_id, user_id)
    try:
        while True:
            try:
                raw = await websocket.receive_text()
            except WebSocketDisconnect:
                break

            try:
                frame = PresenceClientFrame.model_validate_json(raw)
            except ValidationError:
                logger.debug("Ignoring malformed presence frame | channel=%s user=%s", channel_id, user_id)
                continue

            if frame.type == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
            elif frame.type == "track":
                entry = dict(frame.payload)
                # Entries are always attributed to the authenticated user.
                entry["participant_id"] = user_id
                try:
                    await hub.track(channel_id, member_id, entry)
                except PresenceChannelError:
                    logger.info("Presence member dropped | channel=%s user=%s", channel_id, user_id)
                    break
    finally:
        await hub.leave(channel_id, member_id)
        logger.info("Presence socket left | channel=%s user=%s", channel_id, user_id)


__all__ = ["router", "WebSocketPresenceSubscriber"]
