"""Conversation presence, typing indicators and the global online set."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from ..config import get_settings
from ..constants import GLOBAL_PRESENCE_CHANNEL, conversation_channel
from .presence_hub import PresenceChannel, PresenceChannelError, PresenceState

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    return _now()


@dataclass(frozen=True, slots=True)
class PresenceRecord:
    """Entry a participant tracks on a presence channel."""

    participant_id: str
    is_typing: bool = False
    last_seen_at: datetime = field(default_factory=_now)

    def to_payload(self) -> dict[str, Any]:
        return {
            "participant_id": self.participant_id,
            "is_typing": self.is_typing,
            "last_seen_at": self.last_seen_at.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any], *, default_participant: str = "") -> "PresenceRecord":
        return cls(
            participant_id=str(payload.get("participant_id") or default_participant),
            is_typing=bool(payload.get("is_typing", False)),
            last_seen_at=_parse_timestamp(payload.get("last_seen_at")),
        )


@dataclass(frozen=True, slots=True)
class PresenceView:
    """What one side of a conversation knows about the other."""

    participant_id: str
    is_online: bool
    is_typing: bool


class ConversationPresence:
    """Online/typing state of the peer in a two-party conversation."""

    def __init__(
        self,
        channel: PresenceChannel,
        conversation_id: str,
        self_user_id: str,
        *,
        typing_reset_seconds: float | None = None,
        on_change: Callable[[PresenceView | None], None] | None = None,
    ) -> None:
        self._channel = channel
        self._conversation_id = conversation_id
        self._self_user_id = self_user_id
        if typing_reset_seconds is None:
            typing_reset_seconds = get_settings().typing_reset_seconds
        self._typing_reset_seconds = typing_reset_seconds
        self._on_change = on_change
        self._view: PresenceView | None = None
        self._reset_task: asyncio.Task[None] | None = None
        self._joined = False
        self._closed = False

    @property
    def channel_id(self) -> str:
        return conversation_channel(self._conversation_id)

    @property
    def typing_reset_pending(self) -> bool:
        return self._reset_task is not None and not self._reset_task.done()

    def observe(self) -> PresenceView | None:
        return self._view

    async def open(self) -> "ConversationPresence":
        """Join the conversation channel and announce this participant as idle."""

        self._channel.on_sync(self._handle_sync).on_join(self._handle_join).on_leave(self._handle_leave)
        try:
            await self._channel.join(self.channel_id, self._self_user_id)
        except PresenceChannelError:
            logger.warning(
                "Presence subscription failed | channel=%s user=%s",
                self.channel_id,
                self._self_user_id,
                exc_info=True,
            )
            return self
        self._joined = True
        await self._announce(False)
        return self

    async def set_typing(self, is_typing: bool) -> None:
        """Publish the typing flag; ``True`` resets itself after the configured delay."""

        if self._closed or not self._joined:
            return
        self._cancel_reset()
        await self._announce(is_typing)
        if is_typing:
            self._reset_task = asyncio.create_task(self._reset_after_delay())

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._cancel_reset()
        await self._channel.unsubscribe()

    async def _announce(self, is_typing: bool) -> None:
        record = PresenceRecord(participant_id=self._self_user_id, is_typing=is_typing)
        await self._channel.track(record.to_payload())

    async def _reset_after_delay(self) -> None:
        await asyncio.sleep(self._typing_reset_seconds)
        self._reset_task = None
        if self._closed:
            return
        try:
            await self._announce(False)
        except PresenceChannelError:
            logger.warning(
                "Typing reset failed | channel=%s user=%s",
                self.channel_id,
                self._self_user_id,
                exc_info=True,
            )

    def _cancel_reset(self) -> None:
        task, self._reset_task = self._reset_task, None
        if task is not None and not task.done():
            task.cancel()

    def _set_view(self, view: PresenceView | None) -> None:
        self._view = view
        if self._on_change is not None:
            self._on_change(view)

    def _handle_sync(self, state: PresenceState) -> None:
        others = [(key, entries) for key, entries in state.items() if key != self._self_user_id and entries]
        if not others:
            self._set_view(None)
            return
        key, entries = others[0]
        latest = PresenceRecord.from_payload(entries[-1], default_participant=key)
        self._set_view(PresenceView(participant_id=latest.participant_id, is_online=True, is_typing=latest.is_typing))

    def _handle_join(self, key: str, new_presences: list[dict[str, Any]]) -> None:
        if key == self._self_user_id or not new_presences:
            return
        record = PresenceRecord.from_payload(new_presences[0], default_participant=key)
        self._set_view(PresenceView(participant_id=record.participant_id, is_online=True, is_typing=record.is_typing))

    def _handle_leave(self, key: str, left_presences: list[dict[str, Any]]) -> None:
        if key == self._self_user_id:
            return
        if self._view is not None:
            self._set_view(replace(self._view, is_online=False, is_typing=False))


async def open_presence(
    channel: PresenceChannel,
    conversation_id: str,
    self_user_id: str,
    **kwargs: Any,
) -> ConversationPresence:
    """Create and open a :class:`ConversationPresence` on ``channel``."""

    presence = ConversationPresence(channel, conversation_id, self_user_id, **kwargs)
    return await presence.open()


class OnlineUsers:
    """Which of a watch-list of users are present anywhere in the app."""

    def __init__(self, channel: PresenceChannel, self_user_id: str, watch: Iterable[str] = ()) -> None:
        self._channel = channel
        self._self_user_id = self_user_id
        self._watch = frozenset(watch)
        self._online: frozenset[str] = frozenset()

    @property
    def online(self) -> frozenset[str]:
        return self._online

    def is_online(self, user_id: str) -> bool:
        return user_id in self._online

    def watch(self, user_ids: Iterable[str]) -> None:
        """Replace the watch-list and recompute against the last synced state."""

        self._watch = frozenset(user_ids)
        self._handle_sync(self._channel.presence_state())

    async def open(self) -> "OnlineUsers":
        self._channel.on_sync(self._handle_sync)
        try:
            await self._channel.join(GLOBAL_PRESENCE_CHANNEL, self._self_user_id)
        except PresenceChannelError:
            logger.warning("Global presence subscription failed | user=%s", self._self_user_id, exc_info=True)
            return self
        await self._channel.track({"participant_id": self._self_user_id})
        return self

    async def close(self) -> None:
        await self._channel.unsubscribe()

    def _handle_sync(self, state: PresenceState) -> None:
        present = {
            str(entry.get("participant_id") or key)
            for key, entries in state.items()
            for entry in entries
        }
        self._online = frozenset(present & self._watch)


__all__ = [
    "ConversationPresence",
    "OnlineUsers",
    "PresenceRecord",
    "PresenceView",
    "open_presence",
]
