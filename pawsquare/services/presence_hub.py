"""In-memory presence channels with sync/join/leave semantics.

A channel holds members; each member is keyed by its participant ID and may
track one entry. Tracking replaces the member's entry (last write wins) and
broadcasts ``join`` followed by a full ``sync``; leaving broadcasts ``leave``
followed by ``sync`` to the remaining members.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Protocol

logger = logging.getLogger(__name__)

PresenceState = dict[str, list[dict[str, Any]]]
SyncHandler = Callable[[PresenceState], None]
MembershipHandler = Callable[[str, list[dict[str, Any]]], None]


class PresenceChannelError(RuntimeError):
    """Raised when a channel cannot be joined or written to."""


@dataclass(frozen=True, slots=True)
class PresenceEvent:
    kind: Literal["sync", "join", "leave"]
    key: str | None = None
    presences: tuple[dict[str, Any], ...] = ()
    state: PresenceState = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        if self.kind == "sync":
            return {"type": "sync", "state": self.state}
        field_name = "new_presences" if self.kind == "join" else "left_presences"
        return {"type": self.kind, "key": self.key, field_name: list(self.presences)}


class PresenceSubscriber(Protocol):
    async def deliver(self, event: PresenceEvent) -> None:
        """Receive one presence event for the channel this subscriber joined."""
        ...


class PresenceChannel(Protocol):
    """Client-side view of a presence channel."""

    async def join(self, channel_id: str, self_key: str) -> None:
        ...

    async def track(self, state: dict[str, Any]) -> None:
        ...

    def on_sync(self, callback: SyncHandler) -> "PresenceChannel":
        ...

    def on_join(self, callback: MembershipHandler) -> "PresenceChannel":
        ...

    def on_leave(self, callback: MembershipHandler) -> "PresenceChannel":
        ...

    def presence_state(self) -> PresenceState:
        ...

    async def unsubscribe(self) -> None:
        ...


@dataclass(slots=True)
class _Member:
    key: str
    subscriber: PresenceSubscriber
    entry: dict[str, Any] | None = None
    sequence: int = 0


def _build_state(members: dict[int, _Member]) -> PresenceState:
    tracked = sorted((member for member in members.values() if member.entry is not None), key=lambda m: m.sequence)
    state: PresenceState = {}
    for member in tracked:
        state.setdefault(member.key, []).append(dict(member.entry or {}))
    return state


class PresenceHub:
    """Tracks presence channel membership and fans events out to subscribers."""

    def __init__(self) -> None:
        self._channels: dict[str, dict[int, _Member]] = {}
        self._lock = asyncio.Lock()
        self._member_ids = itertools.count(1)
        self._sequence = itertools.count(1)

    async def join(self, channel_id: str, key: str, subscriber: PresenceSubscriber) -> int:
        """Register ``subscriber`` under ``key`` and send it the current state."""

        if not channel_id or not key:
            raise PresenceChannelError("channel id and key are required")
        async with self._lock:
            members = self._channels.setdefault(channel_id, {})
            member_id = next(self._member_ids)
            member = _Member(key=key, subscriber=subscriber)
            members[member_id] = member
            state = _build_state(members)
        await self._broadcast(channel_id, [(member_id, member)], PresenceEvent("sync", state=state))
        return member_id

    async def track(self, channel_id: str, member_id: int, entry: dict[str, Any]) -> None:
        async with self._lock:
            member = self._channels.get(channel_id, {}).get(member_id)
            if member is None:
                raise PresenceChannelError(f"member {member_id} has not joined {channel_id}")
            member.entry = dict(entry)
            member.sequence = next(self._sequence)
            targets = list(self._channels[channel_id].items())
            state = _build_state(self._channels[channel_id])
            key = member.key
        await self._broadcast(channel_id, targets, PresenceEvent("join", key=key, presences=(dict(entry),)))
        await self._broadcast(channel_id, targets, PresenceEvent("sync", state=state))

    async def leave(self, channel_id: str, member_id: int) -> None:
        async with self._lock:
            members = self._channels.get(channel_id)
            if not members:
                return
            member = members.pop(member_id, None)
            if not members:
                self._channels.pop(channel_id, None)
            if member is None:
                return
            targets = list(members.items())
            state = _build_state(members)
        if member.entry is None or not targets:
            return
        await self._broadcast(channel_id, targets, PresenceEvent("leave", key=member.key, presences=(dict(member.entry),)))
        await self._broadcast(channel_id, targets, PresenceEvent("sync", state=state))

    def presence_state(self, channel_id: str) -> PresenceState:
        return _build_state(self._channels.get(channel_id, {}))

    def member_count(self, channel_id: str) -> int:
        return len(self._channels.get(channel_id, {}))

    async def _broadcast(
        self,
        channel_id: str,
        targets: list[tuple[int, _Member]],
        event: PresenceEvent,
    ) -> None:
        for member_id, member in targets:
            try:
                await member.subscriber.deliver(event)
            except Exception:
                logger.warning(
                    "Presence delivery failed | channel=%s key=%s event=%s",
                    channel_id,
                    member.key,
                    event.kind,
                    exc_info=True,
                )
                await self.leave(channel_id, member_id)


class LocalPresenceChannel:
    """:class:`PresenceChannel` backed by an in-process :class:`PresenceHub`."""

    def __init__(self, hub: PresenceHub) -> None:
        self._hub = hub
        self._channel_id: str | None = None
        self._member_id: int | None = None
        self._active = False
        self._state: PresenceState = {}
        self._sync_handlers: list[SyncHandler] = []
        self._join_handlers: list[MembershipHandler] = []
        self._leave_handlers: list[MembershipHandler] = []

    @property
    def channel_id(self) -> str | None:
        return self._channel_id

    async def join(self, channel_id: str, self_key: str) -> None:
        if self._member_id is not None:
            raise PresenceChannelError(f"already joined {self._channel_id}")
        self._channel_id = channel_id
        self._active = True
        try:
            self._member_id = await self._hub.join(channel_id, self_key, self)
        except PresenceChannelError:
            self._active = False
            raise

    async def track(self, state: dict[str, Any]) -> None:
        if self._channel_id is None or self._member_id is None:
            raise PresenceChannelError("track called before join")
        await self._hub.track(self._channel_id, self._member_id, state)

    def on_sync(self, callback: SyncHandler) -> "LocalPresenceChannel":
        self._sync_handlers.append(callback)
        return self

    def on_join(self, callback: MembershipHandler) -> "LocalPresenceChannel":
        self._join_handlers.append(callback)
        return self

    def on_leave(self, callback: MembershipHandler) -> "LocalPresenceChannel":
        self._leave_handlers.append(callback)
        return self

    def presence_state(self) -> PresenceState:
        return {key: list(entries) for key, entries in self._state.items()}

    async def unsubscribe(self) -> None:
        channel_id, member_id = self._channel_id, self._member_id
        self._active = False
        self._member_id = None
        if channel_id is None or member_id is None:
            return
        await self._hub.leave(channel_id, member_id)

    async def deliver(self, event: PresenceEvent) -> None:
        if not self._active:
            return
        if event.kind == "sync":
            self._state = event.state
            for sync_handler in self._sync_handlers:
                sync_handler(self.presence_state())
            return
        handlers = self._join_handlers if event.kind == "join" else self._leave_handlers
        for handler in handlers:
            handler(event.key or "", list(event.presences))


presence_hub = PresenceHub()


def get_presence_hub() -> PresenceHub:
    """FastAPI dependency returning the process-wide presence hub."""

    return presence_hub


__all__ = [
    "LocalPresenceChannel",
    "MembershipHandler",
    "PresenceChannel",
    "PresenceChannelError",
    "PresenceEvent",
    "PresenceHub",
    "PresenceState",
    "PresenceSubscriber",
    "SyncHandler",
    "get_presence_hub",
    "presence_hub",
]
