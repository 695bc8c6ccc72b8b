"""Per-session live progress channels."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Dict, Optional, Protocol

from article_agent.models import ProgressEventType
from article_agent.models.enums import TERMINAL_EVENT_TYPES
from article_agent.models.session import utc_now

logger = logging.getLogger(__name__)


class ProgressChannel(Protocol):
    """Anything that accepts a serializable event. May be sync or async."""

    def write(self, event: Dict[str, Any]) -> Any: ...


class ChannelClosed(Exception):
    """Raised by a channel whose subscriber has gone away."""


def build_event(
    event_type: ProgressEventType | str, session_id: str, **payload: Any
) -> Dict[str, Any]:
    kind = event_type.value if isinstance(event_type, ProgressEventType) else event_type
    return {"type": kind, "session_id": session_id, "ts": utc_now().isoformat(), **payload}


class QueueChannel:
    """Channel backed by an asyncio.Queue; the HTTP stream drains it."""

    def __init__(self, maxsize: int = 0) -> None:
        self.queue: asyncio.Queue[Dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def write(self, event: Dict[str, Any]) -> None:
        if self.closed:
            raise ChannelClosed("subscriber disconnected")
        self.queue.put_nowait(event)

    def close(self) -> None:
        self.closed = True


class BroadcastRegistry:
    """Maps session ids to at most one live channel each.

    Owned by the hosting process (server or CLI run). Pushing never raises:
    a channel that fails on write is evicted.
    """

    def __init__(self) -> None:
        self._channels: Dict[str, ProgressChannel] = {}

    def attach(self, session_id: str, channel: ProgressChannel) -> None:
        if session_id in self._channels:
            logger.debug(f"Replacing progress channel for session {session_id}")
        self._channels[session_id] = channel

    def detach(self, session_id: str) -> None:
        self._channels.pop(session_id, None)

    def get(self, session_id: str) -> Optional[ProgressChannel]:
        return self._channels.get(session_id)

    async def push(self, session_id: str, event: Dict[str, Any]) -> None:
        channel = self._channels.get(session_id)
        if channel is None:
            return
        try:
            result = channel.write(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.debug(f"Evicting progress channel for session {session_id}: {e}")
            if self._channels.get(session_id) is channel:
                del self._channels[session_id]

    async def emit(
        self, session_id: str, event_type: ProgressEventType | str, **payload: Any
    ) -> Dict[str, Any]:
        event = build_event(event_type, session_id, **payload)
        await self.push(session_id, event)
        return event


def is_terminal(event: Dict[str, Any]) -> bool:
    return event.get("type") in TERMINAL_EVENT_TYPES
