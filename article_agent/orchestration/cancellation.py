"""Cooperative cancellation for a generation run."""

from __future__ import annotations

import asyncio
from typing import Optional

from article_agent.errors import GenerationCancelled


class CancellationToken:
    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Generation cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationCancelled(self.reason or "Generation cancelled")

    async def sleep(self, seconds: float) -> None:
        """Wait up to `seconds`; raise GenerationCancelled as soon as the token fires."""
        self.raise_if_cancelled()
        if seconds > 0:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                pass
        self.raise_if_cancelled()
