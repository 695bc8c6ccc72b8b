"""Immutable conversation transcript.

Each round produces a new Transcript from the previous one plus that round's
entries; nothing mutates a transcript in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Tuple

from article_agent.models import ConversationMessage


@dataclass(frozen=True)
class Transcript:
    messages: Tuple[ConversationMessage, ...] = field(default_factory=tuple)

    @classmethod
    def start(cls, prompt: str) -> "Transcript":
        return cls((ConversationMessage.user(prompt),))

    def extend(self, entries: Iterable[ConversationMessage]) -> "Transcript":
        return Transcript(self.messages + tuple(entries))

    def append(self, entry: ConversationMessage) -> "Transcript":
        return Transcript(self.messages + (entry,))

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self) -> Iterator[ConversationMessage]:
        return iter(self.messages)
