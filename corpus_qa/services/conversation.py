# =============================================================================
# Conversation Log: Committed Turns plus One Status Slot
# =============================================================================
#
# Committed turns are append-only. The transient "thinking" turn shown
# while a query runs is NOT one of them: it lives in a separate optional
# slot that can be set, updated in place, cleared, or swapped for the
# final turn in one step. At most one status turn exists at any time.
# =============================================================================

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum

from corpus_qa.agents.summarizer import SummaryResult


class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """A single turn in the conversation."""

    id: str
    sender: Sender
    text: str
    sources: list[str] | None = None
    is_status: bool = False
    summary: SummaryResult | None = None


def _message_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def user_message(text: str) -> Message:
    return Message(id=_message_id("user"), sender=Sender.USER, text=text)


def assistant_message(
    text: str,
    sources: list[str] | None = None,
    summary: SummaryResult | None = None,
) -> Message:
    return Message(
        id=_message_id("assistant"),
        sender=Sender.ASSISTANT,
        text=text,
        sources=sources,
        summary=summary,
    )


@dataclass
class Conversation:
    """Append-only message log owned by the orchestrator."""

    turns: list[Message] = field(default_factory=list)
    status: Message | None = None

    @property
    def messages(self) -> list[Message]:
        """Everything a caller should render, status turn last."""
        if self.status is None:
            return list(self.turns)
        return [*self.turns, self.status]

    def append(self, message: Message) -> None:
        self.turns.append(message)

    def set_status(self, text: str) -> Message:
        """Create the status turn, or update its text keeping the same id."""
        status_id = self.status.id if self.status else _message_id("status")
        self.status = Message(
            id=status_id, sender=Sender.ASSISTANT, text=text, is_status=True,
        )
        return self.status

    def clear_status(self) -> None:
        self.status = None

    def commit(self, message: Message) -> None:
        """Replace the status turn (if any) with a final turn."""
        self.status = None
        self.turns.append(message)
