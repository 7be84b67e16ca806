"""
Core data types shared across the discovery pipeline.

SessionDescriptor comes from the enumerator; ParsedEntry is the tagged union
yielded by the session parser. Neither is persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union


@dataclass(frozen=True)
class SessionDescriptor:
    """A session transcript found on disk (contents not read)."""

    project_id: str
    session_id: str
    file_path: str
    file_mtime: float

    @property
    def key(self) -> str:
        """Identity key; session ids are only unique within a project."""
        return f"{self.project_id}:{self.session_id}"


class EntryKind(str, Enum):
    """Discriminant for ParsedEntry."""

    USER_MESSAGE = "user_message"
    ASSISTANT_MESSAGE = "assistant_message"
    TOOL_INVOCATION = "tool_invocation"


@dataclass(frozen=True)
class UserMessage:
    """A real user prompt (tool results and command wrappers excluded)."""

    text: str
    timestamp: datetime | None = None
    kind: EntryKind = field(default=EntryKind.USER_MESSAGE, init=False)


@dataclass(frozen=True)
class AssistantMessage:
    """Assistant text content."""

    text: str
    timestamp: datetime | None = None
    kind: EntryKind = field(default=EntryKind.ASSISTANT_MESSAGE, init=False)


@dataclass(frozen=True)
class ToolInvocation:
    """A tool call made by the assistant."""

    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict, hash=False, compare=True)
    timestamp: datetime | None = None
    kind: EntryKind = field(default=EntryKind.TOOL_INVOCATION, init=False)

    @property
    def command(self) -> str | None:
        """Shell command string, if this invocation carries one."""
        value = self.arguments.get("command")
        return value if isinstance(value, str) else None

    @property
    def file_path(self) -> str | None:
        """Target file of a read/write style tool, if any."""
        for key in ("file_path", "notebook_path", "path"):
            value = self.arguments.get(key)
            if isinstance(value, str) and value:
                return value
        return None


ParsedEntry = Union[UserMessage, AssistantMessage, ToolInvocation]


__all__ = [
    "AssistantMessage",
    "EntryKind",
    "ParsedEntry",
    "SessionDescriptor",
    "ToolInvocation",
    "UserMessage",
]
