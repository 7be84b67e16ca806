"""
Streaming parser for Claude Code session transcripts.

Reads the JSONL transcript files that Claude Code maintains at:
~/.claude/projects/{project_slug}/{session_id}.jsonl

Each line is parsed on its own. A line that fails to decode or validate is
skipped, so corruption in one line never aborts the stream. Sidechain
entries (sub-agent conversations) are dropped before anything is yielded.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .types import AssistantMessage, ParsedEntry, ToolInvocation, UserMessage

logger = logging.getLogger(__name__)

# Bytes requested per readlines() call; bounds memory per await
READ_BATCH_BYTES = 64 * 1024

# User content that is harness chatter rather than a typed prompt
NON_PROMPT_PREFIXES = (
    "<command-name>",
    "<command-message>",
    "<command-args>",
    "<local-command-stdout>",
    "<local-command-stderr>",
    "Caveat: The messages below were generated",
    "[Request interrupted by user",
)


class TranscriptLine(BaseModel):
    """
    One JSONL transcript record.

    Key entry types:
    - "user": User message or tool result
    - "assistant": Assistant response with possible tool calls
    - "tool_use": Flat tool call record (older transcript format)
    - "progress", "system", "summary": ignored

    Unknown fields are kept on the model.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str
    is_sidechain: bool = Field(default=False, alias="isSidechain")
    is_meta: bool = Field(default=False, alias="isMeta")
    session_id: str | None = Field(default=None, alias="sessionId")
    uuid: str | None = None
    timestamp: datetime | None = None
    message: dict[str, Any] | None = None
    tool_name: str | None = None
    tool_input: dict[str, Any] | None = None


def _text_from_blocks(blocks: list[Any]) -> str:
    """Extract text from content blocks."""
    parts = []
    for block in blocks:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "\n".join(p for p in parts if p)


def classify_user_content(content: Any) -> str | None:
    """
    Return the prompt text of a user message, or None when it is not a prompt.

    Tool results, slash-command wrappers, caveat banners and interruption
    notices are all recorded as "user" lines but were not typed by the user.
    """
    if isinstance(content, list):
        has_tool_result = any(
            isinstance(block, dict) and block.get("type") == "tool_result"
            for block in content
        )
        text = _text_from_blocks(content)
        if has_tool_result and not text:
            return None
    elif isinstance(content, str):
        text = content
    else:
        return None

    text = text.strip()
    if not text:
        return None
    if text.startswith(NON_PROMPT_PREFIXES):
        return None
    return text


def is_real_user_prompt(content: Any) -> bool:
    """True if the user content is a prompt typed by the user."""
    return classify_user_content(content) is not None


def _entries_from_record(record: TranscriptLine) -> list[ParsedEntry]:
    entries: list[ParsedEntry] = []
    timestamp = record.timestamp

    if record.type == "user":
        if record.is_meta or record.message is None:
            return entries
        text = classify_user_content(record.message.get("content"))
        if text is not None:
            entries.append(UserMessage(text=text, timestamp=timestamp))

    elif record.type == "assistant":
        if record.message is None:
            return entries
        content = record.message.get("content", "")
        if isinstance(content, list):
            text = _text_from_blocks(content)
            if text:
                entries.append(AssistantMessage(text=text, timestamp=timestamp))
            for block in content:
                if isinstance(block, dict) and block.get("type") == "tool_use":
                    tool_input = block.get("input")
                    entries.append(
                        ToolInvocation(
                            tool_name=str(block.get("name", "unknown")),
                            arguments=tool_input if isinstance(tool_input, dict) else {},
                            timestamp=timestamp,
                        )
                    )
        elif isinstance(content, str) and content.strip():
            entries.append(AssistantMessage(text=content, timestamp=timestamp))

    elif record.type == "tool_use" and record.tool_name:
        entries.append(
            ToolInvocation(
                tool_name=record.tool_name,
                arguments=record.tool_input or {},
                timestamp=timestamp,
            )
        )

    return entries


def parse_transcript_line(line: str) -> list[ParsedEntry] | None:
    """
    Parse one JSONL line.

    Returns:
        The entries carried by the line (possibly empty), or None if the
        line is corrupt and was skipped
    """
    line = line.strip()
    if not line:
        return []

    try:
        record = TranscriptLine.model_validate_json(line)
    except ValidationError:
        return None

    if record.is_sidechain:
        return []

    return _entries_from_record(record)


async def parse_session_file(file_path: Path | str) -> AsyncGenerator[ParsedEntry, None]:
    """
    Lazily yield parsed entries from a transcript file.

    Single pass; a fresh call opens a fresh stream. The consumer may stop
    early without the rest of the file being read. A missing file yields
    nothing.

    Args:
        file_path: Path to the JSONL transcript

    Yields:
        ParsedEntry values in file order
    """
    path = Path(file_path)
    try:
        handle = await asyncio.to_thread(open, path, encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return
    except OSError as e:
        logger.warning(f"Cannot open transcript {path}: {e}")
        return

    skipped = 0
    try:
        while True:
            lines = await asyncio.to_thread(handle.readlines, READ_BATCH_BYTES)
            if not lines:
                break
            for line in lines:
                entries = parse_transcript_line(line)
                if entries is None:
                    skipped += 1
                    continue
                for entry in entries:
                    yield entry
    finally:
        handle.close()
        if skipped:
            logger.debug(f"Skipped {skipped} corrupt line(s) in {path}")


__all__ = [
    "TranscriptLine",
    "classify_user_content",
    "is_real_user_prompt",
    "parse_session_file",
    "parse_transcript_line",
]
