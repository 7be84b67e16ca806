"""
Skill draft generation.

Pure functions: a ranked candidate goes in, a {name, description, content}
draft comes out. Persisting the draft is the caller's job.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from itertools import groupby
from pathlib import PurePath
from typing import TYPE_CHECKING

from .extractors import BASH_PREFIX, TOOL_SEQUENCE_PREFIX, parse_pattern_key

if TYPE_CHECKING:
    from .ranker import RankedCandidate

MAX_NAME_LENGTH = 64

# Human-readable phrases for tool names
TOOL_PHRASES: dict[str, str] = {
    "Read": "read files",
    "Write": "write files",
    "Edit": "edit files",
    "MultiEdit": "make multi-part edits",
    "NotebookEdit": "edit notebooks",
    "Bash": "run shell commands",
    "Grep": "search file contents",
    "Glob": "find files by pattern",
    "LS": "list directories",
    "WebFetch": "fetch web pages",
    "WebSearch": "search the web",
    "Task": "delegate to a sub-agent",
    "TodoWrite": "update the task list",
}

# Human-readable phrases for shell command categories
CATEGORY_PHRASES: dict[str, str] = {
    "test-runner": "running tests",
    "build": "building the project",
    "version-control": "version control",
    "package-manager": "managing dependencies",
    "search": "searching the codebase",
    "file-ops": "file operations",
    "other": "shell commands",
}


@dataclass(frozen=True)
class Draft:
    """Rendered skill draft."""

    name: str
    description: str
    content: str


def normalize_skill_name(raw: str) -> str:
    """
    Sanitize a name to meet skill naming requirements.

    Lowercase letters, digits and single hyphens, no leading or trailing
    hyphen, at most 64 characters.
    """
    name = raw.lower()
    name = re.sub(r"[^a-z0-9-]", "-", name)
    name = re.sub(r"-+", "-", name).strip("-")
    name = name[:MAX_NAME_LENGTH].rstrip("-")
    return name or "discovered-pattern"


def _tool_phrase(tool_name: str) -> str:
    if tool_name in TOOL_PHRASES:
        return TOOL_PHRASES[tool_name]
    if tool_name.startswith("mcp__"):
        return f"call {tool_name.split('__')[-1]}"
    return f"use {tool_name}"


def describe_pattern(pattern_key: str) -> str:
    """
    Natural-language description of a pattern key.

    This is the text that gets embedded for clustering and deduplication.
    """
    kind, payload = parse_pattern_key(pattern_key)
    if kind == TOOL_SEQUENCE_PREFIX and payload:
        steps = [_tool_phrase(name) for name in payload]
        return "Workflow: " + ", then ".join(steps)
    if kind == BASH_PREFIX:
        category, signature = payload
        phrase = CATEGORY_PHRASES.get(category, CATEGORY_PHRASES["other"])
        return f"Shell workflow for {phrase}: {signature}"
    return f"Recurring pattern: {pattern_key}"


def suggest_name(pattern_key: str) -> str:
    """Suggested artifact name for a pattern key."""
    kind, payload = parse_pattern_key(pattern_key)
    if kind == TOOL_SEQUENCE_PREFIX and payload:
        # Immediate repeats keep their count: Bash,Bash,Edit -> bash-x2-edit
        parts = []
        for name, group in groupby(payload):
            count = len(list(group))
            parts.append(name if count == 1 else f"{name}-x{count}")
        return normalize_skill_name("-".join(parts) + "-workflow")
    if kind == BASH_PREFIX:
        category, signature = payload
        if category == "other":
            return normalize_skill_name(f"{signature}-commands")
        return normalize_skill_name(f"{signature}-{category}")
    return normalize_skill_name(pattern_key)


def _format_date(timestamp: float) -> str:
    if timestamp <= 0:
        return "unknown"
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")


def format_evidence(candidate: "RankedCandidate") -> str:
    """Evidence bullet list for the draft body."""
    evidence = candidate.evidence
    lines = [
        f"- **Occurrences:** {evidence.occurrences} sessions",
        f"- **Projects:** {len(evidence.projects_seen)}",
        f"- **First seen:** {_format_date(evidence.first_seen)}",
        f"- **Last seen:** {_format_date(evidence.last_seen)}",
        f"- **Score:** {candidate.final_score:.2f}",
    ]
    if evidence.co_occurring_files:
        names = sorted({PurePath(path).name for path in evidence.co_occurring_files})
        lines.append(f"- **Common files:** {', '.join(names[:5])}")
    if candidate.cluster is not None and len(candidate.cluster.members) > 1:
        related = [key for key in candidate.cluster.members if key != candidate.pattern_key]
        lines.append(f"- **Related patterns:** {', '.join(f'`{key}`' for key in related[:5])}")
    return "\n".join(lines)


def _steps(pattern_key: str) -> list[str]:
    kind, payload = parse_pattern_key(pattern_key)
    if kind == TOOL_SEQUENCE_PREFIX:
        return [_tool_phrase(name).capitalize() for name in payload]
    if kind == BASH_PREFIX:
        return [f"Run `{payload[1]}` with the arguments this task needs"]
    return [f"Apply `{pattern_key}`"]


def generate_skill_draft(candidate: "RankedCandidate") -> Draft:
    """
    Render one ranked candidate as a skill draft.

    Args:
        candidate: Ranked candidate

    Returns:
        Draft with a constraint-compliant name and markdown content
    """
    name = normalize_skill_name(candidate.suggested_name)
    description = candidate.description
    steps = "\n".join(f"{i}. {step}" for i, step in enumerate(_steps(candidate.pattern_key), 1))

    content = f"""# {name}

## Purpose

{description}

## Pattern Evidence

This skill was suggested from recurring activity in past sessions:

{format_evidence(candidate)}

## Steps

{steps}

## Pattern

`{candidate.pattern_key}`

---
*Generated from pattern discovery. Edit this skill to customize for your workflow.*
"""
    return Draft(name=name, description=description, content=content)


__all__ = [
    "CATEGORY_PHRASES",
    "Draft",
    "MAX_NAME_LENGTH",
    "TOOL_PHRASES",
    "describe_pattern",
    "format_evidence",
    "generate_skill_draft",
    "normalize_skill_name",
    "suggest_name",
]
