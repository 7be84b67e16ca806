"""
Pattern extractors.

Both extractors are pure functions over one session's entries:

- tool-sequence n-grams:  ``tool-sequence:Read,Edit,Bash``
- shell command patterns: ``bash:<category>:<normalized-signature>``
"""

from __future__ import annotations

import re
import shlex
from collections.abc import Iterable, Sequence

from .types import ParsedEntry, ToolInvocation

TOOL_SEQUENCE_PREFIX = "tool-sequence"
BASH_PREFIX = "bash"

DEFAULT_NGRAM_SIZES = (2, 3)
DEFAULT_SHELL_TOOLS = ("Bash",)

# Tools whose file argument counts as a co-occurring file
FILE_TOOLS = {"Read", "Write", "Edit", "MultiEdit", "NotebookEdit"}

# Category rules, checked in order; first match wins. A rule matches when the
# normalized command starts with one of its prefixes (whole words).
BASH_CATEGORY_RULES: list[tuple[str, tuple[str, ...]]] = [
    (
        "test-runner",
        (
            "pytest", "python -m pytest", "python3 -m pytest", "tox", "nox",
            "jest", "vitest", "mocha", "npx jest", "npx vitest",
            "npm test", "npm run test", "yarn test", "pnpm test", "bun test",
            "cargo test", "go test", "rspec", "phpunit", "make test",
        ),
    ),
    (
        "build",
        (
            "make", "cmake", "tsc", "npm run build", "yarn build", "pnpm build",
            "cargo build", "go build", "gradle", "mvn", "docker build", "docker compose",
            "python -m build",
        ),
    ),
    ("version-control", ("git", "gh", "hg", "svn")),
    (
        "package-manager",
        (
            "npm", "npx", "yarn", "pnpm", "bun", "pip", "pip3", "python -m pip",
            "poetry", "uv", "pipx", "conda", "cargo", "go get", "go mod", "brew",
            "apt", "apt-get", "gem", "bundle", "composer",
        ),
    ),
    ("search", ("grep", "rg", "ag", "find", "fd", "ack")),
    (
        "file-ops",
        (
            "ls", "cat", "cp", "mv", "rm", "mkdir", "rmdir", "touch", "chmod",
            "chown", "ln", "head", "tail", "wc", "tree", "du", "tar", "unzip", "zip",
        ),
    ),
]

OTHER_CATEGORY = "other"

# Commands that only set up context for the next segment
_CONTEXT_COMMANDS = {"cd", "pushd", "popd", "export", "source", "."}
_ENV_ASSIGNMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")
_SUBCOMMAND = re.compile(r"^[a-z][a-z0-9:_-]*$")
_SEGMENT_SPLIT = re.compile(r"\s*(?:&&|\|\||;)\s*")

# Program plus this many plain-word subcommands
MAX_SUBCOMMANDS = 2


def _tokenize(command: str) -> list[str]:
    try:
        return shlex.split(command, comments=True)
    except ValueError:
        # Unbalanced quotes
        return command.split()


def _strip_prefix_tokens(tokens: list[str]) -> list[str]:
    """Drop env assignments and sudo in front of the real program."""
    index = 0
    while index < len(tokens) and (
        _ENV_ASSIGNMENT.match(tokens[index]) or tokens[index] == "sudo"
    ):
        index += 1
    return tokens[index:]


def normalize_bash_command(command: str) -> str | None:
    """
    Reduce one command segment to a stable signature.

    Keeps the program and up to MAX_SUBCOMMANDS plain word subcommands; flags,
    paths, quoted values and numbers are volatile and dropped. ``python -m X``
    keeps its module.

    Returns:
        Signature string, or None if nothing stable remains
    """
    head = command.split("|", 1)[0]
    tokens = _strip_prefix_tokens(_tokenize(head))
    if not tokens:
        return None

    program = tokens[0].rsplit("/", 1)[-1]
    if not program or program in _CONTEXT_COMMANDS:
        return None

    parts = [program]
    rest = tokens[1:]

    if program.startswith("python") and len(rest) >= 2 and rest[0] == "-m":
        parts.extend(["-m", rest[1]])
        rest = rest[2:]

    for token in rest:
        if len(parts) > MAX_SUBCOMMANDS:
            break
        if token.startswith("-") or not _SUBCOMMAND.match(token):
            # Flags and their values, paths, literals: the signature ends here
            break
        parts.append(token)

    return " ".join(parts)


def classify_bash_command(signature: str) -> str:
    """Map a normalized signature to a coarse category."""
    for category, prefixes in BASH_CATEGORY_RULES:
        for prefix in prefixes:
            if signature == prefix or signature.startswith(prefix + " "):
                return category
    return OTHER_CATEGORY


def split_bash_command(command: str) -> list[str]:
    """Split a compound command on &&, || and ;"""
    return [segment for segment in _SEGMENT_SPLIT.split(command.strip()) if segment.strip()]


def bash_pattern_keys(command: str) -> list[str]:
    """Pattern keys for every meaningful segment of one shell command."""
    keys = []
    for segment in split_bash_command(command):
        signature = normalize_bash_command(segment)
        if signature is None:
            continue
        keys.append(f"{BASH_PREFIX}:{classify_bash_command(signature)}:{signature}")
    return keys


def _tool_invocations(entries: Iterable[ParsedEntry]) -> list[ToolInvocation]:
    return [e for e in entries if isinstance(e, ToolInvocation)]


def extract_tool_sequences(
    entries: Iterable[ParsedEntry],
    ngram_sizes: Sequence[int] = DEFAULT_NGRAM_SIZES,
) -> list[str]:
    """
    Sliding-window n-grams over the session's ordered tool names.

    Args:
        entries: One session's parsed entries
        ngram_sizes: Window sizes

    Returns:
        Pattern keys in window order (duplicates kept)
    """
    names = [call.tool_name for call in _tool_invocations(entries)]
    keys = []
    for size in ngram_sizes:
        if size < 1:
            continue
        for start in range(len(names) - size + 1):
            window = names[start:start + size]
            keys.append(f"{TOOL_SEQUENCE_PREFIX}:{','.join(window)}")
    return keys


def extract_bash_patterns(
    entries: Iterable[ParsedEntry],
    shell_tools: Sequence[str] = DEFAULT_SHELL_TOOLS,
) -> list[str]:
    """
    Classified, normalized shell command patterns.

    Args:
        entries: One session's parsed entries
        shell_tools: Tool names that carry a ``command`` argument

    Returns:
        Pattern keys in invocation order (duplicates kept)
    """
    keys = []
    for call in _tool_invocations(entries):
        if call.tool_name not in shell_tools:
            continue
        command = call.command
        if command:
            keys.extend(bash_pattern_keys(command))
    return keys


def extract_co_occurring_files(
    entries: Iterable[ParsedEntry],
    limit: int | None = None,
) -> list[str]:
    """Distinct file paths touched by read/write tools, in first-seen order."""
    files: list[str] = []
    seen: set[str] = set()
    for call in _tool_invocations(entries):
        if call.tool_name not in FILE_TOOLS:
            continue
        path = call.file_path
        if path and path not in seen:
            seen.add(path)
            files.append(path)
            if limit is not None and len(files) >= limit:
                break
    return files


def parse_pattern_key(pattern_key: str) -> tuple[str, list[str]]:
    """
    Split a pattern key into its kind and payload.

    ``tool-sequence:Read,Edit`` -> ("tool-sequence", ["Read", "Edit"])
    ``bash:version-control:git commit`` -> ("bash", ["version-control", "git commit"])
    """
    kind, _, payload = pattern_key.partition(":")
    if kind == TOOL_SEQUENCE_PREFIX:
        return kind, payload.split(",") if payload else []
    if kind == BASH_PREFIX:
        category, _, signature = payload.partition(":")
        return kind, [category, signature]
    return kind, [payload]


__all__ = [
    "BASH_CATEGORY_RULES",
    "OTHER_CATEGORY",
    "bash_pattern_keys",
    "classify_bash_command",
    "extract_bash_patterns",
    "extract_co_occurring_files",
    "extract_tool_sequences",
    "normalize_bash_command",
    "parse_pattern_key",
    "split_bash_command",
]
