"""
Unit tests for pattern extractors.
"""

import pytest

from skill_discovery.extractors import (
    bash_pattern_keys,
    classify_bash_command,
    extract_bash_patterns,
    extract_co_occurring_files,
    extract_tool_sequences,
    normalize_bash_command,
    parse_pattern_key,
    split_bash_command,
)
from skill_discovery.types import AssistantMessage, ToolInvocation, UserMessage


def call(name, **arguments):
    return ToolInvocation(tool_name=name, arguments=arguments)


class TestToolSequences:
    """Tests for sliding-window tool n-grams."""

    def test_bigrams_and_trigrams(self):
        entries = [call("Read"), call("Edit"), call("Bash")]

        keys = extract_tool_sequences(entries, (2, 3))

        assert keys == [
            "tool-sequence:Read,Edit",
            "tool-sequence:Edit,Bash",
            "tool-sequence:Read,Edit,Bash",
        ]

    def test_non_tool_entries_ignored(self):
        entries = [UserMessage("go"), call("Read"), AssistantMessage("ok"), call("Edit")]

        assert extract_tool_sequences(entries, (2,)) == ["tool-sequence:Read,Edit"]

    def test_too_few_tools(self):
        assert extract_tool_sequences([call("Read")], (2, 3)) == []
        assert extract_tool_sequences([], (2, 3)) == []

    def test_duplicates_kept(self):
        entries = [call("Bash")] * 3

        assert extract_tool_sequences(entries, (2,)) == ["tool-sequence:Bash,Bash"] * 2


class TestNormalizeBashCommand:
    """Tests for reducing a command to a stable signature."""

    @pytest.mark.parametrize(
        "command, expected",
        [
            ("git status", "git status"),
            ("git commit -m 'fix the thing'", "git commit"),
            ("git commit -m fixes", "git commit"),
            ("git remote add origin git@x:y.git", "git remote add"),
            ("npm run build -- --watch", "npm run build"),
            ("pytest tests/unit -x", "pytest"),
            ("python -m pytest tests", "python -m pytest"),
            ("python3 -m pip install -r requirements.txt", "python3 -m pip"),
            ("FOO=1 BAR=2 make test", "make test"),
            ("sudo apt-get install curl", "apt-get install curl"),
            ("/usr/local/bin/rg TODO src", "rg"),
            ("ls -la", "ls"),
            ("cat README.md | head -5", "cat"),
            ("echo 'unterminated", "echo"),
            ("docker compose up -d", "docker compose up"),
        ],
    )
    def test_signatures(self, command, expected):
        assert normalize_bash_command(command) == expected

    @pytest.mark.parametrize("command", ["cd /tmp", "export X=1", "", "   ", "FOO=1", "# comment"])
    def test_nothing_stable(self, command):
        assert normalize_bash_command(command) is None


class TestClassifyBashCommand:
    """Tests for command categorization."""

    @pytest.mark.parametrize(
        "signature, category",
        [
            ("pytest", "test-runner"),
            ("python -m pytest", "test-runner"),
            ("npm test", "test-runner"),
            ("cargo test", "test-runner"),
            ("make test", "test-runner"),
            ("make", "build"),
            ("npm run build", "build"),
            ("cargo build", "build"),
            ("git status", "version-control"),
            ("gh pr create", "version-control"),
            ("npm install", "package-manager"),
            ("pip install", "package-manager"),
            ("rg", "search"),
            ("ls", "file-ops"),
            ("echo", "other"),
            ("gitk", "other"),
        ],
    )
    def test_categories(self, signature, category):
        assert classify_bash_command(signature) == category


class TestBashPatterns:
    """Tests for shell command pattern extraction."""

    def test_split_compound(self):
        assert split_bash_command("cd app && npm test || echo fail; git status") == [
            "cd app",
            "npm test",
            "echo fail",
            "git status",
        ]

    def test_compound_keys(self):
        assert bash_pattern_keys("cd repo && git add . && git commit -m wip") == [
            "bash:version-control:git add",
            "bash:version-control:git commit",
        ]

    def test_only_shell_tools(self):
        entries = [
            call("Bash", command="git status"),
            call("Read", command="git status"),
            call("Bash"),
            call("Bash", command="pytest -q"),
        ]

        assert extract_bash_patterns(entries) == [
            "bash:version-control:git status",
            "bash:test-runner:pytest",
        ]

    def test_custom_shell_tools(self):
        entries = [call("Shell", command="make")]

        assert extract_bash_patterns(entries, ("Shell",)) == ["bash:build:make"]
        assert extract_bash_patterns(entries) == []


class TestCoOccurringFiles:
    def test_distinct_in_order_with_limit(self):
        entries = [
            call("Read", file_path="/a.py"),
            call("Edit", file_path="/b.py"),
            call("Read", file_path="/a.py"),
            call("Grep", path="/ignored"),
            call("NotebookEdit", notebook_path="/n.ipynb"),
        ]

        assert extract_co_occurring_files(entries) == ["/a.py", "/b.py", "/n.ipynb"]
        assert extract_co_occurring_files(entries, limit=1) == ["/a.py"]


class TestParsePatternKey:
    def test_kinds(self):
        assert parse_pattern_key("tool-sequence:Read,Edit") == ("tool-sequence", ["Read", "Edit"])
        assert parse_pattern_key("bash:version-control:git commit") == (
            "bash",
            ["version-control", "git commit"],
        )
        assert parse_pattern_key("other:thing") == ("other", ["thing"])
