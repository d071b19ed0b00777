"""
Shared test fixtures and configuration for cliannotate tests.

This module provides common fixtures used across all test types:
- An in-memory oracle implementing the Oracle protocol
- Wire payloads for a demo CLI (ssh) and a git-like CLI (commit)
- Registries binding those oracles to CLI names
- Executable oracle scripts for subprocess-level tests
"""

import asyncio
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest

from cliannotate.models import CommandSpec, DescribeResult
from cliannotate.registry import OracleRegistry

# ============================================================================
# IN-MEMORY ORACLE
# ============================================================================


class FakeOracle:
    """In-memory oracle.

    Answers are keyed by argument vector. A value may be a DescribeResult,
    None (unresolved) or an exception instance to raise. Delays (seconds)
    can be configured per argument vector to shuffle completion order.
    """

    def __init__(
        self,
        specs: Sequence[CommandSpec] = (),
        answers: dict[tuple[str, ...], Any] | None = None,
        delays: dict[tuple[str, ...], float] | None = None,
    ):
        self.specs = tuple(specs)
        self.answers = answers or {}
        self.delays = delays or {}
        self.calls: list[tuple[str, ...]] = []
        self.list_calls = 0

    async def list_commands(self) -> tuple[CommandSpec, ...]:
        self.list_calls += 1
        return self.specs

    async def describe(self, argv: Sequence[str]) -> DescribeResult | None:
        key = tuple(argv)
        self.calls.append(key)

        delay = self.delays.get(key)
        if delay:
            await asyncio.sleep(delay)

        answer = self.answers.get(key)
        if isinstance(answer, Exception):
            raise answer
        return answer


# ============================================================================
# WIRE PAYLOADS
# ============================================================================


def _option(primary: str, aliases: list[str], description: str, min_len: int = 1) -> dict[str, Any]:
    return {
        "type": "option",
        "primaryName": primary,
        "aliases": aliases,
        "description": description,
        "minLen": min_len,
        "extraLen": 0,
        "allowBinding": True,
        "allowBoolean": min_len == 0,
        "isHidden": False,
        "isRequired": False,
    }


SSH_SPEC_PAYLOAD: dict[str, Any] = {
    "primaryPath": ["ssh"],
    "aliases": [],
    "category": "Network",
    "description": "Connect to a host",
    "details": "Opens an interactive session on the remote host.",
    "examples": [{"command": "demo ssh -p 80 localhost", "description": "Connect on port 80"}],
    "components": [
        {"type": "positional", "positionalType": "keyword", "expected": "ssh"},
        _option("--port", ["-p"], "Port to connect to"),
        {
            "type": "positional",
            "positionalType": "dynamic",
            "name": "host",
            "description": "Host to connect to",
            "minLen": 1,
            "extraLen": 0,
            "isPrefix": False,
            "isProxy": False,
        },
    ],
    "requiredOptions": [],
}

SSH_DESCRIBE_PAYLOAD: dict[str, Any] = {
    "command": ["ssh"],
    "tokens": [
        {"type": "keyword", "argIndex": 0, "slice": {"start": 0, "end": 3}, "componentId": 0},
        {"type": "option", "argIndex": 1, "slice": {"start": 0, "end": 2}, "componentId": 1},
        {"type": "value", "argIndex": 2, "slice": {"start": 0, "end": 2}, "componentId": 1},
        {"type": "positional", "argIndex": 3, "slice": {"start": 0, "end": 9}, "componentId": 2},
    ],
    "annotations": [
        {
            "type": "keyword",
            "start": {"argIndex": 0, "offset": 0},
            "end": {"argIndex": 0, "offset": 3},
            "description": "Connect to a host",
        },
        {
            "type": "option",
            "start": {"argIndex": 1, "offset": 0},
            "end": {"argIndex": 2, "offset": 2},
            "description": "Port to connect to",
        },
        {
            "type": "positional",
            "start": {"argIndex": 3, "offset": 0},
            "end": {"argIndex": 3, "offset": 9},
            "description": "Host to connect to",
        },
    ],
}

COMMIT_SPEC_PAYLOAD: dict[str, Any] = {
    "primaryPath": ["commit"],
    "aliases": [["ci"]],
    "category": None,
    "description": "Record changes to the repository",
    "details": None,
    "examples": [],
    "components": [
        {"type": "positional", "positionalType": "keyword", "expected": "commit"},
        _option("--message", ["-m"], "Commit message"),
        {**_option("--internal", [], "Internal flag", min_len=0), "isHidden": True},
    ],
    "requiredOptions": [1],
}

COMMIT_DESCRIBE_PAYLOAD: dict[str, Any] = {
    "command": ["commit"],
    "tokens": [
        {"type": "keyword", "argIndex": 0, "slice": {"start": 0, "end": 6}, "componentId": 0},
        {"type": "option", "argIndex": 1, "slice": {"start": 0, "end": 2}, "componentId": 1},
        {"type": "value", "argIndex": 2, "slice": {"start": 0, "end": 3}, "componentId": 1},
    ],
    "annotations": [
        {
            "type": "keyword",
            "start": {"argIndex": 0, "offset": 0},
            "end": {"argIndex": 0, "offset": 6},
            "description": "Record changes to the repository",
        },
        {
            "type": "option",
            "start": {"argIndex": 1, "offset": 0},
            "end": {"argIndex": 2, "offset": 3},
            "description": "Commit message",
        },
    ],
}

SSH_ARGV = ("ssh", "-p", "80", "localhost")
COMMIT_ARGV = ("commit", "-m", "msg")
GIT_BASE_URL = "https://example.com/docs"


@pytest.fixture
def ssh_spec() -> CommandSpec:
    return CommandSpec.from_dict(SSH_SPEC_PAYLOAD)


@pytest.fixture
def ssh_result() -> DescribeResult:
    return DescribeResult.from_dict(SSH_DESCRIBE_PAYLOAD)


@pytest.fixture
def commit_spec() -> CommandSpec:
    return CommandSpec.from_dict(COMMIT_SPEC_PAYLOAD)


@pytest.fixture
def commit_result() -> DescribeResult:
    return DescribeResult.from_dict(COMMIT_DESCRIBE_PAYLOAD)


@pytest.fixture
def demo_oracle(ssh_spec, ssh_result) -> FakeOracle:
    """Oracle for a 'demo' CLI exposing an ssh command."""
    return FakeOracle(specs=[ssh_spec], answers={SSH_ARGV: ssh_result})


@pytest.fixture
def git_oracle(commit_spec, commit_result) -> FakeOracle:
    """Oracle for a 'git' CLI exposing a commit command."""
    return FakeOracle(specs=[commit_spec], answers={COMMIT_ARGV: commit_result})


@pytest.fixture
def registry(demo_oracle, git_oracle) -> OracleRegistry:
    """Registry with 'demo' (no base URL) and 'git' (with base URL)."""
    registry = OracleRegistry()
    registry.register("demo", demo_oracle)
    registry.register("git", git_oracle, GIT_BASE_URL)
    return registry


@pytest.fixture
def fake_oracle_factory():
    """Build FakeOracle instances in tests that need custom answers."""
    return FakeOracle


# ============================================================================
# EXECUTABLE ORACLE SCRIPTS
# ============================================================================


ORACLE_SCRIPT = """#!{python}
import json
import sys

COMMANDS = {commands}
DESCRIBE = {describe}

args = sys.argv[1:]
if args == ["--cli-introspect=commands"]:
    print(json.dumps(COMMANDS))
elif args[:2] == ["--cli-introspect=describe", "--"]:
    print(json.dumps(DESCRIBE.get(" ".join(args[2:]))))
else:
    sys.stderr.write("unknown invocation\\n")
    sys.exit(2)
"""


@pytest.fixture
def oracle_script(tmp_path) -> Path:
    """Executable oracle describing 'ssh -p 80 localhost' for a demo CLI."""
    script = tmp_path / "demo-oracle"
    script.write_text(
        ORACLE_SCRIPT.format(
            python=sys.executable,
            commands=repr([SSH_SPEC_PAYLOAD]),
            describe=repr({" ".join(SSH_ARGV): SSH_DESCRIBE_PAYLOAD}),
        )
    )
    script.chmod(0o755)
    return script


@pytest.fixture
def config_file(tmp_path, oracle_script) -> Path:
    """cliannotate.toml binding 'demo' to the executable oracle script."""
    config = tmp_path / "cliannotate.toml"
    config.write_text(
        f'[clis.demo]\npath = "{oracle_script.name}"\nbase_url = "{GIT_BASE_URL}"\n'
    )
    return config

