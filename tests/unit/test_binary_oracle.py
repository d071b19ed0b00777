"""Unit tests for BinaryOracle.

Subprocess creation is mocked; see tests/integration for a real process.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cliannotate.binary_oracle import COMMANDS_ARGS, DESCRIBE_ARGS, BinaryOracle
from cliannotate.config import OracleSettings
from cliannotate.errors import MalformedOracleResponseError, OracleUnavailableError

SPEC = {
    "primaryPath": ["status"],
    "aliases": [["st"]],
    "category": None,
    "description": "Show status",
    "details": None,
    "examples": [],
    "components": [{"type": "positional", "positionalType": "keyword", "expected": "status"}],
    "requiredOptions": [],
}


def make_process(stdout=b"null", stderr=b"", returncode=0):
    """Fake asyncio subprocess with a communicate() coroutine."""
    process = MagicMock()
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    process.returncode = returncode
    process.wait = AsyncMock(return_value=returncode)
    return process


def settings(**overrides):
    values = dict(timeout=1.0, max_concurrent=2, max_attempts=2, initial_delay=0.0, max_delay=0.0, jitter_enabled=False)
    values.update(overrides)
    return OracleSettings(**values)


@pytest.fixture
def oracle(tmp_path):
    return BinaryOracle(tmp_path / "tool", name="tool", settings=settings())


class TestBinaryOracleDescribe:
    """Test describe requests."""

    @pytest.mark.asyncio
    async def test_describe_invokes_binary_with_argv(self, oracle):
        payload = {"command": ["status"], "tokens": [], "annotations": []}
        with patch(
            "cliannotate.binary_oracle.asyncio.create_subprocess_exec",
            AsyncMock(return_value=make_process(json.dumps(payload).encode())),
        ) as mock_exec:
            result = await oracle.describe(["status", "--short"])

        assert result.command == ("status",)
        args = mock_exec.call_args.args
        assert args == (str(oracle.path), *DESCRIBE_ARGS, "status", "--short")

    @pytest.mark.asyncio
    async def test_describe_null_is_unresolved(self, oracle):
        with patch(
            "cliannotate.binary_oracle.asyncio.create_subprocess_exec",
            AsyncMock(return_value=make_process(b"null\n")),
        ):
            assert await oracle.describe(["nope"]) is None

    @pytest.mark.asyncio
    async def test_invalid_json_is_malformed_and_not_retried(self, oracle):
        mock_exec = AsyncMock(return_value=make_process(b"not json"))
        with patch("cliannotate.binary_oracle.asyncio.create_subprocess_exec", mock_exec):
            with pytest.raises(MalformedOracleResponseError):
                await oracle.describe(["status"])

        assert mock_exec.call_count == 1

    @pytest.mark.asyncio
    async def test_wrong_shape_is_malformed(self, oracle):
        with patch(
            "cliannotate.binary_oracle.asyncio.create_subprocess_exec",
            AsyncMock(return_value=make_process(b'{"command": "status"}')),
        ):
            with pytest.raises(MalformedOracleResponseError):
                await oracle.describe(["status"])

    @pytest.mark.asyncio
    async def test_nonzero_exit_retried_then_unavailable(self, oracle):
        mock_exec = AsyncMock(return_value=make_process(b"", b"panic", returncode=101))
        with patch("cliannotate.binary_oracle.asyncio.create_subprocess_exec", mock_exec):
            with pytest.raises(OracleUnavailableError, match="exited with code 101: panic"):
                await oracle.describe(["status"])

        assert mock_exec.call_count == 2

    @pytest.mark.asyncio
    async def test_recovers_after_transient_crash(self, oracle):
        """A crashed process is replaced by a fresh one on retry."""
        mock_exec = AsyncMock(
            side_effect=[
                make_process(b"", b"crash", returncode=1),
                make_process(b"null"),
            ]
        )
        with patch("cliannotate.binary_oracle.asyncio.create_subprocess_exec", mock_exec):
            assert await oracle.describe(["status"]) is None

        assert mock_exec.call_count == 2

    @pytest.mark.asyncio
    async def test_missing_binary_is_unavailable(self, oracle):
        with patch(
            "cliannotate.binary_oracle.asyncio.create_subprocess_exec",
            AsyncMock(side_effect=FileNotFoundError("no such file")),
        ):
            with pytest.raises(OracleUnavailableError, match="Cannot start oracle"):
                await oracle.describe(["status"])

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, tmp_path):
        oracle = BinaryOracle(tmp_path / "tool", settings=settings(timeout=0.01, max_attempts=1))

        async def hang():
            await asyncio.sleep(10)

        process = make_process()
        process.communicate = hang
        process.returncode = None

        with patch(
            "cliannotate.binary_oracle.asyncio.create_subprocess_exec",
            AsyncMock(return_value=process),
        ):
            with pytest.raises(OracleUnavailableError, match="timed out"):
                await oracle.describe(["status"])

        process.kill.assert_called_once()


class TestBinaryOracleCommands:
    """Test list_commands caching and update notifications."""

    @pytest.mark.asyncio
    async def test_list_commands_is_cached(self, oracle):
        mock_exec = AsyncMock(return_value=make_process(json.dumps([SPEC]).encode()))
        with patch("cliannotate.binary_oracle.asyncio.create_subprocess_exec", mock_exec):
            first = await oracle.list_commands()
            second = await oracle.list_commands()

        assert first is second
        assert first[0].primary_path == ("status",)
        assert mock_exec.call_count == 1
        assert mock_exec.call_args.args[1:] == COMMANDS_ARGS

    @pytest.mark.asyncio
    async def test_cache_can_be_disabled(self, tmp_path):
        oracle = BinaryOracle(tmp_path / "tool", settings=settings(), cache_commands=False)
        mock_exec = AsyncMock(side_effect=lambda *a, **k: make_process(json.dumps([SPEC]).encode()))
        with patch("cliannotate.binary_oracle.asyncio.create_subprocess_exec", mock_exec):
            await oracle.list_commands()
            await oracle.list_commands()

        assert mock_exec.call_count == 2

    @pytest.mark.asyncio
    async def test_notify_updated_refetches_and_runs_callbacks(self, oracle):
        updated = {**SPEC, "description": "Show working tree status"}
        mock_exec = AsyncMock(
            side_effect=[
                make_process(json.dumps([SPEC]).encode()),
                make_process(json.dumps([updated]).encode()),
            ]
        )
        seen = []

        async def on_update():
            seen.append("async")

        oracle.on_updated(on_update)
        oracle.on_updated(lambda: seen.append("sync"))

        with patch("cliannotate.binary_oracle.asyncio.create_subprocess_exec", mock_exec):
            before = await oracle.list_commands()
            await oracle.notify_updated()
            after = await oracle.list_commands()

        assert before[0].description == "Show status"
        assert after[0].description == "Show working tree status"
        assert seen == ["async", "sync"]

    @pytest.mark.asyncio
    async def test_find_command_by_alias(self, oracle):
        with patch(
            "cliannotate.binary_oracle.asyncio.create_subprocess_exec",
            AsyncMock(return_value=make_process(json.dumps([SPEC]).encode())),
        ):
            spec = await oracle.find_command(["st"])
            missing = await oracle.find_command(["push"])

        assert spec.primary_path == ("status",)
        assert missing is None

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, tmp_path):
        oracle = BinaryOracle(tmp_path / "tool", settings=settings(max_concurrent=2))
        running = 0
        peak = 0

        async def communicate():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return b"null", b""

        def spawn(*args, **kwargs):
            process = make_process()
            process.communicate = communicate
            return process

        with patch(
            "cliannotate.binary_oracle.asyncio.create_subprocess_exec", AsyncMock(side_effect=spawn)
        ):
            await asyncio.gather(*(oracle.describe([str(i)]) for i in range(6)))

        assert peak == 2

    def test_default_name_is_file_name(self, tmp_path):
        assert BinaryOracle(tmp_path / "git-demo", settings=settings()).name == "git-demo"
