"""Unit tests for the command-line interface."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from cliannotate.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, config_file, registry):
    """Invoke the CLI against the in-memory registry."""

    def _invoke(*args):
        with patch("cliannotate.cli.OracleRegistry.from_config", return_value=registry):
            return runner.invoke(cli, ["--config", str(config_file), *args], obj={})

    return _invoke


class TestLineCommand:
    """Test the line command."""

    def test_annotates_known_cli(self, invoke):
        result = invoke("line", "git commit -m msg")

        assert result.exit_code == 0
        assert 'href="https://example.com/docs/commit"' in result.output
        assert '<span style="color: var(--cli-color-block-option);"' in result.output
        assert result.output.startswith("git <a ")

    def test_unknown_cli_passes_through(self, invoke):
        result = invoke("line", "ls -la")

        assert result.exit_code == 0
        assert result.output == "ls -la\n"

    def test_segments_json(self, invoke):
        result = invoke("line", "demo ssh -p 80 localhost", "--segments")

        assert result.exit_code == 0
        segments = json.loads(result.output)
        assert segments[0] == {
            "text": "ssh",
            "tags": {"type": "keyword", "description": "Connect to a host"},
        }
        assert "".join(s["text"] for s in segments) == "ssh -p 80 localhost"

    def test_segments_unresolved_prints_null(self, invoke):
        result = invoke("line", "git frobnicate", "--segments")

        assert result.exit_code == 0
        assert json.loads(result.output) is None

    def test_missing_config_fails(self, runner, tmp_path):
        result = runner.invoke(cli, ["--config", str(tmp_path / "absent.toml"), "line", "x"], obj={})

        assert result.exit_code == 1
        assert "not found" in result.output


class TestCommandsCommand:
    """Test the commands command."""

    def test_json(self, invoke):
        result = invoke("commands", "git", "--json")

        assert result.exit_code == 0
        assert json.loads(result.output) == [["commit"]]

    def test_table(self, invoke):
        result = invoke("commands", "demo")

        assert result.exit_code == 0
        assert "demo ssh" in result.output
        assert "Network" in result.output

    def test_unknown_cli(self, invoke):
        result = invoke("commands", "svn")

        assert result.exit_code == 1
        assert "Unknown CLI 'svn'" in result.output


class TestRenderCommand:
    def test_writes_output_dir(self, invoke, tmp_path):
        source = tmp_path / "guide.md"
        source.write_text("```bash\ngit commit -m msg\n```\n")
        output_dir = tmp_path / "site"

        result = invoke("render", str(source), "--output-dir", str(output_dir))

        assert result.exit_code == 0
        assert "Annotated 1 of 1" in result.output
        assert '<div class="custom-code-block">' in (output_dir / "guide.md").read_text()
        assert source.read_text() == "```bash\ngit commit -m msg\n```\n"


class TestCatalogCommand:
    def test_writes_pages(self, invoke, tmp_path):
        result = invoke("catalog", "demo", str(tmp_path / "catalog"))

        assert result.exit_code == 0
        assert (tmp_path / "catalog" / "demo" / "ssh.md").exists()


class TestInitCommand:
    """Test the init command."""

    def test_creates_config(self, runner, tmp_path):
        path = tmp_path / "cliannotate.toml"

        result = runner.invoke(cli, ["--config", str(path), "init"], obj={})

        assert result.exit_code == 0
        assert "[clis.my-cli]" in path.read_text()

    def test_refuses_overwrite(self, runner, tmp_path):
        path = tmp_path / "cliannotate.toml"
        path.write_text("")

        result = runner.invoke(cli, ["init", str(path)], obj={})

        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_force_overwrites(self, runner, tmp_path):
        path = tmp_path / "cliannotate.toml"
        path.write_text("")

        result = runner.invoke(cli, ["init", str(path), "--force"], obj={})

        assert result.exit_code == 0
        assert "my-cli" in path.read_text()


class TestWatchCommand:
    """Test the watch command."""

    def test_rerenders_once_per_poll(self, runner, config_file, registry, tmp_path):
        source = tmp_path / "guide.md"
        source.write_text("`git commit -m msg`\n")

        class OnePollWatcher:
            def __init__(self, oracles, on_change=None):
                self.on_change = on_change

            async def watch(self, interval=1.0, stop_event=None):
                await self.on_change([SimpleNamespace(name="demo"), SimpleNamespace(name="git")])

        render = AsyncMock(return_value=1)

        with patch("cliannotate.cli.OracleRegistry.from_config", return_value=registry), patch(
            "cliannotate.cli.BinaryWatcher", OnePollWatcher
        ), patch("cliannotate.cli._render_files", render):
            result = runner.invoke(
                cli,
                ["--config", str(config_file), "watch", str(source), "--output-dir", str(tmp_path / "out")],
                obj={},
            )

        assert result.exit_code == 0
        assert render.await_count == 2
