"""
Tests for the command line interface and interactive shell.
"""

import asyncio
import shutil
import tempfile
import threading
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from screenmemory import cli
from screenmemory.cli import Shell, format_compact, format_record, main, read_line
from screenmemory.config import Config
from screenmemory.errors import CaptureFailure
from screenmemory.memory import ScreenMemory
from screenmemory.store.record_store import Record, new_record_id


@pytest.fixture
def temp_dir():
    path = Path(tempfile.mkdtemp())
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def config(temp_dir):
    config = Config()
    config.storage.data_dir = temp_dir / "data"
    config.capture.screenshots_dir = temp_dir / "shots"
    config.export.export_dir = temp_dir / "export"
    return config


@pytest.fixture
def memory(config):
    return ScreenMemory.open(config)


def add_record(memory, text="", app="Terminal", minutes_ago=0, record_id=None, **kwargs):
    record_id = record_id or new_record_id()
    image = memory.config.capture.screenshots_dir / f"{record_id}.png"
    image.write_bytes(b"png")
    record = Record(
        id=record_id,
        timestamp=datetime.now() - timedelta(minutes=minutes_ago),
        image_path=image,
        text=text,
        app_name=app,
        **kwargs,
    )
    memory.store.insert(record)
    return record


class FakeCapture:
    """Stands in for ScreenMemory.capture, inserting a record each call."""

    def __init__(self, memory, fail=False):
        self.memory = memory
        self.fail = fail
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.fail:
            raise CaptureFailure("/tmp/missing.png")
        return add_record(self.memory, text=f"capture {self.calls}", app="Xcode")


class TestFormatting:
    """Tests for output formatting."""

    def test_format_compact(self, memory):
        record = add_record(memory, app="Safari", record_id="12345678-aaaa-bbbb-cccc-000000000000")

        line = format_compact(record)

        assert line.startswith("[12345678] ")
        assert line.endswith(" - Safari")

    def test_format_record_truncates_text(self, memory):
        record = add_record(memory, text="x" * 400, window_title="Docs", url="https://example.com")

        block = format_record(record)

        assert "Window: Docs" in block
        assert "URL: https://example.com" in block
        assert "x" * 150 + "..." in block
        assert "x" * 151 not in block

    def test_format_record_full(self, memory):
        record = add_record(memory, text="y" * 400)

        assert "y" * 400 in format_record(record, show_full=True)


class TestShell:
    """Tests for the interactive shell dispatcher."""

    @pytest.mark.asyncio
    async def test_unknown_command(self, memory, capsys):
        shell = Shell(memory)

        assert await shell.dispatch("bogus") is True
        assert "Unknown command" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_quit_aliases(self, memory):
        shell = Shell(memory)

        for line in ("quit", "q", "EXIT"):
            assert await shell.dispatch(line) is False

    @pytest.mark.asyncio
    async def test_blank_line_is_ignored(self, memory, capsys):
        shell = Shell(memory)

        assert await shell.dispatch("   ") is True
        assert capsys.readouterr().out == ""

    @pytest.mark.asyncio
    async def test_search_by_app(self, memory, capsys):
        add_record(memory, text="build failed", app="Terminal")
        add_record(memory, text="stack overflow", app="Safari")
        shell = Shell(memory)

        await shell.dispatch("search from:terminal")

        out = capsys.readouterr().out
        assert "Found 1 screenshot(s)" in out
        assert "App: Terminal" in out
        assert "App: Safari" not in out

    @pytest.mark.asyncio
    async def test_search_alias_and_no_results(self, memory, capsys):
        add_record(memory, text="hello")
        shell = Shell(memory)

        await shell.dispatch("s nothing-here")

        assert "No screenshots found matching 'nothing-here'" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_empty_search_reports_error(self, memory, capsys):
        shell = Shell(memory)

        assert await shell.dispatch("search") is True
        assert "Please enter a search query" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_list_default_and_count(self, memory, capsys):
        for i in range(12):
            add_record(memory, text=str(i))
        shell = Shell(memory)

        await shell.dispatch("list")
        assert "Recent 10 screenshot(s)" in capsys.readouterr().out

        await shell.dispatch("ls 3")
        assert "Recent 3 screenshot(s)" in capsys.readouterr().out

        await shell.dispatch("list lots")
        assert "Recent 10 screenshot(s)" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_text_shows_full_text(self, memory, capsys):
        record = add_record(memory, text="line one\nline two")
        shell = Shell(memory)

        await shell.dispatch(f"text {record.short_id}")

        assert "line one\nline two" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_delete_and_not_found(self, memory, capsys):
        record = add_record(memory)
        shell = Shell(memory)

        await shell.dispatch(f"rm {record.short_id}")
        assert "Deleted screenshot" in capsys.readouterr().out
        assert len(memory.store) == 0

        await shell.dispatch(f"delete {record.short_id}")
        assert "No screenshot found" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_export(self, memory, config, capsys):
        record = add_record(memory)
        shell = Shell(memory)

        await shell.dispatch(f"export {record.short_id}")

        assert (config.export.export_dir / record.filename).exists()
        assert "Exported to" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_open_uses_viewer(self, memory, capsys):
        record = add_record(memory)
        shell = Shell(memory)

        with patch.object(cli, 'open_image') as mock_open:
            await shell.dispatch(f"open {record.short_id}")

        mock_open.assert_called_once_with(record.image_path)

    @pytest.mark.asyncio
    async def test_stats(self, memory, capsys):
        add_record(memory, app="Safari")
        add_record(memory, app="Safari")
        add_record(memory, app="Terminal")
        shell = Shell(memory)

        await shell.dispatch("stats")

        out = capsys.readouterr().out
        assert "Total screenshots: 3" in out
        assert out.index("Safari: 2") < out.index("Terminal: 1")

    @pytest.mark.asyncio
    async def test_capture(self, memory, capsys):
        fake = FakeCapture(memory)
        with patch.object(memory, 'capture', fake):
            shell = Shell(memory)
            await shell.dispatch("c")

        assert fake.calls == 1
        assert "Captured and indexed" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_capture_failure_is_reported(self, memory, capsys):
        with patch.object(memory, 'capture', FakeCapture(memory, fail=True)):
            shell = Shell(memory)
            assert await shell.dispatch("capture") is True

        assert "permission" in capsys.readouterr().out.lower()

    @pytest.mark.asyncio
    async def test_watch_twice_and_stop(self, memory, capsys):
        fake = FakeCapture(memory)
        with patch.object(memory, 'capture', fake):
            shell = Shell(memory, interval=60)

            await shell.dispatch("watch")
            await shell.dispatch("w")
            await asyncio.sleep(0.2)
            await shell.dispatch("stop")
            await shell.scheduler.wait()

        out = capsys.readouterr().out
        assert "already running" in out
        assert "Watch mode stopped" in out
        assert fake.calls == 1

    @pytest.mark.asyncio
    async def test_stop_when_idle(self, memory, capsys):
        shell = Shell(memory)

        await shell.dispatch("stop")

        assert "not running" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_run_until_eof(self, memory, capsys):
        lines = iter(["list", "stats"])

        def fake_input(prompt):
            try:
                return next(lines)
            except StopIteration:
                raise EOFError

        await Shell(memory).run(input_func=fake_input)

        out = capsys.readouterr().out
        assert "Statistics" in out
        assert "Goodbye" in out

    @pytest.mark.asyncio
    async def test_quit_stops_watch_mode(self, memory):
        fake = FakeCapture(memory)
        lines = iter(["watch", "quit"])

        with patch.object(memory, 'capture', fake):
            shell = Shell(memory, interval=60)
            await shell.run(input_func=lambda prompt: next(lines))

        assert not shell.scheduler.watching

    @pytest.mark.asyncio
    async def test_input_does_not_block_process_exit(self, memory):
        daemon_flags = []

        def fake_input(prompt):
            daemon_flags.append(threading.current_thread().daemon)
            raise EOFError

        await Shell(memory).run(input_func=fake_input)

        assert daemon_flags == [True]


class TestReadLine:
    """Tests for the background line reader."""

    @pytest.mark.asyncio
    async def test_returns_line(self):
        prompts = []

        def fake_input(prompt):
            prompts.append(prompt)
            return "search error"

        assert await read_line(fake_input, "> ") == "search error"
        assert prompts == ["> "]

    @pytest.mark.asyncio
    async def test_propagates_eof(self):
        def fake_input(prompt):
            raise EOFError

        with pytest.raises(EOFError):
            await read_line(fake_input, "> ")

    @pytest.mark.asyncio
    async def test_cancelled_read_ignores_late_input(self):
        release = threading.Event()

        def blocked_input(prompt):
            release.wait(5)
            return "late"

        task = asyncio.create_task(read_line(blocked_input, "> "))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        release.set()
        await asyncio.sleep(0.05)


class TestMain:
    """Tests for the argparse entry point."""

    def test_list(self, config, memory, capsys):
        add_record(memory, app="Finder")

        with patch('screenmemory.cli.get_config', return_value=config):
            assert main(["list", "5"]) == 0

        assert "Finder" in capsys.readouterr().out

    def test_search(self, config, memory, capsys):
        add_record(memory, text="Fatal Error")

        with patch('screenmemory.cli.get_config', return_value=config):
            assert main(["search", "fatal", "error"]) == 0

        assert "Found 1 screenshot(s)" in capsys.readouterr().out

    def test_not_found_exits_zero(self, config, capsys):
        with patch('screenmemory.cli.get_config', return_value=config):
            assert main(["text", "abcd"]) == 0

        assert "No screenshot found" in capsys.readouterr().out

    def test_startup_failure_exits_nonzero(self, config, temp_dir, capsys):
        blocker = temp_dir / "file"
        blocker.write_text("x")
        config.storage.data_dir = blocker / "data"

        with patch('screenmemory.cli.get_config', return_value=config):
            assert main(["stats"]) == 1

        assert "Cannot create directory" in capsys.readouterr().err

    def test_parser_commands(self):
        parser = cli.build_parser()

        args = parser.parse_args(["watch", "--interval", "5"])
        assert args.command == "watch"
        assert args.interval == 5

        args = parser.parse_args(["list"])
        assert args.count == 10

        args = parser.parse_args([])
        assert args.command is None
