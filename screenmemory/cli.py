#!/usr/bin/env python3
"""
ScreenMemory CLI - capture, search and manage screenshot history

Usage:
    screenmemory                      interactive shell
    screenmemory capture
    screenmemory watch --interval 30
    screenmemory search "from:xcode"
    screenmemory list 20
    screenmemory text 3f2a
    screenmemory export 3f2a --dest ~/Desktop
    screenmemory delete 3f2a
    screenmemory stats
"""

import argparse
import asyncio
import logging
import os
import platform
import signal
import subprocess
import sys
import threading
from pathlib import Path
from typing import Callable, Optional

from .capture.scheduler import WatchScheduler
from .config import get_config
from .errors import ScreenMemoryError, StartupFailure
from .memory import ScreenMemory
from .store.query import parse
from .store.record_store import Record

logger = logging.getLogger(__name__)

TEXT_PREVIEW = 150
CAPTURE_PREVIEW = 100

HELP_TEXT = """Commands:
  capture              Take screenshot and index it
  search <query>       Search screenshots (text, from:<app>, 2 hours ago)
  list [n]             List recent screenshots (default 10)
  watch                Auto-capture every {interval} seconds
  stop                 Stop watch mode
  open <id>            Open screenshot in the default viewer
  text <id>            Show full recognized text
  export <id>          Copy screenshot to {export_dir}
  delete <id>          Delete screenshot
  stats                Show collection statistics
  help                 Show this help
  quit                 Exit"""


def format_time(record: Record) -> str:
    return record.timestamp.strftime("%Y-%m-%d %H:%M:%S")


def format_compact(record: Record) -> str:
    """One-line listing entry."""
    return f"[{record.short_id}] {format_time(record)} - {record.app_name}"


def format_record(record: Record, show_full: bool = False) -> str:
    """Format a record for display."""
    lines = ["━" * 50]
    lines.append(f"ID: {record.short_id}")
    lines.append(f"Time: {format_time(record)}")
    lines.append(f"App: {record.app_name}")
    if record.window_title:
        lines.append(f"Window: {record.window_title}")
    if record.url:
        lines.append(f"URL: {record.url}")

    text = record.text.replace('\n', ' ')
    if not show_full and len(text) > TEXT_PREVIEW:
        text = text[:TEXT_PREVIEW] + "..."
    lines.append(f"Text: {text}")

    return "\n".join(lines)


def format_capture(record: Record) -> str:
    preview = record.text.replace('\n', ' ')
    if len(preview) > CAPTURE_PREVIEW:
        preview = preview[:CAPTURE_PREVIEW] + "..."
    return "\n".join([
        f"✅ Captured and indexed [{record.short_id}]",
        f"   Time: {format_time(record)}",
        f"   App: {record.app_name}",
        f"   Text found: {preview}",
    ])


def open_image(path: Path) -> None:
    """Hand an image to the operating system's default viewer."""
    system = platform.system()
    if system == "Darwin":
        subprocess.run(["open", str(path)], check=True)
    elif system == "Windows":
        os.startfile(str(path))
    else:
        subprocess.run(["xdg-open", str(path)], check=True)


# === Shared command bodies ===

def show_search(memory: ScreenMemory, query: str, show_full: bool = False, limit: Optional[int] = None):
    print(f"🔍 Searching {parse(query).describe()}...")
    results = memory.search(query)
    if limit is not None:
        results = results[:limit]

    if not results:
        print(f"No screenshots found matching '{query}'")
        return

    print(f"Found {len(results)} screenshot(s):\n")
    for record in results:
        print(format_record(record, show_full=show_full))
        print()


def show_list(memory: ScreenMemory, count: int):
    records = memory.recent(count)
    print(f"📸 Recent {len(records)} screenshot(s):\n")
    for record in records:
        print(format_compact(record))


def show_text(memory: ScreenMemory, id_prefix: str):
    record = memory.find(id_prefix)
    print(format_compact(record))
    print(record.text if record.text else "(no text recognized)")


def show_stats(memory: ScreenMemory):
    stats = memory.stats()

    print("📊 Statistics:")
    print(f"   Total screenshots: {stats['total']}")
    print(f"   With text: {stats['with_text']}")
    print(f"   Oldest: {stats['oldest'].strftime('%Y-%m-%d %H:%M') if stats['oldest'] else 'N/A'}")
    print(f"   Newest: {stats['newest'].strftime('%Y-%m-%d %H:%M') if stats['newest'] else 'N/A'}")

    if stats['by_app']:
        print("\n   By app:")
        for app, count in stats['by_app'].items():
            print(f"      {app}: {count}")


def report_error(error: Exception):
    print(f"❌ {error}")


async def read_line(input_func: Callable[[str], str], prompt: str) -> str:
    """
    Read one line on a daemon thread.

    A blocked read must not keep the process alive after Ctrl+C, which an
    executor thread would.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def deliver(setter, value):
        if not future.done():
            setter(value)

    def reader():
        try:
            outcome = (future.set_result, input_func(prompt))
        except BaseException as e:
            outcome = (future.set_exception, e)
        try:
            loop.call_soon_threadsafe(deliver, *outcome)
        except RuntimeError:
            logger.debug("Event loop closed before input arrived")

    threading.Thread(target=reader, name="screenmemory-input", daemon=True).start()
    return await future


# === Interactive shell ===

class Shell:
    """
    Interactive command loop.

    Commands are handled one at a time under a session lock that the watch
    loop also takes for each capture, so a command never runs while a
    capture is in flight.
    """

    def __init__(self, memory: ScreenMemory, interval: Optional[float] = None):
        self.memory = memory
        self.lock = asyncio.Lock()
        self.scheduler = WatchScheduler(
            memory.capture,
            interval=interval or memory.config.capture.interval,
            lock=self.lock,
            on_capture=lambda record: print(f"\n{format_capture(record)}"),
            on_error=report_error,
        )
        self.commands = {}
        for names, handler in (
            (("capture", "c"), self.do_capture),
            (("search", "s", "find"), self.do_search),
            (("list", "ls"), self.do_list),
            (("watch", "w"), self.do_watch),
            (("stop",), self.do_stop),
            (("open", "o"), self.do_open),
            (("text", "t"), self.do_text),
            (("export", "e"), self.do_export),
            (("delete", "rm"), self.do_delete),
            (("stats",), self.do_stats),
            (("help", "h", "?"), self.do_help),
        ):
            for name in names:
                self.commands[name] = handler

    async def do_capture(self, arg: str):
        print("📸 Capturing screenshot...")
        record = await asyncio.to_thread(self.memory.capture)
        print(format_capture(record))

    def do_search(self, arg: str):
        show_search(self.memory, arg)

    def do_list(self, arg: str):
        try:
            count = int(arg)
        except ValueError:
            count = 10
        show_list(self.memory, count)

    def do_watch(self, arg: str):
        if self.scheduler.start():
            print(f"👁️  Watch mode started (capture every {self.scheduler.interval}s)")
            print("   Type 'stop' to end it")
        else:
            print("👁️  Watch mode is already running")

    def do_stop(self, arg: str):
        if self.scheduler.stop():
            print(f"👁️  Watch mode stopped ({self.scheduler.capture_count} captures)")
        else:
            print("Watch mode is not running")

    def do_open(self, arg: str):
        record = self.memory.find(arg)
        open_image(record.image_path)
        print(f"Opened {record.filename}")

    def do_text(self, arg: str):
        show_text(self.memory, arg)

    def do_export(self, arg: str):
        target = self.memory.export(arg)
        print(f"✅ Exported to {target}")

    def do_delete(self, arg: str):
        record = self.memory.delete(arg)
        print(f"✅ Deleted screenshot [{record.short_id}]")

    def do_stats(self, arg: str):
        show_stats(self.memory)

    def do_help(self, arg: str):
        print(HELP_TEXT.format(
            interval=self.scheduler.interval,
            export_dir=self.memory.config.export.export_dir,
        ))

    async def dispatch(self, line: str) -> bool:
        """
        Run one command line.

        Returns:
            False when the shell should exit
        """
        parts = line.strip().split(None, 1)
        if not parts:
            return True
        command = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if command in ("quit", "q", "exit"):
            return False

        handler = self.commands.get(command)
        if handler is None:
            print("Unknown command. Type 'help' for options.")
            return True

        async with self.lock:
            try:
                result = handler(arg)
                if asyncio.iscoroutine(result):
                    await result
            except ScreenMemoryError as e:
                report_error(e)
            except (OSError, subprocess.SubprocessError) as e:
                logger.debug("Command failed", exc_info=True)
                report_error(e)
        return True

    async def shutdown(self):
        self.scheduler.stop()
        await self.scheduler.wait()

    async def run(self, input_func: Callable[[str], str] = input):
        print("📸 ScreenMemory - Searchable Screenshot History\n")
        self.do_help("")
        print(f"\n{len(self.memory.store)} screenshot(s) indexed")

        try:
            while True:
                try:
                    line = await read_line(input_func, "> ")
                except EOFError:
                    print()
                    break
                if not await self.dispatch(line):
                    break
        finally:
            await self.shutdown()
        print("👋 Goodbye!")


# === Subcommands ===

async def _shell(memory: ScreenMemory):
    await Shell(memory).run()


def cmd_shell(memory: ScreenMemory, args):
    """Run the interactive shell."""
    try:
        asyncio.run(_shell(memory))
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")


def cmd_capture(memory: ScreenMemory, args):
    """Take one screenshot."""
    print("📸 Capturing screenshot...")
    print(format_capture(memory.capture()))


async def _watch(memory: ScreenMemory, interval: float):
    scheduler = WatchScheduler(
        memory.capture,
        interval=interval,
        on_capture=lambda record: print(format_capture(record)),
        on_error=report_error,
    )

    # Set up signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, scheduler.stop)
        except NotImplementedError:
            pass  # Windows

    scheduler.start()
    print(f"👁️  Watch mode started (capture every {interval}s)")
    print("   Press Ctrl+C to stop")
    await scheduler.wait()
    print(f"👁️  Watch mode stopped ({scheduler.capture_count} captures)")


def cmd_watch(memory: ScreenMemory, args):
    """Capture periodically until interrupted."""
    interval = args.interval or memory.config.capture.interval
    try:
        asyncio.run(_watch(memory, interval))
    except KeyboardInterrupt:
        print("\nWatch mode stopped.")


def cmd_search(memory: ScreenMemory, args):
    show_search(memory, " ".join(args.query), show_full=args.full, limit=args.limit)


def cmd_list(memory: ScreenMemory, args):
    show_list(memory, args.count)


def cmd_open(memory: ScreenMemory, args):
    record = memory.find(args.id)
    open_image(record.image_path)


def cmd_text(memory: ScreenMemory, args):
    show_text(memory, args.id)


def cmd_export(memory: ScreenMemory, args):
    target = memory.export(args.id, dest=Path(args.dest).expanduser() if args.dest else None)
    print(f"✅ Exported to {target}")


def cmd_delete(memory: ScreenMemory, args):
    record = memory.delete(args.id)
    print(f"✅ Deleted screenshot [{record.short_id}]")


def cmd_stats(memory: ScreenMemory, args):
    show_stats(memory)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="screenmemory",
        description="ScreenMemory - searchable screenshot history with OCR"
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Show informational logs')

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    subparsers.add_parser('shell', help='Interactive shell (default)')
    subparsers.add_parser('capture', help='Take screenshot and index it')

    watch_parser = subparsers.add_parser('watch', help='Capture periodically until Ctrl+C')
    watch_parser.add_argument('--interval', type=float, help='Seconds between captures')

    search_parser = subparsers.add_parser('search', help='Search screenshots')
    search_parser.add_argument('query', nargs='+', help='Text, from:<app>, or "<n> hours ago"')
    search_parser.add_argument('--limit', type=int, help='Maximum results')
    search_parser.add_argument('--full', action='store_true', help='Show full text')

    list_parser = subparsers.add_parser('list', help='List recent screenshots')
    list_parser.add_argument('count', type=int, nargs='?', default=10, help='Number to show')

    for name, help_text in (
        ('open', 'Open screenshot in the default viewer'),
        ('text', 'Show full recognized text'),
        ('delete', 'Delete screenshot'),
    ):
        id_parser = subparsers.add_parser(name, help=help_text)
        id_parser.add_argument('id', help='Screenshot ID or ID prefix')

    export_parser = subparsers.add_parser('export', help='Copy screenshot to a folder')
    export_parser.add_argument('id', help='Screenshot ID or ID prefix')
    export_parser.add_argument('--dest', type=str, help='Destination directory')

    subparsers.add_parser('stats', help='Show statistics')

    return parser


COMMANDS = {
    'shell': cmd_shell,
    'capture': cmd_capture,
    'watch': cmd_watch,
    'search': cmd_search,
    'list': cmd_list,
    'open': cmd_open,
    'text': cmd_text,
    'export': cmd_export,
    'delete': cmd_delete,
    'stats': cmd_stats,
}


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        memory = ScreenMemory.open(get_config())
    except StartupFailure as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    command_func = COMMANDS[args.command or 'shell']
    try:
        command_func(memory, args)
    except ScreenMemoryError as e:
        report_error(e)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("Command failed", exc_info=True)
        report_error(e)
    return 0


if __name__ == "__main__":
    sys.exit(main())
