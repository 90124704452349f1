"""
Command-line interface for the voice companion.

    voice-companion talk            push-to-talk conversation loop
    voice-companion say "Hello"     speak text through the companion
    voice-companion memory          show remembered turns
    voice-companion clear-memory    erase remembered turns
    voice-companion config          show configuration
"""

import asyncio
import argparse
import sys
import threading
from pathlib import Path
from typing import Optional

from .config import (
    get_config_for_preset,
    get_log_level,
    print_config_summary,
    set_active_preset,
)
from .factory import create_memory_store, create_session_controller
from .models.data_models import SessionState
from .session_controller import SessionController
from .utils.error_handling import CaptureUnavailable, CompanionError
from .utils.logging_config import setup_logging, get_logger


logger = get_logger("cli")


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="voice-companion",
        description="Voice Companion - talk, listen, remember",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('--log-level', default=None, help='DEBUG, INFO, WARNING, ERROR')
    parser.add_argument('--log-file', type=Path, default=None, help='Also write logs to this file')
    parser.add_argument('--preset', default='default', choices=['default', 'dev', 'prod', 'test'],
                        help='Configuration preset')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    subparsers.add_parser(
        'talk',
        help='Push-to-talk loop (Enter starts/stops, c cancels, s stops speech, m clears memory, q quits)'
    )

    say = subparsers.add_parser('say', help='Speak text aloud')
    say.add_argument('text', nargs='+', help='Text to speak')

    subparsers.add_parser('memory', help='Show remembered conversation turns')

    clear = subparsers.add_parser('clear-memory', help='Erase remembered conversation turns')
    clear.add_argument('--yes', action='store_true', help='Do not ask for confirmation')

    subparsers.add_parser('config', help='Show configuration')

    return parser


class LineReader:
    """
    Reads stdin lines on a daemon thread and hands them to the event loop.

    A daemon thread is used so that a pending read never blocks shutdown.
    """

    def __init__(self):
        self._queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        self._loop = asyncio.get_running_loop()
        self._thread = threading.Thread(target=self._run, name="stdin-reader", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        for line in sys.stdin:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, line.strip().lower())
        self._loop.call_soon_threadsafe(self._queue.put_nowait, None)

    async def read(self, prompt: str = "") -> Optional[str]:
        """Next line, or None at end of input."""
        if prompt:
            print(prompt, end="", flush=True)
        return await self._queue.get()


def _print_status(state: SessionState, status: str) -> None:
    print(f"   [{state}] {status}")


async def _confirm(reader: LineReader, question: str) -> bool:
    answer = await reader.read(f"{question} [y/N] ")
    return answer in ("y", "yes")


async def cmd_talk(controller: SessionController):
    """Run the push-to-talk loop."""
    print("\n" + "="*60)
    print("Talk Mode")
    print("="*60)
    print("Enter = start/stop recording, c = cancel, s = stop speaking,")
    print("m = clear memory, q = quit\n")

    controller.add_status_listener(_print_status)
    reader = LineReader()

    while True:
        command = await reader.read("\n🎤 Press Enter to talk: ")
        if command is None or command == 'q':
            break
        if command == 'm':
            try:
                await controller.clear_memory(lambda: _confirm(reader, "Forget everything we talked about?"))
            except CompanionError as e:
                print(f"⚠️  {e}")
            continue
        if command:
            continue

        try:
            await controller.begin_capture()
        except CaptureUnavailable as e:
            print(f"❌ {e}")
            continue

        command = await reader.read("🔴 Recording... press Enter to stop (c to cancel): ")
        if command is None or command == 'q':
            controller.cancel()
            break
        if command == 'c':
            controller.cancel()
            continue

        turn = asyncio.create_task(controller.end_capture())
        while not turn.done():
            next_line = asyncio.create_task(reader.read())
            done, _ = await asyncio.wait({turn, next_line}, return_when=asyncio.FIRST_COMPLETED)
            if next_line not in done:
                next_line.cancel()
                break
            line = next_line.result()
            if line == 'c':
                controller.cancel()
            elif line == 's':
                controller.stop_speaking()
            elif line is None or line == 'q':
                controller.cancel()
                await turn
                return
        await turn


async def cmd_say(controller: SessionController, text: str):
    """Speak text through the companion."""
    event = await controller.speak(text)
    print(f"🔊 {event.value}: {controller.status}")


def cmd_memory(config):
    """Print remembered turns."""
    turns = create_memory_store(config).load()
    print("\n" + "="*60)
    print(f"Conversation Memory ({len(turns)} turns)")
    print("="*60 + "\n")
    if not turns:
        print("(empty)")
    for turn in turns:
        print(f"  {turn}")
    print()


def cmd_clear_memory(config, assume_yes: bool):
    """Erase remembered turns after confirmation."""
    if not assume_yes:
        answer = input("Forget everything we talked about? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            print("Cancelled")
            return
    store = create_memory_store(config)
    if store.clear():
        print("🗑️  Memory cleared")
    else:
        print(f"❌ Could not clear memory: {store.last_error}")


def cmd_config():
    """Show configuration."""
    print_config_summary()


async def async_main(args, parser: argparse.ArgumentParser) -> int:
    """Async main function."""
    if not args.command:
        parser.print_help()
        return 1

    set_active_preset(args.preset)
    if args.command == 'config':
        cmd_config()
        return 0

    config = get_config_for_preset(args.preset)

    # Memory commands do not need the microphone, speaker or service
    if args.command == 'memory':
        cmd_memory(config)
        return 0
    if args.command == 'clear-memory':
        cmd_clear_memory(config, args.yes)
        return 0

    logger.info("🚀 Creating session controller...")
    controller = create_session_controller(config)
    if not await controller.initialize():
        logger.error("❌ Failed to initialize session controller")
        await controller.cleanup()
        return 1

    try:
        if args.command == 'talk':
            await cmd_talk(controller)
        elif args.command == 'say':
            await cmd_say(controller, " ".join(args.text))
        else:
            print(f"Unknown command: {args.command}")
            parser.print_help()
            return 1
    finally:
        await controller.cleanup()
    return 0


def main(argv=None) -> int:
    """Synchronous entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(level=args.log_level or get_log_level(), log_file=args.log_file)
    except (ValueError, OSError) as e:
        print(f"⚠️  Failed to setup logging: {e}")

    try:
        return asyncio.run(async_main(args, parser))
    except KeyboardInterrupt:
        print("\n⚠️  Interrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
