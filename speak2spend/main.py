"""Main application entry point for Speak2Spend."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from rich.console import Console

from . import __version__
from .config import Speak2SpendConfig
from .extraction import TransactionExtractor
from .models.session import RecordingState
from .services import ExpenseService, RecordingTimeoutError, describe_environment
from .ui import RecorderScreen, environment_panel, summary_table, transactions_table
from .ui.recorder_screen import extracted_table

logger = logging.getLogger(__name__)

DEFAULT_RECORD_SECONDS = 5


def setup_logging(config: Speak2SpendConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    # Get log file path from config
    log_file_path = config.get('logging.file_path', 'data/logs/speak2spend.log')
    console_output = config.get('logging.console_output', True)

    # Create logs directory if it doesn't exist
    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    # Set up handlers
    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("Speak2Spend starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="speak2spend",
        description="Speak2Spend - record a spoken expense and turn it into a transaction",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: speak2spend.yaml if present)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: logging.level from config)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Speak2Spend v{__version__}"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    record = commands.add_parser("record", help="Record a spoken expense from the microphone")
    record.add_argument("--duration", type=float, default=DEFAULT_RECORD_SECONDS,
                        help=f"Seconds to record before stopping (default: {DEFAULT_RECORD_SECONDS})")

    parse = commands.add_parser("parse", help="Extract a transaction from text without recording")
    parse.add_argument("text", nargs="+", help="Transcript text, e.g. 'spent 12 dollars at Starbucks'")

    commands.add_parser("list", help="List stored transactions, newest first")
    commands.add_parser("summary", help="Show spending totals")

    remove = commands.add_parser("remove", help="Delete a stored transaction")
    remove.add_argument("transaction_id", help="Transaction id or unique id prefix")

    edit = commands.add_parser("edit", help="Correct a stored transaction")
    edit.add_argument("transaction_id", help="Transaction id or unique id prefix")
    edit.add_argument("--amount", type=str)
    edit.add_argument("--vendor", type=str)
    edit.add_argument("--category", type=str)

    commands.add_parser("clear", help="Delete all stored transactions")
    commands.add_parser("check-env", help="Report whether real transcription or demo mode is active")
    return parser


def resolve_transaction_id(service: ExpenseService, prefix: str) -> str:
    matches = [t.transaction_id for t in service.store.list() if t.transaction_id.startswith(prefix)]
    if not matches:
        raise KeyError(f"No transaction with id {prefix!r}")
    if len(matches) > 1:
        raise KeyError(f"Id prefix {prefix!r} is ambiguous ({len(matches)} matches)")
    return matches[0]


async def run_record(service: ExpenseService, duration: float, console: Console) -> int:
    console.print(f"🎙️  Recording for {duration:g}s - describe your expense...", style="bold blue")
    with RecorderScreen(console) as screen:
        session = await service.record(duration, on_event=screen.on_event)
    screen.show_result(session)

    if session.state is RecordingState.COMPLETED:
        stored = service.recorder.last_recorded
        if stored is not None:
            console.print(f"💾 Saved as {stored.transaction_id[:8]}", style="green")
        return 0
    return 1


def run_command(args: argparse.Namespace, config: Speak2SpendConfig, console: Console) -> int:
    if args.command == "check-env":
        status = describe_environment(config)
        console.print(environment_panel(status))
        return 0

    if args.command == "parse":
        transaction = TransactionExtractor().extract(" ".join(args.text))
        console.print(extracted_table(transaction))
        return 0

    service = ExpenseService(config)
    try:
        if args.command == "record":
            return asyncio.run(_record_and_close(service, args.duration, console))
        if args.command == "list":
            transactions = service.store.list()
            if not transactions:
                console.print("No transactions yet.", style="dim")
            else:
                console.print(transactions_table(transactions))
            return 0
        if args.command == "summary":
            console.print(summary_table(service.store))
            return 0
        if args.command == "remove":
            transaction_id = resolve_transaction_id(service, args.transaction_id)
            service.store.remove(transaction_id)
            console.print(f"🗑️  Removed {transaction_id[:8]}", style="yellow")
            return 0
        if args.command == "edit":
            if args.amount is None and args.vendor is None and args.category is None:
                raise ValueError("Nothing to edit: pass --amount, --vendor or --category")
            transaction_id = resolve_transaction_id(service, args.transaction_id)
            updated = service.store.update(
                transaction_id, amount=args.amount, vendor=args.vendor, category=args.category)
            console.print(transactions_table([updated]))
            return 0
        if args.command == "clear":
            count = service.store.clear()
            console.print(f"🗑️  Cleared {count} transactions", style="yellow")
            return 0
    finally:
        service.recorder.stop()

    raise ValueError(f"Unknown command: {args.command}")


async def _record_and_close(service: ExpenseService, duration: float, console: Console) -> int:
    try:
        return await run_record(service, duration, console)
    finally:
        await service.shutdown()


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for Speak2Spend application."""
    args = build_parser().parse_args(argv)
    console = Console()

    try:
        config = Speak2SpendConfig(args.config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"❌ Configuration error: {e}", style="bold red")
        sys.exit(2)

    setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))

    try:
        exit_code = run_command(args, config, console)
    except KeyboardInterrupt:
        console.print("\n👋 Goodbye!")
        exit_code = 130
    except (KeyError, ValueError, RecordingTimeoutError) as e:
        message = e.args[0] if isinstance(e, KeyError) and e.args else e
        console.print(f"❌ {message}", style="bold red")
        logger.error(f"Command {args.command} failed: {message}")
        exit_code = 1
    except Exception as e:
        console.print(f"❌ Error: {e}", style="bold red")
        logger.error(f"Application error: {e}", exc_info=True)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
