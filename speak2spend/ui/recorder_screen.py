"""Terminal rendering for recordings, transactions and spending summaries."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from rich.align import Align
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..models.events import SessionEvent
from ..models.session import RecordingSession, RecordingState
from ..models.transaction import Category, ExtractedTransaction, StoredTransaction
from ..storage.transaction_store import TransactionStore

logger = logging.getLogger(__name__)

LEVEL_BAR_WIDTH = 20

STATE_LABELS = {
    RecordingState.IDLE: ("⏹️  IDLE", "dim"),
    RecordingState.RECORDING: ("🔴 RECORDING", "bold red"),
    RecordingState.PROCESSING: ("🔄 PROCESSING", "bold yellow"),
    RecordingState.COMPLETED: ("✅ COMPLETED", "bold green"),
    RecordingState.FAILED: ("❌ FAILED", "bold red"),
}


def format_amount(amount: Decimal) -> str:
    return f"${amount:,.2f}"


def level_bar(percent: float, width: int = LEVEL_BAR_WIDTH) -> str:
    """Fixed-width block bar for a 0-100 level."""
    percent = max(0.0, min(100.0, percent))
    filled = int(round(percent / 100.0 * width))
    return "█" * filled + "░" * (width - filled)


def format_elapsed(seconds: int) -> str:
    minutes, seconds = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{seconds:02d}"


def status_line(event: SessionEvent) -> Text:
    label, style = STATE_LABELS[event.state]
    parts = [(label, style), "  ", f"⏱  {format_elapsed(event.elapsed_seconds)}"]
    if event.state is RecordingState.RECORDING:
        parts += ["  ", f"🎙️  [{level_bar(event.level_percent)}] {event.level_percent:5.1f}%"]
    return Text.assemble(*parts)


def extracted_table(transaction: ExtractedTransaction) -> Table:
    table = Table(title="💸 Extracted Transaction", show_header=True, header_style="bold magenta")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Amount", format_amount(transaction.amount))
    table.add_row("Vendor", transaction.vendor)
    table.add_row("Category", transaction.category.value)
    table.add_row("Confidence", f"{transaction.confidence:.0%}")
    table.add_row("Heard", transaction.raw_text or "-")
    return table


def transactions_table(transactions: Iterable[StoredTransaction]) -> Table:
    table = Table(title="🧾 Transactions", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("When", style="cyan")
    table.add_column("Amount", justify="right", style="green")
    table.add_column("Vendor")
    table.add_column("Category", style="yellow")
    for transaction in transactions:
        table.add_row(
            transaction.transaction_id[:8],
            transaction.timestamp.astimezone().strftime("%Y-%m-%d %H:%M"),
            format_amount(transaction.amount),
            transaction.vendor,
            transaction.category.value,
        )
    return table


def summary_table(store: TransactionStore, now: Optional[datetime] = None) -> Table:
    table = Table(title="📊 Spending Summary", show_header=True, header_style="bold magenta")
    table.add_column("Period / Category", style="cyan")
    table.add_column("Spent", justify="right", style="green")
    table.add_row("Total", format_amount(store.total_spent()))
    table.add_row("Last 7 days", format_amount(store.spent_last_7_days(now)))
    table.add_row("This month", format_amount(store.spent_this_month(now)))

    by_category = store.spent_by_category()
    if by_category:
        table.add_section()
        for category in Category:
            if category in by_category:
                table.add_row(category.value, format_amount(by_category[category]))
    return table


def environment_panel(status: Dict[str, Any]) -> Panel:
    lines = Text()
    if status["demo_mode"]:
        lines.append("⚠️  Demo mode: transcripts are generated locally\n", style="bold yellow")
    else:
        lines.append(f"✅ Real transcription via {status['active_service']}\n", style="bold green")
    lines.append(f"Backend setting: {status['backend_choice']}\n")
    lines.append(f"Deepgram key:    {'configured' if status['deepgram_configured'] else 'missing'}\n")
    lines.append(f"Google creds:    {'configured' if status['google_configured'] else 'missing'}\n")
    lines.append(f"Data directory:  {status['data_directory']}")
    if status["demo_mode"]:
        lines.append("\n\nTo enable real transcription set DEEPGRAM_API_KEY or "
                     "GOOGLE_APPLICATION_CREDENTIALS (or the matching keys in speak2spend.yaml).",
                     style="dim")
    return Panel(lines, title="🔧 Environment", border_style="blue")


class RecorderScreen:
    """Live status display for a single recording."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.live: Optional[Live] = None
        self.last_event: Optional[SessionEvent] = None

    def __enter__(self) -> "RecorderScreen":
        self.live = Live(Text("Starting microphone..."), console=self.console,
                         refresh_per_second=10, transient=True)
        self.live.__enter__()
        return self

    def __exit__(self, *exc_info) -> None:
        if self.live is not None:
            self.live.__exit__(*exc_info)
            self.live = None

    def on_event(self, event: SessionEvent) -> None:
        """Session event callback; redraws the status line."""
        self.last_event = event
        if self.live is not None:
            self.live.update(Align.left(status_line(event)))

    def show_result(self, session: RecordingSession) -> None:
        label, style = STATE_LABELS[session.state]
        self.console.print(label, style=style)

        if session.state is RecordingState.FAILED:
            self.console.print(f"   {session.failure_text}", style="red")
            if session.failure_detail:
                logger.debug(f"Failure detail: {session.failure_detail}")
            return

        if session.transcript is not None:
            note = " (demo)" if session.transcript.demo_mode else ""
            self.console.print(f"📝 \"{session.transcript.text}\" via {session.transcript.service}{note}")
        if session.transaction is not None:
            self.console.print(extracted_table(session.transaction))
