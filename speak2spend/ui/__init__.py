"""Terminal UI for Speak2Spend."""

from .recorder_screen import (
    RecorderScreen,
    environment_panel,
    level_bar,
    status_line,
    summary_table,
    transactions_table,
)

__all__ = [
    "RecorderScreen",
    "environment_panel",
    "level_bar",
    "status_line",
    "summary_table",
    "transactions_table",
]
