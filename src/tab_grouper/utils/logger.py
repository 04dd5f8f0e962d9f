import sys
from typing import Any, TextIO

from rich.console import Console

from tab_grouper.utils.config_dir import get_config_dir

# One log per session, next to the stored preferences
LOG_FILE = get_config_dir() / "tab_grouper_session.log"

try:
    log_file_handle = open(LOG_FILE, "w", encoding="utf-8")
except OSError as e:
    print(f"Error opening log file {LOG_FILE}: {e}", file=sys.stderr)
    log_file_handle = None


class Logger:
    """Styled log for reconciliation passes, written through a rich Console."""

    def __init__(self, file: TextIO | None = log_file_handle):
        # No log file means stderr
        self._console = Console(file=file if file is not None else sys.stderr)

    def debug(self, message: Any):
        self._console.print(message, style="dim")

    def info(self, message: Any):
        self._console.print(message)

    def warning(self, message: Any):
        self._console.print(message, style="yellow")

    def error(self, message: Any):
        self._console.print(message, style="bold red")


logger = Logger()
