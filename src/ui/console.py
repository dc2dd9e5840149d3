"""Console output for the command-line interface.

Human-readable results go to stdout as Rich-highlighted JSON; status lines
and log records go to stderr so stdout stays pipeable.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel


class ConsoleManager:
    """Manages console output with Rich integration."""

    def __init__(
        self,
        verbose: bool = False,
        json_output: bool = False,
        stdout: Optional[Console] = None,
        stderr: Optional[Console] = None,
    ):
        """Initialize console output.

        Args:
            verbose: Show source paths in log records
            json_output: Emit plain JSON without styling (for scripts)
            stdout: Console for results (defaults to a new stdout console)
            stderr: Console for status lines and logs
        """
        self.verbose = verbose
        self.json_output = json_output
        self.stdout = stdout or Console()
        self.stderr = stderr or Console(stderr=True)
        self._lock = threading.RLock()

    def setup_logging(self, logger: logging.Logger) -> None:
        """Attach a Rich handler to ``logger`` unless one is already present."""
        if self.json_output:
            return
        if not any(isinstance(h, RichHandler) for h in logger.handlers):
            logger.addHandler(
                RichHandler(
                    console=self.stderr,
                    show_time=True,
                    show_path=self.verbose,
                    rich_tracebacks=True,
                )
            )

    def print_result(self, payload: Any) -> None:
        """Print a command result as JSON on stdout."""
        text = json.dumps(payload, ensure_ascii=False, default=str)
        with self._lock:
            if self.json_output:
                self.stdout.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)
            else:
                self.stdout.print_json(text)

    def print_stage(self, stage: str, status: str = "starting") -> None:
        """Print a status line on stderr."""
        if self.json_output:
            return
        color = {
            "starting": "blue",
            "complete": "green",
            "error": "red",
            "warning": "yellow",
        }.get(status, "white")
        with self._lock:
            self.stderr.print(Panel(f"[bold]{stage}[/bold]", style=color, padding=(0, 1)))

    def print_error(self, message: str) -> None:
        """Print an error message on stderr."""
        with self._lock:
            if self.json_output:
                self.stderr.print(
                    json.dumps({"error": message}, ensure_ascii=False),
                    markup=False,
                    highlight=False,
                    emoji=False,
                    soft_wrap=True,
                )
            else:
                self.stderr.print(f"[bold red]Error:[/bold red] {escape(message)}", highlight=False)
