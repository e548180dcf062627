"""Progress reporting utilities.

Shows a spinner with the current step on stderr while a workflow runs,
leaving stdout free for command output.
"""

from __future__ import annotations

from rich.console import Console

# Separate stderr console for status/progress (doesn't mix with stdout output)
stderr_console = Console(stderr=True)


class ProgressReporter:
    """Progress reporter for a single note workflow.

    In non-verbose mode, shows a spinner while a step runs and a one-line
    completion or failure message at the end. In verbose mode it does
    nothing, since logging already covers every step.
    """

    def __init__(self, enabled: bool = True):
        """Initialize progress reporter.

        Args:
            enabled: Whether to show progress (False in verbose/quiet mode)
        """
        self.enabled = enabled
        self._status = None
        self.messages: list[str] = []

    def start_spinner(self, message: str) -> None:
        """Start showing a spinner with message."""
        self.messages.append(message)
        if not self.enabled:
            return
        self.stop_spinner()
        self._status = stderr_console.status(f"[cyan]{message}[/cyan]", spinner="dots")
        self._status.start()

    def update(self, message: str, current: int | None = None, total: int | None = None) -> None:
        """Change the spinner text, optionally with a ``(current/total)`` counter."""
        if current is not None and total is not None:
            message = f"{message} ({current}/{total})"
        self.messages.append(message)
        if not self.enabled:
            return
        if self._status is None:
            self._status = stderr_console.status(f"[cyan]{message}[/cyan]", spinner="dots")
            self._status.start()
        else:
            self._status.update(f"[cyan]{message}[/cyan]")

    def stop_spinner(self) -> None:
        """Stop the current spinner."""
        if self._status is not None:
            self._status.stop()
            self._status = None

    def log(self, message: str) -> None:
        """Print a dim progress message."""
        self.messages.append(message)
        if not self.enabled:
            return
        self.stop_spinner()
        stderr_console.print(f"[dim]{message}[/dim]")

    def finish(self, message: str) -> None:
        """Stop the spinner and print a success line."""
        self.messages.append(message)
        if not self.enabled:
            return
        self.stop_spinner()
        stderr_console.print(f"[green]✓[/green] {message}")

    def fail(self, message: str) -> None:
        """Stop the spinner and print a failure line."""
        self.messages.append(message)
        if not self.enabled:
            return
        self.stop_spinner()
        stderr_console.print(f"[red]✗[/red] {message}")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):  # noqa: ARG002
        """Context manager exit - ensure spinner is stopped."""
        self.stop_spinner()
        return False
