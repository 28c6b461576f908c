"""
Global progress reporting for CLI commands.

Pipeline code reports steps through the module-level reporter; nothing is
printed unless a command has initialized it with a rich console.
"""

from typing import List, Optional

from rich.console import Console
from rich.status import Status


class ProgressReporter:
    """
    Progress reporter that shows the current step in a status spinner
    and prints a checkmark for every completed step.
    """

    def __init__(self):
        self._status: Optional[Status] = None
        self._console: Optional[Console] = None
        self._completed_steps: List[str] = []
        self._current_step: Optional[str] = None

    def initialize(self, console: Console, initial_message: str = "Starting...") -> Status:
        """
        Attach a console and create the status object.

        Returns:
            Status object that should be used in a context manager
        """
        self._console = console
        self._status = console.status(f"[dim]{initial_message}[/dim]")
        self._completed_steps = []
        self._current_step = initial_message
        return self._status

    def step(self, message: str) -> None:
        """Start a new step, marking the previous one as completed."""
        if self._status is None:
            return

        if self._current_step is not None:
            self._completed_steps.append(self._current_step)
            if self._console is not None:
                self._console.print(f"[green]✓[/green] [dim]{self._current_step}[/dim]")

        self._current_step = message
        self._status.update(f"[dim]{message}[/dim]")

    def complete_step(self, message: Optional[str] = None) -> None:
        """Mark the current step as completed without starting a new one."""
        if self._current_step is None:
            return

        completion_msg = message or self._current_step
        self._completed_steps.append(completion_msg)
        if self._console is not None:
            self._console.print(f"[green]✓[/green] [dim]{completion_msg}[/dim]")
        self._current_step = None

    def complete_sub_step(self, message: str) -> None:
        """Print an indented checkmark line without changing the current step."""
        if self._console is not None:
            self._console.print(f"  [green]✓[/green] [dim]{message}[/dim]")

    def reset(self) -> None:
        """Detach from the console."""
        self._status = None
        self._console = None
        self._completed_steps = []
        self._current_step = None

    @property
    def completed_steps(self) -> List[str]:
        return list(self._completed_steps)


reporter = ProgressReporter()
