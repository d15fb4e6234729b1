"""Interactive confirmation of change sets before they are executed."""

import asyncio
import sys
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import IO, Iterator, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stackur.engine.models import ChangeSet
from stackur.utils.errors import ConfirmationAbortedError, ErrorContext
from stackur.utils.logging import get_logger

logger = get_logger(__name__)

ACCEPT_ANSWERS = ("y", "yes")
REJECT_ANSWERS = ("n", "no")

ACTION_STYLES = {
    "Add": "green",
    "Modify": "yellow",
    "Remove": "red",
    "Import": "cyan",
    "Dynamic": "magenta",
}


class ConfirmationGate(ABC):
    """Decides whether a planned change set may be executed."""

    @abstractmethod
    async def confirm(self, change_set: ChangeSet) -> bool:
        """Return True to execute the change set, False to leave it unapplied."""


class ConsoleConfirmationGate(ConfirmationGate):
    """Renders a change set as a table and asks the operator on the terminal.

    Answers other than yes/no are rejected and the question is asked again.
    The input stream is held only for the duration of one confirmation.
    """

    PROMPT = "Do you accept these changes? [y/n] "

    def __init__(
        self,
        console: Optional[Console] = None,
        input_path: Optional[str] = None,
        stream: Optional[IO[str]] = None
    ):
        """Initialize gate.

        Args:
            console: Rich console to render on
            input_path: File to read answers from (e.g. /dev/tty); opened per confirmation
            stream: Already-open stream to read answers from; never closed by the gate
        """
        self.console = console or Console()
        self.input_path = input_path
        self.stream = stream

    @contextmanager
    def _input(self) -> Iterator[IO[str]]:
        if self.input_path is not None:
            with open(self.input_path, "r") as handle:
                yield handle
        else:
            yield self.stream or sys.stdin

    def render(self, change_set: ChangeSet) -> None:
        """Print the change set for review."""
        self.console.print(Panel.fit(
            f"[bold]Change set:[/bold] {change_set.name}\n"
            f"[bold]Stack:[/bold] {change_set.stack_name}\n"
            f"[bold]Changes:[/bold] {len(change_set.changes)}",
            title="These are the changes you want to make",
            border_style="cyan"
        ))

        table = Table(show_header=True, header_style="bold")
        table.add_column("Action")
        table.add_column("Logical ID", style="cyan")
        table.add_column("Resource Type")
        table.add_column("Replacement", style="dim")

        for change in change_set.changes:
            style = ACTION_STYLES.get(change.action, "white")
            table.add_row(
                f"[{style}]{change.action}[/{style}]",
                change.logical_id,
                change.resource_type,
                change.replacement or "-",
            )

        self.console.print(table)

    async def confirm(self, change_set: ChangeSet) -> bool:
        """Ask the operator until an explicit yes or no is given.

        Raises:
            ConfirmationAbortedError: If input ends before a decision
        """
        self.render(change_set)

        with self._input() as reader:
            while True:
                self.console.print(self.PROMPT, end="", markup=False)
                line = await asyncio.to_thread(reader.readline)

                if not line:
                    raise ConfirmationAbortedError(
                        "Input closed before the change set was accepted or rejected",
                        context=ErrorContext(stack_name=change_set.stack_name, change_set=change_set.name)
                    )

                answer = line.strip().lower()
                if answer in ACCEPT_ANSWERS:
                    self.console.print("[green]Changes accepted[/green]")
                    logger.info(f"Change set {change_set.name} accepted")
                    return True
                if answer in REJECT_ANSWERS:
                    self.console.print("[yellow]Changes denied[/yellow]")
                    logger.info(f"Change set {change_set.name} rejected")
                    return False

                self.console.print("[red]Invalid answer, please use y or n[/red]")
