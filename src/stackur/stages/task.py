"""Imperative steps interleaved with resources."""

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Union

from stackur.stages.base import Committable, resolve
from stackur.utils.logging import get_logger

if TYPE_CHECKING:
    from stackur.stack import Stack

logger = get_logger(__name__)

TaskCallback = Callable[[], Union[Awaitable[Any], Any]]
TaskCondition = Callable[[], Union[Awaitable[bool], bool]]


class Task(Committable):
    """Runs a callback in stack order, optionally gated by a condition.

    A task has no remote state. Its condition, not the committed flag,
    decides whether a later commit runs it again.
    """

    def __init__(
        self,
        stack: "Stack",
        name: str,
        task: TaskCallback,
        condition: Optional[TaskCondition] = None
    ):
        """Initialize task.

        Args:
            stack: Stack the task belongs to
            name: Task name used in logs
            task: Sync or async callable to run
            condition: Optional sync or async predicate; False skips the task unless forced
        """
        super().__init__(stack, name)
        self.task = task
        self.condition = condition

    async def commit(self, force: bool = False) -> None:
        """Run the task if its condition passes or ``force`` is set."""
        if self.condition is not None:
            allowed = await resolve(self.condition())
            if not allowed and not force:
                logger.info(f"Skipped task {self.name}: condition not met")
                return

        logger.info(f"Running task {self.name}")
        await resolve(self.task())
        self.committed = True
