"""Base interface for units of work staged in a stack."""

import inspect
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from stackur.stack import Stack


async def resolve(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


class Committable(ABC):
    """A resource or task that a stack commits in registration order.

    Constructing a unit registers it with its stack; the stack owns it from
    then on.
    """

    def __init__(self, stack: "Stack", name: str):
        """Initialize and register the unit.

        Args:
            stack: Stack the unit belongs to
            name: Name of the unit, unique within the stack
        """
        self.stack = stack
        self.name = name
        self.committed = False
        stack.add_stage(self)

    @abstractmethod
    async def commit(self, force: bool = False) -> None:
        """Apply the unit.

        Args:
            force: Run even when the unit's own guard would skip it
        """

    async def uncommit(self) -> None:
        """Undo the unit; by default only clears the committed flag."""
        self.committed = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, committed={self.committed})"
