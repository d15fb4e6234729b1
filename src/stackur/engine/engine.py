"""Reconciliation engine: the only component that talks to CloudFormation."""

import asyncio
import os
import re
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

from stackur.config.models import EngineSettings
from stackur.engine.models import (
    ChangeSet,
    ChangeSetType,
    CommitResult,
    RemoteState,
    ResourceDefinition,
    StackEvent,
    Template,
)
from stackur.engine.polling import poll_until
from stackur.utils.errors import (
    ChangeSetError,
    ErrorContext,
    ProvisioningError,
    StackNotFoundError,
    StateError,
)
from stackur.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

LOGICAL_ID_PATTERN = re.compile(r"^[A-Za-z0-9]+$")

# A stack created by an unexecuted CREATE change set; it can only take another CREATE
REVIEW_IN_PROGRESS = "REVIEW_IN_PROGRESS"


class ReconciliationEngine:
    """Owns the desired template for one stack and drives change sets against it.

    The engine keeps three pieces of state: the local template being built,
    a snapshot of what CloudFormation last reported for the stack, and the
    logical id -> physical id index rebuilt from the stack's resources.
    It is not re-entrant: one commit or uncommit at a time.
    """

    def __init__(
        self,
        stack_name: str,
        provider,
        gate=None,
        settings: Optional[EngineSettings] = None,
        cancel: Optional[asyncio.Event] = None
    ):
        """Initialize engine.

        Args:
            stack_name: CloudFormation stack name
            provider: CloudFormationProvider (or compatible) used for every backend call
            gate: ConfirmationGate used for interactive commits; defaults to the console gate
            settings: Engine settings (poll interval, watchdog, capabilities, operator)
            cancel: Cancellation token checked by every polling loop
        """
        self.stack_name = stack_name
        self.provider = provider
        self.gate = gate
        self.settings = settings or EngineSettings()
        self.cancel = cancel

        self.template = Template()
        self.remote = RemoteState()
        self.physical_ids: Dict[str, str] = {}

        self._initialized = False
        self._last_stamp = 0

    @property
    def exists(self) -> bool:
        """Whether the stack exists in CloudFormation, as last observed."""
        return self.remote.exists

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Probe the remote stack and load its template and physical ids.

        Safe to call repeatedly; only the first successful call does work. A
        missing stack is not an error, any other failure propagates.
        """
        if self._initialized:
            return

        try:
            stack = await self.provider.describe_stack(self.stack_name)
        except StackNotFoundError:
            logger.info(f"Stack {self.stack_name} does not exist yet")
            self.remote.exists = False
        else:
            status = stack.get('StackStatus')
            self.remote.exists = status != REVIEW_IN_PROGRESS
            logger.info(f"Found stack {self.stack_name} ({status})")

        await self._sync_remote_state()
        self._initialized = True

    async def _sync_remote_state(self) -> None:
        if not self.remote.exists:
            return

        self.remote.template = await self.provider.get_template(self.stack_name)
        pairs = await self.provider.list_physical_ids(self.stack_name)

        self.physical_ids.clear()
        for logical_id, physical_id in pairs:
            self.physical_ids[logical_id] = physical_id

        self.remote.refreshed_at = datetime.now(timezone.utc)
        logger.debug(f"Synced {len(self.physical_ids)} physical id(s) for stack {self.stack_name}")

    async def add_resource(self, name: str, definition: ResourceDefinition) -> None:
        """Insert or replace a resource in the local template.

        The resource is not sent to CloudFormation until the next commit.

        Args:
            name: Logical id, stable across deploys
            definition: CloudFormation resource fragment

        Raises:
            ValueError: If the logical id is not alphanumeric
        """
        if not LOGICAL_ID_PATTERN.match(name):
            raise ValueError(f"Logical id must be alphanumeric: {name!r}")

        await self.initialize()
        self.template.upsert(name, definition)
        logger.debug(f"Staged {definition.type} {name} in stack {self.stack_name}")

    async def add_resources(self, name: str, definitions: List[ResourceDefinition]) -> None:
        """Register every fragment compiled from one declaration.

        The first fragment is stored under ``name``; the others under the
        logical ids the compiler assigned them.
        """
        if not definitions:
            raise ValueError(f"No resource definitions were produced for {name}")

        primary, *extras = definitions
        await self.add_resource(name, primary)
        for extra in extras:
            if not extra.logical_id:
                raise ValueError(f"Secondary fragment {extra.type} of {name} has no logical id")
            await self.add_resource(extra.logical_id, extra)

    def lookup_physical_id(self, name: str) -> Optional[str]:
        """Get the physical id CloudFormation assigned to a logical id."""
        return self.physical_ids.get(name)

    def render(self, indent: Optional[int] = None) -> str:
        """Serialize the local template."""
        return self.template.to_json(indent=indent)

    def dump(self) -> None:
        """Log the local and remote templates."""
        logger.debug(f"Local: {self.render()}")
        logger.debug(f"Remote: {self.remote.template}")

    def _change_set_name(self) -> str:
        operator = self.settings.operator or os.environ.get('USER') or 'stackur'
        operator = re.sub(r'[^A-Za-z0-9-]', '-', operator)[:100]
        if not operator[0].isalpha():
            operator = f"stackur-{operator}"

        stamp = max(int(time.time() * 1000), self._last_stamp + 1)
        self._last_stamp = stamp
        return f"{operator}-{stamp}"

    async def commit(self, interactive: bool = False) -> CommitResult:
        """Plan the local template as a change set and apply it.

        Args:
            interactive: Ask the confirmation gate before executing

        Returns:
            CommitResult describing how the commit ended

        Raises:
            StateError: If no resource has been added
            ChangeSetError: If the planned change set cannot be executed
            ProvisioningError: If the stack stops in a failed state such as UPDATE_ROLLBACK_FAILED
            PollingTimeoutError: If a watchdog timeout is configured and elapses
        """
        if self.template.is_empty():
            raise StateError(
                f"No resources have been added to stack {self.stack_name}",
                context=ErrorContext(stack_name=self.stack_name, operation='commit')
            )

        await self.initialize()

        change_set_name = self._change_set_name()
        context = ErrorContext(stack_name=self.stack_name, change_set=change_set_name, operation='commit')

        with LogContext(logger, stack_name=self.stack_name, change_set=change_set_name):
            change_set = await self._plan(change_set_name, context)

            if change_set.is_empty():
                logger.info(f"No changes required for stack {self.stack_name} "
                            f"(change set {change_set_name})")
                return CommitResult.NO_CHANGES

            if not change_set.is_executable():
                raise ChangeSetError(
                    f"Bad change set {change_set_name} for stack {self.stack_name}: "
                    f"{change_set.status} - {change_set.status_reason}",
                    status=change_set.status,
                    reason=change_set.status_reason,
                    context=context
                )

            if interactive:
                gate = self.gate
                if gate is None:
                    from stackur.interaction import ConsoleConfirmationGate
                    gate = self.gate = ConsoleConfirmationGate()

                if not await gate.confirm(change_set):
                    logger.info(f"Change set {change_set_name} was not accepted; "
                                f"make the required changes and commit again")
                    return CommitResult.REJECTED

            final_event = await self._apply(change_set_name, context)

            self.remote.exists = True
            await self._sync_remote_state()

            if final_event.is_rollback():
                logger.warning(f"Stack {self.stack_name} rolled back: "
                               f"{final_event.resource_status} => {final_event.status_reason}")
                return CommitResult.ROLLED_BACK

            logger.info(f"Stack {self.stack_name} reached {final_event.resource_status}")
            return CommitResult.APPLIED

    async def _plan(self, change_set_name: str, context: ErrorContext) -> ChangeSet:
        change_set_type = ChangeSetType.UPDATE if self.remote.exists else ChangeSetType.CREATE

        logger.info(f"Creating {change_set_type.value} change set {change_set_name} "
                    f"for stack {self.stack_name}")
        await self.provider.create_change_set(
            self.stack_name,
            change_set_name,
            change_set_type,
            self.render(),
            capabilities=self.settings.capabilities
        )

        async def check() -> Optional[ChangeSet]:
            change_set = await self.provider.describe_change_set(self.stack_name, change_set_name)
            logger.debug(f"Change set {change_set_name} is {change_set.status}")
            return change_set if change_set.is_terminal() else None

        change_set = await poll_until(
            check,
            self.settings.poll_interval,
            f"change set {change_set_name}",
            timeout=self.settings.timeout,
            cancel=self.cancel,
            context=context
        )
        logger.info(f"Change set {change_set_name} finished planning: {change_set.status} "
                    f"({len(change_set.changes)} change(s))")
        return change_set

    async def _count_events(self) -> int:
        try:
            return len(await self.provider.list_events(self.stack_name))
        except StackNotFoundError:
            return 0

    async def _apply(self, change_set_name: str, context: ErrorContext) -> StackEvent:
        seen = await self._count_events()

        await self.provider.execute_change_set(self.stack_name, change_set_name)
        logger.info(f"Executing change set {change_set_name}")

        async def check() -> Optional[StackEvent]:
            nonlocal seen
            events = await self.provider.list_events(self.stack_name)
            fresh = events[:max(len(events) - seen, 0)]
            seen = max(seen, len(events))

            # Events arrive newest first
            for event in reversed(fresh):
                self._log_event(event)
                if event.is_stack_terminal(self.stack_name):
                    return event
                if event.is_stack_failed(self.stack_name):
                    raise ProvisioningError(
                        f"Stack {self.stack_name} failed while executing change set {change_set_name}: "
                        f"{event.resource_status} - {event.status_reason}",
                        context=context
                    )
            return None

        return await poll_until(
            check,
            self.settings.poll_interval,
            f"stack {self.stack_name} to finish change set {change_set_name}",
            timeout=self.settings.timeout,
            cancel=self.cancel,
            context=context
        )

    def _log_event(self, event: StackEvent) -> None:
        message = (f"({event.resource_type}) {event.logical_id} "
                   f"{event.resource_status} => {event.status_reason}")
        if event.resource_status.endswith('FAILED'):
            logger.warning(message)
        else:
            logger.debug(message)

    async def uncommit(self) -> None:
        """Delete the whole stack and wait until CloudFormation has removed it.

        Raises:
            ProvisioningError: If the deletion fails
        """
        await self.initialize()

        if not self.remote.exists:
            logger.info(f"Stack {self.stack_name} does not exist, nothing to delete")
            return

        context = ErrorContext(stack_name=self.stack_name, operation='uncommit')

        with LogContext(logger, stack_name=self.stack_name):
            await self.provider.delete_stack(self.stack_name)
            logger.info(f"Deleting stack {self.stack_name}")

            async def check() -> Optional[bool]:
                try:
                    stack = await self.provider.describe_stack(self.stack_name)
                except StackNotFoundError:
                    return True

                status = stack.get('StackStatus')
                if status == 'DELETE_COMPLETE':
                    return True
                if status == 'DELETE_FAILED':
                    raise ProvisioningError(
                        f"Failed to delete stack {self.stack_name}: {stack.get('StackStatusReason')}",
                        context=context
                    )
                return None

            await poll_until(
                check,
                self.settings.poll_interval,
                f"stack {self.stack_name} to be deleted",
                timeout=self.settings.timeout,
                cancel=self.cancel,
                context=context
            )

        self.remote = RemoteState(exists=False, refreshed_at=datetime.now(timezone.utc))
        self.physical_ids.clear()
        logger.info(f"Deleted stack {self.stack_name}")
