"""
Pytest configuration and fixtures for stackur tests.

The fakes below stand in for the CloudFormation and S3 providers. They keep
just enough state to behave like the real services: change sets are planned
against the deployed template, executing one emits stack events, and a
deleted stack disappears.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import pytest

from stackur.config.models import EngineSettings
from stackur.engine.engine import ReconciliationEngine
from stackur.engine.models import (
    STACK_RESOURCE_TYPE,
    ChangeSet,
    ChangeSetType,
    ResourceChange,
    StackEvent,
)
from stackur.interaction import ConfirmationGate
from stackur.stack import Stack
from stackur.utils.errors import StackNotFoundError

NO_CHANGES_REASON = (
    "The submitted information didn't contain changes. "
    "Submit different information to create a change set."
)


class FakeCloudFormation:
    """In-memory CloudFormation provider."""

    def __init__(self, calls: Optional[List[Tuple]] = None):
        self.calls: List[Tuple] = calls if calls is not None else []
        self.stack_status: Optional[str] = None
        self.template: Optional[Dict[str, Any]] = None
        self.resources: Dict[str, str] = {}
        self.events: List[StackEvent] = []
        self.change_sets: Dict[str, Dict[str, Any]] = {}

        # Knobs for individual tests
        self.describe_error: Optional[Exception] = None
        self.pending_polls = 0
        self.forced_change_set: Optional[Dict[str, Any]] = None
        self.final_status: Optional[str] = None
        self.events_per_poll: Optional[int] = None
        self.delete_fails = False

        self._pending_events: List[StackEvent] = []
        self._event_counter = 0

    def _record(self, *call):
        self.calls.append(call)

    def names(self) -> List[str]:
        """Names of the recorded calls, in order."""
        return [call[0] for call in self.calls]

    def _event(self, logical_id: str, resource_type: str, status: str, reason: Optional[str] = None) -> StackEvent:
        self._event_counter += 1
        return StackEvent(
            event_id=f"event-{self._event_counter}",
            logical_id=logical_id,
            resource_type=resource_type,
            resource_status=status,
            status_reason=reason,
        )

    async def describe_stack(self, stack_name: str) -> Dict[str, Any]:
        self._record('describe_stack', stack_name)
        if self.describe_error is not None:
            raise self.describe_error
        if self.stack_status is None:
            raise StackNotFoundError(stack_name)
        return {'StackName': stack_name, 'StackStatus': self.stack_status}

    async def get_template(self, stack_name: str) -> Optional[Dict[str, Any]]:
        self._record('get_template', stack_name)
        return json.loads(json.dumps(self.template)) if self.template is not None else None

    async def list_physical_ids(self, stack_name: str) -> List[Tuple[str, str]]:
        self._record('list_physical_ids', stack_name)
        return list(self.resources.items())

    async def create_change_set(
        self,
        stack_name: str,
        change_set_name: str,
        change_set_type: ChangeSetType,
        template_body: str,
        capabilities: Optional[List[str]] = None
    ) -> None:
        self._record('create_change_set', stack_name, change_set_name, change_set_type, capabilities)
        body = json.loads(template_body)

        if change_set_type == ChangeSetType.CREATE and self.stack_status is None:
            self.stack_status = "REVIEW_IN_PROGRESS"

        deployed = (self.template or {}).get("Resources", {})
        changes = []
        for logical_id, resource in body["Resources"].items():
            if logical_id not in deployed:
                changes.append(ResourceChange("Add", logical_id, resource["Type"]))
            elif deployed[logical_id] != resource:
                changes.append(ResourceChange("Modify", logical_id, resource["Type"], replacement="False"))

        if self.forced_change_set is not None:
            planned = dict(self.forced_change_set)
        elif not changes:
            planned = {'status': 'FAILED', 'execution_status': 'UNAVAILABLE', 'reason': NO_CHANGES_REASON}
        else:
            planned = {'status': 'CREATE_COMPLETE', 'execution_status': 'AVAILABLE', 'reason': None}

        planned.update(body=body, changes=changes, type=change_set_type, polls=self.pending_polls)
        self.change_sets[change_set_name] = planned

    async def describe_change_set(self, stack_name: str, change_set_name: str) -> ChangeSet:
        self._record('describe_change_set', stack_name, change_set_name)
        planned = self.change_sets[change_set_name]

        if planned['polls'] > 0:
            planned['polls'] -= 1
            return ChangeSet(change_set_name, stack_name, "CREATE_IN_PROGRESS", "UNAVAILABLE")

        return ChangeSet(
            name=change_set_name,
            stack_name=stack_name,
            status=planned['status'],
            execution_status=planned['execution_status'],
            status_reason=planned['reason'],
            changes=list(planned['changes']),
        )

    async def execute_change_set(self, stack_name: str, change_set_name: str) -> None:
        self._record('execute_change_set', stack_name, change_set_name)
        planned = self.change_sets[change_set_name]
        creating = planned['type'] == ChangeSetType.CREATE
        final = self.final_status or ("CREATE_COMPLETE" if creating else "UPDATE_COMPLETE")

        pending = [self._event(stack_name, STACK_RESOURCE_TYPE,
                               "CREATE_IN_PROGRESS" if creating else "UPDATE_IN_PROGRESS")]
        for change in planned['changes']:
            prefix = "CREATE" if change.action == "Add" else "UPDATE"
            pending.append(self._event(change.logical_id, change.resource_type, f"{prefix}_IN_PROGRESS"))
            pending.append(self._event(change.logical_id, change.resource_type, f"{prefix}_COMPLETE"))
            self.resources.setdefault(change.logical_id, f"{stack_name}-{change.logical_id}".lower())
        pending.append(self._event(stack_name, STACK_RESOURCE_TYPE, final))

        self._pending_events.extend(pending)
        self.template = planned['body']
        self.stack_status = final

    async def list_events(self, stack_name: str) -> List[StackEvent]:
        self._record('list_events', stack_name)
        if self.stack_status is None:
            raise StackNotFoundError(stack_name)

        count = len(self._pending_events) if self.events_per_poll is None else self.events_per_poll
        released, self._pending_events = self._pending_events[:count], self._pending_events[count:]
        # Newest first, like DescribeStackEvents
        self.events = list(reversed(released)) + self.events
        return list(self.events)

    async def delete_stack(self, stack_name: str) -> None:
        self._record('delete_stack', stack_name)
        if self.delete_fails:
            self.stack_status = "DELETE_FAILED"
            return
        self.stack_status = None
        self.template = None
        self.resources = {}
        self.events = []


class FakeObjectStore:
    """In-memory S3 object store."""

    def __init__(self, calls: Optional[List[Tuple]] = None):
        self.calls: List[Tuple] = calls if calls is not None else []
        self.buckets: Dict[str, List[str]] = {}

    async def list_objects(self, bucket: str) -> List[str]:
        self.calls.append(('list_objects', bucket))
        return list(self.buckets.get(bucket, []))

    async def delete_object(self, bucket: str, key: str) -> None:
        self.calls.append(('delete_object', bucket, key))
        self.buckets[bucket].remove(key)

    async def delete_bucket(self, bucket: str) -> None:
        self.calls.append(('delete_bucket', bucket))
        self.buckets.pop(bucket, None)


class RecordingGate(ConfirmationGate):
    """Confirmation gate answering from a fixed list."""

    def __init__(self, *answers: bool):
        self.answers = list(answers)
        self.seen: List[ChangeSet] = []

    async def confirm(self, change_set: ChangeSet) -> bool:
        self.seen.append(change_set)
        return self.answers.pop(0)


@pytest.fixture
def calls():
    """Shared call log for the fake providers."""
    return []


@pytest.fixture
def cloudformation(calls):
    return FakeCloudFormation(calls)


@pytest.fixture
def object_store(calls):
    return FakeObjectStore(calls)


@pytest.fixture
def engine_settings():
    """Engine settings that never sleep between polls."""
    return EngineSettings(poll_interval=0, operator="tester")


@pytest.fixture
def engine(cloudformation, engine_settings):
    return ReconciliationEngine("Test", cloudformation, settings=engine_settings)


@pytest.fixture
def make_stack(cloudformation, object_store, engine_settings):
    """Build a stack wired to the fake providers."""

    def factory(setup=None, gate=None, interactive=False, name="Test"):
        engine = ReconciliationEngine(name, cloudformation, gate=gate, settings=engine_settings)
        return Stack(name, engine, setup=setup, object_store=object_store, interactive=interactive)

    return factory
