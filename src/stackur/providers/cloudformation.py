"""CloudFormation API access for the reconciliation engine."""

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple

from botocore.exceptions import ClientError

from stackur.engine.models import ChangeSet, ChangeSetType, ResourceChange, StackEvent
from stackur.utils.errors import StackNotFoundError
from stackur.utils.logging import get_logger

logger = get_logger(__name__)


def is_not_found(error: ClientError) -> bool:
    """Check if a ClientError means the stack does not exist.

    CloudFormation reports a missing stack as a generic ValidationError, so
    the message is the only discriminator.
    """
    error_info = error.response.get('Error', {})
    return (
        error_info.get('Code') == 'ValidationError'
        and 'does not exist' in error_info.get('Message', '')
    )


class CloudFormationProvider:
    """Async facade over a boto3 CloudFormation client.

    Every call runs the blocking boto3 request in a worker thread so the
    event loop only ever suspends on it. Missing stacks surface as
    :class:`StackNotFoundError`; every other ClientError propagates.
    """

    def __init__(self, client):
        """Initialize provider.

        Args:
            client: boto3 CloudFormation client
        """
        self.client = client

    async def _call(self, operation: str, stack_name: str, **kwargs) -> Dict[str, Any]:
        method = getattr(self.client, operation)
        try:
            return await asyncio.to_thread(method, **kwargs)
        except ClientError as e:
            if is_not_found(e):
                raise StackNotFoundError(stack_name, cause=e) from e
            raise

    async def _paginate(self, operation: str, stack_name: str, result_key: str, **kwargs) -> List[Dict[str, Any]]:
        paginator = self.client.get_paginator(operation)

        def collect():
            items = []
            for page in paginator.paginate(**kwargs):
                items.extend(page.get(result_key, []))
            return items

        try:
            return await asyncio.to_thread(collect)
        except ClientError as e:
            if is_not_found(e):
                raise StackNotFoundError(stack_name, cause=e) from e
            raise

    async def describe_stack(self, stack_name: str) -> Dict[str, Any]:
        """Describe a stack.

        Raises:
            StackNotFoundError: If the stack does not exist
        """
        response = await self._call('describe_stacks', stack_name, StackName=stack_name)
        stacks = response.get('Stacks', [])
        if not stacks:
            raise StackNotFoundError(stack_name)
        return stacks[0]

    async def get_template(self, stack_name: str) -> Optional[Dict[str, Any]]:
        """Get the template CloudFormation holds for the stack."""
        response = await self._call('get_template', stack_name, StackName=stack_name)
        body = response.get('TemplateBody')
        if not body:
            return None
        # boto3 decodes JSON template bodies itself; YAML bodies stay strings
        if isinstance(body, str):
            return json.loads(body)
        return json.loads(json.dumps(body))

    async def list_physical_ids(self, stack_name: str) -> List[Tuple[str, str]]:
        """List (logical id, physical id) pairs for resources that have one."""
        summaries = await self._paginate(
            'list_stack_resources', stack_name, 'StackResourceSummaries', StackName=stack_name
        )
        return [
            (summary['LogicalResourceId'], summary['PhysicalResourceId'])
            for summary in summaries
            if summary.get('PhysicalResourceId')
        ]

    async def create_change_set(
        self,
        stack_name: str,
        change_set_name: str,
        change_set_type: ChangeSetType,
        template_body: str,
        capabilities: Optional[List[str]] = None
    ) -> None:
        """Submit a change set for planning."""
        kwargs = {
            'StackName': stack_name,
            'ChangeSetName': change_set_name,
            'ChangeSetType': change_set_type.value,
            'TemplateBody': template_body,
        }
        if capabilities:
            kwargs['Capabilities'] = capabilities
        await self._call('create_change_set', stack_name, **kwargs)

    async def describe_change_set(self, stack_name: str, change_set_name: str) -> ChangeSet:
        """Describe a change set, following pagination of its change list."""
        kwargs = {'StackName': stack_name, 'ChangeSetName': change_set_name}
        response = await self._call('describe_change_set', stack_name, **kwargs)
        changes = list(response.get('Changes', []))

        while response.get('NextToken'):
            response = await self._call(
                'describe_change_set', stack_name, NextToken=response['NextToken'], **kwargs
            )
            changes.extend(response.get('Changes', []))

        return ChangeSet(
            name=change_set_name,
            stack_name=stack_name,
            status=response.get('Status', ''),
            execution_status=response.get('ExecutionStatus'),
            status_reason=response.get('StatusReason'),
            changes=[ResourceChange.from_response(change) for change in changes],
        )

    async def execute_change_set(self, stack_name: str, change_set_name: str) -> None:
        """Start applying a planned change set."""
        await self._call(
            'execute_change_set', stack_name, StackName=stack_name, ChangeSetName=change_set_name
        )

    async def list_events(self, stack_name: str) -> List[StackEvent]:
        """List every event the stack has had, newest first."""
        events = await self._paginate(
            'describe_stack_events', stack_name, 'StackEvents', StackName=stack_name
        )
        return [StackEvent.from_response(event) for event in events]

    async def delete_stack(self, stack_name: str) -> None:
        """Request deletion of the whole stack."""
        await self._call('delete_stack', stack_name, StackName=stack_name)
