"""Reconciliation engine: desired template, change sets and remote state."""

from stackur.engine.models import (
    ChangeSet,
    ChangeSetType,
    CommitResult,
    RemoteState,
    ResourceChange,
    ResourceDefinition,
    StackEvent,
    Template,
    STACK_RESOURCE_TYPE,
    TEMPLATE_FORMAT_VERSION,
)
from stackur.engine.polling import poll_until
from stackur.engine.engine import ReconciliationEngine

__all__ = [
    # Models
    'ChangeSet',
    'ChangeSetType',
    'CommitResult',
    'RemoteState',
    'ResourceChange',
    'ResourceDefinition',
    'StackEvent',
    'Template',
    'STACK_RESOURCE_TYPE',
    'TEMPLATE_FORMAT_VERSION',

    # Polling
    'poll_until',

    # Engine
    'ReconciliationEngine',
]
