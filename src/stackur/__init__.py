"""stackur - declarative CloudFormation stacks reconciled through change sets."""

__version__ = "0.1.0"

from stackur.compiler import CloudFormationCompiler, Tag
from stackur.config import Settings, load_settings
from stackur.engine import CommitResult, ReconciliationEngine
from stackur.interaction import ConfirmationGate, ConsoleConfirmationGate
from stackur.stack import Stack
from stackur.stages import Bucket, Function, Resource, Task
from stackur.utils.logging import setup_logging

__all__ = [
    'Stack',
    'Resource',
    'Bucket',
    'Function',
    'Task',
    'Tag',
    'CloudFormationCompiler',
    'ReconciliationEngine',
    'CommitResult',
    'ConfirmationGate',
    'ConsoleConfirmationGate',
    'Settings',
    'load_settings',
    'setup_logging',
]
