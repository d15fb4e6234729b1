"""Units of work a stack commits in order: resources and tasks."""

from .base import Committable
from .resource import Resource
from .bucket import Bucket
from .function import Function
from .task import Task

__all__ = [
    'Committable',
    'Resource',
    'Bucket',
    'Function',
    'Task',
]
