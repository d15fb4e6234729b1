"""Backend API access: CloudFormation stacks and S3 containers."""

from .cloudformation import CloudFormationProvider, is_not_found
from .object_store import ObjectStore

__all__ = [
    'CloudFormationProvider',
    'ObjectStore',
    'is_not_found',
]
