"""Utility modules for logging, AWS client management, and errors."""

from stackur.utils.aws_client import AWSClientManager, AWSCredentials
from stackur.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    DeploymentError,
    ConfigurationError,
    CredentialError,
    NetworkError,
    StateError,
    StackNotFoundError,
    ProvisioningError,
    ChangeSetError,
    PollingTimeoutError,
    OperationCancelledError,
    ConfirmationAbortedError,
    ErrorHandler,
    error_handler
)
from stackur.utils.logging import get_logger, setup_logging, LogContext

__all__ = [
    # AWS Client
    'AWSClientManager',
    'AWSCredentials',

    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'DeploymentError',
    'ConfigurationError',
    'CredentialError',
    'NetworkError',
    'StateError',
    'StackNotFoundError',
    'ProvisioningError',
    'ChangeSetError',
    'PollingTimeoutError',
    'OperationCancelledError',
    'ConfirmationAbortedError',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
    'LogContext',
]
