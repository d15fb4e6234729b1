"""Error taxonomy for stack operations and translation of AWS failures into it."""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from botocore.exceptions import (
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
)

from stackur.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Where an error came from."""
    CONFIGURATION = "configuration"
    AWS = "aws"
    NETWORK = "network"
    STATE = "state"
    PROVISIONING = "provisioning"
    CREDENTIAL = "credential"
    PERMISSION = "permission"
    RESOURCE_LIMIT = "resource_limit"
    VALIDATION = "validation"
    INTERACTION = "interaction"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """How bad an error is; CRITICAL aborts the whole run."""
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class ErrorContext:
    """Which stack, change set and call an error belongs to."""
    stack_name: Optional[str] = None
    change_set: Optional[str] = None
    resource_id: Optional[str] = None
    operation: Optional[str] = None
    aws_operation: Optional[str] = None
    request_id: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None

    def labelled(self) -> Iterator[Tuple[str, str]]:
        """Yield (label, value) for the fields shown to operators."""
        for label, value in (
            ("Stack", self.stack_name),
            ("Change set", self.change_set),
            ("Resource", self.resource_id),
            ("Operation", self.operation),
        ):
            if value:
                yield label, value


class DeploymentError(Exception):
    """Base class for every failure stackur reports.

    Subclasses pick their category, severity and default suggestions as
    class attributes; callers may still override any of them.
    """

    category = ErrorCategory.UNKNOWN
    severity = ErrorSeverity.ERROR
    default_suggestions: List[str] = []

    def __init__(
        self,
        message: str,
        category: Optional[ErrorCategory] = None,
        severity: Optional[ErrorSeverity] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize error.

        Args:
            message: What went wrong, for humans
            category: Overrides the class category
            severity: Overrides the class severity
            context: Stack, change set and call the error belongs to
            cause: Underlying exception
            suggestions: Fixes to offer; defaults to the class suggestions
        """
        super().__init__(message)
        self.message = message
        if category is not None:
            self.category = category
        if severity is not None:
            self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = list(self.default_suggestions if suggestions is None else suggestions)

    def to_user_message(self) -> str:
        """Render the error, its context and suggested fixes for the terminal."""
        lines = [f"{self.severity.value.upper()}: {self.message}"]
        lines.extend(f"   {label}: {value}" for label, value in self.context.labelled())

        if self.cause is not None:
            lines.append(f"   Cause: {self.cause}")

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            lines.extend(f"   {number}. {text}" for number, text in enumerate(self.suggestions, 1))

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form used in debug logs."""
        return {
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': asdict(self.context),
            'cause': str(self.cause) if self.cause is not None else None,
            'suggestions': self.suggestions,
        }


class ConfigurationError(DeploymentError):
    """Settings or stack definition are unusable."""
    category = ErrorCategory.CONFIGURATION
    severity = ErrorSeverity.CRITICAL


class CredentialError(DeploymentError):
    """No usable AWS credentials."""
    category = ErrorCategory.CREDENTIAL
    severity = ErrorSeverity.CRITICAL


class NetworkError(DeploymentError):
    """AWS endpoints could not be reached."""
    category = ErrorCategory.NETWORK


class StateError(DeploymentError):
    """An operation does not fit the current state of the stack."""
    category = ErrorCategory.STATE
    severity = ErrorSeverity.CRITICAL


class StackNotFoundError(DeploymentError):
    """The named stack does not exist in CloudFormation.

    Raised by the provider and handled by the engine; a missing stack is an
    expected state, not a failure.
    """
    category = ErrorCategory.STATE
    severity = ErrorSeverity.INFO

    def __init__(self, stack_name: str, **kwargs):
        kwargs.setdefault('context', ErrorContext(stack_name=stack_name))
        super().__init__(f"Stack {stack_name} does not exist", **kwargs)
        self.stack_name = stack_name


class ProvisioningError(DeploymentError):
    """CloudFormation failed to create, update or delete the stack."""
    category = ErrorCategory.PROVISIONING


class ChangeSetError(DeploymentError):
    """A planned change set cannot be executed."""
    category = ErrorCategory.PROVISIONING
    severity = ErrorSeverity.CRITICAL
    default_suggestions = [
        'Read the status reason CloudFormation gave for the change set',
        'Run the `template` command and check the resource properties it renders',
    ]

    def __init__(self, message: str, status: Optional[str] = None, reason: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status = status
        self.reason = reason


class PollingTimeoutError(DeploymentError):
    """A wait on CloudFormation outlived the configured watchdog."""
    category = ErrorCategory.STATE
    severity = ErrorSeverity.CRITICAL
    default_suggestions = [
        'Look at the stack events in the CloudFormation console; the operation may still be running',
        'Raise engine.timeout in stackur.yaml, or unset it to wait indefinitely',
    ]


class OperationCancelledError(DeploymentError):
    """A wait on CloudFormation was cancelled by the caller."""
    category = ErrorCategory.STATE
    severity = ErrorSeverity.WARNING


class ConfirmationAbortedError(DeploymentError):
    """Input ran out before the operator accepted or rejected a change set."""
    category = ErrorCategory.INTERACTION
    severity = ErrorSeverity.CRITICAL


# AWS error code -> (category, summary, suggestions)
AWS_ERROR_MAPPING: Dict[str, Tuple[ErrorCategory, str, List[str]]] = {
    'InvalidClientTokenId': (ErrorCategory.CREDENTIAL, "The AWS access key is not valid", [
        'Check which credentials are active with: aws sts get-caller-identity',
        'Select another profile with --profile',
    ]),
    'ExpiredToken': (ErrorCategory.CREDENTIAL, "The AWS session has expired", [
        'Log in again (for example: aws sso login) and rerun the command',
    ]),
    'AccessDenied': (ErrorCategory.PERMISSION, "Access denied", [
        'Grant the caller cloudformation:* on this stack and the permissions its resources need',
    ]),
    'InsufficientCapabilitiesException': (ErrorCategory.PERMISSION, "The template needs more capabilities", [
        'Add CAPABILITY_IAM or CAPABILITY_NAMED_IAM to engine.capabilities',
    ]),
    'LimitExceededException': (ErrorCategory.RESOURCE_LIMIT, "A CloudFormation quota was reached", [
        'Delete unused stacks or stale change sets',
    ]),
    'Throttling': (ErrorCategory.RESOURCE_LIMIT, "AWS throttled the request", [
        'Raise engine.poll_interval so fewer status calls are made',
    ]),
    'AlreadyExistsException': (ErrorCategory.PROVISIONING, "A change set with that name already exists", [
        'Give every operator a distinct engine.operator',
    ]),
    'ChangeSetNotFound': (ErrorCategory.PROVISIONING, "The change set is gone", [
        'Another operator may have executed or deleted it; commit again',
    ]),
    'InvalidChangeSetStatus': (ErrorCategory.PROVISIONING, "The change set cannot be executed now", [
        'Wait for the stack to leave its *_IN_PROGRESS state and commit again',
    ]),
    'ValidationError': (ErrorCategory.VALIDATION, "CloudFormation rejected the request", [
        'Run the `template` command and check the resource properties it renders',
    ]),
    'NoSuchBucket': (ErrorCategory.STATE, "The bucket does not exist", [
        'The bucket may have been deleted outside of stackur',
    ]),
}

_LOG_LEVELS = {
    ErrorSeverity.CRITICAL: logging.ERROR,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.INFO: logging.INFO,
}


class ErrorHandler:
    """Turns arbitrary exceptions into DeploymentErrors and logs them."""

    def __init__(self):
        self.logger = get_logger(__name__)

    def handle_exception(self, error: Exception, context: Optional[ErrorContext] = None) -> DeploymentError:
        """Classify an exception.

        Args:
            error: Exception raised by boto3, the network stack or stackur itself
            context: Where it happened

        Returns:
            The error itself if it already is a DeploymentError, else a wrapped one
        """
        if isinstance(error, DeploymentError):
            return error

        context = context or ErrorContext()

        if isinstance(error, ClientError):
            return self._from_client_error(error, context)

        if isinstance(error, NoCredentialsError):
            return CredentialError("No AWS credentials were found", context=context, cause=error, suggestions=[
                'Run aws configure, or export AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY',
                'Select a configured profile with --profile',
            ])

        if isinstance(error, PartialCredentialsError):
            return CredentialError("The AWS credentials are incomplete", context=context, cause=error, suggestions=[
                'Provide both the access key id and the secret access key',
            ])

        if isinstance(error, (EndpointConnectionError, ConnectionError, TimeoutError)):
            return NetworkError(f"Could not reach AWS: {error}", context=context, cause=error, suggestions=[
                'Check the network connection, proxy and VPN settings',
                'Check that the configured region is correct',
            ])

        return DeploymentError(str(error), context=context, cause=error)

    def _from_client_error(self, error: ClientError, context: ErrorContext) -> DeploymentError:
        details = error.response.get('Error', {})
        code = details.get('Code', 'Unknown')
        message = details.get('Message', str(error))

        context.aws_operation = getattr(error, 'operation_name', None)
        context.request_id = error.response.get('ResponseMetadata', {}).get('RequestId')

        if code in AWS_ERROR_MAPPING:
            category, summary, suggestions = AWS_ERROR_MAPPING[code]
            return DeploymentError(f"{summary}: {message}", category=category, context=context,
                                   cause=error, suggestions=suggestions)

        return DeploymentError(f"AWS returned {code}: {message}", category=ErrorCategory.AWS,
                               context=context, cause=error,
                               suggestions=[f'Search the AWS documentation for {code} (request {context.request_id})'])

    def log_error(self, error: DeploymentError) -> None:
        """Log the user message at a level matching the severity, details at debug."""
        self.logger.log(_LOG_LEVELS[error.severity], error.to_user_message())
        self.logger.debug(f"Error details: {error.to_dict()}")


error_handler = ErrorHandler()
