"""Error taxonomy for provisioning actions."""

from typing import Optional, Dict, Any, List
from enum import Enum
from dataclasses import dataclass
from botocore.exceptions import (
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
)
from cloud_actions.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Categories of errors that can occur while running an action."""
    VALIDATION = "validation"
    DECODE = "decode"
    REMOTE_REJECTION = "remote_rejection"
    REMOTE_QUERY = "remote_query"
    CONVERGENCE_TIMEOUT = "convergence_timeout"
    EXPLICIT_FAILURE = "explicit_failure"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    CONFIGURATION = "configuration"
    CREDENTIAL = "credential"
    UNKNOWN = "unknown"


class Phase(Enum):
    """Which side of a remote interaction an error came from."""
    MUTATION = "mutation"
    QUERY = "query"


@dataclass
class ErrorContext:
    """Context information for an error."""
    guid: Optional[str] = None
    kind: Optional[str] = None
    operation: Optional[str] = None
    resource_id: Optional[str] = None
    aws_operation: Optional[str] = None
    request_id: Optional[str] = None
    last_state: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class ActionError(Exception):
    """Base exception for action errors."""

    category = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None,
        category: Optional[ErrorCategory] = None
    ):
        """Initialize action error.

        Args:
            message: Human-readable error message
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
            category: Overrides the class-level category
        """
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []
        if category is not None:
            self.category = category

    @property
    def retryable(self) -> bool:
        """Whether resubmitting the same request may succeed."""
        return False

    def to_user_message(self) -> str:
        """Convert error to user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = [f"ERROR ({self.category.value}): {self.message}"]

        if self.context.guid:
            lines.append(f"   Request: {self.context.guid}")
        if self.context.resource_id:
            lines.append(f"   Resource: {self.context.resource_id}")
        if self.context.last_state:
            lines.append(f"   Last observed state: {self.context.last_state}")
        if self.cause:
            lines.append(f"   Cause: {self.cause}")

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error
        """
        return {
            'message': self.message,
            'category': self.category.value,
            'retryable': self.retryable,
            'context': {
                'guid': self.context.guid,
                'kind': self.context.kind,
                'operation': self.context.operation,
                'resource_id': self.context.resource_id,
                'aws_operation': self.context.aws_operation,
                'request_id': self.context.request_id,
                'last_state': self.context.last_state,
                'additional_info': self.context.additional_info
            },
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }

    def __str__(self) -> str:
        return self.message


class ValidationError(ActionError):
    """A request failed local validation before any remote call."""
    category = ErrorCategory.VALIDATION


class ParamDecodeError(ActionError):
    """A request payload could not be decoded."""
    category = ErrorCategory.DECODE


class ConfigurationError(ActionError):
    """Error in configuration file or settings."""
    category = ErrorCategory.CONFIGURATION


class CredentialError(ActionError):
    """Error related to control plane credentials."""
    category = ErrorCategory.CREDENTIAL


class RemoteRejectionError(ActionError):
    """The control plane synchronously rejected a mutation."""
    category = ErrorCategory.REMOTE_REJECTION


class RemoteQueryError(ActionError):
    """A state query against the control plane failed."""
    category = ErrorCategory.REMOTE_QUERY


class ConvergenceTimeoutError(ActionError):
    """Polling exhausted its attempt budget without reaching the target state."""
    category = ErrorCategory.CONVERGENCE_TIMEOUT


class ExplicitFailureError(ActionError):
    """The control plane reported an asynchronous operation as failed."""
    category = ErrorCategory.EXPLICIT_FAILURE

    @property
    def retryable(self) -> bool:
        return True


class ConflictError(ActionError):
    """The resource exists in a state incompatible with the request."""
    category = ErrorCategory.CONFLICT


class ResourceNotFoundError(ActionError):
    """The resource named by the request does not exist."""
    category = ErrorCategory.NOT_FOUND


class ActionNotFoundError(ActionError):
    """No handler is registered for a kind/operation pair."""
    category = ErrorCategory.NOT_FOUND


class ErrorHandler:
    """Translates AWS and transport exceptions into the action taxonomy."""

    # Mapping of AWS error codes to suggestions
    AWS_ERROR_SUGGESTIONS = {
        'AuthFailure': [
            'Check that SecretID and SecretKey in provider_params are correct',
            'Verify the credentials are active for the requested region'
        ],
        'UnauthorizedOperation': [
            'Add the required IAM permission for this operation',
            'Verify you are operating in the correct region'
        ],
        'AccessDenied': [
            'Check IAM policies attached to the credentials in provider_params'
        ],
        'InvalidParameterValue': [
            'Check parameter format and constraints',
            'Review the service documentation for valid values'
        ],
        'InvalidParameterCombination': [
            'Check which request fields are mutually exclusive'
        ],
        'IncorrectState': [
            'Wait for the resource to finish its current transition',
            'Resubmit the request once the resource is stable'
        ],
        'IncorrectInstanceState': [
            'Make sure the target instance is running or stopped'
        ],
        'VolumeInUse': [
            'Detach the volume before retrying'
        ],
        'NatGatewayLimitExceeded': [
            'Request a service limit increase',
            'Delete unused NAT gateways in the availability zone'
        ],
        'VolumeLimitExceeded': [
            'Request a service limit increase',
            'Delete unused volumes'
        ],
        'ReplicationGroupAlreadyExists': [
            'Use a different name for the replication group',
            'Pass the existing id to reuse the replication group'
        ],
        'InsufficientCacheClusterCapacity': [
            'Try another node type or availability zone'
        ],
        'RequestLimitExceeded': [
            'Reduce the frequency of API calls',
            'Resubmit the batch later'
        ],
    }

    def __init__(self):
        self.logger = get_logger(__name__)

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None,
        phase: Phase = Phase.MUTATION
    ) -> ActionError:
        """Handle an exception and convert to ActionError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred
            phase: Whether the failing call was a mutation or a state query

        Returns:
            ActionError with categorization and suggestions
        """
        context = context or ErrorContext()

        if isinstance(error, ActionError):
            return error

        if isinstance(error, ClientError):
            return self._handle_aws_error(error, context, phase)

        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            return CredentialError(
                message=f'Credential error: {error}',
                context=context,
                cause=error,
                suggestions=[
                    'Set SecretID and SecretKey in provider_params',
                    'For storage requests, provide location and api_secret'
                ]
            )

        error_class = RemoteRejectionError if phase is Phase.MUTATION else RemoteQueryError
        if isinstance(error, (ConnectionError, TimeoutError, EndpointConnectionError)):
            return error_class(
                message=f'Network error: {error}',
                context=context,
                cause=error,
                suggestions=[
                    'Check connectivity to the control plane endpoint',
                    'Resubmit the request; the operation is safe to retry'
                ]
            )

        return ActionError(
            message=f"{type(error).__name__}: {error}",
            context=context,
            cause=error,
            suggestions=['Check logs for more details']
        )

    def _handle_aws_error(
        self,
        error: ClientError,
        context: ErrorContext,
        phase: Phase
    ) -> ActionError:
        error_code = error.response.get('Error', {}).get('Code', 'Unknown')
        error_message = error.response.get('Error', {}).get('Message', str(error))
        context.request_id = error.response.get('ResponseMetadata', {}).get('RequestId')
        context.aws_operation = error.operation_name

        suggestions = list(self.AWS_ERROR_SUGGESTIONS.get(error_code, []))
        if not suggestions and context.request_id:
            suggestions.append(f'AWS Request ID: {context.request_id}')

        error_class = RemoteRejectionError if phase is Phase.MUTATION else RemoteQueryError
        return error_class(
            message=f"{error.operation_name} failed ({error_code}): {error_message}",
            context=context,
            cause=error,
            suggestions=suggestions
        )

    def log_error(self, error: ActionError):
        """Log an error, with full details at debug level.

        Args:
            error: The error to log
        """
        self.logger.error(error.to_user_message())
        self.logger.debug(f"Error details: {error.to_dict()}")


# Global error handler instance
error_handler = ErrorHandler()
