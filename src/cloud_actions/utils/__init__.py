"""Utility modules for logging, AWS client management, and errors."""

from cloud_actions.utils.aws_client import AWSClientManager
from cloud_actions.utils.errors import (
    ErrorCategory,
    ErrorContext,
    Phase,
    ActionError,
    ValidationError,
    ParamDecodeError,
    ConfigurationError,
    CredentialError,
    RemoteRejectionError,
    RemoteQueryError,
    ConvergenceTimeoutError,
    ExplicitFailureError,
    ConflictError,
    ResourceNotFoundError,
    ActionNotFoundError,
    ErrorHandler,
    error_handler
)
from cloud_actions.utils.logging import get_logger, setup_logging, LogContext

__all__ = [
    # AWS Client
    'AWSClientManager',

    # Errors
    'ErrorCategory',
    'ErrorContext',
    'Phase',
    'ActionError',
    'ValidationError',
    'ParamDecodeError',
    'ConfigurationError',
    'CredentialError',
    'RemoteRejectionError',
    'RemoteQueryError',
    'ConvergenceTimeoutError',
    'ExplicitFailureError',
    'ConflictError',
    'ResourceNotFoundError',
    'ActionNotFoundError',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
    'LogContext',
]
