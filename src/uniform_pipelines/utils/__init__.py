"""Utility modules for logging, AWS client management, retries and errors."""

from uniform_pipelines.utils.aws_client import AWSClientManager
from uniform_pipelines.utils.retry import (
    RetryStrategy,
    THROTTLING_ERROR_NAMES,
    retrying,
    with_retry,
    with_throttling_retry,
)
from uniform_pipelines.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    PipelineError,
    ConfigurationError,
    UnknownEnvironmentError,
    NamelessPipelineError,
    TemplateShapeError,
    UnexpectedActionConfigurationError,
    UnknownStageError,
    UnexpectedActionCountError,
    UnknownCodeBuildProjectError,
    RemoteServiceError,
    StackDeletionError,
    ExecutionStatusError,
    WorkflowTimeoutError,
    ErrorHandler,
    error_handler,
    remote_error_name,
)
from uniform_pipelines.utils.logging import LogContext, get_logger, setup_logging

__all__ = [
    # AWS Client
    'AWSClientManager',

    # Retry
    'RetryStrategy',
    'THROTTLING_ERROR_NAMES',
    'retrying',
    'with_retry',
    'with_throttling_retry',

    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'PipelineError',
    'ConfigurationError',
    'UnknownEnvironmentError',
    'NamelessPipelineError',
    'TemplateShapeError',
    'UnexpectedActionConfigurationError',
    'UnknownStageError',
    'UnexpectedActionCountError',
    'UnknownCodeBuildProjectError',
    'RemoteServiceError',
    'StackDeletionError',
    'ExecutionStatusError',
    'WorkflowTimeoutError',
    'ErrorHandler',
    'error_handler',
    'remote_error_name',

    # Logging
    'LogContext',
    'get_logger',
    'setup_logging',
]
