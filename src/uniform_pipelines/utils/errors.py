"""Error handling framework for pipeline assembly, template macros and cleanup."""

from typing import Optional, Dict, Any, List
from enum import Enum
from dataclasses import dataclass
from botocore.exceptions import ClientError, NoCredentialsError, PartialCredentialsError
from uniform_pipelines.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Categories of errors."""
    CONFIGURATION = "configuration"
    TEMPLATE = "template"
    AWS = "aws"
    CREDENTIAL = "credential"
    PERMISSION = "permission"
    WORKFLOW = "workflow"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Operation cannot continue
    ERROR = "error"  # Unit of work failed but the batch can continue
    WARNING = "warning"  # Non-fatal issue
    INFO = "info"


@dataclass
class ErrorContext:
    """Context information for an error."""
    resource_id: Optional[str] = None
    resource_type: Optional[str] = None
    operation: Optional[str] = None
    aws_service: Optional[str] = None
    aws_operation: Optional[str] = None
    request_id: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


def remote_error_name(error: BaseException) -> str:
    """Identifying name of an error: the AWS error code, else the class name."""
    if isinstance(error, ClientError):
        code = error.response.get('Error', {}).get('Code')
        if code:
            return code
    return type(error).__name__


class PipelineError(Exception):
    """Base exception for uniform pipeline errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize pipeline error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to user-friendly message."""
        lines = [f"{self.severity.value.upper()}: {self.message}"]

        if self.context.resource_id:
            lines.append(f"   Resource: {self.context.resource_id}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")
        if self.cause:
            lines.append(f"   Cause: {str(self.cause)}")

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': {
                'resource_id': self.context.resource_id,
                'resource_type': self.context.resource_type,
                'operation': self.context.operation,
                'aws_service': self.context.aws_service,
                'aws_operation': self.context.aws_operation,
                'request_id': self.context.request_id,
                'additional_info': self.context.additional_info
            },
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class ConfigurationError(PipelineError):
    """Error in configuration file or settings."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class UnknownEnvironmentError(ConfigurationError):
    """A deployment plan entry references an unconfigured environment key."""

    def __init__(self, environment_key: str, available: List[str]):
        super().__init__(
            f"Unknown target environment '{environment_key}'",
            context=ErrorContext(resource_id=environment_key, operation='resolve_environment'),
            suggestions=[f"Configure one of: {', '.join(available) or '(none)'}"],
        )
        self.environment_key = environment_key


class NamelessPipelineError(ConfigurationError):
    """A pipeline resource has no declared name."""

    def __init__(self, logical_id: str):
        super().__init__(
            f"Unexpected empty pipeline name for resource {logical_id}",
            context=ErrorContext(resource_id=logical_id, resource_type='AWS::CodePipeline::Pipeline'),
        )


class TemplateShapeError(PipelineError):
    """A generated template does not have the shape a macro expects."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.TEMPLATE,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class UnexpectedActionConfigurationError(TemplateShapeError):
    """A changeset action does not carry the expected changeset name."""

    def __init__(self, action_name: str, found: Optional[str]):
        super().__init__(
            f"Unexpected action configuration on {action_name}: ChangeSetName is {found!r}",
            context=ErrorContext(resource_id=action_name, operation='rename_changeset'),
        )


class UnknownStageError(TemplateShapeError):
    """A pipeline stage has a name no role rule covers."""

    def __init__(self, stage_name: str):
        super().__init__(
            f"Unknown stage {stage_name}",
            context=ErrorContext(resource_id=stage_name, operation='reassign_roles'),
        )
        self.stage_name = stage_name


class UnexpectedActionCountError(TemplateShapeError):
    """A pipeline stage has a different number of actions than expected."""

    def __init__(self, stage_name: str, expected: int, found: int):
        super().__init__(
            f"Error transforming stage {stage_name}. Expected {expected} actions but found {found}",
            context=ErrorContext(resource_id=stage_name, operation='reassign_roles'),
        )


class UnknownCodeBuildProjectError(TemplateShapeError):
    """A CodeBuild project description matches no role rule."""

    def __init__(self, logical_id: str, description: Optional[str]):
        super().__init__(
            f"Unknown codebuild project {logical_id} ({description})",
            context=ErrorContext(
                resource_id=logical_id,
                resource_type='AWS::CodeBuild::Project',
                operation='reassign_roles',
            ),
        )


class RemoteServiceError(PipelineError):
    """A remote AWS call failed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.AWS,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class StackDeletionError(RemoteServiceError):
    """A CloudFormation stack could not be deleted."""

    def __init__(self, stack_name: str, cause: Exception):
        super().__init__(
            f'Failed to delete stack "{stack_name}"',
            context=ErrorContext(
                resource_id=stack_name,
                aws_service='cloudformation',
                aws_operation='DeleteStack',
            ),
            cause=cause,
        )


class ExecutionStatusError(RemoteServiceError):
    """The status of a pipeline execution could not be read."""


class WorkflowTimeoutError(PipelineError):
    """The cleanup workflow exceeded its overall timeout."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.WORKFLOW,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ErrorHandler:
    """Handles and categorizes errors from AWS and other sources."""

    AWS_ERROR_MAPPING = {
        'ExpiredToken': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS session token has expired',
            'suggestions': [
                'Refresh your AWS session credentials',
                'Re-authenticate with your identity provider',
            ]
        },
        'InvalidClientTokenId': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS credentials are invalid or expired',
            'suggestions': [
                'Verify credentials using: aws sts get-caller-identity',
            ]
        },
        'AccessDenied': {
            'category': ErrorCategory.PERMISSION,
            'message': 'Access denied - insufficient permissions',
            'suggestions': [
                'Check the IAM policies attached to your user/role',
                'Cleanup needs codepipeline:List*/Get* and cloudformation:DeleteStack',
            ]
        },
        'AccessDeniedException': {
            'category': ErrorCategory.PERMISSION,
            'message': 'Access denied - insufficient permissions',
            'suggestions': [
                'Check the IAM policies attached to your user/role',
            ]
        },
        'PipelineNotFoundException': {
            'category': ErrorCategory.AWS,
            'message': 'Pipeline not found',
            'suggestions': [
                'Verify the pipeline name and region',
            ]
        },
        'ThrottlingException': {
            'category': ErrorCategory.AWS,
            'message': 'API rate limit exceeded',
            'suggestions': [
                'Retry later; throttled calls are already retried with backoff',
            ]
        },
    }

    def __init__(self):
        self.logger = get_logger(__name__)

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> PipelineError:
        """Handle an exception and convert to PipelineError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred

        Returns:
            PipelineError with categorization and suggestions
        """
        context = context or ErrorContext()

        if isinstance(error, PipelineError):
            return error

        if isinstance(error, ClientError):
            return self._handle_aws_error(error, context)

        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            return PipelineError(
                message=f'AWS credential error: {error}',
                category=ErrorCategory.CREDENTIAL,
                severity=ErrorSeverity.CRITICAL,
                context=context,
                cause=error,
                suggestions=[
                    'Configure AWS credentials using: aws configure',
                    'Specify a profile with --profile',
                ]
            )

        return PipelineError(
            message=str(error),
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=['Check logs for more details']
        )

    def _handle_aws_error(self, error: ClientError, context: ErrorContext) -> PipelineError:
        error_code = error.response.get('Error', {}).get('Code', 'Unknown')
        error_message = error.response.get('Error', {}).get('Message', str(error))
        context.request_id = error.response.get('ResponseMetadata', {}).get('RequestId')
        context.aws_operation = error.operation_name

        error_info = self.AWS_ERROR_MAPPING.get(error_code)
        if error_info:
            return PipelineError(
                message=f"{error_info['message']}: {error_message}",
                category=error_info['category'],
                severity=ErrorSeverity.ERROR,
                context=context,
                cause=error,
                suggestions=error_info['suggestions']
            )

        return RemoteServiceError(
            f"AWS Error ({error_code}): {error_message}",
            context=context,
            cause=error,
            suggestions=[f'AWS Request ID: {context.request_id}'],
        )

    def log_error(self, error: PipelineError):
        """Log an error with appropriate level."""
        log_message = error.to_user_message()

        if error.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.ERROR):
            self.logger.error(log_message)
        elif error.severity == ErrorSeverity.WARNING:
            self.logger.warning(log_message)
        else:
            self.logger.info(log_message)

        self.logger.debug(f"Error details: {error.to_dict()}")


error_handler = ErrorHandler()
