"""Lambda entry points implementing the CloudFormation macro contract.

A macro receives ``{'fragment': ..., 'requestId': ...}`` and answers with
``{'requestId': ..., 'status': 'success' | 'failure', 'fragment': ...}``.
A failure status fails the transform with ``errorMessage``.
"""

from typing import Any, Callable, Dict, Optional

from uniform_pipelines.config.environments import EnvironmentTable
from uniform_pipelines.config.models import SharedRoleSettings
from uniform_pipelines.config.parser import DEVOPS_ENVIRONMENT_KEY
from uniform_pipelines.macros.changeset_renamer import ChangesetRenamer
from uniform_pipelines.macros.role_reassigner import RoleReassigner
from uniform_pipelines.utils.errors import PipelineError, error_handler
from uniform_pipelines.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

MacroTransform = Callable[[Dict[str, Any]], Dict[str, Any]]


def run_macro(event: Dict[str, Any], transform: MacroTransform, operation: str) -> Dict[str, Any]:
    """Apply ``transform`` to the event's fragment and build the macro response."""
    request_id = event.get('requestId')
    fragment = event.get('fragment')

    with LogContext(logger, request_id=request_id, operation=operation):
        try:
            transformed = transform(fragment)
        except PipelineError as e:
            error_handler.log_error(e)
            return {
                'requestId': request_id,
                'status': 'failure',
                'errorMessage': e.message,
                'fragment': fragment,
            }

        logger.info(f"{operation} succeeded")
        return {
            'requestId': request_id,
            'status': 'success',
            'fragment': transformed,
        }


def rename_changesets_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    return run_macro(event, ChangesetRenamer().rename, 'rename_changesets')


def shared_roles_from_environment() -> SharedRoleSettings:
    """Shared role settings for the devops account named by the environment."""
    devops = EnvironmentTable.from_environment([DEVOPS_ENVIRONMENT_KEY])[DEVOPS_ENVIRONMENT_KEY]
    return SharedRoleSettings(devops_account_id=devops.account_id)


def reassign_roles_handler(
    event: Dict[str, Any],
    context: Any,
    roles: Optional[SharedRoleSettings] = None,
) -> Dict[str, Any]:
    reassigner = RoleReassigner(roles or shared_roles_from_environment())
    return run_macro(event, reassigner.reassign_roles, 'reassign_roles')
