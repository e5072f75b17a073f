"""CloudFormation calls used by the batch stack deleter."""

from botocore.exceptions import BotoCoreError, ClientError

from uniform_pipelines.utils.errors import StackDeletionError
from uniform_pipelines.utils.logging import get_logger
from uniform_pipelines.utils.retry import retrying

logger = get_logger(__name__)


class CloudFormationGateway:
    """Throttling-safe stack deletion."""

    def __init__(self, client):
        """
        Args:
            client: Boto3 CloudFormation client
        """
        self.client = client

    def delete_stack(self, stack_name: str) -> None:
        """Request deletion of a stack.

        Deleting a stack that no longer exists is accepted by CloudFormation
        as a no-op.

        Raises:
            StackDeletionError: If the request fails after retries, including
                connection, timeout and credential failures
        """
        try:
            self._delete_stack(stack_name)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error deleting CloudFormation stack {stack_name}: {e}")
            raise StackDeletionError(stack_name, e) from e

    @retrying()
    def _delete_stack(self, stack_name: str) -> None:
        self.client.delete_stack(StackName=stack_name)
