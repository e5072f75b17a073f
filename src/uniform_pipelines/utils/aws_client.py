"""AWS client management and session handling."""

import boto3
from botocore.config import Config
from typing import Optional, Dict, Any
from uniform_pipelines.utils.logging import get_logger

logger = get_logger(__name__)


class AWSClientManager:
    """Manages a boto3 session and cached service clients."""

    def __init__(
        self,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        max_pool_connections: int = 10
    ):
        """Initialize AWS client manager.

        Args:
            profile: AWS profile name to use
            region: AWS region to use
            max_pool_connections: Maximum number of connections in the connection pool
        """
        self.profile = profile
        self.region = region
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}

        # Throttling is retried by RetryStrategy, so botocore keeps its
        # standard mode with few attempts.
        self._boto_config = Config(
            max_pool_connections=max_pool_connections,
            retries={
                'mode': 'standard',
                'max_attempts': 3
            },
            connect_timeout=10,
            read_timeout=60
        )

    @property
    def session(self) -> boto3.Session:
        """Get or create boto3 session."""
        if self._session is None:
            kwargs = {}
            if self.profile:
                kwargs['profile_name'] = self.profile
            if self.region:
                kwargs['region_name'] = self.region

            self._session = boto3.Session(**kwargs)
            logger.info(f"Created AWS session - Region: {self._session.region_name}, "
                        f"Profile: {self.profile or 'default'}")

        return self._session

    def get_client(self, service_name: str):
        """Get a cached boto3 client for a service.

        Args:
            service_name: AWS service name (e.g., 'codepipeline', 'cloudformation')

        Returns:
            Boto3 client for the service
        """
        if service_name not in self._clients:
            self._clients[service_name] = self.session.client(service_name, config=self._boto_config)
            logger.debug(f"Created {service_name} client")
        return self._clients[service_name]

