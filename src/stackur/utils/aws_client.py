"""boto3 session and client construction for one deployment run."""

import re
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, NoCredentialsError, PartialCredentialsError

from stackur.utils.errors import error_handler
from stackur.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AWSCredentials:
    """Identity the session resolved to, as reported by STS."""
    account_id: str
    user_arn: str
    user_id: str
    region: str
    profile: Optional[str] = None

    @property
    def principal_name(self) -> str:
        """Last path segment of the caller ARN (user or role session name)."""
        return re.split(r'[/:]', self.user_arn)[-1]


class AWSClientManager:
    """Builds the boto3 session for a run and hands out cached clients.

    Constructed explicitly and passed to the providers, so two stacks in one
    process can deploy to different accounts or regions.
    """

    def __init__(
        self,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        max_attempts: int = 1,
        max_pool_connections: int = 10
    ):
        """Initialize client manager.

        Args:
            profile: Named profile from the AWS config files
            region: Region override; the profile or environment decides otherwise
            max_attempts: botocore attempts per call; 1 leaves failures to the caller
            max_pool_connections: HTTP connection pool size per client
        """
        self.profile = profile
        self.region = region
        self.client_config = Config(
            retries={'mode': 'standard', 'max_attempts': max_attempts},
            max_pool_connections=max_pool_connections,
            connect_timeout=10,
            read_timeout=60,
        )
        self._clients: Dict[str, Any] = {}
        self._credentials: Optional[AWSCredentials] = None

    @cached_property
    def session(self) -> boto3.Session:
        options = {'profile_name': self.profile, 'region_name': self.region}
        session = boto3.Session(**{key: value for key, value in options.items() if value})
        logger.info(f"Using AWS profile {self.profile or 'default'} in {session.region_name}")
        return session

    def get_client(self, service_name: str):
        """Client for ``service_name`` ('cloudformation', 's3', ...), created once."""
        client = self._clients.get(service_name)
        if client is None:
            client = self._clients[service_name] = self.session.client(service_name, config=self.client_config)
            logger.debug(f"Created {service_name} client")
        return client

    def validate_credentials(self) -> AWSCredentials:
        """Resolve the caller identity through STS, once per manager.

        Raises:
            CredentialError: If no usable credentials are configured
            DeploymentError: If STS rejects the credentials
        """
        if self._credentials is None:
            try:
                identity = self.get_client('sts').get_caller_identity()
            except (NoCredentialsError, PartialCredentialsError, ClientError) as e:
                raise error_handler.handle_exception(e) from e

            self._credentials = AWSCredentials(
                account_id=identity['Account'],
                user_arn=identity['Arn'],
                user_id=identity['UserId'],
                region=self.session.region_name,
                profile=self.profile,
            )
            logger.info(f"Deploying as {self._credentials.user_arn} "
                        f"(account {self._credentials.account_id})")

        return self._credentials

    def clear_cache(self) -> None:
        """Drop the session, its clients and the resolved identity."""
        self.__dict__.pop('session', None)
        self._clients.clear()
        self._credentials = None
