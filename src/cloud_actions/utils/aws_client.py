"""boto3 session and client cache for one set of credentials."""

from typing import Any, Dict, Optional

import boto3
from botocore.config import Config

from cloud_actions.utils.logging import get_logger

logger = get_logger(__name__)


class AWSClientManager:
    """Lazily builds one boto3 session and one client per service.

    Throttling and dropped connections inside a single API call are retried
    by botocore's ``standard`` retry mode. Nothing above this layer retries
    a call.
    """

    def __init__(
        self,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        connect_timeout: int = 10,
        read_timeout: int = 60,
        max_attempts: int = 3
    ):
        """Initialize client manager.

        Args:
            region: AWS region of every client
            access_key_id: Request credentials; the default chain is used if None
            secret_access_key: Secret matching access_key_id
            endpoint_url: Endpoint override for every client, e.g. a local emulator
            connect_timeout: Socket connect timeout in seconds
            read_timeout: Socket read timeout in seconds
            max_attempts: botocore attempts per API call, first try included
        """
        self.region = region
        self.endpoint_url = endpoint_url
        self._credentials: Dict[str, str] = {}
        if access_key_id:
            self._credentials = {
                'aws_access_key_id': access_key_id,
                'aws_secret_access_key': secret_access_key,
            }

        self.boto_config = Config(
            retries={'mode': 'standard', 'max_attempts': max_attempts},
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
        )
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}

    @property
    def session(self) -> boto3.Session:
        if self._session is None:
            self._session = boto3.Session(region_name=self.region, **self._credentials)
            source = "request credentials" if self._credentials else "default credential chain"
            logger.debug(f"Created AWS session for {self._session.region_name} from {source}")
        return self._session

    def get_client(self, service_name: str):
        """Get the cached client for a service, creating it on first use.

        Args:
            service_name: boto3 service name ('ec2', 'elasticache')

        Returns:
            boto3 client
        """
        client = self._clients.get(service_name)
        if client is None:
            client = self.session.client(
                service_name, config=self.boto_config, endpoint_url=self.endpoint_url
            )
            self._clients[service_name] = client
            logger.debug(f"Created {service_name} client for {self.region}")
        return client
