import logging

import boto3
from opensearchpy import OpenSearch, RequestsHttpConnection
from requests_aws4auth import AWS4Auth

from opensearch_repositories.global_config import GlobalConfig, get_global_config
from opensearch_repositories.opensearch.abstract_classes import ABCClient

logger = logging.getLogger(__name__)


class OpenSearchClient(ABCClient):
    """Singleton OpenSearch client for connecting to an OpenSearch cluster.

    Implements the singleton pattern so every strategy that does not receive
    an explicit client shares one connection pool.
    """

    _instance = None
    _client: OpenSearch | None = None

    def __new__(cls, *args, **kwargs):
        """Create a singleton instance of OpenSearchClient.

        Returns:
            OpenSearchClient: The singleton instance of OpenSearchClient.
        """
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, config: GlobalConfig | None = None):
        """Initialize the OpenSearchClient.

        Args:
            config (GlobalConfig, optional): Settings used to build the client.
                Defaults to the process-wide configuration.
        """
        self.config = config or get_global_config()

    def get_client(self) -> OpenSearch:
        """Get the OpenSearch client instance, building it on first use.

        Returns:
            OpenSearch: The OpenSearch client instance.
        """
        if self.__class__._client is None:
            self.__class__._client = self._build_client()
        return self.__class__._client

    def _build_client(self) -> OpenSearch:
        hosts = [{"host": self.config.opensearch_host, "port": self.config.opensearch_port}]

        if self.config.aws_region:
            # Note: AWS IAM usually requires SSL to be True
            credentials = boto3.Session().get_credentials()
            awsauth = AWS4Auth(
                credentials.access_key,
                credentials.secret_key,
                self.config.aws_region,
                self.config.aws_service,
                session_token=credentials.token,
            )
            logger.info(f"Connecting to OpenSearch at {hosts[0]['host']} with AWS SigV4 auth")
            return OpenSearch(
                hosts=hosts,
                http_auth=awsauth,
                use_ssl=True,
                verify_certs=True,
                connection_class=RequestsHttpConnection,
            )

        http_auth = None
        if self.config.http_auth_user:
            http_auth = (self.config.http_auth_user, self.config.http_auth_password or "")

        logger.info(f"Connecting to OpenSearch at {hosts[0]['host']}:{hosts[0]['port']}")
        return OpenSearch(
            hosts=hosts,
            http_auth=http_auth,
            use_ssl=self.config.use_ssl,
            verify_certs=self.config.verify_certs,
        )

    @classmethod
    def reset(cls) -> None:
        """Forget the cached client (used when the configuration changes)."""
        cls._client = None


_default_client: OpenSearch | None = None


def get_default_client() -> OpenSearch:
    """Client used by strategies created without an explicit one."""
    if _default_client is not None:
        return _default_client
    return OpenSearchClient().get_client()


def set_default_client(client: OpenSearch | None) -> None:
    """Override the default client; ``None`` goes back to the singleton."""
    global _default_client
    _default_client = client
