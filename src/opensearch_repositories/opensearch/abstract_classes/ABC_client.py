from abc import ABC, abstractmethod

from opensearchpy import OpenSearch


class ABCClient(ABC):
    """Abstract base class for objects that hand out an OpenSearch client."""

    @abstractmethod
    def get_client(self) -> OpenSearch:
        """Return an instance of the OpenSearch client."""
        raise NotImplementedError
