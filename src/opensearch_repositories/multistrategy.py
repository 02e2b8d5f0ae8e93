from typing import Any, List, Sequence, Tuple

from opensearchpy import OpenSearch

from opensearch_repositories.errors import ConfigurationError
from opensearch_repositories.strategy.searching import SearchingMixin


class MultiStrategyWrapper(SearchingMixin):
    """Several strategies searched as one target.

    The wrapper searches the union of the members' read indices through
    their shared client. Records of the hits are resolved per entity type,
    see ``Response.records``.
    """

    def __init__(self, strategies: Sequence):
        """
        Raises:
            ConfigurationError: No strategies, or members using different
                clients.
        """
        self._strategies: Tuple = tuple(strategies)
        if not self._strategies:
            raise ConfigurationError("a multi-strategy search needs at least one strategy")

        clients = []
        for strategy in self._strategies:
            if not any(strategy.client is client for client in clients):
                clients.append(strategy.client)
        if len(clients) != 1:
            names = ", ".join(s.qualified_name for s in self._strategies)
            raise ConfigurationError(f"strategies must share the same client: {names}")
        self._client = clients[0]

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {[s.qualified_name for s in self._strategies]}>"

    @property
    def strategies(self) -> Tuple:
        return self._strategies

    @property
    def client(self) -> OpenSearch:
        return self._client

    @property
    def entity_types(self) -> List[Any]:
        return [strategy.entity_type for strategy in self._strategies]

    def search_index_name(self) -> List[str]:
        names: List[str] = []
        for strategy in self._strategies:
            index = strategy.search_index_name()
            for name in index if isinstance(index, (list, tuple)) else [index]:
                if name not in names:
                    names.append(name)
        return names
