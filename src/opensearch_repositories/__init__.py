from typing import Any, Sequence, Union

from opensearch_repositories.adapters import ABCAdapter, AdapterRegistry, adapter_registry
from opensearch_repositories.dtos.bulk_operation import BulkOperation
from opensearch_repositories.dtos.import_result import BatchReport, ImportResult
from opensearch_repositories.dtos.options import (
    ImportOptions,
    RecordsOptions,
    ReindexOptions,
    SearchOptions,
)
from opensearch_repositories.dtos.reindex_report import ReindexPartition, ReindexReport
from opensearch_repositories.errors import (
    AdapterNotFoundError,
    ConfigurationError,
    ImportCancelledError,
    IndexMissingError,
    InfrastructureError,
    RepositoryError,
)
from opensearch_repositories.multistrategy import MultiStrategyWrapper
from opensearch_repositories.opensearch.open_search_client import (
    OpenSearchClient,
    get_default_client,
    set_default_client,
)
from opensearch_repositories.registry import StrategyRegistry, get_registry, init_registry
from opensearch_repositories.response import Records, Response, Result
from opensearch_repositories.services.bulk_import_service import BulkImportService
from opensearch_repositories.services.reindex_service import ReindexService
from opensearch_repositories.strategy.base_strategy import BaseStrategy


def search(
    query_or_payload: Any,
    strategies: Union[BaseStrategy, Sequence[BaseStrategy], MultiStrategyWrapper],
    options=None,
) -> Response:
    """Search one strategy, or several at once through a multi-strategy wrapper."""
    if isinstance(strategies, (BaseStrategy, MultiStrategyWrapper)):
        target = strategies
    else:
        target = MultiStrategyWrapper(strategies)
    return target.search(query_or_payload, options)


__all__ = [
    "ABCAdapter",
    "AdapterNotFoundError",
    "AdapterRegistry",
    "BaseStrategy",
    "BatchReport",
    "BulkImportService",
    "BulkOperation",
    "ConfigurationError",
    "ImportCancelledError",
    "ImportOptions",
    "ImportResult",
    "IndexMissingError",
    "InfrastructureError",
    "MultiStrategyWrapper",
    "OpenSearchClient",
    "Records",
    "RecordsOptions",
    "ReindexOptions",
    "ReindexPartition",
    "ReindexReport",
    "ReindexService",
    "RepositoryError",
    "Response",
    "Result",
    "SearchOptions",
    "StrategyRegistry",
    "adapter_registry",
    "get_default_client",
    "get_registry",
    "init_registry",
    "search",
    "set_default_client",
]
