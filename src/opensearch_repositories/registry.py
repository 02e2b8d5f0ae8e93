import logging
import threading
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from opensearchpy import OpenSearch

from opensearch_repositories.adapters.abstract_classes import ABCAdapter
from opensearch_repositories.dtos.reindex_report import ReindexReport
from opensearch_repositories.errors import ConfigurationError
from opensearch_repositories.services.reindex_service import ReindexService
from opensearch_repositories.strategy.base_strategy import BaseStrategy

logger = logging.getLogger(__name__)


def _type_name(entity_type: Any) -> str:
    return getattr(entity_type, "__name__", repr(entity_type))


class StrategyRegistry:
    """Process-wide registry of the strategies of every indexed entity type.

    Strategies are only ever added; reads return snapshot tuples so callers
    can iterate them while other threads register new strategies.
    """

    def __init__(self, reindex_service: Optional[ReindexService] = None):
        self._strategies: Dict[Any, List[BaseStrategy]] = {}
        self._indexed_types: List[Any] = []
        self._lock = threading.Lock()
        self._reindex_service = reindex_service or ReindexService()

    def register_strategy(
        self,
        entity_type: Any,
        strategy_class: Type[BaseStrategy] = BaseStrategy,
        name: str = "main",
        client: Optional[OpenSearch] = None,
        adapter: Optional[ABCAdapter] = None,
        **overrides,
    ) -> BaseStrategy:
        """Create and register a strategy for an entity type.

        Raises:
            ConfigurationError: When the entity type already has a strategy
                with this name.
            AdapterNotFoundError: When no adapter handles the entity type.
        """
        with self._lock:
            self._check_unique(entity_type, name)
        # built unlocked, setup() may read the registry
        strategy = strategy_class(entity_type, client=client, name=name, adapter=adapter, **overrides)

        with self._lock:
            self._check_unique(entity_type, name)
            self._strategies.setdefault(entity_type, []).append(strategy)
            if entity_type not in self._indexed_types:
                self._indexed_types.append(entity_type)

        logger.debug(f"Registered strategy {strategy.qualified_name}")
        return strategy

    def _check_unique(self, entity_type: Any, name: str) -> None:
        if any(s.name == name for s in self._strategies.get(entity_type, ())):
            raise ConfigurationError(
                f"duplicate strategy name '{name}' on entity type {_type_name(entity_type)}"
            )

    def update_strategy(self, entity_type: Any, name: str, **changes) -> BaseStrategy:
        """Apply ``BaseStrategy.update`` to a registered strategy.

        Not synchronized with imports using the strategy; call it while
        configuring, not while indexing.
        """
        return self.strategy(entity_type, name).update(**changes)

    def get_strategy(self, entity_type: Any, name: str) -> Optional[BaseStrategy]:
        for strategy in self.strategies(entity_type):
            if strategy.name == name:
                return strategy
        return None

    def strategy(self, entity_type: Any, name: str) -> BaseStrategy:
        """Like :meth:`get_strategy` but raises ``ConfigurationError`` when missing."""
        strategy = self.get_strategy(entity_type, name)
        if strategy is None:
            raise ConfigurationError(f"strategy '{name}' not found on entity type {_type_name(entity_type)}")
        return strategy

    def strategies(self, entity_type: Any) -> Tuple[BaseStrategy, ...]:
        with self._lock:
            return tuple(self._strategies.get(entity_type, ()))

    def default_strategy(self, entity_type: Any) -> BaseStrategy:
        """The first strategy registered for the entity type."""
        strategies = self.strategies(entity_type)
        if not strategies:
            raise ConfigurationError(f"no strategy registered on entity type {_type_name(entity_type)}")
        return strategies[0]

    def indexed_types(self) -> Tuple[Any, ...]:
        with self._lock:
            return tuple(self._indexed_types)

    def all_indices(self, entity_type: Any, start_time=None, end_time=None, from_api: bool = False) -> List[str]:
        indices: List[str] = []
        for strategy in self.strategies(entity_type):
            indices.extend(strategy.all_indices(start_time, end_time, from_api=from_api))
        return indices

    def create_indices(self, entity_type: Any, start_time=None, end_time=None, **params) -> List[str]:
        return self._reindex_service.create_indices(
            self.strategies(entity_type), start_time=start_time, end_time=end_time, **params
        )

    def reload_indices(self, entity_type: Any, options=None) -> ReindexReport:
        return self._reindex_service.reload_indices(self.strategies(entity_type), options)

    def index_with_strategy(
        self,
        record: Any,
        strategy: Union[str, BaseStrategy] = "main",
        action: str = "create",
        entity_type: Any = None,
    ) -> Optional[Dict[str, Any]]:
        """Index one record with one strategy, given by name or instance."""
        if not isinstance(strategy, BaseStrategy):
            strategy = self.strategy(entity_type or type(record), strategy)
        return strategy.index_record(action, record)

    def index_with_all_strategies(
        self, record: Any, action: str = "create", entity_type: Any = None
    ) -> List[Optional[Dict[str, Any]]]:
        """Index one record with every strategy of its entity type."""
        return [
            strategy.index_record(action, record)
            for strategy in self.strategies(entity_type or type(record))
        ]


_registry: Optional[StrategyRegistry] = None
_registry_lock = threading.Lock()


def init_registry(reindex_service: Optional[ReindexService] = None) -> StrategyRegistry:
    """Install a fresh process-wide registry, typically once at startup."""
    global _registry
    with _registry_lock:
        _registry = StrategyRegistry(reindex_service)
        return _registry


def get_registry() -> StrategyRegistry:
    """Return the process-wide registry, creating it on first use."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = StrategyRegistry()
        return _registry
