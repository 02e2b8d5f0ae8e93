import logging
import threading
from typing import Any, Callable, List, Optional, Tuple

from opensearch_repositories.adapters.abstract_classes import ABCAdapter
from opensearch_repositories.errors import AdapterNotFoundError

logger = logging.getLogger(__name__)

Condition = Callable[[Any], bool]


class AdapterRegistry:
    """Maps entity types to the adapter that reads their records.

    Adapters are tried in registration order; the first whose condition
    accepts the entity type wins. The default adapter, when set, catches
    every entity type no condition matched.
    """

    def __init__(self):
        self._adapters: List[Tuple[ABCAdapter, Condition]] = []
        self._default: Optional[ABCAdapter] = None
        self._lock = threading.Lock()

    def register(self, adapter: ABCAdapter, condition: Optional[Condition] = None) -> ABCAdapter:
        """Register an adapter.

        Args:
            adapter: The adapter instance.
            condition: Predicate on the entity type. Defaults to the
                adapter's own ``matches`` method.

        Returns:
            ABCAdapter: the registered adapter.
        """
        if condition is None:
            condition = adapter.matches
        with self._lock:
            self._adapters.append((adapter, condition))
        logger.debug(f"Registered adapter {type(adapter).__name__}")
        return adapter

    def set_default(self, adapter: Optional[ABCAdapter]) -> None:
        self._default = adapter

    @property
    def default(self) -> Optional[ABCAdapter]:
        return self._default

    def adapters(self) -> Tuple[ABCAdapter, ...]:
        with self._lock:
            return tuple(adapter for adapter, _ in self._adapters)

    def resolve(self, entity_type: Any) -> ABCAdapter:
        """Return the adapter for an entity type.

        Raises:
            AdapterNotFoundError: When nothing matches and there is no default.
        """
        with self._lock:
            candidates = list(self._adapters)

        for adapter, condition in candidates:
            if condition(entity_type):
                return adapter

        if self._default is not None:
            return self._default

        name = getattr(entity_type, "__name__", repr(entity_type))
        raise AdapterNotFoundError(
            f"no adapter registered for entity type '{name}' and no default adapter set"
        )

    def clear(self) -> None:
        with self._lock:
            self._adapters.clear()
        self._default = None


adapter_registry = AdapterRegistry()
