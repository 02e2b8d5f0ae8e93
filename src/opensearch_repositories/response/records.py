import logging
import re
from collections.abc import Sequence
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from opensearch_repositories.dtos.options import RecordsOptions
from opensearch_repositories.errors import ConfigurationError
from opensearch_repositories.global_config import get_global_config
from opensearch_repositories.response.result import Result

logger = logging.getLogger(__name__)

RecordHit = Tuple[Any, Optional[Result]]


def _unique(values: List[str]) -> List[str]:
    return list(dict.fromkeys(v for v in values if v is not None))


def _snake_case(name: str) -> str:
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name).lower()


def resolve_single(strategy, results: List[Result], options: RecordsOptions) -> List[RecordHit]:
    """Fetch the records of one strategy and put them in hit order.

    When the caller orders the fetch explicitly the fetched order is kept,
    which is only allowed with ``allow_explicit_order``.
    """
    allow_order = options.allow_explicit_order
    if allow_order is None:
        allow_order = get_global_config().allow_explicit_order
    if options.order_by and not allow_order:
        raise ConfigurationError(
            "ordering records explicitly requires allow_explicit_order, since the "
            "records would no longer follow the search ranking"
        )

    ids = _unique([hit.id for hit in results])
    if not ids:
        return []

    adapter = strategy.adapter
    fetched = adapter.fetch_by_ids(
        strategy.entity_type, ids, includes=options.includes, order_by=options.order_by
    )

    if options.order_by:
        hits_by_id = {hit.id: hit for hit in results}
        return [(record, hits_by_id.get(adapter.record_id(record))) for record in fetched]

    by_id = {adapter.record_id(record): record for record in fetched}
    return [(by_id[hit.id], hit) for hit in results if hit.id in by_id]


def _includes_for(strategy, options: RecordsOptions) -> Optional[List[Any]]:
    includes = options.multimodel_includes
    if includes is None or isinstance(includes, list):
        return includes

    selected: List[Any] = []
    for key in (strategy.entity_type_name, _snake_case(strategy.entity_type_name), "all"):
        selected.extend(includes.get(key) or [])
    return selected


def resolve_multi(wrapper, results: List[Result], options: RecordsOptions) -> List[RecordHit]:
    """Resolve hits of several entity types, preserving hit order.

    Hits are grouped by the type marker stored in their source, each group
    is fetched with one call to its type's adapter, then the records are
    projected back onto the hit order. Hits of unknown types and hits whose
    record no longer exists are dropped.
    """
    if options.order_by:
        raise ConfigurationError("explicit ordering is not supported across several entity types")

    type_field = get_global_config().type_field
    strategies = {}
    for strategy in wrapper.strategies:
        strategies.setdefault(strategy.entity_type_name, strategy)

    ids_by_type: Dict[str, List[str]] = {}
    for hit in results:
        type_name = hit.entity_type_name(type_field)
        if type_name not in strategies:
            logger.debug(f"Skipping hit {hit.id}: unknown entity type {type_name!r}")
            continue
        ids_by_type.setdefault(type_name, []).append(hit.id)

    records_by_type: Dict[str, Dict[str, Any]] = {}
    for type_name, ids in ids_by_type.items():
        strategy = strategies[type_name]
        adapter = strategy.adapter
        fetched = adapter.fetch_by_ids(
            strategy.entity_type, _unique(ids), includes=_includes_for(strategy, options)
        )
        records_by_type[type_name] = {adapter.record_id(record): record for record in fetched}

    resolved: List[RecordHit] = []
    for hit in results:
        record = records_by_type.get(hit.entity_type_name(type_field), {}).get(hit.id)
        if record is not None:
            resolved.append((record, hit))
    return resolved


class Records(Sequence):
    """Domain records behind a search response, in hit order."""

    def __init__(self, target, response, options: Optional[RecordsOptions] = None):
        self.target = target
        self.response = response
        self.options = RecordsOptions.of(options)
        self._pairs: Optional[List[RecordHit]] = None

    @property
    def ids(self) -> List[Optional[str]]:
        return [hit.id for hit in self.response.results]

    @property
    def results(self) -> List[Result]:
        return self.response.results

    def _resolve(self) -> List[RecordHit]:
        if self._pairs is None:
            # a multi-strategy wrapper exposes its members as ``strategies``
            if hasattr(self.target, "strategies"):
                self._pairs = resolve_multi(self.target, self.results, self.options)
            else:
                self._pairs = resolve_single(self.target, self.results, self.options)
        return self._pairs

    @property
    def records(self) -> List[Any]:
        return [record for record, _ in self._resolve()]

    def each_with_hit(self) -> Iterator[RecordHit]:
        """Yield ``(record, hit)`` pairs."""
        return iter(self._resolve())

    def map_with_hit(self, fn: Callable[[Any, Optional[Result]], Any]) -> List[Any]:
        return [fn(record, hit) for record, hit in self._resolve()]

    def __getitem__(self, item):
        return self.records[item]

    def __len__(self) -> int:
        return len(self._resolve())

    def __iter__(self):
        return iter(self.records)
