from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence

from opensearch_repositories.dtos.bulk_operation import BulkOperation

QueryFn = Callable[[Any], Any]


class ABCAdapter(ABC):
    """
    Abstract base class for record store adapters.

    An adapter knows how to read records of an entity type from one kind of
    backing store: in batches for importing, by id for resolving search hits,
    and as a count for verification. Query narrowing is expressed as callables
    receiving and returning the store's native query object.
    """

    def matches(self, entity_type: Any) -> bool:
        """Default registration condition; adapters override it to claim types."""
        return False

    @abstractmethod
    def find_in_batches(
        self,
        entity_type: Any,
        batch_size: int,
        scope: Optional[QueryFn] = None,
        query: Optional[QueryFn] = None,
        process_query: Optional[QueryFn] = None,
    ) -> Iterator[List[Any]]:
        """
        Lazily yield non-empty batches of at most ``batch_size`` records.

        Args:
            entity_type: The entity type to read.
            batch_size: Maximum number of records per batch.
            scope: Narrows the base query (e.g. a named filter).
            query: Applied after ``scope`` (e.g. a partition's time range).
            process_query: Applied last; used to avoid repeated fetches,
                e.g. by eager-loading related data.

        Backend errors propagate unchanged.
        """
        pass

    @abstractmethod
    def count(
        self,
        entity_type: Any,
        scope: Optional[QueryFn] = None,
        query: Optional[QueryFn] = None,
    ) -> int:
        """Count the records matched by the same narrowing as ``find_in_batches``."""
        pass

    @abstractmethod
    def fetch_by_ids(
        self,
        entity_type: Any,
        ids: Sequence[str],
        includes: Optional[Iterable[Any]] = None,
        order_by: Optional[Iterable[Any]] = None,
    ) -> List[Any]:
        """
        Fetch all records whose identity is in ``ids`` in one call.

        The returned order is whatever the store produces; missing ids are
        simply absent.
        """
        pass

    @abstractmethod
    def record_id(self, record: Any) -> str:
        """Return the record's identity as the string used in search hits."""
        pass

    def bulk_operation(self, record: Any, strategy) -> BulkOperation:
        """
        Template method building the default bulk descriptor for a record.

        - serializes with the strategy's reindex serializer
        - uses the strategy's custom document id, else the record id
        - omits the id when the strategy indexes without ids
        """
        operation = BulkOperation(op_type="index", body=strategy.reindex_serialize(record))
        if not strategy.index_without_id():
            doc_id = strategy.document_id(record)
            operation.id = str(doc_id) if doc_id is not None else self.record_id(record)
        return operation
