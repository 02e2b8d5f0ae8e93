import logging
from typing import Any, Callable, Dict, Iterator, Optional, Union

from opensearchpy import OpenSearch
from opensearchpy.exceptions import NotFoundError

from opensearch_repositories.adapters.abstract_classes import ABCAdapter
from opensearch_repositories.adapters.adapter_registry import adapter_registry
from opensearch_repositories.dtos.reindex_report import ReindexPartition
from opensearch_repositories.errors import ConfigurationError
from opensearch_repositories.opensearch.mapping import Mappings, Settings
from opensearch_repositories.opensearch.open_search_client import get_default_client
from opensearch_repositories.strategy.configuration import (
    CONFIGURABLE_METHODS,
    StrategyConfig,
    merge_config,
    to_index_model_name,
)
from opensearch_repositories.strategy.management import ManagementMixin
from opensearch_repositories.strategy.searching import SearchingMixin

logger = logging.getLogger(__name__)

INDEXING_ACTIONS = ("create", "update", "delete")


class BaseStrategy(ManagementMixin, SearchingMixin):
    """One indexing policy for one entity type.

    A strategy decides which index receives a record, which indices are
    searched, how a record becomes a document and which schema the indices
    use. Subclass it and override methods, or pass callables to
    :meth:`configure`::

        class PostStrategy(BaseStrategy):
            def setup(self):
                self.set_settings({"index": {"number_of_shards": 1}})
                self.set_mappings(children=lambda m: m.indexes("title"))

            def serialize(self, record):
                return {"id": record.id, "title": record.title}

    Instances are shared by every task indexing or searching the entity type.
    Do not keep per-call state on them, and do not call :meth:`configure`
    while imports using the strategy are running.
    """

    CONFIGURABLE_METHODS = CONFIGURABLE_METHODS

    def __init__(
        self,
        entity_type: Any,
        client: Optional[OpenSearch] = None,
        name: str = "main",
        adapter: Optional[ABCAdapter] = None,
        **overrides,
    ):
        """
        Args:
            entity_type: The class whose records this strategy indexes.
            client: OpenSearch client, defaults to the package default client.
            name: Identifier of the strategy, unique per entity type.
            adapter: Record store adapter, resolved from the adapter registry
                when omitted.
            **overrides: Behaviour overrides, see :meth:`configure`.
        """
        self.entity_type = entity_type
        self.name = name
        self._client = client
        self.adapter = adapter or adapter_registry.resolve(entity_type)
        self.config = StrategyConfig()
        self._mappings = Mappings({}, self)
        self._settings = Settings()

        self.setup()
        if overrides:
            self.configure(**overrides)

    def setup(self) -> None:
        """Hook for subclasses to declare settings and mappings."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.qualified_name}>"

    @property
    def client(self) -> OpenSearch:
        return self._client if self._client is not None else get_default_client()

    @property
    def entity_type_name(self) -> str:
        return getattr(self.entity_type, "__name__", str(self.entity_type))

    @property
    def qualified_name(self) -> str:
        return f"{self.entity_type_name}:{self.name}"

    # configuration

    def configure(self, **overrides) -> "BaseStrategy":
        """Replace behaviours in one step.

        Each keyword names a configurable method and maps to a callable
        receiving the strategy followed by the method's arguments, or to a
        constant value.

        Raises:
            ConfigurationError: On unknown method names.
        """
        self.config = merge_config(self.config, overrides)
        return self

    def update(
        self,
        settings: Optional[Dict[str, Any]] = None,
        mapping_options: Optional[Dict[str, Any]] = None,
        mappings: Optional[Callable[[Mappings], Any]] = None,
        **overrides,
    ) -> "BaseStrategy":
        """Merge schema changes and replace behaviours.

        Settings and mappings merge into the cached schema; behaviours are
        swapped through :meth:`configure`.
        """
        if settings:
            self.set_settings(settings)
        if mapping_options or mappings:
            self.set_mappings(mapping_options, children=mappings)
        if overrides:
            self.configure(**overrides)
        return self

    def _dispatch(self, name: str, default: Callable[..., Any], *args):
        override = getattr(self.config, name)
        if override is None:
            return default(*args)
        return override(self, *args)

    # schema

    @property
    def mappings(self) -> Mappings:
        return self._mappings

    @property
    def settings(self) -> Settings:
        return self._settings

    def set_mappings(
        self,
        options: Optional[Dict[str, Any]] = None,
        children: Optional[Callable[[Mappings], Any]] = None,
    ) -> Mappings:
        """Merge mapping options and declare fields on the cached mappings."""
        if options:
            self._mappings.update_options(options)
        if children is not None:
            children(self._mappings)
        return self._mappings

    def set_settings(self, settings: Optional[Dict[str, Any]] = None) -> Settings:
        if settings:
            self._settings.update(settings)
        return self._settings

    # naming

    def base_index_name(self) -> str:
        return to_index_model_name(self.entity_type_name)

    def search_index_name(self) -> Union[str, list]:
        """Index name or pattern queried for reads."""
        return self._dispatch("search_index_name", self.base_index_name)

    def target_index_name(self, record: Any) -> str:
        """Index that receives ``record``."""
        return self._dispatch("target_index_name", lambda record: self.base_index_name(), record)

    def current_index_name(self) -> str:
        """Index used by index management calls by default."""
        return self._dispatch("current_index_name", self.base_index_name)

    # serialization

    def index_without_id(self) -> bool:
        """If true, document ids are generated by the search backend."""
        return bool(self._dispatch("index_without_id", lambda: False))

    def document_id(self, record: Any) -> Optional[str]:
        """Custom document id; ``None`` uses the record's own id."""
        return self._dispatch("document_id", lambda record: None, record)

    def serialize(self, record: Any) -> Dict[str, Any]:
        """Turn a record into a document body."""
        return self._dispatch("serialize", self._default_serialize, record)

    def reindex_serialize(self, record: Any) -> Dict[str, Any]:
        """Serializer used by bulk imports, defaults to :meth:`serialize`."""
        return self._dispatch("reindex_serialize", self.serialize, record)

    def _default_serialize(self, record: Any) -> Dict[str, Any]:
        if hasattr(record, "model_dump"):
            return record.model_dump(mode="json")
        if hasattr(record, "to_dict"):
            return record.to_dict()
        raise ConfigurationError(
            f"{self.qualified_name} cannot serialize {type(record).__name__}; "
            "override serialize or configure(serialize=...)"
        )

    # importing

    def reindex_process_query(self) -> Optional[Callable[[Any], Any]]:
        """Query callable applied while reindexing, e.g. to eager-load relations."""
        return self._dispatch("reindex_process_query", lambda: None)

    def reload_indices_iterator(self, start_time=None, end_time=None) -> Iterator[ReindexPartition]:
        """Yield the partitions to rebuild.

        The default is one partition holding every record in
        ``current_index_name()``. Time-based layouts override it to yield one
        partition per index between ``start_time`` and ``end_time``.
        """
        return iter(self._dispatch("reload_indices_iterator", self._single_partition, start_time, end_time))

    def _single_partition(self, start_time=None, end_time=None):
        yield ReindexPartition(
            index=self.current_index_name(),
            settings=self.settings.to_dict(),
            mappings=self.mappings.to_dict(),
        )

    # indexing

    def index_record(self, action: str, record: Any) -> Optional[Dict[str, Any]]:
        """Index, upsert or delete one record.

        This is the entry point lifecycle hooks call after a record is
        created, updated or deleted.

        Args:
            action: ``create``, ``update`` or ``delete``.
            record: The record.
        """
        if action not in INDEXING_ACTIONS:
            raise ConfigurationError(
                f"unknown indexing action '{action}', expected one of {', '.join(INDEXING_ACTIONS)}"
            )
        return self._dispatch("index_record", self._index_record, action, record)

    def _index_record(self, action: str, record: Any) -> Optional[Dict[str, Any]]:
        index = self.target_index_name(record)

        if action == "create" and self.index_without_id():
            return self.client.index(index=index, body=self.serialize(record))

        if self.index_without_id():
            raise ConfigurationError(
                f"{self.qualified_name} indexes without ids, '{action}' cannot address a document"
            )

        doc_id = self.document_id(record)
        doc_id = str(doc_id) if doc_id is not None else self.adapter.record_id(record)

        if action == "create":
            return self.client.index(index=index, id=doc_id, body=self.serialize(record))
        if action == "update":
            return self.client.update(
                index=index, id=doc_id, body={"doc": self.serialize(record), "doc_as_upsert": True}
            )

        try:
            return self.client.delete(index=index, id=doc_id)
        except NotFoundError:
            logger.debug(f"Document '{doc_id}' not found in '{index}', nothing to delete")
            return None
