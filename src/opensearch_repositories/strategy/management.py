import logging
from typing import Any, Dict, List, Optional

from opensearchpy.exceptions import NotFoundError

from opensearch_repositories.dtos.reindex_report import ReindexPartition

logger = logging.getLogger(__name__)


class ManagementMixin:
    """Index lifecycle operations of a strategy: create, delete, exists, refresh."""

    def create_index(
        self,
        index: Optional[str] = None,
        force: bool = False,
        settings: Optional[Dict[str, Any]] = None,
        mappings: Optional[Dict[str, Any]] = None,
        **params,
    ) -> Optional[Dict[str, Any]]:
        """Create an index with the strategy's schema.

        Args:
            index: Index name, defaults to ``current_index_name()``.
            force: Delete the index first if it exists.
            settings: Overrides the strategy settings.
            mappings: Overrides the strategy mappings.
            **params: Passed to ``indices.create``.

        Returns:
            dict | None: The backend response, ``None`` if the index already
            existed (creating an existing index is a no-op).
        """
        index = index or self.current_index_name()

        if force:
            self.delete_index(index=index)

        if self.index_exists(index=index):
            logger.debug(f"Index '{index}' already exists, not creating it")
            return None

        body = {
            "settings": settings if settings is not None else self.settings.to_dict(),
            "mappings": mappings if mappings is not None else self.mappings.to_dict(),
        }
        logger.info(f"Creating index '{index}' for {self.qualified_name}")
        return self.client.indices.create(index=index, body=body, **params)

    def delete_index(self, index: Optional[str] = None, **params) -> Optional[Dict[str, Any]]:
        """Delete an index; a missing index is not an error."""
        index = index or self.current_index_name()
        try:
            return self.client.indices.delete(index=index, **params)
        except NotFoundError as e:
            logger.debug(f"Index '{index}' does not exist ({e.__class__.__name__})")
            return None

    def index_exists(self, index: Optional[str] = None, **params) -> bool:
        index = index or self.current_index_name()
        return bool(self.client.indices.exists(index=index, **params))

    def refresh_index(self, index: Optional[str] = None, **params) -> Optional[Dict[str, Any]]:
        """Refresh an index so recent writes become searchable."""
        index = index or self.current_index_name()
        try:
            return self.client.indices.refresh(index=index, **params)
        except NotFoundError as e:
            logger.debug(f"Index '{index}' does not exist ({e.__class__.__name__})")
            return None

    def all_indices(self, start_time=None, end_time=None, from_api: bool = False) -> List[str]:
        """List the strategy's indices.

        With ``from_api`` the cluster is asked for every index matching the
        search index name; otherwise the partition iterator is walked.
        """
        if from_api:
            try:
                rows = self.client.cat.indices(
                    index=self.search_index_name(), h="index", format="json"
                )
            except NotFoundError as e:
                logger.debug(f"No index matches {self.search_index_name()} ({e})")
                return []
            return [row["index"] for row in rows if row.get("index")]

        partitions = self.reload_indices_iterator(start_time, end_time)
        return [ReindexPartition.model_validate(p).index for p in partitions]
