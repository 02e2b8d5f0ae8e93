from typing import Any, Dict, Optional


class Result(dict):
    """One hit returned by the search backend."""

    @property
    def id(self) -> Optional[str]:
        """Document identity.

        The ``id`` embedded in the source wins over the backend ``_id``
        since several strategies may share one index and their ``_id``s can
        collide.
        """
        source_id = self.source.get("id")
        if source_id is not None:
            return str(source_id)
        doc_id = self.get("_id")
        return str(doc_id) if doc_id is not None else None

    @property
    def source(self) -> Dict[str, Any]:
        return self.get("_source") or {}

    @property
    def score(self) -> Optional[float]:
        return self.get("_score")

    @property
    def index(self) -> Optional[str]:
        return self.get("_index")

    def entity_type_name(self, type_field: str = "type") -> Optional[str]:
        """Entity type marker stored in the source document."""
        value = self.source.get(type_field)
        return str(value) if value is not None else None
