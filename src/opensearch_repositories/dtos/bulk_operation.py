from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, model_validator


class BulkOperation(BaseModel):
    """A DTO for one document-level instruction of a bulk request."""

    op_type: Literal["index", "create", "update"] = "index"
    id: Optional[str] = None
    index: Optional[str] = None
    body: Dict[str, Any]

    @model_validator(mode="after")
    def _check_identity(self) -> "BulkOperation":
        # upserts address an existing document, only inserts may omit the id
        if self.op_type == "update" and self.id is None:
            raise ValueError("update operations require an explicit document id")
        return self

    def to_actions(self) -> List[Dict[str, Any]]:
        """Return the action/metadata line followed by the source line."""
        meta: Dict[str, Any] = {}
        if self.index is not None:
            meta["_index"] = self.index
        if self.id is not None:
            meta["_id"] = self.id

        if self.op_type == "update":
            return [{"update": meta}, {"doc": self.body, "doc_as_upsert": True}]
        return [{self.op_type: meta}, self.body]
