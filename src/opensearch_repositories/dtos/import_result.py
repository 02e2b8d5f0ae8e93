from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BatchReport(BaseModel):
    """A DTO describing one processed batch, handed to ``on_batch`` callbacks."""

    model_config = ConfigDict(frozen=True)

    strategy_name: str
    index: str
    batch_number: int
    size: int
    errors: int
    error_items: List[Dict[str, Any]] = Field(default_factory=list)
    took_ms: Optional[int] = None
    bulkify_per_s: Optional[float] = None
    bulk_req_per_s: Optional[float] = None
    indexing_speed_per_s: Optional[float] = None
    response: Dict[str, Any] = Field(default_factory=dict)


class ImportResult(BaseModel):
    """A DTO with the aggregated counters of one import call.

    Throughput fields are arithmetic means over the sampled batches, in
    documents per second; ``None`` when no batch could be measured.
    """

    model_config = ConfigDict(frozen=True)

    index: str
    total: int = 0
    errors: int = 0
    batches: int = 0
    error_items: List[Dict[str, Any]] = Field(default_factory=list)
    bulkify_per_s: Optional[float] = None
    bulk_req_per_s: Optional[float] = None
    indexing_speed_per_s: Optional[float] = None
