from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from opensearch_repositories.dtos.import_result import ImportResult


class ReindexPartition(BaseModel):
    """One index to rebuild, as yielded by a strategy's partition iterator.

    ``query`` narrows the record store query to the records belonging to
    this index (e.g. one year of a time-based layout).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    index: str = Field(min_length=1)
    settings: Dict[str, Any]
    mappings: Dict[str, Any]
    query: Optional[Callable[[Any], Any]] = None
    verify_count_query: Optional[Dict[str, Any]] = Field(
        default_factory=lambda: {"query": {"match_all": {}}}
    )


class ReindexState(str, Enum):
    PENDING = "pending"
    CREATING_INDEX = "creating-index"
    IMPORTING = "importing"
    VERIFYING = "verifying"
    DONE = "done"


class VerificationResult(BaseModel):
    """A DTO comparing record store and search engine document counts."""

    index: str
    db_count: int
    search_count: int
    query: Dict[str, Any] = Field(default_factory=dict)
    # False when the index was not refreshed before counting
    reliable: bool = True

    @property
    def matched(self) -> bool:
        return self.db_count == self.search_count


class PartitionReport(BaseModel):
    index: str
    created: bool = False
    result: Optional[ImportResult] = None
    verification: Optional[VerificationResult] = None


class StrategyReindexResult(BaseModel):
    """Per-strategy outcome of a reindex call."""

    strategy_name: str
    entity_type: str
    state: ReindexState = ReindexState.PENDING
    partitions: List[PartitionReport] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(p.result.total for p in self.partitions if p.result)

    @property
    def errors(self) -> int:
        return sum(p.result.errors for p in self.partitions if p.result)


class ReindexReport(BaseModel):
    """Results of a reindex call keyed by ``"<EntityType>:<strategy name>"``."""

    results: Dict[str, StrategyReindexResult] = Field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(r.total for r in self.results.values())

    @property
    def errors(self) -> int:
        return sum(r.errors for r in self.results.values())

    @property
    def mismatches(self) -> List[VerificationResult]:
        return [
            p.verification
            for r in self.results.values()
            for p in r.partitions
            if p.verification is not None and not p.verification.matched
        ]

    def __getitem__(self, key: str) -> StrategyReindexResult:
        return self.results[key]
