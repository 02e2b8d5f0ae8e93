import threading
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from opensearch_repositories.errors import ConfigurationError

OptionsT = TypeVar("OptionsT", bound="Options")

RefreshInterval = Optional[Union[Literal[False], str, int]]


class Options(BaseModel):
    """Base for per-operation option structs; unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    @classmethod
    def of(cls: type[OptionsT], options: Union[OptionsT, Mapping[str, Any], None] = None, **overrides) -> OptionsT:
        """Build options from an instance, a mapping and/or keyword overrides.

        Raises:
            ConfigurationError: On unknown keys or invalid values.
        """
        if isinstance(options, cls):
            if not overrides:
                return options
            values = {name: getattr(options, name) for name in options.model_fields_set}
        else:
            values = dict(options or {})
        values.update(overrides)
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"invalid {cls.__name__}: {e}") from e


class ImportOptions(Options):
    """Options of a single import into one index.

    Attributes:
        batch_size: Records fetched per batch.
        batch_sleep: Seconds to wait between two batches.
        force: Recreate the index before importing.
        refresh: Refresh the index once after the last batch.
        tmp_refresh_interval: ``refresh_interval`` used while importing;
            ``False`` leaves the setting untouched, ``None`` resets it to the
            cluster default.
        refresh_interval: Value restored after the import. Read from the
            index when not given.
        bulkify: ``(record, strategy) -> BulkOperation`` replacing the
            adapter's default descriptor builder.
        on_batch: Called with a ``BatchReport`` after every bulk request.
        scope: Narrows the record query before batching.
        query: Replaces or extends the record query before batching.
        process_query: Applied last, e.g. to eager-load relations.
        bulk_request_params: Extra parameters for every bulk call.
        pipeline: Ingest pipeline for the bulk calls.
        request_timeout: Timeout in seconds for each backend call.
        cancel_event: Set it to stop the import before the next batch.
    """

    batch_size: int = Field(1000, gt=0)
    batch_sleep: float = Field(2.0, ge=0)
    force: bool = False
    refresh: bool = False
    tmp_refresh_interval: RefreshInterval = "-1"
    refresh_interval: Optional[Union[str, int]] = None
    bulkify: Optional[Callable[..., Any]] = None
    on_batch: Optional[Callable[..., Any]] = None
    scope: Optional[Callable[[Any], Any]] = None
    query: Optional[Callable[[Any], Any]] = None
    process_query: Optional[Callable[[Any], Any]] = None
    bulk_request_params: Dict[str, Any] = Field(default_factory=dict)
    pipeline: Optional[str] = None
    request_timeout: Optional[float] = Field(None, gt=0)
    cancel_event: Optional[threading.Event] = None

    @property
    def restores_explicit_refresh_interval(self) -> bool:
        return "refresh_interval" in self.model_fields_set


class ReindexOptions(Options):
    """Options of a full rebuild across strategies and partitions.

    ``verify_count`` is off by default; count mismatches are only logged.
    ``force`` left unset keeps existing indices instead of recreating them.
    """

    start_time: Optional[Any] = None
    end_time: Optional[Any] = None
    strategy_names: Optional[List[str]] = None
    refresh: bool = True
    verify_count: bool = False
    force: Optional[bool] = None
    batch_size: int = Field(1000, gt=0)
    batch_sleep: float = Field(2.0, ge=0)
    tmp_refresh_interval: RefreshInterval = "-1"
    ignore_reindex_process_query: bool = False
    process_query: Optional[Callable[[Any], Any]] = None
    bulkify: Optional[Callable[..., Any]] = None
    on_batch: Optional[Callable[..., Any]] = None
    on_partition: Optional[Callable[..., Any]] = None
    bulk_request_params: Dict[str, Any] = Field(default_factory=dict)
    create_index_params: Dict[str, Any] = Field(default_factory=dict)
    request_timeout: Optional[float] = Field(None, gt=0)
    cancel_event: Optional[threading.Event] = None


class SearchOptions(Options):
    index: Optional[Union[str, List[str]]] = None
    size: Optional[int] = Field(None, ge=0)
    use_cache: bool = True
    scroll: Optional[str] = None
    request_timeout: Optional[float] = Field(None, gt=0)
    params: Dict[str, Any] = Field(default_factory=dict)


class RecordsOptions(Options):
    """Options of ``Response.records()``.

    ``multimodel_includes`` is either a list applied to every entity type or
    a mapping from entity type name (or ``"all"``) to eager-load options.
    """

    includes: Optional[List[Any]] = None
    multimodel_includes: Optional[Union[Dict[str, List[Any]], List[Any]]] = None
    order_by: Optional[List[Any]] = None
    allow_explicit_order: Optional[bool] = None
