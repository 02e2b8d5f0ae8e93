import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from opensearch_repositories.dtos.bulk_operation import BulkOperation
from opensearch_repositories.dtos.import_result import BatchReport, ImportResult
from opensearch_repositories.dtos.options import ImportOptions
from opensearch_repositories.errors import (
    ConfigurationError,
    ImportCancelledError,
    IndexMissingError,
)
from opensearch_repositories.opensearch.refresh_interval import (
    UNSET,
    Timer,
    per_second,
    with_refresh_interval,
)

logger = logging.getLogger(__name__)

BULKIFY_KEY = "bulkify_per_s"
BULK_REQUEST_KEY = "bulk_req_per_s"
INDEXING_KEY = "indexing_speed_per_s"


def error_items(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Items of a bulk response whose operation reported an error."""
    items = []
    for item in response.get("items") or []:
        outcome = next(iter(item.values()), None) or {}
        if outcome.get("error"):
            items.append(item)
    return items


class BulkImportService:
    """
    Service pushing records of a strategy into an index with bulk requests.

    One import is a sequential loop over batches: build the bulk lines, send
    one bulk request, count the rejected documents, wait, repeat. Rejected
    documents are reported in the result; only infrastructure failures abort
    the import. The index ``refresh_interval`` is lowered while importing
    and always restored afterwards.
    """

    def import_records(self, strategy, index: Optional[str] = None, options=None) -> ImportResult:
        """Import every record of the strategy's entity type.

        Args:
            strategy: The strategy serializing the records.
            index: Destination index, defaults to ``current_index_name()``.
            options: ``ImportOptions`` or a mapping of them.

        Returns:
            ImportResult: counters and average throughput of the import.
        """
        options = ImportOptions.of(options)
        index = index or strategy.current_index_name()
        batches = strategy.adapter.find_in_batches(
            strategy.entity_type,
            options.batch_size,
            scope=options.scope,
            query=options.query,
            process_query=options.process_query,
        )
        return self.import_batches(strategy, index, batches, options)

    def import_batches(
        self, strategy, index: str, batches: Iterable[List[Any]], options=None
    ) -> ImportResult:
        """Import already fetched batches of records into ``index``.

        Raises:
            IndexMissingError: The index does not exist and ``force`` is off.
            ImportCancelledError: ``cancel_event`` was set between two batches.
        """
        options = ImportOptions.of(options)
        self._prepare_index(strategy, index, options)

        timer = Timer()
        for key in (BULKIFY_KEY, BULK_REQUEST_KEY, INDEXING_KEY):
            timer.samples.setdefault(key, [])

        total = 0
        errors: List[Dict[str, Any]] = []
        batch_number = 0

        refresh_interval = options.refresh_interval if options.restores_explicit_refresh_interval else UNSET
        with with_refresh_interval(
            strategy.client,
            index,
            tmp_interval=options.tmp_refresh_interval,
            refresh_interval=refresh_interval,
            fallback_settings=strategy.settings.to_dict(),
            request_timeout=options.request_timeout,
        ):
            for batch in batches:
                if not batch:
                    continue
                self._check_cancelled(options, index)
                if batch_number > 0:
                    self._pause(options, index)

                batch_number += 1
                report = self._import_batch(strategy, index, batch, batch_number, options, timer)
                total += report.size
                errors.extend(report.error_items)

                if options.on_batch is not None:
                    options.on_batch(report)

        if options.refresh:
            params = {"request_timeout": options.request_timeout} if options.request_timeout else {}
            strategy.refresh_index(index=index, **params)

        averages = timer.averages()
        result = ImportResult(
            index=index,
            total=total,
            errors=len(errors),
            batches=batch_number,
            error_items=errors,
            bulkify_per_s=averages[BULKIFY_KEY],
            bulk_req_per_s=averages[BULK_REQUEST_KEY],
            indexing_speed_per_s=averages[INDEXING_KEY],
        )
        logger.info(
            f"Imported {result.total} documents into '{index}' in {result.batches} batches "
            f"with {result.errors} errors"
        )
        return result

    def _prepare_index(self, strategy, index: str, options: ImportOptions) -> None:
        if options.force:
            strategy.create_index(index=index, force=True)
            return

        if not strategy.index_exists(index=index):
            raise IndexMissingError(
                f"index '{index}' does not exist to be imported into; "
                "use create_index() or the force option to create it"
            )

    def _check_cancelled(self, options: ImportOptions, index: str) -> None:
        if options.cancel_event is not None and options.cancel_event.is_set():
            raise ImportCancelledError(f"import into '{index}' was cancelled")

    def _pause(self, options: ImportOptions, index: str) -> None:
        if not options.batch_sleep:
            return
        if options.cancel_event is None:
            time.sleep(options.batch_sleep)
        elif options.cancel_event.wait(options.batch_sleep):
            raise ImportCancelledError(f"import into '{index}' was cancelled")

    def _bulk_operation(self, strategy, record: Any, options: ImportOptions) -> BulkOperation:
        if options.bulkify is None:
            return strategy.adapter.bulk_operation(record, strategy)

        operation = options.bulkify(record, strategy)
        if isinstance(operation, BulkOperation):
            return operation
        if isinstance(operation, Mapping):
            try:
                return BulkOperation.model_validate(operation)
            except ValidationError as e:
                raise ConfigurationError(f"bulkify returned an invalid bulk operation: {e}") from e
        raise ConfigurationError(
            f"bulkify must return a BulkOperation or a mapping, got {type(operation).__name__}"
        )

    def _import_batch(
        self,
        strategy,
        index: str,
        batch: List[Any],
        batch_number: int,
        options: ImportOptions,
        timer: Timer,
    ) -> BatchReport:
        size = len(batch)

        def bulkify() -> List[Dict[str, Any]]:
            lines: List[Dict[str, Any]] = []
            for record in batch:
                lines.extend(self._bulk_operation(strategy, record, options).to_actions())
            return lines

        lines, bulkify_rate = timer.measure(BULKIFY_KEY, bulkify, per_second(size))

        params: Dict[str, Any] = dict(options.bulk_request_params)
        if options.pipeline:
            params["pipeline"] = options.pipeline
        if options.request_timeout:
            params["request_timeout"] = options.request_timeout

        response, bulk_rate = timer.measure(
            BULK_REQUEST_KEY,
            lambda: strategy.client.bulk(body=lines, index=index, **params),
            per_second(size),
        )

        took = response.get("took")
        indexing_rate = None
        if took is not None:
            indexing_rate = timer.record(INDEXING_KEY, took / 1000, per_second(size))

        failed = error_items(response)
        logger.info(
            f"{strategy.qualified_name} batch {batch_number} into '{index}': {size} documents, "
            f"{len(failed)} errors, bulkify {_rate(bulkify_rate)} docs/s, "
            f"bulk request {_rate(bulk_rate)} docs/s, indexing {_rate(indexing_rate)} docs/s"
        )
        for item in failed:
            logger.debug(f"Bulk item rejected: {item}")

        return BatchReport(
            strategy_name=strategy.qualified_name,
            index=index,
            batch_number=batch_number,
            size=size,
            errors=len(failed),
            error_items=failed,
            took_ms=took,
            bulkify_per_s=bulkify_rate,
            bulk_req_per_s=bulk_rate,
            indexing_speed_per_s=indexing_rate,
            response=response,
        )


def _rate(value: Optional[float]) -> str:
    return f"{value:.2f}" if value is not None else "n/a"
