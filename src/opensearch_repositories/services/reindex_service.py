import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from opensearch_repositories.dtos.options import ImportOptions, ReindexOptions
from opensearch_repositories.dtos.reindex_report import (
    PartitionReport,
    ReindexPartition,
    ReindexReport,
    ReindexState,
    StrategyReindexResult,
    VerificationResult,
)
from opensearch_repositories.errors import ConfigurationError
from opensearch_repositories.services.bulk_import_service import BulkImportService

logger = logging.getLogger(__name__)

QueryFn = Callable[[Any], Any]


def compose_queries(*fns: Optional[QueryFn]) -> Optional[QueryFn]:
    """Chain query callables left to right, skipping ``None``."""
    chain = [fn for fn in fns if fn is not None]
    if not chain:
        return None
    if len(chain) == 1:
        return chain[0]

    def composed(query):
        for fn in chain:
            query = fn(query)
        return query

    return composed


class ReindexService:
    """
    Service rebuilding the indices of one or more strategies.

    For every strategy, each partition yielded by its partition iterator is
    (re)created with the current schema, filled by the bulk import service
    and optionally verified by comparing document counts.
    """

    def __init__(self, importer: Optional[BulkImportService] = None):
        self._importer = importer or BulkImportService()

    def create_indices(
        self, strategies: Iterable, start_time=None, end_time=None, force: bool = False, **params
    ) -> List[str]:
        """Create every partition index of the strategies; returns the created names."""
        created = []
        for strategy in strategies:
            for partition in self._partitions(strategy, start_time, end_time):
                response = strategy.create_index(
                    index=partition.index,
                    force=force,
                    settings=partition.settings,
                    mappings=partition.mappings,
                    **params,
                )
                if response is not None:
                    created.append(partition.index)
        return created

    def reload_indices(self, strategies: Iterable, options=None) -> ReindexReport:
        """Rebuild the indices of ``strategies``.

        Args:
            strategies: Strategies to rebuild, filtered by
                ``options.strategy_names`` when given.
            options: ``ReindexOptions`` or a mapping of them.

        Returns:
            ReindexReport: per-strategy results keyed by qualified name.

        Raises:
            ConfigurationError: When ``options.strategy_names`` names a
                strategy that is not among ``strategies``.
        """
        options = ReindexOptions.of(options)
        report = ReindexReport()
        strategies = list(strategies)

        if options.strategy_names is not None:
            known = {strategy.name for strategy in strategies}
            unknown = [name for name in options.strategy_names if name not in known]
            if unknown:
                raise ConfigurationError(
                    f"unknown strategy names {unknown}; known: {sorted(known)}"
                )

        for strategy in strategies:
            if options.strategy_names is not None and strategy.name not in options.strategy_names:
                continue

            result = StrategyReindexResult(
                strategy_name=strategy.name, entity_type=strategy.entity_type_name
            )
            report.results[strategy.qualified_name] = result
            self._reload_strategy(strategy, result, options)

        logger.info(
            f"Reindexed {len(report.results)} strategies: {report.total} documents, "
            f"{report.errors} errors, {len(report.mismatches)} count mismatches"
        )
        return report

    def _partitions(self, strategy, start_time, end_time) -> List[ReindexPartition]:
        partitions = []
        for partition in strategy.reload_indices_iterator(start_time, end_time):
            if isinstance(partition, ReindexPartition):
                partitions.append(partition)
                continue
            try:
                partitions.append(ReindexPartition.model_validate(partition))
            except ValidationError as e:
                raise ConfigurationError(
                    f"{strategy.qualified_name} yielded an invalid partition: {e}"
                ) from e
        return partitions

    def _reload_strategy(self, strategy, result: StrategyReindexResult, options: ReindexOptions) -> None:
        strategy_process_query = None
        if not options.ignore_reindex_process_query:
            strategy_process_query = strategy.reindex_process_query()
        process_query = compose_queries(options.process_query, strategy_process_query)

        for partition in self._partitions(strategy, options.start_time, options.end_time):
            if options.on_partition is not None:
                options.on_partition(strategy, partition)

            partition_report = PartitionReport(index=partition.index)
            result.partitions.append(partition_report)

            result.state = ReindexState.CREATING_INDEX
            created = strategy.create_index(
                index=partition.index,
                force=bool(options.force),
                settings=partition.settings,
                mappings=partition.mappings,
                **options.create_index_params,
            )
            partition_report.created = created is not None

            result.state = ReindexState.IMPORTING
            import_options = ImportOptions(
                batch_size=options.batch_size,
                batch_sleep=options.batch_sleep,
                force=False,
                refresh=options.refresh,
                tmp_refresh_interval=options.tmp_refresh_interval,
                bulkify=options.bulkify,
                on_batch=options.on_batch,
                query=partition.query,
                process_query=process_query,
                bulk_request_params=options.bulk_request_params,
                request_timeout=options.request_timeout,
                cancel_event=options.cancel_event,
            )
            partition_report.result = self._importer.import_records(
                strategy, index=partition.index, options=import_options
            )

            if options.verify_count and partition.verify_count_query is not None:
                result.state = ReindexState.VERIFYING
                partition_report.verification = self.verify_index_doc_count(
                    strategy,
                    partition.index,
                    query=partition.query,
                    verify_count_query=partition.verify_count_query,
                    refreshed=options.refresh,
                    request_timeout=options.request_timeout,
                )

        result.state = ReindexState.DONE

    def verify_index_doc_count(
        self,
        strategy,
        index: str,
        query: Optional[QueryFn] = None,
        verify_count_query: Optional[Dict[str, Any]] = None,
        refreshed: bool = True,
        request_timeout: Optional[float] = None,
    ) -> VerificationResult:
        """Compare the record store count with the index document count.

        A mismatch is logged, never raised: the index may lag behind the
        record store, and without a refresh the search count is unreliable.
        """
        body = verify_count_query if verify_count_query is not None else {"query": {"match_all": {}}}
        db_count = strategy.adapter.count(strategy.entity_type, query=query)

        params = {"request_timeout": request_timeout} if request_timeout else {}
        search_count = strategy.client.count(index=index, body=body, **params)["count"]

        verification = VerificationResult(
            index=index,
            db_count=db_count,
            search_count=search_count,
            query=body,
            reliable=refreshed,
        )
        if verification.matched:
            logger.info(f"'{index}' document count matches (DB={db_count}, SEARCH={search_count})")
        else:
            note = "" if refreshed else " (index not refreshed, counts may be inconsistent)"
            logger.warning(f"'{index}' MISMATCH! -> (DB={db_count}, SEARCH={search_count}){note}")
        return verification
