import logging
from unittest.mock import MagicMock

import pytest

from opensearch_repositories.dtos.reindex_report import ReindexPartition, ReindexState
from opensearch_repositories.errors import ConfigurationError
from opensearch_repositories.services.reindex_service import ReindexService, compose_queries
from opensearch_repositories.strategy.base_strategy import BaseStrategy
from tests.conftest import InMemoryAdapter, Note


@pytest.fixture
def service() -> ReindexService:
    return ReindexService()


def _parity_partitions(strategy, start_time=None, end_time=None):
    for parity in ("odd", "even"):
        yield ReindexPartition(
            index=f"notes-{parity}",
            settings=strategy.settings.to_dict(),
            mappings=strategy.mappings.to_dict(),
            query=lambda records, parity=parity: [
                r for r in records if (r.id % 2 == 1) == (parity == "odd")
            ],
        )


class TestReloadIndices:
    def test_single_partition(self, service, note_strategy, client) -> None:
        report = service.reload_indices([note_strategy], {"batch_sleep": 0})

        result = report["Note:main"]
        assert result.state == ReindexState.DONE
        assert result.total == 5
        assert [p.index for p in result.partitions] == ["notes"]
        client.indices.refresh.assert_called_once_with(index="notes")

    def test_existing_index_is_reused_by_default(self, service, note_strategy, client) -> None:
        report = service.reload_indices([note_strategy], {"batch_sleep": 0})

        client.indices.delete.assert_not_called()
        client.indices.create.assert_not_called()
        assert report["Note:main"].partitions[0].created is False

    def test_force_recreates(self, service, note_strategy, client) -> None:
        client.indices.exists.side_effect = [False, True]

        report = service.reload_indices([note_strategy], {"batch_sleep": 0, "force": True})

        client.indices.delete.assert_called_once_with(index="notes")
        client.indices.create.assert_called_once()
        assert report["Note:main"].partitions[0].created is True

    def test_time_partitions(self, service, client, note_adapter) -> None:
        strategy = BaseStrategy(
            Note, client=client, adapter=note_adapter, reload_indices_iterator=_parity_partitions
        )

        report = service.reload_indices([strategy], {"batch_sleep": 0})

        partitions = report["Note:main"].partitions
        assert [(p.index, p.result.total) for p in partitions] == [("notes-odd", 3), ("notes-even", 2)]
        assert report.total == 5

    def test_strategy_names_filter(self, service, client, note_adapter) -> None:
        main = BaseStrategy(Note, client=client, adapter=note_adapter)
        archive = BaseStrategy(Note, client=client, adapter=note_adapter, name="archive")

        report = service.reload_indices([main, archive], {"batch_sleep": 0, "strategy_names": ["archive"]})

        assert list(report.results) == ["Note:archive"]

    def test_unknown_strategy_name_fails_before_reindexing(self, service, client, note_strategy) -> None:
        with pytest.raises(ConfigurationError, match="mian"):
            service.reload_indices([note_strategy], {"strategy_names": ["mian"], "batch_sleep": 0})

        client.indices.create.assert_not_called()
        client.bulk.assert_not_called()

    def test_process_queries_are_composed(self, service, client, note_adapter) -> None:
        strategy = BaseStrategy(
            Note,
            client=client,
            adapter=note_adapter,
            reindex_process_query=lambda s: (lambda records: records[:3]),
        )

        report = service.reload_indices(
            [strategy], {"batch_sleep": 0, "process_query": lambda records: records[1:]}
        )

        assert report.total == 3

    def test_ignore_reindex_process_query(self, service, client, note_adapter) -> None:
        strategy = BaseStrategy(
            Note,
            client=client,
            adapter=note_adapter,
            reindex_process_query=lambda s: (lambda records: []),
        )

        report = service.reload_indices([strategy], {"batch_sleep": 0, "ignore_reindex_process_query": True})

        assert report.total == 5

    def test_invalid_partition(self, service, client, note_adapter) -> None:
        strategy = BaseStrategy(
            Note,
            client=client,
            adapter=note_adapter,
            reload_indices_iterator=lambda s, start, end: [{"index": "", "settings": {}, "mappings": {}}],
        )

        with pytest.raises(ConfigurationError):
            service.reload_indices([strategy], {"batch_sleep": 0})

    def test_on_partition_callback(self, service, note_strategy) -> None:
        seen = []

        service.reload_indices(
            [note_strategy],
            {"batch_sleep": 0, "on_partition": lambda strategy, partition: seen.append(partition.index)},
        )

        assert seen == ["notes"]


class TestVerification:
    def test_verification_is_off_by_default(self, service, note_strategy, client) -> None:
        service.reload_indices([note_strategy], {"batch_sleep": 0})

        client.count.assert_not_called()

    def test_matching_counts(self, service, note_strategy, client) -> None:
        client.count.return_value = {"count": 5}

        report = service.reload_indices([note_strategy], {"batch_sleep": 0, "verify_count": True})

        verification = report["Note:main"].partitions[0].verification
        assert verification.matched
        assert report.mismatches == []
        client.count.assert_called_once_with(index="notes", body={"query": {"match_all": {}}})

    def test_mismatch_is_logged_not_raised(self, service, note_strategy, client, caplog) -> None:
        client.count.return_value = {"count": 3}

        with caplog.at_level(logging.WARNING):
            report = service.reload_indices([note_strategy], {"batch_sleep": 0, "verify_count": True})

        assert report["Note:main"].state == ReindexState.DONE
        assert [(m.db_count, m.search_count) for m in report.mismatches] == [(5, 3)]
        assert "MISMATCH! -> (DB=5, SEARCH=3)" in caplog.text

    def test_unrefreshed_mismatch_is_flagged(self, service, note_strategy, client, caplog) -> None:
        client.count.return_value = {"count": 0}

        with caplog.at_level(logging.WARNING):
            report = service.reload_indices(
                [note_strategy], {"batch_sleep": 0, "verify_count": True, "refresh": False}
            )

        assert report.mismatches[0].reliable is False
        assert "may be inconsistent" in caplog.text

    def test_verify_uses_the_partition_query(self, service, client) -> None:
        adapter = InMemoryAdapter([Note(id=i, title="") for i in range(10)])
        strategy = BaseStrategy(Note, client=client, adapter=adapter)
        client.count.return_value = {"count": 4}

        verification = service.verify_index_doc_count(
            strategy, "notes", query=lambda records: records[:4]
        )

        assert verification.matched


class TestCreateIndices:
    def test_creates_missing_partitions(self, service, client: MagicMock, note_adapter) -> None:
        client.indices.exists.side_effect = lambda index: index == "notes-odd"
        strategy = BaseStrategy(
            Note, client=client, adapter=note_adapter, reload_indices_iterator=_parity_partitions
        )

        created = service.create_indices([strategy])

        assert created == ["notes-even"]


def test_compose_queries() -> None:
    composed = compose_queries(None, lambda q: q + [1], lambda q: q + [2])

    assert composed([]) == [1, 2]
    assert compose_queries(None, None) is None
