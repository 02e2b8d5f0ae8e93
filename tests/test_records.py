import pytest

from opensearch_repositories import search
from opensearch_repositories.errors import ConfigurationError
from opensearch_repositories.multistrategy import MultiStrategyWrapper
from opensearch_repositories.strategy.base_strategy import BaseStrategy
from tests.conftest import InMemoryAdapter, Note, Task, make_hit, make_search_response


def _hits(*ids, type_name="Note"):
    return [make_hit(i, {"id": i, "type": type_name}) for i in ids]


class TestSingleStrategyRecords:
    def test_records_follow_hit_order(self, client) -> None:
        r1, r2, r3 = Note(1, "a"), Note(2, "b"), Note(3, "c")
        adapter = InMemoryAdapter([r3, r1, r2])
        strategy = BaseStrategy(Note, client=client, adapter=adapter)
        client.search.return_value = make_search_response(_hits(1, 2, 3))

        records = strategy.search({"query": {}}).records()

        assert list(records) == [r1, r2, r3]
        assert adapter.fetch_calls == [(Note, ["1", "2", "3"], None, None)]

    def test_deleted_records_are_dropped(self, client) -> None:
        r1, r3 = Note(1, "a"), Note(3, "c")
        strategy = BaseStrategy(Note, client=client, adapter=InMemoryAdapter([r3, r1]))
        client.search.return_value = make_search_response(_hits(1, 2, 3))

        records = strategy.search({"query": {}}).records()

        assert list(records) == [r1, r3]
        assert records.ids == ["1", "2", "3"]

    def test_each_with_hit(self, note_strategy, notes, client) -> None:
        client.search.return_value = make_search_response(_hits(2, 1))

        pairs = list(note_strategy.search({"query": {}}).records().each_with_hit())

        assert [(record.id, hit.id) for record, hit in pairs] == [(2, "2"), (1, "1")]

    def test_map_with_hit(self, note_strategy, client) -> None:
        client.search.return_value = make_search_response(_hits(4))

        titles = note_strategy.search({"query": {}}).records().map_with_hit(
            lambda record, hit: (record.title, hit.score)
        )

        assert titles == [("note 4", 1.0)]

    def test_records_are_cached(self, note_strategy, note_adapter, client) -> None:
        client.search.return_value = make_search_response(_hits(1))
        response = note_strategy.search({"query": {}})

        assert response.records() is response.records()
        list(response.records())
        list(response.records())
        assert len(note_adapter.fetch_calls) == 1

    def test_empty_hits_skip_the_fetch(self, note_strategy, note_adapter, client) -> None:
        client.search.return_value = make_search_response([])

        assert list(note_strategy.search({"query": {}}).records()) == []
        assert note_adapter.fetch_calls == []

    def test_includes_are_forwarded(self, note_strategy, note_adapter, client) -> None:
        client.search.return_value = make_search_response(_hits(1))

        list(note_strategy.search({"query": {}}).records({"includes": ["comments"]}))

        assert note_adapter.fetch_calls[0][2] == ["comments"]


class TestExplicitOrder:
    def test_explicit_order_fails_loudly(self, note_strategy, note_adapter, client) -> None:
        client.search.return_value = make_search_response(_hits(1, 2))
        records = note_strategy.search({"query": {}}).records({"order_by": ["title"]})

        with pytest.raises(ConfigurationError, match="allow_explicit_order"):
            list(records)
        assert note_adapter.fetch_calls == []

    def test_allowed_explicit_order_keeps_fetch_order(self, client) -> None:
        r1, r2 = Note(1, "a"), Note(2, "b")
        strategy = BaseStrategy(Note, client=client, adapter=InMemoryAdapter([r2, r1]))
        client.search.return_value = make_search_response(_hits(1, 2))

        records = strategy.search({"query": {}}).records(
            {"order_by": ["title"], "allow_explicit_order": True}
        )

        assert list(records) == [r2, r1]
        assert [hit.id for _, hit in records.each_with_hit()] == ["2", "1"]


class TestMultiStrategyRecords:
    @pytest.fixture
    def note_records(self) -> InMemoryAdapter:
        return InMemoryAdapter([Note(1, "n1"), Note(2, "n2")])

    @pytest.fixture
    def task_records(self) -> InMemoryAdapter:
        return InMemoryAdapter([Task(2, "t2"), Task(1, "t1")])

    @pytest.fixture
    def wrapper(self, client, note_records, task_records) -> MultiStrategyWrapper:
        return MultiStrategyWrapper(
            [
                BaseStrategy(Note, client=client, adapter=note_records),
                BaseStrategy(Task, client=client, adapter=task_records),
            ]
        )

    def test_records_of_several_types_follow_hit_order(self, wrapper, client, note_records, task_records) -> None:
        client.search.return_value = make_search_response(
            [
                make_hit(1, {"id": 1, "type": "Task"}),
                make_hit(1, {"id": 1, "type": "Note"}),
                make_hit(2, {"id": 2, "type": "Task"}),
                make_hit(2, {"id": 2, "type": "Note"}),
            ]
        )

        records = search({"query": {}}, wrapper).records()

        assert [(type(r).__name__, r.id) for r in records] == [
            ("Task", 1),
            ("Note", 1),
            ("Task", 2),
            ("Note", 2),
        ]
        assert len(note_records.fetch_calls) == 1
        assert len(task_records.fetch_calls) == 1
        assert task_records.fetch_calls[0][1] == ["1", "2"]

    def test_unknown_types_and_missing_records_are_dropped(self, wrapper, client) -> None:
        client.search.return_value = make_search_response(
            [
                make_hit(1, {"id": 1, "type": "Note"}),
                make_hit(5, {"id": 5, "type": "Comment"}),
                make_hit(9, {"id": 9, "type": "Task"}),
                make_hit(2, {"id": 2, "type": "Task"}),
            ]
        )

        records = search({"query": {}}, wrapper).records()

        assert [(type(r).__name__, r.id) for r in records] == [("Note", 1), ("Task", 2)]

    def test_multimodel_includes(self, wrapper, client, note_records, task_records) -> None:
        client.search.return_value = make_search_response(
            [make_hit(1, {"id": 1, "type": "Note"}), make_hit(1, {"id": 1, "type": "Task"})]
        )

        list(
            search({"query": {}}, wrapper).records(
                {"multimodel_includes": {"Note": ["a"], "task": ["b"], "all": ["c"]}}
            )
        )

        assert note_records.fetch_calls[0][2] == ["a", "c"]
        assert task_records.fetch_calls[0][2] == ["b", "c"]

    def test_explicit_order_is_rejected(self, wrapper, client) -> None:
        client.search.return_value = make_search_response(_hits(1))

        with pytest.raises(ConfigurationError):
            list(search({"query": {}}, wrapper).records({"order_by": ["id"], "allow_explicit_order": True}))

    def test_search_accepts_a_list_of_strategies(self, client, note_strategy) -> None:
        client.search.return_value = make_search_response(_hits(1))
        task_strategy = BaseStrategy(Task, client=client, adapter=InMemoryAdapter([]))

        response = search({"query": {}}, [note_strategy, task_strategy])
        response.results

        assert client.search.call_args.kwargs["index"] == ["notes", "tasks"]
