from unittest.mock import MagicMock

import pytest
from opensearchpy.exceptions import TransportError

from opensearch_repositories.errors import ConfigurationError
from opensearch_repositories.multistrategy import MultiStrategyWrapper
from opensearch_repositories.strategy.base_strategy import BaseStrategy
from tests.conftest import InMemoryAdapter, Note, Task, make_hit, make_search_response


def _page(ids, scroll_id="scroll-1"):
    response = make_search_response(
        [dict(make_hit(i), sort=[i]) for i in ids], total=10
    )
    response["_scroll_id"] = scroll_id
    return response


class TestAutoScroll:
    def test_follows_the_scroll_until_an_incomplete_page(self, note_strategy, client) -> None:
        client.search.return_value = _page([1, 2])
        client.scroll.side_effect = [_page([3, 4], "scroll-2"), _page([5], "scroll-3")]

        responses = note_strategy.search_and_auto_scroll({"query": {}, "size": 2})

        assert [[r.id for r in response] for response in responses] == [["1", "2"], ["3", "4"], ["5"]]
        assert client.search.call_args.kwargs["scroll"] == "30s"
        assert client.scroll.call_args_list[0].kwargs == {"body": {"scroll_id": "scroll-1", "scroll": "30s"}}
        client.clear_scroll.assert_called_once_with(body={"scroll_id": "scroll-3"})

    def test_limit_counts_follow_up_calls(self, note_strategy, client) -> None:
        client.search.return_value = _page([1, 2])
        client.scroll.return_value = _page([3, 4])

        responses = note_strategy.search_and_auto_scroll({"query": {}, "size": 2}, limit=2)

        assert len(responses) == 3
        assert client.scroll.call_count == 2

    def test_stop_predicate(self, note_strategy, client) -> None:
        client.search.return_value = _page([1, 2])
        client.scroll.return_value = _page([3, 4])

        responses = note_strategy.search_and_auto_scroll(
            {"query": {}, "size": 2}, stop=lambda response, index: index == 1
        )

        assert len(responses) == 2

    def test_empty_page_is_not_returned(self, note_strategy, client) -> None:
        client.search.return_value = _page([1, 2])
        client.scroll.return_value = _page([])

        responses = note_strategy.search_and_auto_scroll({"query": {}, "size": 2})

        assert len(responses) == 1

    def test_clear_errors_are_logged(self, note_strategy, client) -> None:
        client.search.return_value = _page([1])
        client.clear_scroll.side_effect = TransportError(500, "boom", {})

        responses = note_strategy.search_and_auto_scroll({"query": {}})

        assert len(responses) == 1

    def test_keep_scroll_context(self, note_strategy, client) -> None:
        client.search.return_value = _page([1])

        note_strategy.search_and_auto_scroll({"query": {}}, clear=False, options={"scroll": "1m"})

        client.clear_scroll.assert_not_called()
        assert client.search.call_args.kwargs["scroll"] == "1m"


class TestAutoSearchAfter:
    def test_requires_sort(self, note_strategy) -> None:
        with pytest.raises(ConfigurationError, match="sort"):
            note_strategy.search_and_auto_search_after({"query": {}})

    def test_pages_with_last_sort_values(self, note_strategy, client) -> None:
        client.search.side_effect = [_page([1, 2]), _page([3])]

        responses = note_strategy.search_and_auto_search_after(
            {"query": {}, "size": 2, "sort": [{"id": "asc"}]}
        )

        assert len(responses) == 2
        assert client.search.call_args_list[1].kwargs["body"]["search_after"] == [2]
        assert "search_after" not in client.search.call_args_list[0].kwargs["body"]

    def test_dispatch(self, note_strategy, client) -> None:
        client.search.return_value = _page([1])

        note_strategy.search_and_auto_search_after_or_auto_scroll({"query": {}, "sort": ["id"]}, clear=False)
        client.scroll.assert_not_called()

        note_strategy.search_and_auto_search_after_or_auto_scroll({"query": {}})
        assert client.search.call_args.kwargs["scroll"] == "30s"


class TestMultiStrategyWrapper:
    def test_shares_client_and_indices(self, client) -> None:
        notes = BaseStrategy(Note, client=client, adapter=InMemoryAdapter([]))
        archive = BaseStrategy(
            Note, client=client, adapter=InMemoryAdapter([]), name="archive", search_index_name=["notes", "old-notes"]
        )
        tasks = BaseStrategy(Task, client=client, adapter=InMemoryAdapter([]))

        wrapper = MultiStrategyWrapper([notes, archive, tasks])

        assert wrapper.client is client
        assert wrapper.search_index_name() == ["notes", "old-notes", "tasks"]
        assert wrapper.entity_types == [Note, Note, Task]

    def test_client_mismatch_fails_before_searching(self, client) -> None:
        other = MagicMock(name="other")
        notes = BaseStrategy(Note, client=client, adapter=InMemoryAdapter([]))
        tasks = BaseStrategy(Task, client=other, adapter=InMemoryAdapter([]))

        with pytest.raises(ConfigurationError, match="same client"):
            MultiStrategyWrapper([notes, tasks])

        client.search.assert_not_called()
        other.search.assert_not_called()

    def test_requires_strategies(self) -> None:
        with pytest.raises(ConfigurationError):
            MultiStrategyWrapper([])
