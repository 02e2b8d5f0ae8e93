import logging
from typing import Any, Callable, List, Mapping, Optional

from opensearchpy.exceptions import TransportError

from opensearch_repositories.dtos.options import SearchOptions
from opensearch_repositories.errors import ConfigurationError
from opensearch_repositories.response.response import Response
from opensearch_repositories.services.search_request import SearchRequest

logger = logging.getLogger(__name__)

SCROLL_DURATION = "30s"

StopFn = Callable[[Response, int], bool]


def should_stop(response: Response, index: int, limit: Optional[int], stop: Optional[StopFn]) -> bool:
    """Stop paging on an empty or partial page, after ``limit`` follow-up calls,
    or when the caller's predicate says so."""
    if not response.raw_results or response.incomplete_page():
        return True
    if limit is not None and index >= limit:
        return True
    if stop is not None and stop(response, index):
        return True
    return False


def query_has_sorting(query_or_payload: Any) -> bool:
    return isinstance(query_or_payload, Mapping) and bool(query_or_payload.get("sort"))


class SearchingMixin:
    """Search execution for anything exposing ``client`` and ``search_index_name``."""

    def search(self, query_or_payload: Any = None, options=None) -> Response:
        """Build a search request and a lazy response for it.

        Args:
            query_or_payload: A query body (mapping or object with
                ``to_dict``), a JSON string, or a query-string query.
            options: ``SearchOptions`` or a mapping of them.

        Returns:
            Response: Nothing is sent until the response is read.
        """
        options = SearchOptions.of(options)
        request = SearchRequest(self, query_or_payload, options)
        return Response(self, request, options)

    def search_and_auto_scroll(
        self,
        query_or_payload: Any = None,
        options=None,
        limit: Optional[int] = None,
        clear: bool = True,
        stop: Optional[StopFn] = None,
    ) -> List[Response]:
        """Search, then follow the scroll API until a stop condition is met.

        Args:
            limit: Maximum number of scroll calls after the first search.
            clear: Clear the scroll context at the end.
            stop: ``(response, index) -> bool`` custom stop predicate.

        Returns:
            list[Response]: One response per non-empty page.
        """
        options = SearchOptions.of(options)
        if not options.scroll:
            options = SearchOptions.of(options, scroll=SCROLL_DURATION)

        first = self.search(query_or_payload, options)
        responses = [first]
        scroll_id = first.response.get("_scroll_id")

        try:
            index = 0
            current = first
            while not should_stop(current, index, limit, stop) and scroll_id:
                index += 1
                raw = self.client.scroll(body={"scroll_id": scroll_id, "scroll": options.scroll})
                scroll_id = raw.get("_scroll_id")

                current = Response.from_raw(self, first.search, raw, search_size=first.search_size)
                if current.raw_results:
                    responses.append(current)
        finally:
            if clear and scroll_id:
                try:
                    self.client.clear_scroll(body={"scroll_id": scroll_id})
                except TransportError as e:
                    logger.warning(f"Could not clear scroll context: {e}")

        return responses

    def search_and_auto_search_after(
        self,
        query_or_payload: Mapping[str, Any],
        options=None,
        limit: Optional[int] = None,
        stop: Optional[StopFn] = None,
    ) -> List[Response]:
        """Search, then page with ``search_after`` until a stop condition is met.

        The payload must define a ``sort``; the last hit's sort values of each
        page feed the next request.
        """
        if not query_has_sorting(query_or_payload):
            raise ConfigurationError("query_or_payload must have sort to support search_after")

        options = SearchOptions.of(options)
        current = self.search(query_or_payload, options)
        responses = [current]
        payload = dict(query_or_payload)

        index = 0
        while not should_stop(current, index, limit, stop):
            index += 1
            payload["search_after"] = current.raw_results[-1]["sort"]
            current = self.search(payload, options)
            if current.raw_results:
                responses.append(current)

        return responses

    def search_and_auto_search_after_or_auto_scroll(
        self, query_or_payload: Any = None, options=None, **kwargs
    ) -> List[Response]:
        if query_has_sorting(query_or_payload):
            kwargs.pop("clear", None)
            return self.search_and_auto_search_after(query_or_payload, options, **kwargs)
        return self.search_and_auto_scroll(query_or_payload, options, **kwargs)
