import math
from collections.abc import Sequence
from typing import Any, Callable, Dict, List, Optional

from opensearch_repositories.dtos.options import RecordsOptions, SearchOptions
from opensearch_repositories.response.records import Records
from opensearch_repositories.response.result import Result


class Response(Sequence):
    """Lazily executed search response.

    The request is sent on first access. The raw response, results, records,
    aggregations and suggestions are cached on this instance unless
    ``use_cache`` is off. Iterating the response iterates its results.
    """

    DEFAULT_SIZE = 10

    def __init__(self, target, search, options=None):
        """
        Args:
            target: The strategy or multi-strategy wrapper searched.
            search: The ``SearchRequest`` to execute.
            options: ``SearchOptions`` or a mapping of them.
        """
        self.target = target
        self.search = search
        self.options = SearchOptions.of(options)
        self.search_size: Optional[int] = None
        self._cache: Dict[str, Any] = {}

    @classmethod
    def from_raw(cls, target, search, raw: Dict[str, Any], search_size: Optional[int] = None) -> "Response":
        """Wrap an already fetched raw response, e.g. a scroll page."""
        response = cls(target, search, search.options)
        response.search_size = search_size or cls.DEFAULT_SIZE
        response._cache["response"] = raw
        return response

    def _with_cache(self, key: str, fn: Callable[[], Any]) -> Any:
        if self.options.use_cache and key in self._cache:
            return self._cache[key]
        value = self._cache[key] = fn()
        return value

    def clear_cache(self) -> None:
        self._cache.clear()

    def _execute(self) -> Dict[str, Any]:
        self.search_size = self.search.size or self.DEFAULT_SIZE
        return self.search.execute()

    @property
    def response(self) -> Dict[str, Any]:
        """The raw response body."""
        return self._with_cache("response", self._execute)

    @property
    def raw_results(self) -> List[Dict[str, Any]]:
        return (self.response.get("hits") or {}).get("hits") or []

    @property
    def results(self) -> List[Result]:
        return self._with_cache("results", lambda: [Result(hit) for hit in self.raw_results])

    def records(self, options=None) -> Records:
        """Domain records for the hits, in hit order.

        Args:
            options: ``RecordsOptions`` or a mapping of them.
        """
        options = RecordsOptions.of(options)
        return self._with_cache("records", lambda: Records(self.target, self, options))

    @property
    def total(self) -> Optional[int]:
        """Total hit count, for both ``42`` and ``{"value": 42}`` shapes."""
        total = (self.response.get("hits") or {}).get("total")
        if isinstance(total, dict):
            return total.get("value")
        return total

    def total_pages(self, safe: bool = False) -> Optional[int]:
        """Number of pages of ``search_size`` hits; ``safe`` returns None for size 0."""
        total = self.total
        if total is None:
            return None
        if not self.search_size:
            if safe:
                return None
            raise ZeroDivisionError("cannot count pages of a search with size 0")
        return math.ceil(total / self.search_size)

    def incomplete_page(self) -> bool:
        """True when fewer hits came back than were requested."""
        hits = self.raw_results
        return len(hits) < (self.search_size or self.DEFAULT_SIZE)

    @property
    def max_score(self) -> Optional[float]:
        return (self.response.get("hits") or {}).get("max_score")

    @property
    def took(self) -> Optional[int]:
        """Elapsed time in milliseconds."""
        return self.response.get("took")

    @property
    def timed_out(self) -> bool:
        return bool(self.response.get("timed_out"))

    @property
    def shards(self) -> Dict[str, Any]:
        return self.response.get("_shards") or {}

    @property
    def aggregations(self) -> Dict[str, Any]:
        return self._with_cache("aggregations", lambda: dict(self.response.get("aggregations") or {}))

    @property
    def suggestions(self) -> Dict[str, Any]:
        return self._with_cache("suggestions", lambda: dict(self.response.get("suggest") or {}))

    def __getitem__(self, item):
        return self.results[item]

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)
