import json
import logging
from typing import Any, Dict, Mapping, Optional

from opensearch_repositories.dtos.options import SearchOptions

logger = logging.getLogger(__name__)


class SearchRequest:
    """One search call against a strategy or multi-strategy wrapper.

    The query may be a body (a mapping, an object with ``to_dict()`` or a JSON
    string starting with ``{``) or a plain string sent as a query-string
    query through the ``q`` parameter.
    """

    def __init__(self, target, query_or_payload: Any = None, options=None):
        """
        Args:
            target: Anything exposing ``client`` and ``search_index_name()``.
            query_or_payload: The query, see the class docstring.
            options: ``SearchOptions`` or a mapping of them.
        """
        self.target = target
        self.options = SearchOptions.of(options)
        self.body: Dict[str, Any] = {}
        self.query_string: Optional[str] = None

        if query_or_payload is None:
            pass
        elif isinstance(query_or_payload, Mapping):
            self.body = dict(query_or_payload)
        elif hasattr(query_or_payload, "to_dict"):
            self.body = dict(query_or_payload.to_dict())
        elif isinstance(query_or_payload, str) and query_or_payload.lstrip().startswith("{"):
            self.body = json.loads(query_or_payload)
        else:
            self.query_string = str(query_or_payload)

    @property
    def index(self):
        return self.options.index or self.target.search_index_name()

    @property
    def size(self) -> Optional[int]:
        """Requested page size, from the body first then the options."""
        size = self.body.get("size")
        return size if size is not None else self.options.size

    @property
    def definition(self) -> Dict[str, Any]:
        """Keyword arguments of the ``client.search`` call."""
        definition: Dict[str, Any] = {"index": self.index, "body": self.body}
        if self.query_string is not None:
            definition["q"] = self.query_string
        if self.options.size is not None and "size" not in self.body:
            definition["size"] = self.options.size
        if self.options.scroll:
            definition["scroll"] = self.options.scroll
        if self.options.request_timeout:
            definition["request_timeout"] = self.options.request_timeout
        definition.update(self.options.params)
        return definition

    def execute(self) -> Dict[str, Any]:
        definition = self.definition
        logger.debug(f"Searching '{definition['index']}'")
        return self.target.client.search(**definition)
