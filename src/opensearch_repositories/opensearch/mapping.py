import copy
from typing import Any, Callable, Dict, Iterable, Optional

# field types whose children are indexed as structured data
TYPES_WITH_EMBEDDED_PROPERTIES = ("object", "nested")

# leaf datatypes kept by Mappings.to_flattened_dict
DATATYPES = {
    "binary",
    "boolean",
    "byte",
    "date",
    "date_nanos",
    "double",
    "flat_object",
    "flattened",
    "float",
    "geo_point",
    "geo_shape",
    "half_float",
    "integer",
    "ip",
    "join",
    "keyword",
    "knn_vector",
    "long",
    "nested",
    "object",
    "percolator",
    "range",
    "rank_feature",
    "rank_features",
    "scaled_float",
    "search_as_you_type",
    "short",
    "text",
    "token_count",
    "unsigned_long",
}


class Settings:
    """Index settings owned by a strategy.

    Updates merge into the cached dictionary instead of replacing it.
    """

    def __init__(self, settings: Optional[Dict[str, Any]] = None):
        self.settings: Dict[str, Any] = dict(settings or {})

    def update(self, settings: Dict[str, Any]) -> "Settings":
        self.settings.update(settings)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.settings)


class Mappings:
    """Incrementally composed index mappings.

    Fields are declared with :meth:`indexes`; nested definitions are declared
    from a callback that receives this same object, scoped to the parent
    field. Methods registered with :meth:`register_dynamic_properties_method`
    run on every :meth:`to_dict` call and may add properties computed at
    serialization time.

    Example::

        mappings = Mappings({"dynamic": False})
        mappings.indexes("title", {"analyzer": "english"})
        mappings.indexes(
            "author",
            children=lambda m: m.indexes("name").indexes("id", {"type": "keyword"}),
        )
    """

    def __init__(self, options: Optional[Dict[str, Any]] = None, strategy=None):
        self.options: Dict[str, Any] = dict(options or {})
        self.strategy = strategy
        self.mapping: Dict[str, Any] = {}
        self.runtime_fields: Dict[str, Any] = {}
        self.dynamic_properties_methods: Dict[str, Callable[..., Any]] = {}
        self._current = self.mapping

    def indexes(
        self,
        field_name: str,
        definition: Optional[Dict[str, Any]] = None,
        children: Optional[Callable[["Mappings"], Any]] = None,
    ) -> "Mappings":
        """Define a field in the mappings.

        Args:
            field_name: Name of the field.
            definition: Field definition; ``type`` defaults to ``text`` for
                leaves and ``object`` when ``children`` is given.
            children: Callback declaring child fields. Children of ``object`` and
                ``nested`` fields go under ``properties``, every other type
                keeps them as multi-fields under ``fields``.

        Returns:
            Mappings: self, for chaining.
        """
        field = dict(definition or {})
        self._current[field_name] = field

        if children is not None:
            field.setdefault("type", "object")
            key = "properties" if str(field["type"]) in TYPES_WITH_EMBEDDED_PROPERTIES else "fields"
            scope = field.setdefault(key, {})

            previous = self._current
            try:
                self._current = scope
                children(self)
            finally:
                self._current = previous

        field.setdefault("type", "text")
        return self

    def runtime_field(self, field_name: str, definition: Dict[str, Any]) -> None:
        self.runtime_fields[field_name] = definition

    def register_dynamic_properties_method(
        self, method_name: str, method: Callable[..., Any]
    ) -> None:
        """Register a callback run by :meth:`to_dict`.

        The callback receives the (copied) mappings dictionary followed by the
        arguments passed to :meth:`to_dict` under ``method_name``. Registering
        the same name twice replaces the callback.
        """
        self.dynamic_properties_methods[method_name] = method

    def update_options(self, options: Dict[str, Any]) -> None:
        self.options.update(options)

    def to_dict(self, skip: Iterable[str] = (), **dynamic_args: Any) -> Dict[str, Any]:
        """Serialize the mappings.

        Args:
            skip: Names of dynamic properties methods not to run.
            **dynamic_args: Positional arguments per dynamic method, keyed by
                the method's name. A non-tuple value is passed as a single
                argument.

        Returns:
            dict: A deep copy; the cached mapping is never modified.
        """
        mappings = {**self.options, "properties": self.mapping}
        if self.runtime_fields:
            mappings["runtime"] = self.runtime_fields
        mappings = copy.deepcopy(mappings)

        skipped = set(skip)
        for name, method in self.dynamic_properties_methods.items():
            if name in skipped:
                continue
            args = dynamic_args.get(name, ())
            if not isinstance(args, tuple):
                args = (args,)
            method(mappings, *args)

        return mappings

    def to_flattened_dict(self) -> Dict[str, str]:
        """Map every dotted field path to its datatype.

        Example::

            {"id": "integer", "created_by": "object",
             "created_by.id": "integer", "created_by.full_name.raw": "keyword"}
        """
        flattened: Dict[str, str] = {}

        def walk(properties: Dict[str, Any], prefix: str) -> None:
            for name, field in properties.items():
                if not isinstance(field, dict):
                    continue
                path = f"{prefix}{name}"
                field_type = field.get("type")
                if field_type in DATATYPES:
                    flattened[path] = field_type
                for key in ("properties", "fields"):
                    if isinstance(field.get(key), dict):
                        walk(field[key], f"{path}.")

        walk(self.to_dict().get("properties", {}), "")
        return flattened
