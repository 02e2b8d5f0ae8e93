import dataclasses
import re
from typing import Any, Callable, Optional

from opensearch_repositories.errors import ConfigurationError


@dataclasses.dataclass(frozen=True)
class StrategyConfig:
    """Overridable behaviours of a strategy.

    Every field is ``None`` (use the strategy's own method) or a callable
    receiving the strategy first, followed by the method's arguments::

        StrategyConfig(target_index_name=lambda strategy, record: f"posts-{record.year}")

    Instances are immutable; :meth:`BaseStrategy.configure` swaps in a new one.
    """

    target_index_name: Optional[Callable[..., Any]] = None
    search_index_name: Optional[Callable[..., Any]] = None
    current_index_name: Optional[Callable[..., Any]] = None
    reload_indices_iterator: Optional[Callable[..., Any]] = None
    index_without_id: Optional[Callable[..., Any]] = None
    serialize: Optional[Callable[..., Any]] = None
    reindex_serialize: Optional[Callable[..., Any]] = None
    document_id: Optional[Callable[..., Any]] = None
    reindex_process_query: Optional[Callable[..., Any]] = None
    index_record: Optional[Callable[..., Any]] = None


CONFIGURABLE_METHODS = tuple(field.name for field in dataclasses.fields(StrategyConfig))


def _constant(value: Any) -> Callable[..., Any]:
    return lambda strategy, *args: value


def merge_config(config: StrategyConfig, overrides: dict) -> StrategyConfig:
    """Return a new config with ``overrides`` applied.

    Non-callable values become constants, so ``index_without_id=True`` works.

    Raises:
        ConfigurationError: If a name is not a configurable method.
    """
    unknown = sorted(set(overrides) - set(CONFIGURABLE_METHODS))
    if unknown:
        raise ConfigurationError(
            f"configure only accepts known methods: {', '.join(CONFIGURABLE_METHODS)}. "
            f"Got: {', '.join(unknown)}"
        )
    values = {
        name: (value if value is None or callable(value) else _constant(value))
        for name, value in overrides.items()
    }
    return dataclasses.replace(config, **values)


def to_index_model_name(name: str) -> str:
    """Embed a type name in an index name: ``BlogPost`` -> ``blog-posts``."""
    dashed = re.sub(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])", "-", name)
    dashed = dashed.replace("_", "-").lower()
    return pluralize(dashed)


def pluralize(word: str) -> str:
    if re.search(r"[^aeiou]y$", word):
        return word[:-1] + "ies"
    if re.search(r"(s|x|z|ch|sh)$", word):
        return word + "es"
    return word + "s"
