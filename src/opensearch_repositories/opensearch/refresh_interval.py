import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from opensearchpy import OpenSearch
from opensearchpy.exceptions import NotFoundError

logger = logging.getLogger(__name__)

# marks "read the current value from the index"
UNSET = object()


def read_refresh_interval(
    client: OpenSearch, index: str, fallback_settings: Optional[Dict[str, Any]] = None
) -> Optional[str]:
    """Return the index's ``refresh_interval`` setting.

    Falls back to the strategy settings when the index does not exist yet.
    ``None`` means the setting is not explicitly set on the index.
    """
    try:
        response = client.indices.get_settings(index=index)
    except NotFoundError:
        settings = fallback_settings or {}
        return (settings.get("index") or {}).get("refresh_interval")

    index_settings = (response.get(index) or {}).get("settings", {}).get("index", {})
    return index_settings.get("refresh_interval")


@contextmanager
def with_refresh_interval(
    client: OpenSearch,
    index: str,
    tmp_interval: Any = "-1",
    refresh_interval: Any = UNSET,
    fallback_settings: Optional[Dict[str, Any]] = None,
    request_timeout: Optional[float] = None,
) -> Iterator[Optional[str]]:
    """Temporarily set ``refresh_interval`` on an index.

    The previous value is restored exactly once when the block exits, whether
    it returns, raises or is interrupted.

    Args:
        client: OpenSearch client.
        index: Index to update.
        tmp_interval: Value used inside the block. ``False`` leaves the
            setting untouched, ``None`` resets it to the cluster default.
        refresh_interval: Value restored afterwards. When omitted it is read
            from the index before the override; ``None`` is a valid value
            and resets the setting to the cluster default.
        fallback_settings: Strategy settings used when the index is missing.
        request_timeout: Per-request timeout for the settings calls.

    Yields:
        The value that will be restored.
    """
    if tmp_interval is False:
        yield None
        return

    if refresh_interval is UNSET:
        refresh_interval = read_refresh_interval(client, index, fallback_settings)

    params = {"request_timeout": request_timeout} if request_timeout else {}
    client.indices.put_settings(
        index=index, body={"index": {"refresh_interval": tmp_interval}}, **params
    )
    logger.debug(f"Set refresh_interval={tmp_interval} on '{index}' (was {refresh_interval})")
    try:
        yield refresh_interval
    finally:
        client.indices.put_settings(
            index=index, body={"index": {"refresh_interval": refresh_interval}}, **params
        )
        logger.debug(f"Restored refresh_interval={refresh_interval} on '{index}'")


class Timer:
    """Collects per-key throughput samples.

    ``measure`` times a callable and stores ``normalizer(elapsed)``; a zero
    elapsed time is not sampled since it cannot be turned into a rate.
    """

    def __init__(self):
        self.samples: Dict[str, List[float]] = {}

    def measure(
        self,
        key: str,
        fn: Callable[[], Any],
        normalizer: Optional[Callable[[float], float]] = None,
    ) -> Tuple[Any, Optional[float]]:
        start = time.perf_counter()
        value = fn()
        elapsed = time.perf_counter() - start
        return value, self.record(key, elapsed, normalizer)

    def record(
        self,
        key: str,
        elapsed: float,
        normalizer: Optional[Callable[[float], float]] = None,
    ) -> Optional[float]:
        samples = self.samples.setdefault(key, [])
        if elapsed <= 0:
            return None
        sample = normalizer(elapsed) if normalizer else elapsed
        samples.append(sample)
        return sample

    def averages(self) -> Dict[str, Optional[float]]:
        return {
            key: round(sum(values) / len(values), 2) if values else None
            for key, values in self.samples.items()
        }


def per_second(count: int) -> Callable[[float], float]:
    """Normalizer turning an elapsed time into documents per second."""
    return lambda elapsed: count / elapsed
