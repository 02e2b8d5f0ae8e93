from .abstract_classes import ABCAdapter
from .adapter_registry import AdapterRegistry, adapter_registry

__all__ = [
    "ABCAdapter",
    "AdapterRegistry",
    "adapter_registry",
]
