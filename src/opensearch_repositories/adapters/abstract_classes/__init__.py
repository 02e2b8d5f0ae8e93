from .abc_adapter import ABCAdapter

__all__ = [
    "ABCAdapter",
]
