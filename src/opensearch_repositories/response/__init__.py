from .records import Records
from .response import Response
from .result import Result

__all__ = [
    "Records",
    "Response",
    "Result",
]
