"""Remote task API clients."""

from .base import RemoteTaskClient
from .tingwu import TingwuClient

__all__ = [
    "RemoteTaskClient",
    "TingwuClient",
]
