# Remote note store implementations
from qnote.sync.remote.base import RemoteStore
from qnote.sync.remote.http import HttpRemoteStore
from qnote.sync.remote.memory import InMemoryRemoteStore

__all__ = [
    "HttpRemoteStore",
    "InMemoryRemoteStore",
    "RemoteStore",
]
