"""
In-memory key-value repository.

Process-lifetime dict-backed store. No expiry and no size bound; an
evicting implementation of IKeyValueStore can replace it where needed.
"""

from typing import Dict, Generic, Iterator, Optional, TypeVar

from services.interfaces import IKeyValueStore

V = TypeVar('V')


class InMemoryStore(IKeyValueStore[V], Generic[V]):
    """
    Dict-backed IKeyValueStore.

    Last write wins. Mutations happen on the event loop thread only, so no
    locking is done.
    """

    def __init__(self):
        self._data: Dict[str, V] = {}

    def get(self, key: str) -> Optional[V]:
        return self._data.get(key)

    def set(self, key: str, value: V) -> None:
        self._data[key] = value

    def pop(self, key: str) -> Optional[V]:
        return self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))
