"""
Service Interfaces

Abstract base classes for service layer following Dependency Inversion Principle.
This allows for dependency injection and easier testing/mocking.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Iterator, List, Optional, TypeVar

V = TypeVar('V')


class IKeyValueStore(ABC, Generic[V]):
    """
    Minimal key-value store contract.

    The session-to-input-file map and the active-execution registry are both
    built on this so a bounded or evicting store can be swapped in without
    touching call sites.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[V]:
        """Return the value for key, or None if absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: V) -> None:
        """Store value under key (last write wins)."""
        pass

    @abstractmethod
    def pop(self, key: str) -> Optional[V]:
        """Remove key and return its value, or None if absent."""
        pass

    @abstractmethod
    def __contains__(self, key: str) -> bool:
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass

    @abstractmethod
    def keys(self) -> Iterator[str]:
        pass


class IProviderChat(ABC):
    """
    Provider chat capability: messages in, text out.

    Implementations differ only in request formatting; callers see a
    uniform interface.
    """

    name: str

    @abstractmethod
    def is_configured(self) -> bool:
        """True if the provider has the credentials/endpoint it needs."""
        pass

    @abstractmethod
    async def chat(self, messages: List[Dict[str, str]], options: Dict[str, Any]) -> str:
        """
        Send a conversation and return the assistant reply text.

        Args:
            messages: List of {"role", "content"} dicts, system prompt first
            options: temperature, max_tokens and optional model override

        Returns:
            Reply text

        Raises:
            ProviderError: If the request fails or the reply is malformed
        """
        pass
