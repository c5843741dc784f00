from abc import ABC, abstractmethod


class SecretsInterface(ABC):
    """Connection settings and credentials, looked up by name."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the value for *key*, or None if unset."""
        ...

    @abstractmethod
    def get_or_default(self, key: str, default: str) -> str: ...

    @abstractmethod
    def require(self, key: str) -> str:
        """Return the value for *key*, raising KeyError if unset."""
        ...
