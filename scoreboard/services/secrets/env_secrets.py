from __future__ import annotations

import os

from scoreboard.services.secrets.interface import SecretsInterface


class EnvSecrets(SecretsInterface):
    """Process environment, with CLI/.env overrides layered on top."""

    def __init__(self, overrides: dict[str, str] | None = None) -> None:
        self._values = {**os.environ, **(overrides or {})}

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def get_or_default(self, key: str, default: str) -> str:
        value = self._values.get(key)
        return default if value is None else value

    def require(self, key: str) -> str:
        if key not in self._values:
            raise KeyError(f"Required secret '{key}' is not set")
        return self._values[key]
