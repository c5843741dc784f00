from typing import Any, Iterable


class ModuleConfig:
    """Module arguments as parsed by the runner, defaults already applied.

    The typed getters raise ValueError naming the ``--arg`` so that a bad
    value fails the module's validate() step with a readable message.
    """

    def __init__(self, args: dict[str, Any]) -> None:
        self._args = dict(args)

    def get(self, key: str, default: Any = None) -> Any:
        return self._args.get(key, default)

    def get_int(self, key: str, default: int, minimum: int | None = None) -> int:
        raw = self._args.get(key, default)
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise ValueError(f"--{key} must be an integer, got {raw!r}") from None
        if minimum is not None and value < minimum:
            raise ValueError(f"--{key} must be >= {minimum}, got {value}")
        return value

    def get_choice(self, key: str, choices: Iterable[str], default: str) -> str:
        allowed = tuple(choices)
        value = self._args.get(key, default)
        if value not in allowed:
            raise ValueError(f"Invalid --{key} '{value}' (choices: {', '.join(allowed)})")
        return value

    def __contains__(self, key: str) -> bool:
        return key in self._args

    def __repr__(self) -> str:
        return f"ModuleConfig({self._args})"
