import inspect
from typing import Any, TypeVar, get_type_hints

T = TypeVar("T")

_SKIP = object()


class Container:
    """Holds one instance per type and builds classes from them.

    resolve() fills each constructor parameter from the instance registered
    under the parameter's type hint. A parameter with a default is left to its
    default when nothing is registered for it.
    """

    def __init__(self) -> None:
        self._registry: dict[type, Any] = {}

    def register_instance(self, type_key: type, instance: Any) -> None:
        self._registry[type_key] = instance

    def get(self, type_key: type[T]) -> T:
        if type_key not in self._registry:
            raise TypeError(f"No registration found for type {type_key.__name__!r}")
        return self._registry[type_key]

    def has(self, type_key: type) -> bool:
        return type_key in self._registry

    def resolve(self, cls: type[T]) -> T:
        try:
            hints = get_type_hints(cls.__init__)
        except Exception as exc:
            raise TypeError(f"Cannot read type hints for {cls.__name__}.__init__: {exc}") from exc

        kwargs: dict[str, Any] = {}
        for name, param in inspect.signature(cls.__init__).parameters.items():
            if name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            value = self._dependency(cls, name, param, hints.get(name))
            if value is not _SKIP:
                kwargs[name] = value
        return cls(**kwargs)

    def _dependency(self, cls: type, name: str, param: inspect.Parameter, hint: Any) -> Any:
        where = f"parameter '{name}' of {cls.__name__}.__init__"
        if hint is not None and hint in self._registry:
            return self._registry[hint]
        if param.default is not param.empty:
            return _SKIP
        if hint is None:
            raise TypeError(f"No type hint for {where}")
        raise TypeError(
            f"No registration found for type {getattr(hint, '__name__', hint)!r} ({where})"
        )
