import pytest

from scoreboard.config.container import Container


class DummyDep:
    pass


class NoDeps:
    def __init__(self) -> None:
        self.value = 42


class WithDep:
    def __init__(self, dep: DummyDep) -> None:
        self.dep = dep


class WithOptional:
    def __init__(self, dep: DummyDep, retries: int = 3) -> None:
        self.dep = dep
        self.retries = retries


class MissingHint:
    def __init__(self, dep) -> None:  # noqa: ANN001
        self.dep = dep


def test_resolve_injected_instance():
    container = Container()
    dep = DummyDep()
    container.register_instance(DummyDep, dep)
    assert container.resolve(WithDep).dep is dep


def test_resolve_no_dependencies():
    assert Container().resolve(NoDeps).value == 42


def test_unregistered_parameter_with_default_is_left_alone():
    container = Container()
    container.register_instance(DummyDep, DummyDep())
    assert container.resolve(WithOptional).retries == 3


def test_raises_on_missing_registration():
    with pytest.raises(TypeError, match="No registration found for type 'DummyDep'"):
        Container().resolve(WithDep)


def test_raises_on_missing_type_hint():
    with pytest.raises(TypeError, match="No type hint for parameter .dep."):
        Container().resolve(MissingHint)


def test_get_and_has():
    container = Container()
    assert container.has(DummyDep) is False
    dep = DummyDep()
    container.register_instance(DummyDep, dep)
    assert container.has(DummyDep) is True
    assert container.get(DummyDep) is dep


def test_get_unregistered_raises():
    with pytest.raises(TypeError, match="No registration found"):
        Container().get(DummyDep)
