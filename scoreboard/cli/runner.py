"""``python -m scoreboard run <module> [global flags] [module args]``.

Global flags pick service implementations and runtime settings; everything
else is checked against the module's ``module.json`` arg definitions.
"""

from __future__ import annotations

import asyncio
import importlib
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from scoreboard.config.container import Container
from scoreboard.config.context import ModuleConfig
from scoreboard.config.env_loader import load_env_file
from scoreboard.modules.base import Module
from scoreboard.services.health.health_server import HealthCheckServer
from scoreboard.services.lifecycle.lifecycle_manager import LifecycleManager
from scoreboard.services.logger.factory import LoggerFactory
from scoreboard.services.metrics.interface import MetricsInterface
from scoreboard.services.metrics.noop_metrics import NoopMetrics
from scoreboard.services.registry import REGISTRY, resolve_implementation, resolve_interface_type
from scoreboard.services.secrets.env_secrets import EnvSecrets
from scoreboard.services.secrets.interface import SecretsInterface

MODULES_DIR = Path(__file__).resolve().parent.parent / "modules"

USAGE = "Usage: python -m scoreboard run <module_name> [flags] [module args]"

DEFAULT_HEALTH_PORT = 8080

# Flags whose value names a service implementation, with their help text
_IMPL_FLAGS: dict[str, str] = {
    "state": "Counter store",
    "mq": "Message queue",
    "metrics": "Metrics backend [default: noop]",
    "log": "Logging [default: pretty]",
}
_LOG_IMPLS = ("pretty", "memory", "loki")
_SETTING_FLAGS = {"env", "env-file", "health-port"}

# Module types that run behind a health server with signal handling
_LONG_RUNNING = {"service", "worker"}


@dataclass
class GlobalFlags:
    impls: dict[str, str] = field(default_factory=dict)
    env: dict[str, str] = field(default_factory=dict)
    health_port: int = DEFAULT_HEALTH_PORT


# ── Argument parsing ──────────────────────────────────────────────────────────


def load_module_descriptor(module_name: str) -> dict[str, Any]:
    path = MODULES_DIR / module_name / "module.json"
    if not path.exists():
        raise FileNotFoundError(f"module '{module_name}' not found at {path}")
    return json.loads(path.read_text())


def _tokenize(raw_args: list[str]) -> dict[str, str]:
    """``--name value`` pairs; a bare ``--name`` reads as ``"true"``."""
    pairs: dict[str, str] = {}
    pending: str | None = None
    for token in raw_args:
        if token.startswith("--"):
            if pending is not None:
                pairs[pending] = "true"
            pending = token[2:]
        elif pending is not None:
            pairs[pending] = token
            pending = None
    if pending is not None:
        pairs[pending] = "true"
    return pairs


def _cast_value(value: str, type_name: str) -> Any:
    match type_name:
        case "integer":
            return int(value)
        case "float":
            return float(value)
        case "boolean":
            return value.lower() in ("true", "1", "yes")
        case _:
            return value


def parse_module_args(descriptor: dict[str, Any], raw_args: list[str]) -> dict[str, Any]:
    """Validate CLI args against the module.json arg definitions.

    Unknown names, uncastable values, missing required args and values outside
    ``choices`` are all reported together in one ValueError.
    """
    arg_defs = {d["name"]: d for d in descriptor.get("args", [])}
    given = _tokenize(raw_args)
    errors = [f"Unknown argument: --{name}" for name in given if name not in arg_defs]
    result: dict[str, Any] = {}

    for name, arg_def in arg_defs.items():
        type_name = arg_def.get("type", "string")
        if name in given:
            try:
                result[name] = _cast_value(given[name], type_name)
            except ValueError:
                errors.append(f"Invalid value for --{name}: '{given[name]}' (expected {type_name})")
                continue
        elif "default" in arg_def:
            result[name] = arg_def["default"]
        elif arg_def.get("required", False):
            errors.append(f"Missing required argument: --{name}")
            continue
        else:
            continue

        choices = arg_def.get("choices")
        if choices and result[name] not in choices:
            errors.append(
                f"Invalid value for --{name}: '{result[name]}' "
                f"(choices: {', '.join(str(c) for c in choices)})"
            )

    if errors:
        raise ValueError("; ".join(errors))
    return result


def _parse_env_overrides(raw: str) -> dict[str, str]:
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("--env value must be a JSON object")
    if not all(isinstance(k, str) and isinstance(v, str) for k, v in data.items()):
        raise ValueError("--env JSON must have string keys and string values")
    return data


def split_global_flags(raw_args: list[str]) -> tuple[GlobalFlags, list[str]]:
    """Separate global flags from module args.

    ``--env`` JSON overrides take precedence over ``--env-file`` values.
    """
    flags = GlobalFlags()
    module_args: list[str] = []
    env_file: str | None = None
    known = set(_IMPL_FLAGS) | _SETTING_FLAGS

    tokens = iter(raw_args)
    for token in tokens:
        name = token[2:] if token.startswith("--") else None
        if name not in known:
            module_args.append(token)
            continue
        value = next(tokens, None)
        if value is None:
            raise ValueError(f"--{name} needs a value")
        if name == "env":
            flags.env.update(_parse_env_overrides(value))
        elif name == "env-file":
            env_file = value
        elif name == "health-port":
            flags.health_port = int(value)
        else:
            flags.impls[name] = value

    if env_file:
        flags.env = {**load_env_file(env_file), **flags.env}
    if "log" in flags.impls:
        flags.env.setdefault("LOG_IMPL", flags.impls["log"])
    return flags, module_args


def print_module_help(descriptor: dict[str, Any]) -> None:
    version = descriptor.get("version")
    print(f"\n  {descriptor['display_name']}{f' v{version}' if version else ''}")
    print(f"  {descriptor['description']}\n")
    if descriptor.get("type"):
        print(f"  Type: {descriptor['type']}\n")

    if descriptor.get("args"):
        print("  Module arguments:")
        for arg in descriptor["args"]:
            notes = ""
            if arg.get("required"):
                notes += " (required)"
            if "default" in arg:
                notes += f" [default: {arg['default']}]"
            if arg.get("choices"):
                notes += f" (choices: {', '.join(str(c) for c in arg['choices'])})"
            print(f"    --{arg['name']:24s} {arg['description']}{notes}")
        print()

    print("  Global flags:")
    for name, label in _IMPL_FLAGS.items():
        impls = _LOG_IMPLS if name == "log" else tuple(REGISTRY[name])
        print(f"    --{name:24s} {label}: {', '.join(impls)}")
    print(f"    --{'health-port':24s} Health check HTTP port (service/worker only) [default: {DEFAULT_HEALTH_PORT}]")
    print(f"    --{'env':24s} JSON object of env var overrides")
    print(f"    --{'env-file':24s} Env file name (loads .env/<name>.env) or path")
    print()


# ── Wiring ────────────────────────────────────────────────────────────────────


def _build_container(flags: GlobalFlags, module_args: dict[str, Any], module_type: str = "job") -> Container:
    """Register config, logging, lifecycle and every service picked by a flag."""
    container = Container()
    container.register_instance(Container, container)
    container.register_instance(SecretsInterface, EnvSecrets(overrides=flags.env))
    container.register_instance(ModuleConfig, ModuleConfig(module_args))

    log_impl = flags.impls.get("log") or flags.env.get("LOG_IMPL", "pretty")
    container.register_instance(LoggerFactory, LoggerFactory(default_impl=log_impl))

    lifecycle = LifecycleManager()
    container.register_instance(LifecycleManager, lifecycle)

    health: HealthCheckServer | None = None
    if module_type in _LONG_RUNNING:
        health = HealthCheckServer(port=flags.health_port)
        lifecycle.set_health_server(health)
        container.register_instance(HealthCheckServer, health)

    for flag_name, impl_name in flags.impls.items():
        if flag_name == "log":
            continue
        service = container.resolve(resolve_implementation(flag_name, impl_name))
        container.register_instance(resolve_interface_type(flag_name), service)
        if health is not None and hasattr(service, "health_check"):
            health.register_check(flag_name, service.health_check)

    if not container.has(MetricsInterface):
        container.register_instance(MetricsInterface, NoopMetrics())
    return container


def load_module_class(module_name: str) -> type[Module]:
    path = f"scoreboard.modules.{module_name}.main"
    mod = importlib.import_module(path)
    module_class = getattr(mod, "module_class", None)
    if module_class is None:
        raise AttributeError(f"Module '{path}' must define a 'module_class' attribute")
    return module_class


async def _run_long_running(module: Module, container: Container) -> int:
    lifecycle = container.get(LifecycleManager)
    health = container.get(HealthCheckServer)

    await health.start()
    lifecycle.install_signal_handlers(loop=asyncio.get_running_loop())
    try:
        health.mark_started()
        return await module.run()
    finally:
        await lifecycle.shutdown()


# ── Entry points ──────────────────────────────────────────────────────────────


def run_module(argv: list[str]) -> tuple[int, Module | None]:
    """Parse *argv*, wire services, run the module; returns (exit_code, module)."""
    if len(argv) < 2 or argv[0] != "run":
        raise ValueError(USAGE)

    module_name, rest = argv[1], argv[2:]
    descriptor = load_module_descriptor(module_name)
    if "--help" in rest or "-h" in rest:
        print_module_help(descriptor)
        return 0, None

    module_type = descriptor.get("type", "job")
    flags, raw_module_args = split_global_flags(rest)
    module_args = parse_module_args(descriptor, raw_module_args)
    container = _build_container(flags, module_args, module_type=module_type)
    module = container.resolve(load_module_class(module_name))

    if module_type in _LONG_RUNNING:
        return asyncio.run(_run_long_running(module, container)), module
    return asyncio.run(module.run()), module


def run_cli(argv: list[str] | None = None) -> None:
    try:
        exit_code, _ = run_module(sys.argv[1:] if argv is None else argv)
    except (ValueError, FileNotFoundError, TypeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(exit_code)
