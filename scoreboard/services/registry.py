"""Maps (flag name, implementation name) to concrete classes.

Entries are dotted strings so that selecting ``--mq memory`` never imports
confluent-kafka, and ``--state memory`` never imports redis.
"""

import importlib
from typing import Any

REGISTRY: dict[str, dict[str, str]] = {
    "state": {
        "memory": "scoreboard.services.state.memory_state.MemoryStateStore",
        "redis": "scoreboard.services.state.redis_state.RedisStateStore",
    },
    "mq": {
        "memory": "scoreboard.services.message_queue.memory_queue.MemoryQueue",
        "kafka": "scoreboard.services.message_queue.kafka_queue.KafkaQueue",
    },
    "metrics": {
        "noop": "scoreboard.services.metrics.noop_metrics.NoopMetrics",
        "memory": "scoreboard.services.metrics.memory_metrics.MemoryMetrics",
        "prometheus": "scoreboard.services.metrics.prometheus_metrics.PrometheusMetrics",
    },
}

# Flag name -> interface ABC the instance is registered under
INTERFACE_TYPES: dict[str, str] = {
    "state": "scoreboard.services.state.interface.StateStoreInterface",
    "mq": "scoreboard.services.message_queue.interface.MessageQueueInterface",
    "metrics": "scoreboard.services.metrics.interface.MetricsInterface",
}


def resolve_class(dotted_path: str) -> type[Any]:
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


def resolve_implementation(flag_name: str, impl_name: str) -> type[Any]:
    impls = REGISTRY.get(flag_name)
    if impls is None:
        raise ValueError(f"Unknown interface flag: --{flag_name}")
    dotted = impls.get(impl_name)
    if dotted is None:
        raise ValueError(
            f"Unknown implementation '{impl_name}' for --{flag_name} "
            f"(available: {', '.join(impls)})"
        )
    return resolve_class(dotted)


def resolve_interface_type(flag_name: str) -> type[Any]:
    dotted = INTERFACE_TYPES.get(flag_name)
    if dotted is None:
        raise ValueError(f"Unknown interface flag: --{flag_name}")
    return resolve_class(dotted)
