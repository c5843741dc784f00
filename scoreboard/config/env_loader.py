"""Reads ``KEY=VALUE`` env files used by ``--env-file``.

``--env-file local`` loads ``.env/local.env`` under the project root; a value
that points at an existing file is loaded directly. Blank lines, ``#``
comments and a leading ``export`` are ignored; matching single or double
quotes around a value are stripped. Inline ``#`` after a value is kept.
"""

from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def resolve_env_file(env_name: str, project_root: Path | None = None) -> Path:
    direct = Path(env_name)
    if direct.suffix == ".env" and direct.is_file():
        return direct
    return (project_root or _PROJECT_ROOT) / ".env" / f"{env_name}.env"


def load_env_file(env_name: str = "local", project_root: Path | None = None) -> dict[str, str]:
    """Return the variables defined in the env file; empty if it does not exist."""
    env_file = resolve_env_file(env_name, project_root)
    if not env_file.exists():
        return {}
    return _parse_env_file(env_file)


def _parse_env_file(path: Path) -> dict[str, str]:
    result: dict[str, str] = {}
    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export "):]
        key, _, value = line.partition("=")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]
        result[key.strip()] = value
    return result
