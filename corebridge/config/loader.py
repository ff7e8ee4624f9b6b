"""Read and write the camelCase JSON config file."""

import json
import os
import threading
from pathlib import Path
from typing import Any, Callable

from corebridge.config.schema import Config

# Environment override for the engine accounts directory.
ACCOUNTS_PATH_ENV = "DC_ACCOUNTS_PATH"

# Free-form sections handed to the engine factory untouched.
_OPAQUE_KEYS = frozenset({"options"})

_cache_lock = threading.RLock()
# resolved path -> (file mtime_ns or None when absent, loaded Config)
_cache: dict[Path, tuple[int | None, Config]] = {}


def get_config_path() -> Path:
    """Default location: ``~/.corebridge/config.json``."""
    return Path.home() / ".corebridge" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Build a Config from the JSON file at ``config_path``.

    A missing file means defaults (plus ``COREBRIDGE_*`` env overrides).
    A file that is not a JSON object, or fails validation, raises ValueError
    naming the path.
    """
    path = config_path or get_config_path()
    if not path.exists():
        return _with_env_overrides(Config())

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError("config root must be a JSON object")
        cfg = Config(**convert_keys(raw))
    except (json.JSONDecodeError, ValueError) as e:
        raise ValueError(
            f"Failed to load config from {path}: {e}. "
            "Fix the file or remove it to fall back to defaults."
        ) from e
    return _with_env_overrides(cfg)


def _with_env_overrides(cfg: Config) -> Config:
    accounts_path = os.environ.get(ACCOUNTS_PATH_ENV)
    if accounts_path:
        cfg.engine.accounts_path = accounts_path
    return cfg


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Write ``config`` as camelCase JSON and drop any cached copy of that file."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(convert_to_camel(config.model_dump()), indent=2), encoding="utf-8")

    clear_config_cache(config_path=path)


def _mtime_ns(path: Path) -> int | None:
    try:
        return path.stat().st_mtime_ns
    except FileNotFoundError:
        return None


def get_config(*, config_path: Path | None = None, force_reload: bool = False) -> Config:
    """
    Return the shared Config for ``config_path``.

    The cached copy is reused until the file changes on disk, ``force_reload``
    is passed, or the entry is cleared.
    """
    path = Path(config_path or get_config_path()).expanduser().resolve()
    stamp = _mtime_ns(path)
    with _cache_lock:
        cached = _cache.get(path)
        if force_reload or cached is None or cached[0] != stamp:
            cached = _cache[path] = (stamp, load_config(path))
        return cached[1]


def clear_config_cache(*, config_path: Path | None = None) -> None:
    """Drop one cached file, or all of them when no path is given."""
    with _cache_lock:
        if config_path is None:
            _cache.clear()
        else:
            _cache.pop(Path(config_path).expanduser().resolve(), None)


def _rekey(data: Any, rename: Callable[[str], str]) -> Any:
    if isinstance(data, list):
        return [_rekey(item, rename) for item in data]
    if not isinstance(data, dict):
        return data
    out: dict[str, Any] = {}
    for key, value in data.items():
        new_key = rename(key)
        opaque = new_key in _OPAQUE_KEYS and isinstance(value, dict)
        out[new_key] = dict(value) if opaque else _rekey(value, rename)
    return out


def convert_keys(data: Any) -> Any:
    """camelCase -> snake_case, leaving engine ``options`` as written."""
    return _rekey(data, camel_to_snake)


def convert_to_camel(data: Any) -> Any:
    """snake_case -> camelCase, leaving engine ``options`` as written."""
    return _rekey(data, snake_to_camel)


def camel_to_snake(name: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() and i else c.lower() for i, c in enumerate(name))


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)
