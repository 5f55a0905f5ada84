"""Named helper functions callable from query expressions.

``builtin_helpers()`` returns the stock registry.  ``load_helpers(path)``
imports a user Python file and returns its public callables, which
``build_registry`` layers on top of the built-ins (user names win)::

    # ~/helpers.py
    def correlation(x, y): ...

    JSONSIFT_HELPERS__PATH=~/helpers.py jsonsift eval 'correlation(.a, .b)'

A helper file may define ``__all__`` to limit what is exported.
"""

from __future__ import annotations

import base64
import importlib.util
import inspect
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from jsonsift.output import stringify
from jsonsift.stats import percentile, stats

HelperRegistry = Mapping[str, Callable[..., Any]]


class HelperLoadError(Exception):
    """A user helper file could not be imported."""


# ---------------------------------------------------------------------------
# Structural helpers
# ---------------------------------------------------------------------------


def flatten_json(data: Any, path: tuple[Any, ...] = ()) -> dict[str, Any]:
    """Map every leaf of *data* to its dot-joined path: ``{"a.0.b": 1}``."""
    if isinstance(data, list):
        items = enumerate(data)
    elif isinstance(data, dict):
        items = data.items()
    else:
        return {".".join(str(p) for p in path): data}
    flat: dict[str, Any] = {}
    for key, value in items:
        flat.update(flatten_json(value, (*path, key)))
    return flat


def size_of_object(data: Any) -> int:
    """Rough in-memory size in bytes: bool 4, number 8, string 2 per char."""
    seen: set[int] = set()
    stack = [data]
    size = 0
    while stack:
        value = stack.pop()
        if isinstance(value, bool):
            size += 4
        elif isinstance(value, str):
            size += len(value) * 2
        elif isinstance(value, int | float):
            size += 8
        elif isinstance(value, dict | list) and id(value) not in seen:
            seen.add(id(value))
            stack.extend(value.values() if isinstance(value, dict) else value)
    return size


def base64_decode(data: str | None) -> str | None:
    return base64.b64decode(data).decode("utf-8") if data else data


def base64_encode(data: str | None) -> str | None:
    return base64.b64encode(data.encode("utf-8")).decode("ascii") if data else data


def json_stringify(data: Any, stringifier: str = "stable") -> str:
    return stringify(data, stringifier)


# ---------------------------------------------------------------------------
# Collection helpers
# ---------------------------------------------------------------------------


def get(data: Any, path: str | int, default: Any = None) -> Any:
    """Follow a dotted *path* (``"a.0.b"``) into *data*; *default* if absent."""
    if path == "":
        return data
    current = data
    for part in str(path).split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.lstrip("-").isdigit():
            index = int(part)
            if not -len(current) <= index < len(current):
                return default
            current = current[index]
        else:
            return default
    return current


def pick(data: dict[str, Any], keys: list[str] | str) -> dict[str, Any]:
    keys = [keys] if isinstance(keys, str) else keys
    return {k: data[k] for k in keys if k in data}


def omit(data: dict[str, Any], keys: list[str] | str) -> dict[str, Any]:
    keys = {keys} if isinstance(keys, str) else set(keys)
    return {k: v for k, v in data.items() if k not in keys}


def keys(data: dict[str, Any] | list[Any]) -> list[Any]:
    return list(data) if isinstance(data, dict) else list(range(len(data)))


def values(data: dict[str, Any] | list[Any]) -> list[Any]:
    return list(data.values()) if isinstance(data, dict) else list(data)


def length(data: Any) -> int:
    return len(data)


def group_by(items: list[Any], path: str) -> dict[str, list[Any]]:
    """Group *items* by the value at *path*, keyed by its string form."""
    groups: dict[str, list[Any]] = {}
    for item in items:
        groups.setdefault(_key(get(item, path)), []).append(item)
    return groups


def count_by(items: list[Any], path: str) -> dict[str, int]:
    return {k: len(v) for k, v in group_by(items, path).items()}


def sort_by(items: list[Any], path: str) -> list[Any]:
    """Stable sort by the value at *path*; missing values sort last."""
    present = [i for i in items if get(i, path) is not None]
    missing = [i for i in items if get(i, path) is None]
    return sorted(present, key=lambda i: get(i, path)) + missing


def uniq(items: list[Any]) -> list[Any]:
    seen: set[str] = set()
    unique = []
    for item in items:
        marker = stringify(item)
        if marker not in seen:
            seen.add(marker)
            unique.append(item)
    return unique


def flatten(items: list[Any]) -> list[Any]:
    """Flatten one level of nesting."""
    flat: list[Any] = []
    for item in items:
        flat.extend(item if isinstance(item, list) else [item])
    return flat


def _key(value: Any) -> str:
    # Mirrors how JSON object keys stringify: null → "null", 1 → "1".
    return value if isinstance(value, str) else stringify(value)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def builtin_helpers() -> dict[str, Callable[..., Any]]:
    """Return a fresh copy of the built-in helper registry."""
    return {
        "flatten_json": flatten_json,
        "size_of_object": size_of_object,
        "base64_decode": base64_decode,
        "base64_encode": base64_encode,
        "stats": stats,
        "percentile": percentile,
        "json_stringify": json_stringify,
        "get": get,
        "pick": pick,
        "omit": omit,
        "keys": keys,
        "values": values,
        "length": length,
        "group_by": group_by,
        "count_by": count_by,
        "sort_by": sort_by,
        "uniq": uniq,
        "flatten": flatten,
        "sum": sum,
        "min": min,
        "max": max,
    }


def load_helpers(path: Path) -> dict[str, Callable[..., Any]]:
    """Import the Python file at *path* and return its exported callables.

    Exports are the names in ``__all__`` when defined, otherwise every
    public function or class defined in the file itself.

    Raises:
        HelperLoadError: if the file is missing or fails to import.
    """
    path = path.expanduser()
    if not path.is_file():
        raise HelperLoadError(f"helpers file not found: {path}")
    spec = importlib.util.spec_from_file_location(f"jsonsift_user_helpers_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise HelperLoadError(f"cannot import helpers from {path}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise HelperLoadError(f"error importing helpers from {path}: {exc}") from exc

    exported = getattr(module, "__all__", None)
    if exported is not None:
        return {name: getattr(module, name) for name in exported if callable(getattr(module, name, None))}
    return {
        name: obj
        for name, obj in vars(module).items()
        if not name.startswith("_")
        and (inspect.isfunction(obj) or inspect.isclass(obj))
        and obj.__module__ == module.__name__
    }


def build_registry(helpers_path: Path | None = None) -> dict[str, Callable[..., Any]]:
    """Built-in helpers overlaid with those loaded from *helpers_path*."""
    registry = builtin_helpers()
    if helpers_path is not None:
        registry.update(load_helpers(helpers_path))
    return registry
