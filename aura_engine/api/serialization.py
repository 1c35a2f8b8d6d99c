from dataclasses import is_dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any


def json_safe(x: Any) -> Any:
    """Convert engine values (dataclasses, enums, tuples, paths) into JSON-ready data."""
    if isinstance(x, Path):
        return str(x)
    if is_dataclass(x) and not isinstance(x, type):
        return {f.name: json_safe(getattr(x, f.name)) for f in fields(x)}
    if isinstance(x, Enum):
        return x.value
    if isinstance(x, dict):
        return {str(json_safe(k)): json_safe(v) for k, v in x.items()}
    if isinstance(x, (list, tuple, set, frozenset)):
        return [json_safe(v) for v in x]
    if isinstance(x, float) and x != x:
        return None
    return x
