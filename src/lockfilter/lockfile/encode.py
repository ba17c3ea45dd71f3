"""TOML value encoding shared by the lock renderer and stub manifests."""

from __future__ import annotations

import json
import math
import re
from datetime import date, datetime, time
from typing import Any

from lockfilter.errors import LockfileError

BARE_KEY = re.compile(r"^[A-Za-z0-9_\-]+$")


def toml_key(key: str) -> str:
    return key if BARE_KEY.fullmatch(key) else toml_string(key)


def toml_string(value: str) -> str:
    # JSON escapes are valid TOML basic-string escapes except for DEL.
    return json.dumps(value, ensure_ascii=False).replace("\x7f", "\\u007f")


def toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return toml_string(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "nan"
        if math.isinf(value):
            return "inf" if value > 0 else "-inf"
        return repr(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, list):
        return "[" + ", ".join(toml_value(item) for item in value) + "]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        items = ", ".join(f"{toml_key(k)} = {toml_value(v)}" for k, v in value.items())
        return "{ " + items + " }"
    raise LockfileError(
        "Unsupported value type in lock entry.",
        context={"type": type(value).__name__},
    )


__all__ = ["toml_key", "toml_string", "toml_value"]
