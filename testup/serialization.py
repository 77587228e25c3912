"""Minimal JSON encoding for data sent to UI surfaces."""

import json
from typing import Union

JsonValue = Union[str, int, float, bool, None, list, tuple, dict]


def to_minimal_json(value: JsonValue) -> str:
    """
    Encode strings, numbers, booleans, None, lists and string-keyed dicts.

    Only the shapes the UI needs are supported; anything else raises TypeError
    rather than being coerced.
    """
    # bool is a subclass of int, so it must be checked first
    if value is None or isinstance(value, bool):
        return json.dumps(value)
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, (int, float)):
        if value != value or value in (float('inf'), float('-inf')):
            raise TypeError(f"Cannot encode non-finite number: {value!r}")
        return json.dumps(value)
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(to_minimal_json(v) for v in value) + "]"
    if isinstance(value, dict):
        items = []
        for k, v in value.items():
            if not isinstance(k, str):
                raise TypeError(f"Object keys must be strings, got {type(k).__name__}")
            items.append(f"{to_minimal_json(k)}:{to_minimal_json(v)}")
        return "{" + ",".join(items) + "}"
    raise TypeError(f"Cannot encode {type(value).__name__} as JSON")
