"""Runtime model of decoded JSON values.

Instances arrive as the values ``json.loads`` produces: ``None``, ``bool``,
``int``, ``float``, ``str``, ``list`` and ``dict``. ``bool`` is a subclass of
``int`` in Python, so every test here checks for it first.
"""

import math
from typing import Any

from jsonschemavm.errors import InvalidInstanceError

JSON_NULL = 'null'
JSON_BOOLEAN = 'boolean'
JSON_NUMBER = 'number'
JSON_INTEGER = 'integer'
JSON_STRING = 'string'
JSON_ARRAY = 'array'
JSON_OBJECT = 'object'

JSON_TYPES = frozenset([
    JSON_NULL, JSON_BOOLEAN, JSON_NUMBER, JSON_INTEGER, JSON_STRING, JSON_ARRAY, JSON_OBJECT
])


def is_number(value: Any) -> bool:
    """True for ints and floats, false for bools."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_integral(value: Any) -> bool:
    """True if a number has no fractional part, whatever its Python type."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value) and value == round(value)
    return False


def json_type_of(value: Any) -> str:
    """Returns the runtime tag of a decoded JSON value.

    Integers report as ``number``; ``integer`` is a refinement checked by
    :func:`is_integral`.

    Raises:
        InvalidInstanceError: If the value is not a decoded JSON value
    """
    if value is None:
        return JSON_NULL
    if isinstance(value, bool):
        return JSON_BOOLEAN
    if isinstance(value, (int, float)):
        return JSON_NUMBER
    if isinstance(value, str):
        return JSON_STRING
    if isinstance(value, list):
        return JSON_ARRAY
    if isinstance(value, dict):
        return JSON_OBJECT
    raise InvalidInstanceError(f"Unsupported instance value of type {type(value).__name__}")


def json_equal(left: Any, right: Any) -> bool:
    """Deep equality with JSON semantics.

    ``1 == 1.0``, object key order is irrelevant and ``true`` never equals ``1``.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return left == right
    if isinstance(left, list) and isinstance(right, list):
        if len(left) != len(right):
            return False
        return all(json_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, dict) and isinstance(right, dict):
        if left.keys() != right.keys():
            return False
        return all(json_equal(value, right[key]) for key, value in left.items())
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return False
