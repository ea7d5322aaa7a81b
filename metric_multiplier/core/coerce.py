# metric_multiplier/core/coerce.py
from __future__ import annotations
from typing import Any
import numpy as np

# numpy scalar types are their own tag: the type carries width and signedness
_NUMPY_NUMERIC: tuple[type, ...] = (np.int32, np.int64, np.uint32, np.uint64, np.float32, np.float64)


class UnsupportedValueError(TypeError):
    """Value is not one of the numeric representations a factor can apply to."""


def numeric_kind(value: Any) -> str | None:
    """'int64', 'uint32', 'float', ... or None when the value is not numeric."""
    if isinstance(value, bool) or isinstance(value, np.bool_):
        return None
    if isinstance(value, _NUMPY_NUMERIC):
        return type(value).__name__
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    return None


def _widen(value: Any) -> float:
    try:
        return float(value)
    except OverflowError as e:
        raise UnsupportedValueError(f"{type(value).__name__} value too large for float64: {e}") from e


def to_float(value: Any) -> float:
    if numeric_kind(value) is None:
        raise UnsupportedValueError(
            f"couldn't create 'float64' from value: {type(value).__name__} '{value}'")
    return _widen(value)


def multiply(value: Any, factor: float) -> Any:
    """
    factor * value, narrowed back to the type of ``value``.
    Integers are truncated toward zero, never rounded.
    """
    kind = numeric_kind(value)
    if kind is None:
        raise UnsupportedValueError(
            f"couldn't multiply {factor} [float64] with value: {type(value).__name__} '{value}'")
    product = float(factor) * _widen(value)
    if kind == "float":
        return product
    if kind == "int":
        try:
            return int(product)
        except (OverflowError, ValueError) as e:
            raise UnsupportedValueError(f"cannot represent {product} as int: {e}") from e
    # out-of-range casts wrap like the platform's C cast
    with np.errstate(over="ignore", invalid="ignore"):
        return np.float64(product).astype(type(value))
