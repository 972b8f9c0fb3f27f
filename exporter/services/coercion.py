"""Numeric coercion for weakly-typed upstream JSON values.

Raw values are classified once into a closed set of kinds at the JSON
boundary, then converted to ``float`` from that classification. A value that
cannot be read as a number raises ``CoercionError``; it never becomes 0.
An explicit NaN marker from the upstream ("NaN") is passed through as
``float("nan")`` so callers can tell "no data" apart from "malformed data".
"""

from __future__ import annotations

from enum import Enum
from numbers import Integral, Real
from typing import Any, NamedTuple


class CoercionError(ValueError):
    """Raised when a raw value cannot be represented as a float."""

    def __init__(self, raw: Any, reason: str = "") -> None:
        self.raw = raw
        message = f"can't convert {type(raw).__name__} {raw!r} to float"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ScalarKind(Enum):
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    NULL = "null"
    OTHER = "other"


class Scalar(NamedTuple):
    kind: ScalarKind
    value: Any


def classify(raw: Any) -> Scalar:
    # bool is an Integral, so true/false read as 1/0
    if raw is None:
        return Scalar(ScalarKind.NULL, None)
    if isinstance(raw, Integral):
        return Scalar(ScalarKind.INTEGER, raw)
    if isinstance(raw, float):
        return Scalar(ScalarKind.FLOAT, raw)
    if isinstance(raw, (str, bytes)):
        text = raw.decode() if isinstance(raw, bytes) else raw
        return Scalar(ScalarKind.STRING, text)
    return Scalar(ScalarKind.OTHER, raw)


def coerce(scalar: Scalar) -> float:
    kind, value = scalar
    if kind is ScalarKind.INTEGER:
        try:
            return float(int(value))
        except OverflowError as exc:
            raise CoercionError(value, "integer out of float range") from exc
    if kind is ScalarKind.FLOAT:
        return float(value)
    if kind is ScalarKind.STRING:
        return _parse_float(value)
    if kind is ScalarKind.NULL:
        raise CoercionError(value, "null")
    return _convert_other(value)


def get_float(raw: Any) -> float:
    """Convert one decoded JSON value to ``float`` or raise ``CoercionError``."""
    return coerce(classify(raw))


def _parse_float(text: str) -> float:
    stripped = text.strip()
    # float() accepts digit separators, the upstream literal grammar does not
    if not stripped or "_" in stripped:
        raise CoercionError(text, "not a number")
    try:
        return float(stripped)
    except ValueError as exc:
        raise CoercionError(text, "not a number") from exc


def _convert_other(value: Any) -> float:
    # Wrapped primitives (Decimal, Fraction, numpy scalars...) expose __float__
    if isinstance(value, Real) or hasattr(value, "__float__"):
        try:
            return float(value)
        except (TypeError, ValueError, OverflowError) as exc:
            raise CoercionError(value, str(exc)) from exc
    if isinstance(value, (dict, list, tuple, set)):
        raise CoercionError(value, "container")
    return _parse_float(str(value))
