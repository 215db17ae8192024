"""
Runtime helpers called by expanded chains.

A value is a failure when it is None or an Exception instance; everything
else is a success. Process helpers act on successes and pass failures
through untouched, default helpers do the opposite.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence

__all__ = [
    "is_failure",
    "map_",
    "and_then",
    "filter_",
    "inspect",
    "zip_",
    "or_",
    "or_else",
    "map_err",
    "map_all",
    "and_then_all",
]


def is_failure(value: Any) -> bool:
    return value is None or isinstance(value, Exception)


# ---------- process ----------

def map_(value: Any, fn: Callable[[Any], Any]) -> Any:
    if is_failure(value):
        return value
    return fn(value)


def and_then(value: Any, fn: Callable[[Any], Any]) -> Any:
    """Like `map_`, but an exception raised by `fn` becomes the chain value."""
    if is_failure(value):
        return value
    try:
        return fn(value)
    except Exception as exc:
        return exc


def filter_(value: Any, predicate: Callable[[Any], Any]) -> Any:
    if is_failure(value):
        return value
    return value if predicate(value) else None


def inspect(value: Any, fn: Callable[[Any], Any]) -> Any:
    if not is_failure(value):
        fn(value)
    return value


def zip_(value: Any, other: Any) -> Any:
    if is_failure(value):
        return value
    if is_failure(other):
        return other
    return (value, other)


# ---------- default ----------

def or_(value: Any, alternative: Any) -> Any:
    return alternative if is_failure(value) else value


def or_else(value: Any, fn: Callable[[Any], Any]) -> Any:
    """`fn` receives the failure (None or the exception)."""
    return fn(value) if is_failure(value) else value


def map_err(value: Any, fn: Callable[[Exception], Any]) -> Any:
    if isinstance(value, Exception):
        return fn(value)
    return value


# ---------- handlers ----------

def _first_failure(values: Sequence[Any]) -> Any:
    for value in values:
        if is_failure(value):
            return value
    raise LookupError("no failure in values")


def map_all(values: Sequence[Any], fn: Callable[..., Any]) -> Any:
    if any(is_failure(value) for value in values):
        return _first_failure(values)
    return fn(*values)


def and_then_all(values: Sequence[Any], fn: Callable[..., Any]) -> Any:
    if any(is_failure(value) for value in values):
        return _first_failure(values)
    try:
        return fn(*values)
    except Exception as exc:
        return exc
