"""Error trees and the formstate exception hierarchy.

Validation *failure* is data: a non-empty string leaf in an ErrorTree or an
AsyncErrorMap entry. Exceptions are reserved for programmer defects.

INVARIANT: every ErrorTree leaf is a string; ``""`` means no error.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Union

from formstate.domain.paths import split_path

ErrorTree = dict[str, Union[str, "ErrorTree"]]
AsyncErrorMap = dict[str, str]


class FormStateError(Exception):
    """Base class for all formstate defects."""


class EffectNotSynchronousError(FormStateError, TypeError):
    """An effect callback was asynchronous. Effects must return synchronously."""

    def __init__(self) -> None:
        super().__init__(
            "formstate: effect callback must be synchronous. Use action for async operations."
        )


def has_errors(tree: Mapping[str, object] | None) -> bool:
    """Whether any leaf string in *tree* is non-empty.

    Examples:
        >>> has_errors({"name": "", "address": {"zip": ""}})
        False
        >>> has_errors({"address": {"zip": "Required"}})
        True
        >>> has_errors(None)
        False
    """
    if not tree:
        return False
    for value in tree.values():
        if isinstance(value, Mapping):
            if has_errors(value):
                return True
        elif value:
            return True
    return False


def error_at_path(tree: Mapping[str, object] | None, path: str) -> str:
    """Return the error string at *path*, or ``""`` when there is none.

    A path that lands on a subtree rather than a leaf counts as no error.
    """
    current: object = tree
    for segment in split_path(path):
        if not isinstance(current, Mapping) or segment not in current:
            return ""
        current = current[segment]
    return current if isinstance(current, str) else ""


def has_async_errors(errors: Mapping[str, str]) -> bool:
    """Whether any async error entry is non-empty."""
    return any(errors.values())
