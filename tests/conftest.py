"""Shared pytest fixtures and test helpers for formstate tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from typing import Any

import pluggy
import pytest
import pytest_asyncio

from formstate.domain.validators import string_validator

hookimpl = pluggy.HookimplMarker("formstate")


class RecordingPlugin:
    """Plugin that records every lifecycle hook call, in order."""

    def __init__(self, name: str = "recorder", log: list[str] | None = None) -> None:
        self.name = name
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._log = log

    def _record(self, hook: str, **payload: Any) -> None:
        self.calls.append((hook, payload))
        if self._log is not None:
            self._log.append(f"{self.name}:{hook}")

    def hooks(self, name: str) -> list[dict[str, Any]]:
        return [payload for hook, payload in self.calls if hook == name]

    @hookimpl
    def formstate_init(self, context: Any) -> None:
        self._record("formstate_init", context=context)

    @hookimpl
    def formstate_change(
        self, target: Any, path: str, current_value: Any, old_value: Any
    ) -> None:
        self._record(
            "formstate_change", path=path, current_value=current_value, old_value=old_value
        )

    @hookimpl
    def formstate_validation(self, errors: Any) -> None:
        self._record("formstate_validation", errors=errors)

    @hookimpl
    def formstate_snapshot(self, snapshot: Any) -> None:
        self._record("formstate_snapshot", snapshot=snapshot)

    @hookimpl
    def formstate_action(self, phase: str, params: Any, error: Exception | None) -> None:
        self._record("formstate_action", phase=phase, params=params, error=error)

    @hookimpl
    def formstate_rollback(self, snapshot: Any) -> None:
        self._record("formstate_rollback", snapshot=snapshot)

    @hookimpl
    def formstate_reset(self) -> None:
        self._record("formstate_reset")

    @hookimpl
    def formstate_destroy(self) -> None:
        self._record("formstate_destroy")


def name_validator(source: Any) -> dict[str, str]:
    """Trimmed ``name`` of at most five characters."""
    return {"name": string_validator(source["name"]).prepare("trim").max_length(5).get_error()}


async def settle(delay: float = 0.0) -> None:
    """Let queued callbacks and timers up to *delay* seconds run."""
    await asyncio.sleep(delay)
    await asyncio.sleep(0)


@pytest.fixture
def recorder() -> RecordingPlugin:
    return RecordingPlugin()


@pytest.fixture
def person() -> dict[str, Any]:
    """A fresh nested state root for engine tests."""
    return {
        "name": "Csaba",
        "age": 10,
        "address": {"city": "Budapest", "zip": "1000"},
        "tags": ["a", "b"],
    }


@pytest_asyncio.fixture
async def loop_errors() -> AsyncGenerator[list[dict[str, Any]]]:
    """Collect contexts passed to the running loop's exception handler."""
    captured: list[dict[str, Any]] = []
    loop = asyncio.get_running_loop()
    previous = loop.get_exception_handler()
    loop.set_exception_handler(lambda _loop, context: captured.append(context))
    yield captured
    loop.set_exception_handler(previous)
