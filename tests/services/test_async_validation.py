"""Tests for per-path async validation: debounce, precedence, cancellation, limits."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from formstate.domain.errors import ErrorTree
from formstate.infrastructure.stores import Store
from formstate.services.async_validation import AsyncValidationCoordinator, ValidationTracker
from tests.conftest import settle


class _GatedValidator:
    """Async validator that blocks until its gate opens, recording each call."""

    def __init__(self, result: str = "") -> None:
        self.calls: list[Any] = []
        self.signals: list[asyncio.Event] = []
        self.sources: list[Any] = []
        self.gate = asyncio.Event()
        self.result = result

    async def __call__(self, value: Any, source: Any, signal: asyncio.Event) -> str:
        self.calls.append(value)
        self.signals.append(signal)
        self.sources.append(source)
        await self.gate.wait()
        return self.result or f"checked {value}"


def _coordinator(
    validators: dict[str, Any],
    source: dict[str, Any],
    sync_errors: ErrorTree | None = None,
    **kwargs: Any,
) -> AsyncValidationCoordinator:
    kwargs.setdefault("debounce", 0.01)
    return AsyncValidationCoordinator(validators, source, Store(sync_errors), **kwargs)


class TestValidationTracker:
    def test_cancel_sets_signal(self) -> None:
        tracker = ValidationTracker()
        assert tracker.cancelled is False
        tracker.cancel()
        assert tracker.cancelled is True


class TestScheduling:
    def test_without_loop_nothing_is_scheduled(self) -> None:
        validator = _GatedValidator()
        coordinator = _coordinator({"email": validator}, {"email": "a"})
        coordinator.on_change("email")
        assert coordinator.async_validating.get() == []
        assert validator.calls == []

    @pytest.mark.asyncio
    async def test_publishes_after_debounce(self) -> None:
        async def taken(value: str, source: Any, signal: asyncio.Event) -> str:
            return "Taken" if value.startswith("taken") else ""

        source = {"email": "taken@example.com"}
        coordinator = _coordinator({"email": taken}, source)
        coordinator.on_change("email")
        assert coordinator.async_errors.get() == {}
        await settle(0.03)
        assert coordinator.async_errors.get() == {"email": "Taken"}
        assert coordinator.has_async_errors.get() is True
        assert coordinator.async_validating.get() == []

    @pytest.mark.asyncio
    async def test_validator_receives_live_value_and_source(self) -> None:
        validator = _GatedValidator()
        validator.gate.set()
        source = {"user": {"email": "a@b.c"}}
        coordinator = _coordinator({"user.email": validator}, source)
        coordinator.on_change("user")
        await settle(0.03)
        assert validator.calls == ["a@b.c"]
        assert validator.sources == [source]

    @pytest.mark.asyncio
    async def test_unrelated_change_is_ignored(self) -> None:
        validator = _GatedValidator()
        coordinator = _coordinator({"email": validator}, {"email": "a", "name": "b"})
        coordinator.on_change("name")
        await settle(0.03)
        assert validator.calls == []

    @pytest.mark.asyncio
    async def test_sync_error_wins(self) -> None:
        validator = _GatedValidator()
        coordinator = _coordinator(
            {"email": validator}, {"email": "nope"}, {"email": "Invalid email format"}
        )
        coordinator.on_change("email")
        await settle(0.03)
        assert validator.calls == []
        assert "email" not in coordinator.async_errors.get()
        assert coordinator.async_validating.get() == []

    @pytest.mark.asyncio
    async def test_schedule_all(self) -> None:
        first, second = _GatedValidator("e1"), _GatedValidator("e2")
        first.gate.set()
        second.gate.set()
        coordinator = _coordinator({"a": first, "b": second}, {"a": 1, "b": 2})
        coordinator.schedule_all()
        await settle(0.03)
        assert coordinator.async_errors.get() == {"a": "e1", "b": "e2"}


class TestCancellation:
    @pytest.mark.asyncio
    async def test_reschedule_supersedes_running_validation(self) -> None:
        validator = _GatedValidator()
        source = {"user": "a"}
        coordinator = _coordinator({"user": validator}, source)
        coordinator.schedule("user")
        await settle(0.02)
        assert coordinator.async_validating.get() == ["user"]

        source["user"] = "b"
        coordinator.on_change("user")
        assert validator.signals[0].is_set()
        assert coordinator.async_validating.get() == []

        validator.gate.set()
        await settle(0.03)
        assert validator.calls == ["a", "b"]
        assert coordinator.async_errors.get() == {"user": "checked b"}

    @pytest.mark.asyncio
    async def test_reschedule_within_debounce_runs_once(self) -> None:
        validator = _GatedValidator()
        validator.gate.set()
        source = {"user": "a"}
        coordinator = _coordinator({"user": validator}, source, debounce=0.02)
        coordinator.on_change("user")
        await asyncio.sleep(0.01)
        source["user"] = "b"
        coordinator.on_change("user")
        await settle(0.05)
        assert validator.calls == ["b"]

    @pytest.mark.asyncio
    async def test_superseded_result_is_never_published(self) -> None:
        async def stubborn(value: Any, source: Any, signal: asyncio.Event) -> str:
            try:
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                return "stale"
            return ""

        coordinator = _coordinator({"user": stubborn}, {"user": "a"})
        coordinator.schedule("user")
        await settle(0.02)
        coordinator.cancel("user")
        await settle(0.01)
        assert coordinator.async_errors.get() == {}
        assert coordinator.running_count == 0

    @pytest.mark.asyncio
    async def test_clear_on_change(self) -> None:
        validator = _GatedValidator("Taken")
        validator.gate.set()
        coordinator = _coordinator({"user": validator}, {"user": "a"})
        coordinator.schedule("user")
        await settle(0.03)
        assert coordinator.async_errors.get() == {"user": "Taken"}
        coordinator.on_change("user")
        assert coordinator.async_errors.get() == {}
        coordinator.cancel_all()

    @pytest.mark.asyncio
    async def test_keep_error_on_change(self) -> None:
        validator = _GatedValidator("Taken")
        validator.gate.set()
        coordinator = _coordinator({"user": validator}, {"user": "a"}, clear_on_change=False)
        coordinator.schedule("user")
        await settle(0.03)
        coordinator.on_change("user")
        assert coordinator.async_errors.get() == {"user": "Taken"}
        coordinator.cancel_all()

    @pytest.mark.asyncio
    async def test_cancel_all(self) -> None:
        blocked, done = _GatedValidator(), _GatedValidator("Taken")
        done.gate.set()
        coordinator = _coordinator({"a": blocked, "b": done}, {"a": 1, "b": 2})
        coordinator.schedule("b")
        await settle(0.03)
        coordinator.schedule("a")
        await settle(0.02)
        assert coordinator.async_validating.get() == ["a"]

        coordinator.cancel_all()
        blocked.gate.set()
        await settle(0.02)
        assert coordinator.async_errors.get() == {}
        assert coordinator.async_validating.get() == []
        assert coordinator.running_count == 0


class TestDefects:
    @pytest.mark.asyncio
    async def test_validator_exception_reaches_loop_handler(
        self, loop_errors: list[dict[str, Any]]
    ) -> None:
        async def broken(value: Any, source: Any, signal: asyncio.Event) -> str:
            raise ValueError("boom")

        coordinator = _coordinator({"email": broken}, {"email": "a"})
        coordinator.schedule("email")
        await settle(0.03)
        assert len(loop_errors) == 1
        assert isinstance(loop_errors[0]["exception"], ValueError)
        assert coordinator.async_errors.get() == {}
        assert coordinator.async_validating.get() == []
        assert coordinator.running_count == 0


class TestConcurrencyLimit:
    @pytest.mark.asyncio
    async def test_excess_runs_wait_in_fifo_order(self) -> None:
        first, second, third = _GatedValidator(), _GatedValidator(), _GatedValidator()
        second.gate.set()
        third.gate.set()
        coordinator = _coordinator(
            {"a": first, "b": second, "c": third},
            {"a": 1, "b": 2, "c": 3},
            max_concurrent=1,
        )
        coordinator.schedule_all()
        await settle(0.03)
        assert coordinator.async_validating.get() == ["a"]
        assert coordinator.running_count == 1
        assert second.calls == []

        first.gate.set()
        await settle(0.03)
        assert coordinator.async_errors.get() == {
            "a": "checked 1",
            "b": "checked 2",
            "c": "checked 3",
        }
        assert coordinator.async_validating.get() == []

    @pytest.mark.asyncio
    async def test_cancelled_path_leaves_queue(self) -> None:
        first, second = _GatedValidator(), _GatedValidator()
        second.gate.set()
        coordinator = _coordinator({"a": first, "b": second}, {"a": 1, "b": 2}, max_concurrent=1)
        coordinator.schedule_all()
        await settle(0.03)
        coordinator.cancel("b")
        first.gate.set()
        await settle(0.03)
        assert second.calls == []
        assert coordinator.async_errors.get() == {"a": "checked 1"}
