"""Tests for single-flight action execution."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from formstate.services.action import ActionExecutor


class _Recorder:
    def __init__(self) -> None:
        self.events: list[Any] = []

    def phase(self, phase: str, params: Any, error: Exception | None) -> None:
        self.events.append((phase, params, error))


class TestExecute:
    @pytest.mark.asyncio
    async def test_no_action_is_noop(self) -> None:
        executor = ActionExecutor(None)
        await executor.execute()
        assert executor.in_progress.get() is False

    @pytest.mark.asyncio
    async def test_sync_action_with_params(self) -> None:
        received: list[Any] = []
        executor = ActionExecutor(received.append)
        await executor.execute({"id": 1})
        assert received == [{"id": 1}]

    @pytest.mark.asyncio
    async def test_action_without_params_takes_no_arguments(self) -> None:
        calls: list[str] = []

        async def submit() -> None:
            calls.append("submit")

        executor = ActionExecutor(submit)
        await executor.execute()
        assert calls == ["submit"]

    @pytest.mark.asyncio
    async def test_success_order(self) -> None:
        order: list[str] = []
        recorder = _Recorder()

        async def completed(*args: Any) -> None:
            order.append(f"completed{args}")

        executor = ActionExecutor(
            lambda: order.append("action"),
            completed,
            on_success=lambda: order.append("success"),
            on_phase=recorder.phase,
        )
        await executor.execute()
        assert order == ["action", "success", "completed()"]
        assert recorder.events == [("before", None, None), ("after", None, None)]
        assert executor.action_error.get() is None


class TestFailure:
    @pytest.mark.asyncio
    async def test_error_is_captured(self) -> None:
        error = RuntimeError("server down")
        completed_with: list[Any] = []
        recorder = _Recorder()

        async def submit() -> None:
            raise error

        executor = ActionExecutor(
            submit, completed_with.append, on_phase=recorder.phase
        )
        await executor.execute()
        assert executor.action_error.get() is error
        assert completed_with == [error]
        assert executor.in_progress.get() is False
        assert recorder.events[-1] == ("after", None, error)

    @pytest.mark.asyncio
    async def test_next_execute_clears_error(self) -> None:
        attempts: list[int] = []

        def submit() -> None:
            attempts.append(1)
            if len(attempts) == 1:
                raise ValueError("first try")

        executor = ActionExecutor(submit)
        await executor.execute()
        assert isinstance(executor.action_error.get(), ValueError)
        await executor.execute()
        assert executor.action_error.get() is None

    @pytest.mark.asyncio
    async def test_cancellation_propagates_and_releases(self) -> None:
        async def submit() -> None:
            raise asyncio.CancelledError

        executor = ActionExecutor(submit)
        with pytest.raises(asyncio.CancelledError):
            await executor.execute()
        assert executor.in_progress.get() is False
        assert executor.action_error.get() is None

    @pytest.mark.asyncio
    async def test_in_progress_held_until_completion_hook_finishes(self) -> None:
        seen: list[bool] = []
        executor: ActionExecutor

        async def completed(*_: Any) -> None:
            await asyncio.sleep(0)
            seen.append(executor.in_progress.get())

        executor = ActionExecutor(lambda: None, completed)
        await executor.execute()
        assert seen == [True]
        assert executor.in_progress.get() is False


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_second_call_ignored(self) -> None:
        calls: list[int] = []
        gate = asyncio.Event()

        async def submit() -> None:
            calls.append(1)
            await gate.wait()

        executor = ActionExecutor(submit)
        transitions: list[bool] = []
        executor.in_progress.subscribe(transitions.append)

        first = asyncio.create_task(executor.execute())
        await asyncio.sleep(0)
        await executor.execute()
        gate.set()
        await first

        assert calls == [1]
        assert transitions == [False, True, False]

    @pytest.mark.asyncio
    async def test_concurrent_allowed(self) -> None:
        gate = asyncio.Event()
        calls: list[int] = []

        async def submit() -> None:
            calls.append(1)
            await gate.wait()

        executor = ActionExecutor(submit, allow_concurrent=True)
        first = asyncio.create_task(executor.execute())
        second = asyncio.create_task(executor.execute())
        await asyncio.sleep(0)
        assert calls == [1, 1]
        assert executor.in_progress.get() is True
        gate.set()
        await asyncio.gather(first, second)
        assert executor.in_progress.get() is False
