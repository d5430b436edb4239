"""
ledgerkit.utils.task
====================

A `Task` wraps one asynchronous callback with a status machine:

    pending -> running -> successful | failed | cancelled

Each `run()` executes the callback under a fresh `Disposable` built from the
caller's abort signal. A completed task remembers its outcome: running it
again returns the cached result (or re-raises the cached error) unless
`force=True` is passed. Status listeners are notified on every transition.
An abort only takes effect once the callback exits: until then the task
stays "running" and cannot be started again.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import (Any, Awaitable, Callable, Generic, List, Literal,
                    Optional, TypeVar, Union)

from ..errors import TaskIsAlreadyRunningError
from .disposable import AbortSignal, Disposable

__all__ = ["Task", "TaskStatus", "TaskCallback"]

T = TypeVar("T")

TaskStatus = Literal["pending", "running", "successful", "failed", "cancelled"]
TaskCallback = Callable[[Disposable], Union[T, Awaitable[T]]]
StatusListener = Callable[[TaskStatus], Any]


class Task(Generic[T]):
    def __init__(self, callback: TaskCallback[T], context: Optional[dict] = None) -> None:
        self._callback = callback
        self._context: dict = dict(context or {})
        self._status: TaskStatus = "pending"
        self._result: Optional[T] = None
        self._error: Optional[BaseException] = None
        self._listeners: List[StatusListener] = []

    async def run(self, signal: Optional[AbortSignal] = None, *, force: bool = False) -> T:
        if self.is_running():
            raise TaskIsAlreadyRunningError()
        if self.is_pending() or force:
            return await self._force_run(signal)
        if self.is_successful():
            return self._result  # type: ignore[return-value]
        assert self._error is not None
        raise self._error

    async def _force_run(self, signal: Optional[AbortSignal]) -> T:
        disposable = Disposable(signal)

        async def _body(scope: Disposable) -> T:
            try:
                self._set_status("running")
                self._result = None
                self._error = None
                result = self._callback(scope)
                if inspect.isawaitable(result):
                    result = await result
                scope.raise_if_cancelled()
                self._result = result
                self._set_status("successful")
                return result
            except BaseException as exc:
                self._error = exc
                self._result = None
                cancelled = scope.is_cancelled() or isinstance(exc, asyncio.CancelledError)
                self._set_status("cancelled" if cancelled else "failed")
                raise

        return await disposable.run(_body)

    # ------------------------------------------------------------------ mutators

    def load_with(self, preloaded: T) -> "Task[T]":
        self._result = preloaded
        self._error = None
        self._set_status("successful")
        return self

    def reset(self) -> "Task[T]":
        self._result = None
        self._error = None
        self._set_status("pending")
        return self

    def set_context(self, context: dict) -> "Task[T]":
        self._context = dict(context)
        return self

    def get_context(self) -> dict:
        return self._context

    # ------------------------------------------------------------------ getters

    def get_status(self) -> TaskStatus:
        return self._status

    def get_result(self) -> Optional[T]:
        return self._result

    def get_error(self) -> Optional[BaseException]:
        return self._error

    def is_pending(self) -> bool:
        return self._status == "pending"

    def is_running(self) -> bool:
        return self._status == "running"

    def is_completed(self) -> bool:
        return self._status not in ("pending", "running")

    def is_successful(self) -> bool:
        return self._status == "successful"

    def is_failed(self) -> bool:
        return self._status == "failed"

    def is_cancelled(self) -> bool:
        return self._status == "cancelled"

    # ------------------------------------------------------------------ events

    def on_status_change(self, listener: StatusListener) -> "Task[T]":
        self._listeners.append(listener)
        return self

    def on_status_change_to(self, status: TaskStatus, listener: Callable[[], Any]) -> "Task[T]":
        return self.on_status_change(lambda new: listener() if new == status else None)

    def on_success(self, listener: Callable[[], Any]) -> "Task[T]":
        return self.on_status_change_to("successful", listener)

    def on_failure(self, listener: Callable[[], Any]) -> "Task[T]":
        return self.on_status_change_to("failed", listener)

    def on_cancel(self, listener: Callable[[], Any]) -> "Task[T]":
        return self.on_status_change_to("cancelled", listener)

    def _set_status(self, status: TaskStatus) -> None:
        if self._status == status:
            return
        self._status = status
        for listener in list(self._listeners):
            listener(status)
