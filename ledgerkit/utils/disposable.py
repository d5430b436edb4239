"""
ledgerkit.utils.disposable
==========================

Cooperative cancellation for one asynchronous call tree.

Three pieces:

- `AbortSignal`     : a fire-once token carrying an optional reason.
- `AbortController` : the side that fires a signal (`abort()`), optionally on
                      a timer (`abort_after()`): timeouts are just a timer
                      wired to the same signal.
- `Disposable`      : the scope handed to the running code. It registers one
                      listener on the signal, captures a single `Cancelled`
                      error when the signal fires, and detaches itself when
                      the call it was created for returns.

Nothing here preempts running code. Code observes cancellation only where it
calls `scope.raise_if_cancelled()`, typically between awaited sub-steps:

    controller = AbortController()
    controller.abort_after(5.0)

    async def work(scope):
        accounts = await reader.get()
        scope.raise_if_cancelled()
        return build(accounts)

    result = await Disposable(controller.signal).run(work)
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, List, Optional, TypeVar, Union

from ..errors import Cancelled

__all__ = [
    "AbortSignal",
    "AbortController",
    "Disposable",
    "CancellationScope",
]

T = TypeVar("T")

AbortListener = Callable[[Any], Any]
CancelListener = Callable[[Cancelled], Any]


class AbortSignal:
    """
    Fire-once cancellation token.

    Listeners are called synchronously, in registration order, exactly once,
    when the signal fires. Registering on an already fired signal does not
    call the listener.
    """

    __slots__ = ("_aborted", "_reason", "_listeners")

    def __init__(self) -> None:
        self._aborted = False
        self._reason: Any = None
        self._listeners: List[AbortListener] = []

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Any:
        return self._reason

    def add_listener(self, listener: AbortListener) -> None:
        if self._aborted:
            return
        self._listeners.append(listener)

    def remove_listener(self, listener: AbortListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def listener_count(self) -> int:
        return len(self._listeners)

    def _fire(self, reason: Any) -> None:
        if self._aborted:
            return
        self._aborted = True
        self._reason = reason
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener(reason)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        state = f"aborted reason={self._reason!r}" if self._aborted else "pending"
        return f"<AbortSignal {state}>"


class AbortController:
    """Owns an `AbortSignal` and fires it."""

    __slots__ = ("signal",)

    def __init__(self) -> None:
        self.signal = AbortSignal()

    def abort(self, reason: Any = None) -> None:
        """Fire the signal. Later calls are no-ops; the first reason sticks."""
        self.signal._fire(reason)

    def abort_after(self, delay: float, reason: Any = None) -> asyncio.TimerHandle:
        """
        Schedule `abort()` on the running event loop after `delay` seconds.

        Returns the timer handle so the caller can `cancel()` it once the
        guarded work is done.
        """
        if reason is None:
            reason = TimeoutError(f"aborted after {delay}s")
        loop = asyncio.get_running_loop()
        return loop.call_later(delay, self.abort, reason)


class Disposable:
    """
    Cancellation scope wrapping an external `AbortSignal`.

    With no signal the scope never fires. A scope built on an already aborted
    signal is cancelled from the start. The captured `Cancelled` error is
    created once and returned (or raised) as the same object every time.
    """

    def __init__(self, signal: Optional[AbortSignal] = None) -> None:
        self.signal: AbortSignal = signal if signal is not None else AbortSignal()
        self._error: Optional[Cancelled] = None
        self._listeners: List[CancelListener] = []
        self._closed = False
        self.signal.add_listener(self._handle_abort)

    # ------------------------------------------------------------------ state

    def is_cancelled(self) -> bool:
        return self.signal.aborted

    def cancellation_error(self) -> Optional[Cancelled]:
        if self._error is None and self.signal.aborted:
            reason = self.signal.reason
            self._error = reason if isinstance(reason, Cancelled) else Cancelled(reason)
        return self._error

    def raise_if_cancelled(self) -> None:
        error = self.cancellation_error()
        if error is not None:
            raise error

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------ listeners

    def on_cancel(self, listener: CancelListener) -> "Disposable":
        """
        Call `listener(error)` once if the signal fires before `close()`.
        Listeners added after closing are dropped.
        """
        if not self._closed:
            self._listeners.append(listener)
        return self

    def _handle_abort(self, _reason: Any) -> None:
        error = self.cancellation_error()
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener(error)

    def close(self) -> None:
        """Detach from the signal and drop all listeners. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self.signal.remove_listener(self._handle_abort)
        self._listeners = []

    # ------------------------------------------------------------------ run

    async def run(self, callback: Callable[["Disposable"], Union[T, Awaitable[T]]]) -> T:
        """
        Run `callback(self)`, awaiting it when it returns an awaitable, and
        close the scope on the way out whatever happens.
        """
        try:
            result = callback(self)
            if inspect.isawaitable(result):
                result = await result
            return result
        finally:
            self.close()

    async def __aenter__(self) -> "Disposable":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

    def __repr__(self) -> str:  # pragma: no cover - trivial
        state = "cancelled" if self.is_cancelled() else "active"
        if self._closed:
            state += ",closed"
        return f"<Disposable {state}>"


CancellationScope = Disposable
