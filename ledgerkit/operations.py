"""
ledgerkit.operations
====================

Operation registry and executor.

Each `LedgerClient` owns one `OperationRegistry` mapping operation kinds to
handlers. Executing an operation:

1. looks up the handler by `operation.key` (`OperationHandlerMissingError`
   when none was registered);
2. builds a `Disposable` from `options.signal` (a signal that never fires
   when none is given);
3. builds an `OperationScope` from the caller's options, defaulting the payer
   to the client's default fee payer, and the confirm options to the read
   commitment when only that was given;
4. runs the handler under the scope and, if the scope fired by the time the
   handler returned, raises the captured `Cancelled` instead of returning.

The registry keeps no in-flight state; two identical concurrent executions
are fully independent.

    registry.register(transfer_sol_operation, transfer_sol_handler)
    output = await registry.execute(transfer_sol_operation(inp), OperationOptions(signal=signal))
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from .errors import OperationHandlerMissingError
from .types.core import ConfirmOptions
from .types.operation import (Operation, OperationConstructor,
                              OperationHandler, OperationOptions,
                              OperationScope)
from .utils.disposable import Disposable
from .utils.task import Task

if TYPE_CHECKING:  # pragma: no cover
    from .client import LedgerClient

__all__ = ["OperationRegistry"]

log = logging.getLogger(__name__)

OperationKind = Union[str, OperationConstructor[Any]]


def _kind_of(kind: Union[OperationKind, Operation[Any]]) -> str:
    if isinstance(kind, str):
        return kind
    return kind.key


class OperationRegistry:
    def __init__(self, client: "LedgerClient") -> None:
        self._client = client
        self._handlers: Dict[str, OperationHandler] = {}

    def register(self, kind: OperationKind, handler: OperationHandler) -> "OperationRegistry":
        """Bind `handler` to `kind`. A later registration for the same kind replaces it."""
        key = _kind_of(kind)
        if key in self._handlers and self._handlers[key] is not handler:
            log.warning("replacing the handler registered for operation %s", key)
        self._handlers[key] = handler
        log.debug("registered handler for %s", key)
        return self

    def get(self, operation: Union[OperationKind, Operation[Any]]) -> OperationHandler:
        key = _kind_of(operation)
        handler = self._handlers.get(key)
        if handler is None:
            raise OperationHandlerMissingError(key)
        return handler

    def has(self, operation: Union[OperationKind, Operation[Any]]) -> bool:
        return _kind_of(operation) in self._handlers

    def _scope(self, disposable: Disposable, options: OperationOptions) -> OperationScope:
        confirm_options = options.confirm_options
        if confirm_options is None and options.commitment is not None:
            confirm_options = ConfirmOptions(commitment=options.commitment)
        return OperationScope(
            disposable=disposable,
            payer=options.payer or self._client.rpc().get_default_fee_payer(),
            commitment=options.commitment,
            confirm_options=confirm_options,
            extra=dict(options.extra),
        )

    async def _run(self, operation: Operation[Any], options: OperationOptions, disposable: Disposable) -> Any:
        handler = self.get(operation)
        scope = self._scope(disposable, options)
        log.debug("executing %s", operation.key)
        output = handler(operation, self._client, scope)
        if inspect.isawaitable(output):
            output = await output
        scope.raise_if_cancelled()
        return output

    async def execute(self, operation: Operation[Any], options: Optional[OperationOptions] = None) -> Any:
        options = options or OperationOptions()
        self.get(operation)  # fail fast, before any scope is created
        disposable = Disposable(options.signal)
        return await disposable.run(lambda scope: self._run(operation, options, scope))

    def get_task(self, operation: Operation[Any], options: Optional[OperationOptions] = None) -> Task[Any]:
        """
        Wrap the execution in a `Task`. Cancellation is driven by the signal
        passed to `Task.run()`; `options.signal` is not consulted.
        """
        options = options or OperationOptions()

        async def _callback(scope: Disposable) -> Any:
            return await self._run(operation, options, scope)

        return Task(_callback, context={"operation": operation})
