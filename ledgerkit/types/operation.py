"""
Operation descriptors, handlers and the per-execution scope.

An operation is a plain value, `Operation(key, input)`. Its `key` (the
operation *kind*) is what the registry uses to find a handler. Constructors
returned by `use_operation()` stamp the kind for you:

    transfer_sol_operation = use_operation("TransferSolOperation")
    op = transfer_sol_operation(TransferSolInput(to=..., lamports=1_000))
    assert op.key == transfer_sol_operation.key

A handler is any callable `(operation, client, scope) -> output`, sync or
async. The scope carries the cancellation surface and the caller's options
with the fee payer already resolved.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (TYPE_CHECKING, Any, Awaitable, Callable, Dict, Generic,
                    Optional, TypeVar, Union)

from ..errors import Cancelled
from ..utils.disposable import AbortSignal, Disposable
from .core import Commitment, ConfirmOptions
from .signer import Signer

if TYPE_CHECKING:  # pragma: no cover
    from ..client import LedgerClient

__all__ = [
    "Operation",
    "OperationConstructor",
    "use_operation",
    "OperationOptions",
    "OperationScope",
    "OperationHandler",
]

I = TypeVar("I")


@dataclass(frozen=True)
class Operation(Generic[I]):
    key: str
    input: I


class OperationConstructor(Generic[I]):
    """Callable producing `Operation`s of one kind; exposes that kind as `.key`."""

    __slots__ = ("key",)

    def __init__(self, key: str) -> None:
        if not key:
            raise ValueError("operation key must be a non-empty string")
        self.key = key

    def __call__(self, input: I) -> Operation[I]:
        return Operation(self.key, input)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"OperationConstructor({self.key!r})"


def use_operation(key: str) -> OperationConstructor[Any]:
    return OperationConstructor(key)


@dataclass
class OperationOptions:
    """
    Caller-side options for one execution.

    payer:           who pays fees; defaults to the client's default fee payer
    commitment:      commitment used for reads
    confirm_options: how transactions are sent and confirmed; when unset but
                     `commitment` is, confirmation uses that commitment
    signal:          abort signal observed by the handler at its checkpoints
    extra:           free-form options forwarded to the handler untouched
    """

    payer: Optional[Signer] = None
    commitment: Optional[Commitment] = None
    confirm_options: Optional[ConfirmOptions] = None
    signal: Optional[AbortSignal] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OperationScope:
    """
    What a handler receives besides its operation and the client: the
    cancellation surface of the current execution plus resolved options.
    """

    disposable: Disposable
    payer: Signer
    commitment: Optional[Commitment] = None
    confirm_options: Optional[ConfirmOptions] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def signal(self) -> AbortSignal:
        return self.disposable.signal

    def is_cancelled(self) -> bool:
        return self.disposable.is_cancelled()

    def cancellation_error(self) -> Optional[Cancelled]:
        return self.disposable.cancellation_error()

    def raise_if_cancelled(self) -> None:
        self.disposable.raise_if_cancelled()

    def on_cancel(self, listener: Callable[[Cancelled], Any]) -> "OperationScope":
        self.disposable.on_cancel(listener)
        return self


OperationHandler = Callable[
    [Operation[Any], "LedgerClient", OperationScope], Union[Any, Awaitable[Any]]
]
