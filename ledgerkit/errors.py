"""
Typed error classes for ledgerkit.

Every error raised by the engine derives from `LedgerKitError` so callers can
catch the whole family at once, while still being able to tell a cancelled
execution (`Cancelled`) apart from a genuinely failed one: `Cancelled` is not
a subclass of any of the failure types below.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Optional

__all__ = [
    "LedgerKitError",
    "Cancelled",
    "OperationHandlerMissingError",
    "HandlerMissing",
    "ChunkedReadFailure",
    "SendFailure",
    "FailedToSendTransactionError",
    "FailedToConfirmTransactionError",
    "OperationUnauthorizedForGuestsError",
    "TaskIsAlreadyRunningError",
    "RpcError",
    "JsonRpcCode",
    "from_jsonrpc_error",
]


class LedgerKitError(Exception):
    """Base class for all ledgerkit errors."""


class JsonRpcCode(IntEnum):
    # JSON-RPC 2.0
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Solana-style server errors
    BLOCK_CLEANED_UP = -32001
    SEND_TRANSACTION_PREFLIGHT_FAILURE = -32002
    TRANSACTION_SIGNATURE_VERIFICATION_FAILURE = -32003
    NODE_UNHEALTHY = -32005

    # Local: transport gave up
    TRANSPORT_FAILED = -32098


class Cancelled(LedgerKitError):
    """
    Raised by `Disposable.raise_if_cancelled()` once the abort signal fired.

    The `reason` is whatever was passed to `AbortController.abort()`. A scope
    creates exactly one `Cancelled` per firing and hands out that same object
    on every read, so callers may compare by identity.
    """

    def __init__(self, reason: Any = None) -> None:
        self.reason = reason
        message = "operation was cancelled"
        if reason is not None:
            message = f"{message}: {reason}"
        super().__init__(message)


@dataclass(eq=False)
class OperationHandlerMissingError(LedgerKitError):
    """No handler was registered for an operation kind."""

    operation_key: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return (
            f"No operation handler was registered for the [{self.operation_key}] operation. "
            "Did you forget to register it? You may do this by using: "
            '"client.operations().register(operation, handler)".'
        )


HandlerMissing = OperationHandlerMissingError


@dataclass(eq=False)
class ChunkedReadFailure(LedgerKitError):
    """
    Raised when one chunk of a batched account read fails.

    The whole read fails with it; there is no partial result. The underlying
    transport error is chained as `__cause__`.
    """

    message: str
    chunk_index: Optional[int] = None
    chunk_size: Optional[int] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        where = ""
        if self.chunk_index is not None:
            where = f" [chunk={self.chunk_index} size={self.chunk_size}]"
        return f"ChunkedReadFailure{where}: {self.message}"


@dataclass(eq=False)
class SendFailure(LedgerKitError):
    """Base for failures reported by the send collaborator."""

    message: str
    signature: Optional[str] = None
    logs: Optional[list] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        suffix = f" sig={self.signature}" if self.signature else ""
        return f"{type(self).__name__}{suffix}: {self.message}"


@dataclass(eq=False)
class FailedToSendTransactionError(SendFailure):
    """The node rejected the transaction before it was broadcast."""


@dataclass(eq=False)
class FailedToConfirmTransactionError(SendFailure):
    """
    The transaction was sent but could not be confirmed: it either failed
    on-chain (`status` holds the node's signature status) or its blockhash
    expired before the requested commitment was reached.
    """

    status: Optional[Dict[str, Any]] = field(default=None)


@dataclass(eq=False)
class OperationUnauthorizedForGuestsError(LedgerKitError):
    """The guest identity was asked to sign or pay for something."""

    operation: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return (
            f"Trying to access the [{self.operation}] operation as a guest. "
            "Configure an identity first, for instance with "
            '"client.set_identity(KeypairIdentity(keypair))".'
        )


class TaskIsAlreadyRunningError(LedgerKitError):
    """A task was asked to run while a previous run is still in flight."""

    def __init__(self) -> None:
        super().__init__(
            "Trying to re-run a task that hasn't completed yet. "
            "Ensure the task has completed before running it again."
        )


@dataclass(eq=False)
class RpcError(LedgerKitError):
    """Raised when a JSON-RPC call returns an error object or the transport gives up."""

    method: Optional[str]
    code: int
    message: str
    data: Optional[Any] = None
    request_id: Optional[Any] = None
    http_status: Optional[int] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        parts = [f"RPC[{self.method or '-'}] code={self.code} msg={self.message!r}"]
        if self.request_id is not None:
            parts.append(f"id={self.request_id}")
        if self.http_status is not None:
            parts.append(f"http={self.http_status}")
        if self.data is not None:
            parts.append(f"data={self.data!r}")
        return " ".join(parts)

    @property
    def code_enum(self) -> Optional[JsonRpcCode]:
        try:
            return JsonRpcCode(self.code)
        except ValueError:
            return None

    @property
    def logs(self) -> Optional[list]:
        """Program logs attached to preflight failures, if any."""
        if isinstance(self.data, dict):
            logs = self.data.get("logs")
            if isinstance(logs, list):
                return logs
        return None


def from_jsonrpc_error(
    err_obj: Dict[str, Any],
    *,
    method: Optional[str] = None,
    request_id: Optional[Any] = None,
    http_status: Optional[int] = None,
) -> RpcError:
    """
    Convert a JSON-RPC error object (`{"code", "message", "data"?}`) into RpcError.
    """
    code = int(err_obj.get("code", JsonRpcCode.INTERNAL_ERROR))
    message = str(err_obj.get("message", "Unknown JSON-RPC error"))
    return RpcError(
        method=method,
        code=code,
        message=message,
        data=err_obj.get("data"),
        request_id=request_id,
        http_status=http_status,
    )
