"""
ledgerkit
Convenience exports for the most common client APIs.
"""

from .version import __version__  # noqa: F401

# Core config & errors
from .config import SDKConfig  # noqa: F401
from .errors import (  # noqa: F401
    Cancelled,
    ChunkedReadFailure,
    FailedToConfirmTransactionError,
    FailedToSendTransactionError,
    HandlerMissing,
    LedgerKitError,
    OperationHandlerMissingError,
    RpcError,
    SendFailure,
    TaskIsAlreadyRunningError,
)

# Client, registry & operations
from .client import LedgerClient  # noqa: F401
from .operations import OperationRegistry  # noqa: F401
from .types.operation import (  # noqa: F401
    Operation,
    OperationOptions,
    OperationScope,
    use_operation,
)

# Accounts & signers
from .types.core import (  # noqa: F401
    ConfirmOptions,
    MissingAccount,
    TransactionOptions,
    UnparsedAccount,
)
from .types.signer import GuestIdentity, KeypairIdentity  # noqa: F401

# Transactions
from .tx.builder import InstructionRecord, TransactionBuilder  # noqa: F401

# Queries
from .query.gma import GmaBuilder  # noqa: F401
from .query.gpa import GpaBuilder  # noqa: F401

# Cancellation
from .utils.disposable import AbortController, AbortSignal, Disposable  # noqa: F401
from .utils.task import Task  # noqa: F401

__all__ = [
    "__version__",
    # Core
    "SDKConfig",
    "LedgerKitError", "Cancelled", "ChunkedReadFailure", "HandlerMissing",
    "OperationHandlerMissingError", "RpcError", "SendFailure",
    "FailedToSendTransactionError", "FailedToConfirmTransactionError",
    "TaskIsAlreadyRunningError",
    # Client
    "LedgerClient", "OperationRegistry",
    "Operation", "OperationOptions", "OperationScope", "use_operation",
    # Accounts & signers
    "ConfirmOptions", "MissingAccount", "TransactionOptions", "UnparsedAccount",
    "GuestIdentity", "KeypairIdentity",
    # Transactions
    "InstructionRecord", "TransactionBuilder",
    # Queries
    "GmaBuilder", "GpaBuilder",
    # Cancellation
    "AbortController", "AbortSignal", "Disposable", "Task",
]
