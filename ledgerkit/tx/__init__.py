"""
ledgerkit.tx
============

Transaction composition and submission:

- :mod:`ledgerkit.tx.builder` : `TransactionBuilder` and `InstructionRecord`
- :mod:`ledgerkit.tx.send`    : signing, `sendTransaction` and confirmation polling
"""

from __future__ import annotations

from .builder import (BuilderItem, InstructionRecord, TransactionBuilder,
                      TransactionSender)
from .send import (SendAndConfirmTransactionResponse, sign_transaction,
                   submit_and_confirm, submit_raw, wait_for_confirmation)

__all__ = [
    "BuilderItem",
    "InstructionRecord",
    "TransactionBuilder",
    "TransactionSender",
    "SendAndConfirmTransactionResponse",
    "sign_transaction",
    "submit_and_confirm",
    "submit_raw",
    "wait_for_confirmation",
]
