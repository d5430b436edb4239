"""
ledgerkit.types
===============

Datatypes shared by the engine:

- :mod:`ledgerkit.types.core`      : accounts, blockhashes, transaction/confirm options
- :mod:`ledgerkit.types.signer`    : keypair / identity signers and histograms
- :mod:`ledgerkit.types.operation` : operation descriptors, options and scopes
"""

from __future__ import annotations

from .core import (BlockhashWithExpiryBlockHeight, Commitment, ConfirmOptions,
                   MaybeAccount, MissingAccount, TransactionOptions,
                   UnparsedAccount, to_pubkey)
from .operation import (Operation, OperationConstructor, OperationHandler,
                        OperationOptions, OperationScope, use_operation)
from .signer import (GuestIdentity, IdentitySigner, KeypairIdentity, Signer,
                     get_signer_histogram, signer_public_key)

__all__ = [
    "BlockhashWithExpiryBlockHeight",
    "Commitment",
    "ConfirmOptions",
    "MaybeAccount",
    "MissingAccount",
    "TransactionOptions",
    "UnparsedAccount",
    "to_pubkey",
    "Operation",
    "OperationConstructor",
    "OperationHandler",
    "OperationOptions",
    "OperationScope",
    "use_operation",
    "GuestIdentity",
    "IdentitySigner",
    "KeypairIdentity",
    "Signer",
    "get_signer_histogram",
    "signer_public_key",
]
