"""
ledgerkit.tx.send
=================

Sign, submit and confirm transactions over JSON-RPC.

Primary entry points
--------------------
- sign_transaction(tx, signers) -> Transaction
    De-duplicates signers by public key, lets every keypair partially sign,
    then hands the transaction to each identity signer in turn.

- submit_raw(rpc, tx, confirm_options=None) -> str
    Sends the wire-encoded transaction through `sendTransaction` (base64) and
    returns the signature. Preflight rejections become
    `FailedToSendTransactionError` carrying the program logs.

- wait_for_confirmation(rpc, signature, blockhash_with_expiry, commitment) -> dict
    Polls `getSignatureStatuses` until the requested commitment is reached.
    Gives up with `FailedToConfirmTransactionError` once the chain's block
    height passes the blockhash's last valid block height, or as soon as the
    node reports an on-chain error.

- submit_and_confirm(...) -> SendAndConfirmTransactionResponse
    Convenience wrapper: submit then confirm.

Building and fee-payer defaults live one level up, in
`ledgerkit.rpc.ledger.LedgerRpc.send_and_confirm_transaction`.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Sequence

from solders.transaction import Transaction

from ..errors import (FailedToConfirmTransactionError,
                      FailedToSendTransactionError, RpcError)
from ..types.core import (BlockhashWithExpiryBlockHeight, Commitment,
                          ConfirmOptions)
from ..types.signer import Signer, get_signer_histogram

__all__ = [
    "SendAndConfirmTransactionResponse",
    "sign_transaction",
    "serialize_transaction",
    "submit_raw",
    "wait_for_confirmation",
    "submit_and_confirm",
]

log = logging.getLogger(__name__)

_COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}

DEFAULT_COMMITMENT: Commitment = "confirmed"


class _RpcClient(Protocol):
    """Minimal interface expected from `ledgerkit.rpc.http.AsyncRpcClient`."""

    async def request(self, method: str, params: Any = None) -> Any: ...


@dataclass(frozen=True)
class SendAndConfirmTransactionResponse:
    signature: str
    confirmation: Dict[str, Any]
    blockhash: BlockhashWithExpiryBlockHeight


# -----------------------------------------------------------------------------
# Signing
# -----------------------------------------------------------------------------


async def sign_transaction(transaction: Transaction, signers: Sequence[Signer]) -> Transaction:
    histogram = get_signer_histogram(signers)
    if histogram.keypairs:
        transaction.partial_sign(histogram.keypairs, transaction.message.recent_blockhash)
    for identity in histogram.identities:
        transaction = await identity.sign_transaction(transaction)
    return transaction


def serialize_transaction(transaction: Transaction) -> str:
    return base64.b64encode(bytes(transaction)).decode("ascii")


# -----------------------------------------------------------------------------
# Submit / confirm
# -----------------------------------------------------------------------------


async def submit_raw(
    rpc: _RpcClient,
    transaction: Transaction,
    confirm_options: Optional[ConfirmOptions] = None,
) -> str:
    config = (confirm_options or ConfirmOptions()).send_config()
    config["encoding"] = "base64"
    try:
        signature = await rpc.request("sendTransaction", [serialize_transaction(transaction), config])
    except RpcError as e:
        raise FailedToSendTransactionError(e.message, logs=e.logs) from e
    if not isinstance(signature, str):
        raise FailedToSendTransactionError(f"unexpected sendTransaction result: {signature!r}")
    log.debug("sent transaction %s", signature)
    return signature


def _reached(status: Dict[str, Any], commitment: str) -> bool:
    level = status.get("confirmationStatus")
    if level is None:
        # Older nodes only report a confirmation count; None means rooted.
        return status.get("confirmations") is None
    return _COMMITMENT_RANK.get(level, -1) >= _COMMITMENT_RANK[commitment]


async def wait_for_confirmation(
    rpc: _RpcClient,
    signature: str,
    blockhash_with_expiry: BlockhashWithExpiryBlockHeight,
    commitment: Optional[Commitment] = None,
    *,
    poll_interval_s: float = 0.5,
) -> Dict[str, Any]:
    commitment = commitment or DEFAULT_COMMITMENT
    while True:
        result = await rpc.request("getSignatureStatuses", [[signature]])
        statuses = (result or {}).get("value") or [None]
        status = statuses[0]
        if status is not None:
            if status.get("err") is not None:
                raise FailedToConfirmTransactionError(
                    f"transaction failed: {status['err']!r}", signature=signature, status=status
                )
            if _reached(status, commitment):
                log.debug("confirmed %s at %s", signature, status.get("confirmationStatus"))
                return status

        height = await rpc.request("getBlockHeight", [{"commitment": commitment}])
        if int(height) > blockhash_with_expiry.last_valid_block_height:
            raise FailedToConfirmTransactionError(
                f"block height exceeded: blockhash expired at "
                f"{blockhash_with_expiry.last_valid_block_height}, chain at {height}",
                signature=signature,
                status=status,
            )
        await asyncio.sleep(poll_interval_s)


async def submit_and_confirm(
    rpc: _RpcClient,
    transaction: Transaction,
    blockhash_with_expiry: BlockhashWithExpiryBlockHeight,
    confirm_options: Optional[ConfirmOptions] = None,
    *,
    commitment: Optional[Commitment] = None,
    poll_interval_s: float = 0.5,
) -> SendAndConfirmTransactionResponse:
    """
    Submit then confirm. `commitment` overrides the one in `confirm_options`
    for the confirmation wait.
    """
    signature = await submit_raw(rpc, transaction, confirm_options)
    if commitment is None and confirm_options is not None:
        commitment = confirm_options.commitment
    confirmation = await wait_for_confirmation(
        rpc, signature, blockhash_with_expiry, commitment, poll_interval_s=poll_interval_s
    )
    return SendAndConfirmTransactionResponse(
        signature=signature,
        confirmation=confirmation,
        blockhash=blockhash_with_expiry,
    )

