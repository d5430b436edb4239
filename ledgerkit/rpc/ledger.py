"""
ledgerkit.rpc.ledger
====================

`LedgerRpc` is the ledger-access collaborator: typed wrappers over the
JSON-RPC methods the engine needs, plus transaction preparation and the
send-and-confirm path used by `TransactionBuilder.send_and_confirm()`.

Reads return `ledgerkit.types.core` models (`UnparsedAccount`,
`MissingAccount`, `BlockhashWithExpiryBlockHeight`). Account data is always
requested base64-encoded.

Sending a builder:

1. the blockhash comes from the builder's transaction options, otherwise a
   fresh one is fetched;
2. the builder's fee payer is used, otherwise the default fee payer (which
   falls back to the client identity) is set and prepended to the signers;
3. signers are de-duplicated by public key; keypairs partially sign, then
   each identity signs in turn;
4. the transaction is submitted and confirmed (see `ledgerkit.tx.send`).
"""

from __future__ import annotations

import logging
from typing import (TYPE_CHECKING, Any, Dict, List, Optional, Sequence,
                    Tuple, Union)
from urllib.parse import quote

from solders.pubkey import Pubkey
from solders.transaction import Transaction

from ..tx.builder import TransactionBuilder
from ..tx.send import (SendAndConfirmTransactionResponse, sign_transaction,
                       submit_and_confirm, submit_raw, wait_for_confirmation)
from ..types.core import (BlockhashWithExpiryBlockHeight, Commitment,
                          ConfirmOptions, MaybeAccount, ProgramAccountDict,
                          PublicKeyLike, UnparsedAccount, maybe_account_from_rpc, to_pubkey)
from ..types.signer import Signer
from ..utils.common import zip_map
from .http import AsyncRpcClient

if TYPE_CHECKING:  # pragma: no cover
    from ..client import LedgerClient

__all__ = ["LedgerRpc", "resolve_cluster", "EXPLORER_BASE"]

log = logging.getLogger(__name__)

EXPLORER_BASE = "https://explorer.solana.com"


def resolve_cluster(rpc_url: str) -> str:
    """Guess the cluster name from an RPC endpoint."""
    url = rpc_url.lower()
    if "devnet" in url:
        return "devnet"
    if "testnet" in url:
        return "testnet"
    if "localhost" in url or "127.0.0.1" in url:
        return "localnet"
    if "mainnet" in url:
        return "mainnet-beta"
    return "custom"


class LedgerRpc:
    def __init__(
        self,
        client: "LedgerClient",
        http: AsyncRpcClient,
        *,
        poll_interval_s: float = 0.5,
    ) -> None:
        self._client = client
        self._http = http
        self._default_fee_payer: Optional[Signer] = None
        self.poll_interval_s = poll_interval_s

    @property
    def http(self) -> AsyncRpcClient:
        return self._http

    def _commitment(self, commitment: Optional[Commitment]) -> Optional[str]:
        return commitment or self._client.config.commitment

    def _read_config(self, commitment: Optional[Commitment], **extra: Any) -> Dict[str, Any]:
        config: Dict[str, Any] = {"encoding": "base64"}
        resolved = self._commitment(commitment)
        if resolved is not None:
            config["commitment"] = resolved
        config.update(extra)
        return config

    # ------------------------------------------------------------------ reads

    async def get_account(self, public_key: PublicKeyLike, commitment: Optional[Commitment] = None) -> MaybeAccount:
        pk = to_pubkey(public_key)
        result = await self._http.request("getAccountInfo", [str(pk), self._read_config(commitment)])
        return maybe_account_from_rpc(pk, (result or {}).get("value"))

    async def get_multiple_accounts(
        self, public_keys: Sequence[PublicKeyLike], commitment: Optional[Commitment] = None
    ) -> List[MaybeAccount]:
        keys = [to_pubkey(k) for k in public_keys]
        if not keys:
            return []
        result = await self._http.request(
            "getMultipleAccounts", [[str(k) for k in keys], self._read_config(commitment)]
        )
        values = (result or {}).get("value") or []
        return zip_map(keys, values, maybe_account_from_rpc)

    async def get_program_accounts(
        self, program_id: PublicKeyLike, config: Optional[Dict[str, Any]] = None
    ) -> List[UnparsedAccount]:
        config = dict(config or {})
        commitment = config.pop("commitment", None)
        params = self._read_config(commitment, **config)
        result = await self._http.request("getProgramAccounts", [str(to_pubkey(program_id)), params])
        if isinstance(result, dict):  # withContext: true
            result = result.get("value") or []
        items: List[ProgramAccountDict] = result or []
        return [
            UnparsedAccount.from_rpc_dict(Pubkey.from_string(item["pubkey"]), item["account"])
            for item in items
        ]

    async def get_balance(self, public_key: PublicKeyLike, commitment: Optional[Commitment] = None) -> int:
        params: List[Any] = [str(to_pubkey(public_key))]
        resolved = self._commitment(commitment)
        if resolved is not None:
            params.append({"commitment": resolved})
        result = await self._http.request("getBalance", params)
        return int((result or {}).get("value", 0))

    async def get_rent(self, data_length: int, commitment: Optional[Commitment] = None) -> int:
        params: List[Any] = [int(data_length)]
        resolved = self._commitment(commitment)
        if resolved is not None:
            params.append({"commitment": resolved})
        return int(await self._http.request("getMinimumBalanceForRentExemption", params))

    async def get_latest_blockhash(self, commitment: Optional[Commitment] = None) -> BlockhashWithExpiryBlockHeight:
        params: List[Any] = []
        resolved = self._commitment(commitment)
        if resolved is not None:
            params.append({"commitment": resolved})
        result = await self._http.request("getLatestBlockhash", params)
        return BlockhashWithExpiryBlockHeight.from_rpc_dict(result["value"])

    async def account_exists(self, public_key: PublicKeyLike, commitment: Optional[Commitment] = None) -> bool:
        return await self.get_balance(public_key, commitment) > 0

    async def airdrop(
        self,
        public_key: PublicKeyLike,
        lamports: int,
        commitment: Optional[Commitment] = None,
    ) -> SendAndConfirmTransactionResponse:
        pk = to_pubkey(public_key)
        signature = await self._http.request("requestAirdrop", [str(pk), int(lamports)])
        blockhash = await self.get_latest_blockhash(commitment)
        confirmation = await self.confirm_transaction(signature, blockhash, commitment)
        log.debug("airdropped %d lamports to %s (%s)", lamports, pk, signature)
        return SendAndConfirmTransactionResponse(signature, confirmation, blockhash)

    # ------------------------------------------------------------------ fee payer

    def set_default_fee_payer(self, payer: Signer) -> "LedgerRpc":
        self._default_fee_payer = payer
        return self

    def get_default_fee_payer(self) -> Signer:
        if self._default_fee_payer is not None:
            return self._default_fee_payer
        return self._client.identity()

    # ------------------------------------------------------------------ send

    async def prepare_transaction(
        self,
        transaction: Union[Transaction, TransactionBuilder],
        signers: Sequence[Signer] = (),
        blockhash_with_expiry: Optional[BlockhashWithExpiryBlockHeight] = None,
    ) -> Tuple[Transaction, BlockhashWithExpiryBlockHeight, List[Signer]]:
        """
        Materialize `transaction` and collect everything that has to sign it.

        A built `Transaction` already carries its blockhash. Its confirmation
        expiry comes from `blockhash_with_expiry` when given (it should be the
        blockhash the message was built with), otherwise from a freshly
        fetched one, which can outlive the baked-in blockhash by a few blocks.

        A builder uses `blockhash_with_expiry`, then its transaction options,
        then the latest blockhash. Without a fee payer it gets the default one,
        which is also added to the signers.
        """
        if isinstance(transaction, Transaction):
            if blockhash_with_expiry is None:
                blockhash_with_expiry = await self.get_latest_blockhash()
            return transaction, blockhash_with_expiry, list(signers)

        options = transaction.get_transaction_options()
        if blockhash_with_expiry is not None:
            blockhash = blockhash_with_expiry
        elif options is not None:
            blockhash = options.blockhash_with_expiry()
        else:
            blockhash = await self.get_latest_blockhash()

        all_signers: List[Signer] = list(transaction.get_signers())
        if transaction.get_fee_payer() is None:
            payer = self.get_default_fee_payer()
            transaction.set_fee_payer(payer)
            all_signers.insert(0, payer)
        all_signers.extend(signers)

        return transaction.to_transaction(blockhash), blockhash, all_signers

    async def send_transaction(
        self,
        transaction: Union[Transaction, TransactionBuilder],
        confirm_options: Optional[ConfirmOptions] = None,
        signers: Sequence[Signer] = (),
    ) -> str:
        tx, _, all_signers = await self.prepare_transaction(transaction, signers)
        tx = await sign_transaction(tx, all_signers)
        return await submit_raw(self._http, tx, confirm_options)

    async def confirm_transaction(
        self,
        signature: str,
        blockhash_with_expiry: BlockhashWithExpiryBlockHeight,
        commitment: Optional[Commitment] = None,
    ) -> Dict[str, Any]:
        return await wait_for_confirmation(
            self._http,
            signature,
            blockhash_with_expiry,
            self._commitment(commitment),
            poll_interval_s=self.poll_interval_s,
        )

    async def send_and_confirm_transaction(
        self,
        transaction: Union[Transaction, TransactionBuilder],
        confirm_options: Optional[ConfirmOptions] = None,
        signers: Sequence[Signer] = (),
        blockhash_with_expiry: Optional[BlockhashWithExpiryBlockHeight] = None,
    ) -> SendAndConfirmTransactionResponse:
        tx, blockhash, all_signers = await self.prepare_transaction(
            transaction, signers, blockhash_with_expiry
        )
        tx = await sign_transaction(tx, all_signers)
        return await submit_and_confirm(
            self._http,
            tx,
            blockhash,
            confirm_options,
            commitment=self._commitment(confirm_options.commitment if confirm_options else None),
            poll_interval_s=self.poll_interval_s,
        )

    # ------------------------------------------------------------------ misc

    def get_explorer_url(self, signature: str) -> str:
        rpc_url = self._http.url
        cluster = resolve_cluster(rpc_url)
        base = f"{EXPLORER_BASE}/tx/{signature}"
        if cluster == "mainnet-beta":
            return base
        if cluster == "localnet":
            return f"{base}?cluster=custom&customUrl={quote('http://localhost:8899', safe='')}"
        if cluster == "custom":
            return f"{base}?cluster=custom&customUrl={quote(rpc_url, safe='')}"
        return f"{base}?cluster={cluster}"
