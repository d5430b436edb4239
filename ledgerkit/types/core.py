from __future__ import annotations

"""
Core ledger types for ledgerkit.

Two complementary representations, as for every chain object in the SDK:
- Lightweight `TypedDict` shapes mirroring JSON-RPC payloads (base64 data,
  base58 keys as strings).
- Ergonomic `@dataclass` models using `solders` keys and raw `bytes`, with
  `from_rpc_dict()` converters.

Nothing here performs network I/O.
"""

import base64
from dataclasses import dataclass
from typing import Any, List, Literal, Optional, Sequence, TypedDict, Union

from solders.hash import Hash
from solders.pubkey import Pubkey

__all__ = [
    "Commitment",
    "AccountInfoDict",
    "ProgramAccountDict",
    "BlockhashDict",
    "UnparsedAccount",
    "MissingAccount",
    "MaybeAccount",
    "maybe_account_from_rpc",
    "BlockhashWithExpiryBlockHeight",
    "TransactionOptions",
    "ConfirmOptions",
    "to_pubkey",
    "decode_account_data",
]

Commitment = Literal["processed", "confirmed", "finalized"]

PublicKeyLike = Union[Pubkey, str, bytes]


# --- JSON-RPC TypedDict shapes ----------------------------------------------


class AccountInfoDict(TypedDict, total=False):
    lamports: int
    owner: str
    data: List[str]  # [payload, encoding]
    executable: bool
    rentEpoch: int
    space: int


class ProgramAccountDict(TypedDict):
    pubkey: str
    account: AccountInfoDict


class BlockhashDict(TypedDict):
    blockhash: str
    lastValidBlockHeight: int


# --- Helpers -----------------------------------------------------------------


def to_pubkey(value: PublicKeyLike) -> Pubkey:
    """Accept a `Pubkey`, a base58 string or 32 raw bytes."""
    if isinstance(value, Pubkey):
        return value
    if isinstance(value, str):
        return Pubkey.from_string(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Pubkey.from_bytes(bytes(value))
    raise TypeError(f"cannot interpret {type(value).__name__} as a public key")


def decode_account_data(data: Any) -> bytes:
    """
    Decode the `data` field of an RPC account.

    Nodes answer `[payload, "base64"]` for the encodings we request; a bare
    string is treated as base64 as well. Anything else is rejected.
    """
    if data is None:
        return b""
    if isinstance(data, (list, tuple)) and len(data) == 2:
        payload, encoding = data
        if encoding != "base64":
            raise ValueError(f"unsupported account data encoding: {encoding!r}")
        return base64.b64decode(payload)
    if isinstance(data, str):
        return base64.b64decode(data)
    raise ValueError(f"unexpected account data shape: {type(data).__name__}")


# --- Dataclasses -------------------------------------------------------------


@dataclass(frozen=True)
class UnparsedAccount:
    """An existing account with its raw (possibly sliced) data."""

    public_key: Pubkey
    lamports: int
    owner: Pubkey
    data: bytes
    executable: bool = False
    rent_epoch: Optional[int] = None

    @property
    def exists(self) -> bool:
        return True

    @classmethod
    def from_rpc_dict(cls, public_key: Pubkey, info: AccountInfoDict) -> "UnparsedAccount":
        return cls(
            public_key=public_key,
            lamports=int(info.get("lamports", 0)),
            owner=Pubkey.from_string(info["owner"]),
            data=decode_account_data(info.get("data")),
            executable=bool(info.get("executable", False)),
            rent_epoch=info.get("rentEpoch"),
        )


@dataclass(frozen=True)
class MissingAccount:
    """Placeholder for an address that holds no account."""

    public_key: Pubkey

    @property
    def exists(self) -> bool:
        return False


MaybeAccount = Union[UnparsedAccount, MissingAccount]


def maybe_account_from_rpc(public_key: Pubkey, info: Optional[AccountInfoDict]) -> MaybeAccount:
    if info is None:
        return MissingAccount(public_key)
    return UnparsedAccount.from_rpc_dict(public_key, info)


@dataclass(frozen=True)
class BlockhashWithExpiryBlockHeight:
    blockhash: Hash
    last_valid_block_height: int

    @classmethod
    def from_rpc_dict(cls, d: BlockhashDict) -> "BlockhashWithExpiryBlockHeight":
        return cls(
            blockhash=Hash.from_string(d["blockhash"]),
            last_valid_block_height=int(d["lastValidBlockHeight"]),
        )


@dataclass(frozen=True)
class TransactionOptions:
    """
    Options used when materializing a builder into a transaction.

    `signatures` holds pre-computed `(public_key, signature)` pairs that are
    attached to the transaction before any signer runs.
    """

    blockhash: Hash
    last_valid_block_height: int
    signatures: Sequence[Any] = ()

    @classmethod
    def from_blockhash(
        cls, info: BlockhashWithExpiryBlockHeight, signatures: Sequence[Any] = ()
    ) -> "TransactionOptions":
        return cls(
            blockhash=info.blockhash,
            last_valid_block_height=info.last_valid_block_height,
            signatures=tuple(signatures),
        )

    def blockhash_with_expiry(self) -> BlockhashWithExpiryBlockHeight:
        return BlockhashWithExpiryBlockHeight(self.blockhash, self.last_valid_block_height)


@dataclass(frozen=True)
class ConfirmOptions:
    """How a transaction is sent and how long we wait for it."""

    commitment: Optional[Commitment] = None
    skip_preflight: bool = False
    preflight_commitment: Optional[Commitment] = None
    max_retries: Optional[int] = None

    def send_config(self) -> dict:
        """`sendTransaction` config object (encoding is set by the caller)."""
        config: dict = {"skipPreflight": self.skip_preflight}
        preflight = self.preflight_commitment or self.commitment
        if preflight is not None:
            config["preflightCommitment"] = preflight
        if self.max_retries is not None:
            config["maxRetries"] = int(self.max_retries)
        return config
