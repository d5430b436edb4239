"""
Signers.

A signer is one of two variants:

- a `solders.keypair.Keypair`, which signs locally and synchronously;
- an `IdentitySigner`, anything exposing a `public_key` and an async
  `sign_transaction(tx)` (a wallet, a remote signer, ...).

Builders keep signers exactly as they were given, duplicates included.
De-duplication happens at send time through `get_signer_histogram()`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Protocol, Sequence, Union, runtime_checkable

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from ..errors import OperationUnauthorizedForGuestsError

__all__ = [
    "IdentitySigner",
    "Signer",
    "KeypairIdentity",
    "GuestIdentity",
    "SignerHistogram",
    "signer_public_key",
    "is_keypair_signer",
    "get_signer_histogram",
]


@runtime_checkable
class IdentitySigner(Protocol):
    @property
    def public_key(self) -> Pubkey: ...

    async def sign_transaction(self, transaction: Transaction) -> Transaction: ...


Signer = Union[Keypair, IdentitySigner]


def is_keypair_signer(signer: Signer) -> bool:
    return isinstance(signer, Keypair)


def signer_public_key(signer: Signer) -> Pubkey:
    if isinstance(signer, Keypair):
        return signer.pubkey()
    return signer.public_key


@dataclass
class SignerHistogram:
    all: List[Signer] = field(default_factory=list)
    keypairs: List[Keypair] = field(default_factory=list)
    identities: List[IdentitySigner] = field(default_factory=list)


def get_signer_histogram(signers: Sequence[Signer]) -> SignerHistogram:
    """
    De-duplicate signers by public key (first occurrence wins, order kept)
    and split them into keypairs and identities.
    """
    histogram = SignerHistogram()
    seen = set()
    for signer in signers:
        key = signer_public_key(signer)
        if key in seen:
            continue
        seen.add(key)
        histogram.all.append(signer)
        if is_keypair_signer(signer):
            histogram.keypairs.append(signer)
        else:
            histogram.identities.append(signer)
    return histogram


class KeypairIdentity:
    """Identity backed by a local keypair."""

    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair

    @property
    def public_key(self) -> Pubkey:
        return self._keypair.pubkey()

    @property
    def keypair(self) -> Keypair:
        return self._keypair

    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        transaction.partial_sign([self._keypair], transaction.message.recent_blockhash)
        return transaction

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"KeypairIdentity({self.public_key})"


class GuestIdentity:
    """Identity used when none was configured. It can pay for nothing."""

    def __init__(self, public_key: Pubkey = Pubkey.default()) -> None:
        self._public_key = public_key

    @property
    def public_key(self) -> Pubkey:
        return self._public_key

    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        raise OperationUnauthorizedForGuestsError("sign_transaction")

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "GuestIdentity()"
