"""
ledgerkit.query.gma
===================

Batched account reads ("get multiple accounts").

`GmaBuilder` turns "fetch these N accounts" into ceil(N / chunk_size)
`getMultipleAccounts` calls issued concurrently, optionally bounded by
`max_parallel`, and reassembles the answers so that output position i always
holds the account for input key i. Addresses holding no account come back as
`MissingAccount`.

One failed chunk fails the whole read with `ChunkedReadFailure`; there are
no partial results. `Cancelled` raised by the ledger passes through as is.

    accounts = await GmaBuilder(ledger, keys, chunk_size=50).get()
    lamports = await GmaBuilder(ledger, keys).get_and_map(lambda a: a.lamports if a.exists else 0)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Protocol, Sequence, TypeVar

from solders.pubkey import Pubkey

from ..config import DEFAULT_CHUNK_SIZE
from ..errors import Cancelled, ChunkedReadFailure
from ..types.core import Commitment, MaybeAccount, PublicKeyLike, to_pubkey
from ..utils.common import chunk
from ..utils.lazy import LazyPipe

__all__ = ["AccountReader", "GmaBuilder"]

log = logging.getLogger(__name__)

T = TypeVar("T")


class AccountReader(Protocol):
    async def get_multiple_accounts(
        self, public_keys: Sequence[Pubkey], commitment: Optional[Commitment] = None
    ) -> List[MaybeAccount]: ...


class GmaBuilder:
    def __init__(
        self,
        ledger: AccountReader,
        public_keys: Sequence[PublicKeyLike] = (),
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        commitment: Optional[Commitment] = None,
        max_parallel: Optional[int] = None,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if max_parallel is not None and max_parallel < 1:
            raise ValueError("max_parallel must be >= 1 when set")
        self._ledger = ledger
        self._public_keys: List[Pubkey] = [to_pubkey(k) for k in public_keys]
        self._chunk_size = chunk_size
        self._commitment = commitment
        self._max_parallel = max_parallel

    # ------------------------------------------------------------------ config

    def chunk_by(self, chunk_size: int) -> "GmaBuilder":
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self._chunk_size = chunk_size
        return self

    def add_public_keys(self, public_keys: Sequence[PublicKeyLike]) -> "GmaBuilder":
        self._public_keys.extend(to_pubkey(k) for k in public_keys)
        return self

    def get_public_keys(self) -> List[Pubkey]:
        return list(self._public_keys)

    def get_unique_public_keys(self) -> List[Pubkey]:
        return list(dict.fromkeys(self._public_keys))

    # ------------------------------------------------------------------ reads

    async def get_first(self, n: int = 1) -> List[MaybeAccount]:
        return await self._get_chunks(self._public_keys[:n])

    async def get_last(self, n: int = 1) -> List[MaybeAccount]:
        return await self._get_chunks(self._public_keys[-n:] if n > 0 else [])

    async def get_between(self, start: int, end: int) -> List[MaybeAccount]:
        return await self._get_chunks(self._public_keys[start:end])

    async def get_page(self, page: int, per_page: int) -> List[MaybeAccount]:
        """1-based page of `per_page` accounts."""
        if page < 1 or per_page < 1:
            raise ValueError("page and per_page must be >= 1")
        start = (page - 1) * per_page
        return await self.get_between(start, start + per_page)

    async def get(self) -> List[MaybeAccount]:
        return await self._get_chunks(self._public_keys)

    def lazy(self) -> LazyPipe[List[MaybeAccount]]:
        return LazyPipe.make(self.get)

    def map(self, fn: Callable[[MaybeAccount], T]) -> LazyPipe[List[T]]:
        return self.lazy().map(fn)

    async def get_and_map(self, fn: Callable[[MaybeAccount], T]) -> List[T]:
        return await self.map(fn).run()

    # ------------------------------------------------------------------ internals

    async def _get_chunks(self, public_keys: Sequence[Pubkey]) -> List[MaybeAccount]:
        chunks = chunk(public_keys, self._chunk_size)
        if not chunks:
            return []
        log.debug(
            "reading %d accounts in %d chunk(s) of <= %d", len(public_keys), len(chunks), self._chunk_size
        )

        semaphore = asyncio.Semaphore(self._max_parallel) if self._max_parallel else None
        failed = asyncio.Event()

        async def _bounded(index: int, keys: List[Pubkey]) -> List[MaybeAccount]:
            if semaphore is None:
                return await self._get_chunk(index, keys)
            async with semaphore:
                if failed.is_set():
                    # Whole read already failed; this result is discarded.
                    return []
                try:
                    return await self._get_chunk(index, keys)
                except BaseException:
                    failed.set()
                    raise

        tasks = [asyncio.ensure_future(_bounded(i, keys)) for i, keys in enumerate(chunks)]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            # First failure wins; sibling reads are stopped before it propagates.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return [account for part in results for account in part]

    async def _get_chunk(self, index: int, public_keys: List[Pubkey]) -> List[MaybeAccount]:
        try:
            accounts = await self._ledger.get_multiple_accounts(public_keys, self._commitment)
        except Cancelled:
            raise
        except Exception as e:
            raise ChunkedReadFailure(str(e), chunk_index=index, chunk_size=len(public_keys)) from e
        if len(accounts) != len(public_keys):
            raise ChunkedReadFailure(
                f"expected {len(public_keys)} accounts, got {len(accounts)}",
                chunk_index=index,
                chunk_size=len(public_keys),
            )
        return list(accounts)
