"""
ledgerkit.query.gpa
===================

Filtered program-account scans ("get program accounts").

A `GpaBuilder` accumulates server-side filters (ANDed by the node), an
optional data slice, and an optional client-side comparator applied once the
results are back:

    accounts = await (
        GpaBuilder(ledger, program_id)
        .where_size(165)
        .where(32, owner)          # memcmp at offset 32
        .slice(0, 32)              # only fetch the first 32 bytes
        .sort_using(lambda a, b: a.lamports - b.lamports)
        .get()
    )

`where(offset, value)` accepts:

- `str`          : passed through as base58 bytes;
- `Pubkey`       : its base58 form;
- `bytes`        : sent base64-encoded;
- `bool`         : one byte, 0 or 1;
- `int`          : unsigned little-endian, minimal length or `width` bytes.

Concrete scanners subclass `GpaBuilder` and add named filters on top of
`where()`; see `ledgerkit.plugins.system.ProgramAccountGpaBuilder`.
"""

from __future__ import annotations

import base64
import functools
import logging
from typing import (Any, Callable, Dict, List, Optional, Protocol, Sequence,
                    TypeVar, Union)

from solders.pubkey import Pubkey

from ..types.core import PublicKeyLike, UnparsedAccount, to_pubkey
from .gma import AccountReader, GmaBuilder

__all__ = ["AccountScanner", "GpaBuilder", "memcmp_filter", "encode_memcmp_value"]

log = logging.getLogger(__name__)

T = TypeVar("T")

MemcmpValue = Union[str, bytes, bytearray, Pubkey, int, bool]
Comparator = Callable[[UnparsedAccount, UnparsedAccount], int]


class AccountScanner(AccountReader, Protocol):
    async def get_program_accounts(
        self, program_id: PublicKeyLike, config: Optional[Dict[str, Any]] = None
    ) -> List[UnparsedAccount]: ...


def encode_memcmp_value(value: MemcmpValue, width: Optional[int] = None) -> Dict[str, Any]:
    """`bytes`/`encoding` fields of a memcmp filter for `value`."""
    if isinstance(value, str):
        return {"bytes": value}
    if isinstance(value, Pubkey):
        return {"bytes": str(value)}
    if isinstance(value, bool):
        raw = b"\x01" if value else b"\x00"
    elif isinstance(value, int):
        if value < 0:
            raise ValueError("memcmp integers must be non-negative")
        length = width if width is not None else max(1, (value.bit_length() + 7) // 8)
        raw = value.to_bytes(length, "little")
    elif isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        raise TypeError(f"unsupported memcmp value: {type(value).__name__}")
    return {"bytes": base64.b64encode(raw).decode("ascii"), "encoding": "base64"}


def memcmp_filter(offset: int, value: MemcmpValue, width: Optional[int] = None) -> Dict[str, Any]:
    if offset < 0:
        raise ValueError("memcmp offset must be >= 0")
    return {"memcmp": {"offset": int(offset), **encode_memcmp_value(value, width)}}


class GpaBuilder:
    def __init__(self, ledger: AccountScanner, program_id: PublicKeyLike) -> None:
        self._ledger = ledger
        self.program_id = to_pubkey(program_id)
        self._config: Dict[str, Any] = {}
        self._comparator: Optional[Comparator] = None

    # ------------------------------------------------------------------ filters

    def merge_config(self, **config: Any) -> "GpaBuilder":
        self._config.update(config)
        return self

    def get_config(self) -> Dict[str, Any]:
        return dict(self._config)

    def add_filter(self, *filters: Dict[str, Any]) -> "GpaBuilder":
        self._config["filters"] = list(self._config.get("filters", [])) + list(filters)
        return self

    def where(self, offset: int, value: MemcmpValue, width: Optional[int] = None) -> "GpaBuilder":
        return self.add_filter(memcmp_filter(offset, value, width))

    def where_size(self, data_size: int) -> "GpaBuilder":
        return self.add_filter({"dataSize": int(data_size)})

    def slice(self, offset: int, length: int) -> "GpaBuilder":
        return self.merge_config(dataSlice={"offset": int(offset), "length": int(length)})

    def without_data(self) -> "GpaBuilder":
        return self.slice(0, 0)

    def sort_using(self, comparator: Comparator) -> "GpaBuilder":
        self._comparator = comparator
        return self

    # ------------------------------------------------------------------ reads

    async def get(self) -> List[UnparsedAccount]:
        log.debug("scanning %s with %d filter(s)", self.program_id, len(self._config.get("filters", [])))
        accounts = await self._ledger.get_program_accounts(self.program_id, self.get_config())
        if self._comparator is not None:
            accounts = sorted(accounts, key=functools.cmp_to_key(self._comparator))
        return list(accounts)

    async def get_and_map(self, fn: Callable[[UnparsedAccount], T]) -> List[T]:
        return [fn(account) for account in await self.get()]

    async def get_public_keys(self) -> List[Pubkey]:
        return await self.get_and_map(lambda account: account.public_key)

    async def get_data_as_public_keys(self) -> List[Pubkey]:
        return await self.get_and_map(lambda account: Pubkey.from_bytes(account.data))

    async def get_multiple_accounts(
        self,
        selector: Optional[Callable[[UnparsedAccount], Pubkey]] = None,
        **gma_options: Any,
    ) -> GmaBuilder:
        """
        Scan, turn every hit into an address with `selector` (default: the
        account data read as a public key) and return a reader over them.
        """
        keys: Sequence[Pubkey] = await self.get_and_map(
            selector or (lambda account: Pubkey.from_bytes(account.data))
        )
        return GmaBuilder(self._ledger, keys, **gma_options)
