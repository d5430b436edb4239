"""
ledgerkit.tx.builder
====================

`TransactionBuilder` accumulates instructions together with the signers each
one requires, in execution order, and turns them into a transaction.

Design notes
------------
- Items are a closed union: an `InstructionRecord`, or another
  `TransactionBuilder` whose records are spliced in as a contiguous block in
  their original order. Records are shared, never re-wrapped. Anything else
  is a `TypeError`.
- Order is append/prepend order. Nothing is ever reordered.
- `get_signers()` returns the fee payer first, then every record's signers
  in record order, duplicates included. De-duplication is the sender's job
  (see `ledgerkit.types.signer.get_signer_histogram`).
- A builder also carries a free-form `context` dict for out-of-band results
  (e.g. the keypair of an account it creates) which `send_and_confirm()`
  merges into its return value.

Example
-------
    builder = (
        TransactionBuilder.make()
        .set_fee_payer(payer)
        .add(InstructionRecord(create_ix, signers=[payer, new_account], key="createAccount"))
        .add(InstructionRecord(init_ix, signers=[payer], key="initialize"))
        .set_context({"new_account": new_account})
    )
    result = await builder.send_and_confirm(client.rpc())
    result["response"].signature, result["new_account"]
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (TYPE_CHECKING, Any, Callable, Dict, List, Optional,
                    Protocol, Sequence, Tuple, Union)

from solders.instruction import Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from ..types.core import (BlockhashWithExpiryBlockHeight, ConfirmOptions,
                          TransactionOptions)
from ..types.signer import Signer, signer_public_key

if TYPE_CHECKING:  # pragma: no cover
    from .send import SendAndConfirmTransactionResponse

__all__ = [
    "InstructionRecord",
    "BuilderItem",
    "TransactionSender",
    "TransactionBuilder",
]


@dataclass(frozen=True)
class InstructionRecord:
    """One instruction, the signers it needs, and an optional label."""

    instruction: Instruction
    signers: Sequence[Signer] = ()
    key: Optional[str] = None


class TransactionSender(Protocol):
    async def send_and_confirm_transaction(
        self,
        transaction: Union[Transaction, "TransactionBuilder"],
        confirm_options: Optional[ConfirmOptions] = None,
        signers: Sequence[Signer] = (),
    ) -> "SendAndConfirmTransactionResponse": ...


BuilderItem = Union[InstructionRecord, "TransactionBuilder"]


class TransactionBuilder:
    def __init__(self, transaction_options: Optional[TransactionOptions] = None) -> None:
        self._records: List[InstructionRecord] = []
        self._transaction_options = transaction_options
        self._fee_payer: Optional[Signer] = None
        self._context: Dict[str, Any] = {}

    @classmethod
    def make(cls, transaction_options: Optional[TransactionOptions] = None) -> "TransactionBuilder":
        return cls(transaction_options)

    # ------------------------------------------------------------------ composition

    @staticmethod
    def _records_of(item: BuilderItem) -> List[InstructionRecord]:
        if isinstance(item, TransactionBuilder):
            return list(item._records)
        if isinstance(item, InstructionRecord):
            return [item]
        raise TypeError(
            f"expected InstructionRecord or TransactionBuilder, got {type(item).__name__}"
        )

    def _flatten(self, items: Sequence[BuilderItem]) -> List[InstructionRecord]:
        records: List[InstructionRecord] = []
        for item in items:
            records.extend(self._records_of(item))
        return records

    def prepend(self, *items: BuilderItem) -> "TransactionBuilder":
        self._records = self._flatten(items) + self._records
        return self

    def append(self, *items: BuilderItem) -> "TransactionBuilder":
        self._records = self._records + self._flatten(items)
        return self

    def add(self, *items: BuilderItem) -> "TransactionBuilder":
        return self.append(*items)

    def split_using_key(
        self, key: str, include: bool = True
    ) -> Tuple["TransactionBuilder", "TransactionBuilder"]:
        """
        Split at the first record labelled `key`.

        With `include=True` that record ends the first builder, otherwise it
        starts the second one. When no record carries `key`, every record goes
        to the first builder and the second is empty. Both halves inherit the
        transaction options; fee payer and context stay on `self`.
        """
        first = TransactionBuilder(self._transaction_options)
        second = TransactionBuilder(self._transaction_options)
        position = next(
            (i for i, record in enumerate(self._records) if record.key == key), -1
        )
        if position < 0:
            first.add(self)
        else:
            position += 1 if include else 0
            first.add(*self._records[:position])
            second.add(*self._records[position:])
        return first, second

    def split_after_key(self, key: str) -> Tuple["TransactionBuilder", "TransactionBuilder"]:
        return self.split_using_key(key, include=True)

    def split_before_key(self, key: str) -> Tuple["TransactionBuilder", "TransactionBuilder"]:
        return self.split_using_key(key, include=False)

    def when(
        self,
        condition: bool,
        callback: Callable[["TransactionBuilder"], "TransactionBuilder"],
    ) -> "TransactionBuilder":
        return callback(self) if condition else self

    def unless(
        self,
        condition: bool,
        callback: Callable[["TransactionBuilder"], "TransactionBuilder"],
    ) -> "TransactionBuilder":
        return self.when(not condition, callback)

    # ------------------------------------------------------------------ accessors

    def get_instructions_with_signers(self) -> List[InstructionRecord]:
        return list(self._records)

    def get_instructions(self) -> List[Instruction]:
        return [record.instruction for record in self._records]

    def get_instruction_count(self) -> int:
        return len(self._records)

    def is_empty(self) -> bool:
        return self.get_instruction_count() == 0

    def get_signers(self) -> List[Signer]:
        fee_payer = [] if self._fee_payer is None else [self._fee_payer]
        return fee_payer + [signer for record in self._records for signer in record.signers]

    def set_transaction_options(self, transaction_options: TransactionOptions) -> "TransactionBuilder":
        self._transaction_options = transaction_options
        return self

    def get_transaction_options(self) -> Optional[TransactionOptions]:
        return self._transaction_options

    def set_fee_payer(self, fee_payer: Signer) -> "TransactionBuilder":
        self._fee_payer = fee_payer
        return self

    def get_fee_payer(self) -> Optional[Pubkey]:
        return None if self._fee_payer is None else signer_public_key(self._fee_payer)

    def get_fee_payer_signer(self) -> Optional[Signer]:
        return self._fee_payer

    def set_context(self, context: Dict[str, Any]) -> "TransactionBuilder":
        self._context = context
        return self

    def get_context(self) -> Dict[str, Any]:
        return self._context

    # ------------------------------------------------------------------ materialize

    def to_transaction(
        self,
        blockhash_with_expiry: Optional[BlockhashWithExpiryBlockHeight] = None,
        fee_payer: Optional[Pubkey] = None,
    ) -> Transaction:
        """
        Build an unsigned transaction from the accumulated instructions.

        The blockhash comes from `blockhash_with_expiry` or, failing that,
        from the builder's transaction options. The fee payer is the builder's
        own, then `fee_payer`; with neither, the message has no explicit payer.
        Pre-computed signatures from the transaction options are attached.
        """
        options = self._transaction_options
        if blockhash_with_expiry is not None:
            blockhash = blockhash_with_expiry.blockhash
        elif options is not None:
            blockhash = options.blockhash
        else:
            raise ValueError(
                "a recent blockhash is required: pass one or call set_transaction_options()"
            )

        payer = self.get_fee_payer() or fee_payer
        message = Message.new_with_blockhash(self.get_instructions(), payer, blockhash)
        transaction = Transaction.new_unsigned(message)

        if options is not None and options.signatures:
            signatures = list(transaction.signatures)
            required = list(message.account_keys[: message.header.num_required_signatures])
            for public_key, signature in options.signatures:
                if public_key not in required:
                    raise ValueError(f"{public_key} is not a required signer of this transaction")
                signatures[required.index(public_key)] = signature
            transaction.signatures = signatures

        return transaction

    async def send_and_confirm(
        self,
        sender: TransactionSender,
        confirm_options: Optional[ConfirmOptions] = None,
    ) -> Dict[str, Any]:
        """Send through `sender` and return `{"response": ..., **context}`."""
        response = await sender.send_and_confirm_transaction(self, confirm_options)
        return {"response": response, **self.get_context()}

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        keys = [record.key for record in self._records]
        return f"<TransactionBuilder records={len(self._records)} keys={keys!r}>"
