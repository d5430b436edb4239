"""
ledgerkit.plugins.system
========================

System program operations, installed with `client.use(system_module())`.

Operations
----------
- TransferSolOperation          : move lamports between two wallets.
- CreateAccountOperation        : allocate a fresh account owned by a program.
- FindAccountsByOwnerOperation  : scan a program's accounts for an owner field.

Each operation comes with a builder function returning a
`TransactionBuilder`, so callers can compose it with other instructions
instead of sending it alone:

    builder = transfer_sol_builder(client, TransferSolInput(to=alice, lamports=5_000))
    builder.add(other_builder)
    await builder.send_and_confirm(client.rpc())

The plugin also exposes the same operations through `client.system()`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import (CreateAccountParams, TransferParams,
                                    create_account, transfer)

from ..query.gpa import GpaBuilder
from ..tx.builder import InstructionRecord, TransactionBuilder
from ..tx.send import SendAndConfirmTransactionResponse
from ..types.core import PublicKeyLike, to_pubkey
from ..types.operation import (Operation, OperationOptions, OperationScope,
                               use_operation)
from ..types.signer import Signer, signer_public_key

if TYPE_CHECKING:  # pragma: no cover
    from ..client import LedgerClient

__all__ = [
    "SYSTEM_PROGRAM_ID",
    "transfer_sol_operation",
    "create_account_operation",
    "find_accounts_by_owner_operation",
    "TransferSolInput",
    "TransferSolOutput",
    "CreateAccountInput",
    "CreateAccountOutput",
    "FindAccountsByOwnerInput",
    "transfer_sol_builder",
    "create_account_builder",
    "ProgramAccountGpaBuilder",
    "SystemClient",
    "system_module",
]

log = logging.getLogger(__name__)

transfer_sol_operation = use_operation("TransferSolOperation")
create_account_operation = use_operation("CreateAccountOperation")
find_accounts_by_owner_operation = use_operation("FindAccountsByOwnerOperation")


# -----------------------------------------------------------------------------
# Transfer
# -----------------------------------------------------------------------------


@dataclass
class TransferSolInput:
    to: PublicKeyLike
    lamports: int
    # Wallet the lamports leave from; defaults to the payer.
    source: Optional[Signer] = None
    instruction_key: Optional[str] = None


@dataclass
class TransferSolOutput:
    response: SendAndConfirmTransactionResponse


def transfer_sol_builder(
    client: "LedgerClient",
    params: TransferSolInput,
    payer: Optional[Signer] = None,
) -> TransactionBuilder:
    if params.lamports < 0:
        raise ValueError("lamports must be >= 0")
    payer = payer or client.rpc().get_default_fee_payer()
    source = params.source or payer
    ix = transfer(
        TransferParams(
            from_pubkey=signer_public_key(source),
            to_pubkey=to_pubkey(params.to),
            lamports=int(params.lamports),
        )
    )
    return (
        TransactionBuilder.make()
        .set_fee_payer(payer)
        .add(InstructionRecord(ix, signers=[source], key=params.instruction_key or "transferSol"))
    )


async def transfer_sol_handler(
    operation: Operation[TransferSolInput], client: "LedgerClient", scope: OperationScope
) -> TransferSolOutput:
    builder = transfer_sol_builder(client, operation.input, scope.payer)
    scope.raise_if_cancelled()
    output = await builder.send_and_confirm(client.rpc(), scope.confirm_options)
    scope.raise_if_cancelled()
    return TransferSolOutput(**output)


# -----------------------------------------------------------------------------
# Create account
# -----------------------------------------------------------------------------


@dataclass
class CreateAccountInput:
    space: int
    program: PublicKeyLike = SYSTEM_PROGRAM_ID
    # Rent-exempt minimum for `space` when unset.
    lamports: Optional[int] = None
    new_account: Optional[Keypair] = None
    instruction_key: Optional[str] = None


@dataclass
class CreateAccountOutput:
    response: SendAndConfirmTransactionResponse
    new_account: Keypair
    lamports: int


async def create_account_builder(
    client: "LedgerClient",
    params: CreateAccountInput,
    payer: Optional[Signer] = None,
) -> TransactionBuilder:
    """Builder creating one account; the new keypair is in the builder context."""
    payer = payer or client.rpc().get_default_fee_payer()
    lamports = params.lamports
    if lamports is None:
        lamports = await client.rpc().get_rent(params.space)
    new_account = params.new_account or Keypair()
    ix = create_account(
        CreateAccountParams(
            from_pubkey=signer_public_key(payer),
            to_pubkey=new_account.pubkey(),
            lamports=int(lamports),
            space=int(params.space),
            owner=to_pubkey(params.program),
        )
    )
    return (
        TransactionBuilder.make()
        .set_fee_payer(payer)
        .set_context({"new_account": new_account, "lamports": int(lamports)})
        .add(
            InstructionRecord(
                ix,
                signers=[payer, new_account],
                key=params.instruction_key or "createAccount",
            )
        )
    )


async def create_account_handler(
    operation: Operation[CreateAccountInput], client: "LedgerClient", scope: OperationScope
) -> CreateAccountOutput:
    builder = await create_account_builder(client, operation.input, scope.payer)
    scope.raise_if_cancelled()
    output = await builder.send_and_confirm(client.rpc(), scope.confirm_options)
    scope.raise_if_cancelled()
    log.debug("created account %s", output["new_account"].pubkey())
    return CreateAccountOutput(**output)


# -----------------------------------------------------------------------------
# Find by owner
# -----------------------------------------------------------------------------


class ProgramAccountGpaBuilder(GpaBuilder):
    """Scanner for accounts laid out as `discriminator | ... | owner | ...`."""

    def where_discriminator(self, prefix: bytes) -> "ProgramAccountGpaBuilder":
        self.where(0, bytes(prefix))
        return self

    def where_owner(self, offset: int, owner: PublicKeyLike) -> "ProgramAccountGpaBuilder":
        self.where(offset, to_pubkey(owner))
        return self


@dataclass
class FindAccountsByOwnerInput:
    program: PublicKeyLike
    owner: PublicKeyLike
    # Byte offset of the owner field in the account data.
    offset: int = 0
    discriminator: Optional[bytes] = None
    data_size: Optional[int] = None


async def find_accounts_by_owner_handler(
    operation: Operation[FindAccountsByOwnerInput], client: "LedgerClient", scope: OperationScope
) -> List[Pubkey]:
    params = operation.input
    gpa = ProgramAccountGpaBuilder(client.rpc(), params.program)
    if scope.commitment is not None:
        gpa.merge_config(commitment=scope.commitment)
    if params.discriminator is not None:
        gpa.where_discriminator(params.discriminator)
    if params.data_size is not None:
        gpa.where_size(params.data_size)
    gpa.where_owner(params.offset, params.owner).without_data()
    keys = await gpa.get_public_keys()
    scope.raise_if_cancelled()
    return keys


# -----------------------------------------------------------------------------
# Client namespace & plugin
# -----------------------------------------------------------------------------


class SystemClient:
    def __init__(self, client: "LedgerClient") -> None:
        self._client = client

    async def transfer_sol(
        self,
        to: PublicKeyLike,
        lamports: int,
        source: Optional[Signer] = None,
        **options: Any,
    ) -> TransferSolOutput:
        op = transfer_sol_operation(TransferSolInput(to=to, lamports=lamports, source=source))
        return await self._client.execute(op, OperationOptions(**options))

    async def create_account(self, space: int, **params_and_options: Any) -> CreateAccountOutput:
        params = CreateAccountInput(
            space=space,
            program=params_and_options.pop("program", SYSTEM_PROGRAM_ID),
            lamports=params_and_options.pop("lamports", None),
            new_account=params_and_options.pop("new_account", None),
        )
        return await self._client.execute(
            create_account_operation(params), OperationOptions(**params_and_options)
        )

    async def find_accounts_by_owner(
        self,
        program: PublicKeyLike,
        owner: PublicKeyLike,
        offset: int = 0,
        discriminator: Optional[bytes] = None,
        data_size: Optional[int] = None,
        **options: Any,
    ) -> List[Pubkey]:
        params = FindAccountsByOwnerInput(program, owner, offset, discriminator, data_size)
        return await self._client.execute(
            find_accounts_by_owner_operation(params), OperationOptions(**options)
        )

    def transfer_sol_builder(self, to: PublicKeyLike, lamports: int, source: Optional[Signer] = None) -> TransactionBuilder:
        return transfer_sol_builder(self._client, TransferSolInput(to=to, lamports=lamports, source=source))


class _SystemPlugin:
    def install(self, client: "LedgerClient") -> None:
        client.operations().register(transfer_sol_operation, transfer_sol_handler)
        client.operations().register(create_account_operation, create_account_handler)
        client.operations().register(find_accounts_by_owner_operation, find_accounts_by_owner_handler)
        client.attach("system", SystemClient(client))


def system_module() -> _SystemPlugin:
    return _SystemPlugin()
