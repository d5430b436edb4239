import base64

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID

from ledgerkit.errors import Cancelled
from ledgerkit.plugins.system import (CreateAccountInput, SystemClient,
                                      TransferSolInput, TransferSolOutput,
                                      create_account_builder,
                                      create_account_operation,
                                      find_accounts_by_owner_operation,
                                      system_module, transfer_sol_builder,
                                      transfer_sol_operation)
from ledgerkit.types.operation import OperationOptions
from ledgerkit.types.signer import KeypairIdentity
from ledgerkit.utils.disposable import AbortController

from tests.fakes import FakeNode, account_json, make_client

pytestmark = pytest.mark.anyio


@pytest.fixture
def node():
    return FakeNode()


@pytest.fixture
async def client(node):
    c = make_client(node, identity=KeypairIdentity(Keypair())).use(system_module())
    yield c
    await c.aclose()


async def test_plugin_registers_operations_and_namespace(client):
    for op in (transfer_sol_operation, create_account_operation, find_accounts_by_owner_operation):
        assert client.operations().has(op)
    assert isinstance(client.system(), SystemClient)
    with pytest.raises(AttributeError):
        client.not_installed()


async def test_transfer_builder_uses_identity_as_payer_and_source(client):
    recipient = Pubkey.new_unique()
    builder = transfer_sol_builder(client, TransferSolInput(to=recipient, lamports=5_000))

    assert builder.get_fee_payer() == client.identity().public_key
    (rec,) = builder.get_instructions_with_signers()
    assert rec.key == "transferSol"
    assert rec.signers == [client.identity()]
    assert rec.instruction.program_id == SYSTEM_PROGRAM_ID
    assert rec.instruction.accounts[1].pubkey == recipient

    with pytest.raises(ValueError):
        transfer_sol_builder(client, TransferSolInput(to=recipient, lamports=-1))


async def test_transfer_sol_end_to_end(node, client):
    output = await client.system().transfer_sol(Pubkey.new_unique(), 1_000, commitment="confirmed")

    assert isinstance(output, TransferSolOutput)
    tx = node.sent[0]
    assert all(tx.verify_with_results())
    assert output.response.signature == str(tx.signatures[0])


async def test_transfer_from_a_separate_source_wallet(node, client):
    source = Keypair()
    await client.system().transfer_sol(Pubkey.new_unique(), 10, source=source)
    tx = node.sent[0]
    assert tx.message.account_keys[0] == client.identity().public_key
    assert source.pubkey() in tx.message.account_keys
    assert len(tx.signatures) == 2
    assert all(tx.verify_with_results())


async def test_cancel_before_send_skips_the_network_write(node, client):
    controller = AbortController()
    controller.abort("changed my mind")

    with pytest.raises(Cancelled):
        await client.execute(
            transfer_sol_operation(TransferSolInput(to=Pubkey.new_unique(), lamports=1)),
            OperationOptions(signal=controller.signal),
        )
    assert "sendTransaction" not in node.methods()


async def test_create_account_builder_exposes_new_keypair(node, client):
    builder = await create_account_builder(client, CreateAccountInput(space=165))

    context = builder.get_context()
    new_account = context["new_account"]
    assert isinstance(new_account, Keypair)
    assert context["lamports"] == node.rent
    (rec,) = builder.get_instructions_with_signers()
    assert rec.key == "createAccount"
    assert rec.signers == [client.identity(), new_account]
    assert "getMinimumBalanceForRentExemption" in node.methods()


async def test_create_account_with_explicit_lamports_skips_rent_lookup(node, client):
    fixed = Keypair()
    builder = await create_account_builder(
        client, CreateAccountInput(space=0, lamports=1, new_account=fixed)
    )
    assert builder.get_context()["new_account"] is fixed
    assert node.methods() == []


async def test_create_account_end_to_end(node, client):
    owner_program = Pubkey.new_unique()
    output = await client.system().create_account(space=8, program=owner_program)

    tx = node.sent[0]
    assert output.new_account.pubkey() in tx.message.account_keys
    assert output.lamports == node.rent
    assert all(tx.verify_with_results())


async def test_find_accounts_by_owner_filters_and_returns_addresses(node, client):
    program, owner = Pubkey.new_unique(), Pubkey.new_unique()
    hits = [Pubkey.new_unique(), Pubkey.new_unique()]
    node.program_accounts = [{"pubkey": str(h), "account": account_json(1)} for h in hits]

    keys = await client.system().find_accounts_by_owner(
        program, owner, offset=8, discriminator=b"\xaa\xbb", data_size=72, commitment="finalized"
    )

    assert keys == hits
    method, params = node.calls[-1]
    assert method == "getProgramAccounts"
    assert params[0] == str(program)
    config = params[1]
    assert config["commitment"] == "finalized"
    assert config["dataSlice"] == {"offset": 0, "length": 0}
    assert config["filters"] == [
        {"memcmp": {"offset": 0, "bytes": base64.b64encode(b"\xaa\xbb").decode(), "encoding": "base64"}},
        {"dataSize": 72},
        {"memcmp": {"offset": 8, "bytes": str(owner)}},
    ]
