import pytest
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer

from ledgerkit.tx.builder import InstructionRecord, TransactionBuilder
from ledgerkit.types.core import BlockhashWithExpiryBlockHeight, TransactionOptions

pytestmark = pytest.mark.anyio

PROGRAM = Pubkey.new_unique()


def record(tag, signers=(), key=None):
    return InstructionRecord(Instruction(PROGRAM, bytes([tag]), []), signers=list(signers), key=key)


def tags(builder):
    return [bytes(ix.data)[0] for ix in builder.get_instructions()]


def test_append_and_prepend_keep_order():
    builder = TransactionBuilder.make().add(record(2)).append(record(3)).prepend(record(1))
    assert tags(builder) == [1, 2, 3]
    assert builder.get_instruction_count() == 3


def test_nested_builders_are_spliced_as_contiguous_blocks():
    inner_record = record(3)
    inner = TransactionBuilder.make().add(record(2), inner_record)
    outer = TransactionBuilder.make().add(record(1), inner, record(4))

    assert tags(outer) == [1, 2, 3, 4]
    # Records are shared, not copied.
    assert outer.get_instructions_with_signers()[2] is inner_record
    # The inner builder is unaffected.
    assert tags(inner) == [2, 3]


def test_empty_builder_composition_is_a_noop():
    builder = TransactionBuilder.make().add(record(1))
    builder.add(TransactionBuilder.make()).prepend(TransactionBuilder.make())
    assert tags(builder) == [1]
    assert TransactionBuilder.make().is_empty()


def test_non_record_items_are_rejected():
    with pytest.raises(TypeError):
        TransactionBuilder.make().add("not an instruction")
    with pytest.raises(TypeError):
        TransactionBuilder.make().prepend(Instruction(PROGRAM, b"", []))


def test_signers_fee_payer_first_duplicates_kept():
    payer, a, b = Keypair(), Keypair(), Keypair()
    builder = (
        TransactionBuilder.make()
        .add(record(1, [a, payer]))
        .add(record(2, [a, b]))
        .set_fee_payer(payer)
    )
    assert builder.get_signers() == [payer, a, payer, a, b]


def test_fee_payer_defaults_to_none():
    builder = TransactionBuilder.make()
    assert builder.get_fee_payer() is None
    payer = Keypair()
    builder.set_fee_payer(payer)
    assert builder.get_fee_payer() == payer.pubkey()
    assert builder.get_fee_payer_signer() is payer


def _keyed():
    return TransactionBuilder.make().add(record(1, key="a"), record(2, key="b"), record(3, key="c"))


def test_split_after_key_includes_the_labelled_record_first():
    before, after = _keyed().split_after_key("b")
    assert tags(before) == [1, 2]
    assert tags(after) == [3]


def test_split_before_key_starts_second_half_with_labelled_record():
    before, after = _keyed().split_before_key("b")
    assert tags(before) == [1]
    assert tags(after) == [2, 3]


def test_split_on_missing_key_keeps_everything_first():
    before, after = _keyed().split_using_key("zzz")
    assert tags(before) == [1, 2, 3]
    assert after.is_empty()


def test_split_halves_inherit_transaction_options():
    options = TransactionOptions(blockhash=Hash.new_unique(), last_valid_block_height=10)
    builder = _keyed().set_transaction_options(options)
    before, after = builder.split_using_key("a")
    assert before.get_transaction_options() is options
    assert after.get_transaction_options() is options
    # Splitting never alters the source.
    assert tags(builder) == [1, 2, 3]


def test_when_and_unless():
    builder = TransactionBuilder.make()
    builder.when(True, lambda b: b.add(record(1)))
    builder.when(False, lambda b: b.add(record(2)))
    builder.unless(False, lambda b: b.add(record(3)))
    builder.unless(True, lambda b: b.add(record(4)))
    assert tags(builder) == [1, 3]


def test_context_defaults_to_empty_dict():
    builder = TransactionBuilder.make()
    assert builder.get_context() == {}
    builder.set_context({"new_account": "x"})
    assert builder.get_context() == {"new_account": "x"}


def _transfer_builder(payer, lamports=5):
    ix = transfer(TransferParams(from_pubkey=payer.pubkey(), to_pubkey=Pubkey.new_unique(), lamports=lamports))
    return TransactionBuilder.make().set_fee_payer(payer).add(InstructionRecord(ix, [payer], key="transferSol"))


def test_to_transaction_uses_blockhash_and_fee_payer():
    payer = Keypair()
    blockhash = Hash.new_unique()
    tx = _transfer_builder(payer).to_transaction(BlockhashWithExpiryBlockHeight(blockhash, 100))

    assert tx.message.recent_blockhash == blockhash
    assert tx.message.account_keys[0] == payer.pubkey()
    assert tx.message.header.num_required_signatures == 1


def test_to_transaction_requires_a_blockhash():
    with pytest.raises(ValueError):
        _transfer_builder(Keypair()).to_transaction()


def test_to_transaction_attaches_precomputed_signatures():
    payer = Keypair()
    blockhash = Hash.new_unique()
    builder = _transfer_builder(payer)
    message = builder.to_transaction(BlockhashWithExpiryBlockHeight(blockhash, 100)).message
    signature = payer.sign_message(bytes(message))

    builder.set_transaction_options(
        TransactionOptions(blockhash=blockhash, last_valid_block_height=100, signatures=[(payer.pubkey(), signature)])
    )
    tx = builder.to_transaction()
    assert tx.signatures[0] == signature


def test_to_transaction_rejects_signatures_of_non_signers():
    payer, stranger = Keypair(), Keypair()
    blockhash = Hash.new_unique()
    builder = _transfer_builder(payer).set_transaction_options(
        TransactionOptions(
            blockhash=blockhash,
            last_valid_block_height=100,
            signatures=[(stranger.pubkey(), stranger.sign_message(b"x"))],
        )
    )
    with pytest.raises(ValueError):
        builder.to_transaction()


class RecordingSender:
    def __init__(self):
        self.sent = []

    async def send_and_confirm_transaction(self, transaction, confirm_options=None, signers=()):
        self.sent.append((transaction, confirm_options))
        return {"signature": "sig"}


async def test_send_and_confirm_merges_context_into_result():
    sender = RecordingSender()
    new_account = Keypair()
    builder = _transfer_builder(Keypair()).set_context({"new_account": new_account})

    result = await builder.send_and_confirm(sender)

    assert result == {"response": {"signature": "sig"}, "new_account": new_account}
    assert sender.sent == [(builder, None)]
