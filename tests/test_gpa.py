import base64

import pytest
from solders.pubkey import Pubkey

from ledgerkit.query.gma import GmaBuilder
from ledgerkit.query.gpa import GpaBuilder, memcmp_filter

from tests.fakes import FakeLedger, make_account

pytestmark = pytest.mark.anyio

PROGRAM = Pubkey.new_unique()


def b64(raw):
    return base64.b64encode(raw).decode()


def test_where_encodings():
    pk = Pubkey.new_unique()
    assert memcmp_filter(0, "3Mc6vR") == {"memcmp": {"offset": 0, "bytes": "3Mc6vR"}}
    assert memcmp_filter(8, pk) == {"memcmp": {"offset": 8, "bytes": str(pk)}}
    assert memcmp_filter(1, b"\x01\x02") == {"memcmp": {"offset": 1, "bytes": b64(b"\x01\x02"), "encoding": "base64"}}
    assert memcmp_filter(0, 258)["memcmp"]["bytes"] == b64(b"\x02\x01")
    assert memcmp_filter(0, 0)["memcmp"]["bytes"] == b64(b"\x00")
    assert memcmp_filter(0, 1, width=4)["memcmp"]["bytes"] == b64(b"\x01\x00\x00\x00")
    assert memcmp_filter(0, True)["memcmp"]["bytes"] == b64(b"\x01")
    assert memcmp_filter(0, False)["memcmp"]["bytes"] == b64(b"\x00")


def test_where_rejects_bad_values():
    with pytest.raises(ValueError):
        memcmp_filter(0, -1)
    with pytest.raises(ValueError):
        memcmp_filter(-1, b"x")
    with pytest.raises(TypeError):
        memcmp_filter(0, 1.5)


async def test_filters_slice_and_config_are_forwarded_in_order():
    ledger = FakeLedger()
    owner = Pubkey.new_unique()
    await (
        GpaBuilder(ledger, PROGRAM)
        .where_size(165)
        .where(32, owner)
        .add_filter({"memcmp": {"offset": 0, "bytes": "abc"}})
        .slice(0, 32)
        .merge_config(commitment="confirmed")
        .get()
    )

    program_id, config = ledger.scans[0]
    assert program_id == PROGRAM
    assert config["filters"] == [
        {"dataSize": 165},
        {"memcmp": {"offset": 32, "bytes": str(owner)}},
        {"memcmp": {"offset": 0, "bytes": "abc"}},
    ]
    assert config["dataSlice"] == {"offset": 0, "length": 32}
    assert config["commitment"] == "confirmed"


async def test_without_data_requests_an_empty_slice():
    ledger = FakeLedger()
    await GpaBuilder(ledger, PROGRAM).without_data().get()
    assert ledger.scans[0][1]["dataSlice"] == {"offset": 0, "length": 0}


async def test_sort_using_applies_comparator_after_fetch():
    accounts = [make_account(Pubkey.new_unique(), lamports=n) for n in (5, 1, 3)]
    gpa = GpaBuilder(FakeLedger(program_accounts=accounts), PROGRAM)

    unsorted = await gpa.get_and_map(lambda a: a.lamports)
    assert unsorted == [5, 1, 3]

    gpa.sort_using(lambda a, b: a.lamports - b.lamports)
    assert await gpa.get_and_map(lambda a: a.lamports) == [1, 3, 5]


async def test_public_key_helpers_and_follow_up_reader():
    targets = [Pubkey.new_unique() for _ in range(3)]
    accounts = [make_account(Pubkey.new_unique(), data=bytes(t)) for t in targets]
    ledger = FakeLedger(program_accounts=accounts)
    gpa = GpaBuilder(ledger, PROGRAM)

    assert await gpa.get_public_keys() == [a.public_key for a in accounts]
    assert await gpa.get_data_as_public_keys() == targets

    gma = await gpa.get_multiple_accounts(chunk_size=2)
    assert isinstance(gma, GmaBuilder)
    assert gma.get_public_keys() == targets
    await gma.get()
    assert [len(c) for c in ledger.calls] == [2, 1]

    by_address = await gpa.get_multiple_accounts(lambda a: a.public_key)
    assert by_address.get_public_keys() == [a.public_key for a in accounts]


async def test_where_and_size_select_matching_accounts_in_node_order():
    key, other = Pubkey.new_unique(), Pubkey.new_unique()

    def data(prefix, size=165):
        return bytes(prefix) + b"\x00" * (size - 32)

    accounts = [
        make_account(Pubkey.new_unique(), lamports=9, data=data(key)),
        make_account(Pubkey.new_unique(), lamports=8, data=data(other)),
        make_account(Pubkey.new_unique(), lamports=7, data=data(key, size=100)),
        make_account(Pubkey.new_unique(), lamports=2, data=data(key)),
        make_account(Pubkey.new_unique(), lamports=1, data=data(other, size=100)),
    ]
    gpa = GpaBuilder(FakeLedger(program_accounts=accounts), PROGRAM).where(0, key).where_size(165)

    hits = await gpa.get()
    assert [a.public_key for a in hits] == [accounts[0].public_key, accounts[3].public_key]

    gpa.sort_using(lambda a, b: a.lamports - b.lamports)
    assert [a.lamports for a in await gpa.get()] == [2, 9]
