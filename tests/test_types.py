from dataclasses import FrozenInstanceError

import pytest

from blockforge.types import BlockContext, Platform, SealedHeader, Transaction


def test_transaction_hash_of_empty_encoding_is_keccak_of_empty():
    tx = Transaction(encoded=b"")
    assert tx.tx_hash.hex() == (
        "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
    )


def test_encoded_2718_round_trips_bytes():
    raw = b"\x02\xf8\x01\x02\x03"
    tx = Transaction(encoded=raw)
    assert tx.encoded_2718() == raw


def test_hash_depends_on_encoding():
    a = Transaction(encoded=b"\x01")
    b = Transaction(encoded=b"\x02")
    assert len(a.tx_hash) == 32
    assert a.tx_hash != b.tx_hash
    assert Transaction(encoded=b"\x01").tx_hash == a.tx_hash


def test_transaction_is_immutable():
    tx = Transaction(encoded=b"\x01")
    original_hash = tx.tx_hash
    with pytest.raises(FrozenInstanceError):
        tx.encoded = b"\x02"
    assert tx.encoded_2718() == b"\x01"
    assert tx.tx_hash == original_hash


def test_block_context_number_follows_parent():
    parent = SealedHeader(number=41, timestamp=1000, gas_limit=30_000_000)
    block = BlockContext(parent=parent, timestamp=1012)
    assert block.number == parent.number + 1
    assert block.attributes_gas_limit is None
    assert block.blob_params is None


def test_platform_checkpoint_context_factory_gives_fresh_values():
    platform = Platform("custom", default_limits=object(), checkpoint_context=dict)
    first = platform.checkpoint_context()
    second = platform.checkpoint_context()
    assert first == {}
    assert first is not second


def test_platform_default_context_is_none():
    platform = Platform("plain", default_limits=object())
    assert platform.checkpoint_context() is None
    assert platform.name == "plain"