import pytest
from Crypto.Hash import keccak

from blockforge.bundle import BundleConversionError, Eligibility
from blockforge.flashbots import EthSendBundle, FlashbotsBundle
from blockforge.types import BlockContext, SealedHeader, Transaction


def _tx(n: int) -> Transaction:
    return Transaction(encoded=bytes([2, n]))


def _block(number: int, timestamp: int) -> BlockContext:
    parent = SealedHeader(number=number - 1, timestamp=timestamp - 1, gas_limit=30_000_000)
    return BlockContext(parent=parent, timestamp=timestamp)


def test_empty_bundle_hash_covers_block_number_only():
    expected = keccak.new(digest_bits=256, data=bytes(8)).digest()
    assert FlashbotsBundle().hash() == expected


def test_with_transaction_appends_encoded_bytes():
    a = _tx(1)
    bundle = FlashbotsBundle().with_transaction(a)
    assert bundle.transactions() == (a,)
    assert bundle.inner.txs == [a.encoded_2718()]


def test_with_transaction_ignores_duplicates():
    a = _tx(1)
    bundle = FlashbotsBundle().with_transaction(a).with_transaction(a)
    assert len(bundle.transactions()) == 1


def test_builder_leaves_original_unchanged():
    original = FlashbotsBundle()
    original.with_transaction(_tx(1)).with_block_number(9)
    assert original.transactions() == ()
    assert original.block_number == 0


def test_optional_transaction_is_marked():
    a = _tx(1)
    bundle = FlashbotsBundle().with_optional_transaction(a)
    assert bundle.is_optional(a.tx_hash)
    assert bundle.dropping_tx_hashes == (a.tx_hash,)


def test_mark_as_revertable_deduplicates():
    a = _tx(1)
    bundle = FlashbotsBundle().with_transaction(a).mark_as_revertable(a.tx_hash)
    bundle = bundle.mark_as_revertable(a.tx_hash)
    assert bundle.reverting_tx_hashes == (a.tx_hash,)
    assert bundle.is_allowed_to_fail(a.tx_hash)
    assert not bundle.is_allowed_to_fail(_tx(2).tx_hash)


def test_without_transaction_removes_everywhere():
    a, b = _tx(1), _tx(2)
    bundle = (
        FlashbotsBundle()
        .with_transaction(a)
        .with_optional_transaction(b)
        .mark_as_revertable(a.tx_hash)
    )
    reduced = bundle.without_transaction(a.tx_hash)
    assert reduced.transactions() == (b,)
    assert reduced.inner.txs == [b.encoded_2718()]
    assert reduced.reverting_tx_hashes == ()
    assert reduced.dropping_tx_hashes == (b.tx_hash,)


def test_without_transaction_keeps_order():
    a, b, c = _tx(1), _tx(2), _tx(3)
    bundle = FlashbotsBundle().with_transaction(a).with_transaction(b).with_transaction(c)
    assert bundle.without_transaction(b.tx_hash).transactions() == (a, c)


def test_transactions_encoded_uses_stored_bytes():
    a, b = _tx(1), _tx(2)
    bundle = FlashbotsBundle().with_transaction(a).with_transaction(b)
    assert list(bundle.transactions_encoded()) == [(a.encoded, a), (b.encoded, b)]


def test_empty_bundle_permanently_ineligible():
    assert FlashbotsBundle().eligibility_at(100, 5) is Eligibility.PERMANENTLY_INELIGIBLE


def test_max_timestamp_passed_is_permanent():
    bundle = FlashbotsBundle().with_transaction(_tx(1)).with_max_timestamp(99)
    assert bundle.eligibility_at(100, 5) is Eligibility.PERMANENTLY_INELIGIBLE


def test_block_number_passed_is_permanent():
    bundle = FlashbotsBundle().with_transaction(_tx(1)).with_block_number(4)
    assert bundle.eligibility_at(100, 5) is Eligibility.PERMANENTLY_INELIGIBLE


def test_min_timestamp_in_future_is_temporary():
    bundle = FlashbotsBundle().with_transaction(_tx(1)).with_min_timestamp(101)
    assert bundle.eligibility_at(100, 5) is Eligibility.TEMPORARILY_INELIGIBLE


def test_block_number_in_future_is_temporary():
    bundle = FlashbotsBundle().with_transaction(_tx(1)).with_block_number(6)
    assert bundle.eligibility_at(100, 5) is Eligibility.TEMPORARILY_INELIGIBLE


def test_matching_constraints_are_eligible():
    bundle = (
        FlashbotsBundle()
        .with_transaction(_tx(1))
        .with_block_number(5)
        .with_min_timestamp(100)
        .with_max_timestamp(100)
    )
    assert bundle.eligibility_at(100, 5) is Eligibility.ELIGIBLE


def test_zero_block_number_means_any_block():
    bundle = FlashbotsBundle().with_transaction(_tx(1))
    assert bundle.eligibility_at(100, 1) is Eligibility.ELIGIBLE
    assert bundle.eligibility_at(100, 1000) is Eligibility.ELIGIBLE


def test_is_eligible_uses_block_context():
    bundle = FlashbotsBundle().with_transaction(_tx(1)).with_block_number(7)
    assert bundle.is_eligible(_block(7, 50), None) is Eligibility.ELIGIBLE
    assert bundle.is_eligible(_block(6, 50), None) is Eligibility.TEMPORARILY_INELIGIBLE


def test_is_permanently_ineligible_uses_header():
    bundle = FlashbotsBundle().with_transaction(_tx(1)).with_block_number(7)
    assert bundle.is_permanently_ineligible(SealedHeader(8, 50, 30_000_000))
    assert not bundle.is_permanently_ineligible(SealedHeader(7, 50, 30_000_000))


def test_hash_depends_on_context():
    base = FlashbotsBundle().with_transaction(_tx(1))
    assert base.hash() != base.with_block_number(1).hash()
    assert base.hash() != base.mark_as_revertable(_tx(1).tx_hash).hash()
    assert len(base.hash()) == 32


def test_hash_depends_on_transaction_order():
    a, b = _tx(1), _tx(2)
    ab = FlashbotsBundle().with_transaction(a).with_transaction(b)
    ba = FlashbotsBundle().with_transaction(b).with_transaction(a)
    assert ab.hash() != ba.hash()
    assert ab != ba


def test_equality_by_hash():
    a = _tx(1)
    one = FlashbotsBundle().with_transaction(a).with_block_number(3)
    two = FlashbotsBundle().with_transaction(a).with_block_number(3)
    assert one == two
    assert {one, two} == {one}


def test_json_round_trip():
    a, b = _tx(1), _tx(2)
    inner = EthSendBundle(
        txs=[a.encoded, b.encoded],
        block_number=12,
        min_timestamp=10,
        max_timestamp=20,
        reverting_tx_hashes=[a.tx_hash],
        replacement_uuid="uuid-1",
        dropping_tx_hashes=[b.tx_hash],
        refund_percent=50,
        refund_recipient=bytes(20),
        refund_tx_hashes=[a.tx_hash],
    )
    assert EthSendBundle.from_json(inner.to_json()) == inner


def test_json_block_number_is_hex_quantity():
    data = EthSendBundle(txs=[b"\x02\x01"]).to_json()
    assert data == {"txs": ["0x0201"], "blockNumber": "0x0"}


def test_from_json_missing_txs_raises():
    with pytest.raises(BundleConversionError):
        EthSendBundle.from_json({"blockNumber": "0x1"})


def test_from_json_bad_hex_raises():
    with pytest.raises(BundleConversionError):
        EthSendBundle.from_json({"txs": ["0xzz"]})


def test_from_send_bundle_decodes_transactions():
    a = _tx(1)
    bundle = FlashbotsBundle.from_send_bundle(EthSendBundle(txs=[a.encoded]))
    assert bundle.transactions() == (a,)
    assert bundle.transactions()[0].tx_hash == a.tx_hash


def test_from_send_bundle_empty_bytes_raises():
    with pytest.raises(BundleConversionError):
        FlashbotsBundle.from_send_bundle(EthSendBundle(txs=[b""]))


def test_from_send_bundle_wraps_decoder_errors():
    def failing(raw: bytes) -> Transaction:
        raise RuntimeError("bad signature")

    with pytest.raises(BundleConversionError):
        FlashbotsBundle.from_send_bundle(EthSendBundle(txs=[b"\x02"]), failing)


def test_mismatched_construction_rejected():
    with pytest.raises(ValueError):
        FlashbotsBundle(EthSendBundle(txs=[b"\x02"]), [])


def test_ext_helpers_on_flashbots_bundle():
    a, b = _tx(1), _tx(2)
    bundle = FlashbotsBundle().with_transaction(a).with_optional_transaction(b)
    assert list(bundle.optional_txs()) == [b]
    assert list(bundle.required_txs()) == [a]
    assert list(bundle.critical_txs()) == [a]