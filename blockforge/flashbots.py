"""Bundles following the ``eth_sendBundle`` specification."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from Crypto.Hash import keccak

from .bundle import Bundle, BundleConversionError, Eligibility
from .types import BlockContext, SealedHeader, Transaction


def _to_hex(data: bytes) -> str:
    return "0x" + bytes(data).hex()


def _from_hex(value: Any) -> bytes:
    if not isinstance(value, str):
        raise BundleConversionError(f"expected a hex string, got {value!r}")
    digits = value[2:] if value[:2] in ("0x", "0X") else value
    try:
        return bytes.fromhex(digits)
    except ValueError as exc:
        raise BundleConversionError(f"invalid hex string: {value!r}") from exc


def _quantity(value: Any) -> int:
    if isinstance(value, bool):
        raise BundleConversionError(f"invalid quantity: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value[:2] in ("0x", "0X") else int(value)
        except ValueError as exc:
            raise BundleConversionError(f"invalid quantity: {value!r}") from exc
    raise BundleConversionError(f"invalid quantity: {value!r}")


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else _quantity(value)


def _decode_default(raw: bytes) -> Transaction:
    if not raw:
        raise BundleConversionError("EIP-2718 decoding error: empty transaction bytes")
    return Transaction(encoded=raw)


@dataclass
class EthSendBundle:
    """The raw ``eth_sendBundle`` request body."""

    txs: List[bytes] = field(default_factory=list)
    block_number: int = 0
    min_timestamp: Optional[int] = None
    max_timestamp: Optional[int] = None
    reverting_tx_hashes: List[bytes] = field(default_factory=list)
    replacement_uuid: Optional[str] = None
    dropping_tx_hashes: List[bytes] = field(default_factory=list)
    refund_percent: Optional[int] = None
    refund_recipient: Optional[bytes] = None
    refund_tx_hashes: List[bytes] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        """Serialize to the JSON-RPC object form."""
        out: Dict[str, Any] = {
            "txs": [_to_hex(tx) for tx in self.txs],
            "blockNumber": hex(self.block_number),
        }
        if self.min_timestamp is not None:
            out["minTimestamp"] = self.min_timestamp
        if self.max_timestamp is not None:
            out["maxTimestamp"] = self.max_timestamp
        if self.reverting_tx_hashes:
            out["revertingTxHashes"] = [_to_hex(h) for h in self.reverting_tx_hashes]
        if self.replacement_uuid is not None:
            out["replacementUuid"] = self.replacement_uuid
        if self.dropping_tx_hashes:
            out["droppingTxHashes"] = [_to_hex(h) for h in self.dropping_tx_hashes]
        if self.refund_percent is not None:
            out["refundPercent"] = self.refund_percent
        if self.refund_recipient is not None:
            out["refundRecipient"] = _to_hex(self.refund_recipient)
        if self.refund_tx_hashes:
            out["refundTxHashes"] = [_to_hex(h) for h in self.refund_tx_hashes]
        return out

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "EthSendBundle":
        """Parse the JSON-RPC object form."""
        if not isinstance(data, dict):
            raise BundleConversionError("bundle must be a JSON object")
        if "txs" not in data:
            raise BundleConversionError("missing field `txs`")
        recipient = data.get("refundRecipient")
        return cls(
            txs=[_from_hex(tx) for tx in data["txs"]],
            block_number=_quantity(data.get("blockNumber", 0)),
            min_timestamp=_optional_int(data.get("minTimestamp")),
            max_timestamp=_optional_int(data.get("maxTimestamp")),
            reverting_tx_hashes=[_from_hex(h) for h in data.get("revertingTxHashes") or []],
            replacement_uuid=data.get("replacementUuid"),
            dropping_tx_hashes=[_from_hex(h) for h in data.get("droppingTxHashes") or []],
            refund_percent=_optional_int(data.get("refundPercent")),
            refund_recipient=None if recipient is None else _from_hex(recipient),
            refund_tx_hashes=[_from_hex(h) for h in data.get("refundTxHashes") or []],
        )


class FlashbotsBundle(Bundle):
    """A bundle backed by an ``eth_sendBundle`` request and its recovered transactions.

    Builder methods return new bundles and leave the original untouched.
    Equality is by bundle hash.
    """

    def __init__(
        self,
        inner: Optional[EthSendBundle] = None,
        recovered: Iterable[Transaction] = (),
    ) -> None:
        self._inner = inner if inner is not None else EthSendBundle()
        self._recovered: List[Transaction] = list(recovered)
        if len(self._recovered) != len(self._inner.txs):
            raise ValueError("recovered transactions do not match the raw transactions")

    @classmethod
    def from_send_bundle(
        cls,
        inner: EthSendBundle,
        decoder: Callable[[bytes], Transaction] = _decode_default,
    ) -> "FlashbotsBundle":
        """Decode and recover every raw transaction of ``inner``."""
        recovered = []
        for raw in inner.txs:
            try:
                recovered.append(decoder(bytes(raw)))
            except BundleConversionError:
                raise
            except Exception as exc:
                raise BundleConversionError(f"EIP-2718 decoding error: {exc}") from exc
        return cls(inner, recovered)

    @property
    def inner(self) -> EthSendBundle:
        return self._inner

    @property
    def block_number(self) -> int:
        return self._inner.block_number

    @property
    def min_timestamp(self) -> Optional[int]:
        return self._inner.min_timestamp

    @property
    def max_timestamp(self) -> Optional[int]:
        return self._inner.max_timestamp

    @property
    def reverting_tx_hashes(self) -> Tuple[bytes, ...]:
        return tuple(self._inner.reverting_tx_hashes)

    @property
    def dropping_tx_hashes(self) -> Tuple[bytes, ...]:
        return tuple(self._inner.dropping_tx_hashes)

    def _clone(self, **changes: Any) -> "FlashbotsBundle":
        inner = replace(
            self._inner,
            txs=list(self._inner.txs),
            reverting_tx_hashes=list(self._inner.reverting_tx_hashes),
            dropping_tx_hashes=list(self._inner.dropping_tx_hashes),
            refund_tx_hashes=list(self._inner.refund_tx_hashes),
            **changes,
        )
        return type(self)(inner, self._recovered)

    def with_transaction(self, tx: Transaction) -> "FlashbotsBundle":
        """Append ``tx`` unless a transaction with the same hash is present."""
        bundle = self._clone()
        if all(t.tx_hash != tx.tx_hash for t in bundle._recovered):
            bundle._inner.txs.append(tx.encoded_2718())
            bundle._recovered.append(tx)
        return bundle

    def with_optional_transaction(self, tx: Transaction) -> "FlashbotsBundle":
        return self.with_transaction(tx).mark_as_optional(tx.tx_hash)

    def mark_as_revertable(self, tx_hash: bytes) -> "FlashbotsBundle":
        bundle = self._clone()
        if tx_hash not in bundle._inner.reverting_tx_hashes:
            bundle._inner.reverting_tx_hashes.append(tx_hash)
        return bundle

    def mark_as_optional(self, tx_hash: bytes) -> "FlashbotsBundle":
        bundle = self._clone()
        if tx_hash not in bundle._inner.dropping_tx_hashes:
            bundle._inner.dropping_tx_hashes.append(tx_hash)
        return bundle

    def with_max_timestamp(self, max_ts: int) -> "FlashbotsBundle":
        return self._clone(max_timestamp=max_ts)

    def with_min_timestamp(self, min_ts: int) -> "FlashbotsBundle":
        return self._clone(min_timestamp=min_ts)

    def with_block_number(self, block_number: int) -> "FlashbotsBundle":
        return self._clone(block_number=block_number)

    def transactions(self) -> Tuple[Transaction, ...]:
        return tuple(self._recovered)

    def without_transaction(self, tx_hash: bytes) -> "FlashbotsBundle":
        bundle = self._clone()
        position = next(
            (i for i, t in enumerate(bundle._recovered) if t.tx_hash == tx_hash), None
        )
        if position is not None:
            del bundle._inner.txs[position]
            del bundle._recovered[position]
        bundle._inner.reverting_tx_hashes = [
            h for h in bundle._inner.reverting_tx_hashes if h != tx_hash
        ]
        bundle._inner.dropping_tx_hashes = [
            h for h in bundle._inner.dropping_tx_hashes if h != tx_hash
        ]
        return bundle

    def is_eligible(self, block: BlockContext, ctx: Any) -> Eligibility:
        return self.eligibility_at(block.timestamp, block.number)

    def is_permanently_ineligible(self, header: SealedHeader) -> bool:
        return (
            self.eligibility_at(header.timestamp, header.number)
            is Eligibility.PERMANENTLY_INELIGIBLE
        )

    def is_allowed_to_fail(self, tx_hash: bytes) -> bool:
        return tx_hash in self._inner.reverting_tx_hashes

    def is_optional(self, tx_hash: bytes) -> bool:
        return tx_hash in self._inner.dropping_tx_hashes

    def hash(self) -> bytes:
        inner = self._inner
        hasher = keccak.new(digest_bits=256)
        for tx in self._recovered:
            hasher.update(tx.tx_hash)
        hasher.update(inner.block_number.to_bytes(8, "big"))
        if inner.min_timestamp is not None:
            hasher.update(inner.min_timestamp.to_bytes(8, "big"))
        if inner.max_timestamp is not None:
            hasher.update(inner.max_timestamp.to_bytes(8, "big"))
        for h in inner.reverting_tx_hashes:
            hasher.update(h)
        if inner.replacement_uuid is not None:
            hasher.update(inner.replacement_uuid.encode("utf-8"))
        for h in inner.dropping_tx_hashes:
            hasher.update(h)
        if inner.refund_percent is not None:
            hasher.update(inner.refund_percent.to_bytes(1, "big"))
        if inner.refund_recipient is not None:
            hasher.update(inner.refund_recipient)
        for h in inner.refund_tx_hashes:
            hasher.update(h)
        return hasher.digest()

    def transactions_encoded(self) -> Iterator[Tuple[bytes, Transaction]]:
        for tx, raw in zip(self._recovered, self._inner.txs):
            yield bytes(raw), tx

    def eligibility_at(self, timestamp: int, number: int) -> Eligibility:
        """Eligibility for a block with the given timestamp and number."""
        inner = self._inner
        if not self._recovered:
            return Eligibility.PERMANENTLY_INELIGIBLE
        if inner.max_timestamp is not None and inner.max_timestamp < timestamp:
            return Eligibility.PERMANENTLY_INELIGIBLE
        if inner.block_number != 0 and inner.block_number < number:
            return Eligibility.PERMANENTLY_INELIGIBLE
        if inner.min_timestamp is not None and inner.min_timestamp > timestamp:
            return Eligibility.TEMPORARILY_INELIGIBLE
        if inner.block_number != 0 and inner.block_number > number:
            return Eligibility.TEMPORARILY_INELIGIBLE
        return Eligibility.ELIGIBLE

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FlashbotsBundle):
            return NotImplemented
        return self.hash() == other.hash()

    def __hash__(self) -> int:
        return int.from_bytes(self.hash()[:8], "big")

    def __repr__(self) -> str:
        return f"FlashbotsBundle(inner={self._inner!r})"