"""Iterator over a fixed list of transactions with pool-style invalidation."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, Iterator

from .types import Transaction


@dataclass(frozen=True)
class _ValidPoolTransaction:
    """A transaction as handed out by the iterator, tagged with its sender id."""

    transaction: Transaction
    sender_id: int
    nonce: int
    propagate: bool = False
    origin: str = "private"
    timestamp: float = field(default_factory=time.monotonic, compare=False)


class FixedTransactions:
    """Yields a fixed list of transactions in order.

    Once a transaction is marked invalid, later transactions from the same
    sender whose nonce is not below the invalid one are skipped.
    """

    def __init__(self, txs: Iterable[Transaction]) -> None:
        self._txs: Deque[Transaction] = deque(txs)
        self._senders: Dict[bytes, int] = {}
        self._invalid: Dict[int, int] = {}
        self.receives_updates = True
        self.skip_blobs_requested = False

    def _sender_id(self, sender: bytes) -> int:
        return self._senders.setdefault(sender, len(self._senders))

    def no_updates(self) -> None:
        """Record that no updates are wanted; the list is fixed regardless."""
        self.receives_updates = False

    def set_skip_blobs(self, skip: bool) -> None:
        """Record the request; a fixed list still yields blob transactions."""
        self.skip_blobs_requested = bool(skip)

    def mark_invalid(self, tx: _ValidPoolTransaction) -> None:
        """Mark ``tx`` invalid, skipping its sender's later transactions."""
        current = self._invalid.get(tx.sender_id)
        if current is None or current < tx.nonce:
            self._invalid[tx.sender_id] = tx.nonce

    def __iter__(self) -> Iterator[_ValidPoolTransaction]:
        return self

    def __next__(self) -> _ValidPoolTransaction:
        while self._txs:
            tx = self._txs.popleft()
            sender_id = self._sender_id(tx.sender)
            invalid_nonce = self._invalid.get(sender_id)
            if invalid_nonce is not None and invalid_nonce <= tx.nonce:
                continue
            return _ValidPoolTransaction(transaction=tx, sender_id=sender_id, nonce=tx.nonce)
        raise StopIteration