"""Atomic bundles of transactions and their eligibility for inclusion."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Iterator, Optional, Sequence, Tuple, TypeVar

from .types import BlockContext, SealedHeader, Transaction

_T = TypeVar("_T")


class Eligibility(Enum):
    """Whether a bundle may be included in a given block."""

    # Static checks passed; the bundle may be tried in this block.
    ELIGIBLE = "eligible"
    # Not includable now, but may become eligible in a later block.
    TEMPORARILY_INELIGIBLE = "temporarily_ineligible"
    # Never includable in this or any later block.
    PERMANENTLY_INELIGIBLE = "permanently_ineligible"

    def then(self, f: Callable[[], _T]) -> Optional[_T]:
        """Return ``f()`` when eligible, otherwise ``None``."""
        return f() if self is Eligibility.ELIGIBLE else None

    def then_some(self, value: _T) -> Optional[_T]:
        """Return ``value`` when eligible, otherwise ``None``."""
        return value if self is Eligibility.ELIGIBLE else None

    def __bool__(self) -> bool:
        return self is Eligibility.ELIGIBLE


class BundleConversionError(ValueError):
    """Raised when a bundle's raw transactions cannot be decoded or recovered."""


class Bundle(ABC):
    """A set of transactions processed together as one unit of execution."""

    @abstractmethod
    def transactions(self) -> Sequence[Transaction]:
        """The transactions in this bundle, in order."""

    @abstractmethod
    def without_transaction(self, tx_hash: bytes) -> "Bundle":
        """A copy of this bundle without the transaction with ``tx_hash``.

        The order of the remaining transactions is preserved.
        """

    @abstractmethod
    def is_eligible(self, block: BlockContext, ctx: Any) -> Eligibility:
        """Static eligibility check for inclusion in ``block``."""

    def is_permanently_ineligible(self, header: SealedHeader) -> bool:
        """True if the bundle can never be included after ``header``."""
        return False

    @abstractmethod
    def is_allowed_to_fail(self, tx_hash: bytes) -> bool:
        """True if the transaction may have an unsuccessful execution result."""

    @abstractmethod
    def is_optional(self, tx_hash: bytes) -> bool:
        """True if the transaction may be removed without invalidating the bundle."""

    def validate_post_execution(self, state: Any, block: BlockContext) -> None:
        """Check requirements on the state after execution; raise if unmet."""
        return None

    @abstractmethod
    def hash(self) -> bytes:
        """A 32-byte hash unique to this bundle and its context."""

    def transactions_encoded(self) -> Iterator[Tuple[bytes, Transaction]]:
        """Yield ``(encoded_bytes, transaction)`` pairs ready for execution."""
        for tx in self.transactions():
            yield tx.encoded_2718(), tx

    def failable_txs(self) -> Iterator[Transaction]:
        """Transactions that are not marked as allowed to fail."""
        return (tx for tx in self.transactions() if not self.is_allowed_to_fail(tx.tx_hash))

    def optional_txs(self) -> Iterator[Transaction]:
        """Transactions that may be removed without affecting validity."""
        return (tx for tx in self.transactions() if self.is_optional(tx.tx_hash))

    def required_txs(self) -> Iterator[Transaction]:
        """Transactions that must be present, including those allowed to fail."""
        return (tx for tx in self.transactions() if not self.is_optional(tx.tx_hash))

    def critical_txs(self) -> Iterator[Transaction]:
        """Transactions that must be present and may not fail."""
        return (
            tx
            for tx in self.transactions()
            if not self.is_allowed_to_fail(tx.tx_hash) and not self.is_optional(tx.tx_hash)
        )