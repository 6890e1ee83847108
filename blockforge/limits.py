"""Limits that payloads built by a pipeline must stay within."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Any, Optional, TypeVar

_T = TypeVar("_T")

# Gas consumed by a single blob (EIP-4844).
_DATA_GAS_PER_BLOB = 131_072


def _option_min(a: Optional[_T], b: Optional[_T]) -> Optional[_T]:
    """Minimum where an absent value orders below any present value."""
    if a is None or b is None:
        return None
    return min(a, b)  # type: ignore[type-var]


@dataclass(frozen=True)
class BlobParams:
    """Blob related parameters of a block."""

    target_blob_count: int
    max_blob_count: int
    update_fraction: int
    min_blob_fee: int = 1
    max_blobs_per_tx: int = 6
    blob_base_cost: int = 0

    def max_blob_gas_per_block(self) -> int:
        """Maximum blob gas that fits in one block."""
        return self.max_blob_count * _DATA_GAS_PER_BLOB

    def _clamp(self, other: "BlobParams") -> "BlobParams":
        return BlobParams(
            target_blob_count=min(self.target_blob_count, other.target_blob_count),
            max_blob_count=min(self.max_blob_count, other.max_blob_count),
            update_fraction=min(self.update_fraction, other.update_fraction),
            min_blob_fee=min(self.min_blob_fee, other.min_blob_fee),
            max_blobs_per_tx=min(self.max_blobs_per_tx, other.max_blobs_per_tx),
            blob_base_cost=min(self.blob_base_cost, other.blob_base_cost),
        )


@dataclass(frozen=True)
class NoExtraLimits:
    """Platform limit extension that carries nothing."""

    def clamp(self, other: "NoExtraLimits") -> "NoExtraLimits":
        return NoExtraLimits()


@dataclass(frozen=True)
class Limits:
    """Limits a payload must stay within.

    ``gas_limit`` is required; every other limit is optional. ``ext`` carries
    platform specific limits and must provide a ``clamp`` method.
    """

    gas_limit: int
    blob_params: Optional[BlobParams] = None
    max_transactions: Optional[int] = None
    deadline: Optional[timedelta] = None
    ext: Any = field(default_factory=NoExtraLimits)

    @classmethod
    def from_gas_limit(cls, gas_limit: int, ext: Any = None) -> "Limits":
        return cls(gas_limit=gas_limit, ext=NoExtraLimits() if ext is None else ext)

    def with_blob_params(self, blob_params: BlobParams) -> "Limits":
        return replace(self, blob_params=blob_params)

    def with_max_transactions(self, max_transactions: int) -> "Limits":
        return replace(self, max_transactions=max_transactions)

    def with_deadline_at(self, deadline: float) -> "Limits":
        """Set the deadline from a ``time.monotonic()`` instant."""
        remaining = max(0.0, deadline - time.monotonic())
        return replace(self, deadline=timedelta(seconds=remaining))

    def with_deadline(self, deadline: timedelta) -> "Limits":
        return replace(self, deadline=deadline)

    def with_gas_limit(self, gas_limit: int) -> "Limits":
        return replace(self, gas_limit=gas_limit)

    def with_ext(self, ext: Any) -> "Limits":
        return replace(self, ext=ext)

    def clamp(self, other: "Limits") -> "Limits":
        """Combine two limits, keeping the stricter value of each field."""
        if self.blob_params is not None and other.blob_params is not None:
            blob_params = self.blob_params._clamp(other.blob_params)
        else:
            blob_params = self.blob_params if self.blob_params is not None else other.blob_params
        return Limits(
            gas_limit=min(self.gas_limit, other.gas_limit),
            blob_params=blob_params,
            max_transactions=_option_min(self.max_transactions, other.max_transactions),
            deadline=_option_min(self.deadline, other.deadline),
            ext=self.ext.clamp(other.ext),
        )