"""Default payload limits for the Ethereum and Optimism platforms."""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Optional

from .limits import Limits, _option_min
from .types import BlockContext

_GAS_LIMIT_BOUND_DIVISOR = 1024
_DEFAULT_DESIRED_GAS_LIMIT = 36_000_000


def _deadline_until(timestamp: int) -> timedelta:
    """Whole seconds from now until the given unix timestamp, never negative."""
    return timedelta(seconds=max(0, timestamp - int(time.time())))


def _next_gas_limit(parent_gas_limit: int, desired_gas_limit: int) -> int:
    delta = max(0, parent_gas_limit // _GAS_LIMIT_BOUND_DIVISOR - 1)
    lower = parent_gas_limit - delta
    upper = parent_gas_limit + delta
    return max(lower, min(desired_gas_limit, upper))


@dataclass(frozen=True)
class OpLimitsExt:
    """Optimism specific limits on data availability usage."""

    max_tx_da: Optional[int] = None
    max_block_da: Optional[int] = None
    max_block_da_footprint: Optional[int] = None

    def clamp(self, other: "OpLimitsExt") -> "OpLimitsExt":
        return OpLimitsExt(
            max_tx_da=_option_min(self.max_tx_da, other.max_tx_da),
            max_block_da=_option_min(self.max_block_da, other.max_block_da),
            max_block_da_footprint=_option_min(
                self.max_block_da_footprint, other.max_block_da_footprint
            ),
        )


@dataclass(frozen=True)
class EthereumDefaultLimits:
    """Default limits for Ethereum payload jobs.

    The gas limit moves from the parent's towards ``desired_gas_limit`` by at
    most the bound allowed per block.
    """

    desired_gas_limit: int = _DEFAULT_DESIRED_GAS_LIMIT

    def with_gas_limit(self, gas_limit: int) -> "EthereumDefaultLimits":
        return replace(self, desired_gas_limit=gas_limit)

    def create(self, block: BlockContext) -> Limits:
        gas_limit = _next_gas_limit(block.parent.gas_limit, self.desired_gas_limit)
        limits = Limits.from_gas_limit(gas_limit).with_deadline(
            _deadline_until(block.timestamp)
        )
        if block.blob_params is not None:
            limits = limits.with_blob_params(block.blob_params)
        return limits


@dataclass(frozen=True)
class OptimismDefaultLimits:
    """Default limits for Optimism payload jobs.

    DA sizes of zero mean no limit.
    """

    max_da_tx_size: Optional[int] = None
    max_da_block_size: Optional[int] = None

    def create(self, block: BlockContext) -> Limits:
        gas_limit = (
            block.attributes_gas_limit
            if block.attributes_gas_limit is not None
            else block.parent.gas_limit
        )
        limits = Limits.from_gas_limit(gas_limit, OpLimitsExt()).with_deadline(
            _deadline_until(block.timestamp)
        )
        if block.blob_params is not None:
            limits = limits.with_blob_params(block.blob_params)
        return limits.with_ext(
            OpLimitsExt(
                max_tx_da=self.max_da_tx_size or None,
                max_block_da=self.max_da_block_size or None,
                max_block_da_footprint=limits.gas_limit,
            )
        )