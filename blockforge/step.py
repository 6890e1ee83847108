"""Pipeline step that appends orders from the order pool to a payload."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, List, Optional, Protocol, Sequence, Set

from .limits import Limits
from .pool import ExecutionError, Order, OrderPool
from .types import BlockContext, Transaction

# Intrinsic gas of the cheapest possible transaction.
_MIN_TRANSACTION_GAS = 21_000


class _Checkpoint(Protocol):
    """What the step needs from a payload checkpoint."""

    context: Any

    def history_transactions(self) -> Iterable[Transaction]: ...

    def transactions(self) -> Sequence[Transaction]: ...

    def is_bundle(self) -> bool: ...

    def cumulative_gas_used(self) -> int: ...

    def cumulative_blob_gas_used(self) -> int: ...

    def apply(self, order: Order) -> "_Checkpoint": ...


class _StepContext(Protocol):
    """What the step needs from the pipeline while it runs."""

    block: BlockContext
    limits: Limits

    def deadline_reached(self) -> bool: ...

    def emit(self, event: Any) -> None: ...


@dataclass(frozen=True)
class OrderInclusionAttempt:
    """An order was considered for inclusion in a payload."""

    order_hash: bytes
    payload_id: str


@dataclass(frozen=True)
class OrderInclusionSuccess:
    """An order was included in a payload."""

    order_hash: bytes
    payload_id: str


@dataclass(frozen=True)
class OrderInclusionFailure:
    """An order could not be turned into a valid checkpoint."""

    order_hash: bytes
    error: ExecutionError
    payload_id: str


@dataclass(frozen=True)
class ControlFlow:
    """Outcome of one step run: the resulting payload and whether to break."""

    payload: Any
    is_break: bool = False

    @property
    def is_ok(self) -> bool:
        return not self.is_break


@dataclass
class StepMetrics:
    """Counters and histograms collected across all payload jobs."""

    txs_considered: int = 0
    bundles_considered: int = 0
    considered_bundle_size_histogram: List[int] = field(default_factory=list)
    orders_considered: int = 0
    txs_skipped: int = 0
    bundles_skipped: int = 0
    orders_skipped: int = 0
    orders_inclusion_failed: int = 0
    txs_included: int = 0
    bundled_txs_included: int = 0
    unbundled_txs_included: int = 0
    orders_included: int = 0
    bundles_included: int = 0
    included_bundle_size_histogram: List[int] = field(default_factory=list)
    per_job_orders_considered: List[int] = field(default_factory=list)
    per_job_txs_considered: List[int] = field(default_factory=list)
    per_job_bundles_considered: List[int] = field(default_factory=list)
    per_job_orders_included: List[int] = field(default_factory=list)
    per_job_txs_included: List[int] = field(default_factory=list)
    per_job_bundles_included: List[int] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def considered(self, order: Order) -> None:
        size = len(order.transactions())
        with self._lock:
            self.orders_considered += 1
            self.txs_considered += size
            if order.is_bundle():
                self.bundles_considered += 1
                self.considered_bundle_size_histogram.append(size)

    def skipped(self, order: Order) -> None:
        with self._lock:
            self.orders_skipped += 1
            self.txs_skipped += len(order.transactions())
            if order.is_bundle():
                self.bundles_skipped += 1

    def skipped_checkpoint(self, checkpoint: _Checkpoint) -> None:
        with self._lock:
            self.orders_skipped += 1
            self.txs_skipped += len(checkpoint.transactions())
            if checkpoint.is_bundle():
                self.bundles_skipped += 1

    def failed(self) -> None:
        with self._lock:
            self.orders_inclusion_failed += 1

    def included(self, checkpoint: _Checkpoint) -> None:
        size = len(checkpoint.transactions())
        with self._lock:
            self.orders_included += 1
            self.txs_included += size
            if checkpoint.is_bundle():
                self.bundles_included += 1
                self.bundled_txs_included += size
                self.included_bundle_size_histogram.append(size)
            else:
                self.unbundled_txs_included += size

    def record_per_job(self, counters: "PerJobCounters") -> None:
        with counters._lock:
            values = (
                counters.orders_considered,
                counters.txs_considered,
                counters.bundles_considered,
                counters.orders_included,
                counters.txs_included,
                counters.bundles_included,
            )
        with self._lock:
            self.per_job_orders_considered.append(values[0])
            self.per_job_txs_considered.append(values[1])
            self.per_job_bundles_considered.append(values[2])
            self.per_job_orders_included.append(values[3])
            self.per_job_txs_included.append(values[4])
            self.per_job_bundles_included.append(values[5])


@dataclass
class PerJobCounters:
    """Counters that are reset at the start of every payload job."""

    orders_considered: int = 0
    txs_considered: int = 0
    bundles_considered: int = 0
    orders_included: int = 0
    txs_included: int = 0
    bundles_included: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def reset(self) -> None:
        with self._lock:
            self.orders_considered = 0
            self.txs_considered = 0
            self.bundles_considered = 0
            self.orders_included = 0
            self.txs_included = 0
            self.bundles_included = 0

    def considered(self, order: Order) -> None:
        with self._lock:
            self.orders_considered += 1
            self.txs_considered += len(order.transactions())
            if order.is_bundle():
                self.bundles_considered += 1

    def included(self, checkpoint: _Checkpoint) -> None:
        with self._lock:
            self.orders_included += 1
            self.txs_included += len(checkpoint.transactions())
            if checkpoint.is_bundle():
                self.bundles_included += 1


@dataclass(eq=False)
class AppendOrders:
    """Appends orders from the order pool to the end of the payload.

    Orders are appended until the pool is exhausted, the deadline passes or
    one of the configured limits is reached. Orders already attempted in the
    current payload job are not attempted again, which avoids endless loops
    when later steps remove transactions this step added.
    """

    order_pool: OrderPool
    enable_system_pool: bool = True
    max_new_orders: Optional[int] = None
    max_new_bundles: Optional[int] = None
    max_new_transactions: Optional[int] = None
    break_on_limit: bool = True
    metrics: StepMetrics = field(default_factory=StepMetrics, init=False, repr=False)
    per_job: PerJobCounters = field(default_factory=PerJobCounters, init=False, repr=False)
    _attempted: Set[bytes] = field(default_factory=set, init=False, repr=False)
    _attempted_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @classmethod
    def from_pool(cls, pool: OrderPool) -> "AppendOrders":
        return cls(order_pool=pool)

    def disable_system_pool(self) -> "AppendOrders":
        """Only propose orders held by the order pool itself."""
        return replace(self, enable_system_pool=False)

    def with_max_new_orders(self, max_new_orders: int) -> "AppendOrders":
        return replace(self, max_new_orders=max_new_orders)

    def with_max_new_bundles(self, max_new_bundles: int) -> "AppendOrders":
        return replace(self, max_new_bundles=max_new_bundles)

    def with_max_new_transactions(self, count: int) -> "AppendOrders":
        return replace(self, max_new_transactions=count)

    def with_ok_on_limit(self) -> "AppendOrders":
        """Return an ok flow instead of break when nothing could be added."""
        return replace(self, break_on_limit=False)

    def before_job(self) -> None:
        """Forget attempted orders and reset per-job counters."""
        with self._attempted_lock:
            self._attempted.clear()
        self.per_job.reset()

    def after_job(self) -> None:
        """Record the per-job counters into the histograms."""
        self.metrics.record_per_job(self.per_job)

    def _first_attempt(self, order_hash: bytes) -> bool:
        with self._attempted_lock:
            if order_hash in self._attempted:
                return False
            self._attempted.add(order_hash)
            return True

    def step(self, payload: _Checkpoint, ctx: _StepContext) -> ControlFlow:
        orders = iter(self.order_pool.best_orders_for_block(ctx.block, payload.context))
        run = _Run(self, ctx, payload)
        while not run.should_stop():
            order = next(orders, None)
            if order is None:
                break
            order_hash = order.hash()
            if not self.enable_system_pool and order_hash not in self.order_pool:
                continue
            ctx.emit(OrderInclusionAttempt(order_hash, ctx.block.payload_id))
            if not self._first_attempt(order_hash):
                continue
            run.try_include(order)
        return run.end()


class _Run:
    """State of a single invocation of the step."""

    def __init__(self, step: AppendOrders, ctx: _StepContext, payload: _Checkpoint) -> None:
        self.step = step
        self.ctx = ctx
        self.payload = payload
        self.txs_included = 0
        self.bundles_included = 0
        self.orders_included = 0
        caps = [c for c in (step.max_new_transactions, ctx.limits.max_transactions) if c is not None]
        self.max_transactions: Optional[int] = min(caps) if caps else None
        self.existing_txs = {tx.tx_hash for tx in payload.history_transactions()}

    @property
    def limits(self) -> Limits:
        return self.ctx.limits

    def should_stop(self) -> bool:
        """True when no further order can be added whatever its content."""
        if self.ctx.deadline_reached():
            return True
        step = self.step
        if step.max_new_orders is not None and self.orders_included >= step.max_new_orders:
            return True
        if self.max_transactions is not None and self.txs_included >= self.max_transactions:
            return True
        if step.max_new_bundles is not None and self.bundles_included >= step.max_new_bundles:
            return True
        remaining_gas = max(0, self.limits.gas_limit - self.payload.cumulative_gas_used())
        return remaining_gas < _MIN_TRANSACTION_GAS

    def should_skip(self, order: Order) -> bool:
        """True when this order does not fit, though others might."""
        txs = order.transactions()
        if self.max_transactions is not None and len(txs) + self.txs_included > self.max_transactions:
            return True
        max_bundles = self.step.max_new_bundles
        if max_bundles is not None and order.is_bundle() and self.bundles_included >= max_bundles:
            return True
        if any(tx.tx_hash in self.existing_txs for tx in txs):
            return True
        blob_params = self.limits.blob_params
        if blob_params is not None:
            order_blob_gas = sum(tx.blob_gas_used for tx in txs if tx.blob_gas_used is not None)
            if (
                order_blob_gas + self.payload.cumulative_blob_gas_used()
                > blob_params.max_blob_gas_per_block()
            ):
                return True
        return False

    def try_include(self, order: Order) -> None:
        step = self.step
        step.metrics.considered(order)
        step.per_job.considered(order)

        if self.should_skip(order):
            step.metrics.skipped(order)
            return

        order_hash = order.hash()
        payload_id = self.ctx.block.payload_id
        try:
            candidate = self.payload.apply(order)
        except ExecutionError as err:
            step.metrics.failed()
            self.ctx.emit(OrderInclusionFailure(order_hash, err, payload_id))
            return

        if candidate.cumulative_gas_used() > self.limits.gas_limit:
            step.metrics.skipped_checkpoint(candidate)
            return

        txs = candidate.transactions()
        self.orders_included += 1
        self.txs_included += len(txs)
        self.bundles_included += int(candidate.is_bundle())
        step.metrics.included(candidate)
        step.per_job.included(candidate)
        self.existing_txs.update(tx.tx_hash for tx in txs)
        self.payload = candidate
        self.ctx.emit(OrderInclusionSuccess(order_hash, payload_id))

    def end(self) -> ControlFlow:
        is_break = self.step.break_on_limit and self.txs_included == 0
        return ControlFlow(self.payload, is_break=is_break)