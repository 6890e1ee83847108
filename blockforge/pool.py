"""Order pool holding loose transactions and bundles for payload building."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    Optional,
    Sequence,
    Set,
    TypeVar,
    Union,
)

from .bundle import Bundle, Eligibility
from .types import BlockContext, SealedHeader, Transaction

_R = TypeVar("_R")


class ExecutionError(Exception):
    """An order could not be turned into a valid payload checkpoint."""


class IneligibleBundleError(ExecutionError):
    """A bundle was rejected by its static eligibility check."""

    def __init__(self, eligibility: Eligibility) -> None:
        super().__init__(f"bundle is ineligible: {eligibility.value}")
        self.eligibility = eligibility


class InvalidSignatureError(ExecutionError):
    """A transaction of the order has a signature whose signer cannot be recovered."""


@dataclass(frozen=True)
class Order:
    """Either a single transaction or a bundle of transactions."""

    item: Union[Transaction, Bundle]

    def hash(self) -> bytes:
        """The transaction hash, or the bundle hash."""
        if isinstance(self.item, Transaction):
            return self.item.tx_hash
        return self.item.hash()

    def transactions(self) -> Sequence[Transaction]:
        """All transactions carried by this order, in order."""
        if isinstance(self.item, Transaction):
            return (self.item,)
        return tuple(self.item.transactions())

    def is_bundle(self) -> bool:
        return isinstance(self.item, Bundle)


class HostNode:
    """Connection between the order pool and the node hosting it.

    Once attached, the pool can reject bundles that will never be eligible,
    draw loose transactions from the node's own transaction pool and drop
    orders whose transactions were committed to the chain.

    The system pool is any object with ``best_transactions()`` returning an
    iterable of :class:`Transaction` and ``remove_transactions(hashes)``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._system_pool: Any = None
        self._order_pool: Optional["OrderPool"] = None
        self._tip_header: Optional[SealedHeader] = None
        self._attached = False

    def attach(self, system_pool: Any, order_pool: "OrderPool", tip_header: SealedHeader) -> None:
        """Bind the host node; raises ``RuntimeError`` if already attached."""
        with self._lock:
            if self._attached:
                raise RuntimeError("There is a host already attached to this instance")
            self._system_pool = system_pool
            self._order_pool = order_pool
            self._tip_header = tip_header
            self._attached = True

    def is_attached(self) -> bool:
        with self._lock:
            return self._attached

    def map_tip_header(self, op: Callable[[SealedHeader], _R]) -> Optional[_R]:
        """Return ``op(tip_header)`` when attached, otherwise ``None``."""
        with self._lock:
            if not self._attached:
                return None
            header = self._tip_header
        return op(header)  # type: ignore[arg-type]

    def system_pool(self) -> Any:
        """The node's own transaction pool, or ``None`` when not attached."""
        with self._lock:
            return self._system_pool if self._attached else None

    def remove_transaction(self, tx_hash: bytes) -> None:
        """Remove a transaction from the node's pool, if attached."""
        pool = self.system_pool()
        if pool is not None:
            pool.remove_transactions([tx_hash])

    def on_canonical_update(self, committed_blocks: Iterable[Any], tip_header: SealedHeader) -> None:
        """React to a canonical chain update.

        Every committed block (an object with ``header`` and ``transactions``)
        is reported to the order pool, then the tip header is replaced.
        """
        with self._lock:
            if not self._attached:
                raise RuntimeError("HostNode must be attached")
            order_pool = self._order_pool
        for block in committed_blocks:
            order_pool.report_committed_block(block)  # type: ignore[union-attr]
        with self._lock:
            self._tip_header = tip_header


class OrderPool:
    """Mempool of transactions and bundles.

    All references to one instance share the same state; methods are safe to
    call from several threads.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._orders: Dict[bytes, Order] = {}
        # transaction hash -> hashes of every order containing it
        self._tx_map: Dict[bytes, Set[bytes]] = {}
        self._host = HostNode()

    @property
    def host(self) -> HostNode:
        return self._host

    def __len__(self) -> int:
        with self._lock:
            return len(self._orders)

    def __contains__(self, order_hash: object) -> bool:
        with self._lock:
            return order_hash in self._orders

    def insert(self, order: Order) -> None:
        """Add an order, making it available to ``best_orders_for_block``."""
        order_hash = order.hash()
        with self._lock:
            for tx in order.transactions():
                self._tx_map.setdefault(tx.tx_hash, set()).add(order_hash)
            self._orders[order_hash] = order

    def remove(self, order_hash: bytes) -> None:
        """Remove an order so that it is no longer proposed."""
        with self._lock:
            self._orders.pop(order_hash, None)
        self._host.remove_transaction(order_hash)

    def remove_any_with(self, tx_hash: bytes) -> None:
        """Remove every order that contains the given transaction."""
        self._host.remove_transaction(tx_hash)
        with self._lock:
            order_hashes = self._tx_map.pop(tx_hash, set())
        for order_hash in order_hashes:
            self.remove(order_hash)

    def is_permanently_ineligible(self, bundle: Bundle) -> bool:
        """True if the bundle can never be included; always False unless attached."""
        result = self._host.map_tip_header(bundle.is_permanently_ineligible)
        return bool(result)

    def is_attached_to_host(self) -> bool:
        return self._host.is_attached()

    def attach_host(self, system_pool: Any, tip_header: SealedHeader) -> None:
        """Attach this pool to a host node's transaction pool and chain tip."""
        self._host.attach(system_pool, self, tip_header)

    def best_orders_for_block(self, block: BlockContext, ctx: Any) -> Iterator[Order]:
        """Yield orders for ``block``: pooled orders first, then the host's transactions.

        Bundles that are not eligible for the block are left out.
        """
        with self._lock:
            snapshot = list(self._orders.values())
        system_pool = self._host.system_pool()
        for order in snapshot:
            if not order.is_bundle():
                yield order
            elif order.item.is_eligible(block, ctx) is Eligibility.ELIGIBLE:  # type: ignore[union-attr]
                yield order
        if system_pool is not None:
            for tx in system_pool.best_transactions():
                yield Order(tx)

    def report_execution_error(self, order_hash: bytes, error: ExecutionError) -> None:
        """Drop the order if the error makes it permanently unusable."""
        if isinstance(error, IneligibleBundleError):
            if error.eligibility is Eligibility.PERMANENTLY_INELIGIBLE:
                self.remove(order_hash)
        elif isinstance(error, InvalidSignatureError):
            self.remove(order_hash)

    def report_inclusion_attempt(self, order_hash: bytes, payload_id: str) -> None:
        """Record that an order was tried in a payload; attempted orders stay pooled."""

    def report_committed_block(self, block: Any) -> None:
        """Drop orders made obsolete by a committed block.

        ``block`` has ``transactions`` and ``header``. Orders sharing a
        transaction with the block are removed, then bundles that became
        permanently ineligible.
        """
        for tx in block.transactions:
            self.remove_any_with(tx.tx_hash)
        self.remove_invalidated_orders(block.header)

    def remove_invalidated_orders(self, header: SealedHeader) -> None:
        """Remove bundles that became permanently ineligible once ``header`` is the tip."""
        with self._lock:
            self._orders = {
                order_hash: order
                for order_hash, order in self._orders.items()
                if not (order.is_bundle() and order.item.is_permanently_ineligible(header))  # type: ignore[union-attr]
            }

    def handle_pipeline_event(self, event: Any) -> bool:
        """Process one pipeline event; return False when listening should stop.

        Events with an ``error`` are inclusion failures, events with an
        ``order_hash`` and ``payload_id`` are inclusion attempts or successes.
        Any other event means the pipeline was dropped.
        """
        error = getattr(event, "error", None)
        order_hash = getattr(event, "order_hash", None)
        if order_hash is not None and error is not None:
            if isinstance(error, ExecutionError):
                self.report_execution_error(order_hash, error)
            return True
        if order_hash is not None and hasattr(event, "payload_id"):
            self.report_inclusion_attempt(order_hash, event.payload_id)
            return True
        return False