# blockforge

Building blocks for block builders on Ethereum-like chains (Ethereum L1 and
Optimism rollups). This is a library. It has no command-line entry point.

## What is in it

- `blockforge.types`: the plain value types. `Transaction` holds the encoded
  bytes, the sender, the nonce, the gas limit, the blob gas and a deposit flag.
  Its `tx_hash` is the keccak-256 of the encoded bytes, and `encoded_2718()`
  returns those bytes. The module also has `SealedHeader`, `BlockContext` (the
  parent header, timestamp, payload id, an optional gas limit from the
  attributes and optional blob parameters; `number` is the parent's number
  plus one) and `Platform`.
- `blockforge.limits`: `Limits` holds a gas limit, optional `BlobParams`, an
  optional maximum transaction count, an optional deadline (`timedelta`) and
  an `ext` object with platform-specific limits. Its builder methods
  (`with_gas_limit`, `with_blob_params`, `with_max_transactions`,
  `with_deadline`, `with_deadline_at`, `with_ext`) return new instances.
  `Limits.clamp` keeps the smaller value of each field. For optional fields,
  an absent value counts as smaller than any present one. The exception is
  blob parameters: if only one side has them, that side's are kept.
  `NoExtraLimits` is the empty extension.
  `BlobParams.max_blob_gas_per_block()` is `max_blob_count * 131072`.
- `blockforge.platforms`: default top-level limits for a payload job.
  - `EthereumDefaultLimits.create(block)` moves the gas limit from the
    parent's value towards `desired_gas_limit`, by no more than
    `parent // 1024 - 1`. It sets the deadline to the whole seconds left until
    the block timestamp and copies the block's blob parameters.
  - `OptimismDefaultLimits.create(block)` uses the gas limit from the
    attributes, or the parent's gas limit if the attributes have none. It
    attaches an `OpLimitsExt`. DA sizes of zero mean no limit, and the DA
    footprint limit equals the gas limit.
- `blockforge.bundle`: the abstract `Bundle` interface, the `Eligibility`
  enum (`ELIGIBLE`, `TEMPORARILY_INELIGIBLE`, `PERMANENTLY_INELIGIBLE`; it is
  truthy only when eligible) and `BundleConversionError`. The helpers
  `failable_txs`, `optional_txs`, `required_txs` and `critical_txs` select
  transactions by their revertable and optional marks.
- `blockforge.flashbots`: `EthSendBundle` is the raw `eth_sendBundle` body,
  with `to_json` and `from_json`. `FlashbotsBundle` is the bundle built on it:
  - Builder methods return new bundles.
  - `hash()` is keccak-256 over the transaction hashes and the bundle's
    context.
  - `eligibility_at(timestamp, number)` applies the spec's rules for empty
    bundles, timestamps and the block number.
  - `from_send_bundle(inner, decoder)` decodes raw transactions.
- `blockforge.pool`: `Order` wraps a `Transaction` or a `Bundle`.
  `OrderPool` is a thread-safe store of orders. It tracks which orders contain
  each transaction.
  - `best_orders_for_block` yields the pool's loose transactions and its
    eligible bundles first, then transactions from the host's system pool.
  - `report_committed_block` drops orders that share a transaction with the
    block, then drops bundles that became permanently ineligible.
  - `report_execution_error` drops orders whose error is
    `InvalidSignatureError` or a permanently ineligible
    `IneligibleBundleError`.
  - `attach_host(system_pool, tip_header)` connects a `HostNode`. The system
    pool is any object with `best_transactions()` and
    `remove_transactions(hashes)`. Call `HostNode.on_canonical_update` to feed
    it chain updates.
  - `handle_pipeline_event` processes inclusion events from the step.
- `blockforge.rpc`: `BundleRpcApi.send_bundle` accepts a `Bundle` or its JSON
  object form, inserts it into the pool and returns a `BundleResult`. It raises
  `InvalidParamsError` (code -32602) for malformed or empty bundles, and for
  bundles that the attached host knows can never be included.
- `blockforge.step`: `AppendOrders` pulls orders from the pool into a payload
  until one of these happens: orders run out, the deadline passes, a limit on
  orders, bundles or transactions is reached, or the remaining gas drops below
  21000.
  - It skips orders that do not fit, duplicate a transaction already in the
    payload, or exceed the blob gas limit.
  - It emits `OrderInclusionAttempt`, `OrderInclusionSuccess` and
    `OrderInclusionFailure` events.
  - It returns a `ControlFlow`. The flow is a break when nothing was added,
    unless `with_ok_on_limit()` was set.
  - It collects totals in `StepMetrics` and per-job counts in
    `PerJobCounters`.
  - `before_job()` clears the attempted set, and `after_job()` records the
    per-job counts.
- `blockforge.fixed`: `FixedTransactions` yields a fixed list of transactions
  in order. After `mark_invalid(tx)`, it skips that sender's transactions whose
  nonce is at or above the invalid nonce.

## Installation

```
pip install blockforge
```

For development:

```
pip install -e ".[test]"
pytest
```

## Examples

Clamping limits:

```python
from blockforge.limits import Limits
from blockforge.platforms import OpLimitsExt

outer = Limits.from_gas_limit(30_000_000, OpLimitsExt()).with_max_transactions(500)
inner = outer.with_gas_limit(10_000_000).with_max_transactions(100)

effective = outer.clamp(inner)
assert effective.gas_limit == 10_000_000
assert effective.max_transactions == 100
```

Building a bundle and sending it to a pool:

```python
from blockforge.flashbots import FlashbotsBundle
from blockforge.pool import OrderPool
from blockforge.rpc import BundleRpcApi
from blockforge.types import Transaction

pool = OrderPool()
api = BundleRpcApi(pool)

tx_a = Transaction(encoded=b"\x02first")
tx_b = Transaction(encoded=b"\x02second")

bundle = (
    FlashbotsBundle()
    .with_transaction(tx_a)
    .with_optional_transaction(tx_b)
    .with_block_number(1)
)
result = api.send_bundle(bundle)
print(result.to_json())   # {"bundleHash": "0x..."}
```

## Using the append step

`AppendOrders.step(payload, ctx)` works with objects that you supply.

The payload checkpoint must provide:
- `context`
- `history_transactions()`
- `transactions()`
- `is_bundle()`
- `cumulative_gas_used()`
- `cumulative_blob_gas_used()`
- `apply(order)`: returns the next checkpoint, or raises `ExecutionError`.

The context must provide:
- `block` (a `BlockContext`)
- `limits` (a `Limits`)
- `deadline_reached()`
- `emit(event)`

## What it does not do

This package does not execute transactions or run an EVM. It does not
assemble or seal blocks, and it does not hold chain state. It provides no
JSON-RPC server or network transport: `BundleRpcApi` is a plain handler for
you to wire into a server of your own. It does not decode signed transactions
or recover signers from them: `FlashbotsBundle.from_send_bundle` wraps the raw
bytes unless you pass a `decoder`. Chain updates reach the pool only through
`HostNode.on_canonical_update` and `OrderPool.report_committed_block`.