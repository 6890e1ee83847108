"""Payload limits, bundles, an order pool, a bundle RPC handler and an order-appending step for block builders."""

__version__ = "0.4.1"

__all__ = [
    "types",
    "limits",
    "platforms",
    "bundle",
    "flashbots",
    "pool",
    "rpc",
    "step",
    "fixed",
]