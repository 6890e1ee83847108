"""Core value types shared by the block building components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional

from Crypto.Hash import keccak

if TYPE_CHECKING:
    from .limits import BlobParams


def _keccak256(data: bytes) -> bytes:
    hasher = keccak.new(digest_bits=256)
    hasher.update(data)
    return hasher.digest()


@dataclass(frozen=True)
class Transaction:
    """A signed transaction together with its recovered signer.

    The transaction hash is the keccak-256 digest of its EIP-2718 encoding.
    """

    encoded: bytes
    sender: bytes = bytes(20)
    nonce: int = 0
    gas_limit: int = 21_000
    blob_gas_used: Optional[int] = None
    is_deposit: bool = False
    tx_hash: bytes = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "encoded", bytes(self.encoded))
        object.__setattr__(self, "tx_hash", _keccak256(self.encoded))

    def encoded_2718(self) -> bytes:
        """Return the EIP-2718 encoded bytes of the transaction."""
        return bytes(self.encoded)


@dataclass(frozen=True)
class SealedHeader:
    """A block header together with its hash."""

    number: int
    timestamp: int
    gas_limit: int
    hash: bytes = bytes(32)


@dataclass(frozen=True)
class BlockContext:
    """Everything known about the block being built before execution starts."""

    parent: SealedHeader
    timestamp: int
    payload_id: str = ""
    attributes_gas_limit: Optional[int] = None
    blob_params: Optional["BlobParams"] = None

    @property
    def number(self) -> int:
        """Number of the block being built."""
        return self.parent.number + 1


@dataclass(frozen=True)
class Platform:
    """Describes a chain flavour: its default limits and checkpoint context."""

    name: str
    default_limits: Any
    checkpoint_context: Callable[[], Any] = field(default=lambda: None, compare=False)