"""The ``eth_sendBundle`` endpoint of the order pool."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .bundle import Bundle, BundleConversionError
from .flashbots import EthSendBundle, FlashbotsBundle
from .pool import Order, OrderPool

INVALID_PARAMS_CODE = -32602


@dataclass(frozen=True)
class BundleResult:
    """Response of a successful ``eth_sendBundle`` call."""

    bundle_hash: bytes

    def to_json(self) -> Dict[str, Any]:
        return {"bundleHash": "0x" + self.bundle_hash.hex()}


class InvalidParamsError(Exception):
    """JSON-RPC invalid params error."""

    def __init__(self, message: str = "bundle is ineligible for inclusion", data: Optional[Any] = None) -> None:
        super().__init__(message)
        self.code = INVALID_PARAMS_CODE
        self.message = message
        self.data = data

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        return out


class BundleRpcApi:
    """Serves ``eth_sendBundle`` by inserting accepted bundles into a pool."""

    def __init__(self, pool: OrderPool) -> None:
        self.pool = pool

    def send_bundle(self, bundle: Union[Bundle, Dict[str, Any]]) -> BundleResult:
        """Accept a bundle (or its JSON object form) into the pool.

        Raises :class:`InvalidParamsError` for malformed, empty or
        permanently ineligible bundles.
        """
        if isinstance(bundle, dict):
            try:
                bundle = FlashbotsBundle.from_send_bundle(EthSendBundle.from_json(bundle))
            except BundleConversionError as exc:
                raise InvalidParamsError(str(exc)) from exc
        if not bundle.transactions():
            raise InvalidParamsError()
        if self.pool.is_permanently_ineligible(bundle):
            raise InvalidParamsError()
        bundle_hash = bundle.hash()
        self.pool.insert(Order(bundle))
        return BundleResult(bundle_hash=bundle_hash)