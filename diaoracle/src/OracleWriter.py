"""OracleWriter: Builds and submits ``setValue`` transactions.

A write is considered done once the node accepts the transaction; mining is
not awaited.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .GasEstimator import GasEstimator
from .Ledger import Ledger, LedgerError

if TYPE_CHECKING:
    from web3.contract import Contract

    from .Asset import Asset
    from .SigningIdentity import SigningIdentity

logger = logging.getLogger(__name__)

# Gas limit calibrated for DIAOracleV2.setValue.
SET_VALUE_GAS_LIMIT = 1_000_725

# Number of decimals of the stored value.
NUM_DECIMALS = 8


class OracleWriteError(Exception):
    """Raised when a write transaction cannot be built or submitted."""

    pass


def scale_price(price: float) -> int:
    """Scale a USD price to the on-chain integer representation.

    .. code-block:: python

        >>> scale_price(64012.52)
        6401252000000
    """
    return int(round(price * 10**NUM_DECIMALS))


@dataclass(frozen=True)
class OracleWriteRequest:
    """A (key, value, timestamp) triple for the oracle contract.

    :ivar key: Oracle key (e.g., "BTC/USD").
    :ivar value: Price scaled by 10^8.
    :ivar timestamp: Unix seconds.
    """

    key: str
    value: int
    timestamp: int

    @classmethod
    def for_asset(cls, asset: Asset, price: float, now: float | None = None) -> OracleWriteRequest:
        """Build the request for an asset's new price.

        :param asset: Asset being written.
        :param price: USD price.
        :param now: Unix time of the write (default: current time).
        """
        timestamp = int(time.time() if now is None else now)
        return cls(key=asset.oracle_key, value=scale_price(price), timestamp=timestamp)


@dataclass(frozen=True)
class TxHandle:
    """Submitted transaction, for logging.

    :ivar tx_hash: 0x-prefixed transaction hash.
    :ivar to: Destination contract address.
    :ivar gas_price: Gas price the transaction was submitted with.
    """

    tx_hash: str
    to: str
    gas_price: int


class OracleWriter:
    """Submits oracle writes through a ledger.

    :ivar contract: Bound oracle contract.
    :ivar ledger: Node capability used for submission.
    :ivar identity: Signing identity the transactions originate from.
    :ivar gas_estimator: Source of the gas price.
    :ivar gas_limit: Gas limit for every write.
    """

    def __init__(
        self,
        contract: Contract,
        ledger: Ledger,
        identity: SigningIdentity,
        gas_estimator: GasEstimator,
        gas_limit: int = SET_VALUE_GAS_LIMIT,
    ) -> None:
        self.contract = contract
        self.ledger = ledger
        self.identity = identity
        self.gas_estimator = gas_estimator
        self.gas_limit = gas_limit

    def write(self, request: OracleWriteRequest) -> TxHandle:
        """Submit a ``setValue`` transaction.

        :param request: Key, scaled value and timestamp to write.
        :returns: Handle of the submitted transaction.
        :raises GasEstimationError: If no gas price can be obtained.
        :raises OracleWriteError: If building or submitting fails.
        """
        gas_price = self.gas_estimator.estimate()

        try:
            tx_params = self.contract.functions.setValue(
                request.key, request.value, request.timestamp
            ).build_transaction(
                {
                    "from": self.identity.address,
                    "gas": self.gas_limit,
                    "gasPrice": gas_price,
                    "chainId": self.identity.chain_id,
                }
            )
        except Exception as e:
            raise OracleWriteError(f"Failed to build setValue for {request.key}: {e}") from e

        try:
            tx_hash = self.ledger.submit_tx(tx_params)
        except LedgerError as e:
            raise OracleWriteError(f"Failed to update oracle for {request.key}: {e}") from e

        handle = TxHandle(
            tx_hash=tx_hash,
            to=str(tx_params.get("to") or self.contract.address),
            gas_price=gas_price,
        )
        logger.info(
            f"{request.key}: value={request.value} timestamp={request.timestamp} "
            f"submitted to {handle.to}, tx {handle.tx_hash} (gas price {gas_price})"
        )
        return handle
