"""DeviationMonitor: Deviation-triggered oracle updates per asset.

The monitor remembers the last price pushed on-chain for every asset. On
each check it fetches a fresh quotation and writes it when the relative
change exceeds the configured threshold (in permille). The stored price only
moves after the write was accepted by the node, so a failed write is
retried naturally on the next check.

.. code-block:: python

    >>> exceeds_deviation(100.0, 109.0, 100)
    False
    >>> exceeds_deviation(100.0, 111.0, 100)
    True
    >>> exceeds_deviation(0.0, 0.5, 10)  # Never pushed: always write
    True
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .OracleWriter import OracleWriteRequest

if TYPE_CHECKING:
    from .Asset import Asset
    from .OracleWriter import OracleWriter
    from .QuotationSource import QuotationSource

logger = logging.getLogger(__name__)


def exceeds_deviation(old_price: float, new_price: float, deviation_permille: int) -> bool:
    """Check whether a new price leaves the band around the old one.

    :param old_price: Last pushed price (0 if never pushed).
    :param new_price: Freshly observed price.
    :param deviation_permille: Half-width of the band in permille.
    :returns: True if ``new_price`` is strictly outside the band.
    """
    ratio = deviation_permille / 1000
    return new_price > old_price * (1 + ratio) or new_price < old_price * (1 - ratio)


class PriceState:
    """Last price pushed on-chain, per asset.

    Unknown assets read as 0.0, meaning "never pushed".
    """

    def __init__(self) -> None:
        self._prices: dict[Asset, float] = {}

    def get(self, asset: Asset) -> float:
        return self._prices.get(asset, 0.0)

    def set(self, asset: Asset, price: float) -> None:
        self._prices[asset] = price

    def snapshot(self) -> dict[Asset, float]:
        return dict(self._prices)


class DeviationMonitor:
    """Decides and performs oracle updates for individual assets.

    :ivar source: Quotation source for fresh prices.
    :ivar writer: Oracle writer for on-chain updates.
    :ivar deviation_permille: Update threshold in permille.
    :ivar state: Last pushed price per asset.
    """

    def __init__(
        self,
        source: QuotationSource,
        writer: OracleWriter,
        deviation_permille: int,
        state: PriceState | None = None,
    ) -> None:
        if deviation_permille < 0:
            raise ValueError("deviation_permille must not be negative")
        self.source = source
        self.writer = writer
        self.deviation_permille = deviation_permille
        self.state = state or PriceState()

    def get_price(self, asset: Asset) -> float:
        """Return the last price pushed for an asset (0.0 if never)."""
        return self.state.get(asset)

    @property
    def prices(self) -> dict[Asset, float]:
        """Snapshot of the last pushed price per asset."""
        return self.state.snapshot()

    async def check(self, asset: Asset) -> bool:
        """Fetch a quotation and update the oracle if it deviates enough.

        :param asset: Asset to check.
        :returns: True if an update was submitted.
        :raises QuotationError: If the quotation cannot be fetched.
        :raises OracleWriteError: If the update cannot be submitted.
        :raises GasEstimationError: If no gas price is available.
        """
        quotation = await self.source.fetch(asset.symbol)
        old_price = self.state.get(asset)
        new_price = quotation.price
        logger.info(f"{asset}: quoted ${new_price:.8f} (on-chain ${old_price:.8f})")

        if not exceeds_deviation(old_price, new_price, self.deviation_permille):
            return False

        logger.info(
            f"{asset}: deviation above {self.deviation_permille} permille, updating oracle"
        )
        request = OracleWriteRequest.for_asset(asset, new_price)
        self.writer.write(request)

        self.state.set(asset, new_price)
        return True
