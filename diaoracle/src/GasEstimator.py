"""GasEstimator: Gas price with a safety margin over the node's suggestion."""

from __future__ import annotations

import logging
from decimal import Decimal

from .Ledger import Ledger, LedgerError

logger = logging.getLogger(__name__)

# 110% of the suggested price, so the transaction survives small price moves
# between estimation and inclusion.
GAS_PRICE_MARGIN = Decimal("1.1")


class GasEstimationError(Exception):
    """Raised when no usable gas price can be derived."""

    pass


class GasEstimator:
    """Derives the submission gas price from the node's suggestion.

    :ivar ledger: Node capability queried for the suggested price.
    :ivar margin: Multiplier applied to the suggestion.
    """

    def __init__(self, ledger: Ledger, margin: Decimal = GAS_PRICE_MARGIN) -> None:
        self.ledger = ledger
        self.margin = margin

    def estimate(self) -> int:
        """Return ``floor(suggested * margin)`` in wei.

        :raises GasEstimationError: If no positive suggestion is available.
        """
        try:
            suggested = self.ledger.suggest_gas_price()
        except LedgerError as e:
            raise GasEstimationError(str(e)) from e

        if suggested <= 0:
            raise GasEstimationError(f"Node suggested a non-positive gas price: {suggested}")

        numerator, denominator = self.margin.as_integer_ratio()
        gas_price = suggested * numerator // denominator
        logger.debug(f"Gas price: suggested {suggested}, using {gas_price}")
        return gas_price
