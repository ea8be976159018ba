"""Asset: Tracked symbol and its on-chain oracle key.

Every asset is priced against USD. The key written into the oracle contract
is the upper-cased symbol followed by ``/USD``.

.. code-block:: python

    >>> asset = Asset("btc")
    >>> str(asset)
    'BTC'
    >>> asset.oracle_key
    'BTC/USD'
    >>> [str(a) for a in Asset.parse_list("btc, eth")]
    ['BTC', 'ETH']
"""

from __future__ import annotations

QUOTE_CURRENCY = "USD"


class Asset:
    """A symbol whose USD price is mirrored on-chain.

    :ivar symbol: Upper-cased symbol (e.g., "BTC").
    """

    __slots__ = ("symbol",)

    def __init__(self, symbol: str) -> None:
        """Initialize an asset.

        :param symbol: Symbol in any case (e.g., "btc", "ETH").
        :raises ValueError: If the symbol is empty or contains a slash.
        """
        symbol = symbol.strip().upper()
        if not symbol:
            raise ValueError("Asset symbol must not be empty")
        if "/" in symbol:
            raise ValueError(
                f"Invalid asset symbol '{symbol}'. Expected a bare symbol (e.g., 'BTC')"
            )
        self.symbol = symbol

    @property
    def oracle_key(self) -> str:
        """Return the key under which the price is stored on-chain."""
        return f"{self.symbol}/{QUOTE_CURRENCY}"

    def __str__(self) -> str:
        return self.symbol

    def __repr__(self) -> str:
        return f"Asset({self.symbol!r})"

    def __hash__(self) -> int:
        return hash(self.symbol)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Asset):
            return NotImplemented
        return self.symbol == other.symbol

    @classmethod
    def parse_list(cls, symbols: str) -> list[Asset]:
        """Parse a comma-separated symbol list, keeping its order.

        :param symbols: String like "BTC,ETH,XRP".
        :returns: Ordered list of assets.
        :raises ValueError: If the list is empty or holds duplicates.
        """
        assets = [cls(s) for s in symbols.split(",") if s.strip()]
        if not assets:
            raise ValueError("At least one asset symbol must be specified")

        seen: set[Asset] = set()
        for asset in assets:
            if asset in seen:
                raise ValueError(f"Duplicate asset symbol '{asset}'")
            seen.add(asset)
        return assets
