"""Quotation sources for the reference price feed.

A quotation source returns the latest USD price of a symbol. The production
source is the DIA REST API, which serves its quotation structure as JSON at
``<base>/v1/quotation/<SYMBOL>``:

.. code-block:: json

    {"Symbol": "BTC", "Name": "Bitcoin", "Price": 64012.52,
     "PriceYesterday": 63001.1, "VolumeYesterdayUSD": 1.2e10,
     "Source": "diadata.org", "Time": "2024-05-01T12:00:00.123456789Z"}

Errors are raised rather than swallowed so that the caller decides whether a
failed fetch is fatal.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

import httpx

logger = logging.getLogger(__name__)

DEFAULT_FEED_URL = "https://api.diadata.org"

# Go encodes nanosecond precision, datetime only holds microseconds.
_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


class QuotationError(Exception):
    """Base exception for quotation fetch errors."""

    pass


class QuotationHTTPError(QuotationError):
    """Raised when the feed answers with a non-success status.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class QuotationDecodeError(QuotationError):
    """Raised when the feed payload cannot be decoded into a quotation."""

    pass


@dataclass(frozen=True)
class Quotation:
    """A single price observation from the feed.

    :ivar symbol: Symbol the price belongs to.
    :ivar price: USD price.
    :ivar time: Observation time reported by the feed, if any.
    :ivar name: Asset name (e.g., "Bitcoin").
    :ivar price_yesterday: USD price 24 hours earlier, if reported.
    :ivar volume_yesterday_usd: Trading volume over the previous day in USD.
    :ivar source: Data source named by the feed (e.g., "diadata.org").
    """

    symbol: str
    price: float
    time: datetime | None = None
    name: str = ""
    price_yesterday: float | None = None
    volume_yesterday_usd: float | None = None
    source: str = ""

    @classmethod
    def from_payload(cls, payload: bytes | str, symbol: str | None = None) -> Quotation:
        """Decode a DIA quotation payload.

        :param payload: Raw response body.
        :param symbol: Overrides the symbol in the payload when given.
        :returns: Decoded quotation.
        :raises QuotationDecodeError: If the payload is malformed or the price
            is missing or not positive.
        """
        try:
            data = json.loads(payload)
        except ValueError as e:
            raise QuotationDecodeError(f"Invalid quotation payload: {e}") from e

        if not isinstance(data, dict):
            raise QuotationDecodeError(f"Unexpected quotation payload: {data!r}")

        try:
            price = float(data["Price"])
        except (KeyError, TypeError, ValueError) as e:
            raise QuotationDecodeError(f"No usable price in quotation: {data!r}") from e

        if not price > 0:
            raise QuotationDecodeError(f"Non-positive price in quotation: {price}")

        return cls(
            symbol=(symbol or data.get("Symbol") or "").upper(),
            price=price,
            time=_parse_time(data.get("Time")),
            name=data.get("Name") or "",
            price_yesterday=_optional_float(data.get("PriceYesterday")),
            volume_yesterday_usd=_optional_float(data.get("VolumeYesterdayUSD")),
            source=data.get("Source") or "",
        )


def _optional_float(value: object) -> float | None:
    if value is None:
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _parse_time(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    text = _FRACTION_RE.sub(r".\1", value).replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"Unparseable quotation time: {value}")
        return None


class QuotationSource(ABC):
    """Abstract source of the latest price for a symbol."""

    @abstractmethod
    async def fetch(self, symbol: str) -> Quotation:
        """Fetch the latest quotation.

        :param symbol: Asset symbol (e.g., "BTC").
        :returns: The quotation.
        :raises QuotationError: If no quotation could be obtained.
        """
        pass

    async def aclose(self) -> None:
        """Release any resources held by the source."""
        pass


class DiaQuotationSource(QuotationSource):
    """Quotation source backed by the DIA REST API.

    :ivar base_url: Feed base URL without trailing slash.
    :ivar timeout: Request timeout in seconds.
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        base_url: str = DEFAULT_FEED_URL,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the DIA source.

        :param base_url: Feed base URL (default: https://api.diadata.org).
        :param timeout: Request timeout in seconds (default: 10).
        :param client: Optional pre-built HTTP client, owned by the caller.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    def quotation_url(self, symbol: str) -> str:
        """Build the quotation endpoint URL for a symbol."""
        return f"{self.base_url}/v1/quotation/{symbol.upper()}"

    async def fetch(self, symbol: str) -> Quotation:
        """Fetch the latest quotation from DIA.

        :param symbol: Asset symbol, upper-cased for the request.
        :returns: Decoded quotation carrying the requested symbol.
        :raises QuotationHTTPError: On a non-success status.
        :raises QuotationDecodeError: On an undecodable body.
        :raises QuotationError: On network or timeout errors.
        """
        url = self.quotation_url(symbol)
        client = self._get_client()
        try:
            response = await client.get(url)
        except httpx.TimeoutException as e:
            raise QuotationError(f"Request timeout for {url}: {e}") from e
        except httpx.RequestError as e:
            raise QuotationError(f"Request failed for {url}: {e}") from e

        if response.status_code != 200:
            logger.debug(
                "HTTP GET %s failed with status %s: %s",
                url,
                response.status_code,
                response.text[:200],
            )
            raise QuotationHTTPError(response.status_code, response.text[:200])

        quotation = Quotation.from_payload(response.content, symbol=symbol)
        logger.debug(f"[dia] {quotation.symbol}: ${quotation.price:.8f}")
        return quotation

    async def aclose(self) -> None:
        """Close the HTTP client if this source created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
