"""Unit tests for the DIA quotation source."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from diaoracle.src.QuotationSource import (
    DiaQuotationSource,
    Quotation,
    QuotationDecodeError,
    QuotationError,
    QuotationHTTPError,
)

BTC_PAYLOAD = {
    "Symbol": "BTC",
    "Name": "Bitcoin",
    "Price": 64012.52,
    "PriceYesterday": 63001.1,
    "VolumeYesterdayUSD": 12000000000.0,
    "Source": "diadata.org",
    "Time": "2024-05-01T12:00:00.123456789Z",
}


def make_source(handler) -> DiaQuotationSource:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DiaQuotationSource("https://feed.example.com/", client=client)


class TestQuotationFromPayload:
    """Test decoding of DIA quotation payloads."""

    def test_full_payload(self) -> None:
        quotation = Quotation.from_payload(json.dumps(BTC_PAYLOAD))

        assert quotation.symbol == "BTC"
        assert quotation.price == 64012.52
        assert quotation.name == "Bitcoin"
        assert quotation.price_yesterday == 63001.1
        assert quotation.source == "diadata.org"
        assert quotation.time == datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)

    def test_symbol_override(self) -> None:
        """Requested symbol replaces whatever the payload carries."""
        quotation = Quotation.from_payload(json.dumps({"Symbol": "XBT", "Price": 1.5}), "btc")
        assert quotation.symbol == "BTC"

    def test_bad_time_ignored(self) -> None:
        quotation = Quotation.from_payload(json.dumps({"Price": 1.0, "Time": "yesterday"}))
        assert quotation.time is None

    def test_invalid_json(self) -> None:
        with pytest.raises(QuotationDecodeError, match="Invalid quotation payload"):
            Quotation.from_payload(b"not json")

    def test_missing_price(self) -> None:
        with pytest.raises(QuotationDecodeError, match="No usable price"):
            Quotation.from_payload(json.dumps({"Symbol": "BTC"}))

    def test_non_positive_price(self) -> None:
        with pytest.raises(QuotationDecodeError, match="Non-positive price"):
            Quotation.from_payload(json.dumps({"Symbol": "BTC", "Price": 0}))

    def test_non_object_payload(self) -> None:
        with pytest.raises(QuotationDecodeError, match="Unexpected quotation payload"):
            Quotation.from_payload("[1, 2]")


class TestDiaQuotationSource:
    """Test HTTP behavior of DiaQuotationSource."""

    def test_quotation_url(self) -> None:
        source = DiaQuotationSource("https://feed.example.com/")
        assert source.quotation_url("eth") == "https://feed.example.com/v1/quotation/ETH"

    @pytest.mark.asyncio
    async def test_fetch_success(self) -> None:
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(request.url.path)
            return httpx.Response(200, json=BTC_PAYLOAD)

        source = make_source(handler)
        quotation = await source.fetch("btc")

        assert requested == ["/v1/quotation/BTC"]
        assert quotation.symbol == "BTC"
        assert quotation.price == 64012.52

    @pytest.mark.asyncio
    async def test_fetch_not_found(self) -> None:
        source = make_source(lambda request: httpx.Response(404, text="not found"))

        with pytest.raises(QuotationHTTPError) as exc_info:
            await source.fetch("NOPE")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_fetch_non_200_success_status(self) -> None:
        """Only 200 counts as success."""
        source = make_source(lambda request: httpx.Response(204))

        with pytest.raises(QuotationHTTPError):
            await source.fetch("BTC")

    @pytest.mark.asyncio
    async def test_fetch_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        source = make_source(handler)
        with pytest.raises(QuotationError, match="Request failed"):
            await source.fetch("BTC")

    @pytest.mark.asyncio
    async def test_fetch_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        source = make_source(handler)
        with pytest.raises(QuotationError, match="Request timeout"):
            await source.fetch("BTC")

    @pytest.mark.asyncio
    async def test_fetch_decode_error(self) -> None:
        source = make_source(lambda request: httpx.Response(200, content=b"garbage"))

        with pytest.raises(QuotationDecodeError):
            await source.fetch("BTC")

    @pytest.mark.asyncio
    async def test_aclose_leaves_injected_client_open(self) -> None:
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        source = DiaQuotationSource(client=client)

        await source.aclose()
        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_aclose_closes_own_client(self) -> None:
        source = DiaQuotationSource()
        client = source._get_client()

        await source.aclose()
        assert client.is_closed
