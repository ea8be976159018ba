"""Unit tests for Asset."""

import pytest

from diaoracle.src.Asset import Asset


class TestAsset:
    """Test Asset construction and identity."""

    def test_symbol_upper_cased(self) -> None:
        """Symbols are normalized to upper case."""
        assert Asset("btc").symbol == "BTC"
        assert Asset(" eth ").symbol == "ETH"

    def test_oracle_key(self) -> None:
        """Oracle key is the symbol priced in USD."""
        assert Asset("matic").oracle_key == "MATIC/USD"

    def test_equality_and_hash(self) -> None:
        """Assets with the same symbol are interchangeable as dict keys."""
        assert Asset("btc") == Asset("BTC")
        assert {Asset("btc"): 1}[Asset("BTC")] == 1
        assert Asset("btc") != Asset("eth")

    def test_empty_symbol(self) -> None:
        with pytest.raises(ValueError, match="must not be empty"):
            Asset("  ")

    def test_pair_rejected(self) -> None:
        with pytest.raises(ValueError, match="Invalid asset symbol"):
            Asset("btc/usd")


class TestAssetParseList:
    """Test parsing of comma-separated symbol lists."""

    def test_keeps_order(self) -> None:
        assets = Asset.parse_list("BTC,MATIC,ETH,USDT,XRP")
        assert [str(a) for a in assets] == ["BTC", "MATIC", "ETH", "USDT", "XRP"]

    def test_skips_blank_entries(self) -> None:
        assert Asset.parse_list("btc,,eth,") == [Asset("BTC"), Asset("ETH")]

    def test_empty_list(self) -> None:
        with pytest.raises(ValueError, match="At least one asset"):
            Asset.parse_list(" , ")

    def test_duplicates(self) -> None:
        with pytest.raises(ValueError, match="Duplicate asset symbol 'BTC'"):
            Asset.parse_list("btc,eth,BTC")
