"""Shared fixtures for the oracle updater tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
from eth_account import Account

from diaoracle.src.Asset import Asset
from diaoracle.src.SigningIdentity import SigningIdentity
from diaoracle.tests.fakes import (
    ORACLE_ADDRESS,
    FakeLedger,
    FakeQuotationSource,
    FakeWriter,
)


@pytest.fixture()
def identity() -> SigningIdentity:
    return SigningIdentity(account=Account.create(), chain_id=137)


@pytest.fixture()
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def source() -> FakeQuotationSource:
    return FakeQuotationSource()


@pytest.fixture()
def writer() -> FakeWriter:
    return FakeWriter()


@pytest.fixture()
def btc() -> Asset:
    return Asset("BTC")


@pytest.fixture()
def eth() -> Asset:
    return Asset("ETH")


@pytest.fixture()
def oracle_contract() -> MagicMock:
    """Contract mock whose setValue builds a transaction from the given params."""
    contract = MagicMock()
    contract.address = ORACLE_ADDRESS

    def build_transaction(params: dict[str, Any]) -> dict[str, Any]:
        return {**params, "to": ORACLE_ADDRESS, "data": "0xdeadbeef", "value": 0}

    contract.functions.setValue.return_value.build_transaction.side_effect = build_transaction
    return contract
