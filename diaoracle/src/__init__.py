"""
DIA Oracle V2 updater - deviation-triggered on-chain price updates

This module keeps a DIAOracleV2 key/value contract in sync with the DIA
quotation API:
- Asset: Tracked symbol and its oracle key
- QuotationSource: Latest price per symbol from the DIA API
- SigningIdentity: Transaction signer loaded from a keystore secrets file
- Ledger: Blockchain node capability (gas price, submission, receipts)
- GasEstimator: Suggested gas price with a 10% margin
- OracleWriter: setValue transaction construction and submission
- ContractProvisioner: Bind to or deploy the oracle contract
- DeviationMonitor: Per-asset deviation decision and price state
- PriceOracle: Fixed-interval scheduler loop
"""

from .Asset import Asset
from .ContractProvisioner import ContractProvisioner, ProvisioningError
from .ContractUtility import DIA_ORACLE_V2_ABI, ContractUtility
from .DeviationMonitor import DeviationMonitor, PriceState, exceeds_deviation
from .GasEstimator import GasEstimationError, GasEstimator
from .Ledger import Ledger, LedgerError, Web3Ledger
from .OracleWriter import (
    NUM_DECIMALS,
    SET_VALUE_GAS_LIMIT,
    OracleWriteError,
    OracleWriter,
    OracleWriteRequest,
    TxHandle,
    scale_price,
)
from .PriceOracle import PriceOracle
from .QuotationSource import (
    DEFAULT_FEED_URL,
    DiaQuotationSource,
    Quotation,
    QuotationDecodeError,
    QuotationError,
    QuotationHTTPError,
    QuotationSource,
)
from .SigningIdentity import SecretsError, SigningIdentity, read_secrets_file

__all__ = [
    "Asset",
    "ContractProvisioner",
    "ContractUtility",
    "DEFAULT_FEED_URL",
    "DIA_ORACLE_V2_ABI",
    "DeviationMonitor",
    "DiaQuotationSource",
    "GasEstimationError",
    "GasEstimator",
    "Ledger",
    "LedgerError",
    "NUM_DECIMALS",
    "OracleWriteError",
    "OracleWriteRequest",
    "OracleWriter",
    "PriceOracle",
    "PriceState",
    "ProvisioningError",
    "Quotation",
    "QuotationDecodeError",
    "QuotationError",
    "QuotationHTTPError",
    "QuotationSource",
    "SET_VALUE_GAS_LIMIT",
    "SecretsError",
    "SigningIdentity",
    "TxHandle",
    "Web3Ledger",
    "exceeds_deviation",
    "read_secrets_file",
]
