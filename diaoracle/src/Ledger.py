"""Ledger: Blockchain node capability used by the oracle updater.

The updater only needs a narrow slice of the node API: a gas price
suggestion, transaction submission, receipt lookup and code lookup. The
abstract :class:`Ledger` describes that slice so tests can substitute an
in-memory fake; :class:`Web3Ledger` implements it on top of ``web3``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from web3 import Web3
from web3.exceptions import TransactionNotFound
from web3.types import TxParams

if TYPE_CHECKING:
    from .SigningIdentity import SigningIdentity

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Raised when the node rejects or fails a request."""

    pass


class Ledger(ABC):
    """Abstract blockchain node capability."""

    @abstractmethod
    def suggest_gas_price(self) -> int:
        """Return the node's suggested gas price in wei."""
        pass

    @abstractmethod
    def submit_tx(self, tx: TxParams) -> str:
        """Sign and broadcast a transaction.

        :param tx: Transaction parameters.
        :returns: Transaction hash as 0x-prefixed hex.
        :raises LedgerError: If signing or broadcasting fails.
        """
        pass

    @abstractmethod
    def get_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        """Return the receipt of a mined transaction, or None if still pending."""
        pass

    @abstractmethod
    def get_code(self, address: str) -> bytes:
        """Return the contract code deployed at an address."""
        pass


class Web3Ledger(Ledger):
    """Ledger backed by a web3 HTTP connection and a local signing key.

    Transactions are signed locally and sent raw; nonces come from the
    node's pending transaction count.

    :ivar w3: Web3 instance for node access.
    :ivar identity: Signing identity used for every submission.
    """

    def __init__(self, w3: Web3, identity: SigningIdentity) -> None:
        """Initialize the ledger.

        :param w3: Connected Web3 instance.
        :param identity: Signing identity for outgoing transactions.
        """
        self.w3 = w3
        self.identity = identity

    def suggest_gas_price(self) -> int:
        try:
            return int(self.w3.eth.gas_price)
        except Exception as e:
            raise LedgerError(f"Failed to get suggested gas price: {e}") from e

    def submit_tx(self, tx: TxParams) -> str:
        """Fill in the nonce, sign and send a transaction.

        :param tx: Transaction parameters.
        :returns: Transaction hash as 0x-prefixed hex.
        :raises LedgerError: If signing or broadcasting fails.
        """
        params: dict[str, Any] = dict(tx)
        try:
            if "nonce" not in params:
                params["nonce"] = self.w3.eth.get_transaction_count(
                    self.identity.address, "pending"
                )
            raw_tx = self.identity.sign_transaction(params)
            tx_hash = self.w3.eth.send_raw_transaction(raw_tx)
        except Exception as e:
            raise LedgerError(f"Failed to submit transaction: {e}") from e

        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.debug(f"Submitted transaction {tx_hash_hex} (nonce {params['nonce']})")
        return tx_hash_hex

    def get_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        try:
            receipt = self.w3.eth.get_transaction_receipt(tx_hash)  # type: ignore[arg-type]
        except TransactionNotFound:
            return None
        except Exception as e:
            raise LedgerError(f"Failed to get receipt for {tx_hash}: {e}") from e
        return dict(receipt)

    def get_code(self, address: str) -> bytes:
        try:
            return bytes(self.w3.eth.get_code(address))  # type: ignore[arg-type]
        except Exception as e:
            raise LedgerError(f"Failed to get code at {address}: {e}") from e
