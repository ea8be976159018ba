"""ContractProvisioner: Binds to or deploys the oracle contract.

A pre-deployed address is bound directly. Without one, a fresh
``DIAOracleV2`` is deployed and the provisioner blocks until the deployment
is mined, polling for the receipt with bounded exponential backoff.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from web3 import Web3

from .ContractUtility import CONTRACTS_DIR, DIA_ORACLE_V2_ABI, ContractUtility
from .GasEstimator import GasEstimationError, GasEstimator
from .Ledger import Ledger, LedgerError

if TYPE_CHECKING:
    from web3.contract import Contract

    from .SigningIdentity import SigningIdentity

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_TIMEOUT = 180.0

# Receipt polling backoff
POLL_BACKOFF_BASE = 2.0
POLL_BACKOFF_MAX = 15.0


class ProvisioningError(Exception):
    """Raised when the oracle contract can be neither bound nor deployed."""

    pass


class ContractProvisioner:
    """Resolves a usable oracle contract handle at startup.

    :ivar w3: Web3 instance used to build contract objects.
    :ivar ledger: Node capability for code lookup and submission.
    :ivar identity: Signing identity that deploys the contract.
    :ivar gas_estimator: Gas price source for the deployment.
    :ivar artifact_path: Compiled contract artifact used for deployment.
    :ivar settle_timeout: Maximum seconds to wait for the deployment receipt.
    """

    def __init__(
        self,
        w3: Web3,
        ledger: Ledger,
        identity: SigningIdentity,
        gas_estimator: GasEstimator,
        artifact_path: str | Path | None = None,
        settle_timeout: float = DEFAULT_SETTLE_TIMEOUT,
        abi: list[dict] | None = None,
    ) -> None:
        self.w3 = w3
        self.ledger = ledger
        self.identity = identity
        self.gas_estimator = gas_estimator
        self.artifact_path = artifact_path or ContractUtility.default_artifact_path()
        self.settle_timeout = settle_timeout
        self.abi = abi or DIA_ORACLE_V2_ABI

    def resolve(self, existing_address: str | None = None) -> Contract:
        """Return a handle to the oracle contract.

        :param existing_address: Address of a deployed oracle. Empty or None
            deploys a new one.
        :returns: Bound contract.
        :raises ProvisioningError: If binding or deployment fails.
        """
        if existing_address:
            return self.bind(existing_address)
        return self.deploy()

    def bind(self, address: str) -> Contract:
        """Bind to an existing oracle deployment.

        :param address: Hex address of the contract.
        :raises ProvisioningError: If the address is invalid or holds no code.
        """
        try:
            checksum_address = Web3.to_checksum_address(address)
        except ValueError as e:
            raise ProvisioningError(f"Invalid contract address {address!r}: {e}") from e

        try:
            code = self.ledger.get_code(checksum_address)
        except LedgerError as e:
            raise ProvisioningError(f"Failed to bind contract {checksum_address}: {e}") from e
        if not code:
            raise ProvisioningError(f"No contract code at {checksum_address}")

        contract = self.w3.eth.contract(address=checksum_address, abi=self.abi)
        logger.info(f"Bound to oracle contract {checksum_address}")
        return contract

    def deploy(self) -> Contract:
        """Deploy a new oracle and wait until it is mined.

        :raises ProvisioningError: If the artifact is unusable, submission
            fails, the deployment reverts or is not mined in time.
        """
        try:
            abi, bytecode = ContractUtility.get_contract(self.artifact_path)
        except (OSError, ValueError) as e:
            raise ProvisioningError(
                f"Cannot deploy: contract artifact {self.artifact_path} unusable: {e} "
                f"(run `forge build` in {CONTRACTS_DIR} or pass --contract-artifact)"
            ) from e

        try:
            gas_price = self.gas_estimator.estimate()
            factory = self.w3.eth.contract(abi=abi, bytecode=bytecode)
            tx_params = factory.constructor().build_transaction(
                {
                    "from": self.identity.address,
                    "gasPrice": gas_price,
                    "chainId": self.identity.chain_id,
                }
            )
            tx_hash = self.ledger.submit_tx(tx_params)
        except (GasEstimationError, LedgerError) as e:
            raise ProvisioningError(f"Could not deploy contract: {e}") from e
        except Exception as e:
            raise ProvisioningError(f"Could not build deployment transaction: {e}") from e

        logger.info(f"Contract deployment submitted, waiting to be mined: {tx_hash}")
        receipt = self.wait_for_receipt(tx_hash)

        address = receipt.get("contractAddress")
        if receipt.get("status") != 1 or not address:
            raise ProvisioningError(f"Contract deployment {tx_hash} failed: {receipt}")

        logger.info(f"Oracle contract deployed at {address}")
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def wait_for_receipt(self, tx_hash: str) -> dict[str, Any]:
        """Poll until a transaction is mined.

        :param tx_hash: Hash of the transaction to wait for.
        :returns: Transaction receipt.
        :raises ProvisioningError: If not mined within ``settle_timeout``.
        """
        deadline = time.monotonic() + self.settle_timeout
        attempt = 0
        while True:
            try:
                receipt = self.ledger.get_receipt(tx_hash)
            except LedgerError as e:
                logger.warning(f"Receipt lookup for {tx_hash} failed (attempt {attempt + 1}): {e}")
                receipt = None

            if receipt is not None:
                return receipt

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ProvisioningError(
                    f"Transaction {tx_hash} not mined within {self.settle_timeout:.0f}s"
                )

            delay = min(POLL_BACKOFF_BASE * (1.5**attempt), POLL_BACKOFF_MAX, remaining)
            logger.debug(f"{tx_hash} pending, next receipt poll in {delay:.1f}s")
            time.sleep(delay)
            attempt += 1
