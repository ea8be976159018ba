"""ContractUtility: Web3 initialization and oracle contract ABI loading."""

import json
import logging
from pathlib import Path

from web3 import Web3

logger = logging.getLogger(__name__)

DEFAULT_CONTRACT_NAME = "DIAOracleV2"
CONTRACTS_DIR = Path(__file__).parent / "contracts"

# ABI of the DIAOracleV2 key/value store. Enough to bind and write; deploying
# additionally needs the compiled bytecode from a build artifact.
DIA_ORACLE_V2_ABI: list[dict] = [
    {"inputs": [], "stateMutability": "nonpayable", "type": "constructor"},
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "internalType": "string", "name": "key", "type": "string"},
            {"indexed": False, "internalType": "uint128", "name": "value", "type": "uint128"},
            {"indexed": False, "internalType": "uint128", "name": "timestamp", "type": "uint128"},
        ],
        "name": "OracleUpdate",
        "type": "event",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "internalType": "address", "name": "newUpdater", "type": "address"},
        ],
        "name": "UpdaterAddressChange",
        "type": "event",
    },
    {
        "inputs": [{"internalType": "string", "name": "key", "type": "string"}],
        "name": "getValue",
        "outputs": [
            {"internalType": "uint128", "name": "", "type": "uint128"},
            {"internalType": "uint128", "name": "", "type": "uint128"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "string", "name": "key", "type": "string"},
            {"internalType": "uint128", "name": "value", "type": "uint128"},
            {"internalType": "uint128", "name": "timestamp", "type": "uint128"},
        ],
        "name": "setValue",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "address", "name": "newOracleUpdaterAddress", "type": "address"}],
        "name": "updateOracleUpdaterAddress",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "string", "name": "", "type": "string"}],
        "name": "values",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]


class ContractUtility:
    """Utility for the Web3 connection and oracle contract artifacts.

    :ivar network: Node RPC URL.
    :ivar w3: Configured Web3 instance.
    """

    def __init__(self, node_url: str, request_timeout: float | None = None) -> None:
        """Initialize the contract utility.

        :param node_url: JSON-RPC URL of the blockchain node.
        :param request_timeout: Optional per-request timeout in seconds.
        :raises ConnectionError: If the node cannot be reached.
        """
        self.network = node_url
        request_kwargs = {"timeout": request_timeout} if request_timeout else None
        self.w3 = Web3(Web3.HTTPProvider(self.network, request_kwargs=request_kwargs))

        if not self.w3.is_connected():
            raise ConnectionError(f"Failed to connect to the blockchain node at {self.network}")
        logger.info(f"Connected to {self.network} (chain id {self.w3.eth.chain_id})")

    @staticmethod
    def default_artifact_path(contract_name: str = DEFAULT_CONTRACT_NAME) -> Path:
        """Return the Foundry build output path of a packaged contract.

        Sources live in the package's ``contracts`` directory; running
        ``forge build`` there writes the artifact to this path.

        :param contract_name: Name of the contract (e.g., "DIAOracleV2").
        """
        return (
            CONTRACTS_DIR
            / "out"
            / f"{contract_name}.sol"
            / f"{contract_name}.json"
        ).resolve()

    @staticmethod
    def get_contract(artifact_path: str | Path) -> tuple[list, str]:
        """Load ABI and bytecode from a compiled contract artifact.

        Accepts Foundry (``bytecode.object``) and Hardhat/solc (``bytecode``
        as a string) layouts.

        :param artifact_path: Path of the artifact JSON.
        :returns: Tuple of (abi, bytecode).
        :raises FileNotFoundError: If the artifact does not exist.
        :raises ValueError: If the artifact has no ABI or bytecode.
        """
        with open(artifact_path, "r") as file:
            contract_data = json.load(file)

        abi = contract_data.get("abi")
        bytecode = contract_data.get("bytecode")
        if isinstance(bytecode, dict):
            bytecode = bytecode.get("object")

        if not abi or not bytecode or bytecode == "0x":
            raise ValueError(f"Artifact {artifact_path} has no ABI or bytecode")
        return abi, bytecode
