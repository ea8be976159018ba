#!/usr/bin/env python3
"""DIA Oracle V2 updater.

Fetches reference prices from the DIA API and writes them to a DIAOracleV2
contract whenever they move more than a configured permille threshold.

Run with ``python -m diaoracle.main``. All options can also be supplied via
environment variables; CLI args take precedence.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys

from .src.Asset import Asset
from .src.ContractProvisioner import DEFAULT_SETTLE_TIMEOUT, ContractProvisioner
from .src.ContractUtility import ContractUtility
from .src.DeviationMonitor import DeviationMonitor
from .src.GasEstimator import GasEstimator
from .src.Ledger import Web3Ledger
from .src.OracleWriter import OracleWriter
from .src.PriceOracle import PriceOracle
from .src.QuotationSource import DEFAULT_FEED_URL, DiaQuotationSource
from .src.SigningIdentity import SigningIdentity

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

DEFAULT_SYMBOLS = "BTC,MATIC,ETH,USDT,XRP"
DEFAULT_SECRETS_FILE = "/run/secrets/oracle_keys"
DEFAULT_BLOCKCHAIN_NODE = "https://matic-mainnet-full-rpc.bwarelabs.com"


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser with environment variable fallbacks."""
    parser = argparse.ArgumentParser(
        description="DIA Oracle V2 updater: deviation-triggered on-chain price feeds",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Update an existing oracle on Polygon
  python -m diaoracle.main --deployed-contract 0xYourOracle \\
      --secrets-file ./oracle_keys

  # Deploy a new oracle on a local node and update every 30s on 0.5% moves
  python -m diaoracle.main --blockchain-node http://localhost:8545 \\
      --chain-id 31337 --frequency-seconds 30 --deviation-permille 5

Environment variables (CLI args take precedence):
  DEPLOYED_CONTRACT, SECRETS_FILE, BLOCKCHAIN_NODE, SLEEP_SECONDS,
  FREQUENCY_SECONDS, DEVIATION_PERMILLE, CHAIN_ID, SYMBOLS, FEED_URL,
  FETCH_TIMEOUT, DEPLOY_TIMEOUT, CONTRACT_ARTIFACT
""",
    )

    parser.add_argument(
        "--deployed-contract",
        dest="deployed_contract",
        type=str,
        help="Address of the deployed oracle contract (empty deploys a new one)",
        default=os.environ.get("DEPLOYED_CONTRACT") or "",
    )

    parser.add_argument(
        "--secrets-file",
        dest="secrets_file",
        type=str,
        help=f"File with the encrypted key and its passphrase (default: {DEFAULT_SECRETS_FILE})",
        default=os.environ.get("SECRETS_FILE") or DEFAULT_SECRETS_FILE,
    )

    parser.add_argument(
        "--blockchain-node",
        dest="blockchain_node",
        type=str,
        help="Node address for blockchain connection",
        default=os.environ.get("BLOCKCHAIN_NODE") or DEFAULT_BLOCKCHAIN_NODE,
    )

    parser.add_argument(
        "--sleep-seconds",
        dest="sleep_seconds",
        type=int,
        help="Seconds to sleep between assets within a cycle (default: 10)",
        default=int(os.environ.get("SLEEP_SECONDS") or "10"),
    )

    parser.add_argument(
        "--frequency-seconds",
        dest="frequency_seconds",
        type=int,
        help="Seconds between oracle update cycles (default: 120)",
        default=int(os.environ.get("FREQUENCY_SECONDS") or "120"),
    )

    parser.add_argument(
        "--deviation-permille",
        dest="deviation_permille",
        type=int,
        help="Permille of deviation to trigger an oracle update (default: 10)",
        default=int(os.environ.get("DEVIATION_PERMILLE") or "10"),
    )

    parser.add_argument(
        "--chain-id",
        dest="chain_id",
        type=int,
        help="Chain ID of the network to connect to (default: 137)",
        default=int(os.environ.get("CHAIN_ID") or "137"),
    )

    parser.add_argument(
        "--symbols",
        type=str,
        help=f"Comma-separated asset symbols (default: {DEFAULT_SYMBOLS})",
        default=os.environ.get("SYMBOLS") or DEFAULT_SYMBOLS,
    )

    parser.add_argument(
        "--feed-url",
        dest="feed_url",
        type=str,
        help=f"Base URL of the DIA quotation API (default: {DEFAULT_FEED_URL})",
        default=os.environ.get("FEED_URL") or DEFAULT_FEED_URL,
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for quotation requests in seconds (default: 10.0)",
        default=float(os.environ.get("FETCH_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "--deploy-timeout",
        dest="deploy_timeout",
        type=float,
        help="Max seconds to wait for a new deployment to be mined (default: 180)",
        default=float(os.environ.get("DEPLOY_TIMEOUT") or DEFAULT_SETTLE_TIMEOUT),
    )

    parser.add_argument(
        "--contract-artifact",
        dest="contract_artifact",
        type=str,
        help="Compiled DIAOracleV2 artifact (JSON) used when deploying "
        "(default: the packaged Foundry build output)",
        default=os.environ.get("CONTRACT_ARTIFACT"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse and validate CLI arguments.

    Exits with status 2 on invalid arguments.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.sleep_seconds < 0:
        parser.error("--sleep-seconds must not be negative")

    if args.frequency_seconds < 1:
        parser.error("--frequency-seconds must be at least 1 second")

    if args.deviation_permille < 0:
        parser.error("--deviation-permille must not be negative")

    if args.chain_id < 1:
        parser.error("--chain-id must be positive")

    if args.fetch_timeout <= 0:
        parser.error("--fetch-timeout must be positive")

    if args.deploy_timeout <= 0:
        parser.error("--deploy-timeout must be positive")

    try:
        args.assets = Asset.parse_list(args.symbols)
    except ValueError as e:
        parser.error(str(e))

    return args


def build_price_oracle(args: argparse.Namespace) -> PriceOracle:
    """Wire up all components from parsed arguments.

    The secrets file is read before any network connection is made.

    :param args: Parsed and validated arguments.
    :returns: Ready-to-run scheduler.
    :raises SecretsError: If the secrets file is unusable.
    :raises ConnectionError: If the node cannot be reached.
    :raises ProvisioningError: If the contract can be neither bound nor deployed.
    """
    identity = SigningIdentity.from_secrets_file(args.secrets_file, args.chain_id)

    contract_utility = ContractUtility(args.blockchain_node)
    ledger = Web3Ledger(contract_utility.w3, identity)
    gas_estimator = GasEstimator(ledger)

    provisioner = ContractProvisioner(
        w3=contract_utility.w3,
        ledger=ledger,
        identity=identity,
        gas_estimator=gas_estimator,
        artifact_path=args.contract_artifact,
        settle_timeout=args.deploy_timeout,
    )
    contract = provisioner.resolve(args.deployed_contract)

    writer = OracleWriter(contract, ledger, identity, gas_estimator)
    source = DiaQuotationSource(args.feed_url, timeout=args.fetch_timeout)
    monitor = DeviationMonitor(source, writer, args.deviation_permille)

    return PriceOracle(
        assets=args.assets,
        monitor=monitor,
        frequency_seconds=args.frequency_seconds,
        sleep_seconds=args.sleep_seconds,
    )


async def run_until_stopped(price_oracle: PriceOracle) -> None:
    """Run the loop, stopping gracefully on SIGTERM."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, price_oracle.stop)
    except (NotImplementedError, RuntimeError):
        # Not available on this platform/thread
        pass

    try:
        await price_oracle.run()
    finally:
        await price_oracle.close()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the oracle updater CLI."""
    args = parse_args(argv)

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Log configuration
    logger.info("=" * 60)
    logger.info("DIA Oracle V2 updater")
    logger.info("=" * 60)
    logger.info(f"Blockchain Node:   {args.blockchain_node}")
    logger.info(f"Chain ID:          {args.chain_id}")
    logger.info(f"Oracle Contract:   {args.deployed_contract or '(deploy new)'}")
    logger.info(f"Assets:            {', '.join(str(a) for a in args.assets)}")
    logger.info(f"Feed URL:          {args.feed_url}")
    logger.info(f"Deviation:         {args.deviation_permille} permille")
    logger.info(f"Frequency:         {args.frequency_seconds}s")
    logger.info(f"Sleep:             {args.sleep_seconds}s")
    logger.info("=" * 60)

    try:
        price_oracle = build_price_oracle(args)
        asyncio.run(run_until_stopped(price_oracle))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
