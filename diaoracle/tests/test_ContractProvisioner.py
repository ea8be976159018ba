"""Unit tests for ContractProvisioner."""

import json
from unittest.mock import MagicMock, patch

import pytest

from diaoracle.src.ContractProvisioner import ContractProvisioner, ProvisioningError
from diaoracle.src.ContractUtility import DIA_ORACLE_V2_ABI
from diaoracle.src.GasEstimator import GasEstimator
from diaoracle.src.Ledger import LedgerError
from diaoracle.tests.fakes import ORACLE_ADDRESS, TX_HASH, FakeLedger


@pytest.fixture()
def artifact(tmp_path):
    path = tmp_path / "DIAOracleV2.json"
    path.write_text(json.dumps({"abi": DIA_ORACLE_V2_ABI, "bytecode": {"object": "0x6080"}}))
    return path


@pytest.fixture()
def w3() -> MagicMock:
    w3 = MagicMock()
    w3.eth.contract.return_value.constructor.return_value.build_transaction.side_effect = (
        lambda params: {**params, "data": "0x6080", "gas": 500_000}
    )
    return w3


def make_provisioner(w3, ledger, identity, **kwargs) -> ContractProvisioner:
    return ContractProvisioner(
        w3=w3,
        ledger=ledger,
        identity=identity,
        gas_estimator=GasEstimator(ledger),
        **kwargs,
    )


class TestBind:
    """Test binding to an existing deployment."""

    def test_bind_existing(self, w3, identity) -> None:
        ledger = FakeLedger()
        provisioner = make_provisioner(w3, ledger, identity)

        contract = provisioner.resolve(ORACLE_ADDRESS.lower())

        assert contract is w3.eth.contract.return_value
        w3.eth.contract.assert_called_once_with(address=ORACLE_ADDRESS, abi=DIA_ORACLE_V2_ABI)
        assert ledger.submitted == []

    def test_invalid_address(self, w3, identity) -> None:
        provisioner = make_provisioner(w3, FakeLedger(), identity)

        with pytest.raises(ProvisioningError, match="Invalid contract address"):
            provisioner.resolve("0x1234")

    def test_no_code_at_address(self, w3, identity) -> None:
        provisioner = make_provisioner(w3, FakeLedger(code=b""), identity)

        with pytest.raises(ProvisioningError, match="No contract code"):
            provisioner.resolve(ORACLE_ADDRESS)


class TestDeploy:
    """Test deployment and waiting for it to be mined."""

    @patch("diaoracle.src.ContractProvisioner.time.sleep")
    def test_deploy_waits_for_receipt(self, sleep, w3, identity, artifact) -> None:
        ledger = FakeLedger(
            gas_price=10,
            receipts=[None, None, {"status": 1, "contractAddress": ORACLE_ADDRESS}],
        )
        provisioner = make_provisioner(w3, ledger, identity, artifact_path=artifact)

        contract = provisioner.resolve("")

        assert ledger.receipt_queries == 3
        assert sleep.call_count == 2
        assert len(ledger.submitted) == 1
        assert ledger.submitted[0]["from"] == identity.address
        assert ledger.submitted[0]["gasPrice"] == 11
        assert ledger.submitted[0]["chainId"] == 137
        w3.eth.contract.assert_called_with(address=ORACLE_ADDRESS, abi=DIA_ORACLE_V2_ABI)
        assert contract is w3.eth.contract.return_value

    @patch("diaoracle.src.ContractProvisioner.time.sleep")
    def test_backoff_grows(self, sleep, w3, identity, artifact) -> None:
        ledger = FakeLedger(
            receipts=[None, None, None, {"status": 1, "contractAddress": ORACLE_ADDRESS}],
        )
        make_provisioner(w3, ledger, identity, artifact_path=artifact).resolve(None)

        delays = [c.args[0] for c in sleep.call_args_list]
        assert delays == sorted(delays)
        assert delays[0] < delays[-1]

    @patch("diaoracle.src.ContractProvisioner.time.sleep")
    def test_deploy_reverted(self, sleep, w3, identity, artifact) -> None:
        ledger = FakeLedger(receipts=[{"status": 0, "contractAddress": ORACLE_ADDRESS}])
        provisioner = make_provisioner(w3, ledger, identity, artifact_path=artifact)

        with pytest.raises(ProvisioningError, match=f"deployment {TX_HASH} failed"):
            provisioner.resolve("")

    def test_deploy_not_mined_in_time(self, w3, identity, artifact) -> None:
        ledger = FakeLedger(receipts=[])
        provisioner = make_provisioner(
            w3, ledger, identity, artifact_path=artifact, settle_timeout=0
        )

        with pytest.raises(ProvisioningError, match="not mined within"):
            provisioner.resolve("")
        assert ledger.receipt_queries == 1

    def test_missing_artifact(self, w3, identity, tmp_path) -> None:
        ledger = FakeLedger()
        provisioner = make_provisioner(
            w3, ledger, identity, artifact_path=tmp_path / "missing.json"
        )

        with pytest.raises(ProvisioningError, match="artifact"):
            provisioner.resolve("")
        assert ledger.submitted == []

    def test_submission_failure(self, w3, identity, artifact) -> None:
        ledger = FakeLedger()
        ledger.submit_error = LedgerError("insufficient funds")
        provisioner = make_provisioner(w3, ledger, identity, artifact_path=artifact)

        with pytest.raises(ProvisioningError, match="insufficient funds"):
            provisioner.resolve("")


class TestDefaultArtifact:
    """Test deployment from the packaged Foundry build output."""

    @patch("diaoracle.src.ContractProvisioner.time.sleep")
    def test_deploy_with_default_artifact(self, sleep, w3, identity, tmp_path) -> None:
        built = tmp_path / "out" / "DIAOracleV2.sol" / "DIAOracleV2.json"
        built.parent.mkdir(parents=True)
        built.write_text(json.dumps({"abi": DIA_ORACLE_V2_ABI, "bytecode": {"object": "0x6080"}}))
        ledger = FakeLedger(receipts=[{"status": 1, "contractAddress": ORACLE_ADDRESS}])

        with patch("diaoracle.src.ContractUtility.CONTRACTS_DIR", tmp_path):
            provisioner = make_provisioner(w3, ledger, identity)
            provisioner.resolve("")

        assert provisioner.artifact_path == built.resolve()
        w3.eth.contract.assert_any_call(abi=DIA_ORACLE_V2_ABI, bytecode="0x6080")
        assert len(ledger.submitted) == 1
        assert ledger.submitted[0]["data"] == "0x6080"

    def test_unbuilt_default_artifact_explains_build(self, w3, identity, tmp_path) -> None:
        ledger = FakeLedger()

        with patch("diaoracle.src.ContractUtility.CONTRACTS_DIR", tmp_path):
            provisioner = make_provisioner(w3, ledger, identity)
        with patch("diaoracle.src.ContractProvisioner.CONTRACTS_DIR", tmp_path):
            with pytest.raises(ProvisioningError, match="forge build"):
                provisioner.resolve("")
        assert ledger.submitted == []
