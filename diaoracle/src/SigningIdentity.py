"""SigningIdentity: Transaction signer loaded from a secrets file.

The secrets file holds exactly two lines: an encrypted keystore (JSON, as
written by geth or ``eth_account.Account.encrypt``) and its passphrase.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount

logger = logging.getLogger(__name__)


class SecretsError(Exception):
    """Raised when the secrets file is missing, malformed or cannot be decrypted."""

    pass


def read_secrets_file(path: str | Path) -> tuple[str, str]:
    """Read the keystore and passphrase from a secrets file.

    :param path: Path of the secrets file.
    :returns: Tuple of (keystore_json, passphrase).
    :raises SecretsError: If the file is unreadable or does not have exactly
        two lines.
    """
    try:
        with open(path, "r") as file:
            lines = file.read().splitlines()
    except OSError as e:
        raise SecretsError(f"Cannot read secrets file {path}: {e}") from e

    if len(lines) != 2:
        raise SecretsError(
            f"Secrets file should have exactly two lines, found {len(lines)}"
        )
    return lines[0], lines[1]


@dataclass(frozen=True)
class SigningIdentity:
    """An unlocked account bound to one chain.

    :ivar account: Local account holding the private key.
    :ivar chain_id: Chain the signed transactions are valid for.
    """

    account: LocalAccount
    chain_id: int

    @property
    def address(self) -> str:
        """Checksummed address of the signing account."""
        return self.account.address

    def sign_transaction(self, tx: dict[str, Any]) -> bytes:
        """Sign a transaction for this identity's chain.

        :param tx: Transaction parameters. ``chainId`` is filled in if absent.
        :returns: Raw signed transaction bytes.
        """
        tx = dict(tx)
        tx.setdefault("chainId", self.chain_id)
        signed = self.account.sign_transaction(tx)
        return bytes(signed.raw_transaction)

    @classmethod
    def from_keystore(cls, keystore: str, passphrase: str, chain_id: int) -> SigningIdentity:
        """Decrypt a keystore into a signing identity.

        :param keystore: Encrypted keystore JSON.
        :param passphrase: Keystore passphrase.
        :param chain_id: Chain identifier.
        :raises SecretsError: If the keystore cannot be decrypted.
        """
        try:
            private_key = Account.decrypt(keystore, passphrase)
        except (ValueError, TypeError, KeyError) as e:
            raise SecretsError(f"Failed to create authorized transactor: {e}") from e

        account: LocalAccount = Account.from_key(private_key)
        logger.info(f"Loaded signing account {account.address} (chain id {chain_id})")
        return cls(account=account, chain_id=chain_id)

    @classmethod
    def from_secrets_file(cls, path: str | Path, chain_id: int) -> SigningIdentity:
        """Load a signing identity from a two-line secrets file.

        :param path: Path of the secrets file.
        :param chain_id: Chain identifier.
        :raises SecretsError: On any file or decryption problem.
        """
        keystore, passphrase = read_secrets_file(path)
        return cls.from_keystore(keystore, passphrase, chain_id)
