"""
Wallet protocol — the secrets boundary.

The client never sees private keys. It asks the wallet to connect (which
yields a public identity) and to sign a compiled transaction (which yields
the same transaction with the wallet's signature slot filled).

Both calls may suspend for as long as the user takes to approve, and
either may be refused: refusals raise UserDeclinedError.

Concrete implementations:
    - LocalKeypairWallet (development and tests, ed25519 via cryptography)
    - browser/hardware wallets (external, not part of this package)
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from crowdfund.errors import TransactionBuildError, UserDeclinedError


@runtime_checkable
class Wallet(Protocol):
    """Interface for wallet connection and transaction signing."""

    @property
    def public_key(self) -> Pubkey:
        """The wallet identity."""
        ...

    async def connect(self, only_if_trusted: bool = False) -> Pubkey:
        """Request a connection and return the wallet identity.

        Args:
            only_if_trusted: Connect silently only if the user approved
                this client before; never prompt.

        Raises:
            UserDeclinedError: If the user (or trust policy) refuses.
        """
        ...

    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        """Return ``transaction`` with this wallet's signature filled in.

        Raises:
            UserDeclinedError: If the user refuses to sign.
        """
        ...


class LocalKeypairWallet:
    """In-process ed25519 wallet for development and tests.

    Args:
        private_key: Signing key. A fresh one is generated if omitted.
        trusted: Whether a previous session approved this client, i.e.
            whether ``connect(only_if_trusted=True)`` succeeds.
        approve: Whether explicit connect and signing requests succeed.
    """

    def __init__(
        self,
        private_key: Ed25519PrivateKey | None = None,
        *,
        trusted: bool = True,
        approve: bool = True,
    ) -> None:
        self._key = private_key or Ed25519PrivateKey.generate()
        self._trusted = trusted
        self._approve = approve
        raw = self._key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        self._public_key = Pubkey.from_bytes(raw)

    @classmethod
    def from_seed(cls, seed: bytes, **kwargs: bool) -> LocalKeypairWallet:
        """Deterministic wallet from a 32-byte seed."""
        return cls(Ed25519PrivateKey.from_private_bytes(seed), **kwargs)

    @property
    def public_key(self) -> Pubkey:
        return self._public_key

    async def connect(self, only_if_trusted: bool = False) -> Pubkey:
        if only_if_trusted and not self._trusted:
            raise UserDeclinedError("wallet has not trusted this client yet")
        if not only_if_trusted and not self._approve:
            raise UserDeclinedError("user rejected the connection request")
        self._trusted = True
        return self._public_key

    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        if not self._approve:
            raise UserDeclinedError("user rejected the signature request")

        message = transaction.message
        signer_count = message.header.num_required_signatures
        signers = list(message.account_keys[:signer_count])
        if self._public_key not in signers:
            raise TransactionBuildError(
                f"{self._public_key} is not a required signer",
                details={"signer": str(self._public_key)},
            )

        signature = Signature.from_bytes(self._key.sign(bytes(message)))
        signatures = list(transaction.signatures)
        signatures[signers.index(self._public_key)] = signature
        return Transaction.populate(message, signatures)
