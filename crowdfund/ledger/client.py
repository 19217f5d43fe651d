"""
Ledger client protocol — the network boundary.

Defines the interface the gateway depends on, not a concrete
implementation. This keeps the gateway testable and keeps HTTP out of
business logic.

Concrete implementations:
    - JsonRpcClient (real, JSON-RPC over an injectable transport)
    - FakeLedger (tests)

Reads return plain values and raise typed errors (NetworkError,
ProtocolError) when the node cannot answer. ``send_transaction`` returns a
SendResult: a rejected transaction is an expected outcome, not an
exception.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from solders.pubkey import Pubkey

from crowdfund.errors import ErrorCode
from crowdfund.models import Commitment


# =========================================================================
# Result types
# =========================================================================


@dataclass(frozen=True)
class BlockhashResult:
    """A recent blockhash to compile a message against.

    Attributes:
        blockhash: Base58 blockhash.
        last_valid_block_height: Height after which the blockhash expires.
    """

    blockhash: str
    last_valid_block_height: int


@dataclass(frozen=True)
class SendResult:
    """Result of broadcasting a signed transaction.

    Attributes:
        accepted: Whether the node accepted the transaction for processing.
            True does NOT mean confirmed.
        signature: Base58 transaction signature when accepted.
        error_code: Failure category when accepted is False.
        detail: Human-readable detail for diagnostics.
        rpc_code: JSON-RPC error code, if the node returned one.
        tx_error: Structured transaction error from preflight simulation.
        logs: Program logs from preflight simulation.
    """

    accepted: bool
    signature: str | None = None
    error_code: ErrorCode | None = None
    detail: str | None = None
    rpc_code: int | None = None
    tx_error: Any = None
    logs: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SignatureStatus:
    """Status of one signature.

    Attributes:
        found: Whether the node knows the signature at all.
        slot: Slot the transaction was processed in.
        confirmation_status: Deepest commitment reached so far.
        err: Structured transaction error. None means it succeeded.
    """

    found: bool
    slot: int | None = None
    confirmation_status: Commitment | None = None
    err: Any = None


@dataclass(frozen=True)
class AccountSnapshot:
    """Raw account state at the time of the query.

    Attributes:
        address: Account address.
        data: Raw account bytes.
        lamports: Account balance.
        owner: Program that owns the account.
    """

    address: Pubkey
    data: bytes
    lamports: int = 0
    owner: Pubkey | None = None


# =========================================================================
# Protocol
# =========================================================================


@runtime_checkable
class LedgerClient(Protocol):
    """Interface for ledger network operations.

    Methods are async because network I/O is inherently asynchronous.
    """

    async def get_latest_blockhash(self, commitment: Commitment) -> BlockhashResult:
        ...

    async def send_transaction(self, signed_tx: bytes) -> SendResult:
        """Broadcast a serialized signed transaction.

        Never raises for transactions the ledger rejects: those are
        captured in the result.
        """
        ...

    async def get_signature_statuses(
        self, signatures: list[str]
    ) -> list[SignatureStatus]:
        ...

    async def get_program_accounts(self, program_id: Pubkey) -> list[AccountSnapshot]:
        ...

    async def get_account_info(self, address: Pubkey) -> AccountSnapshot | None:
        """Return the account, or None if it does not exist."""
        ...
