"""
Value types shared across the client.

Identity is a ``solders`` Pubkey: 32 bytes, immutable, base58 in text form.
Everything else is a frozen dataclass: records are snapshots, intents live
for one request and are never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum

from solders.pubkey import Pubkey

Identity = Pubkey

# Smallest ledger unit per whole coin.
LAMPORTS_PER_SOL = 1_000_000_000

# Largest value an on-chain u64 counter can hold.
U64_MAX = 2**64 - 1


class OperationKind(StrEnum):
    """Program instructions this client knows how to send."""

    CREATE = "create"
    DONATE = "donate"
    WITHDRAW = "withdraw"


class Commitment(StrEnum):
    """Confirmation depth, ordered from fastest to most final."""

    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"

    @property
    def rank(self) -> int:
        return _COMMITMENT_RANK[self]

    def satisfied_by(self, reached: Commitment) -> bool:
        """True when ``reached`` is at least as deep as this level."""
        return reached.rank >= self.rank


_COMMITMENT_RANK = {
    Commitment.PROCESSED: 0,
    Commitment.CONFIRMED: 1,
    Commitment.FINALIZED: 2,
}


@dataclass(frozen=True)
class CampaignRecord:
    """On-chain state of one campaign.

    Attributes:
        address: Program-derived address the record is stored under.
            Tracked client-side as the lookup key.
        owner: Identity of the creator. Never mutated.
        name: Campaign title, set at creation.
        description: Campaign description, set at creation.
        amount_donated: Running total in lamports.
    """

    address: Pubkey
    owner: Pubkey
    name: str
    description: str
    amount_donated: int

    @property
    def amount_donated_sol(self) -> Decimal:
        return lamports_to_sol(self.amount_donated)


@dataclass(frozen=True)
class PendingTransaction:
    """A client-side intent, alive for the duration of one request.

    Attributes:
        kind: Which program instruction to send.
        campaign: Target campaign address.
        signer: Wallet identity that acts (and pays fees).
        name: Campaign name (CREATE only).
        description: Campaign description (CREATE only).
        amount: Lamports to move (DONATE and WITHDRAW only).
    """

    kind: OperationKind
    campaign: Pubkey | None
    signer: Pubkey | None
    name: str | None = None
    description: str | None = None
    amount: int | None = None


@dataclass(frozen=True)
class Confirmation:
    """Proof that a submitted transaction reached the required commitment.

    Attributes:
        signature: Base58 transaction signature.
        slot: Slot the transaction landed in, when reported.
        commitment: Deepest commitment observed at confirmation time.
    """

    signature: str
    slot: int | None
    commitment: Commitment


@dataclass(frozen=True)
class OperationReceipt:
    """Outcome of a confirmed create, donate or withdraw.

    Attributes:
        kind: Instruction that was sent.
        campaign: Campaign address the instruction targeted.
        confirmation: Signature and commitment reached.
    """

    kind: OperationKind
    campaign: Pubkey
    confirmation: Confirmation

    @property
    def signature(self) -> str:
        return self.confirmation.signature


def sol_to_lamports(amount: Decimal | int | str) -> int:
    """Convert a coin amount to lamports. Rejects fractional lamports."""
    value = Decimal(amount) * LAMPORTS_PER_SOL
    if value != value.to_integral_value():
        raise ValueError(f"amount has more precision than one lamport: {amount!r}")
    return int(value)


def lamports_to_sol(lamports: int) -> Decimal:
    return Decimal(lamports) / LAMPORTS_PER_SOL
