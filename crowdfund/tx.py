"""
Transaction builder for campaign instructions.

Builds the unsigned instruction for a PendingTransaction: pure,
deterministic, no secrets, no network calls. The recent blockhash and the
signature are submit-time concerns handled by the ledger gateway and the
wallet.

Account-role templates come from the interface definition. Role names are
bound to concrete addresses as follows:

    campaign       -> the derived campaign address (writable)
    user           -> the acting wallet
    systemProgram  -> the system program (read-only)

With the bundled interface:

    create:   campaign (w), user (w, signer), systemProgram
    donate:   campaign (w), user (w, signer), systemProgram
    withdraw: campaign (w), user (read-only, not a signer)

The wallet always pays the fee, so it signs every transaction even when
its instruction role is read-only.
"""

from __future__ import annotations

from dataclasses import dataclass

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from crowdfund.codec import CampaignCodec
from crowdfund.errors import InterfaceError, TransactionBuildError
from crowdfund.models import OperationKind, PendingTransaction

SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")

ROLE_CAMPAIGN = "campaign"
ROLE_USER = "user"
ROLE_SYSTEM_PROGRAM = "systemProgram"


@dataclass(frozen=True)
class TransactionPlan:
    """Everything needed to compile, sign and submit one instruction.

    Attributes:
        pending: The intent this plan was built from.
        instruction: Program instruction with its ordered account metas.
        fee_payer: Account that pays fees and must sign the transaction.
        campaign: Campaign account the instruction targets.
    """

    pending: PendingTransaction
    instruction: Instruction
    fee_payer: Pubkey
    campaign: Pubkey

    @property
    def kind(self) -> OperationKind:
        return self.pending.kind


class TransactionBuilder:
    """Assembles instructions from intents using the codec's interface."""

    def __init__(self, codec: CampaignCodec) -> None:
        self._codec = codec

    @property
    def program_id(self) -> Pubkey:
        return self._codec.interface.program_id

    def build(self, pending: PendingTransaction) -> TransactionPlan:
        """Build the unsigned instruction for ``pending``.

        Raises:
            TransactionBuildError: If the campaign address or signer is absent.
            EncodingError: If the arguments do not encode.
            InterfaceError: If the interface uses an unknown account role.
        """
        if pending.campaign is None:
            raise TransactionBuildError(
                f"{pending.kind.value}: campaign address is required",
                details={"instruction": pending.kind.value},
            )
        if pending.signer is None:
            raise TransactionBuildError(
                f"{pending.kind.value}: user identity is required",
                details={"instruction": pending.kind.value},
            )

        data = self._encode(pending)
        bindings = {
            ROLE_CAMPAIGN: pending.campaign,
            ROLE_USER: pending.signer,
            ROLE_SYSTEM_PROGRAM: SYSTEM_PROGRAM_ID,
        }

        metas: list[AccountMeta] = []
        for role in self._codec.interface.instruction(pending.kind.value).accounts:
            pubkey = bindings.get(role.name)
            if pubkey is None:
                raise InterfaceError(
                    f"{pending.kind.value}: unknown account role {role.name!r}",
                    details={"instruction": pending.kind.value, "role": role.name},
                )
            metas.append(AccountMeta(pubkey, role.is_signer, role.is_mut))

        return TransactionPlan(
            pending=pending,
            instruction=Instruction(self.program_id, data, metas),
            fee_payer=pending.signer,
            campaign=pending.campaign,
        )

    def _encode(self, pending: PendingTransaction) -> bytes:
        if pending.kind is OperationKind.CREATE:
            return self._codec.encode_create(pending.name, pending.description)  # type: ignore[arg-type]
        if pending.kind is OperationKind.DONATE:
            return self._codec.encode_donate(pending.amount)  # type: ignore[arg-type]
        return self._codec.encode_withdraw(pending.amount)  # type: ignore[arg-type]

    # -----------------------------------------------------------------
    # Convenience
    # -----------------------------------------------------------------

    def plan_create(
        self, campaign: Pubkey | None, user: Pubkey | None, name: str, description: str
    ) -> TransactionPlan:
        return self.build(
            PendingTransaction(
                kind=OperationKind.CREATE,
                campaign=campaign,
                signer=user,
                name=name,
                description=description,
            )
        )

    def plan_donate(
        self, campaign: Pubkey | None, user: Pubkey | None, amount: int
    ) -> TransactionPlan:
        return self.build(
            PendingTransaction(
                kind=OperationKind.DONATE, campaign=campaign, signer=user, amount=amount
            )
        )

    def plan_withdraw(
        self, campaign: Pubkey | None, user: Pubkey | None, amount: int
    ) -> TransactionPlan:
        return self.build(
            PendingTransaction(
                kind=OperationKind.WITHDRAW, campaign=campaign, signer=user, amount=amount
            )
        )
