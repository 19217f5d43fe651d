"""
Instruction and account codec.

Encode and decode are symmetric over the interface definition:

    instruction data = discriminator(8) || borsh(args in IDL order)
    campaign account = discriminator(8) || borsh(admin, name, description,
                       amountDonated) || zero padding up to allocated space

Decoding never raises anything but DecodingError. Program-owned accounts
that are not campaigns (other account types, older layouts, garbage) are
expected and must be skippable by the caller.
"""

from __future__ import annotations

from typing import Any

from construct import ConstructError  # type: ignore[import-untyped]
from solders.pubkey import Pubkey

from crowdfund.errors import DecodingError, EncodingError
from crowdfund.idl import DISCRIMINATOR_SIZE, ProgramInterface, load_interface
from crowdfund.models import U64_MAX, CampaignRecord, OperationKind

CAMPAIGN_ACCOUNT = "Campaign"

# Text bounds in UTF-8 bytes.
MAX_NAME_BYTES = 64
MAX_DESCRIPTION_BYTES = 512

# Space the program allocates for a campaign account on create.
CAMPAIGN_ACCOUNT_SPACE = 9000


class CampaignCodec:
    """Borsh codec bound to one program interface.

    Args:
        interface: Program interface definition. Defaults to the bundled one.
    """

    def __init__(self, interface: ProgramInterface | None = None) -> None:
        self._interface = interface or load_interface()

    @property
    def interface(self) -> ProgramInterface:
        return self._interface

    # -----------------------------------------------------------------
    # Instructions
    # -----------------------------------------------------------------

    def encode_instruction(self, kind: OperationKind, args: dict[str, Any]) -> bytes:
        """Encode ``args`` for instruction ``kind``.

        Raises:
            EncodingError: If an argument is missing or does not fit its type.
        """
        ix = self._interface.instruction(kind.value)
        missing = [f.name for f in ix.args if f.name not in args]
        if missing:
            raise EncodingError(
                f"{kind.value}: missing arguments {missing}",
                details={"instruction": kind.value, "missing": missing},
            )
        try:
            body = ix.layout.build({f.name: args[f.name] for f in ix.args})
        except (ConstructError, UnicodeEncodeError, TypeError, ValueError) as exc:
            raise EncodingError(
                f"{kind.value}: cannot encode arguments: {exc}",
                details={"instruction": kind.value},
            ) from exc
        return ix.discriminator + body

    def encode_create(self, name: str, description: str) -> bytes:
        _check_text("name", name, MAX_NAME_BYTES)
        _check_text("description", description, MAX_DESCRIPTION_BYTES)
        return self.encode_instruction(
            OperationKind.CREATE, {"name": name, "description": description}
        )

    def encode_donate(self, amount: int) -> bytes:
        _check_amount(amount)
        return self.encode_instruction(OperationKind.DONATE, {"amount": amount})

    def encode_withdraw(self, amount: int) -> bytes:
        _check_amount(amount)
        return self.encode_instruction(OperationKind.WITHDRAW, {"amount": amount})

    # -----------------------------------------------------------------
    # Accounts
    # -----------------------------------------------------------------

    def decode_campaign(self, address: Pubkey, data: bytes) -> CampaignRecord:
        """Parse raw account bytes into a CampaignRecord.

        Trailing bytes past the last field are allocation padding and are
        ignored.

        Raises:
            DecodingError: If the bytes are not a campaign account.
        """
        account = self._interface.account(CAMPAIGN_ACCOUNT)
        details = {"address": str(address), "length": len(data)}

        if len(data) < DISCRIMINATOR_SIZE:
            raise DecodingError("account data shorter than discriminator", details=details)
        if data[:DISCRIMINATOR_SIZE] != account.discriminator:
            raise DecodingError("account discriminator is not Campaign", details=details)

        try:
            parsed = account.layout.parse(data[DISCRIMINATOR_SIZE:])
        except (ConstructError, UnicodeDecodeError) as exc:
            raise DecodingError(f"malformed campaign account: {exc}", details=details) from exc

        return CampaignRecord(
            address=address,
            owner=Pubkey.from_bytes(bytes(parsed.admin)),
            name=parsed.name,
            description=parsed.description,
            amount_donated=parsed.amountDonated,
        )

    def encode_campaign_account(
        self,
        owner: Pubkey,
        name: str,
        description: str,
        amount_donated: int = 0,
        *,
        space: int | None = CAMPAIGN_ACCOUNT_SPACE,
    ) -> bytes:
        """Lay out campaign state the way the program stores it.

        The dual of ``decode_campaign``. ``space=None`` omits the padding.
        """
        account = self._interface.account(CAMPAIGN_ACCOUNT)
        try:
            body = account.layout.build(
                {
                    "admin": list(bytes(owner)),
                    "name": name,
                    "description": description,
                    "amountDonated": amount_donated,
                }
            )
        except ConstructError as exc:
            raise EncodingError(f"cannot encode campaign account: {exc}") from exc
        data = account.discriminator + body
        if space is not None:
            if len(data) > space:
                raise EncodingError(
                    f"campaign state needs {len(data)} bytes, account has {space}",
                    details={"needed": len(data), "space": space},
                )
            data += bytes(space - len(data))
        return data


def _check_text(field: str, value: object, max_bytes: int) -> None:
    if not isinstance(value, str):
        raise EncodingError(f"{field} must be a string", details={"field": field})
    if not value:
        raise EncodingError(f"{field} must not be empty", details={"field": field})
    size = len(value.encode("utf-8"))
    if size > max_bytes:
        raise EncodingError(
            f"{field} is {size} bytes, max is {max_bytes}",
            details={"field": field, "size": size, "max": max_bytes},
        )


def _check_amount(amount: object) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise EncodingError("amount must be an integer number of lamports")
    if not 0 < amount <= U64_MAX:
        raise EncodingError(
            f"amount must be in 1..{U64_MAX}, got {amount}",
            details={"amount": amount},
        )
