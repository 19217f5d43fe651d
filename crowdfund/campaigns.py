"""
Campaign client — the orchestrator.

Session state machine:

    DISCONNECTED --connect()--> CONNECTED --list_campaigns()--> LOADED
         ^                          |                             |
         +-------disconnect()-------+-----------------------------+

Cache policy:
    - list_campaigns() replaces the cached list wholesale, under a lock,
      so concurrent refreshes never interleave partial writes.
    - create_campaign() does not touch the cache; refresh explicitly.
    - donate() refreshes the whole list after confirmation.
    - withdraw() does not refresh unless ``refresh_after_withdraw`` is set.
    - A refresh that fails after a confirmed donate or withdraw is logged
      and leaves the previous list in place; the receipt is still returned.

Trust:
    A program-owned account is a campaign only if it decodes AND its
    address equals the derivation for the owner it claims. Anything else
    is skipped from listings.
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum

from solders.pubkey import Pubkey

from crowdfund.codec import CampaignCodec
from crowdfund.config import ClientConfig
from crowdfund.errors import (
    CrowdfundError,
    DecodingError,
    NotConnectedError,
    WalletUnavailableError,
)
from crowdfund.idl import load_interface
from crowdfund.ledger.client import AccountSnapshot
from crowdfund.ledger.gateway import LedgerGateway
from crowdfund.models import CampaignRecord, OperationReceipt
from crowdfund.pda import campaign_address
from crowdfund.tx import TransactionBuilder, TransactionPlan
from crowdfund.wallet import Wallet

logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTED = "CONNECTED"
    LOADED = "LOADED"


class CampaignClient:
    """Create, list, donate to and withdraw from campaigns.

    Args:
        wallet: Injected wallet. None models "no wallet installed".
        gateway: Ledger gateway for submissions and queries.
        codec: Codec bound to the program interface. Defaults to the
            bundled interface.
        refresh_after_withdraw: Reload the list after a withdraw.
    """

    def __init__(
        self,
        wallet: Wallet | None,
        gateway: LedgerGateway,
        *,
        codec: CampaignCodec | None = None,
        refresh_after_withdraw: bool = False,
    ) -> None:
        self._wallet = wallet
        self._gateway = gateway
        self._codec = codec or CampaignCodec()
        self._builder = TransactionBuilder(self._codec)
        self._refresh_after_withdraw = refresh_after_withdraw

        self._identity: Pubkey | None = None
        self._campaigns: tuple[CampaignRecord, ...] = ()
        self._loaded = False
        self._cache_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: ClientConfig, wallet: Wallet | None) -> CampaignClient:
        """Wire interface, codec and gateway from ``config``."""
        interface = load_interface(config.idl_path)
        if config.program_id is not None:
            interface = interface.with_program_id(Pubkey.from_string(config.program_id))
        return cls(
            wallet,
            LedgerGateway.from_config(config, interface),
            codec=CampaignCodec(interface),
            refresh_after_withdraw=config.refresh_after_withdraw,
        )

    # -----------------------------------------------------------------
    # State
    # -----------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        if self._identity is None:
            return SessionState.DISCONNECTED
        if self._loaded:
            return SessionState.LOADED
        return SessionState.CONNECTED

    @property
    def identity(self) -> Pubkey | None:
        return self._identity

    @property
    def program_id(self) -> Pubkey:
        return self._codec.interface.program_id

    @property
    def campaigns(self) -> tuple[CampaignRecord, ...]:
        """Campaigns from the last refresh."""
        return self._campaigns

    def _require_identity(self) -> Pubkey:
        if self._identity is None:
            raise NotConnectedError("connect a wallet first")
        return self._identity

    def _require_wallet(self) -> Wallet:
        if self._wallet is None:
            raise WalletUnavailableError("no wallet is available; install one to continue")
        return self._wallet

    # -----------------------------------------------------------------
    # Connection
    # -----------------------------------------------------------------

    async def connect(self) -> Pubkey:
        """Ask the wallet to connect, prompting the user if needed.

        Raises:
            WalletUnavailableError: No wallet was injected.
            UserDeclinedError: The user refused.
        """
        return await self._connect(only_if_trusted=False)

    async def auto_connect(self) -> Pubkey:
        """Reconnect silently if the wallet already trusts this client."""
        return await self._connect(only_if_trusted=True)

    async def _connect(self, *, only_if_trusted: bool) -> Pubkey:
        wallet = self._require_wallet()
        identity = await wallet.connect(only_if_trusted=only_if_trusted)
        self._identity = identity
        logger.info("connected as %s", identity)
        return identity

    def disconnect(self) -> None:
        self._identity = None
        self._campaigns = ()
        self._loaded = False

    # -----------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------

    async def _submit(self, plan: TransactionPlan) -> OperationReceipt:
        confirmation = await self._gateway.submit(plan, self._require_wallet())
        return OperationReceipt(kind=plan.kind, campaign=plan.campaign, confirmation=confirmation)

    async def _refresh_after(self, receipt: OperationReceipt) -> None:
        try:
            await self.list_campaigns()
        except CrowdfundError as exc:
            logger.warning(
                "%s %s confirmed but the campaign refresh failed: %s",
                receipt.kind.value, receipt.signature, exc,
            )

    async def create_campaign(self, name: str, description: str) -> OperationReceipt:
        """Create the connected wallet's campaign.

        The cached list is not updated; call list_campaigns() to see it.
        """
        user = self._require_identity()
        address = campaign_address(user, self.program_id)
        plan = self._builder.plan_create(address, user, name, description)
        receipt = await self._submit(plan)
        logger.info("created campaign %s", address)
        return receipt

    async def donate(self, address: Pubkey, amount: int) -> OperationReceipt:
        """Donate ``amount`` lamports, then refresh the campaign list."""
        user = self._require_identity()
        plan = self._builder.plan_donate(address, user, amount)
        receipt = await self._submit(plan)
        logger.info("donated %d lamports to %s", amount, address)
        await self._refresh_after(receipt)
        return receipt

    async def withdraw(self, address: Pubkey, amount: int) -> OperationReceipt:
        """Withdraw ``amount`` lamports. The list is not refreshed by default."""
        user = self._require_identity()
        plan = self._builder.plan_withdraw(address, user, amount)
        receipt = await self._submit(plan)
        logger.info("withdrew %d lamports from %s", amount, address)
        if self._refresh_after_withdraw:
            await self._refresh_after(receipt)
        return receipt

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def _trusted_record(self, snapshot: AccountSnapshot) -> CampaignRecord:
        record = self._codec.decode_campaign(snapshot.address, snapshot.data)
        expected = campaign_address(record.owner, self.program_id)
        if expected != snapshot.address:
            raise DecodingError(
                "campaign address does not match its owner's derived address",
                details={"address": str(snapshot.address), "expected": str(expected)},
            )
        return record

    async def list_campaigns(self) -> list[CampaignRecord]:
        """Reload every campaign and replace the cache.

        Accounts that are not trustworthy campaigns are skipped.
        """
        self._require_identity()
        async with self._cache_lock:
            snapshots = await self._gateway.query_program_accounts(self.program_id)
            records: list[CampaignRecord] = []
            for snapshot in snapshots:
                try:
                    records.append(self._trusted_record(snapshot))
                except DecodingError as exc:
                    logger.warning("skipping account %s: %s", snapshot.address, exc.message)
            self._campaigns = tuple(records)
            self._loaded = True
        logger.info("loaded %d campaigns (%d skipped)", len(records), len(snapshots) - len(records))
        return records

    async def get_campaign(self, address: Pubkey) -> CampaignRecord | None:
        """Fetch one campaign directly from the ledger.

        Returns:
            The record, or None if no account exists at ``address``.

        Raises:
            DecodingError: The account exists but is not a trustworthy campaign.
        """
        self._require_identity()
        snapshot = await self._gateway.fetch_account(address)
        if snapshot is None:
            return None
        return self._trusted_record(snapshot)
