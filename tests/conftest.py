"""
Shared fixtures: an in-memory ledger that runs the crowdfunding program,
and deterministic wallets.

FakeLedger implements the LedgerClient protocol. It parses the signed
transaction bytes it is given, verifies the fee payer's signature, and
executes create/donate/withdraw against in-memory account state using the
same codec the client uses.
"""

from __future__ import annotations

from typing import Any

import pytest
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from crowdfund.codec import CampaignCodec
from crowdfund.errors import ErrorCode
from crowdfund.idl import ProgramInterface, load_interface
from crowdfund.ledger.client import (
    AccountSnapshot,
    BlockhashResult,
    SendResult,
    SignatureStatus,
)
from crowdfund.ledger.gateway import LedgerGateway
from crowdfund.models import Commitment
from crowdfund.pda import campaign_address
from crowdfund.wallet import LocalKeypairWallet

OWNER_SEED = bytes([7]) * 32
STRANGER_SEED = bytes([9]) * 32

STARTING_BALANCE = 5_000_000_000


class FakeLedger:
    """In-memory ledger running the crowdfunding program."""

    def __init__(self, codec: CampaignCodec) -> None:
        self.codec = codec
        self.program_id = codec.interface.program_id
        self.accounts: dict[Pubkey, bytes] = {}
        self.balances: dict[Pubkey, int] = {}
        self.statuses: dict[str, SignatureStatus] = {}
        self.sent: list[Transaction] = []
        self.send_errors: list[Exception] = []
        self.query_errors: list[Exception] = []
        self.calls: list[str] = []
        self.slot = 100
        self.blockhashes: list[Hash] = []
        # The next N issued blockhashes are already stale when sent.
        self.stale_blockhashes = 0
        self._stale: set[str] = set()

    # -- LedgerClient -----------------------------------------------------

    async def get_latest_blockhash(self, commitment: Commitment) -> BlockhashResult:
        self.calls.append("getLatestBlockhash")
        blockhash = Hash.from_bytes((len(self.blockhashes) + 1).to_bytes(32, "big"))
        self.blockhashes.append(blockhash)
        if self.stale_blockhashes:
            self.stale_blockhashes -= 1
            self._stale.add(str(blockhash))
        return BlockhashResult(blockhash=str(blockhash), last_valid_block_height=1000)

    async def send_transaction(self, signed_tx: bytes) -> SendResult:
        self.calls.append("sendTransaction")
        if self.send_errors:
            raise self.send_errors.pop(0)

        tx = Transaction.from_bytes(signed_tx)
        message = tx.message
        keys = list(message.account_keys)
        try:
            Ed25519PublicKey.from_public_bytes(bytes(keys[0])).verify(
                bytes(tx.signatures[0]), bytes(message)
            )
        except InvalidSignature:
            return SendResult(
                accepted=False,
                error_code=ErrorCode.PROTOCOL,
                detail="Transaction signature verification failure",
                rpc_code=-32003,
            )

        self.sent.append(tx)
        if str(message.recent_blockhash) in self._stale:
            return SendResult(
                accepted=False,
                error_code=ErrorCode.NETWORK,
                detail="Transaction simulation failed: Blockhash not found",
                rpc_code=-32002,
                tx_error="BlockhashNotFound",
            )
        ix = message.instructions[0]
        accounts = [keys[i] for i in ix.accounts]
        err = self._execute(accounts, bytes(ix.data))
        if err is not None:
            return SendResult(
                accepted=False,
                error_code=ErrorCode.PROGRAM_REJECTED,
                detail="Transaction simulation failed",
                rpc_code=-32002,
                tx_error=err,
                logs=("Program log: rejected",),
            )

        signature = str(tx.signatures[0])
        self.slot += 1
        self.statuses[signature] = SignatureStatus(
            found=True, slot=self.slot, confirmation_status=Commitment.PROCESSED
        )
        return SendResult(accepted=True, signature=signature)

    async def get_signature_statuses(self, signatures: list[str]) -> list[SignatureStatus]:
        self.calls.append("getSignatureStatuses")
        return [self.statuses.get(s, SignatureStatus(found=False)) for s in signatures]

    async def get_program_accounts(self, program_id: Pubkey) -> list[AccountSnapshot]:
        self.calls.append("getProgramAccounts")
        if self.query_errors:
            raise self.query_errors.pop(0)
        if program_id != self.program_id:
            return []
        return [
            AccountSnapshot(address=addr, data=data, lamports=1, owner=self.program_id)
            for addr, data in self.accounts.items()
        ]

    async def get_account_info(self, address: Pubkey) -> AccountSnapshot | None:
        self.calls.append("getAccountInfo")
        data = self.accounts.get(address)
        if data is None:
            return None
        return AccountSnapshot(address=address, data=data, lamports=1, owner=self.program_id)

    # -- Program ----------------------------------------------------------

    def fund(self, account: Pubkey, lamports: int = STARTING_BALANCE) -> None:
        self.balances[account] = lamports

    def put_campaign(
        self, owner: Pubkey, name: str, description: str, amount_donated: int = 0
    ) -> Pubkey:
        address = campaign_address(owner, self.program_id)
        self.accounts[address] = self.codec.encode_campaign_account(
            owner, name, description, amount_donated
        )
        return address

    def _execute(self, accounts: list[Pubkey], data: bytes) -> Any:
        interface = self.codec.interface
        for ix in interface.instructions.values():
            if data[:8] == ix.discriminator:
                args = ix.layout.parse(data[8:])
                return getattr(self, f"_run_{ix.name}")(accounts, args)
        return {"InstructionError": [0, "InvalidInstructionData"]}

    def _run_create(self, accounts: list[Pubkey], args: Any) -> Any:
        campaign, user = accounts[0], accounts[1]
        if campaign != campaign_address(user, self.program_id):
            return {"InstructionError": [0, {"Custom": 2006}]}
        if campaign in self.accounts:
            return {"InstructionError": [0, {"Custom": 0}]}
        self.accounts[campaign] = self.codec.encode_campaign_account(
            user, args.name, args.description, 0
        )
        return None

    def _run_donate(self, accounts: list[Pubkey], args: Any) -> Any:
        campaign, user = accounts[0], accounts[1]
        if campaign not in self.accounts:
            return {"InstructionError": [0, "AccountNotInitialized"]}
        if self.balances.get(user, 0) < args.amount:
            return {"InstructionError": [0, {"Custom": 1}]}
        record = self.codec.decode_campaign(campaign, self.accounts[campaign])
        self.balances[user] -= args.amount
        self.accounts[campaign] = self.codec.encode_campaign_account(
            record.owner, record.name, record.description, record.amount_donated + args.amount
        )
        return None

    def _run_withdraw(self, accounts: list[Pubkey], args: Any) -> Any:
        campaign, user = accounts[0], accounts[1]
        if campaign not in self.accounts:
            return {"InstructionError": [0, "AccountNotInitialized"]}
        record = self.codec.decode_campaign(campaign, self.accounts[campaign])
        if record.owner != user:
            return {"InstructionError": [0, "IncorrectProgramId"]}
        if args.amount > record.amount_donated:
            return {"InstructionError": [0, "InsufficientFunds"]}
        self.balances[user] = self.balances.get(user, 0) + args.amount
        self.accounts[campaign] = self.codec.encode_campaign_account(
            record.owner, record.name, record.description, record.amount_donated - args.amount
        )
        return None


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def interface() -> ProgramInterface:
    return load_interface()


@pytest.fixture
def codec(interface: ProgramInterface) -> CampaignCodec:
    return CampaignCodec(interface)


@pytest.fixture
def program_id(interface: ProgramInterface) -> Pubkey:
    return interface.program_id


@pytest.fixture
def ledger(codec: CampaignCodec) -> FakeLedger:
    return FakeLedger(codec)


@pytest.fixture
def gateway(ledger: FakeLedger, interface: ProgramInterface) -> LedgerGateway:
    return LedgerGateway(
        ledger,
        confirm_timeout_s=1.0,
        poll_interval_s=0.0,
        max_retries=2,
        retry_backoff_s=0.0,
        interface=interface,
    )


@pytest.fixture
def owner_wallet(ledger: FakeLedger) -> LocalKeypairWallet:
    wallet = LocalKeypairWallet.from_seed(OWNER_SEED)
    ledger.fund(wallet.public_key)
    return wallet


@pytest.fixture
def stranger_wallet(ledger: FakeLedger) -> LocalKeypairWallet:
    wallet = LocalKeypairWallet.from_seed(STRANGER_SEED)
    ledger.fund(wallet.public_key)
    return wallet
