"""
Ledger gateway.

Composes the pure planning layer (tx.py) with the impure boundaries
(wallet.py, client.py) and turns every outcome into either a value or a
typed error.

Submission:
    1. fetch a recent blockhash
    2. compile the message (fee payer = wallet)
    3. wallet signs (may suspend for user approval)
    4. broadcast
    5. poll the signature until the configured commitment is reached

A broadcast refused for a stale blockhash restarts at step 1, because the
signed bytes themselves are no longer valid. Other network failures at
step 4 resend the same bytes.

Failure kinds stay distinct:
    - NetworkError        transport failure; retried with backoff
    - BlockhashExpiredError stale blockhash; rebuilt and re-signed
    - UserDeclinedError   wallet refused; never retried
    - ProgramRejectedError the program refused the instruction; never retried
    - LedgerTimeoutError  no confirmation before the deadline
    - ProtocolError       the node answered with something unexpected
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from solders.hash import Hash, ParseHashError
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from crowdfund.config import ClientConfig
from crowdfund.errors import (
    BlockhashExpiredError,
    ConfigError,
    ErrorCode,
    LedgerTimeoutError,
    NetworkError,
    ProgramRejectedError,
    ProtocolError,
)
from crowdfund.idl import ProgramInterface
from crowdfund.ledger.client import AccountSnapshot, LedgerClient, SendResult
from crowdfund.ledger.errors import (
    BLOCKHASH_NOT_FOUND,
    classify_transaction_error,
    custom_error_code,
    describe_transaction_error,
)
from crowdfund.ledger.jsonrpc_client import JsonRpcClient
from crowdfund.ledger.transport import HttpxTransport
from crowdfund.models import Commitment, Confirmation
from crowdfund.tx import TransactionPlan
from crowdfund.wallet import Wallet

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LedgerGateway:
    """Submits transactions and queries account state.

    Args:
        client: Ledger network client.
        commitment: Depth a submission must reach.
        confirm_timeout_s: Deadline for reaching ``commitment``.
        poll_interval_s: Delay between status polls.
        max_retries: Extra attempts after a NetworkError. Also bounds how
            often a submission is rebuilt for a stale blockhash.
        retry_backoff_s: Base delay; doubles on every attempt.
        interface: Program interface, used to name custom program errors.
    """

    def __init__(
        self,
        client: LedgerClient,
        *,
        commitment: Commitment = Commitment.PROCESSED,
        confirm_timeout_s: float = 60.0,
        poll_interval_s: float = 0.5,
        max_retries: int = 3,
        retry_backoff_s: float = 0.5,
        interface: ProgramInterface | None = None,
    ) -> None:
        if max_retries < 0:
            raise ConfigError(
                "max_retries must be >= 0", details={"max_retries": max_retries}
            )
        self._client = client
        self._commitment = commitment
        self._confirm_timeout_s = confirm_timeout_s
        self._poll_interval_s = poll_interval_s
        self._max_retries = max_retries
        self._retry_backoff_s = retry_backoff_s
        self._interface = interface

    @classmethod
    def from_config(
        cls, config: ClientConfig, interface: ProgramInterface | None = None
    ) -> LedgerGateway:
        """Gateway talking JSON-RPC over httpx to ``config.rpc_url``."""
        client = JsonRpcClient(
            config.rpc_url,
            HttpxTransport(timeout=config.request_timeout_s),
            commitment=config.commitment,
            skip_preflight=config.skip_preflight,
        )
        return cls(
            client,
            commitment=config.commitment,
            confirm_timeout_s=config.confirm_timeout_s,
            poll_interval_s=config.poll_interval_s,
            max_retries=config.max_retries,
            retry_backoff_s=config.retry_backoff_s,
            interface=interface,
        )

    @property
    def commitment(self) -> Commitment:
        return self._commitment

    # -----------------------------------------------------------------
    # Retry
    # -----------------------------------------------------------------

    async def _with_retry(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        attempts = self._max_retries + 1
        for attempt in range(attempts):
            try:
                return await call()
            except BlockhashExpiredError:
                raise
            except NetworkError as exc:
                if attempt == attempts - 1:
                    raise
                delay = self._retry_backoff_s * (2**attempt)
                logger.warning(
                    "%s attempt %d/%d failed: %s; retrying in %.2fs",
                    operation, attempt + 1, attempts, exc, delay,
                )
                await asyncio.sleep(delay)
        raise AssertionError("unreachable")

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    async def query_program_accounts(self, program_id: Pubkey) -> list[AccountSnapshot]:
        """Snapshot of every account owned by ``program_id``."""
        return await self._with_retry(
            "getProgramAccounts", lambda: self._client.get_program_accounts(program_id)
        )

    async def fetch_account(self, address: Pubkey) -> AccountSnapshot | None:
        """Snapshot of one account, or None if it does not exist."""
        return await self._with_retry(
            "getAccountInfo", lambda: self._client.get_account_info(address)
        )

    # -----------------------------------------------------------------
    # Submission
    # -----------------------------------------------------------------

    async def submit(self, plan: TransactionPlan, wallet: Wallet) -> Confirmation:
        """Sign, broadcast and confirm ``plan``.

        Returns:
            Confirmation once the signature reaches the configured commitment.

        Raises:
            UserDeclinedError: The wallet refused to sign.
            ProgramRejectedError: The program refused the instruction.
            NetworkError: The node stayed unreachable after all retries.
            BlockhashExpiredError: Every rebuilt submission hit a stale blockhash.
            LedgerTimeoutError: No confirmation before the deadline.
            ProtocolError: The node answered with something unexpected.
        """
        signature = await self._sign_and_send(plan, wallet)
        logger.debug("%s broadcast as %s", plan.kind.value, signature)

        confirmation = await self.confirm(signature)
        logger.info(
            "%s on %s confirmed (%s, slot %s)",
            plan.kind.value, plan.campaign, confirmation.commitment.value, confirmation.slot,
        )
        return confirmation

    async def _sign_and_send(self, plan: TransactionPlan, wallet: Wallet) -> str:
        attempts = self._max_retries + 1
        for attempt in range(attempts):
            raw = await self._sign(plan, wallet)
            try:
                return await self._with_retry(
                    "sendTransaction", functools.partial(self._broadcast, raw)
                )
            except BlockhashExpiredError as exc:
                if attempt == attempts - 1:
                    raise
                logger.warning(
                    "%s blockhash expired (%d/%d): %s; rebuilding",
                    plan.kind.value, attempt + 1, attempts, exc,
                )
        raise AssertionError("unreachable")

    async def _sign(self, plan: TransactionPlan, wallet: Wallet) -> bytes:
        latest = await self._with_retry(
            "getLatestBlockhash", lambda: self._client.get_latest_blockhash(self._commitment)
        )
        try:
            blockhash = Hash.from_string(latest.blockhash)
        except (ParseHashError, ValueError) as exc:
            raise ProtocolError(
                f"malformed blockhash {latest.blockhash!r}",
                details={"blockhash": latest.blockhash},
            ) from exc
        message = Message.new_with_blockhash([plan.instruction], plan.fee_payer, blockhash)
        signed = await wallet.sign_transaction(Transaction.new_unsigned(message))
        return bytes(signed)

    async def _broadcast(self, raw: bytes) -> str:
        result = await self._client.send_transaction(raw)
        if result.accepted and result.signature is not None:
            return result.signature
        raise self._send_failure(result)

    def _send_failure(self, result: SendResult) -> Exception:
        details = {
            "rpc_code": result.rpc_code,
            "tx_error": result.tx_error,
            "logs": list(result.logs),
        }
        if result.error_code is ErrorCode.NETWORK:
            if result.tx_error == BLOCKHASH_NOT_FOUND:
                return BlockhashExpiredError(f"send failed: {result.detail}", details=details)
            return NetworkError(f"send failed: {result.detail}", details=details)
        if result.error_code is ErrorCode.PROGRAM_REJECTED:
            return self._rejection(result.tx_error, details, fallback=result.detail)
        return ProtocolError(f"send failed: {result.detail}", details=details)

    def _rejection(
        self, err: object, details: dict[str, object], fallback: str | None = None
    ) -> ProgramRejectedError:
        reason = describe_transaction_error(err, self._interface) if err is not None else fallback
        details = {**details, "custom_code": custom_error_code(err)}
        return ProgramRejectedError(f"program rejected the transaction: {reason}", details=details)

    async def confirm(self, signature: str) -> Confirmation:
        """Poll ``signature`` until it reaches the configured commitment.

        Raises:
            ProgramRejectedError: The transaction landed with an error.
            LedgerTimeoutError: The deadline passed first.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._confirm_timeout_s

        while True:
            statuses = await self._with_retry(
                "getSignatureStatuses",
                lambda: self._client.get_signature_statuses([signature]),
            )
            status = statuses[0]
            if status.found:
                if status.err is not None:
                    if classify_transaction_error(status.err) is ErrorCode.NETWORK:
                        raise NetworkError(
                            f"transaction failed: {describe_transaction_error(status.err)}",
                            details={"signature": signature, "tx_error": status.err},
                        )
                    raise self._rejection(
                        status.err, {"signature": signature, "tx_error": status.err}
                    )
                reached = status.confirmation_status
                if reached is not None and self._commitment.satisfied_by(reached):
                    return Confirmation(signature=signature, slot=status.slot, commitment=reached)

            if loop.time() >= deadline:
                raise LedgerTimeoutError(
                    f"{signature} not {self._commitment.value} after {self._confirm_timeout_s}s",
                    details={"signature": signature, "commitment": self._commitment.value},
                )
            await asyncio.sleep(self._poll_interval_s)
