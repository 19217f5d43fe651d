"""
Ledger JSON-RPC client — real network implementation of LedgerClient.

Translates JSON-RPC responses into result dataclasses. Uses an injectable
transport (JsonRpcTransport) so the HTTP layer can be swapped for test
fakes without changing parsing logic.

No retry loops. No secrets. No program logic beyond response parsing.

Response conventions (JSON-RPC 2.0):
    - Success: {"jsonrpc": "2.0", "result": ..., "id": n}
    - Error:   {"jsonrpc": "2.0", "error": {"code", "message", "data"}, "id": n}
    - Account data is requested and returned as ["<base64>", "base64"].
    - Context-wrapped results look like {"context": {...}, "value": ...}.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

from solders.hash import Hash, ParseHashError
from solders.pubkey import Pubkey

from crowdfund.errors import ErrorCode, NetworkError, ProtocolError
from crowdfund.ledger.client import (
    AccountSnapshot,
    BlockhashResult,
    SendResult,
    SignatureStatus,
)
from crowdfund.ledger.errors import classify_rpc_error
from crowdfund.ledger.transport import HttpxTransport, JsonRpcTransport
from crowdfund.models import Commitment

logger = logging.getLogger(__name__)

# JSON-RPC request ID counter (simple, no thread-safety needed for async)
_REQUEST_ID = 0


def _next_request_id() -> int:
    global _REQUEST_ID
    _REQUEST_ID += 1
    return _REQUEST_ID


class JsonRpcClient:
    """Ledger JSON-RPC client implementing the LedgerClient protocol.

    Args:
        url: The JSON-RPC endpoint URL.
        transport: Injectable transport for HTTP POST. Defaults to
            HttpxTransport. Pass a FakeTransport for testing.
        commitment: Commitment used for reads and preflight simulation.
        skip_preflight: Ask the node not to simulate before broadcasting.
    """

    def __init__(
        self,
        url: str,
        transport: JsonRpcTransport | None = None,
        *,
        commitment: Commitment = Commitment.PROCESSED,
        skip_preflight: bool = False,
    ) -> None:
        self._url = url
        self._transport = transport or HttpxTransport()
        self._commitment = commitment
        self._skip_preflight = skip_preflight

    @property
    def url(self) -> str:
        """The JSON-RPC endpoint URL."""
        return self._url

    async def _call(self, method: str, params: list[Any]) -> dict[str, Any]:
        payload = {
            "jsonrpc": "2.0",
            "id": _next_request_id(),
            "method": method,
            "params": params,
        }
        logger.debug("rpc %s", method)
        return await self._transport.post_json(self._url, payload)

    # -----------------------------------------------------------------
    # LedgerClient protocol methods
    # -----------------------------------------------------------------

    async def get_latest_blockhash(self, commitment: Commitment) -> BlockhashResult:
        response = await self._call("getLatestBlockhash", [{"commitment": commitment.value}])
        return _parse_blockhash_response(response)

    async def send_transaction(self, signed_tx: bytes) -> SendResult:
        """Broadcast a signed transaction via ``sendTransaction``.

        Transport exceptions propagate to the caller (the gateway retries
        NetworkError).
        """
        params = [
            base64.b64encode(signed_tx).decode("ascii"),
            {
                "encoding": "base64",
                "skipPreflight": self._skip_preflight,
                "preflightCommitment": self._commitment.value,
            },
        ]
        response = await self._call("sendTransaction", params)
        return _parse_send_response(response)

    async def get_signature_statuses(self, signatures: list[str]) -> list[SignatureStatus]:
        response = await self._call(
            "getSignatureStatuses",
            [signatures, {"searchTransactionHistory": False}],
        )
        return _parse_signature_statuses(response, expected=len(signatures))

    async def get_program_accounts(self, program_id: Pubkey) -> list[AccountSnapshot]:
        response = await self._call(
            "getProgramAccounts",
            [str(program_id), {"encoding": "base64", "commitment": self._commitment.value}],
        )
        return _parse_program_accounts(response)

    async def get_account_info(self, address: Pubkey) -> AccountSnapshot | None:
        response = await self._call(
            "getAccountInfo",
            [str(address), {"encoding": "base64", "commitment": self._commitment.value}],
        )
        return _parse_account_info(response, address)


# =====================================================================
# Response parsing (pure functions, no I/O)
# =====================================================================


def _raise_for_error(response: dict[str, Any]) -> None:
    """Raise the typed error for a JSON-RPC error response."""
    error = response.get("error")
    if error is None:
        return
    if not isinstance(error, dict):
        raise ProtocolError("malformed JSON-RPC error member", details={"error": error})
    code = error.get("code")
    message = error.get("message") or "unknown server error"
    details = {"rpc_code": code, "rpc_message": message}
    if classify_rpc_error(code, error.get("data")) is ErrorCode.NETWORK:
        raise NetworkError(f"node error {code}: {message}", details=details)
    raise ProtocolError(f"node error {code}: {message}", details=details)


def _result(response: dict[str, Any]) -> Any:
    _raise_for_error(response)
    if "result" not in response:
        raise ProtocolError("JSON-RPC response has neither result nor error")
    return response["result"]


def _value(response: dict[str, Any]) -> Any:
    result = _result(response)
    if not isinstance(result, dict) or "value" not in result:
        raise ProtocolError("expected a context-wrapped result with a value member")
    return result["value"]


def _pubkey(raw: Any, field: str) -> Pubkey:
    if not isinstance(raw, str):
        raise ProtocolError(f"{field} is not a base58 string", details={"field": field})
    try:
        return Pubkey.from_string(raw)
    except ValueError as exc:
        raise ProtocolError(f"{field} is not a public key: {raw!r}") from exc


def _uint(raw: Any, field: str, details: dict[str, Any] | None = None) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
        raise ProtocolError(
            f"{field} is not a non-negative integer: {raw!r}",
            details={"field": field, **(details or {})},
        )
    return raw


def _account_snapshot(address: Pubkey, account: Any) -> AccountSnapshot:
    if not isinstance(account, dict):
        raise ProtocolError("account is not an object", details={"address": str(address)})
    data_field = account.get("data")
    if (
        not isinstance(data_field, list)
        or len(data_field) != 2
        or data_field[1] != "base64"
        or not isinstance(data_field[0], str)
    ):
        raise ProtocolError(
            "account data is not [<base64>, 'base64']",
            details={"address": str(address)},
        )
    try:
        data = base64.b64decode(data_field[0], validate=True)
    except binascii.Error as exc:
        raise ProtocolError(
            "account data is not valid base64", details={"address": str(address)}
        ) from exc

    owner = account.get("owner")
    return AccountSnapshot(
        address=address,
        data=data,
        lamports=_uint(account.get("lamports", 0), "lamports", {"address": str(address)}),
        owner=_pubkey(owner, "owner") if owner is not None else None,
    )


def _parse_blockhash_response(response: dict[str, Any]) -> BlockhashResult:
    value = _value(response)
    if not isinstance(value, dict) or not isinstance(value.get("blockhash"), str):
        raise ProtocolError("getLatestBlockhash value has no blockhash")
    blockhash = value["blockhash"]
    try:
        Hash.from_string(blockhash)
    except (ParseHashError, ValueError) as exc:
        raise ProtocolError(
            f"getLatestBlockhash returned a malformed blockhash: {blockhash!r}",
            details={"blockhash": blockhash},
        ) from exc
    return BlockhashResult(
        blockhash=blockhash,
        last_valid_block_height=_uint(
            value.get("lastValidBlockHeight", 0), "lastValidBlockHeight"
        ),
    )


def _parse_send_response(response: dict[str, Any]) -> SendResult:
    """Parse a sendTransaction response into SendResult.

    Handles:
        - Accepted (result is the signature)
        - Preflight failure (-32002 with data.err and data.logs)
        - Other node errors (classified, never raised)
    """
    error = response.get("error")
    if isinstance(error, dict):
        code = error.get("code")
        data = error.get("data")
        tx_error = data.get("err") if isinstance(data, dict) else None
        logs = data.get("logs") if isinstance(data, dict) else None
        return SendResult(
            accepted=False,
            error_code=classify_rpc_error(code, data),
            detail=error.get("message") or "unknown server error",
            rpc_code=code,
            tx_error=tx_error,
            logs=tuple(logs or ()),
        )

    signature = response.get("result")
    if not isinstance(signature, str) or not signature:
        return SendResult(
            accepted=False,
            error_code=ErrorCode.PROTOCOL,
            detail="no signature in sendTransaction response",
        )
    return SendResult(accepted=True, signature=signature)


def _parse_signature_statuses(response: dict[str, Any], expected: int) -> list[SignatureStatus]:
    value = _value(response)
    if not isinstance(value, list) or len(value) != expected:
        raise ProtocolError(
            "getSignatureStatuses returned the wrong number of statuses",
            details={"expected": expected},
        )

    statuses: list[SignatureStatus] = []
    for item in value:
        if item is None:
            statuses.append(SignatureStatus(found=False))
            continue
        if not isinstance(item, dict):
            raise ProtocolError("signature status is not an object")
        raw_status = item.get("confirmationStatus")
        if raw_status is not None:
            try:
                confirmation = Commitment(raw_status)
            except ValueError as exc:
                raise ProtocolError(f"unknown confirmationStatus {raw_status!r}") from exc
        elif item.get("confirmations") is None:
            # Older nodes: null confirmations means rooted.
            confirmation = Commitment.FINALIZED
        else:
            confirmation = Commitment.PROCESSED
        statuses.append(
            SignatureStatus(
                found=True,
                slot=item.get("slot"),
                confirmation_status=confirmation,
                err=item.get("err"),
            )
        )
    return statuses


def _parse_program_accounts(response: dict[str, Any]) -> list[AccountSnapshot]:
    result = _result(response)
    # Nodes return a context wrapper when withContext is set.
    if isinstance(result, dict) and "value" in result:
        result = result["value"]
    if not isinstance(result, list):
        raise ProtocolError("getProgramAccounts result is not a list")

    snapshots: list[AccountSnapshot] = []
    for item in result:
        if not isinstance(item, dict):
            raise ProtocolError("program account entry is not an object")
        address = _pubkey(item.get("pubkey"), "pubkey")
        snapshots.append(_account_snapshot(address, item.get("account")))
    return snapshots


def _parse_account_info(response: dict[str, Any], address: Pubkey) -> AccountSnapshot | None:
    value = _value(response)
    if value is None:
        return None
    return _account_snapshot(address, value)
