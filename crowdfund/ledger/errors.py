"""
Ledger error mapping — translates JSON-RPC and transaction errors into
ErrorCode and readable detail.

Keeps the mapping coarse and conservative: a small set of RPC codes are
known to be transient, preflight failures are program rejections, and
anything unrecognized is a protocol error rather than a guess.

JSON-RPC error codes (Solana):
    - -32002: transaction simulation (preflight) failed
    - -32003: signature verification failed
    - -32004, -32005, -32007, -32009, -32014: node not ready / slot gaps
    - -32600..-32602: malformed request
    - -32603: internal error

Transaction errors arrive as JSON: either a bare string
("BlockhashNotFound", "InsufficientFundsForFee") or
{"InstructionError": [index, detail]} where detail is a string
("InsufficientFunds") or {"Custom": code}.
"""

from __future__ import annotations

from typing import Any

from crowdfund.errors import ErrorCode
from crowdfund.idl import ProgramInterface

RPC_PREFLIGHT_FAILURE = -32002

BLOCKHASH_NOT_FOUND = "BlockhashNotFound"

_TRANSIENT_RPC_CODES = frozenset({-32004, -32005, -32007, -32009, -32014, -32603})

# Transaction errors that say nothing about the instruction itself.
_TRANSIENT_TX_ERRORS = frozenset({BLOCKHASH_NOT_FOUND, "AccountInUse", "WouldExceedMaxBlockCostLimit"})


def classify_transaction_error(err: Any) -> ErrorCode:
    """Map a structured transaction error to an ErrorCode.

    Returns:
        NETWORK for errors that may clear on resubmission, otherwise
        PROGRAM_REJECTED.
    """
    if isinstance(err, str) and err in _TRANSIENT_TX_ERRORS:
        return ErrorCode.NETWORK
    return ErrorCode.PROGRAM_REJECTED


def classify_rpc_error(code: int | None, data: Any = None) -> ErrorCode:
    """Map a JSON-RPC error object to an ErrorCode.

    Args:
        code: JSON-RPC error code. None if the node sent none.
        data: The error's ``data`` member, consulted for preflight failures.
    """
    if code == RPC_PREFLIGHT_FAILURE:
        err = data.get("err") if isinstance(data, dict) else None
        if err is None:
            return ErrorCode.PROGRAM_REJECTED
        return classify_transaction_error(err)
    if code in _TRANSIENT_RPC_CODES:
        return ErrorCode.NETWORK
    return ErrorCode.PROTOCOL


def describe_transaction_error(err: Any, interface: ProgramInterface | None = None) -> str:
    """Render a transaction error for humans.

    Custom program error codes are resolved through the interface's error
    table when one is given.
    """
    if isinstance(err, str):
        return err
    if isinstance(err, dict) and "InstructionError" in err:
        payload = err["InstructionError"]
        if isinstance(payload, list) and len(payload) == 2:
            index, detail = payload
            if isinstance(detail, dict) and "Custom" in detail:
                code = detail["Custom"]
                known = interface.error(code) if interface is not None else None
                if known is not None:
                    suffix = f": {known.msg}" if known.msg else ""
                    return f"instruction {index}: {known.name} ({code}){suffix}"
                return f"instruction {index}: custom program error {code}"
            return f"instruction {index}: {detail}"
    return str(err)


def custom_error_code(err: Any) -> int | None:
    """Extract the custom program error code, if there is one."""
    if isinstance(err, dict):
        payload = err.get("InstructionError")
        if isinstance(payload, list) and len(payload) == 2:
            detail = payload[1]
            if isinstance(detail, dict) and isinstance(detail.get("Custom"), int):
                return int(detail["Custom"])
    return None
