"""
Error taxonomy for the crowdfunding client.

Every failure the client surfaces carries a machine-readable ``ErrorCode``
and a ``details`` dict, so callers can display a labeled failure without
parsing messages.

Kinds:
    - WALLET_UNAVAILABLE: no wallet was injected into the client.
    - USER_DECLINED: the wallet refused to connect or to sign.
    - NOT_CONNECTED: an operation that needs a wallet identity ran first.
    - DERIVATION_FAILED / DERIVATION_EXHAUSTED: no program address.
    - ENCODING_FAILED: malformed instruction arguments.
    - DECODING_FAILED: account bytes are not a campaign. Recoverable.
    - INTERFACE_INVALID: the program interface definition is malformed.
    - CONFIG_INVALID: client configuration is malformed.
    - NETWORK: transport failure. The only retryable kind.
    - PROTOCOL: the node answered with something we cannot parse.
    - PROGRAM_REJECTED: the program refused the instruction.
    - TIMEOUT: no answer or no confirmation before the deadline.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Machine-readable failure categories."""

    WALLET_UNAVAILABLE = "WALLET_UNAVAILABLE"
    USER_DECLINED = "USER_DECLINED"
    NOT_CONNECTED = "NOT_CONNECTED"
    DERIVATION_FAILED = "DERIVATION_FAILED"
    DERIVATION_EXHAUSTED = "DERIVATION_EXHAUSTED"
    ENCODING_FAILED = "ENCODING_FAILED"
    DECODING_FAILED = "DECODING_FAILED"
    INTERFACE_INVALID = "INTERFACE_INVALID"
    CONFIG_INVALID = "CONFIG_INVALID"
    NETWORK = "NETWORK"
    PROTOCOL = "PROTOCOL"
    PROGRAM_REJECTED = "PROGRAM_REJECTED"
    TIMEOUT = "TIMEOUT"


class CrowdfundError(Exception):
    """Base class for all client failures.

    Args:
        message: Human-readable description.
        error_code: Category. Defaults to the subclass' ``default_code``.
        details: Structured diagnostics (addresses, RPC codes, logs).
    """

    default_code: ErrorCode = ErrorCode.PROTOCOL
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        error_code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details: dict[str, Any] = details or {}

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class WalletUnavailableError(CrowdfundError):
    default_code = ErrorCode.WALLET_UNAVAILABLE


class UserDeclinedError(CrowdfundError):
    default_code = ErrorCode.USER_DECLINED


class NotConnectedError(CrowdfundError):
    default_code = ErrorCode.NOT_CONNECTED


class DerivationError(CrowdfundError):
    default_code = ErrorCode.DERIVATION_FAILED


class DerivationExhaustedError(DerivationError):
    default_code = ErrorCode.DERIVATION_EXHAUSTED


class EncodingError(CrowdfundError):
    default_code = ErrorCode.ENCODING_FAILED


class TransactionBuildError(EncodingError):
    """A transaction was requested without its required accounts."""


class DecodingError(CrowdfundError):
    default_code = ErrorCode.DECODING_FAILED


class InterfaceError(CrowdfundError):
    default_code = ErrorCode.INTERFACE_INVALID


class ConfigError(CrowdfundError):
    default_code = ErrorCode.CONFIG_INVALID


class NetworkError(CrowdfundError):
    default_code = ErrorCode.NETWORK
    retryable = True


class BlockhashExpiredError(NetworkError):
    """The signed transaction references a blockhash the node no longer
    accepts. Resending the same bytes cannot succeed; it must be rebuilt
    against a fresh blockhash and signed again."""


class ProtocolError(CrowdfundError):
    default_code = ErrorCode.PROTOCOL


class ProgramRejectedError(CrowdfundError):
    default_code = ErrorCode.PROGRAM_REJECTED


class LedgerTimeoutError(CrowdfundError):
    default_code = ErrorCode.TIMEOUT
