"""
Ledger backend for the crowdfunding client.

Public API:

    Gateway:
        - ``LedgerGateway`` — submit (sign, broadcast, confirm) and query.

    Protocols (for dependency injection):
        - ``LedgerClient`` — network boundary.
        - ``JsonRpcTransport`` — injectable transport for JSON-RPC.

    Result types:
        - ``AccountSnapshot``, ``BlockhashResult``, ``SendResult``,
          ``SignatureStatus``.

    Error mapping:
        - ``classify_rpc_error()``, ``classify_transaction_error()``,
          ``describe_transaction_error()``.

    Concrete implementations:
        - ``JsonRpcClient`` — JSON-RPC implementation of LedgerClient.
        - ``HttpxTransport`` — default httpx-based transport.
"""

from crowdfund.ledger.client import (
    AccountSnapshot,
    BlockhashResult,
    LedgerClient,
    SendResult,
    SignatureStatus,
)
from crowdfund.ledger.errors import (
    classify_rpc_error,
    classify_transaction_error,
    describe_transaction_error,
)
from crowdfund.ledger.gateway import LedgerGateway
from crowdfund.ledger.jsonrpc_client import JsonRpcClient
from crowdfund.ledger.transport import HttpxTransport, JsonRpcTransport

__all__ = [
    "AccountSnapshot",
    "BlockhashResult",
    "HttpxTransport",
    "JsonRpcClient",
    "JsonRpcTransport",
    "LedgerClient",
    "LedgerGateway",
    "SendResult",
    "SignatureStatus",
    "classify_rpc_error",
    "classify_transaction_error",
    "describe_transaction_error",
]
