"""
crowdfund: client for an Anchor-style crowdfunding program.

Public API:

    Orchestration:
        - ``CampaignClient`` — connect, create, list, donate, withdraw.
        - ``SessionState``

    Pure layer (no I/O):
        - ``derive()``, ``campaign_address()``, ``find_program_address()``
        - ``CampaignCodec`` — instruction encoding, account decoding.
        - ``TransactionBuilder``, ``TransactionPlan``
        - ``load_interface()``, ``ProgramInterface``

    Impure layer:
        - ``LedgerGateway`` (see ``crowdfund.ledger``)
        - ``Wallet`` protocol, ``LocalKeypairWallet``

    Configuration and errors:
        - ``ClientConfig``
        - ``CrowdfundError`` and its subclasses, ``ErrorCode``
"""

import logging

from crowdfund.campaigns import CampaignClient, SessionState
from crowdfund.codec import (
    MAX_DESCRIPTION_BYTES,
    MAX_NAME_BYTES,
    CampaignCodec,
)
from crowdfund.config import ClientConfig
from crowdfund.errors import (
    BlockhashExpiredError,
    ConfigError,
    CrowdfundError,
    DecodingError,
    DerivationError,
    DerivationExhaustedError,
    EncodingError,
    ErrorCode,
    InterfaceError,
    LedgerTimeoutError,
    NetworkError,
    NotConnectedError,
    ProgramRejectedError,
    ProtocolError,
    TransactionBuildError,
    UserDeclinedError,
    WalletUnavailableError,
)
from crowdfund.idl import ProgramInterface, load_interface
from crowdfund.ledger import LedgerGateway
from crowdfund.models import (
    LAMPORTS_PER_SOL,
    CampaignRecord,
    Commitment,
    Confirmation,
    OperationKind,
    OperationReceipt,
    PendingTransaction,
    lamports_to_sol,
    sol_to_lamports,
)
from crowdfund.pda import CAMPAIGN_SEED, campaign_address, derive, find_program_address
from crowdfund.tx import SYSTEM_PROGRAM_ID, TransactionBuilder, TransactionPlan
from crowdfund.wallet import LocalKeypairWallet, Wallet

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "CAMPAIGN_SEED",
    "LAMPORTS_PER_SOL",
    "MAX_DESCRIPTION_BYTES",
    "MAX_NAME_BYTES",
    "SYSTEM_PROGRAM_ID",
    "BlockhashExpiredError",
    "CampaignClient",
    "CampaignCodec",
    "CampaignRecord",
    "ClientConfig",
    "Commitment",
    "ConfigError",
    "Confirmation",
    "CrowdfundError",
    "DecodingError",
    "DerivationError",
    "DerivationExhaustedError",
    "EncodingError",
    "ErrorCode",
    "InterfaceError",
    "LedgerGateway",
    "LedgerTimeoutError",
    "LocalKeypairWallet",
    "NetworkError",
    "NotConnectedError",
    "OperationKind",
    "OperationReceipt",
    "PendingTransaction",
    "ProgramInterface",
    "ProgramRejectedError",
    "ProtocolError",
    "SessionState",
    "TransactionBuildError",
    "TransactionBuilder",
    "TransactionPlan",
    "UserDeclinedError",
    "Wallet",
    "WalletUnavailableError",
    "campaign_address",
    "derive",
    "find_program_address",
    "lamports_to_sol",
    "load_interface",
    "sol_to_lamports",
]
