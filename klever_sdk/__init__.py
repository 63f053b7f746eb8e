"""
Klever SDK - Python client for the Klever ledger.

Read accounts, transactions and blocks through the public API and node
endpoints, build and sign transactions locally or with node help, broadcast
them and follow them to confirmation.
"""
import logging

from . import receipts as parse_receipt
from .builder import TransactionBuilder
from .cache import ResultCache
from .config import NetworkRegistry, SDKSettings
from .contracts import ContractOperation, ContractType, parse_operation
from .exceptions import (
    HTTPStatusError, KleverSDKError, NetworkError, ParseError, TransactionError,
    TransactionNotFoundError, UnknownNetworkError, ValidationError
)
from .http_client import RequestClient
from .models import (
    Account, Block, BuildTransactionResponse, ContractQueryResult, FaucetResult,
    FeeEstimate, NetworkRecord, ProgressStatus, TransactionInfo, TransactionProgress
)
from .provider import LedgerProvider, ProviderEvent
from .signer import LocalSigner, Signer, verify_signature
from .transaction import Transaction
from .utils import decode_address, encode_address, is_valid_address
from .version import __version__

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "LedgerProvider",
    "ProviderEvent",
    "TransactionBuilder",
    "Transaction",
    "Signer",
    "LocalSigner",
    "verify_signature",
    "NetworkRegistry",
    "SDKSettings",
    "RequestClient",
    "ResultCache",
    "ContractOperation",
    "ContractType",
    "parse_operation",
    "parse_receipt",
    "Account",
    "Block",
    "BuildTransactionResponse",
    "ContractQueryResult",
    "FaucetResult",
    "FeeEstimate",
    "NetworkRecord",
    "ProgressStatus",
    "TransactionInfo",
    "TransactionProgress",
    "KleverSDKError",
    "ValidationError",
    "UnknownNetworkError",
    "NetworkError",
    "HTTPStatusError",
    "TransactionNotFoundError",
    "TransactionError",
    "ParseError",
    "decode_address",
    "encode_address",
    "is_valid_address",
    "__version__",
]
