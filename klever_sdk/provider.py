"""
LedgerProvider - reads, broadcasts and confirmation polling against a ledger.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar, Union

import pydantic

from .cache import ResultCache
from .config import NetworkInput, NetworkRegistry, SDKSettings
from .exceptions import (
    HTTPStatusError, KleverSDKError, NetworkError, TransactionError,
    TransactionNotFoundError, ValidationError
)
from .http_client import RequestClient
from .models import (
    Account, Block, BuildTransactionResponse, ContractQueryResult, FaucetResult,
    FeeEstimate, NetworkRecord, ProgressStatus, TransactionInfo, TransactionProgress
)
from .transaction import Transaction
from .utils import NATIVE_ASSET, get_path, is_valid_address, to_amount

T = TypeVar("T")

DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_MAX_ATTEMPTS = 40
DEFAULT_BATCH_WORKERS = 8
SUCCESS_CODES = (None, "", 0, "0", "successful")

TransactionLike = Union[Transaction, Mapping[str, Any]]
BlockIdentifier = Union[int, str]
ProgressCallback = Callable[[TransactionProgress], None]


class ProviderEvent(str, Enum):
    BLOCK = "block"
    TRANSACTION = "transaction"
    ERROR = "error"


EVENT_PAYLOADS = {
    ProviderEvent.BLOCK: Block,
    ProviderEvent.TRANSACTION: str,
    ProviderEvent.ERROR: KleverSDKError,
}


class LedgerProvider:
    """
    Client for a ledger's indexing API and node.

    This provider handles:
    1. Account, transaction and block reads (cached where safe)
    2. Broadcasting signed transactions
    3. Node-assisted transaction building
    4. Polling until a transaction is final

    Reads of finalised data are memoised in a ResultCache owned by this
    provider. Concurrent reads of the same key may both reach the network.
    """

    def __init__(
        self,
        network: NetworkInput = "mainnet",
        *,
        url: Optional[str] = None,
        chain_id: Optional[Union[str, int]] = None,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        cache: Union[bool, ResultCache, None] = True,
        debug: Optional[bool] = None,
        allow_insecure: Optional[bool] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the LedgerProvider

        Args:
            network: Built-in network name, NetworkRecord or record mapping
            url: Single endpoint used for both api and node (requires chain_id)
            chain_id: Chain id of the custom ``url`` network
            timeout: Per-attempt HTTP timeout in seconds (env: KLEVER_SDK_TIMEOUT)
            retries: HTTP retries after the first attempt (env: KLEVER_SDK_RETRIES)
            headers: Extra headers sent with every request
            cache: True for a default ResultCache, a ResultCache instance to
                use, or False/None to disable caching
            debug: Set an injected ``logger`` to DEBUG (env: KLEVER_SDK_DEBUG)
            allow_insecure: Permit plain http to remote hosts (env: KLEVER_SDK_ALLOW_INSECURE)
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValidationError: If the network cannot be resolved or ``url`` lacks a chain id
            ValueError: If an endpoint URL is insecure
        """
        if url is not None:
            if chain_id is None:
                raise ValidationError("chain_id is required when url is given", {"url": url})
            network = {"url": url, "chainId": chain_id}

        self.settings = SDKSettings.from_env(
            timeout=timeout, retries=retries, debug=debug, allow_insecure=allow_insecure
        )
        self.network: NetworkRecord = NetworkRegistry.resolve(network)
        self.logger = logger or logging.getLogger(__name__)
        self.debug = self.settings.debug
        if self.debug and logger is not None:
            logger.setLevel(logging.DEBUG)

        client_options = dict(
            timeout=self.settings.timeout,
            retries=self.settings.retries,
            headers=headers,
            allow_insecure=self.settings.allow_insecure,
            logger=self.logger,
        )
        self.api = RequestClient(NetworkRegistry.get_endpoint(self.network, "api"), **client_options)
        self.node = RequestClient(NetworkRegistry.get_endpoint(self.network, "node"), **client_options)

        if cache is True:
            self.cache: Optional[ResultCache] = ResultCache()
        elif isinstance(cache, ResultCache):
            self.cache = cache
        else:
            self.cache = None

        self._listeners: Dict[ProviderEvent, List[Callable[[Any], None]]] = {
            event: [] for event in ProviderEvent
        }
        self._listeners_lock = threading.RLock()

        self.logger.debug(f"Provider ready for {self.network.identifier} (chain {self.network.chain_id})")

    # ------------------------------------------------------------------
    # Network information
    # ------------------------------------------------------------------

    def get_network(self) -> NetworkRecord:
        return self.network

    def get_network_name(self) -> str:
        return self.network.identifier

    def get_transaction_url(self, tx_hash: str) -> str:
        explorer = self.network.endpoints.explorer
        if not explorer:
            raise ValidationError(
                f"Network {self.network.identifier} has no explorer endpoint",
                {"network": self.network.identifier}
            )
        return f"{explorer.rstrip('/')}/transaction/{tx_hash}"

    def clear_cache(self) -> None:
        if self.cache is not None:
            self.cache.clear()
        self.logger.debug("Cache cleared")

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: Union[ProviderEvent, str], handler: Callable[[Any], None]) -> None:
        """
        Register a handler.

        Handlers receive a Block for ``block``, a transaction hash for
        ``transaction`` and the raised KleverSDKError for ``error``.
        """
        event = ProviderEvent(event)
        with self._listeners_lock:
            self._listeners[event].append(handler)

    def off(self, event: Union[ProviderEvent, str], handler: Callable[[Any], None]) -> bool:
        event = ProviderEvent(event)
        with self._listeners_lock:
            try:
                self._listeners[event].remove(handler)
            except ValueError:
                return False
        return True

    def _emit(self, event: ProviderEvent, payload: Any) -> None:
        expected = EVENT_PAYLOADS[event]
        if not isinstance(payload, expected):
            raise TypeError(f"{event.value} event expects {expected.__name__}, got {type(payload).__name__}")
        with self._listeners_lock:
            handlers = list(self._listeners[event])
        for handler in handlers:
            try:
                handler(payload)
            except Exception as e:
                self.logger.warning(f"{event.value} handler {handler!r} raised: {e}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _check_address(address: str) -> None:
        if not is_valid_address(address):
            raise ValidationError(f"Invalid address: {address}", {"address": address})

    def _cached(self, key: str) -> Any:
        if self.cache is None:
            return None
        return self.cache.get(key)

    def _store(self, key: str, value: Any) -> None:
        if self.cache is not None:
            self.cache.set(key, value)

    def get_account(self, address: str, skip_cache: bool = False) -> Account:
        """
        Get account state.

        Args:
            address: Account address
            skip_cache: Always query the API (the fresh result is still cached)

        Returns:
            Account with integer balances

        Raises:
            ValidationError: If the address is malformed
            NetworkError: If the API reports an error or returns no account
        """
        self._check_address(address)
        key = f"account:{address}"
        if not skip_cache:
            cached = self._cached(key)
            if cached is not None:
                return cached

        context = {"address": address}
        response = self.api.get(f"/v1.0/address/{address}")
        if not isinstance(response, dict):
            raise NetworkError("Malformed account response", context)
        if response.get("error"):
            raise NetworkError(str(response["error"]), context)
        raw_account = get_path(response, "data.account")
        if not raw_account:
            raise NetworkError("Account not found", context)

        try:
            account = Account.model_validate(raw_account)
        except pydantic.ValidationError as e:
            raise NetworkError(f"Malformed account data: {e}", context) from e
        self._store(key, account)
        return account

    def get_balance(self, address: str, asset_id: str = NATIVE_ASSET) -> int:
        """Balance of ``asset_id`` held by ``address``; 0 when the account lacks the asset."""
        return self.get_account(address).balance_of(asset_id)

    def get_nonce(self, address: str) -> int:
        """Current nonce of ``address`` as seen by the node."""
        self._check_address(address)
        response = self.node.get(f"/address/{address}/nonce")
        nonce = get_path(response, "data.nonce")
        if nonce is None:
            error = get_path(response, "error") or "Nonce missing from node response"
            raise NetworkError(str(error), {"address": address})
        return int(nonce)

    def get_transaction(self, tx_hash: str, skip_cache: bool = False) -> TransactionInfo:
        """
        Get a transaction with its receipts.

        Only final (successful or failed) transactions are cached.

        Raises:
            TransactionNotFoundError: If the ledger does not know the hash
            NetworkError: If the API reports any other error
        """
        key = f"tx:{tx_hash}"
        if not skip_cache:
            cached = self._cached(key)
            if cached is not None:
                return cached

        context = {"hash": tx_hash}
        try:
            response = self.api.get(f"/v1.0/transaction/{tx_hash}?withResults=true")
        except HTTPStatusError as e:
            if e.status_code == 404:
                raise TransactionNotFoundError(f"Transaction not found: {tx_hash}", context) from e
            raise

        if not isinstance(response, dict):
            raise NetworkError("Malformed transaction response", context)
        error = response.get("error")
        if error:
            if "not found" in str(error).lower():
                raise TransactionNotFoundError(str(error), context)
            raise NetworkError(str(error), context)
        raw_tx = get_path(response, "data.transaction")
        if not raw_tx:
            raise TransactionNotFoundError(f"Transaction not found: {tx_hash}", context)

        try:
            tx = TransactionInfo.model_validate(raw_tx)
        except pydantic.ValidationError as e:
            raise NetworkError(f"Malformed transaction data: {e}", context) from e
        if not tx.is_pending:
            self._store(key, tx)
        return tx

    def get_transaction_receipt(self, tx_hash: str) -> Optional[List[Dict[str, Any]]]:
        """Receipts of a transaction, or None if the transaction is not known yet."""
        try:
            tx = self.get_transaction(tx_hash)
        except TransactionNotFoundError:
            return None
        return list(tx.receipts)

    def get_block_number(self) -> int:
        """
        Current chain height from the node overview.

        Raises:
            NetworkError: If the overview carries no nonce
        """
        response = self.node.get("/node/overview")
        nonce = get_path(response, "data.overview.nonce")
        if nonce is None:
            raise NetworkError("Node overview did not include a block nonce", {"response": response})
        return int(nonce)

    def get_block(self, identifier: BlockIdentifier = "latest") -> Optional[Block]:
        """
        Get a block by nonce, hash or ``"latest"``.

        Returns:
            The Block, or None whenever the block cannot be found

        Raises:
            ValidationError: If the identifier is not a non-negative int or a string
        """
        if isinstance(identifier, bool) or (isinstance(identifier, int) and identifier < 0):
            raise ValidationError(f"Invalid block identifier: {identifier!r}", {"identifier": identifier})

        try:
            if identifier == "latest":
                identifier = self.get_block_number()
            if isinstance(identifier, int):
                response = self.api.get(f"/v1.0/block/by-nonce/{identifier}")
            else:
                response = self.api.get(f"/v1.0/block/by-hash/{identifier}")
        except NetworkError as e:
            self.logger.debug(f"Block {identifier} not available: {e}")
            return None

        if not isinstance(response, dict) or response.get("error"):
            return None
        raw_block = get_path(response, "data.block")
        if not raw_block:
            return None
        try:
            block = Block.model_validate(raw_block)
        except pydantic.ValidationError as e:
            raise NetworkError(f"Malformed block data: {e}", {"identifier": identifier}) from e
        self._emit(ProviderEvent.BLOCK, block)
        return block

    def query_contract(self, request: Mapping[str, Any]) -> ContractQueryResult:
        """
        Run a read-only smart contract query.

        Args:
            request: ``{"ScAddress": ..., "FuncName": ..., "Arguments": [...]}``

        Returns:
            ContractQueryResult; API errors are reported in ``error``/``code``
        """
        try:
            response = self.api.post("/v1.0/sc/query", dict(request))
        except HTTPStatusError as e:
            if not e.is_client_error:
                raise
            return ContractQueryResult(error=e.body or str(e), code=e.status_code)

        response = response if isinstance(response, dict) else {}
        if response.get("error"):
            return ContractQueryResult(error=str(response["error"]), code=response.get("code"))
        try:
            return ContractQueryResult(data=response.get("data"), code=response.get("code"))
        except pydantic.ValidationError as e:
            raise NetworkError(f"Malformed contract query result: {e}", {"request": dict(request)}) from e

    def request_faucet_funds(self, address: str, amount: Optional[Union[int, str]] = None) -> FaucetResult:
        """
        Ask the testnet faucet to fund ``address``.

        Raises:
            ValidationError: On a non-test network or a malformed address
            NetworkError: If the faucet reports an error
        """
        if not self.network.is_testnet:
            raise ValidationError(
                f"Faucet is not available on {self.network.identifier}",
                {"network": self.network.identifier}
            )
        self._check_address(address)

        body = {"amount": str(to_amount(amount))} if amount is not None else {}
        context = {"address": address, **body}
        response = self.api.post(f"/v1.0/transaction/send-user-funds/{address}", body)
        if not isinstance(response, dict):
            raise NetworkError("Malformed faucet response", context)
        if response.get("error"):
            raise NetworkError(str(response["error"]), context)
        return FaucetResult.model_validate(response.get("data") or {})

    def estimate_fee(self, tx: Optional[TransactionLike] = None) -> FeeEstimate:
        """Fee estimate placeholder; every field is zero."""
        self.logger.debug("Fee estimation is not supported by this provider, returning zeros")
        return FeeEstimate()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def _serialize(tx: TransactionLike) -> Dict[str, Any]:
        if isinstance(tx, Transaction):
            return tx.to_wire()
        if isinstance(tx, Mapping):
            return dict(tx)
        raise ValidationError(
            f"Cannot broadcast object of type {type(tx).__name__}", {"transaction": repr(tx)}
        )

    def broadcast_transaction(self, tx: TransactionLike) -> str:
        """
        Broadcast one signed transaction.

        Returns:
            The transaction hash reported by the node

        Raises:
            TransactionError: If the node rejects the transaction or returns no hash
        """
        return self._broadcast([tx])[0]

    def broadcast_transactions(self, txs: Sequence[TransactionLike]) -> List[str]:
        """
        Broadcast several signed transactions in one request.

        Raises:
            ValidationError: If ``txs`` is empty (nothing is sent)
            TransactionError: If the node rejects the batch or returns no hashes
        """
        txs = list(txs)
        if not txs:
            raise ValidationError("At least one transaction is required")
        return self._broadcast(txs)

    def send_raw_transaction(self, raw: Union[str, bytes]) -> str:
        """Broadcast an already serialised transaction given as hex or bytes."""
        return self.broadcast_transaction({"tx": raw.hex() if isinstance(raw, bytes) else raw})

    def send_raw_transactions(self, raws: Sequence[Union[str, bytes]]) -> List[str]:
        return self.broadcast_transactions(
            [{"tx": raw.hex() if isinstance(raw, bytes) else raw} for raw in raws]
        )

    def _fail(self, error: KleverSDKError) -> KleverSDKError:
        self._emit(ProviderEvent.ERROR, error)
        return error

    def _broadcast(self, txs: List[TransactionLike]) -> List[str]:
        payload = {"txs": [self._serialize(tx) for tx in txs]}
        context = {"count": len(txs), "request": payload}
        self.logger.debug(f"Broadcasting {len(txs)} transaction(s)")

        try:
            response = self.node.post("/transaction/broadcast", payload)
        except NetworkError as e:
            raise self._fail(TransactionError(f"Broadcast failed: {e}", context)) from e

        response = response if isinstance(response, dict) else {}
        code = response.get("code")
        if response.get("error"):
            raise self._fail(TransactionError(
                f"Broadcast failed: {response['error']}", context, code=None if code is None else str(code)
            ))
        if code not in SUCCESS_CODES:
            message = response.get("message") or "no message"
            raise self._fail(TransactionError(
                f"Broadcast failed with code {code}: {message}", context, code=str(code)
            ))

        data = response.get("data") or {}
        hashes = data.get("txsHashes") or ([data["txHash"]] if data.get("txHash") else [])
        if not hashes:
            raise self._fail(TransactionError("broadcast succeeded but no hash returned", context))

        for tx_hash in hashes:
            self.logger.info(f"Transaction broadcast: {tx_hash}")
            self._emit(ProviderEvent.TRANSACTION, tx_hash)
        return list(hashes)

    def build_transaction(self, request: Mapping[str, Any]) -> BuildTransactionResponse:
        """
        Have the node assemble an unsigned transaction.

        A missing nonce is fetched from the node when a sender is given.

        Args:
            request: Body produced by TransactionBuilder.build_request()

        Returns:
            BuildTransactionResponse with the wire transaction and its hash

        Raises:
            ValidationError: If the request has no contracts
            TransactionError: If the nonce lookup or the build fails
        """
        request = dict(request)
        if not request.get("contracts"):
            raise ValidationError("At least one contract is required", {"request": request})

        try:
            if request.get("sender") and request.get("nonce") is None:
                request["nonce"] = self.get_nonce(request["sender"])
            response = self.node.post("/transaction/send", request)
        except (NetworkError, ValidationError) as e:
            raise self._fail(
                TransactionError(f"Failed to build transaction: {e}", {"request": request})
            ) from e

        response = response if isinstance(response, dict) else {}
        if response.get("error"):
            code = response.get("code")
            raise self._fail(TransactionError(
                f"Failed to build transaction: {response['error']}",
                {"request": request},
                code=None if code is None else str(code)
            ))

        data = response.get("data")
        if not isinstance(data, dict) or not data:
            raise self._fail(TransactionError(
                "Failed to build transaction: empty response", {"request": request}
            ))
        result = data.get("result", data)
        if not isinstance(result, dict):
            raise self._fail(TransactionError(
                "Failed to build transaction: malformed result", {"request": request}
            ))
        return BuildTransactionResponse(result=result, txHash=data.get("txHash"), request=request)

    # ------------------------------------------------------------------
    # Confirmation polling
    # ------------------------------------------------------------------

    def wait_for_transaction(
        self,
        tx_hash: str,
        confirmations: int = 1,
        on_progress: Optional[ProgressCallback] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        cancel: Optional[threading.Event] = None
    ) -> Optional[TransactionInfo]:
        """
        Poll until a transaction is final.

        A failed transaction is returned as soon as it is seen; it is never
        retried. A successful one is returned once it has ``confirmations``
        blocks (its own included).

        Args:
            tx_hash: Hash to wait for
            confirmations: Required confirmations
            on_progress: Called with a TransactionProgress on every unresolved tick
            poll_interval: Seconds between polls
            max_attempts: Number of polls before giving up
            cancel: Optional event; when set, polling stops with None

        Returns:
            The final TransactionInfo, or None on timeout or cancellation

        Raises:
            NetworkError: Any failure other than "not found yet"
        """
        if max_attempts < 1:
            raise ValidationError("max_attempts must be at least 1", {"max_attempts": max_attempts})

        def report(status: ProgressStatus, attempt: int, tx: Optional[TransactionInfo], seen: int = 0) -> None:
            if on_progress is not None:
                on_progress(TransactionProgress(
                    status=status,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    confirmations=seen,
                    required_confirmations=confirmations,
                    transaction=tx,
                ))

        for attempt in range(1, max_attempts + 1):
            if cancel is not None and cancel.is_set():
                report(ProgressStatus.CANCELLED, attempt, None)
                return None

            try:
                tx: Optional[TransactionInfo] = self.get_transaction(tx_hash, skip_cache=True)
            except TransactionNotFoundError:
                tx = None
            last_attempt = attempt == max_attempts

            if tx is None or tx.is_pending:
                if last_attempt:
                    self.logger.info(f"Gave up waiting for {tx_hash} after {attempt} attempts")
                    report(ProgressStatus.TIMEOUT, attempt, tx)
                    return None
                report(ProgressStatus.PENDING, attempt, tx)
            elif tx.is_failed:
                self.logger.info(f"Transaction {tx_hash} failed with status {tx.status}")
                return tx
            else:
                if confirmations <= 1:
                    return tx
                seen = 0
                if tx.block_num is not None:
                    seen = self.get_block_number() - tx.block_num + 1
                if seen >= confirmations:
                    return tx
                if last_attempt:
                    self.logger.info(
                        f"Gave up waiting for {tx_hash}: {seen}/{confirmations} confirmations"
                    )
                    report(ProgressStatus.TIMEOUT, attempt, tx, seen)
                    return None
                report(ProgressStatus.CONFIRMING, attempt, tx, seen)

            time.sleep(poll_interval)
        return None

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    def batch(self, calls: Iterable[Callable[[], T]], max_workers: Optional[int] = None) -> List[T]:
        """
        Run request callables concurrently.

        Returns:
            Results in the same order as ``calls``; the first failure (in input
            order) is raised
        """
        calls = list(calls)
        if not calls:
            return []
        workers = max_workers or min(len(calls), DEFAULT_BATCH_WORKERS)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(call) for call in calls]
            return [future.result() for future in futures]

    def close(self) -> None:
        self.api.close()
        self.node.close()

    def __enter__(self) -> "LedgerProvider":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
