"""
TransactionBuilder - fluent construction of multi-contract transactions.

Three ways to finish a transaction:

1. ``build_request()`` renders the request body for the node's build endpoint
2. ``build_proto(...)`` assembles an unsigned transaction offline
3. ``build()`` asks the node (through a provider) to assemble it
"""
import base64
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING, Union

from .contracts import (
    Claim, ContractOperation, ContractType, CreateAsset, CreateValidator,
    Delegate, Freeze, SmartContract, Transfer, Undelegate,
    Unfreeze, Vote, Withdraw, parse_operation,
)
from .exceptions import ValidationError
from .transaction import KDAFee, RawData, Transaction
from .utils import AmountLike, NATIVE_ASSET, decode_address, is_valid_address, to_amount

if TYPE_CHECKING:
    from .provider import LedgerProvider

OperationInput = Union[ContractOperation, Mapping[str, Any]]


class TransactionBuilder:
    """
    Accumulates contract operations and transaction metadata.

    Every mutator validates its input immediately and returns the builder, so
    calls can be chained. An invalid call leaves the builder unchanged.
    """

    def __init__(self, provider: Optional["LedgerProvider"] = None):
        self._provider = provider
        self._chain_id: Optional[str] = None
        self._operations: List[ContractOperation] = []
        self._sender: Optional[str] = None
        self._nonce: Optional[int] = None
        self._kda_fee: Optional[Dict[str, Any]] = None
        self._permission_id: Optional[int] = None
        self._data: Optional[List[str]] = None

    @classmethod
    def create(cls, provider: Optional["LedgerProvider"] = None) -> "TransactionBuilder":
        return cls(provider)

    @property
    def operations(self) -> List[ContractOperation]:
        return list(self._operations)

    def get_provider(self) -> Optional["LedgerProvider"]:
        return self._provider

    def set_provider(self, provider: "LedgerProvider") -> "TransactionBuilder":
        self._provider = provider
        return self

    def set_chain_id(self, chain_id: Union[str, int]) -> "TransactionBuilder":
        self._chain_id = str(chain_id)
        return self

    # ------------------------------------------------------------------
    # Transaction metadata
    # ------------------------------------------------------------------

    def sender(self, address: str) -> "TransactionBuilder":
        if not is_valid_address(address):
            raise ValidationError(f"Invalid sender address: {address}", {"address": address})
        self._sender = address
        return self

    def nonce(self, nonce: int) -> "TransactionBuilder":
        if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce < 0:
            raise ValidationError("Nonce must be non-negative", {"nonce": nonce})
        self._nonce = nonce
        return self

    def kda_fee(self, kda: str, amount: AmountLike) -> "TransactionBuilder":
        """
        Pay fees in a KDA asset instead of KLV.

        Raises:
            ValidationError: If the asset is empty or KLV, or the amount is negative
        """
        if not kda:
            raise ValidationError("KDA fee asset ID is required")
        if kda == NATIVE_ASSET:
            raise ValidationError(
                "KDA fee cannot be KLV - use KAppFee and BandwidthFee instead",
                {"asset_id": kda}
            )
        value = to_amount(amount)
        if value < 0:
            raise ValidationError("KDA fee amount must be non-negative", {"amount": value})
        self._kda_fee = {"kda": kda, "amount": value}
        return self

    def permission_id(self, permission_id: int) -> "TransactionBuilder":
        self._permission_id = permission_id
        return self

    def data(self, data: List[str]) -> "TransactionBuilder":
        self._data = list(data)
        return self

    # ------------------------------------------------------------------
    # Contract operations
    # ------------------------------------------------------------------

    def add_contract(self, operation: OperationInput) -> "TransactionBuilder":
        """
        Add an operation, routing it through the typed method for its type.

        Accepts a ContractOperation or a ``{"contractType": n, ...}`` mapping.
        Types without a typed method are appended unchanged.
        """
        parsed = parse_operation(operation)
        handler = _DISPATCH.get(parsed.type_id)
        if handler is None:
            return self._append(parsed)
        return handler(self, parsed)

    def _append(self, operation: ContractOperation) -> "TransactionBuilder":
        self._operations.append(operation)
        return self

    def transfer(
        self,
        receiver: Union[str, Transfer],
        amount: Optional[AmountLike] = None,
        kda: Optional[str] = None,
        kda_royalties: Optional[AmountLike] = None,
        klv_royalties: Optional[AmountLike] = None
    ) -> "TransactionBuilder":
        """
        Add a transfer.

        Raises:
            ValidationError: If the receiver is not a valid address or the amount is not positive
        """
        op = receiver if isinstance(receiver, Transfer) else None
        if op is not None:
            receiver, amount = op.receiver, op.amount
        if not is_valid_address(receiver):
            raise ValidationError(f"Invalid recipient address: {receiver}", {"address": receiver})
        value = 0 if amount is None else to_amount(amount)
        if value <= 0:
            raise ValidationError("Transfer amount must be positive", {"amount": amount})

        if op is None:
            op = Transfer(
                receiver=receiver,
                amount=value,
                kda=kda or None,
                kda_royalties=kda_royalties or None,
                klv_royalties=klv_royalties or None,
            )
        return self._append(op)

    def freeze(self, amount: Union[AmountLike, Freeze], kda: Optional[str] = None) -> "TransactionBuilder":
        op = amount if isinstance(amount, Freeze) else None
        value = op.amount if op is not None else to_amount(amount)
        if value <= 0:
            raise ValidationError("Freeze amount must be positive", {"amount": value})
        return self._append(op or Freeze(amount=value, kda=kda or None))

    def unfreeze(self, kda: Union[str, Unfreeze, None], bucket_id: Optional[str] = None) -> "TransactionBuilder":
        """Unfreeze a bucket; ``bucket_id`` is only needed for KLV."""
        if isinstance(kda, Unfreeze):
            return self._append(kda)
        if not kda:
            raise ValidationError("KDA is required for unfreeze")
        return self._append(Unfreeze(kda=kda, bucket_id=bucket_id or None))

    def delegate(self, receiver: Union[str, Delegate], bucket_id: Optional[str] = None) -> "TransactionBuilder":
        if isinstance(receiver, Delegate):
            receiver, bucket_id = receiver.receiver, receiver.bucket_id
        if not is_valid_address(receiver):
            raise ValidationError(f"Invalid validator address: {receiver}", {"address": receiver})
        return self._append(Delegate(receiver=receiver, bucket_id=bucket_id or None))

    def undelegate(self, bucket_id: Union[str, Undelegate, None]) -> "TransactionBuilder":
        if isinstance(bucket_id, Undelegate):
            return self._append(bucket_id)
        if not bucket_id:
            raise ValidationError("Bucket ID is required for undelegate")
        return self._append(Undelegate(bucket_id=bucket_id))

    def withdraw(
        self,
        withdraw_type: Union[int, Withdraw],
        kda: Optional[str] = None,
        amount: Optional[AmountLike] = None,
        currency_id: Optional[str] = None
    ) -> "TransactionBuilder":
        if isinstance(withdraw_type, Withdraw):
            return self._append(withdraw_type)
        return self._append(Withdraw(
            withdraw_type=withdraw_type,
            kda=kda,
            amount=None if amount is None else to_amount(amount),
            currency_id=currency_id,
        ))

    def claim(self, claim_type: Union[int, Claim], id: Optional[str] = None) -> "TransactionBuilder":
        if isinstance(claim_type, Claim):
            return self._append(claim_type)
        return self._append(Claim(claim_type=claim_type, id=id))

    def create_asset(self, params: Union[CreateAsset, Mapping[str, Any]]) -> "TransactionBuilder":
        return self._append(_as_model(CreateAsset, params))

    def create_validator(self, params: Union[CreateValidator, Mapping[str, Any]]) -> "TransactionBuilder":
        return self._append(_as_model(CreateValidator, params))

    def vote(self, params: Union[Vote, Mapping[str, Any]]) -> "TransactionBuilder":
        return self._append(_as_model(Vote, params))

    def smart_contract(self, params: Union[SmartContract, Mapping[str, Any]]) -> "TransactionBuilder":
        op = _as_model(SmartContract, params)
        if not is_valid_address(op.address):
            raise ValidationError(f"Invalid contract address: {op.address}", {"address": op.address})
        return self._append(op)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _require_operations(self) -> None:
        if not self._operations:
            raise ValidationError("At least one contract is required")

    def _has_smart_contract(self) -> bool:
        return any(op.type_id == ContractType.SMART_CONTRACT for op in self._operations)

    def build_request(self) -> Dict[str, Any]:
        """
        Render the request body for the node's build endpoint.

        Returns:
            ``{"contracts": [...]}`` plus sender, nonce, kdaFee, permissionId
            and data when they were set

        Raises:
            ValidationError: If no operation was added
        """
        self._require_operations()
        request: Dict[str, Any] = {
            "contracts": [op.to_request() for op in self._operations]
        }
        if self._sender is not None:
            request["sender"] = self._sender
        if self._nonce is not None:
            request["nonce"] = self._nonce
        if self._kda_fee is not None:
            request["kdaFee"] = self._kda_fee["kda"]
        if self._permission_id is not None:
            request["permissionId"] = self._permission_id
        if self._data is not None:
            if self._has_smart_contract():
                request["data"] = [
                    base64.b64encode(item.encode("utf-8")).decode("ascii") for item in self._data
                ]
            else:
                request["data"] = list(self._data)
        return request

    def build_proto(
        self,
        chain_id: Optional[Union[str, int]] = None,
        sender: Optional[str] = None,
        nonce: Optional[int] = None,
        fees: Optional[Mapping[str, AmountLike]] = None,
        kda_fee: Optional[Mapping[str, Any]] = None,
        permission_id: Optional[int] = None,
        data: Optional[List[str]] = None
    ) -> Transaction:
        """
        Assemble an unsigned transaction without talking to a node.

        Arguments override the builder state when given.

        Args:
            chain_id: Chain id; falls back to set_chain_id() then the provider's network
            sender: Sender address
            nonce: Sender nonce; never fetched and never defaulted
            fees: ``{"kapp_fee": ..., "bandwidth_fee": ...}``; each defaults to 0
            kda_fee: ``{"kda": ..., "amount": ...}``
            permission_id: Permission id
            data: Free-form data strings

        Returns:
            Unsigned Transaction with every operation encoded in RawData.Contract

        Raises:
            ValidationError: If operations, chain id, sender or nonce are missing
        """
        self._require_operations()

        resolved_chain_id = chain_id if chain_id is not None else self._chain_id
        if resolved_chain_id is None and self._provider is not None:
            resolved_chain_id = self._provider.get_network().chain_id
        if not resolved_chain_id:
            raise ValidationError(
                "Chain ID is required. Set via set_chain_id() or attach a provider"
            )

        sender = sender if sender is not None else self._sender
        if not sender:
            raise ValidationError("Sender address is required. Set via sender() or the sender argument")
        sender_bytes = decode_address(sender)

        nonce = nonce if nonce is not None else self._nonce
        if nonce is None:
            raise ValidationError("Nonce is required. Set via nonce() or the nonce argument")

        kda_fee = kda_fee if kda_fee is not None else self._kda_fee
        permission_id = permission_id if permission_id is not None else self._permission_id
        data = data if data is not None else self._data
        fees = fees or {}

        raw = RawData(
            nonce=nonce,
            sender=sender_bytes,
            contract=[op.to_raw_contract() for op in self._operations],
            permission_id=permission_id,
            data=[item.encode("utf-8") for item in data] if data else None,
            kapp_fee=to_amount(fees.get("kapp_fee", 0)),
            bandwidth_fee=to_amount(fees.get("bandwidth_fee", 0)),
            chain_id=str(resolved_chain_id).encode("utf-8"),
            kda_fee=KDAFee(
                kda=kda_fee["kda"].encode("utf-8"), amount=to_amount(kda_fee.get("amount", 0))
            ) if kda_fee and kda_fee.get("kda") else None,
        )
        return Transaction(raw_data=raw)

    def build(self) -> Transaction:
        """
        Have the node assemble the transaction through the attached provider.

        Raises:
            ValidationError: If no provider is attached or no operation was added
            TransactionError: If the node rejects the request
        """
        if self._provider is None:
            raise ValidationError(
                "Provider required for node-assisted building. Use build_proto() for offline building."
            )
        self._require_operations()
        response = self._provider.build_transaction(self.build_request())
        return Transaction.from_wire(response.result, node_hash=response.tx_hash)

    def reset(self) -> "TransactionBuilder":
        """Forget operations and per-transaction fields; keep provider and chain id."""
        self._operations = []
        self._sender = None
        self._nonce = None
        self._kda_fee = None
        self._permission_id = None
        self._data = None
        return self


def _as_model(model, params):
    if isinstance(params, model):
        return params
    return parse_operation({**dict(params), "contractType": int(model.contract_type)})


_DISPATCH = {
    ContractType.TRANSFER: TransactionBuilder.transfer,
    ContractType.CREATE_ASSET: TransactionBuilder.create_asset,
    ContractType.CREATE_VALIDATOR: TransactionBuilder.create_validator,
    ContractType.FREEZE: TransactionBuilder.freeze,
    ContractType.UNFREEZE: TransactionBuilder.unfreeze,
    ContractType.DELEGATE: TransactionBuilder.delegate,
    ContractType.UNDELEGATE: TransactionBuilder.undelegate,
    ContractType.WITHDRAW: TransactionBuilder.withdraw,
    ContractType.CLAIM: TransactionBuilder.claim,
    ContractType.VOTE: TransactionBuilder.vote,
    ContractType.SMART_CONTRACT: TransactionBuilder.smart_contract,
}
