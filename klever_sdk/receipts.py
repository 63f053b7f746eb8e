"""
Receipt parsers: typed results from the loose receipts of a mined transaction.

Each parser takes a transaction (a TransactionInfo or the raw API mapping),
finds the receipts of its kind and promotes the first one to top-level
fields. When a transaction produced several receipts of that kind, all of
them are also returned in a plural field (``freezes``, ``withdrawals``,
``transfers``); with a single receipt that field is None.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .exceptions import ParseError, ValidationError
from .models import TransactionInfo
from .utils import NATIVE_ASSET, get_path, get_path_number, to_amount

TransactionSource = Union[TransactionInfo, Mapping[str, Any]]

RECEIPT_TRANSFER = 0
RECEIPT_FREEZE = 3
RECEIPT_UNFREEZE = 4
RECEIPT_DELEGATE = 7
RECEIPT_WITHDRAW = 18


@dataclass(frozen=True)
class FreezeEntry:
    bucket_id: str
    amount: int
    kda: str


@dataclass(frozen=True)
class FreezeReceiptData:
    bucket_id: str
    amount: int
    kda: str
    raw: Any
    freezes: Optional[Tuple[FreezeEntry, ...]] = None


@dataclass(frozen=True)
class UnfreezeReceiptData:
    bucket_id: str
    kda: str
    raw: Any
    available_at: Optional[int] = None


@dataclass(frozen=True)
class ClaimReward:
    kda: str
    amount: int


@dataclass(frozen=True)
class ClaimReceiptData:
    rewards: Tuple[ClaimReward, ...]
    total_claimed: int
    raw: Any
    claim_type: Optional[int] = None


@dataclass(frozen=True)
class WithdrawEntry:
    amount: int
    kda: str


@dataclass(frozen=True)
class WithdrawReceiptData:
    amount: int
    kda: str
    raw: Any
    withdraw_type: Optional[int] = None
    withdrawals: Optional[Tuple[WithdrawEntry, ...]] = None


@dataclass(frozen=True)
class DelegateReceiptData:
    validator: str
    bucket_id: str
    raw: Any


@dataclass(frozen=True)
class UndelegateReceiptData:
    bucket_id: str
    raw: Any
    available_at: Optional[int] = None


@dataclass(frozen=True)
class TransferEntry:
    sender: str
    receiver: str
    amount: int
    kda: str


@dataclass(frozen=True)
class TransferReceiptData:
    sender: str
    receiver: str
    amount: int
    kda: str
    raw: Any
    transfers: Optional[Tuple[TransferEntry, ...]] = None


def _receipts_of(tx: TransactionSource, operation: str) -> List[Dict[str, Any]]:
    receipts = get_path(tx, "receipts")
    if not receipts:
        raise ParseError(f"No receipts found in {operation} transaction", tx, operation)
    return list(receipts)


def _matching(
    tx: TransactionSource,
    receipts: List[Dict[str, Any]],
    receipt_type: int,
    type_string: str,
    operation: str,
    missing_message: str
) -> List[Dict[str, Any]]:
    found = [
        r for r in receipts
        if isinstance(r, Mapping) and (r.get("type") == receipt_type or r.get("typeString") == type_string)
    ]
    if not found:
        raise ParseError(missing_message, tx, operation)
    return found


def _amount(value: Any, tx: TransactionSource, operation: str) -> int:
    if value is None or value == "":
        return 0
    try:
        return to_amount(value)
    except ValidationError as e:
        raise ParseError(f"Invalid amount {value!r} in {operation} receipt", tx, operation) from e


def _epoch(value: Any) -> Optional[int]:
    if not value:
        return None
    try:
        return to_amount(value)
    except ValidationError:
        return None


def _bucket_id(receipt: Mapping[str, Any]) -> Optional[str]:
    return receipt.get("bucketId") or receipt.get("bucketID")


def freeze(tx: TransactionSource) -> FreezeReceiptData:
    """
    Parse a Freeze transaction.

    Raises:
        ParseError: If there are no receipts, no freeze receipt, or no bucket id
    """
    receipts = _receipts_of(tx, "freeze")
    found = _matching(tx, receipts, RECEIPT_FREEZE, "Freeze", "freeze", "No freeze receipt found")

    first = found[0]
    bucket_id = _bucket_id(first)
    if not bucket_id:
        raise ParseError("BucketId not found in freeze receipt", tx, "freeze")

    freezes = None
    if len(found) > 1:
        freezes = tuple(
            FreezeEntry(
                bucket_id=_bucket_id(r) or "",
                amount=_amount(r.get("value") or r.get("amount"), tx, "freeze"),
                kda=r.get("assetId") or NATIVE_ASSET,
            )
            for r in found
        )

    return FreezeReceiptData(
        bucket_id=bucket_id,
        amount=_amount(first.get("value") or first.get("amount"), tx, "freeze"),
        kda=first.get("assetId") or NATIVE_ASSET,
        freezes=freezes,
        raw=tx,
    )


def unfreeze(tx: TransactionSource) -> UnfreezeReceiptData:
    receipts = _receipts_of(tx, "unfreeze")
    first = _matching(
        tx, receipts, RECEIPT_UNFREEZE, "Unfreeze", "unfreeze", "No unfreeze receipt found"
    )[0]

    bucket_id = _bucket_id(first)
    if not bucket_id:
        raise ParseError("BucketId not found in unfreeze receipt", tx, "unfreeze")

    return UnfreezeReceiptData(
        bucket_id=bucket_id,
        kda=first.get("assetId") or NATIVE_ASSET,
        available_at=_epoch(first.get("availableEpoch")),
        raw=tx,
    )


def claim(tx: TransactionSource) -> ClaimReceiptData:
    """
    Parse a Claim transaction.

    Every receipt of a claim is a reward line, so there is no type filter.
    The claim type comes from the first contract's parameters.
    """
    receipts = _receipts_of(tx, "claim")

    rewards = []
    for r in receipts:
        if not isinstance(r, Mapping):
            raise ParseError(f"Malformed receipt {r!r} in claim transaction", tx, "claim")
        asset_id = r.get("assetId") if isinstance(r.get("assetId"), str) else NATIVE_ASSET
        rewards.append(ClaimReward(kda=asset_id, amount=_amount(r.get("amount"), tx, "claim")))

    return ClaimReceiptData(
        rewards=tuple(rewards),
        total_claimed=sum(reward.amount for reward in rewards),
        claim_type=get_path_number(tx, "contract[0].parameter.claimType"),
        raw=tx,
    )


def withdraw(tx: TransactionSource) -> WithdrawReceiptData:
    receipts = _receipts_of(tx, "withdraw")
    found = _matching(
        tx, receipts, RECEIPT_WITHDRAW, "Withdraw", "withdraw", "No withdraw receipt found"
    )

    first = found[0]
    withdrawals = None
    if len(found) > 1:
        withdrawals = tuple(
            WithdrawEntry(
                amount=_amount(r.get("amount"), tx, "withdraw"),
                kda=r.get("assetId") or NATIVE_ASSET,
            )
            for r in found
        )

    return WithdrawReceiptData(
        amount=_amount(first.get("amount"), tx, "withdraw"),
        kda=first.get("assetId") or NATIVE_ASSET,
        withdraw_type=get_path_number(tx, "contract[0].parameter.withdrawType"),
        withdrawals=withdrawals,
        raw=tx,
    )


def delegate(tx: TransactionSource) -> DelegateReceiptData:
    """
    Parse a Delegate transaction.

    The validator comes from the receipt, falling back to the contract's
    ``toAddress`` then ``receiver`` parameter.
    """
    receipts = _receipts_of(tx, "delegate")
    first = _matching(
        tx, receipts, RECEIPT_DELEGATE, "Delegate", "delegate", "No delegate receipt found"
    )[0]

    validator = (
        first.get("delegate")
        or get_path(tx, "contract[0].parameter.toAddress")
        or get_path(tx, "contract[0].parameter.receiver")
    )
    if not validator:
        raise ParseError("Validator address not found in delegate receipt", tx, "delegate")

    return DelegateReceiptData(
        validator=str(validator),
        bucket_id=_bucket_id(first) or "",
        raw=tx,
    )


def undelegate(tx: TransactionSource) -> UndelegateReceiptData:
    # The ledger records undelegation with a Delegate receipt
    receipts = _receipts_of(tx, "undelegate")
    first = _matching(
        tx, receipts, RECEIPT_DELEGATE, "Delegate", "undelegate",
        "No delegate receipt found in undelegate transaction"
    )[0]

    bucket_id = _bucket_id(first)
    if not bucket_id:
        raise ParseError("BucketId not found in undelegate receipt", tx, "undelegate")

    return UndelegateReceiptData(
        bucket_id=bucket_id,
        available_at=_epoch(first.get("availableEpoch")),
        raw=tx,
    )


def transfer(tx: TransactionSource) -> TransferReceiptData:
    """
    Parse a Transfer transaction.

    The sender defaults to the transaction sender when a receipt has no
    ``from``. Fan-out transfers list every leg in ``transfers``.

    Raises:
        ParseError: If there are no receipts, no transfer receipt, or no receiver
    """
    receipts = _receipts_of(tx, "transfer")
    found = _matching(
        tx, receipts, RECEIPT_TRANSFER, "Transfer", "transfer", "No transfer receipt found"
    )
    tx_sender = get_path(tx, "sender")

    first = found[0]
    receiver = first.get("to")
    if not receiver:
        raise ParseError("Receiver not found in transfer receipt", tx, "transfer")

    transfers = None
    if len(found) > 1:
        transfers = tuple(
            TransferEntry(
                sender=r.get("from") or tx_sender or "",
                receiver=r.get("to") or "",
                amount=_amount(r.get("value") or r.get("amount"), tx, "transfer"),
                kda=r.get("assetId") or NATIVE_ASSET,
            )
            for r in found
        )

    return TransferReceiptData(
        sender=first.get("from") or tx_sender or "",
        receiver=receiver,
        amount=_amount(first.get("value") or first.get("amount"), tx, "transfer"),
        kda=first.get("assetId") or NATIVE_ASSET,
        transfers=transfers,
        raw=tx,
    )
