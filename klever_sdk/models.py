"""
Data models for the Klever SDK.
"""
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from .utils import NATIVE_ASSET, optional_amount, to_amount

Amount = Annotated[int, BeforeValidator(to_amount)]
OptionalAmount = Annotated[Optional[int], BeforeValidator(optional_amount)]
ChainId = Annotated[str, BeforeValidator(lambda v: str(v) if isinstance(v, int) else v)]

FAILED_STATUSES = ("fail", "failed", "invalid")
SUCCESS_STATUSES = ("success", "successful")
CUSTOM_NETWORK_NAME = "custom"


class NetworkEndpoints(BaseModel):
    """Endpoint URLs of a network; unset endpoints are left out of dumps."""
    model_config = ConfigDict(frozen=True)

    api: Optional[str] = None
    node: Optional[str] = None
    ws: Optional[str] = None
    explorer: Optional[str] = None


class NativeCurrency(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = "Klever"
    symbol: str = NATIVE_ASSET
    decimals: int = 6


class NetworkRecord(BaseModel):
    """Resolved network: chain id, endpoints and native currency"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    chain_id: ChainId = Field(..., alias="chainId")
    endpoints: NetworkEndpoints
    is_testnet: bool = Field(True, alias="isTestnet")
    native_currency: NativeCurrency = Field(default_factory=NativeCurrency, alias="nativeCurrency")

    @property
    def identifier(self) -> str:
        if self.name == CUSTOM_NETWORK_NAME:
            return f"{CUSTOM_NETWORK_NAME}-{self.chain_id}"
        return self.name

    @property
    def api_url(self) -> Optional[str]:
        return self.endpoints.api

    @property
    def node_url(self) -> Optional[str]:
        return self.endpoints.node


class AssetBalance(BaseModel):
    """Balance of one asset held by an account"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    asset_id: str = Field(..., alias="assetId")
    balance: Amount = 0
    frozen_balance: Amount = Field(0, alias="frozenBalance")
    unfrozen_balance: Amount = Field(0, alias="unfrozenBalance")


class Account(BaseModel):
    """Account state as reported by the indexing API"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    address: str
    balance: Amount = 0
    nonce: int = 0
    name: Optional[str] = None
    assets: Dict[str, AssetBalance] = Field(default_factory=dict)

    @field_validator("assets", mode="before")
    @classmethod
    def _inject_asset_ids(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {
                asset_id: {"assetId": asset_id, **entry} if isinstance(entry, dict) else entry
                for asset_id, entry in value.items()
            }
        return value

    def balance_of(self, asset_id: str = NATIVE_ASSET) -> int:
        asset = self.assets.get(asset_id)
        if asset is not None:
            return asset.balance
        if asset_id == NATIVE_ASSET:
            return self.balance
        return 0


class TransactionInfo(BaseModel):
    """A transaction as indexed by the API, including its receipts"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    hash: str
    status: Optional[str] = None
    result_code: Optional[str] = Field(None, alias="resultCode")
    block_num: Optional[int] = Field(None, alias="blockNum")
    sender: Optional[str] = None
    nonce: Optional[int] = None
    timestamp: Optional[int] = None
    chain_id: Optional[ChainId] = Field(None, alias="chainID")
    kapp_fee: OptionalAmount = Field(None, alias="kAppFee")
    bandwidth_fee: OptionalAmount = Field(None, alias="bandwidthFee")
    contract: List[Dict[str, Any]] = Field(default_factory=list)
    receipts: List[Dict[str, Any]] = Field(default_factory=list)
    data: Optional[List[str]] = None

    @field_validator("contract", "receipts", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def is_failed(self) -> bool:
        return (self.status or "").lower() in FAILED_STATUSES

    @property
    def is_successful(self) -> bool:
        return (self.status or "").lower() in SUCCESS_STATUSES

    @property
    def is_pending(self) -> bool:
        return not (self.is_failed or self.is_successful)


class Block(BaseModel):
    """A block as indexed by the API"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    nonce: int
    hash: Optional[str] = None
    parent_hash: Optional[str] = Field(None, alias="parentHash")
    timestamp: Optional[int] = None
    epoch: Optional[int] = None
    tx_count: Optional[int] = Field(None, alias="txCount")
    producer_name: Optional[str] = Field(None, alias="producerName")


class FeeEstimate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kapp_fee: Amount = Field(0, alias="kAppFee")
    bandwidth_fee: Amount = Field(0, alias="bandwidthFee")
    gas_estimated: Amount = Field(0, alias="gasEstimated")
    gas_multiplier: int = Field(0, alias="gasMultiplier")
    safety_margin: int = Field(0, alias="safetyMargin")

    @property
    def total(self) -> int:
        return self.kapp_fee + self.bandwidth_fee


class ContractQueryData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    return_data: List[str] = Field(default_factory=list, alias="returnData")
    return_code: Optional[str] = Field(None, alias="returnCode")
    return_message: Optional[str] = Field(None, alias="returnMessage")
    gas_remaining: OptionalAmount = Field(None, alias="gasRemaining")
    gas_refund: OptionalAmount = Field(None, alias="gasRefund")


class ContractQueryResult(BaseModel):
    """Result of a read-only contract query; errors are returned, not raised"""
    data: Optional[ContractQueryData] = None
    error: Optional[str] = None
    code: Optional[Any] = None

    @property
    def ok(self) -> bool:
        return not self.error


class FaucetResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    tx_hash: Optional[str] = Field(None, alias="txHash")
    status: Optional[str] = None


class BuildTransactionResponse(BaseModel):
    """Node answer to a build request: proto-shaped transaction plus its hash"""
    model_config = ConfigDict(populate_by_name=True)

    result: Dict[str, Any]
    tx_hash: Optional[str] = Field(None, alias="txHash")
    request: Dict[str, Any] = Field(default_factory=dict)


class ProgressStatus(str, Enum):
    PENDING = "pending"
    CONFIRMING = "confirming"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class TransactionProgress(BaseModel):
    """Snapshot passed to wait_for_transaction progress callbacks"""
    status: ProgressStatus
    attempt: int
    max_attempts: int
    confirmations: int = 0
    required_confirmations: int = 1
    transaction: Optional[TransactionInfo] = None
