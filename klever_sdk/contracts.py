"""
Contract operations: one pydantic model per ledger contract type.

Every operation renders to the flat request shape the node's build endpoint
expects, ``{"contractType": n, <camelCase fields>}``. Types the SDK does not
model are carried by :class:`OpaqueContract` unchanged.
"""
from enum import IntEnum
from typing import Annotated, Any, ClassVar, Dict, List, Mapping, Optional, Type, Union

import pydantic
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .exceptions import ValidationError
from .utils import to_amount

NonNegativeAmount = Annotated[int, BeforeValidator(to_amount), Field(ge=0)]
OptionalAmount = Optional[NonNegativeAmount]
Opaque = Dict[str, Any]


class ContractType(IntEnum):
    TRANSFER = 0
    CREATE_ASSET = 1
    CREATE_VALIDATOR = 2
    VALIDATOR_CONFIG = 3
    FREEZE = 4
    UNFREEZE = 5
    DELEGATE = 6
    UNDELEGATE = 7
    WITHDRAW = 8
    CLAIM = 9
    UNJAIL = 10
    ASSET_TRIGGER = 11
    SET_ACCOUNT_NAME = 12
    PROPOSAL = 13
    VOTE = 14
    CONFIG_ITO = 15
    SET_ITO_PRICES = 16
    BUY = 17
    SELL = 18
    CANCEL_MARKET_ORDER = 19
    CREATE_MARKETPLACE = 20
    CONFIG_MARKETPLACE = 21
    UPDATE_ACCOUNT_PERMISSION = 22
    DEPOSIT = 23
    ITO_TRIGGER = 24
    SMART_CONTRACT = 63


class ContractOperation(BaseModel):
    """Base class of every typed contract operation"""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow", frozen=True
    )

    contract_type: ClassVar[ContractType]

    @property
    def type_id(self) -> int:
        return int(self.contract_type)

    def parameters(self) -> Dict[str, Any]:
        """Wire parameters, camelCased, with unset optional fields left out."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_request(self) -> Dict[str, Any]:
        return {"contractType": self.type_id, **self.parameters()}

    def to_raw_contract(self) -> Dict[str, Any]:
        return {"Type": self.type_id, "Parameter": self.parameters()}


class OpaqueContract(ContractOperation):
    """Pass-through for contract types without a dedicated model"""
    model_config = ConfigDict(frozen=True)

    raw_type: int
    params: Opaque = Field(default_factory=dict)

    @property
    def type_id(self) -> int:
        return self.raw_type

    def parameters(self) -> Dict[str, Any]:
        return dict(self.params)


class Transfer(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.TRANSFER

    receiver: str
    amount: NonNegativeAmount
    kda: Optional[str] = None
    kda_royalties: OptionalAmount = None
    klv_royalties: OptionalAmount = None


class CreateAsset(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.CREATE_ASSET

    asset_type: int = Field(..., alias="type")
    name: str
    ticker: str
    owner_address: str
    admin_address: Optional[str] = None
    logo: Optional[str] = None
    uris: Optional[Dict[str, str]] = None
    precision: int
    initial_supply: OptionalAmount = None
    max_supply: NonNegativeAmount
    royalties: Optional[Opaque] = None
    properties: Optional[Opaque] = None
    attributes: Optional[Opaque] = None
    staking: Optional[Opaque] = None
    roles: Optional[List[Opaque]] = None


class CreateValidator(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.CREATE_VALIDATOR

    bls_public_key: str
    owner_address: str
    reward_address: Optional[str] = None
    can_delegate: Optional[bool] = None
    commission: int
    max_delegation_amount: OptionalAmount = None
    logo: Optional[str] = None
    uris: Optional[Dict[str, str]] = None
    name: Optional[str] = None


class ValidatorConfig(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.VALIDATOR_CONFIG

    bls_public_key: str
    reward_address: Optional[str] = None
    can_delegate: Optional[bool] = None
    commission: Optional[int] = None
    max_delegation_amount: OptionalAmount = None
    logo: Optional[str] = None
    uris: Optional[Dict[str, str]] = None
    name: Optional[str] = None


class Freeze(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.FREEZE

    amount: NonNegativeAmount
    kda: Optional[str] = None


class Unfreeze(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.UNFREEZE

    kda: str
    bucket_id: Optional[str] = None


class Delegate(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.DELEGATE

    receiver: str
    bucket_id: Optional[str] = None


class Undelegate(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.UNDELEGATE

    bucket_id: str


class Withdraw(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.WITHDRAW

    withdraw_type: int
    kda: Optional[str] = None
    amount: OptionalAmount = None
    currency_id: Optional[str] = Field(None, alias="currencyID")


class Claim(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.CLAIM

    claim_type: int
    id: Optional[str] = None


class Unjail(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.UNJAIL


class AssetTrigger(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.ASSET_TRIGGER

    trigger_type: int
    asset_id: str
    receiver: Optional[str] = None
    amount: OptionalAmount = None
    mime: Optional[str] = None
    logo: Optional[str] = None
    value: OptionalAmount = None
    uris: Optional[Dict[str, str]] = None
    role: Optional[Opaque] = None
    staking: Optional[Opaque] = None
    royalties: Optional[Opaque] = None
    kda_pool: Optional[Opaque] = None


class SetAccountName(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.SET_ACCOUNT_NAME

    name: str


class Proposal(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.PROPOSAL

    parameters_: Dict[int, str] = Field(..., alias="parameters")
    description: Optional[str] = None
    epochs_duration: Optional[int] = None


class Vote(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.VOTE

    vote_type: int = Field(..., alias="type")
    proposal_id: int
    amount: OptionalAmount = None


class ConfigITO(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.CONFIG_ITO

    kda: str
    receiver_address: Optional[str] = None
    status: Optional[int] = None
    max_amount: OptionalAmount = None
    pack_info: Optional[Dict[str, Opaque]] = None
    default_limit_per_address: OptionalAmount = None
    whitelist_status: Optional[int] = None
    whitelist_info: Optional[Dict[str, Opaque]] = None
    whitelist_start_time: OptionalAmount = None
    whitelist_end_time: OptionalAmount = None
    start_time: OptionalAmount = None
    end_time: OptionalAmount = None


class SetITOPrices(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.SET_ITO_PRICES

    kda: str
    pack_info: Dict[str, Opaque]


class Buy(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.BUY

    buy_type: int
    id: str
    currency_id: Optional[str] = None
    amount: OptionalAmount = None
    currency_amount: OptionalAmount = None


class Sell(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.SELL

    market_type: int
    marketplace_id: str
    asset_id: str
    currency_id: Optional[str] = None
    price: NonNegativeAmount
    reserve_price: OptionalAmount = None
    end_time: OptionalAmount = None


class CancelMarketOrder(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.CANCEL_MARKET_ORDER

    order_id: str


class CreateMarketplace(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.CREATE_MARKETPLACE

    name: str
    referral_address: Optional[str] = None
    referral_percentage: Optional[int] = None


class ConfigMarketplace(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.CONFIG_MARKETPLACE

    marketplace_id: str
    name: Optional[str] = None
    referral_address: Optional[str] = None
    referral_percentage: Optional[int] = None


class UpdateAccountPermission(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.UPDATE_ACCOUNT_PERMISSION

    permissions: List[Opaque]


class Deposit(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.DEPOSIT

    deposit_type: int
    kda: Optional[str] = None
    currency_id: Optional[str] = None
    amount: NonNegativeAmount


class ITOTrigger(ConfigITO):
    contract_type: ClassVar[ContractType] = ContractType.ITO_TRIGGER

    trigger_type: int


class SmartContract(ContractOperation):
    contract_type: ClassVar[ContractType] = ContractType.SMART_CONTRACT

    sc_type: int
    address: str
    call_value: Optional[Dict[str, NonNegativeAmount]] = None


CONTRACT_MODELS: Dict[int, Type[ContractOperation]] = {
    int(model.contract_type): model
    for model in (
        Transfer, CreateAsset, CreateValidator, ValidatorConfig, Freeze,
        Unfreeze, Delegate, Undelegate, Withdraw, Claim, Unjail, AssetTrigger,
        SetAccountName, Proposal, Vote, ConfigITO, SetITOPrices, Buy, Sell,
        CancelMarketOrder, CreateMarketplace, ConfigMarketplace,
        UpdateAccountPermission, Deposit, ITOTrigger, SmartContract,
    )
}


def parse_operation(data: Union[ContractOperation, Mapping[str, Any]]) -> ContractOperation:
    """
    Turn a ``{"contractType": n, ...}`` or ``{"type": n, "parameter": {...}}``
    mapping into a typed operation.

    Unknown contract types become an :class:`OpaqueContract`.

    Raises:
        ValidationError: If contractType is missing or the parameters do not
            fit the model for that type
    """
    if isinstance(data, ContractOperation):
        return data

    params = dict(data)
    raw_type = params.pop("contractType", None)
    if raw_type is None and "parameter" in params:
        # {"type": n, "parameter": {...}} as used by the node API
        raw_type = params.get("type")
        params = dict(params.get("parameter") or {})
    if isinstance(raw_type, bool) or not isinstance(raw_type, int):
        raise ValidationError("contractType must be an integer", {"contract": dict(data)})

    model = CONTRACT_MODELS.get(raw_type)
    if model is None:
        return OpaqueContract(raw_type=raw_type, params=params)
    try:
        return model.model_validate(params)
    except pydantic.ValidationError as e:
        raise ValidationError(
            f"Invalid parameters for contract type {raw_type}: {e}",
            {"contract": dict(data)}
        ) from e
