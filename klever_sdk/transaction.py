"""
Transaction - wire-format ledger transaction, unsigned or signed.

Byte fields travel as base64 strings on the wire (the node's JSON rendering of
its proto messages) and are held as ``bytes`` in memory.

A transaction assembled by the node keeps the hash the node reported, and that
hash is what gets signed. A transaction built offline has no node hash; its
digest is blake2b-256 over the canonical JSON form of ``RawData``. That offline
digest is local to this SDK and is not the ledger's proto-encoded hash.
"""
import base64
import binascii
import hashlib
import json
from typing import Annotated, Any, Dict, List, Mapping, Optional, TYPE_CHECKING

import pydantic
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer, PrivateAttr

from .exceptions import TransactionError
from .utils import canonical_json, to_amount

if TYPE_CHECKING:
    from .signer import Signer

HASH_SIZE = 32


def _decode_bytes(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as e:
            raise ValueError(f"invalid base64 value: {e}") from e
    if isinstance(value, list) and all(isinstance(v, int) for v in value):
        return bytes(value)
    return value


def _encode_bytes(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


WireBytes = Annotated[
    bytes,
    BeforeValidator(_decode_bytes),
    PlainSerializer(_encode_bytes, return_type=str, when_used="json"),
]
WireAmount = Annotated[int, BeforeValidator(to_amount)]


class KDAFee(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    kda: WireBytes = Field(..., alias="KDA")
    amount: WireAmount = Field(0, alias="Amount")


class RawData(BaseModel):
    """Signed portion of a transaction. Unknown fields are dropped."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    nonce: int = Field(0, alias="Nonce")
    sender: WireBytes = Field(b"", alias="Sender")
    contract: List[Dict[str, Any]] = Field(default_factory=list, alias="Contract")
    permission_id: Optional[int] = Field(None, alias="PermissionID")
    data: Optional[List[WireBytes]] = Field(None, alias="Data")
    kapp_fee: WireAmount = Field(0, alias="KAppFee")
    bandwidth_fee: WireAmount = Field(0, alias="BandwidthFee")
    version: int = Field(1, alias="Version")
    chain_id: WireBytes = Field(b"", alias="ChainID")
    kda_fee: Optional[KDAFee] = Field(None, alias="KDAFee")


class Transaction(BaseModel):
    """
    A ledger transaction.

    A transaction is signed once it carries at least one signature; signing is
    the only state change it goes through.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    raw_data: RawData = Field(..., alias="RawData")
    signature: List[WireBytes] = Field(default_factory=list, alias="Signature")

    _node_hash: Optional[str] = PrivateAttr(default=None)

    @classmethod
    def from_wire(cls, obj: Mapping[str, Any], node_hash: Optional[str] = None) -> "Transaction":
        """
        Create a Transaction from its JSON wire form.

        Args:
            obj: Mapping with ``RawData`` and optional ``Signature``; byte fields base64
            node_hash: Hash reported by the node that built the transaction

        Raises:
            TransactionError: If the object is not a valid transaction
        """
        try:
            tx = cls.model_validate(obj)
        except pydantic.ValidationError as e:
            raise TransactionError(f"Invalid transaction object: {e}", {"transaction": dict(obj)}) from e
        tx._node_hash = node_hash
        return tx

    @classmethod
    def from_hex(cls, value: str) -> "Transaction":
        if value.startswith("0x"):
            value = value[2:]
        try:
            obj = json.loads(bytes.fromhex(value).decode("utf-8"))
        except ValueError as e:
            raise TransactionError(f"Invalid transaction hex: {e}") from e
        return cls.from_wire(obj)

    @property
    def node_hash(self) -> Optional[str]:
        return self._node_hash

    @property
    def chain_id(self) -> str:
        return self.raw_data.chain_id.decode("utf-8")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_bytes(self) -> bytes:
        return canonical_json(self.to_wire())

    def to_hex(self) -> str:
        return self.to_bytes().hex()

    def hash_bytes(self) -> bytes:
        """
        Digest that gets signed.

        The node-reported hash when the node built the transaction, otherwise
        blake2b-256 of the canonical RawData.

        Raises:
            TransactionError: If the node-reported hash is not 32 bytes of hex
        """
        if self._node_hash:
            try:
                digest = bytes.fromhex(self._node_hash)
            except ValueError as e:
                raise TransactionError(
                    f"Invalid node transaction hash: {self._node_hash}", {"hash": self._node_hash}
                ) from e
            if len(digest) != HASH_SIZE:
                raise TransactionError(
                    f"Invalid node transaction hash: {self._node_hash}", {"hash": self._node_hash}
                )
            return digest
        raw = self.raw_data.model_dump(mode="json", by_alias=True, exclude_none=True)
        return hashlib.blake2b(canonical_json(raw), digest_size=HASH_SIZE).digest()

    def get_hash(self) -> str:
        return self.hash_bytes().hex()

    def is_signed(self) -> bool:
        return len(self.signature) > 0

    def add_signature(self, signature: bytes) -> "Transaction":
        self.signature.append(bytes(signature))
        return self

    def sign(self, signer: "Signer") -> "Transaction":
        """
        Sign the transaction digest in place.

        Args:
            signer: Any object implementing the Signer protocol

        Returns:
            This transaction, now signed

        Raises:
            TransactionError: If the signer fails
        """
        digest = self.hash_bytes()
        try:
            signature = signer.sign(digest)
        except Exception as e:
            raise TransactionError(
                f"Failed to sign transaction: {e}", {"hash": digest.hex()}
            ) from e
        self.signature = [bytes(signature)]
        return self

    def total_fee(self) -> int:
        return self.raw_data.kapp_fee + self.raw_data.bandwidth_fee
