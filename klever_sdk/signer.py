"""
Signing capability used by transactions.
"""
from typing import Protocol, Union, runtime_checkable

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey, Ed25519PublicKey
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from .exceptions import ValidationError
from .utils import decode_address, encode_address


@runtime_checkable
class Signer(Protocol):
    """Protocol for custom signers (hardware wallets, remote signers, ...)"""
    address: str

    def sign(self, message: bytes) -> bytes:
        """Sign message bytes and return the raw signature"""
        ...


class LocalSigner:
    """Ed25519 signer holding the private key in memory."""

    def __init__(self, private_key: Union[str, bytes, Ed25519PrivateKey]):
        """
        Args:
            private_key: 32-byte seed as hex string or bytes, or a key object

        Raises:
            ValidationError: If the key material is malformed
        """
        if isinstance(private_key, Ed25519PrivateKey):
            self._key = private_key
        else:
            if isinstance(private_key, str):
                text = private_key[2:] if private_key.startswith("0x") else private_key
                try:
                    private_key = bytes.fromhex(text)
                except ValueError:
                    raise ValidationError("Private key must be hex encoded") from None
            if len(private_key) != 32:
                raise ValidationError(f"Private key must be 32 bytes, got {len(private_key)}")
            self._key = Ed25519PrivateKey.from_private_bytes(private_key)

        self.public_key = self._key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        self.address = encode_address(self.public_key)

    @classmethod
    def generate(cls) -> "LocalSigner":
        return cls(Ed25519PrivateKey.generate())

    def sign(self, message: bytes) -> bytes:
        return self._key.sign(message)

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address!r})"


def verify_signature(address: str, message: bytes, signature: bytes) -> bool:
    """Check an Ed25519 signature against the public key encoded in ``address``."""
    public_key = Ed25519PublicKey.from_public_bytes(decode_address(address))
    try:
        public_key.verify(signature, message)
    except InvalidSignature:
        return False
    return True
