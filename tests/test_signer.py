"""
Tests for the signing capability.
"""
import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from klever_sdk.exceptions import ValidationError
from klever_sdk.signer import LocalSigner, Signer, verify_signature
from klever_sdk.utils import decode_address, is_valid_address

TEST_PRIV_KEY = "9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"
# Public key of the RFC 8032 test vector 1
TEST_PUB_KEY = "d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a"


def test_local_signer_derives_address():
    signer = LocalSigner(TEST_PRIV_KEY)

    assert signer.public_key.hex() == TEST_PUB_KEY
    assert signer.address.startswith("klv1")
    assert is_valid_address(signer.address)
    assert decode_address(signer.address) == signer.public_key


@pytest.mark.parametrize("key", [
    TEST_PRIV_KEY,
    "0x" + TEST_PRIV_KEY,
    bytes.fromhex(TEST_PRIV_KEY),
    Ed25519PrivateKey.from_private_bytes(bytes.fromhex(TEST_PRIV_KEY)),
])
def test_key_formats(key):
    assert LocalSigner(key).public_key.hex() == TEST_PUB_KEY


def test_rfc8032_empty_message_signature():
    signature = LocalSigner(TEST_PRIV_KEY).sign(b"")
    assert signature.hex() == (
        "e5564300c360ac729086e2cc806e828a84877f1eb8e5d974d873e06522490155"
        "5fb8821590a33bacc61e39701cf9b46bd25bf5f0595bbe24655141438e7a100b"
    )


@pytest.mark.parametrize("key,message", [
    ("zz" * 32, "hex"),
    ("ab" * 31, "32 bytes"),
    (b"\x00" * 16, "32 bytes"),
])
def test_invalid_keys(key, message):
    with pytest.raises(ValidationError, match=message):
        LocalSigner(key)


def test_verify_signature():
    signer = LocalSigner.generate()
    signature = signer.sign(b"payload")

    assert verify_signature(signer.address, b"payload", signature)
    assert not verify_signature(signer.address, b"tampered", signature)


def test_signer_protocol():
    assert isinstance(LocalSigner.generate(), Signer)


def test_repr_hides_key():
    signer = LocalSigner(TEST_PRIV_KEY)
    assert TEST_PRIV_KEY not in repr(signer)
    assert signer.address in repr(signer)
