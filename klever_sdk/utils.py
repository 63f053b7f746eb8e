"""
Utility functions for the Klever SDK.
"""
import json
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from bech32 import bech32_decode, bech32_encode, convertbits

from .exceptions import ValidationError

ADDRESS_PREFIX = "klv"
ADDRESS_LENGTH = 32
NATIVE_ASSET = "KLV"

AmountLike = Union[int, str, Decimal]

_PATH_SEGMENT = re.compile(r"^(\w+)(?:\[(\d+)\])?$")


def decode_address(address: str) -> bytes:
    """
    Decode a bech32 ledger address into its raw public key bytes.

    Args:
        address: Address string such as ``klv1...``

    Returns:
        The 32 decoded bytes

    Raises:
        ValidationError: If the address is not a valid ``klv`` bech32 address
    """
    if not isinstance(address, str) or not address:
        raise ValidationError(f"Invalid address: {address!r}", {"address": address})

    hrp, words = bech32_decode(address)
    if hrp != ADDRESS_PREFIX or words is None:
        raise ValidationError(f"Invalid address: {address}", {"address": address})

    data = convertbits(words, 5, 8, False)
    if data is None or len(data) != ADDRESS_LENGTH:
        raise ValidationError(f"Invalid address: {address}", {"address": address})
    return bytes(data)


def encode_address(public_key: bytes) -> str:
    """Encode 32 raw public key bytes as a ``klv`` bech32 address."""
    if len(public_key) != ADDRESS_LENGTH:
        raise ValidationError(
            f"Public key must be {ADDRESS_LENGTH} bytes, got {len(public_key)}"
        )
    return bech32_encode(ADDRESS_PREFIX, convertbits(public_key, 8, 5, True))


def is_valid_address(address: Any) -> bool:
    """Return True if ``address`` is a well formed ``klv`` bech32 address."""
    try:
        decode_address(address)
    except ValidationError:
        return False
    return True


def to_amount(value: Any) -> int:
    """
    Normalise an amount to an arbitrary-precision integer.

    Accepts ints, decimal strings and integral ``Decimal`` values. Floats and
    booleans are rejected so that amounts never pass through binary floating
    point.

    Args:
        value: Amount to convert

    Returns:
        The amount as an int

    Raises:
        ValidationError: If the value cannot be represented exactly as an int
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(
            f"Amount must be an int, decimal string or Decimal, got {type(value).__name__}",
            {"amount": value}
        )
    if isinstance(value, int):
        return value

    if isinstance(value, str):
        text = value.strip()
        if re.fullmatch(r"[+-]?\d+", text):
            return int(text)
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise ValidationError(f"Invalid amount: {value!r}", {"amount": value}) from None

    if isinstance(value, Decimal):
        if not value.is_finite() or value != value.to_integral_value():
            raise ValidationError(f"Amount must be integral: {value}", {"amount": str(value)})
        return int(value)

    raise ValidationError(f"Invalid amount type: {type(value).__name__}", {"amount": value})


def optional_amount(value: Any) -> Optional[int]:
    """Like :func:`to_amount` but maps ``None`` and ``""`` to None."""
    if value is None or value == "":
        return None
    return to_amount(value)


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return int(obj) if obj == obj.to_integral_value() else str(obj)
    if isinstance(obj, bytes):
        return obj.hex()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonical_json(obj: Any) -> bytes:
    """Serialise ``obj`` to deterministic compact JSON bytes."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), default=_json_default
    ).encode("utf-8")


def get_path(obj: Any, path: str) -> Any:
    """
    Safely read a dotted path with optional list indexes from nested data.

    ``get_path(tx, "contract[0].parameter.claimType")`` walks
    ``tx["contract"][0]["parameter"]["claimType"]``. Any missing segment,
    wrong container type or out-of-range index yields None.
    """
    current = obj
    for segment in path.split("."):
        match = _PATH_SEGMENT.match(segment)
        if not match or current is None:
            return None
        key, index = match.group(1), match.group(2)

        if isinstance(current, dict):
            current = current.get(key)
        else:
            current = getattr(current, key, None)

        if index is not None:
            if not isinstance(current, (list, tuple)):
                return None
            position = int(index)
            if position >= len(current):
                return None
            current = current[position]
    return current


def get_path_number(obj: Any, path: str) -> Optional[int]:
    """Read a path with :func:`get_path` and coerce it to int, or None."""
    value = get_path(obj, path)
    if value is None:
        return None
    try:
        return to_amount(value)
    except ValidationError:
        return None
