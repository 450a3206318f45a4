"""
Thin helpers over eth_abi for building and reading contract calldata.
"""
from typing import Any, Sequence, Tuple, Union

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import is_address, to_checksum_address
from hexbytes import HexBytes
from web3 import Web3

from .exceptions import InvalidAddressError

BytesLike = Union[bytes, bytearray, str]


def to_bytes(value: BytesLike) -> bytes:
    """
    Coerce bytes or a hex string (with or without 0x) to bytes.

    Args:
        value: Raw bytes, HexBytes or hex string

    Returns:
        The value as plain bytes
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return bytes(HexBytes(value)) if value not in ("", "0x") else b""
    raise TypeError(f"Expected bytes or hex string, got {type(value).__name__}")


def normalize_address(address: str) -> str:
    """
    Return the EIP-55 checksum form of an address.

    Raises:
        InvalidAddressError: If the value is not an address or a mixed-case
            address carries a wrong checksum
    """
    if not isinstance(address, str) or not is_address(address):
        raise InvalidAddressError(f"Invalid address: {address!r}")
    checksummed = to_checksum_address(address)
    body = address[-40:]
    # all-lower and all-upper carry no checksum
    if body != body.lower() and body != body.upper() and body != checksummed[2:]:
        raise InvalidAddressError(f"Bad checksum for address: {address!r}")
    return checksummed


def selector(signature: str) -> bytes:
    """4-byte function selector of a canonical signature like ``transfer(address,uint256)``."""
    return bytes(Web3.keccak(text=signature)[:4])


def encode_call(name: str, types: Sequence[str], args: Sequence[Any]) -> bytes:
    """
    ABI-encode a function call.

    Args:
        name: Function name
        types: Canonical ABI types of the arguments, tuples written as ``(t1,t2)``
        args: Argument values

    Returns:
        Selector followed by the encoded arguments
    """
    signature = f"{name}({','.join(types)})"
    return selector(signature) + abi_encode(list(types), list(args))


def encode(types: Sequence[str], args: Sequence[Any]) -> bytes:
    return abi_encode(list(types), list(args))


def decode(types: Sequence[str], data: BytesLike) -> Tuple[Any, ...]:
    return abi_decode(list(types), to_bytes(data))


def pad32(value: bytes) -> bytes:
    """Left-pad bytes to a 32-byte word."""
    if len(value) > 32:
        raise ValueError(f"Cannot pad {len(value)} bytes into a word")
    return value.rjust(32, b"\x00")
