"""
EIP-712 typed data for Safe transactions and Delay module transactions.

Builders return :class:`~accountkit_sdk.models.TypedMessage` objects that are
handed to signing callbacks unchanged. The hashing helpers cover the flat
structs used here and are what ERC-7739 signature wrapping relies on.
"""
import re
import time
from typing import Any, Dict, List, Optional, Union

from web3 import Web3

from .abi import encode, normalize_address, to_bytes
from .constants import ZERO_ADDRESS
from .exceptions import InvalidSaltError
from .models import TransactionRequest, TypedMessage

SALT_PATTERN = re.compile(r"(0x)?[0-9a-fA-F]{64}")

SAFE_TX_TYPES = {
    "SafeTx": [
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "data", "type": "bytes"},
        {"name": "operation", "type": "uint8"},
        {"name": "safeTxGas", "type": "uint256"},
        {"name": "baseGas", "type": "uint256"},
        {"name": "gasPrice", "type": "uint256"},
        {"name": "gasToken", "type": "address"},
        {"name": "refundReceiver", "type": "address"},
        {"name": "nonce", "type": "uint256"},
    ]
}

MODULE_TX_TYPES = {
    "ModuleTx": [
        {"name": "data", "type": "bytes"},
        {"name": "salt", "type": "bytes32"},
    ]
}

# EIP712Domain members in canonical order
_DOMAIN_FIELDS = [
    ("name", "string"),
    ("version", "string"),
    ("chainId", "uint256"),
    ("verifyingContract", "address"),
    ("salt", "bytes32"),
]


def salt_from_timestamp(now_ms: Optional[int] = None) -> str:
    """
    Default replay-protection salt: the current time in milliseconds as a uint256.

    Returns:
        0x-prefixed 32-byte hex string
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return "0x" + encode(["uint256"], [now_ms]).hex()


def validate_salt(salt: Union[str, bytes]) -> str:
    """
    Normalize a salt to a 0x-prefixed lowercase 32-byte hex string.

    Raises:
        InvalidSaltError: If the salt is not exactly 32 bytes of hex
    """
    if isinstance(salt, (bytes, bytearray)):
        if len(salt) != 32:
            raise InvalidSaltError(f"Salt must be 32 bytes, got {len(salt)}")
        return "0x" + bytes(salt).hex()
    if not isinstance(salt, str) or not SALT_PATTERN.fullmatch(salt):
        raise InvalidSaltError(f"Salt must be 32 bytes of hex, got {salt!r}")
    return "0x" + salt[-64:].lower()


def build_account_tx(safe: str, chain_id: int, tx: TransactionRequest, nonce: int) -> TypedMessage:
    """
    Typed data of a Safe ``execTransaction``.

    Gas refund fields are always zero; the relayer pays.

    Args:
        safe: Safe that verifies the signature
        chain_id: Chain the signature is valid on
        tx: Transaction the Safe executes
        nonce: Current Safe nonce, read by the caller
    """
    return TypedMessage(
        domain={"verifyingContract": normalize_address(safe), "chainId": chain_id},
        primaryType="SafeTx",
        types=SAFE_TX_TYPES,
        message={
            "to": tx.to,
            "value": tx.value,
            "data": tx.data_hex,
            "operation": int(tx.operation),
            "safeTxGas": 0,
            "baseGas": 0,
            "gasPrice": 0,
            "gasToken": ZERO_ADDRESS,
            "refundReceiver": ZERO_ADDRESS,
            "nonce": nonce,
        },
    )


def build_modifier_tx(modifier: str, chain_id: int, data: Union[str, bytes],
                      salt: Optional[Union[str, bytes]] = None) -> TypedMessage:
    """
    Typed data of a ``ModuleTx`` posted to a Delay module.

    Args:
        modifier: Delay module that verifies the signature
        chain_id: Chain the signature is valid on
        data: ``execTransactionFromModule`` calldata
        salt: 32-byte replay-protection salt; defaults to the current timestamp

    Raises:
        InvalidSaltError: If ``salt`` is malformed
    """
    salt = validate_salt(salt) if salt is not None else salt_from_timestamp()
    return TypedMessage(
        domain={"verifyingContract": normalize_address(modifier), "chainId": chain_id},
        primaryType="ModuleTx",
        types=MODULE_TX_TYPES,
        message={"data": "0x" + to_bytes(data).hex(), "salt": salt},
    )


def encode_type(primary_type: str, types: Dict[str, List[Dict[str, str]]]) -> str:
    fields = ",".join(f"{f['type']} {f['name']}" for f in types[primary_type])
    return f"{primary_type}({fields})"


def _encode_value(type_name: str, value: Any) -> bytes:
    if type_name == "bytes":
        return bytes(Web3.keccak(to_bytes(value)))
    if type_name == "string":
        return bytes(Web3.keccak(text=value))
    if type_name.endswith("]"):
        raise ValueError(f"Unsupported EIP-712 field type: {type_name}")
    if type_name.startswith("bytes"):
        value = to_bytes(value)
    return encode([type_name], [value])


def hash_struct(primary_type: str, types: Dict[str, List[Dict[str, str]]], message: Dict[str, Any]) -> bytes:
    """keccak256(typeHash ‖ encodeData) of a flat struct."""
    type_hash = Web3.keccak(text=encode_type(primary_type, types))
    encoded = b"".join(_encode_value(f["type"], message[f["name"]]) for f in types[primary_type])
    return bytes(Web3.keccak(type_hash + encoded))


def hash_domain(domain: Dict[str, Any]) -> bytes:
    """EIP-712 domain separator for the members present in ``domain``."""
    fields = [{"name": name, "type": kind} for name, kind in _DOMAIN_FIELDS if name in domain]
    return hash_struct("EIP712Domain", {"EIP712Domain": fields}, domain)


def signing_hash(typed: TypedMessage) -> bytes:
    """The digest a wallet signs for ``typed``."""
    return bytes(Web3.keccak(
        b"\x19\x01" + hash_domain(typed.domain) + hash_struct(typed.primary_type, typed.types, typed.message)
    ))
