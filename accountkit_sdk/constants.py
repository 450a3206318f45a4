"""
Protocol constants shared by the account kit.

Every value here is bit-exact with what the deployed contracts and already
created accounts expect. Changing any of them moves predicted addresses.
"""
from web3 import Web3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ZERO_HASH = b"\x00" * 32

# Linked-list sentinel used by Safe owners and Zodiac module lists
ADDRESS_ONE = "0x0000000000000000000000000000000000000001"

# Placeholder owner that replaces the real owner once the account is set up
ADDRESS_TWO = "0x0000000000000000000000000000000000000002"

# Salt nonce of the canonical account proxy
ACCOUNT_CREATION_NONCE = int.from_bytes(Web3.keccak(text="gnosispay.com"), "big")

SPENDING_ROLE_KEY = bytes(Web3.keccak(text="SPENDING_ROLE"))
SPENDING_ALLOWANCE_KEY = bytes(Web3.keccak(text="SPENDING_ALLOWANCE"))

# EIP-1167 style skeleton emitted by the Zodiac ModuleProxyFactory
MODULE_PROXY_PREFIX = "0x602d8060093d393df3363d3d373d3d3d363d73"
MODULE_PROXY_SUFFIX = "5af43d82803e903d91602b57fd5bf3"

# Page size when walking the delay module owner list
OWNERS_PAGE_SIZE = 100

# Number of reads bundled in one integrity aggregate
INTEGRITY_CALL_COUNT = 10

# Roles condition flags (ParameterType / Operator / ExecutionOptions)
PARAMETER_TYPE_STATIC = 1
PARAMETER_TYPE_CALLDATA = 5
OPERATOR_MATCHES = 5
OPERATOR_EQUAL_TO = 16
OPERATOR_WITHIN_ALLOWANCE = 28
EXECUTION_OPTIONS_NONE = 0


def owner_channel_nonce(account: str) -> int:
    """Salt nonce of the owner channel Safe paired with ``account``."""
    return int.from_bytes(Web3.keccak(text=f"OWNER_CHANNEL_SALT_NONCE-{account}"), "big")


def spender_channel_nonce(account: str) -> int:
    """Salt nonce of the spender channel Safe paired with ``account``."""
    return int.from_bytes(Web3.keccak(text=f"SPENDER_CHANNEL_SALT_NONCE-{account}"), "big")
