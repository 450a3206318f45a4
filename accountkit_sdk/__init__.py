"""
Account kit: address prediction, transaction population and integrity
queries for Safe accounts guarded by Delay and Roles modules.
"""
from .account import AccountKit, hash_message
from .addresses import (
    AccountProxyParams,
    AddressDeriver,
    AddressKind,
    SingletonParams,
    ZodiacModuleParams,
    create2_address,
)
from .batch import encode_batch
from .client import AccountKitClient
from .config import Deployments, NetworkConfig
from .delay import DelayedExecution
from .eip712 import build_account_tx, build_modifier_tx, salt_from_timestamp, signing_hash
from .exceptions import (
    AccountKitError,
    ConfigurationError,
    InvalidAddressError,
    InvalidSaltError,
    TransactionError,
)
from .integrity import IntegrityEvaluator, accrued_balance, next_refill_at
from .models import (
    AccountIntegrityStatus,
    AccountQueryResult,
    AllowanceConfig,
    AllowanceInfo,
    DelayConfig,
    ModuleTopology,
    OperationType,
    SetupConfig,
    TransactionRequest,
    Transfer,
    TxReceipt,
    TypedMessage,
)
from .signer.local import LocalSigner
from .version import __version__

__all__ = [
    "AccountKit",
    "AccountKitClient",
    "AddressDeriver",
    "AddressKind",
    "AccountProxyParams",
    "ZodiacModuleParams",
    "SingletonParams",
    "create2_address",
    "encode_batch",
    "Deployments",
    "NetworkConfig",
    "DelayedExecution",
    "IntegrityEvaluator",
    "accrued_balance",
    "next_refill_at",
    "build_account_tx",
    "build_modifier_tx",
    "salt_from_timestamp",
    "signing_hash",
    "hash_message",
    "LocalSigner",
    "AccountIntegrityStatus",
    "AccountQueryResult",
    "AllowanceConfig",
    "AllowanceInfo",
    "DelayConfig",
    "ModuleTopology",
    "OperationType",
    "SetupConfig",
    "TransactionRequest",
    "Transfer",
    "TxReceipt",
    "TypedMessage",
    "AccountKitError",
    "ConfigurationError",
    "InvalidAddressError",
    "InvalidSaltError",
    "TransactionError",
    "__version__",
]
