"""
Deterministic (CREATE2) address derivation for every contract in an account topology.

Three deployment patterns are covered:

* account proxies created by the Safe proxy factory,
* Zodiac modules created as minimal proxies by the module proxy factory,
* singletons created by the deterministic deployment factory.

All predictions are pure functions of the inputs and the injected
:class:`~accountkit_sdk.config.Deployments`.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple, Union

from eth_utils import to_checksum_address
from web3 import Web3

from .abi import BytesLike, decode, encode, encode_call, normalize_address, selector
from .config import Deployments
from .constants import (
    MODULE_PROXY_PREFIX,
    MODULE_PROXY_SUFFIX,
    ZERO_ADDRESS,
    ZERO_HASH,
    owner_channel_nonce,
    spender_channel_nonce,
)
from .models import ModuleTopology, TransactionRequest

logger = logging.getLogger(__name__)

ReadCallback = Callable[[TransactionRequest], BytesLike]

SAFE_SETUP_TYPES = ("address[]", "uint256", "address", "bytes", "address", "address", "uint256", "address")
SET_ALLOWANCE_SIGNATURE = "setAllowance(bytes32,uint128,uint128,uint128,uint64,uint64)"


class AddressKind(str, Enum):
    """Deployment pattern of a predicted contract"""
    ACCOUNT_PROXY = "account_proxy"
    ZODIAC_MODULE = "zodiac_module"
    SINGLETON = "singleton"


@dataclass(frozen=True)
class AccountProxyParams:
    owners: Tuple[str, ...]
    threshold: int
    creation_nonce: int


@dataclass(frozen=True)
class ZodiacModuleParams:
    mastercopy: str
    setup_calldata: bytes
    salt_nonce: int = 0


@dataclass(frozen=True)
class SingletonParams:
    creation_code: bytes
    salt: bytes = field(default=ZERO_HASH)


DerivationParams = Union[AccountProxyParams, ZodiacModuleParams, SingletonParams]


def create2_address(deployer: str, salt: bytes, init_code_hash: bytes) -> str:
    """
    Compute a CREATE2 address.

    Args:
        deployer: Address of the deploying contract
        salt: 32-byte salt
        init_code_hash: keccak256 of the creation code

    Returns:
        Checksummed address
    """
    if len(salt) != 32 or len(init_code_hash) != 32:
        raise ValueError("salt and init code hash must both be 32 bytes")
    deployer_bytes = bytes.fromhex(normalize_address(deployer)[2:])
    digest = Web3.keccak(b"\xff" + deployer_bytes + salt + init_code_hash)
    return to_checksum_address(digest[12:])


def minimal_proxy_code(mastercopy: str) -> bytes:
    """Creation code the module proxy factory uses for ``mastercopy``."""
    return bytes.fromhex(
        MODULE_PROXY_PREFIX[2:] + normalize_address(mastercopy).lower()[2:] + MODULE_PROXY_SUFFIX
    )


class AddressDeriver:
    """
    Predicts addresses and builds the matching creation transactions.
    """

    def __init__(self, deployments: Deployments):
        self.deployments = deployments

    def predict(self, kind: AddressKind, params: DerivationParams) -> str:
        """
        Predict the address of a contract before it is deployed.

        Args:
            kind: Deployment pattern
            params: Parameters of that pattern

        Returns:
            Checksummed address

        Raises:
            TypeError: If ``params`` does not belong to ``kind``
            ConfigurationError: If a creation-code artifact is missing
        """
        if kind == AddressKind.ACCOUNT_PROXY and isinstance(params, AccountProxyParams):
            factory = self.deployments.safe_proxy_factory
            salt, init_code = self._account_proxy_create2_inputs(params)
        elif kind == AddressKind.ZODIAC_MODULE and isinstance(params, ZodiacModuleParams):
            factory = self.deployments.module_proxy_factory
            salt = Web3.keccak(Web3.keccak(params.setup_calldata) + encode(["uint256"], [params.salt_nonce]))
            init_code = minimal_proxy_code(params.mastercopy)
        elif kind == AddressKind.SINGLETON and isinstance(params, SingletonParams):
            factory = self.deployments.singleton_factory
            salt, init_code = params.salt, params.creation_code
        else:
            raise TypeError(f"{type(params).__name__} is not valid for {kind}")

        address = create2_address(factory, bytes(salt), bytes(Web3.keccak(init_code)))
        logger.debug(f"Predicted {kind.value} address {address}")
        return address

    # ------------------------------------------------------------------
    # Account proxies
    # ------------------------------------------------------------------

    def safe_initializer(self, owners: Sequence[str], threshold: int) -> bytes:
        """``setup(...)`` calldata of a fresh Safe with the default fallback handler."""
        return encode_call(
            "setup",
            SAFE_SETUP_TYPES,
            [
                [normalize_address(o) for o in owners],
                threshold,
                ZERO_ADDRESS,
                b"",
                self.deployments.fallback_handler,
                ZERO_ADDRESS,
                0,
                ZERO_ADDRESS,
            ],
        )

    def _account_proxy_create2_inputs(self, params: AccountProxyParams) -> Tuple[bytes, bytes]:
        creation_code = self.deployments.require("safe_proxy_creation_code")
        initializer = self.safe_initializer(params.owners, params.threshold)
        salt = Web3.keccak(Web3.keccak(initializer) + encode(["uint256"], [params.creation_nonce]))
        init_code = creation_code + encode(["address"], [self.deployments.safe_mastercopy])
        return bytes(salt), init_code

    def account_params(self, owner: str) -> AccountProxyParams:
        return AccountProxyParams(
            owners=(normalize_address(owner),),
            threshold=1,
            creation_nonce=self.deployments.account_creation_nonce,
        )

    def spender_params(self, owners: Sequence[str], threshold: int,
                       creation_nonce: Optional[int] = None) -> AccountProxyParams:
        if creation_nonce is None:
            creation_nonce = self.deployments.require("spender_creation_nonce")
        return AccountProxyParams(
            owners=tuple(normalize_address(o) for o in owners),
            threshold=threshold,
            creation_nonce=creation_nonce,
        )

    def owner_channel_params(self, account: str, owner: str) -> AccountProxyParams:
        account = normalize_address(account)
        return AccountProxyParams((normalize_address(owner),), 1, owner_channel_nonce(account))

    def spender_channel_params(self, account: str, spender: str) -> AccountProxyParams:
        account = normalize_address(account)
        return AccountProxyParams((normalize_address(spender),), 1, spender_channel_nonce(account))

    def predict_account(self, owner: str) -> str:
        return self.predict(AddressKind.ACCOUNT_PROXY, self.account_params(owner))

    def predict_spender(self, owners: Sequence[str], threshold: int,
                        creation_nonce: Optional[int] = None) -> str:
        return self.predict(AddressKind.ACCOUNT_PROXY, self.spender_params(owners, threshold, creation_nonce))

    def predict_owner_channel(self, account: str, owner: str) -> str:
        return self.predict(AddressKind.ACCOUNT_PROXY, self.owner_channel_params(account, owner))

    def predict_spender_channel(self, account: str, spender: str) -> str:
        return self.predict(AddressKind.ACCOUNT_PROXY, self.spender_channel_params(account, spender))

    def populate_account_proxy_creation(self, params: AccountProxyParams) -> TransactionRequest:
        """Factory ``createProxyWithNonce`` call deploying the proxy described by ``params``."""
        initializer = self.safe_initializer(params.owners, params.threshold)
        return TransactionRequest(
            to=self.deployments.safe_proxy_factory,
            data=encode_call(
                "createProxyWithNonce",
                ["address", "bytes", "uint256"],
                [self.deployments.safe_mastercopy, initializer, params.creation_nonce],
            ),
        )

    def fetch_proxy_creation_code(self, eth_call: ReadCallback) -> bytes:
        """
        Read ``proxyCreationCode()`` from the configured Safe proxy factory.

        The result can be fed back as ``Deployments.safe_proxy_creation_code``.
        """
        request = TransactionRequest(to=self.deployments.safe_proxy_factory, data=selector("proxyCreationCode()"))
        (code,) = decode(["bytes"], eth_call(request))
        return code

    # ------------------------------------------------------------------
    # Zodiac modules
    # ------------------------------------------------------------------

    @staticmethod
    def delay_setup(account: str) -> bytes:
        # owner, avatar and target are all the account; cooldown and expiration
        # start at 0 and are configured afterwards so the address stays stable
        account = normalize_address(account)
        initializer = encode(
            ["address", "address", "address", "uint256", "uint256"],
            [account, account, account, 0, 0],
        )
        return encode_call("setUp", ["bytes"], [initializer])

    @staticmethod
    def roles_setup(account: str) -> bytes:
        account = normalize_address(account)
        initializer = encode(["address", "address", "address"], [account, account, account])
        return encode_call("setUp", ["bytes"], [initializer])

    @staticmethod
    def spender_module_setup(spender: str) -> bytes:
        initializer = encode(["address"], [normalize_address(spender)])
        return encode_call("setUp", ["bytes"], [initializer])

    def delay_params(self, account: str) -> ZodiacModuleParams:
        return ZodiacModuleParams(self.deployments.delay_mastercopy, self.delay_setup(account))

    def roles_params(self, account: str) -> ZodiacModuleParams:
        return ZodiacModuleParams(self.deployments.roles_mastercopy, self.roles_setup(account))

    def spender_module_params(self, spender: str) -> ZodiacModuleParams:
        return ZodiacModuleParams(self.deployments.spender_mod_mastercopy, self.spender_module_setup(spender))

    def predict_delay(self, account: str) -> str:
        return self.predict(AddressKind.ZODIAC_MODULE, self.delay_params(account))

    def predict_roles(self, account: str) -> str:
        return self.predict(AddressKind.ZODIAC_MODULE, self.roles_params(account))

    def predict_spender_module(self, spender: str) -> str:
        return self.predict(AddressKind.ZODIAC_MODULE, self.spender_module_params(spender))

    def populate_module_creation(self, params: ZodiacModuleParams) -> TransactionRequest:
        return TransactionRequest(
            to=self.deployments.module_proxy_factory,
            data=encode_call(
                "deployModule",
                ["address", "bytes", "uint256"],
                [params.mastercopy, params.setup_calldata, params.salt_nonce],
            ),
        )

    # ------------------------------------------------------------------
    # Singletons
    # ------------------------------------------------------------------

    def _allowance_guard_code(self, bytecode_field: str, account: str) -> bytes:
        bytecode = self.deployments.require(bytecode_field)
        account = normalize_address(account)
        constructor_args = encode(
            ["address", "address", "bytes4"],
            [account, self.predict_roles(account), selector(SET_ALLOWANCE_SIGNATURE)],
        )
        return bytecode + constructor_args

    def bouncer_params(self, account: str) -> SingletonParams:
        return SingletonParams(self._allowance_guard_code("bouncer_bytecode", account))

    def forwarder_params(self, account: str) -> SingletonParams:
        return SingletonParams(self._allowance_guard_code("forwarder_bytecode", account))

    def predict_bouncer(self, account: str) -> str:
        return self.predict(AddressKind.SINGLETON, self.bouncer_params(account))

    def predict_forwarder(self, account: str) -> str:
        return self.predict(AddressKind.SINGLETON, self.forwarder_params(account))

    def populate_singleton_creation(self, params: SingletonParams) -> TransactionRequest:
        return TransactionRequest(
            to=self.deployments.singleton_factory,
            data=params.salt + params.creation_code,
        )

    # ------------------------------------------------------------------

    def topology(self, account: str, owner: Optional[str] = None,
                 spender: Optional[str] = None) -> ModuleTopology:
        """
        Predict every contract attached to ``account``.

        The forwarder is only included when its bytecode is configured; the
        channels only when the owner or spender is given.
        """
        account = normalize_address(account)
        forwarder = None
        if self.deployments.forwarder_bytecode:
            forwarder = self.predict_forwarder(account)
        return ModuleTopology(
            account=account,
            delay=self.predict_delay(account),
            roles=self.predict_roles(account),
            bouncer=self.predict_bouncer(account),
            forwarder=forwarder,
            owner_channel=self.predict_owner_channel(account, owner) if owner else None,
            spender_channel=self.predict_spender_channel(account, spender) if spender else None,
        )
