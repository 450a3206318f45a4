"""
High-level account actions.

:class:`AccountKit` composes address prediction, batching, typed data and the
Delay module protocol into relay-ready transactions for the whole account
lifecycle: creation, setup, spending and delayed owner actions.
"""
import logging
from typing import Callable, List, Optional, Sequence, Union

from web3 import Web3

from .abi import BytesLike, decode, encode, encode_call, normalize_address, selector, to_bytes
from .addresses import AddressDeriver
from .batch import encode_batch
from .config import Deployments
from .constants import (
    ADDRESS_ONE,
    ADDRESS_TWO,
    EXECUTION_OPTIONS_NONE,
    OPERATOR_EQUAL_TO,
    OPERATOR_MATCHES,
    OPERATOR_WITHIN_ALLOWANCE,
    OWNERS_PAGE_SIZE,
    PARAMETER_TYPE_CALLDATA,
    PARAMETER_TYPE_STATIC,
    SPENDING_ALLOWANCE_KEY,
    SPENDING_ROLE_KEY,
    ZERO_ADDRESS,
)
from .delay import DelayedExecution, SignCallback
from .eip712 import build_account_tx
from .integrity import IntegrityEvaluator
from .models import (
    AccountQueryResult,
    AllowanceConfig,
    ModuleTopology,
    OperationType,
    SetupConfig,
    TransactionRequest,
    Transfer,
)

logger = logging.getLogger(__name__)

ReadCallback = Callable[[TransactionRequest], BytesLike]
Salt = Optional[Union[str, bytes]]

EXEC_TRANSACTION_TYPES = [
    "address", "uint256", "bytes", "uint8", "uint256", "uint256", "uint256", "address", "address", "bytes",
]
SET_ALLOWANCE_TYPES = ["bytes32", "uint128", "uint128", "uint128", "uint64", "uint64"]
TRANSFER_SIGNATURE = "transfer(address,uint256)"


def hash_message(message: Union[str, bytes]) -> bytes:
    """EIP-191 personal-message hash, as ``eth_sign`` computes it."""
    payload = message.encode("utf-8") if isinstance(message, str) else bytes(message)
    return bytes(Web3.keccak(b"\x19Ethereum Signed Message:\n" + str(len(payload)).encode() + payload))


def erc20_transfer(token: str, to: str, amount: int) -> TransactionRequest:
    return TransactionRequest(
        to=token,
        value=0,
        data=encode_call("transfer", ["address", "uint256"], [normalize_address(to), amount]),
    )


class AccountKit:
    """
    Entry point for account operations on one deployment registry.

    Args:
        deployments: Contract registry shared by every operation
    """

    def __init__(self, deployments: Deployments):
        self.deployments = deployments
        self.deriver = AddressDeriver(deployments)
        self.delayed = DelayedExecution(deployments, self.deriver)
        self.integrity = IntegrityEvaluator(deployments, self.deriver)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def predict_account_address(self, owner: str) -> str:
        return self.deriver.predict_account(owner)

    def populate_account_creation(self, owner: str) -> TransactionRequest:
        """Deploy the account proxy owned by ``owner`` at its predicted address."""
        return self.deriver.populate_account_proxy_creation(self.deriver.account_params(owner))

    def predict_spender_address(self, owners: Sequence[str], threshold: int,
                                creation_nonce: Optional[int] = None) -> str:
        return self.deriver.predict_spender(owners, threshold, creation_nonce)

    def populate_spender_creation(self, owners: Sequence[str], threshold: int,
                                  creation_nonce: Optional[int] = None) -> TransactionRequest:
        params = self.deriver.spender_params(owners, threshold, creation_nonce)
        return self.deriver.populate_account_proxy_creation(params)

    def populate_owner_channel_creation(self, account: str, owner: str) -> TransactionRequest:
        return self.deriver.populate_account_proxy_creation(self.deriver.owner_channel_params(account, owner))

    def populate_spender_channel_creation(self, account: str, spender: str) -> TransactionRequest:
        return self.deriver.populate_account_proxy_creation(self.deriver.spender_channel_params(account, spender))

    def topology(self, account: str, owner: Optional[str] = None, spender: Optional[str] = None) -> ModuleTopology:
        return self.deriver.topology(account, owner, spender)

    # ------------------------------------------------------------------
    # Safe-signed transactions
    # ------------------------------------------------------------------

    def populate_safe_transaction(self, safe: str, chain_id: int, nonce: int,
                                  tx: TransactionRequest, sign: SignCallback) -> TransactionRequest:
        """
        Sign ``tx`` as a Safe transaction and wrap it in ``execTransaction``.

        Args:
            safe: Safe executing the transaction
            chain_id: Chain ID the signature is bound to
            nonce: Current Safe nonce
            tx: Transaction the Safe performs
            sign: Callback returning an owner signature over the SafeTx typed data
        """
        safe = normalize_address(safe)
        typed = build_account_tx(safe, chain_id, tx, nonce)
        signature = to_bytes(sign(typed))
        return TransactionRequest(
            to=safe,
            value=0,
            data=encode_call(
                "execTransaction",
                EXEC_TRANSACTION_TYPES,
                [tx.to, tx.value, tx.data, int(tx.operation), 0, 0, 0, ZERO_ADDRESS, ZERO_ADDRESS, signature],
            ),
        )

    def create_account_setup_transaction(self, account: str, owner: str, config: SetupConfig) -> TransactionRequest:
        """
        Batch that turns a fresh account into the full topology.

        The owner is swapped for a placeholder and regains control only
        through the Delay module; spending goes through the Roles module
        within the configured allowance.
        """
        account = normalize_address(account)
        owner = normalize_address(owner)
        delay = self.deriver.predict_delay(account)
        roles = self.deriver.predict_roles(account)
        allowance = config.allowance

        conditions = [
            (0, PARAMETER_TYPE_CALLDATA, OPERATOR_MATCHES, b""),
            (0, PARAMETER_TYPE_STATIC, OPERATOR_EQUAL_TO, encode(["address"], [config.receiver])),
            (0, PARAMETER_TYPE_STATIC, OPERATOR_WITHIN_ALLOWANCE, SPENDING_ALLOWANCE_KEY),
        ]

        def call(to: str, name: str, types: List[str], args: list) -> TransactionRequest:
            return TransactionRequest(to=to, value=0, data=encode_call(name, types, args))

        return encode_batch(
            [
                # owner out, placeholder in
                call(account, "swapOwner", ["address", "address", "address"], [ADDRESS_ONE, owner, ADDRESS_TWO]),
                call(account, "enableModule", ["address"], [roles]),
                call(account, "enableModule", ["address"], [delay]),
                # delay is deployed with zero timings to keep its address stable
                self.deriver.populate_module_creation(self.deriver.delay_params(account)),
                call(delay, "setTxCooldown", ["uint256"], [config.delay.cooldown]),
                call(delay, "setTxExpiration", ["uint256"], [config.delay.expiration]),
                call(delay, "enableModule", ["address"], [owner]),
                self.deriver.populate_module_creation(self.deriver.roles_params(account)),
                call(roles, "setAllowance", SET_ALLOWANCE_TYPES, [
                    SPENDING_ALLOWANCE_KEY,
                    allowance.refill,
                    allowance.refill,
                    allowance.refill,
                    allowance.period,
                    allowance.timestamp or 0,
                ]),
                call(roles, "assignRoles", ["address", "bytes32[]", "bool[]"],
                     [config.spender, [SPENDING_ROLE_KEY], [True]]),
                call(roles, "scopeTarget", ["bytes32", "address"], [SPENDING_ROLE_KEY, config.token]),
                call(roles, "scopeFunction", ["bytes32", "address", "bytes4", "(uint8,uint8,uint8,bytes)[]", "uint8"],
                     [SPENDING_ROLE_KEY, config.token, selector(TRANSFER_SIGNATURE), conditions,
                      EXECUTION_OPTIONS_NONE]),
                call(roles, "transferOwnership", ["address"], [self.deriver.predict_bouncer(account)]),
                self.deriver.populate_singleton_creation(self.deriver.bouncer_params(account)),
            ],
            self.deployments.multi_send,
        )

    def populate_account_setup(self, account: str, owner: str, chain_id: int, nonce: int,
                               config: SetupConfig, sign: SignCallback) -> TransactionRequest:
        """Owner-signed setup of a freshly created account."""
        batch = self.create_account_setup_transaction(account, owner, config)
        return self.populate_safe_transaction(account, chain_id, nonce, batch, sign)

    def create_spender_setup_transaction(self, spender: str, delegate: str) -> TransactionRequest:
        spender = normalize_address(spender)
        module = self.deriver.predict_spender_module(spender)
        return encode_batch(
            [
                TransactionRequest(to=spender, data=encode_call("enableModule", ["address"], [module])),
                self.deriver.populate_module_creation(self.deriver.spender_module_params(spender)),
                TransactionRequest(
                    to=module, data=encode_call("enableModule", ["address"], [normalize_address(delegate)])
                ),
            ],
            self.deployments.multi_send,
        )

    def populate_spender_setup(self, spender: str, delegate: str, chain_id: int, nonce: int,
                               sign: SignCallback) -> TransactionRequest:
        """Enable the spender module on the spender Safe and authorize ``delegate`` on it."""
        batch = self.create_spender_setup_transaction(spender, delegate)
        return self.populate_safe_transaction(spender, chain_id, nonce, batch, sign)

    def populate_spend(self, account: str, spender: str, chain_id: int, nonce: int,
                       transfer: Transfer, sign: SignCallback) -> TransactionRequest:
        """
        Spend from the account's allowance.

        The spender Safe calls the Roles module with the spending role; the
        Roles module enforces receiver and allowance.
        """
        roles = self.deriver.predict_roles(account)
        inner = erc20_transfer(transfer.token, transfer.to, transfer.amount)
        tx = TransactionRequest(
            to=roles,
            value=0,
            data=encode_call(
                "execTransactionWithRole",
                ["address", "uint256", "bytes", "uint8", "bytes32", "bool"],
                [inner.to, 0, inner.data, int(OperationType.CALL), SPENDING_ROLE_KEY, True],
            ),
        )
        return self.populate_safe_transaction(spender, chain_id, nonce, tx, sign)

    def populate_direct_transfer(self, safe: str, chain_id: int, nonce: int,
                                 transfer: Transfer, sign: SignCallback) -> TransactionRequest:
        """ERC-20 transfer executed by ``safe`` itself, signed by one of its owners."""
        tx = erc20_transfer(transfer.token, transfer.to, transfer.amount)
        return self.populate_safe_transaction(safe, chain_id, nonce, tx, sign)

    # ------------------------------------------------------------------
    # Delayed owner actions
    # ------------------------------------------------------------------

    def populate_execute_enqueue(self, account: str, chain_id: int, tx: TransactionRequest,
                                 sign: SignCallback, salt: Salt = None,
                                 smart_wallet: Optional[str] = None, erc7739: bool = False) -> TransactionRequest:
        return self.delayed.populate_enqueue(account, chain_id, tx, sign, salt, smart_wallet, erc7739)

    def populate_execute_dispatch(self, account: str, tx: TransactionRequest) -> TransactionRequest:
        return self.delayed.populate_dispatch(account, tx)

    def create_limit_transaction(self, account: str, config: AllowanceConfig) -> TransactionRequest:
        """``setAllowance`` routed through the bouncer, the only caller the Roles module accepts."""
        return TransactionRequest(
            to=self.deriver.predict_bouncer(account),
            value=0,
            data=encode_call("setAllowance", SET_ALLOWANCE_TYPES, [
                SPENDING_ALLOWANCE_KEY,
                config.refill,
                config.refill,
                config.refill,
                config.period,
                config.timestamp or 0,
            ]),
        )

    def populate_limit_enqueue(self, account: str, chain_id: int, config: AllowanceConfig,
                               sign: SignCallback, salt: Salt = None, **kwargs) -> TransactionRequest:
        tx = self.create_limit_transaction(account, config)
        return self.delayed.populate_enqueue(account, chain_id, tx, sign, salt, **kwargs)

    def populate_limit_dispatch(self, account: str, config: AllowanceConfig) -> TransactionRequest:
        return self.delayed.populate_dispatch(account, self.create_limit_transaction(account, config))

    def create_add_owner_transaction(self, account: str, new_owner: str) -> TransactionRequest:
        return TransactionRequest(
            to=self.deriver.predict_delay(account),
            data=encode_call("enableModule", ["address"], [normalize_address(new_owner)]),
        )

    def populate_add_owner_enqueue(self, account: str, chain_id: int, new_owner: str,
                                   sign: SignCallback, salt: Salt = None, **kwargs) -> TransactionRequest:
        tx = self.create_add_owner_transaction(account, new_owner)
        return self.delayed.populate_enqueue(account, chain_id, tx, sign, salt, **kwargs)

    def populate_add_owner_dispatch(self, account: str, new_owner: str) -> TransactionRequest:
        return self.delayed.populate_dispatch(account, self.create_add_owner_transaction(account, new_owner))

    def create_remove_owner_transaction(self, account: str, prev_owner: str, owner_to_remove: str) -> TransactionRequest:
        """
        ``disableModule`` on the Delay module.

        ``prev_owner`` is the entry preceding ``owner_to_remove`` in the owner
        list, or the sentinel when it is the first one.
        """
        return TransactionRequest(
            to=self.deriver.predict_delay(account),
            data=encode_call(
                "disableModule",
                ["address", "address"],
                [normalize_address(prev_owner), normalize_address(owner_to_remove)],
            ),
        )

    def populate_remove_owner_enqueue(self, account: str, chain_id: int, prev_owner: str, owner_to_remove: str,
                                      sign: SignCallback, salt: Salt = None, **kwargs) -> TransactionRequest:
        tx = self.create_remove_owner_transaction(account, prev_owner, owner_to_remove)
        return self.delayed.populate_enqueue(account, chain_id, tx, sign, salt, **kwargs)

    def populate_remove_owner_dispatch(self, account: str, prev_owner: str,
                                       owner_to_remove: str) -> TransactionRequest:
        tx = self.create_remove_owner_transaction(account, prev_owner, owner_to_remove)
        return self.delayed.populate_dispatch(account, tx)

    def create_sign_message_transaction(self, message: Union[str, bytes]) -> TransactionRequest:
        """Delegate call into SignMessageLib marking ``message`` as signed by the account."""
        return TransactionRequest(
            to=self.deployments.sign_message_lib,
            value=0,
            data=encode_call("signMessage", ["bytes"], [hash_message(message)]),
            operation=OperationType.DELEGATE_CALL,
        )

    def populate_sign_message_enqueue(self, account: str, chain_id: int, message: Union[str, bytes],
                                      sign: SignCallback, salt: Salt = None, **kwargs) -> TransactionRequest:
        tx = self.create_sign_message_transaction(message)
        return self.delayed.populate_enqueue(account, chain_id, tx, sign, salt, **kwargs)

    def populate_sign_message_dispatch(self, account: str, message: Union[str, bytes]) -> TransactionRequest:
        return self.delayed.populate_dispatch(account, self.create_sign_message_transaction(message))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_account_owners(self, account: str, eth_call: ReadCallback) -> List[str]:
        """
        List the owners enabled on the account's Delay module.

        Pages through ``getModulesPaginated`` until a short page comes back.
        """
        delay = self.deriver.predict_delay(account)
        owners: List[str] = []
        cursor = ADDRESS_ONE
        while True:
            request = TransactionRequest(
                to=delay,
                data=encode_call("getModulesPaginated", ["address", "uint256"], [cursor, OWNERS_PAGE_SIZE]),
            )
            page, _next = decode(["address[]", "address"], eth_call(request))
            page = [normalize_address(a) for a in page]
            owners.extend(page)
            if len(page) < OWNERS_PAGE_SIZE:
                return owners
            cursor = page[-1]

    def account_query(self, account: str, cooldown: int, eth_call: ReadCallback) -> AccountQueryResult:
        return self.integrity.query(account, cooldown, eth_call)
