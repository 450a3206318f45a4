"""
Propose/dispatch protocol of the Delay module.

A transaction is first proposed (enqueued) with an owner signature over a
``ModuleTx`` typed message, then dispatched with ``executeNextTx`` once the
cooldown has passed. Both steps must describe the exact same inner
transaction; the module rejects anything else.
"""
import logging
from typing import Callable, Optional, Union

from .abi import BytesLike, encode_call, normalize_address, pad32, to_bytes
from .addresses import AddressDeriver
from .config import Deployments
from .eip712 import build_modifier_tx, encode_type, hash_domain, hash_struct
from .models import TransactionRequest, TypedMessage

logger = logging.getLogger(__name__)

SignCallback = Callable[[TypedMessage], BytesLike]

MODULE_TX_ARGS = ["address", "uint256", "bytes", "uint8"]

# v byte marking a contract signature in the Delay module signature checker
CONTRACT_SIGNATURE_V = b"\x00"


class DelayedExecution:
    """
    Builds relay-ready enqueue and dispatch transactions for an account's Delay module.
    """

    def __init__(self, deployments: Deployments, deriver: Optional[AddressDeriver] = None):
        self.deployments = deployments
        self.deriver = deriver or AddressDeriver(deployments)

    @staticmethod
    def encode_inner(tx: TransactionRequest) -> bytes:
        """``execTransactionFromModule`` calldata of the proposed transaction."""
        return encode_call(
            "execTransactionFromModule",
            MODULE_TX_ARGS,
            [tx.to, tx.value, tx.data, int(tx.operation)],
        )

    def generate_typed_data(self, account: str, chain_id: int, tx: TransactionRequest,
                            salt: Optional[Union[str, bytes]] = None) -> TypedMessage:
        """
        Typed message an owner signs to propose ``tx``.

        Useful on its own when the signature is collected elsewhere (for
        example in a browser wallet) and assembled later with
        :meth:`get_transaction_request`.

        Raises:
            InvalidSaltError: If ``salt`` is malformed
        """
        delay = self.deriver.predict_delay(account)
        return build_modifier_tx(delay, chain_id, self.encode_inner(tx), salt)

    def populate_enqueue(
        self,
        account: str,
        chain_id: int,
        tx: TransactionRequest,
        sign: SignCallback,
        salt: Optional[Union[str, bytes]] = None,
        smart_wallet: Optional[str] = None,
        erc7739: bool = False,
    ) -> TransactionRequest:
        """
        Propose ``tx`` to the account's Delay module.

        Args:
            account: Account whose Delay module queues the transaction
            chain_id: Chain ID the signature is bound to
            tx: Inner transaction
            sign: Callback producing the owner signature; called exactly once
            salt: Replay-protection salt; defaults to the current timestamp
            smart_wallet: Owner contract when the signature is an ERC-1271 one
            erc7739: Wrap the contract signature the ERC-7739 way

        Returns:
            Relay-ready transaction to the Delay module

        Raises:
            InvalidSaltError: If ``salt`` is malformed
        """
        typed = self.generate_typed_data(account, chain_id, tx, salt)
        signature = sign(typed)
        return self.get_transaction_request(account, tx, typed, signature, smart_wallet, erc7739)

    def get_transaction_request(
        self,
        account: str,
        tx: TransactionRequest,
        typed: TypedMessage,
        signature: BytesLike,
        smart_wallet: Optional[str] = None,
        erc7739: bool = False,
    ) -> TransactionRequest:
        """
        Assemble the enqueue calldata from a signature collected out of band.

        EOA layout: ``inner | salt | signature``.
        Contract layout: ``inner | signature | salt | r | s | v`` where ``r`` is
        the signing contract, ``s`` the offset of the signature and ``v`` zero.
        """
        delay = self.deriver.predict_delay(account)
        inner = self.encode_inner(tx)
        salt = to_bytes(typed.message["salt"])
        signature = to_bytes(signature)

        if smart_wallet is None:
            data = inner + salt + signature
        else:
            if erc7739:
                signature = self._wrap_erc7739(signature, typed)
            r = pad32(bytes.fromhex(normalize_address(smart_wallet)[2:]))
            s = len(inner).to_bytes(32, "big")
            data = inner + signature + salt + r + s + CONTRACT_SIGNATURE_V

        logger.debug(f"Enqueue for {delay}: {len(data)} bytes of calldata")
        return TransactionRequest(to=delay, value=0, data=data)

    @staticmethod
    def _wrap_erc7739(signature: bytes, typed: TypedMessage) -> bytes:
        contents_type = encode_type(typed.primary_type, typed.types).encode()
        return (
            signature
            + hash_domain(typed.domain)
            + hash_struct(typed.primary_type, typed.types, typed.message)
            + contents_type
            + len(contents_type).to_bytes(2, "big")
        )

    def populate_dispatch(self, account: str, tx: TransactionRequest) -> TransactionRequest:
        """
        Execute the next queued transaction, which must equal ``tx``.

        No signature is needed; anyone may dispatch once the cooldown passed.
        """
        delay = self.deriver.predict_delay(account)
        return TransactionRequest(
            to=delay,
            value=0,
            data=encode_call("executeNextTx", MODULE_TX_ARGS, [tx.to, tx.value, tx.data, int(tx.operation)]),
        )
