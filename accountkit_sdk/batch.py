"""
MultiSend batch encoding.
"""
import logging
from typing import Sequence

from .abi import encode_call
from .models import OperationType, TransactionRequest

logger = logging.getLogger(__name__)


def pack_transaction(tx: TransactionRequest) -> bytes:
    """
    Tightly pack one batch member.

    Layout: operation (1 byte) | to (20) | value (32) | data length (32) | data
    """
    return (
        bytes([int(tx.operation)])
        + bytes.fromhex(tx.to[2:])
        + tx.value.to_bytes(32, "big")
        + len(tx.data).to_bytes(32, "big")
        + tx.data
    )


def encode_batch(transactions: Sequence[TransactionRequest], multisend: str) -> TransactionRequest:
    """
    Wrap transactions into one ``multiSend(bytes)`` delegate call.

    Args:
        transactions: Members, executed in the given order. May be empty.
        multisend: Address of the MultiSend library

    Returns:
        A DELEGATE_CALL request to ``multisend`` with value 0
    """
    packed = b"".join(pack_transaction(tx) for tx in transactions)
    logger.debug(f"Encoded batch of {len(transactions)} transactions ({len(packed)} bytes)")
    return TransactionRequest(
        to=multisend,
        value=0,
        data=encode_call("multiSend", ["bytes"], [packed]),
        operation=OperationType.DELEGATE_CALL,
    )
