"""
Private-key signer backed by eth_account.
"""
from typing import Any, Dict

from eth_account import Account
from eth_account.messages import encode_typed_data

from ..models import TypedMessage


class LocalSigner:
    """
    Signs typed data and relay transactions with a local private key.

    Instances are callable, so one can be passed directly wherever a signing
    callback is expected.
    """

    def __init__(self, private_key: str):
        self._account = Account.from_key(private_key)
        self.address = self._account.address

    def sign_typed_data(self, typed: TypedMessage) -> bytes:
        signable = encode_typed_data(full_message=typed.to_eip712())
        return bytes(self._account.sign_message(signable).signature)

    def __call__(self, typed: TypedMessage) -> bytes:
        return self.sign_typed_data(typed)

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        return self._account.sign_transaction(transaction_dict)
