"""
Signer interfaces.

Anything with an ``address`` and a ``sign_typed_data`` method can sign
account operations; :class:`~accountkit_sdk.signer.local.LocalSigner` is the
private-key implementation.
"""
from typing import Any, Dict, Protocol, Union

from ..models import TypedMessage


class Signer(Protocol):
    """Protocol for custom signers"""
    address: str

    def sign_typed_data(self, typed: TypedMessage) -> Union[bytes, str]:
        """Return the 65-byte EIP-712 signature of ``typed``"""
        ...

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        """Sign transaction and return signed tx object"""
        ...


__all__ = ["Signer"]
