"""
Data models for the account kit.
"""
from enum import Enum, IntEnum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from .abi import normalize_address, to_bytes

Address = Annotated[str, BeforeValidator(normalize_address)]


class OperationType(IntEnum):
    """Safe/Zodiac execution mode"""
    CALL = 0
    DELEGATE_CALL = 1


class TransactionRequest(BaseModel):
    """
    A call ready to be relayed or wrapped in another transaction.

    ``data`` accepts bytes or a hex string and is always stored as bytes.
    """
    model_config = ConfigDict(frozen=True)

    to: Address
    value: int = Field(0, ge=0)
    data: bytes = b""
    operation: OperationType = OperationType.CALL

    @field_validator("data", mode="before")
    @classmethod
    def _coerce_data(cls, value: Any) -> bytes:
        return to_bytes(value)

    @property
    def data_hex(self) -> str:
        return "0x" + self.data.hex()

    def to_relay(self) -> Dict[str, Any]:
        """The ``{to, value, data}`` triple a relayer broadcasts."""
        return {"to": self.to, "value": self.value, "data": self.data_hex}


class TypedMessage(BaseModel):
    """
    EIP-712 payload handed to signing callbacks.

    Mirrors the ``{domain, primaryType, types, message}`` shape used by wallets;
    ``types`` never includes ``EIP712Domain``, use :meth:`to_eip712` for the
    full document.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    domain: Dict[str, Any]
    primary_type: str = Field(..., alias="primaryType")
    types: Dict[str, List[Dict[str, str]]]
    message: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def to_eip712(self) -> Dict[str, Any]:
        """
        Full EIP-712 document with the domain type and byte fields as bytes.

        Returns:
            Dict accepted by ``eth_account.messages.encode_typed_data(full_message=...)``
        """
        domain_fields = []
        if "chainId" in self.domain:
            domain_fields.append({"name": "chainId", "type": "uint256"})
        if "verifyingContract" in self.domain:
            domain_fields.append({"name": "verifyingContract", "type": "address"})

        message = {}
        for field in self.types[self.primary_type]:
            value = self.message[field["name"]]
            if field["type"].startswith("bytes"):
                value = to_bytes(value)
            message[field["name"]] = value

        return {
            "types": {"EIP712Domain": domain_fields, **self.types},
            "domain": dict(self.domain),
            "primaryType": self.primary_type,
            "message": message,
        }


class AllowanceConfig(BaseModel):
    """Spending allowance parameters"""
    refill: int = Field(..., ge=0)
    period: int = Field(..., ge=0)
    timestamp: Optional[int] = None


class DelayConfig(BaseModel):
    """Delay module timings in seconds"""
    cooldown: int = Field(..., ge=0)
    expiration: int = Field(..., ge=0)


class SetupConfig(BaseModel):
    """Everything the account setup batch configures"""
    spender: Address
    receiver: Address
    token: Address
    allowance: AllowanceConfig
    delay: DelayConfig


class Transfer(BaseModel):
    """ERC-20 transfer"""
    token: Address
    to: Address
    amount: int = Field(..., ge=0)


class AccountIntegrityStatus(str, Enum):
    """
    Health of an account topology, in evaluation precedence order.
    """
    OK = "OK"
    SAFE_NOT_DEPLOYED = "SAFE_NOT_DEPLOYED"
    SAFE_MISCONFIGURED = "SAFE_MISCONFIGURED"
    ROLES_NOT_DEPLOYED = "ROLES_NOT_DEPLOYED"
    ROLES_MISCONFIGURED = "ROLES_MISCONFIGURED"
    DELAY_NOT_DEPLOYED = "DELAY_NOT_DEPLOYED"
    DELAY_MISCONFIGURED = "DELAY_MISCONFIGURED"
    DELAY_QUEUE_NOT_EMPTY = "DELAY_QUEUE_NOT_EMPTY"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class AllowanceInfo(BaseModel):
    """Spendable allowance as of the queried block"""
    balance: int = 0
    refill: int = 0
    max_refill: int = 0
    period: int = 0
    next_refill: Optional[int] = None


class AccountQueryResult(BaseModel):
    status: AccountIntegrityStatus
    allowance: AllowanceInfo


class ModuleTopology(BaseModel):
    """Predicted addresses of the contracts attached to an account"""
    account: Address
    delay: Address
    roles: Address
    bouncer: Address
    forwarder: Optional[Address] = None
    owner_channel: Optional[Address] = None
    spender_channel: Optional[Address] = None


class TxReceipt(BaseModel):
    """Transaction receipt from the blockchain"""
    model_config = ConfigDict(populate_by_name=True)

    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: str = Field(..., alias="blockHash")
    status: int
    gas_used: int = Field(..., alias="gasUsed")
    from_address: str = Field(..., alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    logs: List[Dict[str, Any]]
