"""
Exceptions for the account kit.
"""


class AccountKitError(Exception):
    """Base exception for account kit errors."""
    pass


class InvalidAddressError(AccountKitError, ValueError):
    """Raised when an address is malformed or fails its checksum."""
    pass


class InvalidSaltError(AccountKitError, ValueError):
    """Raised when a replay-protection salt is not 32 bytes of hex."""
    pass


class ConfigurationError(AccountKitError):
    """Raised when a deployment setting or artifact needed for an operation is missing."""
    pass


class TransactionError(AccountKitError):
    """Raised when signing or broadcasting a relay transaction fails."""

    def __init__(self, message: str, tx_hash: str = None):
        self.tx_hash = tx_hash
        super().__init__(message)
