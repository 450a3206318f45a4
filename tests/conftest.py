"""
Pytest fixtures for the account kit tests.
"""
import pytest
from unittest.mock import MagicMock
from web3 import Web3
from web3.providers import BaseProvider
from web3.providers.rpc import HTTPProvider

from accountkit_sdk._rate_limited_log import reset_rate_limits
from accountkit_sdk.account import AccountKit
from accountkit_sdk.addresses import AddressDeriver
from accountkit_sdk.config import Deployments, NetworkConfig
from accountkit_sdk.signer.local import LocalSigner

# Constants for testing
TEST_RPC_URL = "https://rpc.example.com"
TEST_PRIV_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
TEST_CHAIN_ID = 100
TEST_ACCOUNT = "0x1234567890123456789012345678901234567890"
TEST_OWNER = "0x2345678901234567890123456789012345678901"
TEST_SPENDER = "0x3456789012345678901234567890123456789012"
TEST_RECEIVER = "0x4567890123456789012345678901234567890123"
TEST_TOKEN = "0x5678901234567890123456789012345678901234"
TEST_SALT = "0x" + "ab" * 32

# Synthetic creation code; predictions only depend on the bytes, not on what they do
TEST_PROXY_CREATION_CODE = bytes.fromhex("608060405234801561001057600080fd5b50")
TEST_BOUNCER_BYTECODE = bytes.fromhex("6080604052348015600f57600080fd5b50b0")
TEST_FORWARDER_BYTECODE = bytes.fromhex("6080604052348015600f57600080fd5b50f0")
TEST_SPENDER_CREATION_NONCE = 7


@pytest.fixture(autouse=True)
def _patch_http_provider(monkeypatch):
    """
    Stub every Web3 HTTP call so no DNS / network traffic is triggered.
    Works for all tests because it is autouse.
    """
    def _dummy(self, method, params=None, _=None):
        if method in {"eth_chainId"}:
            return {"jsonrpc": "2.0", "id": 1, "result": hex(TEST_CHAIN_ID)}
        if method in {"eth_gasPrice"}:
            return {"jsonrpc": "2.0", "id": 1, "result": "0x3b9aca00"}  # 1 gwei
        return {"jsonrpc": "2.0", "id": 1, "result": "0x0"}

    monkeypatch.setattr(HTTPProvider, "make_request", _dummy, raising=True)


@pytest.fixture(autouse=True)
def _fresh_state():
    """Reset class-level caches between tests."""
    reset_rate_limits()
    NetworkConfig._networks_cache = None
    yield
    NetworkConfig._networks_cache = None


@pytest.fixture
def deployments():
    return Deployments(
        safe_proxy_creation_code=TEST_PROXY_CREATION_CODE,
        bouncer_bytecode=TEST_BOUNCER_BYTECODE,
        forwarder_bytecode=TEST_FORWARDER_BYTECODE,
        spender_creation_nonce=TEST_SPENDER_CREATION_NONCE,
    )


@pytest.fixture
def deriver(deployments):
    return AddressDeriver(deployments)


@pytest.fixture
def kit(deployments):
    return AccountKit(deployments)


@pytest.fixture
def signer():
    return LocalSigner(TEST_PRIV_KEY)


@pytest.fixture
def recording_signer(signer):
    """Signing callback that records every typed message it is given."""
    calls = []

    def _sign(typed):
        calls.append(typed)
        return signer.sign_typed_data(typed)

    _sign.calls = calls
    return _sign


@pytest.fixture
def mock_web3_provider():
    """Mock of a Web3 provider with the eth methods the client touches."""
    provider = MagicMock(spec=BaseProvider)

    eth = MagicMock()
    eth.chain_id = TEST_CHAIN_ID
    eth.gas_price = 1000000000
    eth.get_transaction_count = MagicMock(return_value=12)
    eth.estimate_gas = MagicMock(return_value=100000)
    eth.send_raw_transaction = MagicMock(return_value=bytes.fromhex("ab" * 32))

    def wait_for_receipt(tx_hash, **kwargs):
        return {
            'transactionHash': tx_hash,
            'blockNumber': 12345,
            'blockHash': bytes.fromhex('abcdef1234567890' * 4),
            'status': 1,
            'gasUsed': 85000,
            'from': LocalSigner(TEST_PRIV_KEY).address,
            'to': TEST_ACCOUNT,
            'logs': []
        }

    eth.wait_for_transaction_receipt = MagicMock(side_effect=wait_for_receipt)
    provider.eth = eth
    return provider


@pytest.fixture
def mock_w3(mock_web3_provider):
    mock = MagicMock(spec=Web3)
    mock.eth = mock_web3_provider.eth
    return mock
