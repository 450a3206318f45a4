"""
Web3-backed client: reads account state and relays populated transactions.
"""
import logging
import urllib.parse
from typing import Any, Dict, List, Optional

from web3 import Web3
from web3.exceptions import Web3Exception
from web3.types import TxReceipt as Web3TxReceipt

from .abi import decode, normalize_address, selector
from .account import AccountKit
from .config import Deployments, NetworkConfig
from .exceptions import TransactionError
from .models import AccountQueryResult, OperationType, TransactionRequest, TxReceipt
from .signer import Signer
from .signer.local import LocalSigner

DEFAULT_GAS = 1_000_000


class AccountKitClient:
    """
    Client binding an :class:`~accountkit_sdk.account.AccountKit` to a JSON-RPC node.

    The kit itself never touches the network; this client supplies the read
    callback (``eth_call``) and a relayer that signs and broadcasts populated
    transactions.
    """

    def __init__(
        self,
        rpc_url: str,
        deployments: Optional[Deployments] = None,
        signer: Optional[Signer] = None,
        priv_key: Optional[str] = None,
        expected_chain_id: Optional[int] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the client

        Args:
            rpc_url: JSON-RPC endpoint (https unless localhost)
            deployments: Contract registry, canonical deployments by default
            signer: Relayer signer used by :meth:`relay`
            priv_key: Relayer private key, alternative to ``signer``
            expected_chain_id: Fail fast when the node serves another chain
            logger: Optional logger instance

        Raises:
            ValueError: If the URL is not https, or the chain ID does not match
        """
        parsed = urllib.parse.urlparse(rpc_url)
        host = parsed.netloc.split(':')[0]
        if parsed.scheme != 'https' and host not in ('localhost', '127.0.0.1'):
            raise ValueError(f"rpc_url must use https:// for security (got: {parsed.scheme}://)")

        self.rpc_url = rpc_url
        self.logger = logger or logging.getLogger(__name__)
        self.w3 = Web3(Web3.HTTPProvider(rpc_url))
        self.kit = AccountKit(deployments or Deployments())

        if signer is None and priv_key:
            signer = LocalSigner(priv_key)
        self.signer = signer

        if expected_chain_id is not None:
            self.assert_chain_id(expected_chain_id)

    @classmethod
    def from_network(
        cls,
        network: str,
        signer: Optional[Signer] = None,
        priv_key: Optional[str] = None,
        rpc_url: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
        **deployment_overrides: Any
    ) -> "AccountKitClient":
        """
        Build a client from the packaged network configuration.

        Args:
            network: Network name (e.g. ``"gnosis"``)
            rpc_url: Overrides the configured endpoint
            **deployment_overrides: Passed to :meth:`NetworkConfig.get_deployments`
        """
        return cls(
            rpc_url=NetworkConfig.get_rpc_url(network, override=rpc_url),
            deployments=NetworkConfig.get_deployments(network, **deployment_overrides),
            signer=signer,
            priv_key=priv_key,
            expected_chain_id=NetworkConfig.get_chain_id(network),
            logger=logger,
        )

    @property
    def deployments(self) -> Deployments:
        return self.kit.deployments

    @property
    def chain_id(self) -> int:
        return self.w3.eth.chain_id

    def assert_chain_id(self, expected: int) -> None:
        actual = self.chain_id
        if actual != expected:
            raise ValueError(f"Chain ID mismatch: expected {expected}, node reports {actual}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def eth_call(self, request: TransactionRequest) -> bytes:
        """Read callback for the kit: ``eth_call`` at the latest block."""
        self.logger.debug(f"eth_call to {request.to} ({len(request.data)} bytes)")
        return bytes(self.w3.eth.call({"to": request.to, "data": request.data_hex, "value": request.value}))

    def get_safe_nonce(self, safe: str) -> int:
        request = TransactionRequest(to=normalize_address(safe), data=selector("nonce()"))
        (nonce,) = decode(["uint256"], self.eth_call(request))
        return nonce

    def query_account(self, account: str, cooldown: int) -> AccountQueryResult:
        return self.kit.account_query(account, cooldown, self.eth_call)

    def get_account_owners(self, account: str) -> List[str]:
        return self.kit.get_account_owners(account, self.eth_call)

    # ------------------------------------------------------------------
    # Relay
    # ------------------------------------------------------------------

    @property
    def address(self) -> str:
        """
        Relayer address

        Raises:
            ValueError: If no signer is configured
        """
        if not self.signer:
            raise ValueError("No signer available")
        return self.signer.address

    def relay(
        self,
        tx: TransactionRequest,
        gas: Optional[int] = None,
        gas_price_override: Optional[int] = None,
        poll_interval: Optional[float] = None,
        wait_for_receipt: bool = True
    ) -> TxReceipt:
        """
        Sign and broadcast a populated transaction from the relayer account.

        Args:
            tx: Relay-ready transaction (CALL only)
            gas: Gas limit (estimated when None)
            gas_price_override: Gas price (network price when None)
            poll_interval: Receipt polling interval in seconds
            wait_for_receipt: Whether to wait for the receipt

        Returns:
            Transaction receipt

        Raises:
            ValueError: If no signer is configured or ``tx`` is a delegate call
            TransactionError: If signing or sending fails
            Web3Exception: If there's an error with Web3 operations
        """
        if tx.operation != OperationType.CALL:
            raise ValueError("Only CALL transactions can be relayed; wrap delegate calls in a Safe transaction")
        from_address = self.address

        try:
            tx_params: Dict[str, Any] = {
                **tx.to_relay(),
                'from': from_address,
                'nonce': self.w3.eth.get_transaction_count(from_address),
                'chainId': self.chain_id,
            }

            if gas is None:
                try:
                    gas = int(self.w3.eth.estimate_gas(tx_params) * 1.1)
                    self.logger.debug(f"Estimated gas: {gas}")
                except Exception as e:
                    gas = DEFAULT_GAS
                    self.logger.warning(f"Gas estimation failed, using default: {gas}. Error: {e}")
            tx_params['gas'] = gas
            tx_params['gasPrice'] = gas_price_override if gas_price_override is not None else self.w3.eth.gas_price

            try:
                signed_tx = self.signer.sign_transaction(tx_params)
            except Exception as e:
                self.logger.error(f"Transaction signing failed: {e}")
                raise TransactionError(f"Failed to sign transaction: {str(e)}")

            try:
                tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
                self.logger.info(f"Transaction sent: {Web3.to_hex(tx_hash)}")
            except Web3Exception:
                raise
            except Exception as e:
                self.logger.error(f"Failed to send transaction: {e}")
                raise TransactionError(f"Failed to send transaction: {str(e)}")

            if wait_for_receipt:
                receipt = self.w3.eth.wait_for_transaction_receipt(
                    tx_hash,
                    timeout=120,
                    poll_latency=poll_interval or 0.1
                )
                return self._convert_receipt(receipt)

            return TxReceipt(
                transactionHash=Web3.to_hex(tx_hash),
                blockNumber=0,
                blockHash="0x" + "00" * 32,
                status=0,
                gasUsed=0,
                logs=[],
                **{"from": from_address, "to": tx.to},
            )

        except (TransactionError, Web3Exception):
            raise
        except Exception as e:
            self.logger.error(f"Unexpected error during relay: {e}")
            raise TransactionError(f"Transaction failed: {str(e)}")

    def _convert_receipt(self, web3_receipt: Web3TxReceipt) -> TxReceipt:
        """Convert a Web3 receipt to our TxReceipt model"""
        receipt_dict = dict(web3_receipt)
        for key, value in list(receipt_dict.items()):
            if isinstance(value, bytes):
                receipt_dict[key] = '0x' + value.hex()
        return TxReceipt.model_validate(receipt_dict)
