"""
Deployment registry and network configuration.
"""
import importlib.resources
import json
import logging
import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .abi import to_bytes
from .constants import ACCOUNT_CREATION_NONCE
from .exceptions import ConfigurationError
from .models import Address

logger = logging.getLogger(__name__)


class Deployments(BaseModel):
    """
    Immutable registry of the contracts an account topology is built from.

    Addresses default to the canonical deployments shared by every supported
    chain. Creation-code artifacts are not bundled; supply them when the
    operation needs them (account proxy, bouncer and forwarder prediction).
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, validate_default=True)

    safe_mastercopy: Address = Field("0xd9db270c1b5e3bd161e8c8503c55ceabee709552", alias="safeMastercopy")
    safe_proxy_factory: Address = Field("0xa6b71e26c5e0845f74c812102ca7114b6a896ab2", alias="safeProxyFactory")
    fallback_handler: Address = Field("0xf48f2b2d2a534e402487b3ee7c18c33aec0fe5e4", alias="fallbackHandler")
    multi_send: Address = Field("0xa238cbeb142c10ef7ad8442c6d1f9e89e07e7761", alias="multiSend")
    sign_message_lib: Address = Field("0xa65387f16b013cf2af4605ad8aa5ec25a2cba3a2", alias="signMessageLib")
    module_proxy_factory: Address = Field("0x000000000000addb49795b0f9ba5bc298cdda236", alias="moduleProxyFactory")
    delay_mastercopy: Address = Field("0x4a97e65188a950dd4b0f21f9b5434daee0bbf9f5", alias="delayMastercopy")
    roles_mastercopy: Address = Field("0x9646fdad06d3e24444381f44362a3b0eb343d337", alias="rolesMastercopy")
    spender_mod_mastercopy: Address = Field("0x70db53617d170a4e407e00dff718099539134f9a", alias="spenderModMastercopy")
    singleton_factory: Address = Field("0x914d7fec6aac8cd542e72bca78b30650d45643d7", alias="singletonFactory")
    multicall: Address = Field("0xca11bde05977b3631167028862be2a173976ca11", alias="multicall")

    safe_proxy_creation_code: Optional[bytes] = Field(None, alias="safeProxyCreationCode")
    bouncer_bytecode: Optional[bytes] = Field(None, alias="bouncerBytecode")
    forwarder_bytecode: Optional[bytes] = Field(None, alias="forwarderBytecode")

    account_creation_nonce: int = Field(ACCOUNT_CREATION_NONCE, alias="accountCreationNonce", ge=0)
    spender_creation_nonce: Optional[int] = Field(None, alias="spenderCreationNonce", ge=0)

    @field_validator("safe_proxy_creation_code", "bouncer_bytecode", "forwarder_bytecode", mode="before")
    @classmethod
    def _coerce_bytecode(cls, value: Any) -> Optional[bytes]:
        if value is None:
            return None
        return to_bytes(value)

    def require(self, name: str) -> Any:
        """
        Fetch a setting that has no default.

        Args:
            name: Field name, e.g. ``"bouncer_bytecode"``

        Raises:
            ConfigurationError: If the setting was never supplied
        """
        value = getattr(self, name)
        if value is None or value == b"":
            raise ConfigurationError(
                f"Deployments.{name} is not configured; pass it when building Deployments"
            )
        return value

    def with_overrides(self, **overrides: Any) -> "Deployments":
        """Return a new registry with some settings replaced."""
        return Deployments(**{**self.model_dump(), **overrides})


class NetworkConfig:
    """
    Network configuration for supported chains.

    Loaded once from the packaged ``networks.json``.
    """
    _networks_cache: Optional[Dict[str, Any]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Any]:
        if cls._networks_cache is not None:
            return cls._networks_cache

        resource = importlib.resources.files("accountkit_sdk").joinpath("networks.json")
        with resource.open("r", encoding="utf-8") as f:
            cls._networks_cache = json.load(f)
        logger.debug(f"Loaded {len(cls._networks_cache)} network definitions")
        return cls._networks_cache

    @classmethod
    def get_network(cls, network: str) -> Dict[str, Any]:
        """
        Get the configuration block of a network.

        Raises:
            ValueError: If the network is unknown
        """
        networks = cls.load_networks()
        if network not in networks:
            available = ", ".join(sorted(networks))
            raise ValueError(f"Unknown network '{network}'. Available networks: {available}")
        return networks[network]

    @classmethod
    def get_chain_id(cls, network: str) -> int:
        return int(cls.get_network(network)["chainId"])

    @classmethod
    def get_rpc_url(cls, network: str, override: Optional[str] = None) -> str:
        """
        Resolve the RPC endpoint of a network.

        Precedence: ``override`` argument, then the ``<NETWORK>_RPC_URL``
        environment variable, then the packaged default.
        """
        if override:
            return override

        env_var = f"{network.upper().replace('-', '_')}_RPC_URL"
        env_url = os.environ.get(env_var)
        if env_url:
            return env_url

        return cls.get_network(network)["rpc"]

    @classmethod
    def get_deployments(cls, network: str, **overrides: Any) -> Deployments:
        """
        Build the deployment registry of a network.

        Args:
            network: Network name, e.g. ``"gnosis"``
            **overrides: Extra or replacement settings (creation-code artifacts,
                ``spender_creation_nonce``...)
        """
        deployments = Deployments(**cls.get_network(network).get("deployments", {}))
        if overrides:
            deployments = deployments.with_overrides(**overrides)
        return deployments
