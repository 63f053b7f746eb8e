"""
Network registry and SDK settings.
"""
import importlib.resources
import json
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

import pydantic

from .exceptions import UnknownNetworkError, ValidationError
from .models import CUSTOM_NETWORK_NAME, NetworkEndpoints, NetworkRecord

DEFAULT_NETWORK = "mainnet"
ENDPOINT_KINDS = ("api", "node", "ws", "explorer")

NetworkInput = Union[str, NetworkRecord, Mapping[str, Any]]

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_bool(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if value is None or value == "":
        return None
    return value.strip().lower() in _TRUE_VALUES


def _env_number(name: str, cast):
    value = os.environ.get(name)
    if value is None or value == "":
        return None
    try:
        return cast(value)
    except ValueError:
        raise ValidationError(f"{name} must be a number (got: {value!r})", {name: value}) from None


@dataclass(frozen=True)
class SDKSettings:
    """
    Tunables shared by every provider.

    Environment variables:
        KLEVER_SDK_TIMEOUT: per-attempt HTTP timeout in seconds
        KLEVER_SDK_RETRIES: retries after the first HTTP attempt
        KLEVER_SDK_DEBUG: "1" to enable debug logging on providers
        KLEVER_SDK_ALLOW_INSECURE: "1" to allow plain http to remote hosts
    """
    timeout: float = 30.0
    retries: int = 3
    debug: bool = False
    allow_insecure: bool = False

    @classmethod
    def from_env(cls, **overrides: Any) -> "SDKSettings":
        """
        Build settings from the environment.

        Keyword arguments that are not None take precedence over the environment.
        """
        values: Dict[str, Any] = {}
        env_values = {
            "timeout": _env_number("KLEVER_SDK_TIMEOUT", float),
            "retries": _env_number("KLEVER_SDK_RETRIES", int),
            "debug": _env_bool("KLEVER_SDK_DEBUG"),
            "allow_insecure": _env_bool("KLEVER_SDK_ALLOW_INSECURE"),
        }
        for key, env_value in env_values.items():
            override = overrides.get(key)
            if override is not None:
                values[key] = override
            elif env_value is not None:
                values[key] = env_value
        return cls(**values)


class NetworkRegistry:
    """
    Built-in networks and resolution of user supplied network descriptions.

    Built-in records are created once and cached, so resolving the same name
    twice returns the same object.
    """

    _networks_cache: Optional[Dict[str, Any]] = None
    _records_cache: Optional[Dict[str, NetworkRecord]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Any]:
        """
        Load the raw built-in network table shipped with the package.

        Returns:
            Mapping of network name to its raw configuration
        """
        if cls._networks_cache is None:
            resource = importlib.resources.files("klever_sdk").joinpath("networks.json")
            with resource.open("r", encoding="utf-8") as f:
                cls._networks_cache = json.load(f)
        return cls._networks_cache

    @classmethod
    def builtin_networks(cls) -> Dict[str, NetworkRecord]:
        if cls._records_cache is None:
            cls._records_cache = {
                name: NetworkRecord.model_validate({"name": name, **raw})
                for name, raw in cls.load_networks().items()
            }
        return cls._records_cache

    @classmethod
    def reset_cache(cls) -> None:
        cls._networks_cache = None
        cls._records_cache = None

    @classmethod
    def available_networks(cls) -> List[str]:
        return list(cls.builtin_networks())

    @classmethod
    def get_network(cls, name: str) -> NetworkRecord:
        """
        Get a built-in network by name.

        Raises:
            UnknownNetworkError: If no built-in network has that name
        """
        networks = cls.builtin_networks()
        if name not in networks:
            available = ", ".join(networks)
            raise UnknownNetworkError(
                f"Unknown network: {name}. Available networks: {available}",
                {"network": name}
            )
        return networks[name]

    @classmethod
    def resolve(cls, network: NetworkInput) -> NetworkRecord:
        """
        Resolve a network description to a NetworkRecord.

        Args:
            network: A built-in name, a NetworkRecord, a full record mapping,
                or the shorthand ``{"url": ..., "chainId": ...}``

        Returns:
            The resolved record; built-in names always yield the same object

        Raises:
            UnknownNetworkError: If the name is unknown or the input is unrecognised
            ValidationError: If a full record mapping is malformed
        """
        if isinstance(network, NetworkRecord):
            return network
        if isinstance(network, str):
            return cls.get_network(network)
        if isinstance(network, Mapping):
            chain_id = network.get("chainId", network.get("chain_id"))
            if "url" in network and chain_id is not None:
                return cls.create_custom_network(
                    chain_id=chain_id, api=network["url"], node=network["url"]
                )
            if "endpoints" in network:
                try:
                    return NetworkRecord.model_validate(network)
                except pydantic.ValidationError as e:
                    raise ValidationError(
                        f"Invalid network record: {e}", {"network": dict(network)}
                    ) from e
        raise UnknownNetworkError("Unknown network", {"network": network})

    @classmethod
    def get_by_chain_id(cls, chain_id: Union[str, int]) -> Optional[NetworkRecord]:
        for record in cls.builtin_networks().values():
            if record.chain_id == str(chain_id):
                return record
        return None

    @staticmethod
    def create_custom_network(
        chain_id: Union[str, int],
        api: str,
        node: str,
        ws: Optional[str] = None,
        explorer: Optional[str] = None,
        is_testnet: bool = True,
        name: str = CUSTOM_NETWORK_NAME
    ) -> NetworkRecord:
        """
        Create a record for a network that is not built in.

        Optional endpoints that are not supplied stay unset rather than being
        stored as placeholders.
        """
        endpoints: Dict[str, str] = {"api": api, "node": node}
        if ws is not None:
            endpoints["ws"] = ws
        if explorer is not None:
            endpoints["explorer"] = explorer
        return NetworkRecord(
            name=name,
            chainId=str(chain_id),
            endpoints=NetworkEndpoints(**endpoints),
            isTestnet=is_testnet,
        )

    @classmethod
    def get_endpoint(
        cls,
        network: NetworkInput,
        kind: str,
        override: Optional[str] = None
    ) -> str:
        """
        Get one endpoint URL of a network.

        Priority: explicit override, then ``KLEVER_<NETWORK>_<KIND>_URL``, then
        the record itself.

        Raises:
            ValidationError: If the kind is unknown or the network lacks it
        """
        if kind not in ENDPOINT_KINDS:
            raise ValidationError(f"Unknown endpoint kind: {kind}", {"kind": kind})
        if override:
            return override

        record = cls.resolve(network)
        env_name = f"KLEVER_{record.identifier.upper().replace('-', '_')}_{kind.upper()}_URL"
        env_url = os.environ.get(env_name)
        if env_url:
            return env_url

        url = getattr(record.endpoints, kind)
        if not url:
            raise ValidationError(
                f"Network {record.identifier} has no {kind} endpoint",
                {"network": record.identifier, "kind": kind}
            )
        return url
