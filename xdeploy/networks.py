import os
from typing import Optional

from ape import networks
from ape.logging import logger
from ape_etherscan.utils import API_KEY_ENV_KEY_MAP

from xdeploy.constants import DEFAULT_EXPLORER_API_KEY_ENVVAR, LOCAL_NETWORKS
from xdeploy.exceptions import ConfigurationError


def is_local_network() -> bool:
    """Returns True when connected to a local development chain."""
    return networks.provider.network.name in LOCAL_NETWORKS


def explorer_api_key_envvar() -> str:
    """Environment variable holding the explorer credential for the connected ecosystem."""
    ecosystem_name = networks.provider.network.ecosystem.name
    return API_KEY_ENV_KEY_MAP.get(ecosystem_name, DEFAULT_EXPLORER_API_KEY_ENVVAR)


def check_etherscan_plugin() -> Optional[str]:
    """
    Returns None when explorer verification is possible on the connected
    network, or the reason it is not (local network or missing API key).
    """
    if is_local_network():
        return "local network"
    envvar = explorer_api_key_envvar()
    if not os.environ.get(envvar):
        return f"{envvar} is not set"
    return None


def verification_enabled(requested: bool) -> bool:
    if not requested:
        logger.info("Verification disabled by request")
        return False
    reason = check_etherscan_plugin()
    if reason:
        logger.warning(f"Skipping explorer verification: {reason}")
        return False
    return True


def check_chain_id(expected: Optional[int]) -> None:
    """Live deployments must target the chain named in the parameters file."""
    if expected is None or is_local_network():
        return
    actual = networks.provider.network.chain_id
    if int(expected) != actual:
        raise ConfigurationError(
            "chain_id",
            f"parameters file targets {expected} but the connected network is {actual}",
        )


def describe_network() -> str:
    network = networks.provider.network
    return f"{network.ecosystem.name}:{network.name} (chain id {network.chain_id})"
