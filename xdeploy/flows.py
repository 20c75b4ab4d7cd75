"""
Catalogue of deployment flows.

A flow pairs a configuration schema with a planner that turns a validated
configuration into a fixed list of steps. Optional components are decided
here, before anything is sent to the chain.
"""

from typing import Callable, Dict, List, NamedTuple

from eth_utils import is_address
from web3 import Web3

from xdeploy.config import (
    ConfigSchema,
    DeploymentConfig,
    Field,
    is_flag,
    is_number,
    is_text,
    is_token_spec,
    is_uint,
    list_of,
    to_flag,
)
from xdeploy.constants import DEPLOYER_VARIABLE, TOKEN_DECIMALS_UNIT, VARIABLE_PREFIX
from xdeploy.events import EventRule
from xdeploy.exceptions import ConfigurationError
from xdeploy.plan import (
    Call,
    DeploymentPlan,
    DeploymentStep,
    deploy,
    deploy_proxy,
    existing,
    factory_call,
    upgrade,
)

DEPLOYER = f"{VARIABLE_PREFIX}{DEPLOYER_VARIABLE}"

Planner = Callable[[DeploymentConfig], List[DeploymentStep]]


class Flow(NamedTuple):
    name: str
    description: str
    schema: ConfigSchema
    planner: Planner

    def plan(self, config: DeploymentConfig) -> DeploymentPlan:
        """Builds the plan; values a planner cannot convert are configuration errors."""
        try:
            steps = self.planner(config)
        except ConfigurationError:
            raise
        except (ValueError, TypeError) as e:
            raise ConfigurationError(self.name, f"cannot plan with the given parameters: {e}") from e
        return DeploymentPlan(flow=self.name, steps=steps)


def ref(name: str) -> str:
    return f"{VARIABLE_PREFIX}{name}"


def to_wei(value) -> int:
    """Converts a whole-token amount, e.g. 1000, "2.5" or "1e6", to wei."""
    if not isinstance(value, int):
        value = str(value)
    return Web3.to_wei(value, TOKEN_DECIMALS_UNIT)


#
# Chainlink CCIP / Automation
#


RATE_SENDER_SCHEMA: ConfigSchema = (
    Field("routerAddress", is_address, description="CCIP router on the source chain"),
    Field("linkAddress", is_address, description="LINK token on the source chain"),
    Field("tokens", list_of(is_token_spec), required=False, description="rate tokens"),
)


def plan_rate_sender(config: DeploymentConfig) -> List[DeploymentStep]:
    steps = list()
    for token in config.get("tokens") or []:
        if token.get("address"):
            steps.append(existing(f"Token[{token['name']}]", token["address"], contract="ERC20"))
            continue
        name = f"MockToken[{token['name']}]"
        steps.append(deploy(name, to_wei(token["initialRate"]), contract="MockToken"))
    steps.append(
        deploy_proxy("RateSender", config["routerAddress"], config["linkAddress"], DEPLOYER)
    )
    return steps


REGISTER_UPKEEP_SCHEMA: ConfigSchema = (
    Field("linkAddress", is_address, description="LINK token"),
    Field("registrarAddress", is_address, description="Automation registrar"),
)


def plan_register_upkeep(config: DeploymentConfig) -> List[DeploymentStep]:
    return [
        deploy_proxy(
            "RegisterUpkeep", config["linkAddress"], config["registrarAddress"], DEPLOYER
        )
    ]


UPGRADE_REGISTER_UPKEEP_SCHEMA: ConfigSchema = (
    Field("proxyAddress", is_address, description="deployed RegisterUpkeep proxy"),
)


def plan_upgrade_register_upkeep(config: DeploymentConfig) -> List[DeploymentStep]:
    return [upgrade("RegisterUpkeep", config["proxyAddress"])]


TOKEN_TRANSFEROR_SCHEMA: ConfigSchema = (
    Field("routerAddress", is_address, description="CCIP router"),
)


def plan_token_transferor(config: DeploymentConfig) -> List[DeploymentStep]:
    return [deploy_proxy("TokenTransferor", config["routerAddress"], DEPLOYER)]


MOCK_TOKEN_SCHEMA: ConfigSchema = (
    Field("initialRate", is_uint, description="initial rate, in wei"),
)


def plan_mock_token(config: DeploymentConfig) -> List[DeploymentStep]:
    return [deploy("MockToken", int(config["initialRate"]))]


#
# Connext xERC20
#


XERC20_FACTORY_SCHEMA: ConfigSchema = ()


def plan_xerc20_factory(config: DeploymentConfig) -> List[DeploymentStep]:
    return [deploy("XERC20Factory")]


XERC20_SCHEMA: ConfigSchema = (
    Field("xerc20FactoryAddress", is_address, description="deployed XERC20Factory"),
    Field("name", is_text, description="token name"),
    Field("symbol", is_text, description="token symbol"),
    Field("minterLimits", list_of(is_number), required=False, multiple=True),
    Field("burnerLimits", list_of(is_number), required=False, multiple=True),
    Field("bridges", list_of(is_address), required=False, multiple=True),
    Field("baseToken", is_address, required=False, description="deploys a lockbox when set"),
    Field("isNative", is_flag, required=False, description="lockbox wraps the native asset"),
)


def plan_xerc20(config: DeploymentConfig) -> List[DeploymentStep]:
    factory = config["xerc20FactoryAddress"]
    steps = [
        factory_call(
            "XERC20",
            "XERC20Factory",
            factory,
            "deployXERC20",
            config["name"],
            config["symbol"],
            [to_wei(limit) for limit in config.get("minterLimits") or []],
            [to_wei(limit) for limit in config.get("burnerLimits") or []],
            list(config.get("bridges") or []),
            event=EventRule("XERC20Deployed", 0),
        )
    ]
    if config.get("baseToken"):
        steps.append(
            factory_call(
                "XERC20Lockbox",
                "XERC20Factory",
                factory,
                "deployLockbox",
                ref("XERC20"),
                config["baseToken"],
                to_flag(config.get("isNative", False)),
                event=EventRule("LockboxDeployed", 0),
            )
        )
    return steps


XDEPOSIT_SCHEMA: ConfigSchema = (
    Field("LRD", is_address),
    Field("WETH", is_address),
    Field("NEXTWETH", is_address),
    Field("CONNEXT", is_address),
    Field("RATEPROVIDER", is_address),
    Field("DESTINATIONDOMAIN", is_uint, description="Connext domain id"),
    Field("RECIPIENT", is_address),
    Field("BRIDGEADMIN", is_address),
)


def plan_xdeposit(config: DeploymentConfig) -> List[DeploymentStep]:
    return [
        deploy_proxy(
            "XDeposit",
            config["LRD"],
            config["WETH"],
            config["NEXTWETH"],
            config["CONNEXT"],
            config["RATEPROVIDER"],
            int(config["DESTINATIONDOMAIN"]),
            config["RECIPIENT"],
            config["BRIDGEADMIN"],
            DEPLOYER,
        )
    ]


XSTAKE_SCHEMA: ConfigSchema = (
    Field("WETH", is_address),
    Field("LRD", is_address),
    Field("XLRD", is_address),
    Field("XLRDLOCKBOX", is_address),
    Field("STAKE_MANAGER", is_address),
    Field("CONNEXT", is_address),
)


def plan_xstake(config: DeploymentConfig) -> List[DeploymentStep]:
    return [
        deploy_proxy(
            "XStake",
            config["WETH"],
            config["LRD"],
            config["XLRD"],
            config["XLRDLOCKBOX"],
            config["STAKE_MANAGER"],
            config["CONNEXT"],
            DEPLOYER,
        )
    ]


MOCK_LRD_SCHEMA: ConfigSchema = (
    Field("name", is_text, required=False, envvar="MOCK_LRD_NAME"),
    Field("symbol", is_text, required=False, envvar="MOCK_LRD_SYMBOL"),
)


def plan_mock_lrd(config: DeploymentConfig) -> List[DeploymentStep]:
    return [
        deploy("MockLRD", config.get("name") or "mckLrd", config.get("symbol") or "mLRD"),
        deploy(
            "MockStakeManager",
            followups=[
                Call(
                    ref("MockStakeManager"), "MockStakeManager", "setLrdToken", (ref("MockLRD"),)
                ),
                Call(ref("MockLRD"), "MockLRD", "initMinter", (ref("MockStakeManager"),)),
            ],
        ),
    ]


FLOWS: Dict[str, Flow] = {
    flow.name: flow
    for flow in (
        Flow("rate-sender", "RateSender behind a proxy plus its rate tokens",
             RATE_SENDER_SCHEMA, plan_rate_sender),
        Flow("register-upkeep", "RegisterUpkeep behind a proxy",
             REGISTER_UPKEEP_SCHEMA, plan_register_upkeep),
        Flow("upgrade-register-upkeep", "Upgrade the RegisterUpkeep implementation",
             UPGRADE_REGISTER_UPKEEP_SCHEMA, plan_upgrade_register_upkeep),
        Flow("token-transferor", "TokenTransferor behind a proxy",
             TOKEN_TRANSFEROR_SCHEMA, plan_token_transferor),
        Flow("mock-token", "MockToken with an initial rate",
             MOCK_TOKEN_SCHEMA, plan_mock_token),
        Flow("xerc20-factory", "XERC20Factory",
             XERC20_FACTORY_SCHEMA, plan_xerc20_factory),
        Flow("xerc20", "XERC20 token and optional lockbox through the factory",
             XERC20_SCHEMA, plan_xerc20),
        Flow("xdeposit", "XDeposit behind a proxy",
             XDEPOSIT_SCHEMA, plan_xdeposit),
        Flow("xstake", "XStake behind a proxy",
             XSTAKE_SCHEMA, plan_xstake),
        Flow("mock-lrd", "MockLRD and MockStakeManager wired together",
             MOCK_LRD_SCHEMA, plan_mock_lrd),
    )
}


def get_flow(name: str) -> Flow:
    try:
        return FLOWS[name]
    except KeyError:
        raise ValueError(f"Unknown flow '{name}'; expected one of {', '.join(FLOWS)}")
