import pytest
from eth_utils import to_checksum_address

from tests.conftest import (
    BASE_TOKEN_ADDRESS,
    DEPLOYER_ADDRESS,
    FACTORY_ADDRESS,
    LINK_ADDRESS,
    PROXY_ADDRESS,
    ROUTER_ADDRESS,
    make_address,
)
from xdeploy.config import validate_config
from xdeploy.exceptions import ConfigurationError
from xdeploy.flows import DEPLOYER, FLOWS, get_flow, ref, to_wei
from xdeploy.pipeline import run_flow
from xdeploy.plan import StepKind
from xdeploy.result import DeploymentStatus


def test_every_flow_is_registered_under_its_name():
    assert all(name == flow.name for name, flow in FLOWS.items())
    assert {
        "rate-sender",
        "register-upkeep",
        "upgrade-register-upkeep",
        "token-transferor",
        "mock-token",
        "xerc20-factory",
        "xerc20",
        "xdeposit",
        "xstake",
        "mock-lrd",
    } == set(FLOWS)


def test_unknown_flow():
    with pytest.raises(ValueError, match="Unknown flow"):
        get_flow("nope")


@pytest.mark.parametrize(
    "value,expected",
    [
        (1, 10**18),
        ("1000", 1000 * 10**18),
        ("2.5", 25 * 10**17),
        (2.5, 25 * 10**17),
        ("1e6", 10**24),
    ],
)
def test_to_wei(value, expected):
    assert expected == to_wei(value)


def test_rate_sender_deploys_mock_tokens_and_records_existing_ones():
    config = {
        "routerAddress": ROUTER_ADDRESS,
        "linkAddress": LINK_ADDRESS,
        "tokens": [
            {"name": "ezETH", "initialRate": "1.05"},
            {"name": "wETH", "address": make_address(5)},
        ],
    }
    flow = get_flow("rate-sender")
    validate_config(config, flow.schema)
    plan = flow.plan(config)

    assert ["MockToken[ezETH]", "Token[wETH]", "RateSender"] == plan.names
    mock_token, weth, rate_sender = plan.steps
    assert "MockToken" == mock_token.contract
    assert (105 * 10**16,) == mock_token.args
    assert StepKind.EXISTING == weth.kind
    assert make_address(5) == weth.target
    assert StepKind.PROXY == rate_sender.kind
    assert "initialize" == rate_sender.method
    assert (ROUTER_ADDRESS, LINK_ADDRESS, DEPLOYER) == rate_sender.args


def test_rate_sender_rejects_malformed_tokens():
    config = {
        "routerAddress": ROUTER_ADDRESS,
        "linkAddress": LINK_ADDRESS,
        "tokens": [{"name": "ezETH"}],
    }
    with pytest.raises(ConfigurationError) as error:
        validate_config(config, get_flow("rate-sender").schema)
    assert "tokens" == error.value.field


def test_upgrade_register_upkeep(fake_chain, context):
    result = run_flow(
        get_flow("upgrade-register-upkeep"), {"proxyAddress": PROXY_ADDRESS}, context
    )

    assert result.succeeded
    (artifact,) = result.artifacts
    assert PROXY_ADDRESS == artifact.address
    assert artifact.implementation is not None
    assert "upgrade" == fake_chain.calls[0].kind
    assert PROXY_ADDRESS == fake_chain.calls[0].address


def test_proxies_are_initialized_with_the_deployer(fake_chain, context):
    config = {"linkAddress": LINK_ADDRESS, "registrarAddress": make_address(9)}
    result = run_flow(get_flow("register-upkeep"), config, context)

    assert result.succeeded
    call = fake_chain.calls[0]
    assert "proxy" == call.kind
    assert (LINK_ADDRESS, make_address(9), DEPLOYER_ADDRESS) == call.args
    artifact = result.artifacts[0]
    assert artifact.implementation != artifact.address


def test_xerc20_limits_are_converted_to_wei():
    config = {
        "xerc20FactoryAddress": FACTORY_ADDRESS,
        "name": "Restaked LRD",
        "symbol": "xLRD",
        "minterLimits": ["1000", "2.5"],
        "burnerLimits": [1000, 3],
        "bridges": [make_address(1), make_address(2)],
    }
    plan = get_flow("xerc20").plan(config)

    (step,) = plan.steps
    assert StepKind.CALL == step.kind
    assert FACTORY_ADDRESS == step.target
    assert "deployXERC20" == step.method
    name, symbol, minter, burner, bridges = step.args
    assert [1000 * 10**18, 25 * 10**17] == minter
    assert [1000 * 10**18, 3 * 10**18] == burner
    assert [make_address(1), make_address(2)] == bridges


def test_xerc20_lockbox_consumes_the_token():
    config = {
        "xerc20FactoryAddress": FACTORY_ADDRESS,
        "name": "Restaked LRD",
        "symbol": "xLRD",
        "baseToken": BASE_TOKEN_ADDRESS,
        "isNative": "true",
    }
    plan = get_flow("xerc20").plan(config)

    assert ["XERC20", "XERC20Lockbox"] == plan.names
    assert (ref("XERC20"), BASE_TOKEN_ADDRESS, True) == plan.steps[1].args
    assert "LockboxDeployed" == plan.steps[1].event.event_name


def test_xdeposit_argument_order():
    names = [field.name for field in get_flow("xdeposit").schema]
    config = {name: make_address(i + 1) for i, name in enumerate(names)}
    config["DESTINATIONDOMAIN"] = "1634886255"

    (step,) = get_flow("xdeposit").plan(config).steps
    assert 1634886255 == step.args[5]
    assert DEPLOYER == step.args[-1]
    assert 9 == len(step.args)


def test_mock_lrd_wires_token_and_stake_manager(fake_chain, context):
    result = run_flow(get_flow("mock-lrd"), {"symbol": "tLRD"}, context)

    assert result.succeeded
    token, manager = result.artifacts
    assert ("mckLrd", "tLRD") == token.constructor_args

    set_token, init_minter = fake_chain.calls[2:]
    assert ("setLrdToken", manager.address, (token.address,)) == (
        set_token.method,
        set_token.address,
        set_token.args,
    )
    assert ("initMinter", token.address, (manager.address,)) == (
        init_minter.method,
        init_minter.address,
        init_minter.args,
    )


def test_mock_token_uses_raw_rate(fake_chain, context):
    result = run_flow(get_flow("mock-token"), {"initialRate": "1000"}, context)
    assert result.succeeded
    assert (1000,) == fake_chain.calls[0].args


def test_rate_sender_with_only_router_and_link(fake_chain, context):
    config = {"routerAddress": ROUTER_ADDRESS, "linkAddress": LINK_ADDRESS}
    result = run_flow(get_flow("rate-sender"), config, context)

    assert DeploymentStatus.FINALIZED == result.status
    assert ["RateSender"] == [a.name for a in result.artifacts]
    assert 1 == len(fake_chain.calls)
    assert (ROUTER_ADDRESS, LINK_ADDRESS, DEPLOYER_ADDRESS) == fake_chain.calls[0].args


def test_rate_sender_result_lists_every_token(fake_chain, fake_verifier, verifying_context):
    weth = make_address(5)
    config = {
        "routerAddress": ROUTER_ADDRESS,
        "linkAddress": LINK_ADDRESS,
        "tokens": [
            {"name": "ezETH", "initialRate": "1.05"},
            {"name": "wETH", "address": weth},
        ],
    }
    result = run_flow(get_flow("rate-sender"), config, verifying_context)

    assert result.succeeded
    assert ["MockToken[ezETH]", "Token[wETH]", "RateSender"] == list(result.addresses)
    assert to_checksum_address(weth) == result.addresses["Token[wETH]"]
    # only the mock token and the proxy were sent to the chain
    assert ["MockToken", "RateSender"] == [call.contract for call in fake_chain.calls]

    recorded = result.artifacts[1]
    assert not recorded.deployed
    assert recorded.txn_hash is None
    assert ["MockToken[ezETH]", "RateSender"] == [name for name, _, _ in fake_verifier.verified]
    assert not result.verifications[1].attempted
    assert result.to_dict()["artifacts"][1]["deployed"] is False


def test_planner_errors_are_configuration_errors():
    # skips validation on purpose: the planner itself must not leak ValueError
    with pytest.raises(ConfigurationError) as error:
        get_flow("mock-token").plan({"initialRate": "²"})
    assert "mock-token" == error.value.field

    with pytest.raises(ConfigurationError):
        get_flow("xerc20").plan(
            {
                "xerc20FactoryAddress": FACTORY_ADDRESS,
                "name": "Restaked LRD",
                "symbol": "xLRD",
                "minterLimits": ["1e80"],
            }
        )
