import typing
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from eth_typing import ChecksumAddress

from xdeploy.constants import DEPLOYER_VARIABLE, VARIABLE_PREFIX
from xdeploy.events import EventRule
from xdeploy.exceptions import ConfigurationError


class StepKind(Enum):
    DEPLOY = "deploy"
    PROXY = "proxy"
    CALL = "call"
    UPGRADE = "upgrade"
    EXISTING = "existing"


class Call(NamedTuple):
    """A wiring transaction executed once its step's artifact has an address."""

    target: str
    contract: str
    method: str
    args: Tuple[Any, ...] = ()


class DeploymentStep(NamedTuple):
    """
    One unit of on-chain work producing a single named artifact.

    ``args`` and ``target`` may reference earlier artifacts as ``$Name``
    and the signer as ``$deployer``.
    """

    name: str
    contract: str
    kind: StepKind = StepKind.DEPLOY
    args: Tuple[Any, ...] = ()
    method: Optional[str] = None
    target: Optional[str] = None
    event: Optional[EventRule] = None
    followups: Tuple[Call, ...] = ()


def deploy(name: str, *args, contract: Optional[str] = None, followups=()) -> DeploymentStep:
    return DeploymentStep(
        name=name, contract=contract or name, args=tuple(args), followups=tuple(followups)
    )


def deploy_proxy(
    name: str, *args, initializer: Optional[str] = "initialize", contract: Optional[str] = None
) -> DeploymentStep:
    return DeploymentStep(
        name=name,
        contract=contract or name,
        kind=StepKind.PROXY,
        args=tuple(args),
        method=initializer,
    )


def factory_call(
    name: str, factory: str, target: str, method: str, *args, event: EventRule
) -> DeploymentStep:
    return DeploymentStep(
        name=name,
        contract=factory,
        kind=StepKind.CALL,
        args=tuple(args),
        method=method,
        target=target,
        event=event,
    )


def upgrade(name: str, proxy_address: str, contract: Optional[str] = None) -> DeploymentStep:
    return DeploymentStep(
        name=name, contract=contract or name, kind=StepKind.UPGRADE, target=proxy_address
    )


def existing(name: str, address: str, contract: str) -> DeploymentStep:
    """Records a component that is already on chain; nothing is submitted."""
    return DeploymentStep(name=name, contract=contract, kind=StepKind.EXISTING, target=address)


#
# Variables
#


class ResolutionContext:
    """Addresses available to a step at execution time."""

    def __init__(self, deployer: ChecksumAddress, artifacts: typing.Mapping[str, Any]):
        self.deployer = deployer
        self.artifacts = artifacts


class Variable(ABC):
    @abstractmethod
    def resolve(self, context: ResolutionContext) -> Any:
        raise NotImplementedError

    @staticmethod
    def is_variable(param: Any) -> bool:
        """Returns True if the param is a variable."""
        return isinstance(param, str) and param.startswith(VARIABLE_PREFIX)


class DeployerAccount(Variable):
    def resolve(self, context: ResolutionContext) -> ChecksumAddress:
        return context.deployer


class ArtifactAddress(Variable):
    def __init__(self, name: str):
        self.name = name

    def resolve(self, context: ResolutionContext) -> ChecksumAddress:
        try:
            return context.artifacts[self.name].address
        except KeyError:
            raise ValueError(f"Artifact '{self.name}' has not been deployed yet")


def _variable_from_value(value: str) -> Variable:
    variable = value[len(VARIABLE_PREFIX) :]
    if variable == DEPLOYER_VARIABLE:
        return DeployerAccount()
    return ArtifactAddress(variable)


def resolve_param(value: Any, context: ResolutionContext) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, (list, tuple)):
        return [resolve_param(v, context) for v in value]
    if Variable.is_variable(value):
        return _variable_from_value(value).resolve(context)
    return value  # literally a value


def resolve_params(values: Sequence[Any], context: ResolutionContext) -> List[Any]:
    return [resolve_param(value, context) for value in values]


def _references(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [ref for v in value for ref in _references(v)]
    if Variable.is_variable(value):
        variable = _variable_from_value(value)
        if isinstance(variable, ArtifactAddress):
            return [variable.name]
    return []


def step_references(step: DeploymentStep) -> List[str]:
    """Names of the artifacts a step consumes, in the order they appear."""
    references = _references(list(step.args))
    references.extend(_references(step.target))
    for call in step.followups:
        references.extend(_references(call.target))
        references.extend(_references(list(call.args)))
    return references


#
# Plan
#


class DeploymentPlan:
    """An immutable, fully resolved list of steps executed strictly in order."""

    def __init__(self, flow: str, steps: Sequence[DeploymentStep]):
        self.flow = flow
        self.steps: Tuple[DeploymentStep, ...] = tuple(steps)
        validate_plan(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __len__(self):
        return len(self.steps)

    def __eq__(self, other):
        if not isinstance(other, DeploymentPlan):
            return NotImplemented
        return self.flow == other.flow and self.steps == other.steps

    def __repr__(self):
        names = ", ".join(step.name for step in self.steps)
        return f"DeploymentPlan({self.flow}: {names})"

    @property
    def names(self) -> List[str]:
        return [step.name for step in self.steps]


def validate_plan(steps: Sequence[DeploymentStep]) -> None:
    """Every reference must point at an earlier step; artifact names are unique."""
    seen: Dict[str, DeploymentStep] = dict()
    for step in steps:
        if step.name in seen:
            raise ConfigurationError(step.name, "artifact name is planned more than once")
        if step.kind is StepKind.CALL and not (step.target and step.method and step.event):
            raise ConfigurationError(
                step.name, "factory calls need a target, a method and an event rule"
            )
        if step.kind in (StepKind.UPGRADE, StepKind.EXISTING) and not step.target:
            raise ConfigurationError(step.name, f"{step.kind.value} steps need an address")
        for reference in step_references(step):
            if reference == step.name and _only_in_followups(step, reference):
                continue
            if reference not in seen:
                raise ConfigurationError(
                    step.name, f"references '{VARIABLE_PREFIX}{reference}' before it is deployed"
                )
        seen[step.name] = step


def _only_in_followups(step: DeploymentStep, reference: str) -> bool:
    """A step's followups may address the artifact the step itself produces."""
    own = _references(list(step.args)) + _references(step.target)
    return reference not in own
