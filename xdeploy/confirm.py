from typing import Any, Sequence

from ape.logging import logger
from ape.utils import ZERO_ADDRESS

from xdeploy.exceptions import DeploymentStepError
from xdeploy.plan import DeploymentStep


def _answer_is_no(question: str) -> bool:
    answer = input(question)
    return answer.lower().strip() == "n"


def _confirm_step(step: DeploymentStep) -> None:
    """Asks the operator to confirm a single step."""
    if _answer_is_no(f"{step.kind.value.capitalize()} {step.name} Y/N? "):
        raise DeploymentStepError(step.name, "declined by operator")


def _confirm_zero_address(step: DeploymentStep) -> None:
    if _answer_is_no("Zero Address detected for deployment parameter; Continue? Y/N? "):
        raise DeploymentStepError(step.name, "declined by operator (zero address)")


def confirm_resolution(step: DeploymentStep, resolved_args: Sequence[Any]) -> None:
    """Shows the resolved arguments of a step and asks the operator to go ahead."""
    if len(resolved_args) == 0:
        logger.info(f"No arguments for {step.name}")
        _confirm_step(step)
        return

    lines = "\n".join(f"\t{position}={value}" for position, value in enumerate(resolved_args))
    logger.info(f"Arguments for {step.name} ({step.contract}):\n{lines}")
    _confirm_step(step)
    if any(value == ZERO_ADDRESS for value in resolved_args):
        _confirm_zero_address(step)
