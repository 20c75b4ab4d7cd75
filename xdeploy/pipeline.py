from enum import Enum
from typing import List, NamedTuple, Optional

from ape.logging import logger

from xdeploy.chain import Chain
from xdeploy.config import DeploymentConfig, validate_config
from xdeploy.constants import DEFAULT_CONFIRMATIONS
from xdeploy.exceptions import ConfigurationError, DeploymentStepError
from xdeploy.flows import Flow
from xdeploy.plan import DeploymentPlan
from xdeploy.result import DeploymentResult, VerificationOutcome, aggregate, summarize
from xdeploy.sequencer import DeploymentSequencer
from xdeploy.verification import VerificationStage, Verifier


class PipelineState(Enum):
    VALIDATING = "validating"
    DEPLOYING = "deploying"
    VERIFYING = "verifying"
    FINALIZED = "finalized"
    ABORTED = "aborted"


class ExecutionContext(NamedTuple):
    """Everything a run needs from its surroundings, passed explicitly."""

    chain: Chain
    verifier: Optional[Verifier] = None
    confirmations: int = DEFAULT_CONFIRMATIONS
    autosign: bool = True


class DeploymentPipeline:
    """
    Validates a configuration, plans and executes a flow's steps, verifies
    the deployed sources and aggregates everything into a single result.
    """

    def __init__(self, flow: Flow, context: ExecutionContext):
        self.flow = flow
        self.context = context
        self.state = PipelineState.VALIDATING
        self.plan: Optional[DeploymentPlan] = None
        self.sequencer = DeploymentSequencer(
            chain=context.chain,
            confirmations=context.confirmations,
            autosign=context.autosign,
        )

    def run(self, config: DeploymentConfig) -> DeploymentResult:
        if self.state is not PipelineState.VALIDATING:
            raise RuntimeError("A pipeline runs exactly once; create a new one to deploy again.")

        try:
            self.plan = self.prepare(config)
        except ConfigurationError as e:
            logger.error(f"Invalid configuration for {self.flow.name}: {e}")
            return self._abort(error=f"ConfigurationError: {e}", failed_step=None)

        self.state = PipelineState.DEPLOYING
        try:
            self.sequencer.run(self.plan)
        except DeploymentStepError as e:
            logger.error(f"Deployment of {e.step} failed: {e.reason}")
            return self._abort(error=f"{e.__class__.__name__}: {e}", failed_step=e.step)

        self.state = PipelineState.VERIFYING
        outcomes = VerificationStage(self.context.verifier).run(self.sequencer.artifacts)
        return self._finalize(outcomes)

    def prepare(self, config: DeploymentConfig) -> DeploymentPlan:
        """Validates the config and builds the plan; nothing touches the chain."""
        logger.info(f"Validating {self.flow.name} parameters...")
        validate_config(config, self.flow.schema)
        plan = self.flow.plan(config)
        logger.info(f"Planned {len(plan)} step(s): {', '.join(plan.names)}")
        return plan

    def _abort(self, error: str, failed_step: Optional[str]) -> DeploymentResult:
        self.state = PipelineState.ABORTED
        result = aggregate(
            flow=self.flow.name,
            artifacts=self.sequencer.artifacts,
            error=error,
            failed_step=failed_step,
        )
        self._report(result)
        return result

    def _finalize(self, outcomes: List[VerificationOutcome]) -> DeploymentResult:
        self.state = PipelineState.FINALIZED
        result = aggregate(
            flow=self.flow.name, artifacts=self.sequencer.artifacts, verifications=outcomes
        )
        self._report(result)
        return result

    @staticmethod
    def _report(result: DeploymentResult) -> None:
        message = "\n".join(summarize(result))
        if result.succeeded:
            logger.success(message)
        else:
            logger.error(message)


def run_flow(flow: Flow, config: DeploymentConfig, context: ExecutionContext) -> DeploymentResult:
    return DeploymentPipeline(flow=flow, context=context).run(config)
