from typing import Any, Callable, Dict, List, Optional, Sequence

from ape.logging import logger
from eth_typing import ChecksumAddress
from eth_utils import is_address, to_checksum_address

from xdeploy.chain import Chain, PendingTransaction, Receipt
from xdeploy.confirm import confirm_resolution
from xdeploy.constants import DEFAULT_CONFIRMATIONS
from xdeploy.events import resolve_event_address
from xdeploy.exceptions import DeploymentStepError, EventNotFoundError
from xdeploy.plan import (
    Call,
    DeploymentPlan,
    DeploymentStep,
    ResolutionContext,
    StepKind,
    resolve_param,
    resolve_params,
)
from xdeploy.result import ResolvedArtifact

Confirmer = Callable[[DeploymentStep, Sequence[Any]], None]


def _checksum(address: Optional[str]) -> Optional[ChecksumAddress]:
    return to_checksum_address(address) if address else None


class DeploymentSequencer:
    """
    Executes a deployment plan one step at a time.

    Each step is submitted, confirmed and address-resolved before the next
    one starts. The first failure stops the run; ``artifacts`` then holds
    only what was resolved before the failing step.
    """

    def __init__(
        self,
        chain: Chain,
        confirmations: int = DEFAULT_CONFIRMATIONS,
        autosign: bool = True,
        confirm: Optional[Confirmer] = None,
    ):
        self.chain = chain
        self.confirmations = confirmations
        self.autosign = autosign
        self._confirm = confirm or confirm_resolution
        self.artifacts: List[ResolvedArtifact] = list()

    def _context(self) -> ResolutionContext:
        resolved: Dict[str, ResolvedArtifact] = {a.name: a for a in self.artifacts}
        return ResolutionContext(deployer=self.chain.deployer, artifacts=resolved)

    def run(self, plan: DeploymentPlan) -> List[ResolvedArtifact]:
        for position, step in enumerate(plan, start=1):
            logger.info(f"[{position}/{len(plan)}] {step.kind.value} {step.name}")
            artifact = self.execute(step)
            self.artifacts.append(artifact)
            if artifact.deployed:
                logger.success(f"{artifact.name} deployed at {artifact.address}")
            else:
                logger.info(f"{artifact.name} already at {artifact.address}")
        return list(self.artifacts)

    def execute(self, step: DeploymentStep) -> ResolvedArtifact:
        if step.kind is StepKind.EXISTING:
            return self._record_existing(step)

        context = self._context()
        try:
            args = resolve_params(step.args, context)
            target = resolve_param(step.target, context) if step.target else None
        except ValueError as e:
            raise DeploymentStepError(step.name, str(e)) from e

        if not self.autosign:
            self._confirm(step, args)

        pending = self._submit(step, args, target)
        receipt = self._wait(step.name, pending)
        address = self._resolve_address(step, receipt)
        artifact = ResolvedArtifact(
            name=step.name,
            contract=step.contract,
            address=address,
            constructor_args=tuple(args),
            implementation=_checksum(receipt.implementation),
            txn_hash=receipt.txn_hash,
        )

        for call in step.followups:
            self._execute_followup(step, call, artifact)
        return artifact

    def _record_existing(self, step: DeploymentStep) -> ResolvedArtifact:
        try:
            address = resolve_param(step.target, self._context())
        except ValueError as e:
            raise DeploymentStepError(step.name, str(e)) from e
        if not is_address(address):
            raise DeploymentStepError(step.name, f"{address!r} is not an address")
        return ResolvedArtifact(
            name=step.name,
            contract=step.contract,
            address=to_checksum_address(address),
            deployed=False,
        )

    def _submit(
        self, step: DeploymentStep, args: List[Any], target: Optional[ChecksumAddress]
    ) -> PendingTransaction:
        try:
            if step.kind is StepKind.DEPLOY:
                return self.chain.deploy(step.contract, args)
            if step.kind is StepKind.PROXY:
                return self.chain.deploy_proxy(step.contract, step.method, args)
            if step.kind is StepKind.CALL:
                return self.chain.transact(step.contract, target, step.method, args)
            if step.kind is StepKind.UPGRADE:
                return self.chain.upgrade_proxy(step.contract, target)
        except DeploymentStepError:
            raise
        except Exception as e:
            raise DeploymentStepError(step.name, f"submission rejected: {e}") from e
        raise DeploymentStepError(step.name, f"unsupported step kind {step.kind}")

    def _wait(self, name: str, pending: PendingTransaction) -> Receipt:
        logger.info(f"Waiting for {pending.txn_hash} ({self.confirmations} confirmation(s))")
        try:
            receipt = self.chain.wait(pending, self.confirmations)
        except Exception as e:
            raise DeploymentStepError(name, f"confirmation not observed: {e}") from e
        if receipt.failed:
            raise DeploymentStepError(name, f"transaction {receipt.txn_hash} reverted")
        return receipt

    def _resolve_address(self, step: DeploymentStep, receipt: Receipt) -> ChecksumAddress:
        if step.event:
            try:
                address = resolve_event_address(receipt, step.event)
            except EventNotFoundError as e:
                raise EventNotFoundError(e.event_name, step=step.name) from e
        else:
            address = receipt.contract_address

        if not address or not is_address(address):
            raise DeploymentStepError(step.name, f"no contract address in {receipt.txn_hash}")
        return to_checksum_address(address)

    def _execute_followup(self, step: DeploymentStep, call: Call, artifact: ResolvedArtifact):
        resolved = {a.name: a for a in self.artifacts}
        resolved[artifact.name] = artifact
        context = ResolutionContext(deployer=self.chain.deployer, artifacts=resolved)
        target = resolve_param(call.target, context)
        args = resolve_params(call.args, context)
        logger.info(f"Transacting {call.contract}[{str(target)[:10]}].{call.method}")
        try:
            pending = self.chain.transact(call.contract, target, call.method, args)
        except Exception as e:
            raise DeploymentStepError(step.name, f"{call.method} rejected: {e}") from e
        self._wait(step.name, pending)
