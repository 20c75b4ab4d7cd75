import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from ape.logging import logger
from eth_typing import ChecksumAddress
from eth_utils import to_hex

from xdeploy.constants import STANDARD_RESULT_JSON_FORMAT


class ResolvedArtifact(NamedTuple):
    """
    A component of the deployment and the arguments it was created with.

    ``deployed`` is False for components that were already on chain.
    """

    name: str
    contract: str
    address: ChecksumAddress
    constructor_args: Tuple[Any, ...] = ()
    implementation: Optional[ChecksumAddress] = None
    txn_hash: Optional[str] = None
    deployed: bool = True

    @property
    def verification_address(self) -> ChecksumAddress:
        """Proxies are verified through their implementation."""
        return self.implementation or self.address


class VerificationOutcome(NamedTuple):
    artifact_name: str
    attempted: bool
    succeeded: bool
    error_detail: Optional[str] = None


class DeploymentStatus(Enum):
    FINALIZED = "finalized"
    ABORTED = "aborted"


class DeploymentResult(NamedTuple):
    """The single machine readable output of a deployment run."""

    flow: str
    status: DeploymentStatus
    artifacts: Tuple[ResolvedArtifact, ...] = ()
    verifications: Tuple[VerificationOutcome, ...] = ()
    error: Optional[str] = None
    failed_step: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is DeploymentStatus.FINALIZED

    @property
    def addresses(self) -> Dict[str, ChecksumAddress]:
        return {artifact.name: artifact.address for artifact in self.artifacts}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flow": self.flow,
            "status": self.status.value,
            "addresses": self.addresses,
            "artifacts": [_artifact_to_dict(artifact) for artifact in self.artifacts],
            "verifications": [outcome._asdict() for outcome in self.verifications],
            "error": self.error,
            "failed_step": self.failed_step,
        }

    def to_json(self, **kwargs) -> str:
        return json.dumps(self.to_dict(), **kwargs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentResult":
        artifacts = tuple(
            ResolvedArtifact(
                name=entry["name"],
                contract=entry["contract"],
                address=entry["address"],
                constructor_args=tuple(entry.get("constructor_args", ())),
                implementation=entry.get("implementation"),
                txn_hash=entry.get("txn_hash"),
                deployed=entry.get("deployed", True),
            )
            for entry in data.get("artifacts", [])
        )
        verifications = tuple(
            VerificationOutcome(**outcome) for outcome in data.get("verifications", [])
        )
        return cls(
            flow=data["flow"],
            status=DeploymentStatus(data["status"]),
            artifacts=artifacts,
            verifications=verifications,
            error=data.get("error"),
            failed_step=data.get("failed_step"),
        )


def _jsonable(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return to_hex(value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _artifact_to_dict(artifact: ResolvedArtifact) -> Dict[str, Any]:
    data = artifact._asdict()
    data["constructor_args"] = _jsonable(list(artifact.constructor_args))
    return data


def aggregate(
    flow: str,
    artifacts: Sequence[ResolvedArtifact],
    verifications: Sequence[VerificationOutcome] = (),
    error: Optional[str] = None,
    failed_step: Optional[str] = None,
) -> DeploymentResult:
    """Combines the sequencer's artifacts and the verification outcomes into a result."""
    status = DeploymentStatus.ABORTED if error else DeploymentStatus.FINALIZED
    return DeploymentResult(
        flow=flow,
        status=status,
        artifacts=tuple(artifacts),
        verifications=tuple(verifications),
        error=error,
        failed_step=failed_step,
    )


def write_result(result: DeploymentResult, filepath: Path) -> Path:
    """Writes a deployment result to a JSON artifact file."""
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w") as file:
        json.dump(result.to_dict(), file, **STANDARD_RESULT_JSON_FORMAT)
    logger.info(f"Deployment result written to {filepath}")
    return filepath


def read_result(filepath: Path) -> DeploymentResult:
    with open(filepath, "r") as file:
        data = json.load(file)
    return DeploymentResult.from_dict(data)


def summarize(result: DeploymentResult) -> List[str]:
    """Human readable lines describing a result."""
    lines = [f"{result.flow}: {result.status.value}"]
    for artifact in result.artifacts:
        suffix = f" (implementation {artifact.implementation})" if artifact.implementation else ""
        if not artifact.deployed:
            suffix = " (existing)"
        lines.append(f"\t{artifact.name} {artifact.address}{suffix}")
    for outcome in result.verifications:
        if not outcome.attempted:
            state = "skipped"
        elif outcome.succeeded:
            state = "verified"
        else:
            state = f"not verified ({outcome.error_detail})"
        lines.append(f"\t{outcome.artifact_name} {state}")
    if result.error:
        lines.append(f"\tfailed at {result.failed_step or 'validation'}: {result.error}")
    return lines
