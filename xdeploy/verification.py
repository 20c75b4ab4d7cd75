from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ape.logging import logger

from xdeploy.result import ResolvedArtifact, VerificationOutcome


class Verifier(ABC):
    """The verification collaborator, e.g. a block explorer."""

    @abstractmethod
    def verify(self, artifact: ResolvedArtifact) -> None:
        """Registers the artifact's source; raises on any failure."""
        raise NotImplementedError


class VerificationStage:
    """
    Best-effort source verification of every deployed artifact.

    Failures are logged and recorded as outcomes; nothing raised by the
    verifier escapes this stage. Without a verifier the stage is skipped and
    every outcome is marked as not attempted.
    """

    def __init__(self, verifier: Optional[Verifier] = None):
        self.verifier = verifier

    @property
    def enabled(self) -> bool:
        return self.verifier is not None

    def run(self, artifacts: Sequence[ResolvedArtifact]) -> List[VerificationOutcome]:
        if not self.enabled:
            logger.info("Skipping source verification")
            return [self._skip(artifact) for artifact in artifacts]
        return [self._verify(artifact) for artifact in artifacts]

    def _skip(self, artifact: ResolvedArtifact) -> VerificationOutcome:
        return VerificationOutcome(artifact_name=artifact.name, attempted=False, succeeded=False)

    def _verify(self, artifact: ResolvedArtifact) -> VerificationOutcome:
        if not artifact.deployed:
            logger.info(f"Skipping verification of {artifact.name}; not deployed by this run")
            return self._skip(artifact)
        logger.info(f"Verifying {artifact.name} at {artifact.verification_address}...")
        try:
            self.verifier.verify(artifact)
        except Exception as e:
            reason = str(e) or e.__class__.__name__
            logger.warning(f"Could not verify {artifact.name}: {reason}")
            return VerificationOutcome(
                artifact_name=artifact.name, attempted=True, succeeded=False, error_detail=reason
            )
        logger.success(f"{artifact.name} verified")
        return VerificationOutcome(artifact_name=artifact.name, attempted=True, succeeded=True)
