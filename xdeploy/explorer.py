from ape import networks

from xdeploy.exceptions import VerificationError
from xdeploy.result import ResolvedArtifact
from xdeploy.verification import Verifier

ALREADY_VERIFIED_MARKERS = ("already verified", "already been verified")


class ExplorerVerifier(Verifier):
    """Publishes contract sources to the connected network's block explorer."""

    def __init__(self, explorer=None):
        self._explorer = explorer

    @property
    def explorer(self):
        if self._explorer is None:
            self._explorer = networks.provider.network.explorer
        if self._explorer is None:
            raise VerificationError("No explorer configured for the connected network")
        return self._explorer

    def verify(self, artifact: ResolvedArtifact) -> None:
        try:
            self.explorer.publish_contract(artifact.verification_address)
        except VerificationError:
            raise
        except Exception as e:
            message = str(e)
            if any(marker in message.lower() for marker in ALREADY_VERIFIED_MARKERS):
                raise VerificationError(f"already verified: {message}") from e
            raise VerificationError(message or e.__class__.__name__) from e
