class DeploymentError(Exception):
    """Base class for every error raised while running a deployment."""


class ConfigurationError(DeploymentError, ValueError):
    """Raised when a required configuration field is missing or malformed."""

    def __init__(self, field: str, reason: str = "missing or invalid"):
        self.field = field
        self.reason = reason
        super().__init__(field)

    def __str__(self):
        return f"{self.field}: {self.reason}"


class DeploymentStepError(DeploymentError):
    """Raised when a transaction is rejected, reverts or is never confirmed."""

    def __init__(self, step: str, reason: str):
        self.step = step
        self.reason = reason
        super().__init__(f"{step}: {reason}")


class EventNotFoundError(DeploymentStepError):
    """Raised when a confirmed receipt lacks the event used to resolve an address."""

    def __init__(self, event_name: str, step: str = ""):
        self.event_name = event_name
        super().__init__(step, f"{event_name} event not found in transaction receipt")


class VerificationError(DeploymentError):
    """Raised by verifiers; never escapes the verification stage."""
