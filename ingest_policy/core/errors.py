class PolicyError(Exception):
    """Base policy engine error."""


class InvalidArgumentError(PolicyError, ValueError):
    """Raised when an input is outside the domain the policy accepts."""


class NoCandidatesAvailableError(PolicyError, LookupError):
    """Raised when a selection is requested from an empty candidate list."""
