"""Exception taxonomy for the matching core.

Provider failures and vector mismatches are recovered where they occur;
only validation errors reach the caller.
"""


class MatchingError(Exception):
    """Base class for matching-core errors."""


class ProviderError(MatchingError):
    """An embedding or chat provider failed, timed out, or returned garbage."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class SearchValidationError(MatchingError, ValueError):
    """Search parameters were rejected before any retrieval work began."""


class DataIntegrityError(MatchingError):
    """Two vectors that must be comparable have different lengths."""
