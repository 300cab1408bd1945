"""
Error taxonomy for the resolver service.
The API layer maps each class to a client or server response.
"""

from typing import Optional


class ResolverError(Exception):
    """Base class for all resolver errors."""


class ConfigurationError(ResolverError):
    """Malformed network, vocabulary or category set. Fatal at construction."""


class InputValidationError(ResolverError):
    """Empty or invalid query. Recoverable, no state is mutated."""


class ExternalResolutionFailure(ResolverError):
    """External lookup unreachable or unusable. Always recovered locally."""


class PersistenceFailure(ResolverError):
    """Durable write of the memoization store failed.

    Carries the answer that was computed before the write failed so the
    caller can still deliver it alongside the server error.
    """

    def __init__(self, message: str, answer: Optional[str] = None):
        super().__init__(message)
        self.answer = answer
