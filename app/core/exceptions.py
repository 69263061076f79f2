"""
Application-level exception types.

Provides domain-specific exceptions so gateway, parsing and configuration
failures can be told apart by callers instead of catching bare `Exception`.
"""

from __future__ import annotations


class AppError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        self.detail = detail or message
        super().__init__(message)


class ConfigurationError(AppError):
    """Raised when required configuration is missing or invalid."""


class GatewayError(AppError):
    """Raised when a text/vision completion call fails or returns nothing usable."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_type: str | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.status_code = status_code
        self.error_type = error_type


class PlacementProposalError(AppError):
    """Base class for failures of the placement proposal call."""


class ProposalTransportError(PlacementProposalError):
    """The gateway could not be reached, timed out, or rejected the request."""


class ProposalParseError(PlacementProposalError):
    """The gateway answered, but no JSON object could be recovered from the text."""

    def __init__(self, message: str, *, response_length: int) -> None:
        super().__init__(message)
        self.response_length = response_length


class ProposalShapeError(PlacementProposalError):
    """The response parsed as JSON but has no list-valued `placements` field."""
