"""Errors raised by the domain subsystem.

Only rejections are exceptions. DNS check results (ownership unproven,
routing missing, transient lookup failure) are ordinary return values, see
``app.services.domain_verification.VerificationOutcome``.
"""


class DomainError(ValueError):
    """Base class for domain operations rejected before any state change."""


class InvalidHostname(DomainError):
    """Hostname fails syntactic validation."""


class ReservedHostname(DomainError):
    """Subdomain label collides with the reserved list."""


class HostnameAlreadyClaimed(DomainError):
    """Hostname is held by a different tenant."""

    def __init__(self, hostname: str, message: str | None = None):
        self.hostname = hostname
        super().__init__(message or "This domain is already in use by another account")


class DomainNotFound(DomainError):
    """Referenced domain no longer exists (or was re-issued a new token)."""
