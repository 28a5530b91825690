"""Custom exception hierarchy for crmvault."""

from typing import Any


class CrmVaultError(Exception):
    """Base exception for all crmvault errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ----- Configuration Errors -----


class ConfigurationError(CrmVaultError):
    """Missing crypto primitive or malformed key. Fatal at startup."""

    pass


# ----- Decryption Errors -----


class DecryptionError(CrmVaultError):
    """Base class for every failure to open an envelope."""

    pass


class DecodingError(DecryptionError):
    """Envelope transport string is malformed or too short."""

    pass


class AuthenticationFailure(DecryptionError):
    """Envelope failed the authentication tag check."""

    def __init__(self) -> None:
        super().__init__(
            message="Envelope authentication failed (tampered data or wrong key)",
        )


# ----- Resource Errors -----


class NotFoundError(CrmVaultError):
    """Requested resource was not found."""

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(
            message=f"{resource} not found",
            details={"resource": resource, "identifier": identifier},
        )


class ConflictError(CrmVaultError):
    """Resource conflict (e.g., duplicate)."""

    pass


# ----- Validation Errors -----


class ValidationError(CrmVaultError):
    """Input validation failed."""

    pass


class HierarchyCycleError(ValidationError):
    """A hierarchy mutation would have introduced a cycle or self-loop."""

    def __init__(self, parent: str, child: str, reason: str) -> None:
        super().__init__(
            message=(
                "A node cannot be its own parent"
                if reason == "self_loop"
                else "This assignment would create a circular hierarchy"
            ),
            details={"parent": parent, "child": child, "reason": reason},
        )


# ----- Authorization Errors -----


class AccessDeniedError(CrmVaultError):
    """Actor is not allowed to see the requested record."""

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(
            message=f"Access denied to this {resource}",
            details={"resource": resource, "identifier": identifier},
        )
