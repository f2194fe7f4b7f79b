from __future__ import annotations


class InvalidSessionError(Exception):
    """Missing, unverifiable, unregistered, revoked or expired session token."""

    def __init__(self, message: str = "Invalid session.") -> None:
        super().__init__(message)


class AccessDeniedError(Exception):
    """The identity is valid but this application does not admit it."""

    def __init__(
        self, message: str = "Your email is not authorized to use this application."
    ) -> None:
        super().__init__(message)


class InsufficientRoleError(Exception):
    def __init__(
        self, message: str = "You do not have enough permissions for this resource."
    ) -> None:
        super().__init__(message)


class FirebaseConfigurationError(Exception):
    pass
