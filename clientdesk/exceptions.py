"""Exception hierarchy for clientdesk."""


class ClientDeskError(Exception):
    """Base exception for all clientdesk errors."""


# Backend
class ApiError(ClientDeskError):
    """Non-2xx response (or transport failure) from the backend API."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class MissingTokenError(ApiError):
    """No bearer token is available for an authenticated call."""

    def __init__(self, message: str = "No authentication token available"):
        super().__init__(401, message)


class DuplicateSubmissionError(ApiError):
    """The same mutating action is already in flight."""

    def __init__(self, action: str):
        super().__init__(409, f"'{action}' is already in progress")
        self.action = action


# Channels
class ChannelError(ClientDeskError):
    """Base exception for channel connection operations."""


class ChannelStateError(ChannelError):
    """Illegal channel state transition."""


class UnknownProviderError(ChannelError):
    """No provider is registered for the channel type."""


# OAuth
class OAuthCallbackError(ClientDeskError):
    """Base exception for OAuth callback failures."""


class OAuthValidationError(OAuthCallbackError):
    """The callback arrived without the required parameters."""


class OAuthProviderError(OAuthCallbackError):
    """The OAuth provider reported an error in the redirect."""
