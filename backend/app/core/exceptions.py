"""
Exceptions raised by the HubSpot integration (token refresh, CRM calls, credential store).
Endpoints translate these into HTTP responses; services only raise them.
"""

from typing import Any


class HubSpotServiceError(Exception):
    """Raised when a HubSpot API call fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: Any = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class HubSpotApiError(HubSpotServiceError):
    """HubSpot answered with a non-2xx status other than 404."""

    def __init__(self, status_code: int, body: Any = None) -> None:
        msg = f"HubSpot API error: {status_code}"
        if isinstance(body, dict):
            if body.get("category"):
                msg += f" ({body['category']})"
            if isinstance(body.get("message"), str):
                msg += f" - {body['message']}"
        elif isinstance(body, str) and body:
            msg += f" - {body[:500]}"
        super().__init__(msg, status_code=status_code, detail=body)
        self.body = body


class HubSpotNotFoundError(HubSpotServiceError):
    """HubSpot returned 404 for a contact read or update."""

    def __init__(self, message: str = "Contact not found", detail: Any = None) -> None:
        super().__init__(message, status_code=404, detail=detail)


class HubSpotHttpError(HubSpotServiceError):
    """Transport-level failure (DNS, timeout, connection reset) talking to HubSpot."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"HubSpot request failed: {reason}")
        self.reason = reason


class TokenRefreshError(HubSpotServiceError):
    """Base class for failures while obtaining a fresh access token."""


class ReauthRequiredError(TokenRefreshError):
    """The refresh token was rejected; the user has to reconnect HubSpot."""

    def __init__(self, message: str = "HubSpot authorization expired; reconnect required", detail: Any = None) -> None:
        super().__init__(message, status_code=401, detail=detail)


class MissingRefreshTokenError(ReauthRequiredError):
    """Credential carries no refresh token, so it can never be refreshed."""

    def __init__(self) -> None:
        super().__init__("HubSpot credential has no refresh token; reconnect required")


class RefreshTransportError(TokenRefreshError):
    """The token endpoint could not be reached or failed transiently. Safe to retry later."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"HubSpot token refresh failed: {reason}")
        self.reason = reason


class CredentialStoreError(Exception):
    """Reading or writing a stored credential failed."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)
