"""
SugarStatus — Dexcom Share error schema and error taxonomy.

The Share service answers HTTP 200 for everything, so failures arrive as a
JSON error object in the body. ShareErrorResponse is that wire object;
the DexcomError hierarchy is what the rest of the app raises and catches.
error_from_response() maps one onto the other.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ShareErrorCode(str, Enum):
    """Error codes the Share service is known to return."""

    ACCOUNT_PASSWORD_INVALID = "AccountPasswordInvalid"
    MAX_AUTHENTICATION_ATTEMPTS = "MaxAuthenticationAttemptsReached"
    SESSION_ID_NOT_FOUND = "SessionIdNotFound"
    SESSION_NOT_VALID = "SessionNotValid"


@dataclass(frozen=True)
class ShareErrorResponse:
    """Error object returned in the body of a Share response."""

    code: str
    message: Optional[str]
    sub_code: Optional[str]
    type_name: Optional[str]

    @classmethod
    def from_json(cls, obj: object) -> Optional["ShareErrorResponse"]:
        """Parse a decoded JSON value, or return None if it is not an error object."""
        if not isinstance(obj, dict):
            return None
        if not all(key in obj for key in ("Code", "Message", "SubCode", "TypeName")):
            return None
        if not isinstance(obj["Code"], str):
            return None
        return cls(
            code=obj["Code"],
            message=obj["Message"],
            sub_code=obj["SubCode"],
            type_name=obj["TypeName"],
        )

    @property
    def known_code(self) -> Optional[ShareErrorCode]:
        """The recognized error code, or None when the service sent a new one."""
        try:
            return ShareErrorCode(self.code)
        except ValueError:
            return None


# -- Application errors --

class DexcomError(Exception):
    """Base class for everything the Dexcom client raises."""


class ArgumentError(DexcomError):
    """A constructor argument was rejected before any network call."""


class EmptyUsernameError(ArgumentError):
    def __init__(self) -> None:
        super().__init__("The username must not be empty")


class EmptyPasswordError(ArgumentError):
    def __init__(self) -> None:
        super().__init__("The password must not be empty")


class RemoteError(DexcomError):
    """The Share service reported a failure.

    ``body`` is always the raw response text so it can be logged as-is.
    ``response`` is the parsed error object when there was one.
    """

    description = "Dexcom Share returned an error"

    def __init__(self, body: str, response: Optional[ShareErrorResponse] = None) -> None:
        self.body = body
        self.response = response
        detail = response.message if response and response.message else body
        super().__init__(f"{self.description}: {detail}")


class InvalidPasswordError(RemoteError):
    description = "Invalid username or password"


class MaxAuthenticationAttemptsError(RemoteError):
    description = "Maximum number of authentication attempts reached"


class SessionNotFoundError(RemoteError):
    description = "Session ID not found"


class SessionInvalidError(RemoteError):
    description = "Session ID not active or expired"


class UnknownErrorCodeError(RemoteError):
    """An error object whose Code is not in ShareErrorCode."""

    description = "Dexcom Share returned an unrecognized error code"

    @property
    def code(self) -> str:
        return self.response.code if self.response else ""


class UnknownResponseError(RemoteError):
    """The body was neither a result nor an error object."""

    description = "Encountered an unknown response"

    def __init__(self, body: str) -> None:
        super().__init__(body)


class TransportError(DexcomError):
    """The HTTP exchange itself failed (connection, timeout, bad response)."""


class CacheWriteError(DexcomError):
    """The session cache could not be written to disk."""


class MaxRetriesReachedError(DexcomError):
    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(
            f"Dexcom kept rejecting the session after {attempts} renewals"
        )


_ERRORS_BY_CODE = {
    ShareErrorCode.ACCOUNT_PASSWORD_INVALID: InvalidPasswordError,
    ShareErrorCode.MAX_AUTHENTICATION_ATTEMPTS: MaxAuthenticationAttemptsError,
    ShareErrorCode.SESSION_ID_NOT_FOUND: SessionNotFoundError,
    ShareErrorCode.SESSION_NOT_VALID: SessionInvalidError,
}


def error_from_response(response: ShareErrorResponse, body: str) -> RemoteError:
    """Map a parsed Share error object to the exception to raise."""
    error_cls = _ERRORS_BY_CODE.get(response.known_code, UnknownErrorCodeError)
    return error_cls(body, response)
