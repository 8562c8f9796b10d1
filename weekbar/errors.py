from __future__ import annotations


class WeekbarError(RuntimeError):
    """Base error carrying the HTTP status the transport answers with."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequestError(WeekbarError):
    status_code = 400


class UnauthorizedError(WeekbarError):
    # Answered as 400; the account has not been linked yet.
    status_code = 400

    def __init__(self, message: str = "Bad request. The refresh token doesn't exist.") -> None:
        super().__init__(message)


class RemoteError(WeekbarError):
    status_code = 502
    retryable = False


class RemoteTimeoutError(RemoteError):
    status_code = 504
    retryable = True
