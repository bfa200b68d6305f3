from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class UnauthenticatedError(AppError):
    pass


class InvalidArgumentError(AppError):
    pass


class SendFailedError(AppError):
    pass


class SubscriptionFailedError(AppError):
    pass
