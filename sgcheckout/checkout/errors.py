"""Exceptions raised by checkout components.

Leaf components raise these; the component handling the user action catches
them and turns them into toasts.
"""

from typing import Optional


class CheckoutError(Exception):
    """Base class for every failure the checkout flow knows how to report."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EndpointError(CheckoutError):
    """A backend endpoint answered with a non-2xx status or could not be reached."""

    def __init__(
        self,
        path: str,
        status_code: Optional[int],
        message: str,
        payload: Optional[dict] = None,
    ):
        super().__init__(message)
        self.path = path
        self.status_code = status_code
        self.payload = payload or {}

    @property
    def requires_email(self) -> bool:
        return bool(self.payload.get("requiresEmail")) or "Email address is required" in self.message


class AuthenticationRequired(EndpointError):
    """The backend rejected the session (401). Never retried."""


class PreconditionFailed(CheckoutError):
    """A client-side check failed before any request was made."""

    def __init__(self, title: str, message: str):
        super().__init__(message)
        self.title = title
