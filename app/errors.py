"""
Error taxonomy for the relay.

Every error carries the HTTP status it maps to; the exception handler in
app.main renders them as {"error": ...}.
"""
from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base class for errors surfaced by the payment relay."""

    status_code = 500

    def __init__(self, message: str, payload: Optional[Any] = None):
        self.message = message
        self.payload = payload
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Response body; upstream payloads are passed through untouched."""
        return {"error": self.payload if self.payload is not None else self.message}


class ValidationError(RelayError):
    """Bad or missing request fields. Raised before any network call."""

    status_code = 400


class AuthenticationError(RelayError):
    """Webhook signature did not match the raw body."""

    status_code = 400


class GatewayError(RelayError):
    """The payment gateway rejected a call or could not be reached."""

    status_code = 500


class PaymentNotSuccessfulError(RelayError):
    """A verified transaction did not end in success."""

    status_code = 400


class EmailDispatchError(RelayError):
    """The email provider failed to send a receipt."""


class MissingCustomerEmailError(RelayError):
    """No address could be recovered to route a receipt to."""
