from __future__ import annotations


class RelayError(Exception):
    """Base for errors the router turns into a `{success: false}` response."""

    code = "relay_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RelayError):
    code = "invalid_request"
    status_code = 400


class NotFoundError(RelayError):
    code = "not_found"
    status_code = 404


class DeliveryError(RelayError):
    code = "delivery_failed"
    status_code = 500


class MissingTargetError(DeliveryError):
    """The instance has no session/window/pane handle the strategy can use."""

    code = "missing_target"


class DeliveryIOError(DeliveryError):
    """A terminal-control call failed (non-zero exit, timeout, tmux missing)."""

    code = "delivery_io"
