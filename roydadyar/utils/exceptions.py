"""Exceptions raised by the engine and the subscription flow."""


class RoydadYarError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidPlan(RoydadYarError):
    """Requested plan is not a purchasable tier."""


class Conflict(RoydadYarError):
    """Operation clashes with the current subscription state."""

    status_code = 409


class NotFound(RoydadYarError):
    """Referenced user, event or subscription does not exist."""

    status_code = 404


class PlanLimitExceeded(RoydadYarError):
    """The user's tier does not allow another active event."""

    status_code = 403


class PaymentGatewayError(RoydadYarError):
    """The payment provider rejected a call or could not be reached."""

    status_code = 502


class PaymentInitiationError(RoydadYarError):
    """The pending subscription could not be handed to the payment provider."""

    status_code = 502


class CycleInProgress(RoydadYarError):
    """A dispatch cycle is already running."""

    status_code = 409


class ChannelNotAllowed(RoydadYarError):
    """The user's tier does not include the requested channel."""

    status_code = 403
