"""
Domain errors raised by the service layer.

Plain PermissionError / LookupError / ValueError are used for the common
forbidden / not-found / bad-input cases; the classes below cover the
outcomes routers need to tell apart.
"""


class OrderUnavailable(Exception):
    """The order was claimed by someone else or left the available pool."""

    def __init__(self, message: str = "Order is no longer available") -> None:
        self.message = message
        super().__init__(self.message)


class ClaimInProgress(Exception):
    """The driver already has an accept request in flight."""

    def __init__(self, message: str = "Another accept request is still being processed") -> None:
        self.message = message
        super().__init__(self.message)


class SubscriptionRequired(Exception):
    """Availability requires an active, non-expired subscription."""

    def __init__(self, message: str = "An active subscription is required") -> None:
        self.message = message
        super().__init__(self.message)


class UnknownUserType(Exception):
    """Role resolution found no usable user type for the account."""

    def __init__(self, message: str = "Unknown user type") -> None:
        self.message = message
        super().__init__(self.message)


class FunctionCallError(Exception):
    """A serverless function call failed or returned an unusable body."""

    def __init__(self, message: str = "Remote function call failed") -> None:
        self.message = message
        super().__init__(self.message)
