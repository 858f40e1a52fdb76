"""Error taxonomy for the refresh invoker."""


class RefreshInvokerError(Exception):
    """Base class for all refresh invoker errors."""


class InvalidRequestError(RefreshInvokerError):
    """The invocation request (or a locally built command) is malformed."""


class SecretResolutionError(RefreshInvokerError):
    """A named secret could not be read from the secret provider."""

    def __init__(self, secret_name, reason):
        self.secret_name = secret_name
        self.reason = reason
        super().__init__(f"Could not resolve secret '{secret_name}': {reason}")


class RefreshExecutionError(RefreshInvokerError):
    """The remote service rejected or failed the refresh command."""


class CallbackDeliveryError(RefreshInvokerError):
    """The callback notification could not be delivered."""
