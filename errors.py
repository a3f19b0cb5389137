class GuardError(Exception):
    pass


class ConfigError(GuardError):
    pass


class TransportError(GuardError):
    """Request could not be sent or came back with a non-2xx status."""


class DecodeError(GuardError):
    """Response body did not have the expected shape."""


class NoEligibleIndicesError(GuardError):
    pass
