"""Domain-specific errors for zanarkand."""


class ZanarkandError(Exception):
    """Base error for zanarkand."""


class ConfigError(ZanarkandError):
    """Raised when construction options are invalid."""


class ConfigTypeError(ConfigError, TypeError):
    """Raised when an option is present but has the wrong type."""

    def __init__(self, field: str, expected: str) -> None:
        super().__init__(f"{field} must be {expected}.")
        self.field = field
        self.expected = expected


class ExecutableNotFoundError(ConfigError):
    """Raised when the wrapper executable does not exist at the resolved path."""


class SupervisorError(ZanarkandError):
    """Raised when the wrapper process cannot be launched or reset."""


class CommandError(ZanarkandError):
    """Raised when a control command cannot be delivered."""


class DecodeError(ZanarkandError):
    """Raised when an inbound message or packet payload cannot be decoded."""


class DefinitionValidationError(ZanarkandError):
    """Raised when a packet definition file does not conform to schema or semantics."""


class DefinitionLoadError(ZanarkandError):
    """Raised when loading packet definition sources fails."""


class TransportError(ZanarkandError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised on channel connect failures."""


class TransportSendError(TransportError):
    """Raised when a frame cannot be sent on the channel."""


class TransportTimeoutError(TransportError):
    """Raised when the channel does not become ready in time."""


class ChannelClosedError(TransportError):
    """Raised to readiness waiters when the channel is closed or interrupted."""
