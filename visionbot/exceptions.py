"""
Custom exceptions for the vision bots, providing a structured error hierarchy.
"""


class BotBaseException(Exception):
    """Base exception for all custom exceptions in this bot."""

    pass


class ConfigurationError(BotBaseException):
    """Raised for errors in bot configuration, like missing keys or unknown bot identities."""

    pass


class APIError(BotBaseException):
    """Raised for errors related to external HTTP interactions (vision service, connector, uploads)."""

    pass


class VisionContractError(APIError):
    """Raised when the vision service answers with a body that does not match its documented schema."""

    pass


class ActivityParseError(BotBaseException):
    """Raised when an inbound activity payload cannot be interpreted."""

    pass
