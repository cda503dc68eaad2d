"""Custom exceptions for chatmail."""


class ChatmailError(Exception):
    """Base exception for all chatmail errors."""


class ConfigurationError(ChatmailError):
    """Exception raised for configuration related errors."""


class AuthenticationError(ChatmailError):
    """Exception raised for authentication failures."""


class TransportError(ChatmailError):
    """Exception raised when a request to the mail server fails."""


class GmailAPIError(TransportError):
    """Exception raised for Gmail API related errors."""


class DecodingError(ChatmailError):
    """Exception raised when a server payload cannot be decoded."""


class ValidationError(ChatmailError):
    """Exception raised for data validation errors."""
